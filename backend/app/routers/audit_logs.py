"""
审计日志路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from app.models.ontology import Employee
from app.models.schemas import AuditLogResponse
from app.services.audit_service import AuditService, get_audit_service
from app.security.auth import require_manager

router = APIRouter(prefix="/audit-logs", tags=["审计日志"])


@router.get("", response_model=List[AuditLogResponse])
def list_logs(
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    service: AuditService = Depends(get_audit_service),
    current_user: Employee = Depends(require_manager)
):
    """获取审计日志"""
    logs = service.get_logs(action=action, entity_type=entity_type,
                            entity_id=entity_id, limit=limit)
    if logs is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                            detail="审计库不可用")
    return logs
