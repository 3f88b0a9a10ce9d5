"""
审计日志服务
写入独立审计库；审计库不可用或写入失败时只记日志，不影响业务操作
"""
import json
import logging
from typing import Any, Callable, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from app.audit_database import get_audit_session_factory
from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


def _dump(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


class AuditService:
    """审计日志服务"""

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        # 未注入时使用全局审计库连接
        self._session_factory = session_factory

    def _factory(self) -> Optional[Callable[[], Session]]:
        if self._session_factory is not None:
            return self._session_factory
        return get_audit_session_factory()

    @property
    def available(self) -> bool:
        return self._factory() is not None

    def record(self, action: str, entity_type: Optional[str] = None,
               entity_id: Optional[int] = None, operator_id: Optional[int] = None,
               operator_name: Optional[str] = None, old_value: Any = None,
               new_value: Any = None, ip_address: Optional[str] = None) -> bool:
        """
        记录一条审计日志

        Returns:
            是否写入成功
        """
        factory = self._factory()
        if factory is None:
            logger.debug(f"Audit unavailable, skipped {action} on {entity_type}#{entity_id}")
            return False

        db = factory()
        try:
            db.add(AuditLog(
                operator_id=operator_id,
                operator_name=operator_name,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                old_value=_dump(old_value),
                new_value=_dump(new_value),
                ip_address=ip_address,
            ))
            db.commit()
            return True
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to write audit log {action}: {e}")
            return False
        finally:
            db.close()

    def get_logs(self, action: Optional[str] = None, entity_type: Optional[str] = None,
                 entity_id: Optional[int] = None, limit: int = 100) -> Optional[List[AuditLog]]:
        """查询审计日志，审计库不可用时返回 None"""
        factory = self._factory()
        if factory is None:
            return None

        db = factory()
        try:
            query = db.query(AuditLog)
            if action:
                query = query.filter(AuditLog.action == action)
            if entity_type:
                query = query.filter(AuditLog.entity_type == entity_type)
            if entity_id is not None:
                query = query.filter(AuditLog.entity_id == entity_id)
            logs = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit).all()
            db.expunge_all()
            return logs
        finally:
            db.close()


def get_audit_service() -> AuditService:
    """依赖注入：审计服务"""
    return AuditService()
