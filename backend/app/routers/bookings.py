"""
预订管理路由
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.database import get_db
from app.models.ontology import Employee, BookingStatus
from app.models.schemas import (
    BookingCreate, BookingUpdate, BookingResponse, BookingCancel,
    CheckInRequest, CheckOutRequest, FineWaiveRequest
)
from app.services.audit_service import AuditService, get_audit_service
from app.services.booking_service import BookingService
from app.security.auth import get_current_user, require_manager, require_receptionist_or_manager
from core.booking.errors import CollisionError, FineInputError, PersistenceError

router = APIRouter(prefix="/bookings", tags=["预订管理"])


def get_booking_service(
    db: Session = Depends(get_db),
    audit: AuditService = Depends(get_audit_service)
) -> BookingService:
    """依赖注入：预订服务"""
    return BookingService(db, audit=audit)


def _run(action):
    """执行写操作并把异常映射为 HTTP 错误"""
    try:
        return action()
    except CollisionError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT,
                            detail=f"无法分配唯一的预订号/发票号，请重试: {e}")
    except FineInputError as e:
        raise HTTPException(status_code=422,
                            detail=f"超时退房罚金计算参数错误: {e}")
    except PersistenceError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                            detail=f"数据库暂不可用: {e}")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


def _get_or_404(service: BookingService, booking_id: int):
    booking = service.get_booking(booking_id)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="预订不存在")
    return booking


@router.get("", response_model=List[BookingResponse])
def list_bookings(
    status: Optional[BookingStatus] = None,
    include_deleted: bool = False,
    service: BookingService = Depends(get_booking_service),
    current_user: Employee = Depends(get_current_user)
):
    """获取预订列表"""
    return service.list_bookings(status, include_deleted)


@router.get("/by-no/{booking_no}", response_model=BookingResponse)
def get_booking_by_no(
    booking_no: str,
    service: BookingService = Depends(get_booking_service),
    current_user: Employee = Depends(get_current_user)
):
    """根据预订号获取预订"""
    booking = service.get_booking_by_no(booking_no)
    if not booking:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="预订不存在")
    return booking


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    current_user: Employee = Depends(get_current_user)
):
    """获取预订详情"""
    return _get_or_404(service, booking_id)


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    current_user: Employee = Depends(require_receptionist_or_manager)
):
    """创建预订"""
    return _run(lambda: service.create_booking(data, current_user))


@router.put("/{booking_id}", response_model=BookingResponse)
def update_booking(
    booking_id: int,
    data: BookingUpdate,
    service: BookingService = Depends(get_booking_service),
    current_user: Employee = Depends(require_receptionist_or_manager)
):
    """更新预订"""
    _get_or_404(service, booking_id)
    return _run(lambda: service.update_booking(booking_id, data, current_user))


@router.post("/{booking_id}/check-in", response_model=BookingResponse)
def check_in(
    booking_id: int,
    data: CheckInRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: Employee = Depends(require_receptionist_or_manager)
):
    """办理入住"""
    _get_or_404(service, booking_id)
    return _run(lambda: service.check_in(booking_id, data.actual_check_in_time, current_user))


@router.post("/{booking_id}/check-out", response_model=BookingResponse)
def check_out(
    booking_id: int,
    data: CheckOutRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: Employee = Depends(require_receptionist_or_manager)
):
    """办理退房（自动计算超时退房罚金）"""
    _get_or_404(service, booking_id)
    return _run(lambda: service.check_out(booking_id, data.actual_check_out_time, current_user))


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: int,
    data: BookingCancel,
    service: BookingService = Depends(get_booking_service),
    current_user: Employee = Depends(require_receptionist_or_manager)
):
    """取消预订"""
    _get_or_404(service, booking_id)
    return _run(lambda: service.cancel_booking(booking_id, data.cancel_reason, current_user))


@router.post("/{booking_id}/waive-fine", response_model=BookingResponse)
def waive_fine(
    booking_id: int,
    data: FineWaiveRequest,
    service: BookingService = Depends(get_booking_service),
    current_user: Employee = Depends(require_manager)
):
    """减免超时退房罚金（仅经理）"""
    _get_or_404(service, booking_id)
    return _run(lambda: service.waive_fine(booking_id, data.reason, current_user))


@router.delete("/{booking_id}")
def delete_booking(
    booking_id: int,
    service: BookingService = Depends(get_booking_service),
    current_user: Employee = Depends(require_manager)
):
    """删除预订（软删除）"""
    _get_or_404(service, booking_id)
    booking = _run(lambda: service.delete_booking(booking_id, current_user))
    return {"message": "预订已删除", "booking_id": booking.id, "booking_no": booking.booking_no}
