"""
预订服务 - 本体操作层
管理 Booking 对象的生命周期：创建、修改、入住、退房、取消、罚金减免、软删除
所有写入都经过提交流水线（预订号 → 发票号 → 超时退房罚金 → 写入）
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from sqlalchemy.orm import Session
from app.config import settings
from app.models.ontology import Booking, BookingStatus, Employee
from app.models.schemas import BookingCreate, BookingUpdate
from app.repositories.booking_repository import BookingRepository, booking_to_record
from app.services.audit_service import AuditService
from core.booking.errors import RecordNotFound, UniqueConstraintViolation
from core.booking.interfaces import BOOKINGS
from core.booking.pipeline import BookingFinalizer, PipelineConfig

logger = logging.getLogger(__name__)

_FIELD_LABELS = {
    "grc_no": "入住登记卡号",
}

# 修改时不可置空的字段
_REQUIRED_ON_UPDATE = {
    "name": "客人姓名",
    "mobile_no": "手机号",
    "number_of_rooms": "房间数",
    "check_in_date": "入住日期",
    "check_out_date": "离店日期",
}


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """带时区的时间转换为本地时间（不带时区），与数据库存储一致"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def pipeline_config() -> PipelineConfig:
    """从应用设置构建流水线参数"""
    return PipelineConfig(
        invoice_prefix=settings.INVOICE_PREFIX,
        booking_no_max_attempts=settings.BOOKING_NO_MAX_ATTEMPTS,
        save_max_attempts=settings.BOOKING_SAVE_MAX_ATTEMPTS,
        max_late_minutes=settings.LATE_CHECKOUT_MAX_MINUTES,
    )


class BookingService:
    """预订服务"""

    def __init__(self, db: Session, audit: Optional[AuditService] = None,
                 finalizer: Optional[BookingFinalizer] = None):
        self.db = db
        self.repository = BookingRepository(db)
        self.audit = audit or AuditService()
        self.finalizer = finalizer or BookingFinalizer(self.repository, pipeline_config())

    # ---------- 查询 ----------

    def get_booking(self, booking_id: int, include_deleted: bool = False) -> Optional[Booking]:
        """获取单个预订"""
        query = self.db.query(Booking).filter(Booking.id == booking_id)
        if not include_deleted:
            query = query.filter(Booking.deleted.isnot(True))
        return query.first()

    def get_booking_by_no(self, booking_no: str) -> Optional[Booking]:
        """根据预订号获取预订"""
        return self.db.query(Booking).filter(
            Booking.booking_no == booking_no,
            Booking.deleted.isnot(True)
        ).first()

    def list_bookings(self, status: Optional[BookingStatus] = None,
                      include_deleted: bool = False) -> List[Booking]:
        """获取预订列表"""
        query = self.db.query(Booking)
        if status:
            query = query.filter(Booking.status == status)
        if not include_deleted:
            query = query.filter(Booking.deleted.isnot(True))
        return query.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    # ---------- 内部 ----------

    def _require(self, booking_id: int) -> Booking:
        booking = self.get_booking(booking_id)
        if not booking:
            raise ValueError("预订不存在")
        return booking

    def _save(self, record: dict, now: Optional[datetime] = None) -> Booking:
        """执行提交流水线并返回持久化后的 ORM 对象"""
        try:
            saved = self.finalizer.finalize(record, now=now)
        except UniqueConstraintViolation as e:
            label = _FIELD_LABELS.get(e.field, e.field)
            raise ValueError(f"{label}已存在")
        except RecordNotFound:
            raise ValueError("预订不存在")
        booking = self.get_booking(saved["id"], include_deleted=True)
        self.db.refresh(booking)
        return booking

    def _audit(self, action: str, booking: Booking, operator: Optional[Employee],
               old_value=None, new_value=None) -> None:
        self.audit.record(
            action=action,
            entity_type="booking",
            entity_id=booking.id,
            operator_id=operator.id if operator else None,
            operator_name=operator.name if operator else None,
            old_value=old_value,
            new_value=new_value,
        )

    # ---------- 创建 / 修改 ----------

    def create_booking(self, data: BookingCreate, operator: Optional[Employee] = None) -> Booking:
        """创建预订，首次保存时分配预订号与发票号"""
        if data.check_out_date <= data.check_in_date:
            raise ValueError("离店日期必须晚于入住日期")

        if self.repository.exists(BOOKINGS, {"grc_no": data.grc_no}):
            raise ValueError("入住登记卡号已存在")

        record = data.model_dump(exclude={"time_out", "fine_per_hour", "grace_period_minutes"})
        record.update({
            "days": (data.check_out_date - data.check_in_date).days,
            "time_out": data.time_out or settings.DEFAULT_TIME_OUT,
            "status": BookingStatus.BOOKED.value,
            "payment_status": data.payment_status.value,
            "deleted": False,
            "created_by": operator.id if operator else None,
            "late_checkout_fine": {
                "amount": Decimal("0"),
                "minutes_late": 0,
                "fine_per_hour": (
                    data.fine_per_hour if data.fine_per_hour is not None
                    else Decimal(settings.LATE_CHECKOUT_FINE_PER_HOUR)
                ),
                "grace_period_minutes": (
                    data.grace_period_minutes if data.grace_period_minutes is not None
                    else settings.LATE_CHECKOUT_GRACE_MINUTES
                ),
                "applied": False,
                "waived": False,
            },
        })

        booking = self._save(record)
        logger.info(f"Booking {booking.booking_no} created with invoice {booking.invoice_number}")
        self._audit("booking.create", booking, operator, new_value={
            "booking_no": booking.booking_no,
            "invoice_number": booking.invoice_number,
            "grc_no": booking.grc_no,
        })
        return booking

    def update_booking(self, booking_id: int, data: BookingUpdate,
                       operator: Optional[Employee] = None) -> Booking:
        """更新预订普通字段；退房时间与单号不可修改"""
        booking = self._require(booking_id)

        if booking.status == BookingStatus.CANCELLED:
            raise ValueError("已取消的预订不可修改")

        update_data = data.model_dump(exclude_unset=True)
        for field, label in _REQUIRED_ON_UPDATE.items():
            if field in update_data and update_data[field] is None:
                raise ValueError(f"{label}不能为空")

        if "time_out" in update_data:
            if update_data["time_out"] != booking.time_out:
                raise ValueError("退房时间创建后不可修改")
            update_data.pop("time_out")

        check_in_date = update_data.get("check_in_date", booking.check_in_date)
        check_out_date = update_data.get("check_out_date", booking.check_out_date)
        if check_out_date <= check_in_date:
            raise ValueError("离店日期必须晚于入住日期")

        record = booking_to_record(booking)
        old_value = {k: record.get(k) for k in update_data}
        record.update(update_data)
        record["days"] = (check_out_date - check_in_date).days

        booking = self._save(record)
        self._audit("booking.update", booking, operator, old_value=old_value, new_value=update_data)
        return booking

    # ---------- 状态流转 ----------

    def check_in(self, booking_id: int, actual_time: Optional[datetime] = None,
                 operator: Optional[Employee] = None) -> Booking:
        """办理入住"""
        booking = self._require(booking_id)
        if booking.status != BookingStatus.BOOKED:
            raise ValueError(f"状态为 {booking.status.value} 的预订不可入住")

        record = booking_to_record(booking)
        record["status"] = BookingStatus.CHECKED_IN.value
        record["actual_check_in_time"] = to_local_naive(actual_time) or datetime.now()

        booking = self._save(record)
        self._audit("booking.check_in", booking, operator, new_value={
            "actual_check_in_time": booking.actual_check_in_time,
        })
        return booking

    def check_out(self, booking_id: int, actual_time: Optional[datetime] = None,
                  operator: Optional[Employee] = None, now: Optional[datetime] = None) -> Booking:
        """
        办理退房
        记录实际退房时间，由提交流水线计算超时退房罚金
        """
        booking = self._require(booking_id)
        if booking.status != BookingStatus.CHECKED_IN:
            raise ValueError(f"状态为 {booking.status.value} 的预订不可退房")

        now = now or datetime.now()
        record = booking_to_record(booking)
        record["status"] = BookingStatus.CHECKED_OUT.value
        record["actual_check_out_time"] = to_local_naive(actual_time) or now

        booking = self._save(record, now=now)
        fine = booking.late_checkout_fine
        if fine["applied"]:
            logger.info(
                f"Booking {booking.booking_no} checked out {fine['minutes_late']} minutes late, "
                f"fine {fine['amount']}"
            )
        self._audit("booking.check_out", booking, operator, new_value={
            "actual_check_out_time": booking.actual_check_out_time,
            "late_checkout_fine": fine,
        })
        return booking

    def cancel_booking(self, booking_id: int, reason: str,
                       operator: Optional[Employee] = None) -> Booking:
        """取消预订"""
        booking = self._require(booking_id)
        if booking.status != BookingStatus.BOOKED:
            raise ValueError(f"状态为 {booking.status.value} 的预订不可取消")

        record = booking_to_record(booking)
        record["status"] = BookingStatus.CANCELLED.value
        record["cancel_reason"] = reason

        booking = self._save(record)
        self._audit("booking.cancel", booking, operator, new_value={"cancel_reason": reason})
        return booking

    # ---------- 罚金 / 删除 ----------

    def waive_fine(self, booking_id: int, reason: str,
                   operator: Optional[Employee] = None) -> Booking:
        """减免已产生的超时退房罚金"""
        booking = self._require(booking_id)
        if not booking.fine_applied:
            raise ValueError("该预订没有超时退房罚金")
        if booking.fine_waived:
            raise ValueError("罚金已减免")

        record = booking_to_record(booking)
        old_fine = dict(record["late_checkout_fine"])
        record["late_checkout_fine"] = {
            **old_fine,
            "amount": Decimal("0"),
            "waived": True,
            "waived_by": operator.name if operator else None,
            "waived_reason": reason,
        }

        booking = self._save(record)
        self._audit("booking.waive_fine", booking, operator,
                    old_value={"amount": old_fine["amount"]},
                    new_value={"waived_reason": reason})
        return booking

    def delete_booking(self, booking_id: int, operator: Optional[Employee] = None) -> Booking:
        """软删除预订；预订号仍保留占用"""
        booking = self._require(booking_id)

        record = booking_to_record(booking)
        record["deleted"] = True
        record["deleted_at"] = datetime.now()
        record["deleted_by"] = operator.name if operator else None

        booking = self._save(record)
        self._audit("booking.delete", booking, operator, old_value={
            "booking_no": booking.booking_no,
            "invoice_number": booking.invoice_number,
        })
        return booking
