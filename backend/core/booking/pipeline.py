"""
core/booking/pipeline.py

预订保存前的提交流水线

保存一条预订前依次执行：
1. 分配预订号（缺失时）
2. 生成发票号（缺失时）
3. 已退房且未计罚时计算超时退房罚金
4. 写入存储（insert 或 update）

两个标识都在同一次写入前确定，写入失败不会留下只有预订号的记录。
写入时的唯一约束冲突若落在本次生成的字段上，则清空该字段重新生成，
重试次数有上限，耗尽后抛出 CollisionError。
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Set

from core.booking.code_allocator import CodeAllocator, DEFAULT_MAX_ATTEMPTS
from core.booking.errors import CollisionError, RecordNotFound, UniqueConstraintViolation
from core.booking.interfaces import BOOKINGS, BookingPersistence
from core.booking.invoice_sequencer import DEFAULT_INVOICE_PREFIX, InvoiceSequencer
from core.booking.late_checkout import (
    LateCheckoutFine, MAX_LATE_MINUTES, apply_late_checkout_fine,
)

logger = logging.getLogger(__name__)

STATUS_CHECKED_OUT = "Checked Out"


@dataclass
class PipelineConfig:
    """流水线参数"""
    invoice_prefix: str = DEFAULT_INVOICE_PREFIX
    booking_no_max_attempts: int = DEFAULT_MAX_ATTEMPTS
    save_max_attempts: int = 3
    max_late_minutes: int = MAX_LATE_MINUTES


def should_compute_fine(record: Dict[str, Any]) -> bool:
    """已退房、有实际退房时间且罚金尚未应用"""
    fine = record.get("late_checkout_fine") or {}
    return (
        record.get("status") == STATUS_CHECKED_OUT
        and record.get("actual_check_out_time") is not None
        and not fine.get("applied", False)
    )


def apply_fine_step(record: Dict[str, Any], now: datetime,
                    max_late_minutes: int = MAX_LATE_MINUTES) -> Dict[str, Any]:
    """罚金步骤：满足条件时返回带新罚金子记录的副本"""
    if not should_compute_fine(record):
        return record
    fine = LateCheckoutFine.from_dict(record.get("late_checkout_fine"))
    updated = apply_late_checkout_fine(
        fine,
        record.get("check_out_date"),
        record.get("time_out"),
        record["actual_check_out_time"],
        now=now,
        max_late_minutes=max_late_minutes,
    )
    if updated is fine:
        return record
    return {**record, "late_checkout_fine": updated.to_dict()}


class BookingFinalizer:
    """预订提交流水线"""

    def __init__(self, store: BookingPersistence, config: Optional[PipelineConfig] = None,
                 allocator: Optional[CodeAllocator] = None,
                 sequencer: Optional[InvoiceSequencer] = None,
                 collection: str = BOOKINGS):
        self.store = store
        self.config = config or PipelineConfig()
        self.collection = collection
        self.allocator = allocator or CodeAllocator(
            store, max_attempts=self.config.booking_no_max_attempts, collection=collection
        )
        self.sequencer = sequencer or InvoiceSequencer(
            store, prefix=self.config.invoice_prefix, collection=collection
        )

    def prepare(self, record: Dict[str, Any], now: datetime,
                generated: Set[str]) -> Dict[str, Any]:
        """补全标识并计算罚金，不写入存储"""
        prepared = dict(record)
        if not prepared.get("booking_no"):
            prepared["booking_no"] = self.allocator.allocate()
            generated.add("booking_no")
        if not prepared.get("invoice_number"):
            prepared["invoice_number"] = self.sequencer.next_invoice_number(now)
            generated.add("invoice_number")
        return apply_fine_step(prepared, now, self.config.max_late_minutes)

    def _write(self, record: Dict[str, Any]) -> Dict[str, Any]:
        record_id = record.get("id")
        if record_id is None:
            return self.store.insert(self.collection, record)
        patch = {k: v for k, v in record.items() if k != "id"}
        saved = self.store.update(self.collection, record_id, patch)
        if saved is None:
            raise RecordNotFound(f"预订不存在: {record_id}")
        return saved

    def finalize(self, record: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        执行流水线并写入存储，返回写入后的记录

        Raises:
            CollisionError: 标识冲突且重试耗尽
            FineInputError: 罚金输入非法
            UniqueConstraintViolation: 非生成字段（如 grc_no）冲突
            RecordNotFound: 更新的记录不存在
            PersistenceError: 存储失败
        """
        now = now or datetime.now()
        current = dict(record)
        generated: Set[str] = set()
        last_field = "booking_no"

        for attempt in range(1, self.config.save_max_attempts + 1):
            prepared = self.prepare(current, now, generated)
            try:
                return self._write(prepared)
            except UniqueConstraintViolation as e:
                if e.field not in generated:
                    raise
                last_field = e.field
                logger.warning(
                    f"Unique constraint hit on generated {e.field} "
                    f"{prepared.get(e.field)!r} (attempt {attempt}), regenerating"
                )
                current = {**prepared, e.field: None}
                generated.discard(e.field)

        raise CollisionError(last_field, self.config.save_max_attempts)


def finalize_booking(record: Dict[str, Any], store: BookingPersistence,
                     now: Optional[datetime] = None,
                     config: Optional[PipelineConfig] = None) -> Dict[str, Any]:
    """便捷入口：用默认组件执行提交流水线"""
    return BookingFinalizer(store, config=config).finalize(record, now=now)
