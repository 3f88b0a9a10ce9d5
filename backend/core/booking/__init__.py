"""
core.booking - 预订生命周期与计费核心

- code_allocator: 预订号分配
- invoice_sequencer: 发票号生成
- late_checkout: 超时退房罚金计算
- pipeline: 保存前的提交流水线
"""
from core.booking.code_allocator import CodeAllocator
from core.booking.errors import (
    BookingCoreError,
    CollisionError,
    FineInputError,
    PersistenceError,
    RecordNotFound,
    UniqueConstraintViolation,
)
from core.booking.interfaces import BOOKINGS, BookingPersistence, NOT_NULL, Ne
from core.booking.invoice_sequencer import InvoiceSequencer
from core.booking.late_checkout import (
    FineResult,
    LateCheckoutFine,
    apply_late_checkout_fine,
    compute_fine,
)
from core.booking.pipeline import BookingFinalizer, PipelineConfig, finalize_booking

__all__ = [
    "BOOKINGS",
    "BookingCoreError",
    "BookingFinalizer",
    "BookingPersistence",
    "CodeAllocator",
    "CollisionError",
    "FineInputError",
    "FineResult",
    "InvoiceSequencer",
    "LateCheckoutFine",
    "NOT_NULL",
    "Ne",
    "PersistenceError",
    "PipelineConfig",
    "RecordNotFound",
    "UniqueConstraintViolation",
    "apply_late_checkout_fine",
    "compute_fine",
    "finalize_booking",
]
