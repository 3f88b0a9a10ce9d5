"""
预订提交流水线测试
"""
import re
from datetime import date, datetime
from decimal import Decimal

import pytest

from core.booking.errors import (
    CollisionError, FineInputError, PersistenceError, RecordNotFound, UniqueConstraintViolation,
)
from core.booking.pipeline import (
    BookingFinalizer, PipelineConfig, apply_fine_step, finalize_booking, should_compute_fine,
)
from fakes import InMemoryBookingStore

NOW = datetime(2024, 3, 10, 15, 0)
BOOKING_NO_PATTERN = re.compile(r"^BK\d+(-[0-9A-F]{6})?$")


def _booking(**overrides):
    record = {
        "grc_no": "GRC001",
        "name": "张三",
        "check_in_date": date(2024, 3, 8),
        "check_out_date": date(2024, 3, 10),
        "time_out": "12:00",
        "status": "Booked",
        "deleted": False,
        "late_checkout_fine": {
            "amount": Decimal("0"),
            "minutes_late": 0,
            "fine_per_hour": Decimal("500"),
            "grace_period_minutes": 15,
            "applied": False,
        },
    }
    record.update(overrides)
    return record


class RacingStore(InMemoryBookingStore):
    """首次写入前由并发写入者抢先写入同值记录"""

    def __init__(self, field, races=1):
        super().__init__()
        self.field = field
        self.races = races

    def insert(self, collection, record):
        if self.races > 0:
            self.races -= 1
            self.seed(collection, {self.field: record[self.field], "deleted": False,
                                   "grc_no": f"RACE{self.races}"})
        return super().insert(collection, record)


class FailingStore(InMemoryBookingStore):
    def insert(self, collection, record):
        raise PersistenceError("connection refused")


class TestFineStep:
    """罚金步骤"""

    def test_should_compute_only_when_checked_out(self):
        assert should_compute_fine(_booking(status="Checked Out",
                                            actual_check_out_time=datetime(2024, 3, 10, 13)))
        assert not should_compute_fine(_booking(status="Checked In",
                                                actual_check_out_time=datetime(2024, 3, 10, 13)))
        assert not should_compute_fine(_booking(status="Checked Out"))

    def test_applied_fine_skipped(self):
        record = _booking(status="Checked Out", actual_check_out_time=datetime(2024, 3, 10, 18))
        record["late_checkout_fine"]["applied"] = True

        assert not should_compute_fine(record)
        assert apply_fine_step(record, NOW) is record

    def test_fine_written_to_copy(self):
        record = _booking(status="Checked Out", actual_check_out_time=datetime(2024, 3, 10, 14, 30))
        result = apply_fine_step(record, NOW)

        assert result["late_checkout_fine"]["amount"] == Decimal("1500")
        assert result["late_checkout_fine"]["applied_at"] == NOW
        assert record["late_checkout_fine"]["applied"] is False


class TestFinalizeNewBooking:
    """新建预订"""

    def test_assigns_identifiers_and_inserts_once(self, store):
        saved = BookingFinalizer(store).finalize(_booking(), now=NOW)

        assert BOOKING_NO_PATTERN.match(saved["booking_no"])
        assert saved["invoice_number"] == "MPZ/03/001"
        assert saved["id"] is not None
        assert store.count("insert") == 1
        assert store.count("update") == 0

    def test_sequential_bookings_get_unique_identifiers(self, store):
        """连续创建的预订标识互不相同，发票流水递增"""
        finalizer = BookingFinalizer(store)
        saved = [finalizer.finalize(_booking(grc_no=f"GRC{i:03d}"), now=NOW) for i in range(20)]

        assert len({r["booking_no"] for r in saved}) == 20
        assert [r["invoice_number"] for r in saved] == [f"MPZ/03/{i:03d}" for i in range(1, 21)]

    def test_invoice_prefix_from_config(self, store):
        saved = finalize_booking(_booking(), store, now=NOW, config=PipelineConfig(invoice_prefix="HTL"))

        assert saved["invoice_number"] == "HTL/03/001"

    def test_checked_out_record_gets_fine_before_write(self, store):
        record = _booking(status="Checked Out", actual_check_out_time=datetime(2024, 3, 10, 14, 30))
        saved = BookingFinalizer(store).finalize(record, now=NOW)

        fine = store.records()[0]["late_checkout_fine"]
        assert fine["applied"] is True
        assert fine["amount"] == Decimal("1500")
        assert saved["late_checkout_fine"]["minutes_late"] == 150


class TestFinalizeExistingBooking:
    """已有预订的再次保存"""

    def test_identifiers_are_never_reassigned(self, store):
        finalizer = BookingFinalizer(store)
        saved = finalizer.finalize(_booking(), now=NOW)
        finalizer.finalize(_booking(grc_no="GRC002"), now=NOW)

        saved["remark"] = "加床"
        updated = finalizer.finalize(saved, now=datetime(2024, 5, 1))

        assert updated["booking_no"] == saved["booking_no"]
        assert updated["invoice_number"] == "MPZ/03/001"
        assert updated["remark"] == "加床"
        assert store.count("update") == 1

    def test_fine_applied_on_check_out_update(self, store):
        finalizer = BookingFinalizer(store)
        saved = finalizer.finalize(_booking(status="Checked In"), now=NOW)
        assert saved["late_checkout_fine"]["applied"] is False

        saved.update(status="Checked Out", actual_check_out_time=datetime(2024, 3, 10, 12, 16))
        checked_out = finalizer.finalize(saved, now=NOW)

        assert checked_out["late_checkout_fine"]["applied"] is True
        assert checked_out["late_checkout_fine"]["amount"] == Decimal("500")

    def test_applied_fine_survives_later_saves(self, store):
        """罚金应用后，修改实际退房时间不会重新计算"""
        finalizer = BookingFinalizer(store)
        record = _booking(status="Checked Out", actual_check_out_time=datetime(2024, 3, 10, 14, 30))
        saved = finalizer.finalize(record, now=NOW)

        saved["actual_check_out_time"] = datetime(2024, 3, 10, 20, 0)
        again = finalizer.finalize(saved, now=datetime(2024, 3, 11))

        assert again["late_checkout_fine"]["amount"] == Decimal("1500")
        assert again["late_checkout_fine"]["applied_at"] == NOW

    def test_missing_record_raises(self, store):
        record = _booking(id=999, booking_no="BK1", invoice_number="MPZ/03/001")

        with pytest.raises(RecordNotFound):
            BookingFinalizer(store).finalize(record, now=NOW)


class TestCollisionRetry:
    """写入时的唯一约束冲突"""

    def test_invoice_race_regenerates_invoice(self):
        """并发写入者抢占发票号后重新生成"""
        store = RacingStore("invoice_number")
        saved = BookingFinalizer(store).finalize(_booking(), now=NOW)

        assert saved["invoice_number"] == "MPZ/03/002"
        assert store.count("insert") == 2

    def test_booking_no_race_regenerates_booking_no(self):
        store = RacingStore("booking_no")
        saved = BookingFinalizer(store).finalize(_booking(), now=NOW)

        raced = store.records()[0]["booking_no"]
        assert saved["booking_no"] != raced
        assert saved["invoice_number"] == "MPZ/03/001"

    def test_retry_cap_raises_collision(self):
        """重试耗尽后抛出 CollisionError，且没有写入记录"""
        store = RacingStore("invoice_number", races=10)
        config = PipelineConfig(save_max_attempts=3)

        with pytest.raises(CollisionError) as exc_info:
            BookingFinalizer(store, config).finalize(_booking(), now=NOW)

        assert exc_info.value.field == "invoice_number"
        assert exc_info.value.attempts == 3
        assert store.count("insert") == 3
        assert all(r["grc_no"].startswith("RACE") for r in store.records())

    def test_non_generated_field_is_not_retried(self):
        """grc_no 冲突直接抛出"""
        store = InMemoryBookingStore([{"grc_no": "GRC001", "booking_no": "BK1"}])

        with pytest.raises(UniqueConstraintViolation) as exc_info:
            BookingFinalizer(store).finalize(_booking(), now=NOW)

        assert exc_info.value.field == "grc_no"
        assert store.count("insert") == 1

    def test_existing_identifier_collision_is_not_retried(self):
        """调用方提供的预订号冲突不会被替换"""
        store = InMemoryBookingStore([{"grc_no": "OTHER", "booking_no": "BK1"}])

        with pytest.raises(UniqueConstraintViolation):
            BookingFinalizer(store).finalize(_booking(booking_no="BK1"), now=NOW)


class TestFailures:
    """失败时不写入"""

    def test_fine_input_error_prevents_write(self, store):
        record = _booking(status="Checked Out", time_out="noon",
                          actual_check_out_time=datetime(2024, 3, 10, 14))

        with pytest.raises(FineInputError):
            BookingFinalizer(store).finalize(record, now=NOW)

        assert store.records() == []

    def test_persistence_error_propagates(self):
        with pytest.raises(PersistenceError):
            BookingFinalizer(FailingStore()).finalize(_booking(), now=NOW)
