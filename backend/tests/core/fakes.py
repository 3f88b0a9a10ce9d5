"""
预订核心测试替身 - 内存存储与可控时钟
"""
import copy
import itertools

from core.booking.errors import UniqueConstraintViolation
from core.booking.interfaces import BookingPersistence, matches


class InMemoryBookingStore(BookingPersistence):
    """
    内存版持久化协作者

    唯一约束与数据库一致：booking_no / grc_no 全局唯一，
    invoice_number 在未删除的记录内唯一。
    """

    UNIQUE_FIELDS = ("booking_no", "grc_no")

    def __init__(self, records=None):
        self.collections = {}
        self._ids = itertools.count(1)
        self.calls = []
        for record in records or []:
            self.seed("bookings", record)

    def seed(self, collection, record):
        """直接写入一条记录，不检查约束"""
        stored = dict(record)
        stored.setdefault("id", next(self._ids))
        self.collections.setdefault(collection, []).append(stored)
        return stored

    def records(self, collection="bookings"):
        return self.collections.get(collection, [])

    def _check_unique(self, collection, record, exclude_id=None):
        for other in self.records(collection):
            if other["id"] == exclude_id:
                continue
            for field in self.UNIQUE_FIELDS:
                if record.get(field) is not None and other.get(field) == record.get(field):
                    raise UniqueConstraintViolation(field)
            if (
                record.get("invoice_number") is not None
                and not record.get("deleted")
                and not other.get("deleted")
                and other.get("invoice_number") == record["invoice_number"]
            ):
                raise UniqueConstraintViolation("invoice_number")

    def exists(self, collection, filters):
        self.calls.append(("exists", collection, dict(filters)))
        return any(matches(r, filters) for r in self.records(collection))

    def find_all(self, collection, filters, projection=None):
        self.calls.append(("find_all", collection, dict(filters)))
        found = [r for r in self.records(collection) if matches(r, filters)]
        if projection:
            keep = set(projection) | {"id"}
            return [{k: v for k, v in r.items() if k in keep} for r in found]
        return [copy.deepcopy(r) for r in found]

    def insert(self, collection, record):
        self.calls.append(("insert", collection, dict(record)))
        self._check_unique(collection, record)
        stored = copy.deepcopy({k: v for k, v in record.items() if k != "id"})
        stored["id"] = next(self._ids)
        self.collections.setdefault(collection, []).append(stored)
        return copy.deepcopy(stored)

    def update(self, collection, record_id, patch):
        self.calls.append(("update", collection, dict(patch)))
        for stored in self.records(collection):
            if stored["id"] == record_id:
                self._check_unique(collection, {**stored, **patch}, exclude_id=record_id)
                stored.update(copy.deepcopy(patch))
                return copy.deepcopy(stored)
        return None

    def count(self, operation):
        return sum(1 for call in self.calls if call[0] == operation)


class StepClock:
    """可控的毫秒时钟，每次调用返回序列中的下一个值，用完后停在最后一个值"""

    def __init__(self, *values):
        self.values = list(values)
        self.calls = 0

    def __call__(self):
        index = min(self.calls, len(self.values) - 1)
        self.calls += 1
        return self.values[index]

