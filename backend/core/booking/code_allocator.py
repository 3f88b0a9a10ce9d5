"""
core/booking/code_allocator.py

预订号分配器

预订号格式 BK<毫秒时间戳>。生成候选号后查询存储，
已存在则等待 1 毫秒再取新的时间戳重试。
重试次数有上限，耗尽后改用随机后缀 BK<毫秒时间戳>-XXXXXX 再试一次。
最终唯一性以数据库唯一约束为准（见 pipeline）。
"""
import logging
import time
import uuid
from typing import Callable, Optional

from core.booking.errors import CollisionError
from core.booking.interfaces import BOOKINGS, BookingPersistence

logger = logging.getLogger(__name__)

BOOKING_NO_PREFIX = "BK"
DEFAULT_MAX_ATTEMPTS = 5


def _now_millis() -> int:
    return time.time_ns() // 1_000_000


class CodeAllocator:
    """预订号分配器"""

    def __init__(
        self,
        store: BookingPersistence,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        clock: Optional[Callable[[], int]] = None,
        sleep: Optional[Callable[[float], None]] = None,
        collection: str = BOOKINGS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts 必须大于 0")
        self.store = store
        self.max_attempts = max_attempts
        self.collection = collection
        # 时钟与等待可注入，便于测试
        self._clock = clock or _now_millis
        self._sleep = sleep or time.sleep

    def _is_taken(self, booking_no: str) -> bool:
        # 不过滤 deleted：软删除的预订号永久占用
        return self.store.exists(self.collection, {"booking_no": booking_no})

    def allocate(self) -> str:
        """生成一个当前未被占用的预订号"""
        for attempt in range(1, self.max_attempts + 1):
            candidate = f"{BOOKING_NO_PREFIX}{self._clock()}"
            if not self._is_taken(candidate):
                return candidate
            logger.debug(f"Booking number {candidate} taken (attempt {attempt})")
            self._sleep(0.001)

        candidate = f"{BOOKING_NO_PREFIX}{self._clock()}-{uuid.uuid4().hex[:6].upper()}"
        logger.warning(
            f"Timestamp booking numbers collided {self.max_attempts} times, "
            f"falling back to {candidate}"
        )
        if self._is_taken(candidate):
            raise CollisionError("booking_no", self.max_attempts + 1)
        return candidate
