"""
core/booking/late_checkout.py

超时退房罚金计算

规则：
- 预计退房时间 = 退房日期 + time_out（HH:MM）
- 实际退房不晚于预计时间：不罚
- 迟到分钟数向上取整；不超过宽限期：不罚
- 迟到超过 24 小时（1440 分钟）：视为数据异常，不罚
- 否则按 (迟到分钟 - 宽限期) 向上取整到小时，每小时 finePerHour

罚金只会被应用一次，applied=True 之后不再重新计算。
"""
import logging
import re
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple, Union

from core.booking.errors import FineInputError

logger = logging.getLogger(__name__)

DEFAULT_FINE_PER_HOUR = Decimal("500")
DEFAULT_GRACE_PERIOD_MINUTES = 15
MAX_LATE_MINUTES = 1440  # 24 小时

_TIME_OUT_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")

_ONE_MINUTE = timedelta(minutes=1)


class FineOutcome:
    """计算结论"""
    EARLY = "early"
    WITHIN_GRACE = "within_grace"
    ANOMALOUS = "anomalous"
    APPLIED = "applied"


@dataclass
class LateCheckoutFine:
    """预订上的超时退房罚金子记录"""
    amount: Decimal = Decimal("0")
    minutes_late: int = 0
    fine_per_hour: Decimal = DEFAULT_FINE_PER_HOUR
    grace_period_minutes: int = DEFAULT_GRACE_PERIOD_MINUTES
    applied: bool = False
    applied_at: Optional[datetime] = None
    waived: bool = False
    waived_by: Optional[str] = None
    waived_reason: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LateCheckoutFine":
        if not data:
            return cls()
        fields = {k: v for k, v in data.items() if k in cls.__dataclass_fields__ and v is not None}
        return cls(**fields)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": self.amount,
            "minutes_late": self.minutes_late,
            "fine_per_hour": self.fine_per_hour,
            "grace_period_minutes": self.grace_period_minutes,
            "applied": self.applied,
            "applied_at": self.applied_at,
            "waived": self.waived,
            "waived_by": self.waived_by,
            "waived_reason": self.waived_reason,
        }


@dataclass(frozen=True)
class FineResult:
    """罚金计算结果"""
    minutes_late: int
    amount: Decimal
    applied: bool
    applied_at: Optional[datetime]
    chargeable_hours: int
    outcome: str


def parse_time_out(time_out: str) -> Tuple[int, int]:
    """解析 HH:MM"""
    match = _TIME_OUT_PATTERN.match((time_out or "").strip())
    if not match:
        raise FineInputError(f"退房时间格式错误: {time_out!r}，应为 HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise FineInputError(f"退房时间超出范围: {time_out!r}")
    return hours, minutes


def expected_checkout_time(check_out_date: Union[date, datetime], time_out: str,
                           tzinfo=None) -> datetime:
    """退房日期与 time_out 组合成新的预计退房时间"""
    if isinstance(check_out_date, datetime):
        check_out_date = check_out_date.date()
    hours, minutes = parse_time_out(time_out)
    return datetime.combine(check_out_date, time(hours, minutes), tzinfo=tzinfo)


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def compute_fine(
    check_out_date: Union[date, datetime],
    time_out: str,
    actual_check_out_time: datetime,
    grace_period_minutes: Optional[int] = DEFAULT_GRACE_PERIOD_MINUTES,
    fine_per_hour: Optional[Decimal] = DEFAULT_FINE_PER_HOUR,
    now: Optional[datetime] = None,
    max_late_minutes: int = MAX_LATE_MINUTES,
) -> FineResult:
    """
    计算超时退房罚金（纯函数，now 由调用方传入）

    Args:
        check_out_date: 预计退房日期
        time_out: 合同退房时间 HH:MM
        actual_check_out_time: 实际退房时间
        grace_period_minutes: 宽限分钟数，None 时取默认 15
        fine_per_hour: 每小时罚金，None 时取默认 500
        now: 应用时间，用作 applied_at
        max_late_minutes: 超过该分钟数视为异常不罚

    Raises:
        FineInputError: 输入非法
    """
    if check_out_date is None:
        raise FineInputError("缺少退房日期")
    if actual_check_out_time is None:
        raise FineInputError("缺少实际退房时间")
    grace = DEFAULT_GRACE_PERIOD_MINUTES if grace_period_minutes is None else int(grace_period_minutes)
    rate = DEFAULT_FINE_PER_HOUR if fine_per_hour is None else Decimal(str(fine_per_hour))
    if grace < 0:
        raise FineInputError(f"宽限期不能为负数: {grace}")
    if rate < 0:
        raise FineInputError(f"每小时罚金不能为负数: {rate}")

    expected = expected_checkout_time(check_out_date, time_out, tzinfo=actual_check_out_time.tzinfo)
    diff = actual_check_out_time - expected

    if diff <= timedelta(0):
        return FineResult(0, Decimal("0"), False, None, 0, FineOutcome.EARLY)

    minutes_late = -((-diff) // _ONE_MINUTE)

    if minutes_late <= grace:
        return FineResult(minutes_late, Decimal("0"), False, None, 0, FineOutcome.WITHIN_GRACE)

    # TODO: 多日超住目前永远不会被罚，需要与前台确认 24 小时上限的业务依据
    if minutes_late > max_late_minutes:
        logger.warning(
            f"Checkout gap too large ({minutes_late} minutes late), fine not applied"
        )
        return FineResult(minutes_late, Decimal("0"), False, None, 0, FineOutcome.ANOMALOUS)

    chargeable_minutes = minutes_late - grace
    chargeable_hours = _ceil_div(chargeable_minutes, 60)
    amount = rate * chargeable_hours
    return FineResult(
        minutes_late=minutes_late,
        amount=amount,
        applied=True,
        applied_at=now or datetime.now(),
        chargeable_hours=chargeable_hours,
        outcome=FineOutcome.APPLIED,
    )


def apply_late_checkout_fine(
    fine: LateCheckoutFine,
    check_out_date: Union[date, datetime],
    time_out: str,
    actual_check_out_time: datetime,
    now: Optional[datetime] = None,
    max_late_minutes: int = MAX_LATE_MINUTES,
) -> LateCheckoutFine:
    """
    在罚金子记录上应用计算结果

    已应用的罚金原样返回；未达到罚金条件时也原样返回。
    """
    if fine.applied:
        return fine

    result = compute_fine(
        check_out_date,
        time_out,
        actual_check_out_time,
        grace_period_minutes=fine.grace_period_minutes,
        fine_per_hour=fine.fine_per_hour,
        now=now,
        max_late_minutes=max_late_minutes,
    )
    if not result.applied:
        return fine

    logger.info(
        f"Late checkout fine applied: {result.amount} for {result.chargeable_hours} hour(s) "
        f"({result.minutes_late} minutes late)"
    )
    return replace(
        fine,
        minutes_late=result.minutes_late,
        amount=result.amount,
        applied=True,
        applied_at=result.applied_at,
    )
