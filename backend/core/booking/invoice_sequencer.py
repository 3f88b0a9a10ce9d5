"""
core/booking/invoice_sequencer.py

发票号生成 - 格式 PREFIX/MM/NNN

MM 为生成时的月份，NNN 为全局流水号（不按月重置）：
扫描所有未删除预订的发票号，取第三段数字的最大值加一。
格式不符的历史发票号直接跳过。
"""
import logging
import re
from datetime import datetime
from typing import Iterable, Optional

from core.booking.interfaces import BOOKINGS, BookingPersistence, NOT_NULL, Ne

logger = logging.getLogger(__name__)

DEFAULT_INVOICE_PREFIX = "MPZ"

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def parse_invoice_sequence(invoice_number: Optional[str]) -> Optional[int]:
    """
    解析发票号中的流水号

    只接受恰好三段的发票号；第三段按前导数字解析（"007a" -> 7），
    无法解析时返回 None。
    """
    if not invoice_number:
        return None
    parts = invoice_number.split("/")
    if len(parts) != 3:
        return None
    match = _LEADING_INT.match(parts[2])
    if not match:
        return None
    return int(match.group(1))


def max_invoice_sequence(invoice_numbers: Iterable[Optional[str]]) -> int:
    """已有发票号中的最大流水号，没有有效发票号时为 0"""
    max_number = 0
    for invoice_number in invoice_numbers:
        number = parse_invoice_sequence(invoice_number)
        if number is not None and number > max_number:
            max_number = number
    return max_number


def format_invoice_number(prefix: str, now: datetime, sequence: int) -> str:
    return f"{prefix}/{now.month:02d}/{sequence:03d}"


class InvoiceSequencer:
    """发票号生成器"""

    def __init__(self, store: BookingPersistence, prefix: str = DEFAULT_INVOICE_PREFIX,
                 collection: str = BOOKINGS):
        self.store = store
        self.prefix = prefix
        self.collection = collection

    def next_invoice_number(self, now: datetime) -> str:
        """生成下一个发票号"""
        existing = self.store.find_all(
            self.collection,
            {"deleted": Ne(True), "invoice_number": NOT_NULL},
            projection=["invoice_number"],
        )
        max_number = max_invoice_sequence(r.get("invoice_number") for r in existing)
        invoice_number = format_invoice_number(self.prefix, now, max_number + 1)
        logger.info(
            f"Generated invoice number {invoice_number} "
            f"(scanned {len(existing)} invoices, max sequence {max_number})"
        )
        return invoice_number
