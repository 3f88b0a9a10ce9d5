"""
core/booking/errors.py

预订核心异常定义

- CollisionError: 预订号/发票号生成冲突且重试耗尽
- FineInputError: 超时退房罚金的输入非法
- PersistenceError: 持久化层不可用或执行失败
- UniqueConstraintViolation: 持久化层唯一约束冲突（由存储实现抛出）
- RecordNotFound: 待更新的记录不存在
"""
from typing import Optional


class BookingCoreError(Exception):
    """预订核心异常基类"""


class CollisionError(BookingCoreError):
    """唯一标识分配失败"""

    def __init__(self, field: str, attempts: int, message: Optional[str] = None):
        self.field = field
        self.attempts = attempts
        super().__init__(message or f"无法分配唯一的 {field}（已尝试 {attempts} 次）")


class FineInputError(BookingCoreError):
    """罚金计算输入非法"""


class PersistenceError(BookingCoreError):
    """持久化层失败"""


class UniqueConstraintViolation(BookingCoreError):
    """唯一约束冲突"""

    def __init__(self, field: Optional[str], message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"唯一约束冲突: {field}")


class RecordNotFound(BookingCoreError):
    """待更新的记录不存在"""
