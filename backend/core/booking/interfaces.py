"""
core/booking/interfaces.py

持久化协作接口 - 预订核心只通过这四个操作访问存储：
exists / find_all / insert / update

过滤条件为 字段 -> 值 的字典，值为普通值时表示相等，
也可以是 Ne(value) 或 NOT_NULL 操作符。
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

BOOKINGS = "bookings"


class Ne:
    """不等于（字段缺失/为空也视为匹配）"""

    def __init__(self, value: Any):
        self.value = value

    def __repr__(self) -> str:
        return f"Ne({self.value!r})"


class _NotNull:
    """字段存在且非空"""

    def __repr__(self) -> str:
        return "NOT_NULL"


NOT_NULL = _NotNull()


def matches(record: Dict[str, Any], filters: Dict[str, Any]) -> bool:
    """判断记录是否满足过滤条件（供内存实现使用）"""
    for key, expected in filters.items():
        value = record.get(key)
        if isinstance(expected, Ne):
            if value == expected.value:
                return False
        elif expected is NOT_NULL:
            if value is None:
                return False
        elif value != expected:
            return False
    return True


class BookingPersistence(ABC):
    """预订核心依赖的持久化协作者"""

    @abstractmethod
    def exists(self, collection: str, filters: Dict[str, Any]) -> bool:
        """是否存在满足条件的记录"""
        raise NotImplementedError

    @abstractmethod
    def find_all(self, collection: str, filters: Dict[str, Any],
                 projection: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """查询全部满足条件的记录，projection 限定返回字段"""
        raise NotImplementedError

    @abstractmethod
    def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """
        插入记录

        Raises:
            UniqueConstraintViolation: 唯一约束冲突
            PersistenceError: 存储失败
        """
        raise NotImplementedError

    @abstractmethod
    def update(self, collection: str, record_id: Any,
               patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        按 ID 更新记录，记录不存在时返回 None

        Raises:
            UniqueConstraintViolation: 唯一约束冲突
            PersistenceError: 存储失败
        """
        raise NotImplementedError
