"""
预订仓储 - 持久化协作接口的 SQLAlchemy 实现

记录以字典形式与核心层交换：
- 列名即字段名
- fine_* 列折叠为嵌套的 late_checkout_fine 子记录
- 枚举以字符串值输出
"""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.ontology import Booking, BookingStatus, PaymentStatus
from core.booking.errors import PersistenceError, UniqueConstraintViolation
from core.booking.interfaces import BOOKINGS, BookingPersistence, NOT_NULL, Ne

logger = logging.getLogger(__name__)

FINE_COLUMNS = {
    "amount": "fine_amount",
    "minutes_late": "fine_minutes_late",
    "fine_per_hour": "fine_per_hour",
    "grace_period_minutes": "fine_grace_period_minutes",
    "applied": "fine_applied",
    "applied_at": "fine_applied_at",
    "waived": "fine_waived",
    "waived_by": "fine_waived_by",
    "waived_reason": "fine_waived_reason",
}

_ENUM_COLUMNS = {
    "status": BookingStatus,
    "payment_status": PaymentStatus,
}

_MODELS = {
    BOOKINGS: Booking,
}


def booking_to_record(booking: Booking, projection: Optional[List[str]] = None) -> Dict[str, Any]:
    """ORM 对象转为记录字典"""
    fine_columns = set(FINE_COLUMNS.values())
    record: Dict[str, Any] = {}
    for column in Booking.__table__.columns:
        if column.name in fine_columns:
            continue
        value = getattr(booking, column.name)
        record[column.name] = value.value if isinstance(value, Enum) else value
    record["late_checkout_fine"] = booking.late_checkout_fine

    if projection:
        keep = set(projection) | {"id"}
        record = {k: v for k, v in record.items() if k in keep}
    return record


def _unique_field(model, error: IntegrityError) -> Optional[str]:
    """从唯一约束异常中识别冲突字段"""
    message = str(error.orig)
    if "unique" not in message.lower() and "duplicate" not in message.lower():
        return None
    table = model.__table__
    unique_names = [column.name for column in table.columns if column.unique]
    for index in table.indexes:
        if index.unique:
            unique_names.extend(column.name for column in index.columns)
    for name in unique_names:
        if name in message:
            return name
    return None


class BookingRepository(BookingPersistence):
    """预订仓储"""

    def __init__(self, db: Session):
        self.db = db

    def _model(self, collection: str):
        try:
            return _MODELS[collection]
        except KeyError:
            raise ValueError(f"未知的集合: {collection}")

    def _conditions(self, model, filters: Dict[str, Any]) -> list:
        conditions = []
        for key, expected in filters.items():
            column = getattr(model, key)
            if isinstance(expected, Ne):
                conditions.append(or_(column != expected.value, column.is_(None)))
            elif expected is NOT_NULL:
                conditions.append(column.isnot(None))
            else:
                conditions.append(column == expected)
        return conditions

    def _assign(self, obj, data: Dict[str, Any]) -> None:
        for key, value in data.items():
            if key == "late_checkout_fine":
                for fine_key, fine_value in (value or {}).items():
                    if fine_key in FINE_COLUMNS:
                        setattr(obj, FINE_COLUMNS[fine_key], fine_value)
                continue
            if key in _ENUM_COLUMNS and isinstance(value, str):
                value = _ENUM_COLUMNS[key](value)
            if key in obj.__table__.columns.keys():
                setattr(obj, key, value)

    def _commit(self, model, obj) -> Dict[str, Any]:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            field = _unique_field(model, e)
            if field is not None:
                raise UniqueConstraintViolation(field) from e
            raise PersistenceError(f"数据完整性错误: {e.orig}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Booking write failed: {e}")
            raise PersistenceError(f"数据库写入失败: {e}") from e
        self.db.refresh(obj)
        return booking_to_record(obj)

    def exists(self, collection: str, filters: Dict[str, Any]) -> bool:
        model = self._model(collection)
        try:
            return self.db.query(model.id).filter(*self._conditions(model, filters)).first() is not None
        except SQLAlchemyError as e:
            raise PersistenceError(f"数据库查询失败: {e}") from e

    def find_all(self, collection: str, filters: Dict[str, Any],
                 projection: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        model = self._model(collection)
        try:
            if projection:
                columns = [model.id] + [getattr(model, name) for name in projection if name != "id"]
                rows = self.db.query(*columns).filter(*self._conditions(model, filters)).all()
                return [dict(row._mapping) for row in rows]
            rows = self.db.query(model).filter(*self._conditions(model, filters)).all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"数据库查询失败: {e}") from e
        return [booking_to_record(row) for row in rows]

    def insert(self, collection: str, record: Dict[str, Any]) -> Dict[str, Any]:
        model = self._model(collection)
        obj = model()
        self._assign(obj, {k: v for k, v in record.items() if k != "id"})
        self.db.add(obj)
        return self._commit(model, obj)

    def update(self, collection: str, record_id: Any,
               patch: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        model = self._model(collection)
        obj = self.db.get(model, record_id)
        if obj is None:
            return None
        self._assign(obj, patch)
        return self._commit(model, obj)
