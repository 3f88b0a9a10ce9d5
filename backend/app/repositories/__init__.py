"""
仓储层 - 持久化协作接口的实现
"""
from app.repositories.booking_repository import BookingRepository, booking_to_record

__all__ = ["BookingRepository", "booking_to_record"]
