"""
预订核心测试 fixtures
"""
import pytest

from fakes import InMemoryBookingStore


@pytest.fixture
def store():
    """空的内存存储"""
    return InMemoryBookingStore()


@pytest.fixture
def waits():
    """记录等待调用而不真正等待"""
    return []
