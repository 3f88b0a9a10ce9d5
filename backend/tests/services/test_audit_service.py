"""
审计日志服务与审计库连接测试
"""
import json
import time

import pytest

from app import audit_database
from app.audit_database import connect_audit_db, get_audit_session_factory
from app.config import settings
from app.services.audit_service import AuditService


class TestAuditServiceRecord:
    """写入与查询"""

    def test_record_and_query(self, audit_service):
        assert audit_service.available is True
        assert audit_service.record(
            action="booking.create",
            entity_type="booking",
            entity_id=1,
            operator_id=7,
            operator_name="李前台",
            new_value={"booking_no": "BK1", "invoice_number": "MPZ/03/001"},
        ) is True

        logs = audit_service.get_logs()
        assert len(logs) == 1
        assert logs[0].action == "booking.create"
        assert logs[0].operator_name == "李前台"
        assert json.loads(logs[0].new_value)["invoice_number"] == "MPZ/03/001"
        assert logs[0].old_value is None

    def test_filters(self, audit_service):
        audit_service.record("booking.create", "booking", 1)
        audit_service.record("booking.update", "booking", 1)
        audit_service.record("booking.create", "booking", 2)

        assert len(audit_service.get_logs(action="booking.create")) == 2
        assert len(audit_service.get_logs(entity_id=1)) == 2
        assert len(audit_service.get_logs(entity_type="booking", limit=1)) == 1

    def test_string_values_stored_as_is(self, audit_service):
        audit_service.record("booking.cancel", new_value="客人取消")

        assert audit_service.get_logs()[0].new_value == "客人取消"


class TestAuditUnavailable:
    """审计库不可用"""

    def test_disabled_audit_is_skipped(self, monkeypatch):
        monkeypatch.setattr(settings, "AUDIT_ENABLED", False)
        service = AuditService()

        assert service.available is False
        assert service.record("booking.create", "booking", 1) is False
        assert service.get_logs() is None


class TestConnectAuditDb:
    """审计库连接"""

    def test_connect_success(self, tmp_path):
        factory = connect_audit_db(f"sqlite:///{tmp_path / 'audit.db'}", timeout=5)

        assert factory is not None
        service = AuditService(factory)
        assert service.record("booking.create", "booking", 1) is True
        assert len(service.get_logs()) == 1

    def test_connect_error_returns_none(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'missing' / 'dir' / 'audit.db'}"

        assert connect_audit_db(url, timeout=5) is None

    def test_connect_timeout_returns_none(self, monkeypatch, tmp_path):
        monkeypatch.setattr(audit_database, "_check_connection", lambda engine: time.sleep(1))

        assert connect_audit_db(f"sqlite:///{tmp_path / 'audit.db'}", timeout=0.05) is None


class TestAuditSessionFactory:
    """全局会话工厂缓存与重试间隔"""

    @pytest.fixture(autouse=True)
    def reset(self, monkeypatch):
        audit_database.close_audit_db()
        monkeypatch.setattr(settings, "AUDIT_ENABLED", True)
        yield
        audit_database.close_audit_db()

    def test_failure_is_not_retried_within_interval(self, monkeypatch):
        calls = []

        def failing_connect():
            calls.append(1)
            return None

        monkeypatch.setattr(audit_database, "connect_audit_db", failing_connect)

        assert get_audit_session_factory() is None
        assert get_audit_session_factory() is None
        assert len(calls) == 1

    def test_success_is_cached(self, monkeypatch):
        sentinel = object()
        calls = []

        def connect():
            calls.append(1)
            return sentinel

        monkeypatch.setattr(audit_database, "connect_audit_db", connect)

        assert get_audit_session_factory() is sentinel
        assert get_audit_session_factory() is sentinel
        assert len(calls) == 1

    def test_retry_after_interval(self, monkeypatch):
        results = [None, "factory"]
        monkeypatch.setattr(audit_database, "connect_audit_db", lambda: results.pop(0))
        monkeypatch.setattr(audit_database, "RETRY_INTERVAL_SECONDS", 0)

        assert get_audit_session_factory() is None
        assert get_audit_session_factory() == "factory"
