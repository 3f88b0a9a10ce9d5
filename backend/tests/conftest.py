"""
Pytest 配置和共享 fixtures
"""
import os

# 测试环境：主库使用内存库，审计库默认关闭（需要时由 fixture 注入）
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUDIT_ENABLED", "false")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from app.database import Base, get_db
from app.models import ontology  # noqa: F401
from app.models.audit import AuditBase
from app.models.ontology import Employee, EmployeeRole
from app.security.auth import get_password_hash, create_access_token
from app.services.audit_service import AuditService, get_audit_service
from app.main import app


def _memory_engine(metadata):
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = _memory_engine(Base.metadata)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def audit_session_factory():
    """内存审计库会话工厂"""
    engine = _memory_engine(AuditBase.metadata)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def audit_service(audit_session_factory):
    """连接内存审计库的审计服务"""
    return AuditService(audit_session_factory)


@pytest.fixture(scope="function")
def client(db_session, audit_service):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_service] = lambda: audit_service
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============== 员工 / 认证 Fixtures ==============

def _create_employee(db_session, username, name, role):
    employee = Employee(
        username=username,
        password_hash=get_password_hash("123456"),
        name=name,
        role=role,
        is_active=True
    )
    db_session.add(employee)
    db_session.commit()
    db_session.refresh(employee)
    return employee


@pytest.fixture
def manager(db_session):
    """经理账号"""
    return _create_employee(db_session, "manager", "张经理", EmployeeRole.MANAGER)


@pytest.fixture
def receptionist(db_session):
    """前台账号"""
    return _create_employee(db_session, "front1", "李前台", EmployeeRole.RECEPTIONIST)


@pytest.fixture
def manager_token(manager):
    """经理 token"""
    return create_access_token(manager.id, manager.role)


@pytest.fixture
def receptionist_token(receptionist):
    """前台 token"""
    return create_access_token(receptionist.id, receptionist.role)


@pytest.fixture
def manager_auth_headers(manager_token):
    """返回经理认证的请求头"""
    return {"Authorization": f"Bearer {manager_token}"}


@pytest.fixture
def receptionist_auth_headers(receptionist_token):
    """返回前台认证的请求头"""
    return {"Authorization": f"Bearer {receptionist_token}"}
