"""
审计库连接 - 独立于主库的旁路连接

连接失败或超时只记录日志，返回 None 表示"无审计"，不影响业务请求。
连接成功后缓存会话工厂；失败后在重试间隔内不再尝试。
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.models.audit import AuditBase

logger = logging.getLogger(__name__)

RETRY_INTERVAL_SECONDS = 60

_lock = threading.Lock()
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None
_last_failure: Optional[float] = None


def _check_connection(engine: Engine) -> None:
    """探测连接并建表"""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    AuditBase.metadata.create_all(bind=engine)


def connect_audit_db(url: Optional[str] = None,
                     timeout: Optional[float] = None) -> Optional[sessionmaker]:
    """
    建立审计库连接

    Returns:
        会话工厂；超时或出错时返回 None
    """
    url = url or settings.audit_database_url
    timeout = settings.AUDIT_CONNECT_TIMEOUT_SECONDS if timeout is None else timeout
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}

    logger.info("Connecting to audit database...")
    try:
        engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
    except (SQLAlchemyError, ValueError) as e:
        logger.error(f"Audit database configuration error: {e}")
        return None

    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(_check_connection, engine)
    try:
        future.result(timeout=timeout)
    except FutureTimeout:
        logger.warning("Audit database timeout - continuing without audit")
        engine.dispose()
        return None
    except SQLAlchemyError as e:
        logger.error(f"Audit database error: {e}")
        engine.dispose()
        return None
    finally:
        executor.shutdown(wait=False)

    logger.info("Audit database connected")
    global _engine
    _engine = engine
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_audit_session_factory() -> Optional[sessionmaker]:
    """获取审计库会话工厂，未连接时尝试连接"""
    global _session_factory, _last_failure
    if not settings.AUDIT_ENABLED:
        return None

    with _lock:
        if _session_factory is not None:
            return _session_factory
        if _last_failure is not None and time.monotonic() - _last_failure < RETRY_INTERVAL_SECONDS:
            return None

        _session_factory = connect_audit_db()
        _last_failure = None if _session_factory is not None else time.monotonic()
        return _session_factory


def close_audit_db() -> None:
    """释放审计库连接"""
    global _engine, _session_factory, _last_failure
    with _lock:
        if _engine is not None:
            _engine.dispose()
        _engine = None
        _session_factory = None
        _last_failure = None
