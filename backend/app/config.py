"""
应用配置
从环境变量 / .env 读取配置
"""
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用设置"""

    # 应用基础配置
    APP_NAME: str = "MPZ Hotel"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 数据库配置
    DATABASE_URL: str = "sqlite:///./pms.db"

    # 审计库配置（独立连接，不可用时跳过审计）
    AUDIT_ENABLED: bool = True
    AUDIT_DATABASE_URL: Optional[str] = None  # 未配置时与主库相同
    AUDIT_CONNECT_TIMEOUT_SECONDS: float = 5.0

    # JWT 配置
    SECRET_KEY: str = "pms-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440

    # 预订号 / 发票号
    INVOICE_PREFIX: str = "MPZ"
    BOOKING_NO_MAX_ATTEMPTS: int = 5
    BOOKING_SAVE_MAX_ATTEMPTS: int = 3

    # 超时退房罚金
    DEFAULT_TIME_OUT: str = "12:00"
    LATE_CHECKOUT_FINE_PER_HOUR: int = 500
    LATE_CHECKOUT_GRACE_MINUTES: int = 15
    LATE_CHECKOUT_MAX_MINUTES: int = 1440  # 超过 24 小时视为异常，不计罚

    model_config = ConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def audit_database_url(self) -> str:
        return self.AUDIT_DATABASE_URL or self.DATABASE_URL


# 全局设置实例
settings = Settings()
