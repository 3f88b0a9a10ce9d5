"""
审计日志对象
存放在独立的审计库中，与主库使用不同的 Base
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import declarative_base

AuditBase = declarative_base()


class AuditLog(AuditBase):
    """
    审计日志
    记录预订关键操作
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    operator_id = Column(Integer)                        # 操作人（审计库无员工表，不设外键）
    operator_name = Column(String(100))
    action = Column(String(100), nullable=False)         # 操作类型
    entity_type = Column(String(50))                     # 实体类型
    entity_id = Column(Integer)                          # 实体ID
    old_value = Column(Text)                             # 旧值(JSON)
    new_value = Column(Text)                             # 新值(JSON)
    ip_address = Column(String(50))                      # IP地址
    created_at = Column(DateTime, default=datetime.now, index=True)
