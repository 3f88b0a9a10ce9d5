"""
本体对象定义 (Ontology Objects)
预订记录及员工账号
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Index,
    ForeignKey, Text, Enum as SQLEnum, Boolean, Numeric, text
)
from sqlalchemy.orm import relationship
from app.database import Base


# ============== 枚举定义 ==============

class BookingStatus(str, Enum):
    """预订状态枚举"""
    BOOKED = "Booked"              # 已预订
    CHECKED_IN = "Checked In"      # 已入住
    CHECKED_OUT = "Checked Out"    # 已退房
    CANCELLED = "Cancelled"        # 已取消


class PaymentStatus(str, Enum):
    """支付状态"""
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"
    PARTIAL = "Partial"


class EmployeeRole(str, Enum):
    """员工角色"""
    SYSADMIN = "sysadmin"          # 系统管理员
    MANAGER = "manager"            # 经理
    RECEPTIONIST = "receptionist"  # 前台


# ============== 本体对象 ==============

class Booking(Base):
    """
    预订对象 - 预订生命周期的聚合根
    booking_no / invoice_number 在首次保存时由提交流水线分配，之后不再变更
    """
    __tablename__ = "bookings"
    __table_args__ = (
        # 软删除的预订不参与发票号唯一性
        Index(
            "uq_bookings_invoice_number_active", "invoice_number", unique=True,
            sqlite_where=text("deleted IS NOT 1"),
            postgresql_where=text("deleted IS NOT TRUE"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    booking_no = Column(String(40), unique=True, index=True)   # 预订号 BK<毫秒>
    grc_no = Column(String(50), unique=True, nullable=False)   # 入住登记卡号
    invoice_number = Column(String(30), index=True)            # 发票号 MPZ/MM/NNN，未删除预订内唯一

    # 客人信息
    name = Column(String(100), nullable=False)
    mobile_no = Column(String(20), nullable=False)
    email = Column(String(100))

    # 入住信息
    room_number = Column(String(50))                     # 房号，多间以逗号分隔
    number_of_rooms = Column(Integer, default=1)
    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)
    days = Column(Integer)                               # 间夜数
    time_in = Column(String(5))
    time_out = Column(String(5), nullable=False, default="12:00")  # 合同退房时间，创建后不可修改
    actual_check_in_time = Column(DateTime)
    actual_check_out_time = Column(DateTime)
    rate = Column(Numeric(10, 2))
    status = Column(SQLEnum(BookingStatus), default=BookingStatus.BOOKED, nullable=False)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING)
    remark = Column(Text)
    cancel_reason = Column(Text)

    # 超时退房罚金
    fine_amount = Column(Numeric(10, 2), default=0)
    fine_minutes_late = Column(Integer, default=0)
    fine_per_hour = Column(Numeric(10, 2), default=500)
    fine_grace_period_minutes = Column(Integer, default=15)
    fine_applied = Column(Boolean, default=False)
    fine_applied_at = Column(DateTime)
    fine_waived = Column(Boolean, default=False)
    fine_waived_by = Column(String(100))
    fine_waived_reason = Column(Text)

    # 软删除
    deleted = Column(Boolean, default=False)
    deleted_at = Column(DateTime)
    deleted_by = Column(String(100))

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    created_by = Column(Integer, ForeignKey("employees.id"))

    # 链接
    creator = relationship("Employee", foreign_keys=[created_by])

    @property
    def late_checkout_fine(self) -> dict:
        """罚金子记录"""
        return {
            "amount": self.fine_amount if self.fine_amount is not None else Decimal("0"),
            "minutes_late": self.fine_minutes_late or 0,
            "fine_per_hour": self.fine_per_hour,
            "grace_period_minutes": self.fine_grace_period_minutes,
            "applied": bool(self.fine_applied),
            "applied_at": self.fine_applied_at,
            "waived": bool(self.fine_waived),
            "waived_by": self.fine_waived_by,
            "waived_reason": self.fine_waived_reason,
        }


class Employee(Base):
    """
    员工对象
    """
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False)  # 登录账号
    password_hash = Column(String(255), nullable=False)  # 密码哈希
    name = Column(String(100), nullable=False)           # 姓名
    phone = Column(String(20))                           # 手机号
    role = Column(SQLEnum(EmployeeRole), nullable=False)
    is_active = Column(Boolean, default=True)            # 是否启用
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
