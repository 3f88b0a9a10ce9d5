"""
Pydantic 模式定义
用于 API 请求/响应验证
"""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict
from app.models.ontology import BookingStatus, PaymentStatus, EmployeeRole

TIME_PATTERN = r"^\d{1,2}:\d{2}$"


def normalize_clock(v: Optional[str]) -> Optional[str]:
    """校验 HH:MM 取值范围并补齐两位"""
    if v is None:
        return v
    hours, minutes = (int(p) for p in v.split(':'))
    if hours > 23 or minutes > 59:
        raise ValueError("时间超出范围")
    return f"{hours:02d}:{minutes:02d}"


# ============== 预订 Schemas ==============

class BookingBase(BaseModel):
    grc_no: str = Field(..., max_length=50)
    name: str = Field(..., max_length=100)
    mobile_no: str = Field(..., max_length=20)
    email: Optional[str] = None
    room_number: Optional[str] = None
    number_of_rooms: int = Field(default=1, ge=1)
    check_in_date: date
    check_out_date: date
    time_in: Optional[str] = Field(None, pattern=TIME_PATTERN)
    rate: Optional[Decimal] = Field(None, ge=0)
    payment_status: PaymentStatus = PaymentStatus.PENDING
    remark: Optional[str] = None


class BookingCreate(BookingBase):
    time_out: Optional[str] = Field(None, pattern=TIME_PATTERN)  # 为空时取默认退房时间
    fine_per_hour: Optional[Decimal] = Field(None, ge=0)
    grace_period_minutes: Optional[int] = Field(None, ge=0)

    @field_validator('time_out', 'time_in')
    @classmethod
    def validate_clock(cls, v: Optional[str]) -> Optional[str]:
        return normalize_clock(v)


class BookingUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    mobile_no: Optional[str] = Field(None, max_length=20)
    email: Optional[str] = None
    room_number: Optional[str] = None
    number_of_rooms: Optional[int] = Field(None, ge=1)
    check_in_date: Optional[date] = None
    check_out_date: Optional[date] = None
    time_in: Optional[str] = Field(None, pattern=TIME_PATTERN)
    time_out: Optional[str] = None  # 仅用于拒绝修改
    rate: Optional[Decimal] = Field(None, ge=0)
    payment_status: Optional[PaymentStatus] = None
    remark: Optional[str] = None

    @field_validator('time_in')
    @classmethod
    def validate_clock(cls, v: Optional[str]) -> Optional[str]:
        return normalize_clock(v)


class CheckInRequest(BaseModel):
    actual_check_in_time: Optional[datetime] = None  # 为空时取当前时间


class CheckOutRequest(BaseModel):
    actual_check_out_time: Optional[datetime] = None  # 为空时取当前时间


class BookingCancel(BaseModel):
    cancel_reason: str


class FineWaiveRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class LateCheckoutFineResponse(BaseModel):
    amount: Decimal
    minutes_late: int
    fine_per_hour: Optional[Decimal]
    grace_period_minutes: Optional[int]
    applied: bool
    applied_at: Optional[datetime]
    waived: bool
    waived_by: Optional[str]
    waived_reason: Optional[str]


class BookingResponse(BaseModel):
    id: int
    booking_no: str
    grc_no: str
    invoice_number: str
    name: str
    mobile_no: str
    email: Optional[str]
    room_number: Optional[str]
    number_of_rooms: int
    check_in_date: date
    check_out_date: date
    days: Optional[int]
    time_in: Optional[str]
    time_out: str
    actual_check_in_time: Optional[datetime]
    actual_check_out_time: Optional[datetime]
    rate: Optional[Decimal]
    status: BookingStatus
    payment_status: Optional[PaymentStatus]
    remark: Optional[str]
    cancel_reason: Optional[str]
    late_checkout_fine: LateCheckoutFineResponse
    deleted: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ============== 审计日志 Schemas ==============

class AuditLogResponse(BaseModel):
    id: int
    operator_id: Optional[int]
    operator_name: Optional[str]
    action: str
    entity_type: Optional[str]
    entity_id: Optional[int]
    old_value: Optional[str]
    new_value: Optional[str]
    ip_address: Optional[str]
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


# ============== 员工 Schemas ==============

class EmployeeResponse(BaseModel):
    id: int
    username: str
    name: str
    phone: Optional[str]
    role: EmployeeRole
    is_active: bool
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    employee: EmployeeResponse
