# Business Services
from app.services.audit_service import AuditService
from app.services.booking_service import BookingService
from app.services.employee_service import EmployeeService

__all__ = [
    'AuditService', 'BookingService', 'EmployeeService'
]
