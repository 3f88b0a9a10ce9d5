# Ontology Models
from app.models.ontology import (
    Booking, BookingStatus, PaymentStatus, Employee, EmployeeRole
)

__all__ = [
    'Booking', 'BookingStatus', 'PaymentStatus', 'Employee', 'EmployeeRole'
]
