# API Routers
from app.routers import auth, bookings, audit_logs

__all__ = ['auth', 'bookings', 'audit_logs']
