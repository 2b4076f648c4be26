# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import user, employee, sickness, notification, audit_log

# Explicit class exports for cleaner imports
from .user import User, UserRole
from .employee import Employee
from .sickness import SicknessRecord, ApprovalStatus, SicknessType
from .notification import Notification
from .audit_log import AuditLog

__all__ = [
    "User",
    "UserRole",
    "Employee",
    "SicknessRecord",
    "ApprovalStatus",
    "SicknessType",
    "Notification",
    "AuditLog",
]
