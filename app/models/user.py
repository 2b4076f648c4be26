"""
User accounts as seen by the absence service.
Credentials live with the identity provider; only role and contact data are kept here.
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from app.database import Base


class UserRole(str, enum.Enum):
    """
    Roles issued by the identity provider.

    Hierarchy (most to least permissions):
    - SUPER_ADMIN: Platform-wide access
    - ADMIN: Full HR administration
    - HR: HR staff, approves absences
    - SENIOR_MANAGER / MANAGER: Line management
    - EMPLOYEE: Self-service access
    """
    SUPER_ADMIN = "super-admin"
    ADMIN = "admin"
    HR = "hr"
    SENIOR_MANAGER = "senior-manager"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)

    # Stored as the enum value so tokens and rows agree on spelling
    role = Column(String(32), default=UserRole.EMPLOYEE.value, nullable=False, index=True)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee_profile = relationship("Employee", back_populates="user", uselist=False)
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
