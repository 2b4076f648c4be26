from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.database import Base


class Notification(Base):
    """
    In-app notification. recipient_type says whether it is addressed to an
    employee record or to a login profile (user).
    """
    __tablename__ = "notifications"
    __table_args__ = (
        CheckConstraint(
            "(recipient_type = 'employee' AND employee_id IS NOT NULL) OR "
            "(recipient_type = 'profile' AND user_id IS NOT NULL)",
            name="ck_notification_recipient",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    recipient_type = Column(String(16), nullable=False)  # employee, profile
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    type = Column(String(50), default="system")  # e.g., sickness_request, sickness_approved
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(String(16), default="medium")  # low, medium, high, critical
    link = Column(String(255), nullable=True)  # Optional link to navigate to
    is_read = Column(Boolean, default=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="notifications")
    employee = relationship("Employee")
