"""
Sickness absence records and their approval workflow state.
"""
from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Boolean, Text, ForeignKey,
    CheckConstraint, Index, event
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.database import Base


class SicknessType(str, enum.Enum):
    ILLNESS = "illness"
    INJURY = "injury"
    MEDICAL_APPOINTMENT = "medical-appointment"
    MENTAL_HEALTH = "mental-health"
    OTHER = "other"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    UNDER_REVIEW = "under-review"  # reserved, no transitions lead here yet


# Statuses that block another record over the same dates
BLOCKING_STATUSES = (ApprovalStatus.PENDING.value, ApprovalStatus.APPROVED.value)


class SicknessRecord(Base):
    __tablename__ = "sickness_records"
    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_sickness_date_order"),
        CheckConstraint("number_of_days >= 1", name="ck_sickness_min_days"),
        Index("ix_sickness_employee_start", "employee_id", "start_date"),
        Index("ix_sickness_status_start", "approval_status", "start_date"),
        Index("ix_sickness_date_range", "start_date", "end_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    number_of_days = Column(Integer, nullable=False)
    sickness_type = Column(String(32), default=SicknessType.ILLNESS.value, nullable=False)
    reason = Column(String(1000), nullable=False)
    symptoms = Column(String(500), default="")

    # Medical documentation
    requires_note = Column(Boolean, default=False, nullable=False)
    note_provided = Column(Boolean, default=False, nullable=False)
    note_document_id = Column(Integer, nullable=True)

    # Approval workflow
    approval_status = Column(String(20), default=ApprovalStatus.PENDING.value, nullable=False, index=True)
    approved_by_employee_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_by_employee_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    admin_notes = Column(String(1000), nullable=True)

    # Actor tracking
    created_by_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_by_role = Column(String(32), default="employee")
    is_admin_created = Column(Boolean, default=False, nullable=False)
    approval_actor_user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    approval_role = Column(String(32), nullable=True)
    approval_comments = Column(String(500), nullable=True)

    # Return to work
    returned_to_work = Column(Boolean, default=False, nullable=False)
    actual_return_date = Column(Date, nullable=True)
    fit_for_work = Column(Boolean, default=True, nullable=False)
    restrictions_on_return = Column(Text, nullable=True)

    # Recurrence
    is_recurring = Column(Boolean, default=False, nullable=False)
    linked_to_earlier_sickness_id = Column(
        Integer, ForeignKey("sickness_records.id", ondelete="SET NULL"), nullable=True
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    employee = relationship("Employee", foreign_keys=[employee_id], back_populates="sickness_records")
    approved_by = relationship("Employee", foreign_keys=[approved_by_employee_id])
    rejected_by = relationship("Employee", foreign_keys=[rejected_by_employee_id])
    linked_to_earlier_sickness = relationship("SicknessRecord", remote_side=[id])

    def __repr__(self):
        return f"<SicknessRecord {self.id} emp={self.employee_id} {self.start_date}..{self.end_date} {self.approval_status}>"


@event.listens_for(SicknessRecord, "before_insert")
@event.listens_for(SicknessRecord, "before_update")
def _derive_duration(mapper, connection, target: SicknessRecord):
    """Keeps number_of_days and the documentation flag in step with the dates."""
    from app.services.absence_metrics import calculate_number_of_days, requires_documentation

    target.number_of_days = calculate_number_of_days(target.start_date, target.end_date)
    target.requires_note = requires_documentation(target.number_of_days, target.requires_note)
