"""
Sickness absence workflow.

Covers filing (self-report or on behalf of an employee), overlap checks,
the pending -> approved/rejected transitions, return-to-work annotations
and the per-employee Bradford Factor and statistics.
"""
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    AuthorizationError, ConflictError, InvalidStateError, NotFoundError, ValidationError
)
from app.core.permissions import AccessPolicy, Action
from app.models.sickness import ApprovalStatus, BLOCKING_STATUSES, SicknessRecord
from app.schemas.auth import AuthenticatedIdentity
from app.schemas.notification import NotificationMessage
from app.schemas.sickness import (
    MedicalNoteUpdate, ReturnToWorkUpdate, SicknessCreate, SicknessRecordResponse, SicknessUpdate
)
from app.services.absence_metrics import (
    bradford_factor, calculate_number_of_days, employee_stats, requires_documentation
)
from app.services.audit import AuditService
from app.services.base import BaseService
from app.services.employee_directory import EmployeeDirectory
from app.services.notification import NotificationDispatcher

ENTITY_TYPE = "sickness_record"


def _fmt(day: date) -> str:
    return day.strftime("%d %b %Y")


def _serialize(records: List[SicknessRecord]) -> List[Dict[str, Any]]:
    return [
        SicknessRecordResponse.model_validate(r).model_dump(mode="json", by_alias=True)
        for r in records
    ]


def _snapshot(record: SicknessRecord) -> Dict[str, Any]:
    return {
        "approval_status": record.approval_status,
        "start_date": record.start_date,
        "end_date": record.end_date,
        "number_of_days": record.number_of_days,
    }


def current_year_window(today: Optional[date] = None) -> Tuple[date, date]:
    today = today or date.today()
    return date(today.year, 1, 1), date(today.year, 12, 31)


class SicknessService(BaseService):
    def __init__(
        self,
        db: Session,
        policy: AccessPolicy,
        dispatcher: Optional[NotificationDispatcher] = None,
        background_tasks: Optional[BackgroundTasks] = None,
    ):
        super().__init__(db)
        self.policy = policy
        self.dispatcher = dispatcher
        self.background_tasks = background_tasks
        self.directory = EmployeeDirectory(db)
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _notify(self, message: NotificationMessage) -> None:
        """Queue delivery after the response; runs inline when no task queue is attached."""
        if self.dispatcher is None:
            return
        if self.background_tasks is not None:
            self.background_tasks.add_task(self.dispatcher.deliver, message)
        else:
            self.dispatcher.deliver(message)

    def _ensure_can_access(self, identity: AuthenticatedIdentity, employee_id: int, action: Action) -> None:
        if identity.owns(employee_id):
            return
        if not self.policy.is_allowed(identity.role, action):
            raise AuthorizationError("Access denied")

    def get_record(self, record_id: int) -> SicknessRecord:
        record = self.db.get(SicknessRecord, record_id)
        if record is None:
            raise NotFoundError("Sickness record not found")
        return record

    def get_visible_record(self, record_id: int, identity: AuthenticatedIdentity) -> SicknessRecord:
        record = self.get_record(record_id)
        self._ensure_can_access(identity, record.employee_id, Action.VIEW_ANY)
        return record

    def _current_status(self, record_id: int) -> str:
        status = (
            self.db.query(SicknessRecord.approval_status)
            .filter(SicknessRecord.id == record_id)
            .scalar()
        )
        if status is None:
            raise NotFoundError("Sickness record not found")
        return status

    def _transition_from_pending(self, record_id: int, values: Dict[str, Any]) -> None:
        """
        Compare-and-swap on approval_status: the write only lands while the
        record is still pending, so two concurrent resolutions cannot both win.
        """
        updated = (
            self.db.query(SicknessRecord)
            .filter(
                SicknessRecord.id == record_id,
                SicknessRecord.approval_status == ApprovalStatus.PENDING.value,
            )
            .update(values, synchronize_session=False)
        )
        if updated == 0:
            status = self._current_status(record_id)
            raise InvalidStateError(f"Sickness record is already {status}", current_status=status)

    # ------------------------------------------------------------------
    # Overlap Validator
    # ------------------------------------------------------------------
    def find_overlapping(
        self,
        employee_id: int,
        start_date: date,
        end_date: date,
        exclude_id: Optional[int] = None,
    ) -> List[SicknessRecord]:
        query = self.db.query(SicknessRecord).filter(
            SicknessRecord.employee_id == employee_id,
            SicknessRecord.approval_status.in_(BLOCKING_STATUSES),
            SicknessRecord.start_date <= end_date,
            SicknessRecord.end_date >= start_date,
        )
        if exclude_id is not None:
            query = query.filter(SicknessRecord.id != exclude_id)
        return query.order_by(SicknessRecord.start_date).all()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------
    def create_record(
        self, payload: SicknessCreate, identity: AuthenticatedIdentity
    ) -> Tuple[SicknessRecord, List[SicknessRecord]]:
        """
        Returns the new record and any overlapping records that an admin
        override allowed through (empty otherwise).
        """
        number_of_days = calculate_number_of_days(payload.start_date, payload.end_date)

        files_for_other = (
            payload.employee_id is not None
            and self.policy.is_allowed(identity.role, Action.CREATE_ON_BEHALF)
        )
        if files_for_other:
            employee = self.directory.get_for_update(payload.employee_id)
            if employee is None:
                raise NotFoundError("Employee not found")
        else:
            employee = (
                self.directory.get_for_update(identity.employee_id)
                if identity.employee_id is not None else None
            )
            if employee is None:
                raise AuthorizationError("Could not find your employee profile")

        linked = None
        if payload.linked_to_earlier_sickness_id is not None:
            linked = self.db.get(SicknessRecord, payload.linked_to_earlier_sickness_id)
            if linked is None or linked.employee_id != employee.id:
                raise ValidationError("Linked sickness record not found for this employee")
            if linked.start_date >= payload.start_date:
                raise ValidationError("Linked sickness record must start before this absence")

        is_admin = self.policy.is_allowed(identity.role, Action.AUTO_APPROVE)

        # Always run and surface the overlap check, even where policy lets admins through
        overlapping = self.find_overlapping(employee.id, payload.start_date, payload.end_date)
        if overlapping:
            if not (is_admin and settings.absence.allow_admin_overlap_override):
                message = (
                    "You already have a sickness record for this date range"
                    if identity.owns(employee.id)
                    else "Employee already has a sickness record for this date range"
                )
                raise ConflictError(message, overlapping=_serialize(overlapping))
            self.log_warning(
                f"Admin override: sickness record for employee {employee.id} overlaps "
                f"{len(overlapping)} existing record(s)",
                employee_id=employee.id,
                actor_user_id=identity.user_id,
            )

        now = datetime.now(timezone.utc)
        record = SicknessRecord(
            employee_id=employee.id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            sickness_type=payload.sickness_type.value,
            reason=payload.reason,
            symptoms=payload.symptoms or "",
            number_of_days=number_of_days,
            requires_note=requires_documentation(number_of_days, payload.requires_note),
            approval_status=ApprovalStatus.APPROVED.value if is_admin else ApprovalStatus.PENDING.value,
            created_by_user_id=identity.user_id,
            created_by_role=identity.role,
            is_admin_created=is_admin,
            approval_actor_user_id=identity.user_id if is_admin else None,
            approval_role=identity.role if is_admin else None,
            approved_by_employee_id=identity.employee_id if is_admin else None,
            approved_at=now if is_admin else None,
            is_recurring=linked is not None,
            linked_to_earlier_sickness_id=linked.id if linked else None,
        )
        self.db.add(record)
        self.db.flush()
        self.audit.log_action(
            action="create_sickness_admin" if is_admin else "create_sickness",
            entity_type=ENTITY_TYPE,
            entity_id=record.id,
            user_id=identity.user_id,
            user_role=identity.role,
            details={"employee_id": employee.id, "overlap_override": bool(overlapping)},
            after_state=_snapshot(record),
        )
        self.commit()
        self.db.refresh(record)

        self.log_info(
            f"Sickness record {record.id} filed for employee {employee.id} ({record.approval_status})",
            record_id=record.id,
        )

        if is_admin:
            self._notify(NotificationMessage(
                type="sickness_created",
                title="Sickness Record Created",
                message=(
                    f"A sickness record has been created for you from {_fmt(record.start_date)} "
                    f"to {_fmt(record.end_date)}"
                ),
                priority="medium",
                employee_id=employee.id,
            ))
        else:
            self._notify(NotificationMessage(
                type="sickness_request",
                title="New Sickness Report",
                message=(
                    f"{employee.full_name} has reported sick from {_fmt(record.start_date)} "
                    f"to {_fmt(record.end_date)}"
                ),
                priority="high",
                roles=list(settings.absence.approver_roles),
            ))
        return record, overlapping

    # ------------------------------------------------------------------
    # Approval State Machine
    # ------------------------------------------------------------------
    def approve(
        self, record_id: int, identity: AuthenticatedIdentity, admin_notes: Optional[str] = None
    ) -> SicknessRecord:
        self.policy.enforce(identity.role, Action.APPROVE)
        admin_notes = (admin_notes or "").strip()

        now = datetime.now(timezone.utc)
        self._transition_from_pending(record_id, {
            SicknessRecord.approval_status: ApprovalStatus.APPROVED.value,
            SicknessRecord.approved_at: now,
            SicknessRecord.approved_by_employee_id: identity.employee_id,
            SicknessRecord.admin_notes: admin_notes,
            SicknessRecord.approval_actor_user_id: identity.user_id,
            SicknessRecord.approval_role: identity.role,
            SicknessRecord.approval_comments: admin_notes or "Approved by admin",
        })
        self.audit.log_action(
            action="approve_sickness",
            entity_type=ENTITY_TYPE,
            entity_id=record_id,
            user_id=identity.user_id,
            user_role=identity.role,
            details={"admin_notes": admin_notes},
            before_state={"approval_status": ApprovalStatus.PENDING.value},
            after_state={"approval_status": ApprovalStatus.APPROVED.value},
        )
        self.commit()

        record = self.get_record(record_id)
        self.db.refresh(record)
        self.log_info(f"Sickness record {record_id} approved by user {identity.user_id}", record_id=record_id)

        self._notify(NotificationMessage(
            type="sickness_approved",
            title="Sickness Record Approved",
            message=(
                f"Your sickness record from {_fmt(record.start_date)} to {_fmt(record.end_date)} "
                f"has been approved"
            ),
            priority="high",
            employee_id=record.employee_id,
        ))
        return record

    def reject(
        self, record_id: int, identity: AuthenticatedIdentity, rejection_reason: Optional[str]
    ) -> SicknessRecord:
        self.policy.enforce(identity.role, Action.REJECT)
        rejection_reason = (rejection_reason or "").strip()
        if not rejection_reason:
            raise ValidationError("Rejection reason is required")

        now = datetime.now(timezone.utc)
        self._transition_from_pending(record_id, {
            SicknessRecord.approval_status: ApprovalStatus.REJECTED.value,
            SicknessRecord.rejected_at: now,
            SicknessRecord.rejected_by_employee_id: identity.employee_id,
            SicknessRecord.rejection_reason: rejection_reason,
            SicknessRecord.approval_actor_user_id: identity.user_id,
            SicknessRecord.approval_role: identity.role,
            SicknessRecord.approval_comments: rejection_reason,
        })
        self.audit.log_action(
            action="reject_sickness",
            entity_type=ENTITY_TYPE,
            entity_id=record_id,
            user_id=identity.user_id,
            user_role=identity.role,
            details={"rejection_reason": rejection_reason},
            before_state={"approval_status": ApprovalStatus.PENDING.value},
            after_state={"approval_status": ApprovalStatus.REJECTED.value},
        )
        self.commit()

        record = self.get_record(record_id)
        self.db.refresh(record)
        self.log_info(f"Sickness record {record_id} rejected by user {identity.user_id}", record_id=record_id)

        self._notify(NotificationMessage(
            type="sickness_rejected",
            title="Sickness Record Rejected",
            message=(
                f"Your sickness record from {_fmt(record.start_date)} to {_fmt(record.end_date)} "
                f"has been rejected. Reason: {rejection_reason}"
            ),
            priority="high",
            employee_id=record.employee_id,
        ))
        return record

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------
    def update_details(
        self, record_id: int, identity: AuthenticatedIdentity, payload: SicknessUpdate
    ) -> SicknessRecord:
        """Edits a record that is still pending. Date changes are re-checked for overlap."""
        record = self.get_record(record_id)
        self._ensure_can_access(identity, record.employee_id, Action.UPDATE_ANY)
        if record.approval_status != ApprovalStatus.PENDING.value:
            raise InvalidStateError(
                f"Only pending sickness records can be edited; this one is {record.approval_status}",
                current_status=record.approval_status,
            )

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        start_date = changes.get("start_date") or record.start_date
        end_date = changes.get("end_date") or record.end_date
        number_of_days = calculate_number_of_days(start_date, end_date)

        if start_date != record.start_date or end_date != record.end_date:
            self.directory.get_for_update(record.employee_id)
            overlapping = self.find_overlapping(record.employee_id, start_date, end_date, exclude_id=record.id)
            if overlapping:
                raise ConflictError(
                    "The new dates overlap another sickness record",
                    overlapping=_serialize(overlapping),
                )

        requested_note = changes.get("requires_note")
        if requested_note is None:
            requested_note = record.requires_note
        values = {
            SicknessRecord.start_date: start_date,
            SicknessRecord.end_date: end_date,
            SicknessRecord.number_of_days: number_of_days,
            SicknessRecord.requires_note: requires_documentation(number_of_days, requested_note),
        }
        if changes.get("sickness_type") is not None:
            values[SicknessRecord.sickness_type] = changes["sickness_type"].value
        if changes.get("reason") is not None:
            values[SicknessRecord.reason] = changes["reason"]
        if "symptoms" in changes:
            values[SicknessRecord.symptoms] = changes["symptoms"] or ""

        before = _snapshot(record)
        self._transition_from_pending(record_id, values)
        self.audit.log_action(
            action="update_sickness",
            entity_type=ENTITY_TYPE,
            entity_id=record_id,
            user_id=identity.user_id,
            user_role=identity.role,
            details={"fields": sorted(changes)},
            before_state=before,
            after_state={"start_date": start_date, "end_date": end_date, "number_of_days": number_of_days},
        )
        self.commit()
        self.db.refresh(record)
        return record

    def update_return_to_work(
        self, record_id: int, identity: AuthenticatedIdentity, payload: ReturnToWorkUpdate
    ) -> SicknessRecord:
        record = self.get_record(record_id)
        self._ensure_can_access(identity, record.employee_id, Action.UPDATE_ANY)

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        actual_return_date = changes.get("actual_return_date")
        if actual_return_date is not None and actual_return_date < record.start_date:
            raise ValidationError("Return date cannot be before the start of the absence")

        for field, value in changes.items():
            setattr(record, field, value)
        if actual_return_date is not None and "returned_to_work" not in changes:
            record.returned_to_work = True

        self.audit.log_action(
            action="update_sickness_return_to_work",
            entity_type=ENTITY_TYPE,
            entity_id=record.id,
            user_id=identity.user_id,
            user_role=identity.role,
            details=changes,
        )
        self.commit()
        self.db.refresh(record)
        return record

    def update_medical_note(
        self, record_id: int, identity: AuthenticatedIdentity, payload: MedicalNoteUpdate
    ) -> SicknessRecord:
        record = self.get_record(record_id)
        self._ensure_can_access(identity, record.employee_id, Action.UPDATE_ANY)

        record.note_provided = payload.note_provided
        record.note_document_id = payload.note_document_id if payload.note_provided else None
        self.audit.log_action(
            action="update_sickness_medical_note",
            entity_type=ENTITY_TYPE,
            entity_id=record.id,
            user_id=identity.user_id,
            user_role=identity.role,
            details={"note_provided": payload.note_provided, "note_document_id": record.note_document_id},
        )
        self.commit()
        self.db.refresh(record)
        return record

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------
    def delete(self, record_id: int, identity: AuthenticatedIdentity) -> None:
        self.policy.enforce(identity.role, Action.DELETE)
        record = self.get_record(record_id)
        self.db.query(SicknessRecord).filter(
            SicknessRecord.linked_to_earlier_sickness_id == record_id
        ).update({SicknessRecord.linked_to_earlier_sickness_id: None}, synchronize_session=False)
        self.audit.log_action(
            action="delete_sickness",
            entity_type=ENTITY_TYPE,
            entity_id=record_id,
            user_id=identity.user_id,
            user_role=identity.role,
            details={"employee_id": record.employee_id},
            before_state=_snapshot(record),
        )
        self.db.delete(record)
        self.commit()
        self.log_info(f"Sickness record {record_id} deleted by user {identity.user_id}", record_id=record_id)

    # ------------------------------------------------------------------
    # Queries & aggregates
    # ------------------------------------------------------------------
    def list_pending(self, identity: AuthenticatedIdentity) -> List[SicknessRecord]:
        self.policy.enforce(identity.role, Action.LIST_PENDING)
        return (
            self.db.query(SicknessRecord)
            .filter(SicknessRecord.approval_status == ApprovalStatus.PENDING.value)
            .order_by(SicknessRecord.start_date.desc())
            .all()
        )

    def _records_in_window(self, employee_id: int, start_date: Optional[date], end_date: Optional[date],
                           status: Optional[str] = None) -> List[SicknessRecord]:
        query = self.db.query(SicknessRecord).filter(SicknessRecord.employee_id == employee_id)
        if start_date is not None:
            query = query.filter(SicknessRecord.start_date >= start_date)
        if end_date is not None:
            query = query.filter(SicknessRecord.start_date <= end_date)
        if status is not None:
            query = query.filter(SicknessRecord.approval_status == status)
        return query.order_by(SicknessRecord.start_date.desc()).all()

    def calculate_bradford_factor(self, employee_id: int, period_start: date, period_end: date) -> Dict[str, Any]:
        approved = self._records_in_window(
            employee_id, period_start, period_end, status=ApprovalStatus.APPROVED.value
        )
        return bradford_factor(approved)

    def get_employee_stats(self, employee_id: int, period_start: date, period_end: date) -> Dict[str, Any]:
        return employee_stats(self._records_in_window(employee_id, period_start, period_end))

    def _check_employee_view(self, employee_id: int, identity: AuthenticatedIdentity) -> None:
        self._ensure_can_access(identity, employee_id, Action.VIEW_ANY)
        if self.directory.get(employee_id) is None:
            raise NotFoundError("Employee not found")

    def get_employee_records(
        self,
        employee_id: int,
        identity: AuthenticatedIdentity,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[str] = None,
    ) -> Tuple[List[SicknessRecord], Dict[str, Any], Dict[str, Any]]:
        """Records plus statistics for the window and the current-year Bradford Factor."""
        self._check_employee_view(employee_id, identity)
        if status is not None and status not in {s.value for s in ApprovalStatus}:
            raise ValidationError(f"Unknown approval status: {status}")
        if start_date and end_date and end_date < start_date:
            raise ValidationError("Start date must be before end date")

        records = self._records_in_window(employee_id, start_date, end_date, status)

        year_start, year_end = current_year_window()
        stats = self.get_employee_stats(employee_id, start_date or year_start, end_date or date.today())
        bradford = self.calculate_bradford_factor(employee_id, year_start, year_end)
        return records, stats, bradford

    def get_bradford_factor(
        self,
        employee_id: int,
        identity: AuthenticatedIdentity,
        period_start: Optional[date] = None,
        period_end: Optional[date] = None,
    ) -> Tuple[Dict[str, Any], date, date]:
        self._check_employee_view(employee_id, identity)
        year_start, year_end = current_year_window()
        period_start = period_start or year_start
        period_end = period_end or year_end
        if period_end < period_start:
            raise ValidationError("Period start must be before period end")
        return self.calculate_bradford_factor(employee_id, period_start, period_end), period_start, period_end
