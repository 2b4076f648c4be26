from datetime import date, datetime
from typing import Any, List, Optional

from pydantic import Field, TypeAdapter, field_validator

from app.core.schemas import ApiResponse, CamelModel
from app.models.sickness import SicknessType
from app.schemas.employee import EmployeeSummary


def _strip(value: Optional[str]) -> Optional[str]:
    return value.strip() if isinstance(value, str) else value


_datetime_adapter = TypeAdapter(datetime)


def _calendar_date(value: Any) -> Any:
    """Date pickers send full timestamps (e.g. 2024-03-01T09:30:00.000Z); keep the calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return _datetime_adapter.validate_python(value).date()
    return value


# --- Requests ---

class SicknessCreate(CamelModel):
    employee_id: Optional[int] = None
    start_date: date
    end_date: date
    sickness_type: SicknessType = SicknessType.ILLNESS
    reason: str = Field(min_length=1, max_length=1000)
    symptoms: Optional[str] = Field(default=None, max_length=500)
    requires_note: bool = False
    linked_to_earlier_sickness_id: Optional[int] = None

    strip_text = field_validator("reason", "symptoms", mode="before")(_strip)
    to_date = field_validator("start_date", "end_date", mode="before")(_calendar_date)


class SicknessUpdate(CamelModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    sickness_type: Optional[SicknessType] = None
    reason: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    symptoms: Optional[str] = Field(default=None, max_length=500)
    requires_note: Optional[bool] = None

    strip_text = field_validator("reason", "symptoms", mode="before")(_strip)
    to_date = field_validator("start_date", "end_date", mode="before")(_calendar_date)


class SicknessApproveRequest(CamelModel):
    admin_notes: Optional[str] = Field(default=None, max_length=500)


class SicknessRejectRequest(CamelModel):
    # Presence is checked by the service so a missing reason reads as a business error
    rejection_reason: Optional[str] = Field(default=None, max_length=500)


class ReturnToWorkUpdate(CamelModel):
    returned_to_work: Optional[bool] = None
    actual_return_date: Optional[date] = None
    fit_for_work: Optional[bool] = None
    restrictions_on_return: Optional[str] = Field(default=None, max_length=500)

    to_date = field_validator("actual_return_date", mode="before")(_calendar_date)


class MedicalNoteUpdate(CamelModel):
    note_provided: bool
    note_document_id: Optional[int] = None


# --- Responses ---

class SicknessRecordResponse(CamelModel):
    id: int
    employee_id: int
    employee: Optional[EmployeeSummary] = None
    start_date: date
    end_date: date
    number_of_days: int
    sickness_type: str
    reason: str
    symptoms: Optional[str] = None

    requires_note: bool
    note_provided: bool
    note_document_id: Optional[int] = None

    approval_status: str
    approved_by_employee_id: Optional[int] = None
    approved_at: Optional[datetime] = None
    rejected_by_employee_id: Optional[int] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None

    created_by_user_id: Optional[int] = None
    created_by_role: Optional[str] = None
    is_admin_created: bool
    approval_actor_user_id: Optional[int] = None
    approval_role: Optional[str] = None
    approval_comments: Optional[str] = None

    returned_to_work: bool
    actual_return_date: Optional[date] = None
    fit_for_work: bool
    restrictions_on_return: Optional[str] = None

    is_recurring: bool
    linked_to_earlier_sickness_id: Optional[int] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BradfordFactorResult(CamelModel):
    total_spells: int
    total_days: int
    bradford_factor: int
    risk_level: str


class EmployeeAbsenceStats(CamelModel):
    total_incidents: int
    approved_incidents: int
    pending_incidents: int
    rejected_incidents: int
    total_days_off: int
    average_days_per_incident: float
    with_medical_note: int
    without_medical_note: int


class SicknessRecordEnvelope(ApiResponse[SicknessRecordResponse]):
    # Populated only when an admin override let a record through despite overlaps
    overlapping: Optional[List[SicknessRecordResponse]] = None


class SicknessListEnvelope(ApiResponse[List[SicknessRecordResponse]]):
    count: int = 0


class EmployeeSicknessEnvelope(ApiResponse[List[SicknessRecordResponse]]):
    stats: EmployeeAbsenceStats
    bradford_factor: BradfordFactorResult


class BradfordFactorEnvelope(ApiResponse[BradfordFactorResult]):
    period_start: date
    period_end: date
