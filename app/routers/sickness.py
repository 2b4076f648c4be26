from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app.core.limiter import WRITE_LIMIT, limiter
from app.core.permissions import AccessPolicy, get_access_policy
from app.database import get_db
from app.routers.auth_deps import get_identity
from app.schemas.auth import AuthenticatedIdentity
from app.schemas.sickness import (
    BradfordFactorEnvelope,
    BradfordFactorResult,
    EmployeeAbsenceStats,
    EmployeeSicknessEnvelope,
    MedicalNoteUpdate,
    ReturnToWorkUpdate,
    SicknessApproveRequest,
    SicknessCreate,
    SicknessListEnvelope,
    SicknessRecordEnvelope,
    SicknessRecordResponse,
    SicknessRejectRequest,
    SicknessUpdate,
)
from app.core.schemas import ApiResponse
from app.services.notification import NotificationDispatcher, get_notification_dispatcher
from app.services.sickness import SicknessService

router = APIRouter(prefix="/sickness", tags=["sickness"])


def get_sickness_service(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    policy: AccessPolicy = Depends(get_access_policy),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> SicknessService:
    return SicknessService(db, policy, dispatcher=dispatcher, background_tasks=background_tasks)


def _envelope(record, message: str) -> SicknessRecordEnvelope:
    return SicknessRecordEnvelope(
        success=True,
        message=message,
        data=SicknessRecordResponse.model_validate(record),
    )


@router.post("/create", response_model=SicknessRecordEnvelope, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
def create_sickness_record(
    request: Request,
    payload: SicknessCreate,
    identity: AuthenticatedIdentity = Depends(get_identity),
    service: SicknessService = Depends(get_sickness_service),
):
    record, overlapping = service.create_record(payload, identity)
    response = _envelope(
        record,
        "Sickness record created and approved" if record.is_admin_created
        else "Sickness record submitted for approval",
    )
    if overlapping:
        response.overlapping = [SicknessRecordResponse.model_validate(r) for r in overlapping]
    return response


@router.get("/pending", response_model=SicknessListEnvelope)
def get_pending_sickness(
    identity: AuthenticatedIdentity = Depends(get_identity),
    service: SicknessService = Depends(get_sickness_service),
):
    records = service.list_pending(identity)
    return SicknessListEnvelope(
        success=True,
        count=len(records),
        data=[SicknessRecordResponse.model_validate(r) for r in records],
    )


@router.get("/employee/{employee_id}", response_model=EmployeeSicknessEnvelope)
def get_employee_sickness(
    employee_id: int,
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    approval_status: Optional[str] = Query(None, alias="status"),
    identity: AuthenticatedIdentity = Depends(get_identity),
    service: SicknessService = Depends(get_sickness_service),
):
    records, stats, bradford = service.get_employee_records(
        employee_id, identity, start_date=start_date, end_date=end_date, status=approval_status
    )
    return EmployeeSicknessEnvelope(
        success=True,
        data=[SicknessRecordResponse.model_validate(r) for r in records],
        stats=EmployeeAbsenceStats(**stats),
        bradford_factor=BradfordFactorResult(**bradford),
    )


@router.get("/employee/{employee_id}/bradford-factor", response_model=BradfordFactorEnvelope)
def get_employee_bradford_factor(
    employee_id: int,
    period_start: Optional[date] = Query(None, alias="periodStart"),
    period_end: Optional[date] = Query(None, alias="periodEnd"),
    identity: AuthenticatedIdentity = Depends(get_identity),
    service: SicknessService = Depends(get_sickness_service),
):
    result, period_start, period_end = service.get_bradford_factor(employee_id, identity, period_start, period_end)
    return BradfordFactorEnvelope(
        success=True,
        data=BradfordFactorResult(**result),
        period_start=period_start,
        period_end=period_end,
    )


@router.get("/{record_id}", response_model=SicknessRecordEnvelope)
def get_sickness_record(
    record_id: int,
    identity: AuthenticatedIdentity = Depends(get_identity),
    service: SicknessService = Depends(get_sickness_service),
):
    return _envelope(service.get_visible_record(record_id, identity), "Sickness record retrieved")


@router.patch("/{record_id}", response_model=SicknessRecordEnvelope)
@limiter.limit(WRITE_LIMIT)
def update_sickness_record(
    request: Request,
    record_id: int,
    payload: SicknessUpdate,
    identity: AuthenticatedIdentity = Depends(get_identity),
    service: SicknessService = Depends(get_sickness_service),
):
    return _envelope(service.update_details(record_id, identity, payload), "Sickness record updated")


@router.patch("/{record_id}/approve", response_model=SicknessRecordEnvelope)
def approve_sickness(
    record_id: int,
    payload: Optional[SicknessApproveRequest] = None,
    identity: AuthenticatedIdentity = Depends(get_identity),
    service: SicknessService = Depends(get_sickness_service),
):
    admin_notes = payload.admin_notes if payload else None
    return _envelope(service.approve(record_id, identity, admin_notes), "Sickness record approved successfully")


@router.patch("/{record_id}/reject", response_model=SicknessRecordEnvelope)
def reject_sickness(
    record_id: int,
    payload: Optional[SicknessRejectRequest] = None,
    identity: AuthenticatedIdentity = Depends(get_identity),
    service: SicknessService = Depends(get_sickness_service),
):
    rejection_reason = payload.rejection_reason if payload else None
    return _envelope(service.reject(record_id, identity, rejection_reason), "Sickness record rejected")


@router.patch("/{record_id}/return-to-work", response_model=SicknessRecordEnvelope)
def update_return_to_work(
    record_id: int,
    payload: ReturnToWorkUpdate,
    identity: AuthenticatedIdentity = Depends(get_identity),
    service: SicknessService = Depends(get_sickness_service),
):
    return _envelope(service.update_return_to_work(record_id, identity, payload), "Return to work updated")


@router.patch("/{record_id}/medical-note", response_model=SicknessRecordEnvelope)
def update_medical_note(
    record_id: int,
    payload: MedicalNoteUpdate,
    identity: AuthenticatedIdentity = Depends(get_identity),
    service: SicknessService = Depends(get_sickness_service),
):
    return _envelope(service.update_medical_note(record_id, identity, payload), "Medical note updated")


@router.delete("/{record_id}", response_model=ApiResponse[None])
def delete_sickness(
    record_id: int,
    identity: AuthenticatedIdentity = Depends(get_identity),
    service: SicknessService = Depends(get_sickness_service),
):
    service.delete(record_id, identity)
    return ApiResponse[None](success=True, message="Sickness record deleted successfully")
