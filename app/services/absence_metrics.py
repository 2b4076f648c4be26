"""
Pure calculations over sickness records: durations, Bradford Factor and
per-employee absence statistics.

Nothing here touches the database; callers pass in already-filtered records.
Records only need `approval_status`, `number_of_days`, `requires_note` and
`note_provided` attributes.
"""
from datetime import date
from typing import Any, Dict, Iterable, Optional

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.models.sickness import ApprovalStatus


def calculate_number_of_days(start_date: date, end_date: date) -> int:
    """Inclusive day count: a single-day absence is 1 day."""
    if start_date is None or end_date is None:
        raise ValidationError("Start date and end date are required")
    if end_date < start_date:
        raise ValidationError("Start date must be before end date")
    return (end_date - start_date).days + 1


def requires_documentation(number_of_days: int, requested: bool = False,
                           threshold: Optional[int] = None) -> bool:
    """
    The flag is forced on at the threshold and otherwise left as requested.
    It is never switched off here.
    """
    if threshold is None:
        threshold = settings.absence.documentation_threshold_days
    return bool(requested) or number_of_days >= threshold


def classify_bradford_risk(score: int, medium_threshold: Optional[int] = None,
                           high_threshold: Optional[int] = None) -> str:
    medium = settings.absence.bradford_medium_threshold if medium_threshold is None else medium_threshold
    high = settings.absence.bradford_high_threshold if high_threshold is None else high_threshold
    if score < medium:
        return "low"
    if score < high:
        return "medium"
    return "high"


def bradford_factor(approved_records: Iterable[Any]) -> Dict[str, Any]:
    """
    Bradford Factor = S² × D, where S is the number of spells and D the
    total days across them. Expects approved records only.
    """
    records = list(approved_records)
    total_spells = len(records)
    total_days = sum(r.number_of_days for r in records)
    score = total_spells ** 2 * total_days
    return {
        "total_spells": total_spells,
        "total_days": total_days,
        "bradford_factor": score,
        "risk_level": classify_bradford_risk(score),
    }


def employee_stats(records: Iterable[Any]) -> Dict[str, Any]:
    records = list(records)
    approved = [r for r in records if r.approval_status == ApprovalStatus.APPROVED.value]
    approved_days = sum(r.number_of_days for r in approved)
    return {
        "total_incidents": len(records),
        "approved_incidents": len(approved),
        "pending_incidents": sum(1 for r in records if r.approval_status == ApprovalStatus.PENDING.value),
        "rejected_incidents": sum(1 for r in records if r.approval_status == ApprovalStatus.REJECTED.value),
        "total_days_off": approved_days,
        "average_days_per_incident": round(approved_days / len(approved), 2) if approved else 0,
        "with_medical_note": sum(1 for r in approved if r.note_provided),
        "without_medical_note": sum(1 for r in approved if r.requires_note and not r.note_provided),
    }
