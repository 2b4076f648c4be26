from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.database import get_db
from app.models.notification import Notification
from app.routers.auth_deps import get_identity
from app.schemas.auth import AuthenticatedIdentity
from app.schemas.notification import NotificationResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _own_notifications(db: Session, identity: AuthenticatedIdentity):
    """Profile notifications for the account plus those addressed to its employee record."""
    clauses = [Notification.user_id == identity.user_id]
    if identity.employee_id is not None:
        clauses.append(Notification.employee_id == identity.employee_id)
    return db.query(Notification).filter(or_(*clauses))


@router.get("/", response_model=List[NotificationResponse])
def get_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    db: Session = Depends(get_db),
    identity: AuthenticatedIdentity = Depends(get_identity)
):
    query = _own_notifications(db, identity)
    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712
    notifications = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(50).all()
    return [NotificationResponse.model_validate(n) for n in notifications]


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    identity: AuthenticatedIdentity = Depends(get_identity)
):
    notification = _own_notifications(db, identity).filter(Notification.id == notification_id).first()
    if not notification:
        raise NotFoundError("Notification not found")

    notification.is_read = True
    notification.read_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(notification)
    return NotificationResponse.model_validate(notification)


@router.post("/mark-all-read")
def mark_all_notifications_as_read(
    db: Session = Depends(get_db),
    identity: AuthenticatedIdentity = Depends(get_identity)
):
    updated = _own_notifications(db, identity).filter(
        Notification.is_read == False  # noqa: E712
    ).update(
        {Notification.is_read: True, Notification.read_at: datetime.now(timezone.utc)},
        synchronize_session=False,
    )
    db.commit()
    return {"success": True, "message": "All notifications marked as read", "updated": updated}
