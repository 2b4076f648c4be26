import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from app.database import SessionLocal
from app.models.employee import Employee
from app.models.notification import Notification
from app.models.user import User
from app.schemas.notification import NotificationMessage

logger = logging.getLogger(__name__)


class NotificationService:
    @staticmethod
    def create_notification(
        db: Session,
        title: str,
        message: str,
        type: str = "system",
        priority: str = "medium",
        link: str = None,
        employee_id: Optional[int] = None,
        user_id: Optional[int] = None,
    ) -> Notification:
        """
        Internal utility for creating notifications. Adds to the session; the caller commits.
        """
        notification = Notification(
            recipient_type="employee" if employee_id is not None else "profile",
            employee_id=employee_id,
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            priority=priority,
            link=link
        )
        db.add(notification)
        return notification

    @staticmethod
    def notify_employee(db: Session, employee_id: int, title: str, message: str, **kwargs) -> Optional[Notification]:
        employee = db.get(Employee, employee_id)
        if employee is None:
            logger.warning(f"Notification skipped: employee {employee_id} no longer exists")
            return None
        return NotificationService.create_notification(
            db, title, message, employee_id=employee.id, user_id=employee.user_id, **kwargs
        )

    @staticmethod
    def notify_roles(db: Session, roles: List[str], title: str, message: str, **kwargs) -> List[Notification]:
        recipients = db.query(User).filter(User.role.in_(roles), User.is_active == True).all()  # noqa: E712
        return [
            NotificationService.create_notification(db, title, message, user_id=user.id, **kwargs)
            for user in recipients
        ]


class NotificationDispatcher:
    """
    Delivers NotificationMessages in a session of its own, after the request
    that produced them has committed. Delivery is best effort: failures are
    logged and dropped.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def deliver(self, message: NotificationMessage) -> None:
        db = None
        try:
            db = self.session_factory()
            fields = dict(type=message.type, priority=message.priority, link=message.link)
            if message.employee_id is not None:
                NotificationService.notify_employee(db, message.employee_id, message.title, message.message, **fields)
            if message.roles:
                NotificationService.notify_roles(db, message.roles, message.title, message.message, **fields)
            db.commit()
        except Exception as e:
            # Don't fail the request if notification fails
            logger.warning(f"Notification delivery failed ({message.type}): {e}", exc_info=True)
            if db is not None:
                db.rollback()
        finally:
            if db is not None:
                db.close()


_default_dispatcher = NotificationDispatcher()


def get_notification_dispatcher() -> NotificationDispatcher:
    """FastAPI dependency; tests override it to point at their own session."""
    return _default_dispatcher
