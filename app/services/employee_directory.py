from typing import Optional

from app.models.employee import Employee
from app.services.base import BaseService


class EmployeeDirectory(BaseService):
    """Employee lookups used for identity resolution and absence targeting."""

    def get(self, employee_id: int) -> Optional[Employee]:
        return self.db.get(Employee, employee_id)

    def get_for_update(self, employee_id: int) -> Optional[Employee]:
        """
        Row-locks the employee so concurrent absence writes for them serialize.

        SQLite ignores FOR UPDATE and begins transactions deferred, so a no-op
        write on the row takes the database write lock up front instead.
        """
        if self.db.get_bind().dialect.name == "sqlite":
            self.db.query(Employee).filter(Employee.id == employee_id).update(
                {Employee.id: Employee.id}, synchronize_session=False
            )
        return (
            self.db.query(Employee)
            .filter(Employee.id == employee_id)
            .with_for_update()
            .first()
        )

    def by_user_id(self, user_id: int) -> Optional[Employee]:
        return self.db.query(Employee).filter(Employee.user_id == user_id).first()

    def by_email(self, email: str) -> Optional[Employee]:
        if not email:
            return None
        return self.db.query(Employee).filter(Employee.email == email.strip().lower()).first()

    def resolve_for_account(self, user_id: int, email: Optional[str] = None) -> Optional[Employee]:
        """Linked account first, then a matching work email."""
        return self.by_user_id(user_id) or self.by_email(email)
