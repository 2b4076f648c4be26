"""
Access policy for absence management.

One place answers "may this role do this to that resource?" so route handlers
never carry their own role lists.
"""
import enum
from typing import Dict, FrozenSet, Iterable, Optional

from app.core.config import settings
from app.core.exceptions import AuthorizationError


class Action(str, enum.Enum):
    CREATE_ON_BEHALF = "create_on_behalf"
    AUTO_APPROVE = "auto_approve"
    VIEW_ANY = "view_any"
    LIST_PENDING = "list_pending"
    APPROVE = "approve"
    REJECT = "reject"
    UPDATE_ANY = "update_any"
    DELETE = "delete"


SICKNESS = "sickness"


class AccessPolicy:
    def __init__(self, rules: Dict[str, Dict[Action, FrozenSet[str]]]):
        self._rules = rules

    @classmethod
    def for_approver_roles(cls, approver_roles: Iterable[str]) -> "AccessPolicy":
        """Every privileged sickness action is granted to the same approver roles."""
        approvers = frozenset(approver_roles)
        return cls({SICKNESS: {action: approvers for action in Action}})

    def is_allowed(self, role: Optional[str], action: Action, resource: str = SICKNESS) -> bool:
        if not role:
            return False
        allowed_roles = self._rules.get(resource, {}).get(action, frozenset())
        return role in allowed_roles

    def enforce(self, role: Optional[str], action: Action, resource: str = SICKNESS,
                message: str = "Admin access required") -> None:
        if not self.is_allowed(role, action, resource):
            raise AuthorizationError(message)


default_policy = AccessPolicy.for_approver_roles(settings.absence.approver_roles)


def get_access_policy() -> AccessPolicy:
    """FastAPI dependency; override in tests to swap the policy."""
    return default_policy
