from pydantic import BaseModel
from typing import Optional


class TokenData(BaseModel):
    sub: str
    role: Optional[str] = None
    email: Optional[str] = None
    employee_id: Optional[int] = None


class AuthenticatedIdentity(BaseModel):
    """
    Who is calling, resolved once per request and passed down to services.
    `employee_id` is None when the account has no employee record.
    """
    user_id: int
    role: str
    email: Optional[str] = None
    employee_id: Optional[int] = None

    def owns(self, employee_id: int) -> bool:
        return self.employee_id is not None and self.employee_id == employee_id
