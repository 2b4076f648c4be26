from typing import Optional
from app.core.schemas import CamelModel


class EmployeeSummary(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    department: Optional[str] = None
