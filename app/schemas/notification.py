from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from app.core.schemas import CamelModel


class NotificationResponse(CamelModel):
    id: int
    recipient_type: str
    employee_id: Optional[int] = None
    user_id: Optional[int] = None
    type: str
    title: str
    message: str
    priority: str
    link: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class NotificationMessage(BaseModel):
    """
    A notification waiting to be delivered. Addressed to one employee or,
    with `roles`, to every active user holding one of those roles.
    """
    type: str
    title: str = Field(max_length=200)
    message: str = Field(max_length=1000)
    priority: str = "medium"
    link: Optional[str] = None
    employee_id: Optional[int] = None
    roles: List[str] = Field(default_factory=list)
