from datetime import datetime

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: int
    user_id: int
    title: str
    description: str
    type: str
    related_id: int | None = None
    is_read: bool
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class DispatchResponse(BaseModel):
    dispatched: int
    failed: int
