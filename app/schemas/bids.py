from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.schemas.common import MoneyResponse


class BidCreateRequest(BaseModel):
    bid_amount: Decimal
    message: str = Field(max_length=5_000)
    idempotency_key: str | None = Field(default=None, max_length=128)


class BidResponse(MoneyResponse):
    id: int
    project_id: int
    seller_id: int
    bid_amount: Decimal
    message: str | None = None
    status: str
    created_at: datetime | None = None
