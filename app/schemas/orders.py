from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from app.schemas.common import MoneyResponse


class OrderStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    REVISION = "revision"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class OrderResponse(MoneyResponse):
    id: int
    title: str
    description: str | None = None
    price: Decimal
    status: OrderStatus
    buyer_id: int
    provider_id: int
    offer_id: int | None = None
    delivery_date: datetime | None = None
    delivered_at: datetime | None = None
    delivery_note: str | None = None
    completed_at: datetime | None = None
    buyer_accepted: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatus

    model_config = {"json_schema_extra": {"examples": [{"status": "in_progress"}]}}


class DeliverySubmitRequest(BaseModel):
    note: str = Field(max_length=10_000)

    model_config = {
        "json_schema_extra": {"examples": [{"note": "Final files attached in the message thread."}]}
    }


class ReviewSubmitRequest(BaseModel):
    rating: int
    comment: str = Field(max_length=5_000)

    model_config = {"json_schema_extra": {"examples": [{"rating": 5, "comment": "Great work, on time."}]}}


class BuyerRatingRequest(BaseModel):
    rating: int
    comment: str | None = Field(default=None, max_length=5_000)


class ReviewResponse(BaseModel):
    id: int
    order_id: int
    reviewer_id: int
    reviewee_id: int
    rating: int | None = None
    comment: str | None = None
    submitted_at: datetime | None = None
    buyer_rating: int | None = None
    buyer_comment: str | None = None
    buyer_rated_at: datetime | None = None

    model_config = {"from_attributes": True}


class OrderReviewStatusResponse(BaseModel):
    order_id: int
    review: ReviewResponse | None = None
    buyer_rated: bool
