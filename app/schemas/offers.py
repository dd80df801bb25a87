from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from app.schemas.common import MoneyResponse


class PaymentMethod(str, Enum):
    STRIPE = "stripe"
    PAYPAL = "paypal"


class OfferCreateRequest(BaseModel):
    buyer_id: int
    title: str = Field(max_length=255)
    description: str
    amount: Decimal
    payment_method: PaymentMethod
    project_id: int | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "buyer_id": 2,
                    "title": "Landing page redesign",
                    "description": "Two design rounds and a responsive build.",
                    "amount": "450.00",
                    "payment_method": "stripe",
                }
            ]
        }
    }


class OfferResponse(MoneyResponse):
    id: int
    seller_id: int
    buyer_id: int
    project_id: int | None = None
    title: str
    description: str
    amount: Decimal
    currency: str
    payment_method: PaymentMethod
    payment_link: str | None = None
    status: str
    order_id: int | None = None
    created_at: datetime | None = None
