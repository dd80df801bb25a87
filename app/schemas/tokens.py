from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.schemas.common import MoneyResponse


class TokenPlanResponse(MoneyResponse):
    id: int
    slug: str
    name: str
    description: str | None = None
    tokens: int
    price: Decimal
    currency: str
    is_popular: bool


class TokenBalanceResponse(BaseModel):
    seller_id: int
    balance: int


class TokenPurchaseRequest(BaseModel):
    plan_id: int
    purchase_key: str | None = Field(default=None, max_length=128)

    model_config = {"json_schema_extra": {"examples": [{"plan_id": 1, "purchase_key": "checkout-7f3a"}]}}


class TokenPurchaseResponse(MoneyResponse):
    id: int
    seller_id: int
    plan_id: int
    tokens: int
    amount: Decimal
    currency: str
    status: str
    created_at: datetime | None = None


class SellerPlusResponse(BaseModel):
    subscription_id: int
    status: str
    starts_at: datetime
    ends_at: datetime
    activated: bool
    featured_services: int
