from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.schemas.common import MoneyResponse


class MilestoneItem(BaseModel):
    """One milestone in a batch. Items with an id update that milestone, the rest are created."""

    id: int | None = None
    title: str = Field(default="", max_length=255)
    description: str = ""
    amount: Decimal
    due_date: datetime


class MilestoneBatchRequest(BaseModel):
    items: list[MilestoneItem]
    batch_key: str | None = Field(default=None, max_length=128)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "batch_key": "c1f0e1f6-2d7c-4b0e-9a55-1b6a1d6b8d9e",
                    "items": [
                        {
                            "title": "Initial Assessment",
                            "description": "Audit of the current site.",
                            "amount": "150.00",
                            "due_date": "2030-01-15T12:00:00Z",
                        }
                    ],
                }
            ]
        }
    }


class MilestoneResponse(MoneyResponse):
    id: int
    offer_id: int
    seller_id: int
    buyer_id: int
    title: str
    description: str
    amount: Decimal
    currency: str
    due_date: datetime
    status: str
    payment_status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MilestoneBatchResponse(BaseModel):
    created: list[MilestoneResponse]
    updated: list[MilestoneResponse]
    deduplicated: bool = False
