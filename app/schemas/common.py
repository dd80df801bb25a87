from decimal import Decimal

from pydantic import BaseModel, field_serializer


class MoneyResponse(BaseModel):
    """Serialises money fields as plain decimal strings ("120.5", not "1.205E+2")."""

    @field_serializer("price", "amount", "bid_amount", "rating", check_fields=False)
    def serialize_money(self, value: Decimal | None) -> str | None:
        if value is None:
            return None
        normalized = Decimal(value).normalize()
        return format(normalized, "f")

    model_config = {"from_attributes": True}
