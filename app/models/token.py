from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from app.models.database import Base


class TokenPlan(Base):
    __tablename__ = "token_plans"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(64), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    tokens = Column(Integer, nullable=False, default=0)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="GBP")
    is_popular = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class TokenBalance(Base):
    __tablename__ = "token_balances"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_token_balances_non_negative"),)

    seller_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    balance = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class TokenPurchase(Base):
    __tablename__ = "token_purchases"
    __table_args__ = (
        CheckConstraint("tokens > 0", name="ck_token_purchases_positive_tokens"),
        UniqueConstraint("seller_id", "purchase_key", name="uq_token_purchases_seller_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("token_plans.id"), nullable=False)
    tokens = Column(Integer, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="GBP")
    status = Column(String(32), nullable=False, default="completed")
    purchase_key = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
