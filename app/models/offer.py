from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from app.models.database import Base


class Offer(Base):
    """A seller's priced proposal to a buyer; milestones hang off it."""

    __tablename__ = "offers"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_offers_positive_amount"),)

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="GBP")
    payment_method = Column(String(32), nullable=False)  # stripe | paypal
    payment_link = Column(String(1024), nullable=True)
    status = Column(String(32), nullable=False, default="pending")  # pending | accepted | declined
    order_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
