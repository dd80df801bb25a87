from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from app.models.database import Base


class Milestone(Base):
    __tablename__ = "milestones"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_milestones_positive_amount"),)

    id = Column(Integer, primary_key=True, index=True)
    offer_id = Column(Integer, ForeignKey("offers.id"), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="GBP")
    due_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(32), nullable=False, default="pending")  # pending | paid
    payment_status = Column(String(32), nullable=False, default="unpaid")  # unpaid | paid
    batch_key = Column(String(128), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
