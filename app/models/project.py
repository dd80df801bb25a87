from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from app.models.database import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default="open")  # open | closed
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Bid(Base):
    __tablename__ = "bids"
    __table_args__ = (
        CheckConstraint("bid_amount > 0", name="ck_bids_positive_amount"),
        UniqueConstraint("seller_id", "idempotency_key", name="uq_bids_seller_idempotency_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    bid_amount = Column(Numeric(12, 2), nullable=False)
    message = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default="pending")  # pending | accepted | rejected
    idempotency_key = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
