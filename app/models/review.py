from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Text
from sqlalchemy.sql import func

from app.models.database import Base


class Review(Base):
    """One row per order.

    The seller axis (rating/comment/submitted_at) is written by the buyer, the
    buyer axis (buyer_rating/buyer_comment/buyer_rated_at) by the provider.
    reviewer_id/reviewee_id always describe the seller axis: buyer -> provider.
    """

    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("rating IS NULL OR (rating BETWEEN 1 AND 5)", name="ck_reviews_rating_range"),
        CheckConstraint(
            "buyer_rating IS NULL OR (buyer_rating BETWEEN 1 AND 5)",
            name="ck_reviews_buyer_rating_range",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), unique=True, nullable=False)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    reviewee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=True)
    comment = Column(Text, nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    buyer_rating = Column(Integer, nullable=True)
    buyer_comment = Column(Text, nullable=True)
    buyer_rated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
