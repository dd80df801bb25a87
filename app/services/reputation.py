"""Reputation ledger: the single per-order review row and its two rating axes.

Each axis is written with one INSERT ... ON CONFLICT (order_id) DO UPDATE whose
update only fires while that axis is still NULL, so two parties writing at the
same time never clobber each other and neither axis can be written twice.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models import Order, Review, User
from app.models.database import db_datetime, upsert_insert
from app.services.clock import utcnow
from app.services.context import ActorContext
from app.services.errors import Forbidden, InvalidState, NotFound, ValidationFailed
from app.services.notifications import enqueue_notification
from app.services.unit_of_work import atomic

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def validate_rating(rating: int) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationFailed("Rating must be a whole number between 1 and 5")
    if rating < MIN_RATING or rating > MAX_RATING:
        raise ValidationFailed("Rating must be between 1 and 5")
    return rating


def _write_axis(db: Session, order: Order, values: dict, axis_column) -> int | None:
    table = Review.__table__
    stmt = (
        upsert_insert(db, table)
        .values(
            order_id=order.id,
            reviewer_id=order.buyer_id,
            reviewee_id=order.provider_id,
            **values,
        )
        .on_conflict_do_update(
            index_elements=[table.c.order_id],
            set_=values,
            where=axis_column.is_(None),
        )
        .returning(table.c.id)
    )
    return db.execute(stmt).scalar_one_or_none()


def refresh_reviewee_rating(db: Session, reviewee_id: int) -> None:
    count, average = (
        db.query(func.count(Review.rating), func.avg(Review.rating))
        .filter(Review.reviewee_id == reviewee_id, Review.rating.isnot(None))
        .one()
    )
    rounded = Decimal(str(average or 0)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    db.query(User).filter(User.id == reviewee_id).update(
        {User.rating: rounded, User.review_count: count},
        synchronize_session=False,
    )


def rate_seller(db: Session, actor: ActorContext, order_id: int, rating: int, comment: str) -> Review:
    """Buyer rates the provider. Allowed once, after completion."""
    validate_rating(rating)
    comment = (comment or "").strip()
    with atomic(db, "rate_seller"):
        order = db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFound("Order not found")
        if actor.user_id != order.buyer_id:
            raise Forbidden()
        if order.status != "completed":
            raise InvalidState("Only completed orders can be reviewed")
        if not comment:
            raise ValidationFailed("Please write a short review.")

        now = db_datetime(db, utcnow())
        review_id = _write_axis(
            db,
            order,
            {"rating": rating, "comment": comment, "submitted_at": now},
            Review.__table__.c.rating,
        )
        if review_id is None:
            logger.warning("Order %s already has a seller review", order.id)
            raise InvalidState("This order has already been reviewed")

        refresh_reviewee_rating(db, order.provider_id)
        reviewer = db.get(User, actor.user_id)
        reviewer_name = (reviewer.display_name or reviewer.email) if reviewer else "A buyer"
        enqueue_notification(
            db,
            user_id=order.provider_id,
            title="New review received",
            description=f"You received a {rating}-star review from {reviewer_name}",
            notification_type="review",
            related_id=order.id,
        )
    logger.info("Seller review %s written for order %s (rating=%s)", review_id, order_id, rating)
    return db.get(Review, review_id)


def rate_buyer(
    db: Session,
    actor: ActorContext,
    order_id: int,
    rating: int,
    comment: str | None = None,
) -> Review:
    """Provider rates the buyer. Allowed once, after completion, whether or not the buyer reviewed."""
    validate_rating(rating)
    with atomic(db, "rate_buyer"):
        order = db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFound("Order not found")
        if actor.user_id != order.provider_id:
            raise Forbidden()
        if order.status != "completed":
            raise InvalidState("Only completed orders can be rated")

        now = db_datetime(db, utcnow())
        review_id = _write_axis(
            db,
            order,
            {
                "buyer_rating": rating,
                "buyer_comment": (comment or "").strip() or None,
                "buyer_rated_at": now,
            },
            Review.__table__.c.buyer_rating,
        )
        if review_id is None:
            logger.warning("Buyer on order %s has already been rated", order.id)
            raise InvalidState("You have already rated this buyer")

        enqueue_notification(
            db,
            user_id=order.buyer_id,
            title="You have been rated",
            description=f"Your seller rated you {rating} star(s) on \"{order.title}\"",
            notification_type="review",
            related_id=order.id,
        )
    logger.info("Buyer rating written for order %s (rating=%s)", order_id, rating)
    return db.get(Review, review_id)


def has_buyer_been_rated(db: Session, order_id: int) -> bool:
    row = (
        db.query(Review.id)
        .filter(Review.order_id == order_id, Review.buyer_rating.isnot(None))
        .first()
    )
    return row is not None


def get_review(db: Session, actor: ActorContext, order_id: int) -> Review | None:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFound("Order not found")
    if not actor.is_admin and actor.user_id not in (order.buyer_id, order.provider_id):
        raise Forbidden()
    return db.query(Review).filter(Review.order_id == order_id).first()
