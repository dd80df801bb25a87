"""Order state machine.

    pending -> in_progress -> revision -> completed
    any non-terminal state -> cancelled

Moves only go forward (stages may be skipped). completed and cancelled are
terminal. Every status write is a compare-and-set on the status that was read,
so two parties racing on the same order cannot both succeed.
"""

import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.config import settings
from app.models import Order, Review
from app.models.database import db_datetime
from app.services import reputation
from app.services.clock import utcnow
from app.services.context import ActorContext
from app.services.errors import Forbidden, InvalidState, NotFound, ValidationFailed
from app.services.notifications import enqueue_notification
from app.services.unit_of_work import atomic

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in_progress"
STATUS_REVISION = "revision"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

PROGRESSION = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_REVISION, STATUS_COMPLETED)
ORDER_STATUSES = PROGRESSION + (STATUS_CANCELLED,)
TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_CANCELLED})

STATUS_MESSAGES = {
    STATUS_IN_PROGRESS: "Your order is now in progress",
    STATUS_REVISION: "A revision has been requested for this order",
    STATUS_COMPLETED: "Your order has been completed",
    STATUS_CANCELLED: "Your order has been cancelled",
}


def can_transition(current: str, target: str) -> bool:
    if current in TERMINAL_STATUSES or current not in PROGRESSION:
        return False
    if target == STATUS_CANCELLED:
        return True
    if target not in PROGRESSION:
        return False
    return PROGRESSION.index(target) > PROGRESSION.index(current)


def _load_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
    if not order:
        raise NotFound("Order not found")
    return order


def _is_party(actor: ActorContext, order: Order) -> bool:
    return actor.user_id in (order.buyer_id, order.provider_id)


def _compare_and_set(db: Session, order: Order, values: dict, extra_filters=()) -> None:
    """Apply values only if the order still has the status we read."""
    now = db_datetime(db, utcnow())
    target = values.get("status", order.status)
    payload = {**values, "updated_at": now}
    if target == STATUS_COMPLETED and "completed_at" not in payload:
        payload["completed_at"] = now
    updated = (
        db.query(Order)
        .filter(Order.id == order.id, Order.status == order.status, *extra_filters)
        .update(payload, synchronize_session=False)
    )
    if updated != 1:
        logger.warning("Order %s changed concurrently (expected status %s)", order.id, order.status)
        raise InvalidState("Order was modified by another request, reload and retry")


def _notify_status(db: Session, order: Order, target: str) -> None:
    recipient = order.provider_id if target == STATUS_REVISION else order.buyer_id
    enqueue_notification(
        db,
        user_id=recipient,
        title=f"Order update: {order.title}",
        description=STATUS_MESSAGES.get(target, f"Order status changed to {target}"),
        notification_type="order",
        related_id=order.id,
    )


def get_order(db: Session, actor: ActorContext, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFound("Order not found")
    if not actor.is_admin and not _is_party(actor, order):
        raise Forbidden()
    return order


def list_orders(
    db: Session,
    actor: ActorContext,
    status: str | None = None,
    as_role: str | None = None,
) -> list[Order]:
    query = db.query(Order)
    if as_role == "buyer":
        query = query.filter(Order.buyer_id == actor.user_id)
    elif as_role == "provider":
        query = query.filter(Order.provider_id == actor.user_id)
    elif as_role is None:
        query = query.filter(or_(Order.buyer_id == actor.user_id, Order.provider_id == actor.user_id))
    else:
        raise ValidationFailed("as_role must be 'buyer' or 'provider'")
    if status is not None:
        if status not in ORDER_STATUSES:
            raise ValidationFailed(f"Unknown order status: {status}")
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def _may_request(actor: ActorContext, order: Order, target: str) -> bool:
    if actor.is_admin:
        return True
    if target == STATUS_IN_PROGRESS:
        return actor.user_id == order.provider_id
    if target == STATUS_REVISION:
        return actor.user_id == order.buyer_id
    if target == STATUS_CANCELLED:
        return _is_party(actor, order)
    # completion goes through delivery / acceptance
    return False


def transition_order(db: Session, actor: ActorContext, order_id: int, target: str) -> Order:
    if target not in ORDER_STATUSES:
        raise ValidationFailed(f"Unknown order status: {target}")
    with atomic(db, "transition_order"):
        order = _load_order(db, order_id)
        if not actor.is_admin and not _is_party(actor, order):
            raise Forbidden()
        if not can_transition(order.status, target):
            raise InvalidState(f"Cannot move order from {order.status} to {target}")
        if not _may_request(actor, order, target):
            raise Forbidden()

        previous = order.status
        values = {"status": target}
        if target == STATUS_REVISION:
            values["delivered_at"] = None
        _compare_and_set(db, order, values)
        _notify_status(db, order, target)
    logger.info("Order %s moved %s -> %s by user %s", order_id, previous, target, actor.user_id)
    return order


def submit_delivery(db: Session, actor: ActorContext, order_id: int, note: str) -> Order:
    """Provider delivers with a note.

    The delivery stamp, the buyer notification and (unless buyer acceptance is
    required) completion are committed together.
    """
    note = (note or "").strip()
    complete_now = not settings.REQUIRE_BUYER_ACCEPTANCE
    with atomic(db, "submit_delivery"):
        order = _load_order(db, order_id)
        if actor.user_id != order.provider_id:
            raise Forbidden()
        if order.status in TERMINAL_STATUSES:
            raise InvalidState(f"Cannot deliver an order that is {order.status}")
        if not note:
            raise ValidationFailed("Please add a delivery note.")

        now = db_datetime(db, utcnow())
        values = {"delivered_at": now, "delivery_note": note}
        if complete_now:
            values["status"] = STATUS_COMPLETED
        _compare_and_set(db, order, values)
        enqueue_notification(
            db,
            user_id=order.buyer_id,
            title=f"Order delivered: {order.title}",
            description=f"DELIVERY:\n{note}",
            notification_type="order",
            related_id=order.id,
        )
        if complete_now:
            _notify_status(db, order, STATUS_COMPLETED)
    logger.info("Order %s delivered by provider %s (completed=%s)", order_id, actor.user_id, complete_now)
    return order


def mark_delivered(db: Session, actor: ActorContext, order_id: int) -> Order:
    """Stamp delivered_at without completing the order."""
    with atomic(db, "mark_delivered"):
        order = _load_order(db, order_id)
        if actor.user_id != order.provider_id:
            raise Forbidden()
        if order.status in TERMINAL_STATUSES:
            raise InvalidState(f"Cannot deliver an order that is {order.status}")
        if order.delivered_at is not None:
            raise InvalidState("Order is already marked as delivered")

        _compare_and_set(
            db,
            order,
            {"delivered_at": db_datetime(db, utcnow())},
            extra_filters=(Order.delivered_at.is_(None),),
        )
        enqueue_notification(
            db,
            user_id=order.buyer_id,
            title=f"Order delivered: {order.title}",
            description="Your seller marked this order as delivered. Please review and accept it.",
            notification_type="order",
            related_id=order.id,
        )
    logger.info("Order %s marked delivered by provider %s", order_id, actor.user_id)
    return order


def accept_delivery(db: Session, actor: ActorContext, order_id: int) -> Order:
    with atomic(db, "accept_delivery"):
        order = _load_order(db, order_id)
        if actor.user_id != order.buyer_id:
            raise Forbidden()
        if order.status in TERMINAL_STATUSES:
            raise InvalidState(f"Cannot accept an order that is {order.status}")
        if order.delivered_at is None:
            raise InvalidState("Order has not been delivered yet")

        _compare_and_set(
            db,
            order,
            {"status": STATUS_COMPLETED, "buyer_accepted": True},
            extra_filters=(Order.delivered_at.isnot(None),),
        )
        enqueue_notification(
            db,
            user_id=order.provider_id,
            title=f"Delivery accepted: {order.title}",
            description="The buyer accepted your delivery. The order is now complete.",
            notification_type="order",
            related_id=order.id,
        )
    logger.info("Order %s accepted by buyer %s", order_id, actor.user_id)
    return order


def submit_review(db: Session, actor: ActorContext, order_id: int, rating: int, comment: str) -> Review:
    return reputation.rate_seller(db, actor, order_id, rating, comment)
