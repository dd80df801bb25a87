import logging
from decimal import Decimal, InvalidOperation

from sqlalchemy.orm import Session

from app.config import settings
from app.models import Offer, Order, Project, User
from app.services.context import ActorContext
from app.services.errors import Forbidden, InvalidState, NotFound, ValidationFailed
from app.services.notifications import enqueue_notification
from app.services.payment_links import generate_payment_link, get_payment_link_providers
from app.services.unit_of_work import atomic

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
MAX_AMOUNT = Decimal("10000000000")


def parse_amount(value, message: str = "Please enter a valid amount") -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationFailed(message)
    if not amount.is_finite() or amount <= 0 or amount >= MAX_AMOUNT:
        raise ValidationFailed(message)
    # amounts are stored as NUMERIC(12, 2)
    if amount != amount.quantize(CENT):
        raise ValidationFailed(f"{message} (at most 2 decimal places)")
    return amount


def get_offer(db: Session, actor: ActorContext, offer_id: int) -> Offer:
    offer = db.query(Offer).filter(Offer.id == offer_id).first()
    if not offer:
        raise NotFound("Offer not found")
    if not actor.is_admin and actor.user_id not in (offer.seller_id, offer.buyer_id):
        raise Forbidden()
    return offer


def create_offer(
    db: Session,
    actor: ActorContext,
    buyer_id: int,
    title: str,
    description: str,
    amount,
    payment_method: str,
    project_id: int | None = None,
) -> Offer:
    title = (title or "").strip()
    description = (description or "").strip()
    if not title or not description:
        raise ValidationFailed("Please fill in all required fields")
    amount = parse_amount(amount)
    if payment_method not in get_payment_link_providers():
        raise ValidationFailed(f"Unsupported payment method: {payment_method}")
    if buyer_id == actor.user_id:
        raise ValidationFailed("You cannot send an offer to yourself")

    with atomic(db, "create_offer"):
        seller = db.get(User, actor.user_id)
        if seller is None:
            raise NotFound("Seller not found")
        if db.get(User, buyer_id) is None:
            raise NotFound("Buyer not found")
        if project_id is not None and db.get(Project, project_id) is None:
            raise NotFound("Project not found")

        offer = Offer(
            seller_id=actor.user_id,
            buyer_id=buyer_id,
            project_id=project_id,
            title=title,
            description=description,
            amount=amount,
            currency=settings.DEFAULT_CURRENCY,
            payment_method=payment_method,
            status="pending",
        )
        db.add(offer)
        db.flush()
        offer.payment_link = generate_payment_link(
            offer_id=offer.id,
            payment_method=payment_method,
            amount=amount,
            currency=offer.currency,
            account_email=seller.email,
        )
        enqueue_notification(
            db,
            user_id=buyer_id,
            title="New offer received",
            description=f"{seller.display_name or seller.email} sent you an offer: {title}",
            notification_type="order",
            related_id=offer.id,
        )
    logger.info("Offer %s created by seller %s for buyer %s", offer.id, actor.user_id, buyer_id)
    return offer


def accept_offer(db: Session, actor: ActorContext, offer_id: int) -> Order:
    """Buyer accepts a pending offer, which opens the order."""
    with atomic(db, "accept_offer"):
        offer = db.query(Offer).filter(Offer.id == offer_id).with_for_update().first()
        if not offer:
            raise NotFound("Offer not found")
        if actor.user_id != offer.buyer_id:
            raise Forbidden()
        if offer.status != "pending":
            raise InvalidState(f"Offer is already {offer.status}")

        order = Order(
            title=offer.title,
            description=offer.description,
            price=offer.amount,
            status="pending",
            buyer_id=offer.buyer_id,
            provider_id=offer.seller_id,
            offer_id=offer.id,
            buyer_accepted=False,
        )
        db.add(order)
        db.flush()
        updated = (
            db.query(Offer)
            .filter(Offer.id == offer.id, Offer.status == "pending")
            .update({"status": "accepted", "order_id": order.id}, synchronize_session=False)
        )
        if updated != 1:
            raise InvalidState("Offer was modified by another request, reload and retry")
        enqueue_notification(
            db,
            user_id=offer.seller_id,
            title="Offer accepted",
            description=f"Your offer \"{offer.title}\" was accepted. A new order has been opened.",
            notification_type="order",
            related_id=order.id,
        )
    logger.info("Offer %s accepted by buyer %s, order %s opened", offer_id, actor.user_id, order.id)
    return order


def decline_offer(db: Session, actor: ActorContext, offer_id: int) -> Offer:
    with atomic(db, "decline_offer"):
        offer = db.query(Offer).filter(Offer.id == offer_id).with_for_update().first()
        if not offer:
            raise NotFound("Offer not found")
        if actor.user_id != offer.buyer_id:
            raise Forbidden()
        if offer.status != "pending":
            raise InvalidState(f"Offer is already {offer.status}")
        offer.status = "declined"
        enqueue_notification(
            db,
            user_id=offer.seller_id,
            title="Offer declined",
            description=f"Your offer \"{offer.title}\" was declined.",
            notification_type="order",
            related_id=offer.id,
        )
    return offer
