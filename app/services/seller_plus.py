import logging
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.orm import Session

from app.config import settings
from app.models import SellerSubscription, Service, User
from app.models.database import db_datetime
from app.services.clock import as_utc, utcnow
from app.services.context import ActorContext
from app.services.errors import Forbidden, NotFound
from app.services.notifications import enqueue_notification
from app.services.unit_of_work import atomic

logger = logging.getLogger(__name__)

SELLER_PLUS_SLUG = "seller-plus"


@dataclass
class SellerPlusResult:
    subscription: SellerSubscription
    activated: bool
    featured_services: int


def active_subscription(db: Session, seller_id: int) -> SellerSubscription | None:
    now = utcnow()
    candidates = (
        db.query(SellerSubscription)
        .filter(
            SellerSubscription.seller_id == seller_id,
            SellerSubscription.plan_slug == SELLER_PLUS_SLUG,
            SellerSubscription.status == "active",
        )
        .order_by(SellerSubscription.ends_at.desc())
        .all()
    )
    for subscription in candidates:
        if as_utc(subscription.ends_at) > now:
            return subscription
    return None


def purchase_seller_plus(db: Session, actor: ActorContext) -> SellerPlusResult:
    """Start a Seller Plus period and feature every service the seller offers.

    While a subscription is still running this is a no-op.
    """
    if not actor.is_seller:
        raise Forbidden("Only sellers can subscribe to Seller Plus")

    with atomic(db, "purchase_seller_plus"):
        # serialises concurrent purchases by the same seller
        seller = db.query(User).filter(User.id == actor.user_id).with_for_update().first()
        if not seller:
            raise NotFound("Seller not found")

        current = active_subscription(db, seller.id)
        if current is not None:
            logger.info("Seller %s already has Seller Plus until %s", seller.id, current.ends_at)
            featured = (
                db.query(Service)
                .filter(Service.provider_id == seller.id, Service.is_featured == True)  # noqa: E712
                .count()
            )
            return SellerPlusResult(subscription=current, activated=False, featured_services=featured)

        now = utcnow()
        subscription = SellerSubscription(
            seller_id=seller.id,
            plan_slug=SELLER_PLUS_SLUG,
            status="active",
            starts_at=db_datetime(db, now),
            ends_at=db_datetime(db, now + timedelta(days=settings.SELLER_PLUS_DAYS)),
        )
        db.add(subscription)
        featured = (
            db.query(Service)
            .filter(Service.provider_id == seller.id)
            .update({"is_featured": True}, synchronize_session=False)
        )
        db.flush()
        enqueue_notification(
            db,
            user_id=seller.id,
            title="Seller Plus activated",
            description="Seller Plus activated! Your services are now featured.",
            notification_type="system",
            related_id=subscription.id,
        )
    logger.info("Seller Plus activated for seller %s (%s services featured)", actor.user_id, featured)
    return SellerPlusResult(subscription=subscription, activated=True, featured_services=featured)
