import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from sqlalchemy.orm import Session

from app.models import Milestone, Offer
from app.models.database import db_datetime
from app.schemas.milestones import MilestoneItem
from app.services.clock import as_utc, utcnow
from app.services.context import ActorContext
from app.services.errors import DuplicateRequest, Forbidden, InvalidState, NotFound, ValidationFailed
from app.services.notifications import enqueue_notification
from app.services.offers import parse_amount
from app.services.unit_of_work import atomic

logger = logging.getLogger(__name__)


@dataclass
class MilestoneBatchResult:
    created: list[Milestone] = field(default_factory=list)
    updated: list[Milestone] = field(default_factory=list)
    deduplicated: bool = False

    @property
    def total_new_amount(self) -> Decimal:
        return sum((Decimal(m.amount) for m in self.created), Decimal("0"))


def validate_milestone_items(items: Sequence[MilestoneItem], now: datetime) -> list[dict]:
    """Validate the whole batch up front; one bad item rejects all of them."""
    if not items:
        raise ValidationFailed("At least one milestone is required")

    cleaned = []
    seen_ids = set()
    for index, item in enumerate(items, start=1):
        title = (item.title or "").strip()
        description = (item.description or "").strip()
        if not title or not description or item.amount is None or item.due_date is None:
            raise ValidationFailed(f"Milestone {index}: please fill in all milestone fields")
        amount = parse_amount(item.amount, f"Milestone {index}: please enter a valid amount")
        due_date = as_utc(item.due_date)
        if due_date <= now:
            raise ValidationFailed(f"Milestone {index}: due dates must be in the future")
        if item.id is not None:
            if item.id in seen_ids:
                raise ValidationFailed(f"Milestone {index}: duplicate milestone id {item.id}")
            seen_ids.add(item.id)
        cleaned.append(
            {
                "id": item.id,
                "title": title,
                "description": description,
                "amount": amount,
                "due_date": due_date,
            }
        )
    return cleaned


def _load_engagement(db: Session, engagement_id: int) -> Offer:
    offer = db.query(Offer).filter(Offer.id == engagement_id).first()
    if not offer:
        raise NotFound("Offer not found")
    return offer


def _matches(milestone: Milestone, item: dict) -> bool:
    return (
        milestone.title == item["title"]
        and milestone.description == item["description"]
        and Decimal(milestone.amount) == item["amount"]
        and as_utc(milestone.due_date) == item["due_date"]
    )


def _is_replay(db: Session, offer: Offer, previous: Sequence[Milestone], cleaned: list[dict]) -> bool:
    """True when the request carries exactly what the stored batch already holds."""
    new_items = [item for item in cleaned if item["id"] is None]
    if len(previous) != len(new_items):
        return False
    if not all(_matches(m, item) for m, item in zip(previous, new_items)):
        return False
    for item in cleaned:
        if item["id"] is None:
            continue
        row = (
            db.query(Milestone)
            .filter(Milestone.id == item["id"], Milestone.offer_id == offer.id, Milestone.seller_id == offer.seller_id)
            .first()
        )
        if row is None or not _matches(row, item):
            return False
    return True


def upsert_milestones(
    db: Session,
    actor: ActorContext,
    engagement_id: int,
    items: Sequence[MilestoneItem],
    batch_key: str | None = None,
) -> MilestoneBatchResult:
    """Create new milestones and edit existing ones on an engagement, all or nothing."""
    now = utcnow()
    cleaned = validate_milestone_items(items, now)
    new_items = [item for item in cleaned if item["id"] is None]
    existing_items = [item for item in cleaned if item["id"] is not None]

    result = MilestoneBatchResult()
    with atomic(db, "upsert_milestones"):
        offer = _load_engagement(db, engagement_id)
        if actor.user_id != offer.seller_id:
            logger.warning("User %s tried to edit milestones on offer %s", actor.user_id, offer.id)
            raise Forbidden()
        if offer.status == "declined":
            raise InvalidState("Milestones cannot be added to a declined offer")

        if batch_key and new_items:
            previous = (
                db.query(Milestone)
                .filter(Milestone.offer_id == offer.id, Milestone.batch_key == batch_key)
                .order_by(Milestone.id.asc())
                .all()
            )
            if previous:
                if not _is_replay(db, offer, previous, cleaned):
                    logger.warning(
                        "Milestone batch key %s reused on offer %s with a different payload",
                        batch_key,
                        offer.id,
                    )
                    raise DuplicateRequest("This batch key was already used for a different set of milestones")
                logger.info("Milestone batch %s on offer %s already applied", batch_key, offer.id)
                return MilestoneBatchResult(created=previous, deduplicated=True)

        if existing_items:
            ids = [item["id"] for item in existing_items]
            rows = {
                m.id: m
                for m in db.query(Milestone)
                .filter(
                    Milestone.id.in_(ids),
                    Milestone.seller_id == actor.user_id,
                    Milestone.offer_id == offer.id,
                )
                .with_for_update()
                .all()
            }
            if len(rows) != len(ids):
                raise Forbidden()
            if any(m.status != "pending" for m in rows.values()):
                raise InvalidState("Paid milestones cannot be edited")

        db_now = db_datetime(db, now)
        for item in new_items:
            milestone = Milestone(
                offer_id=offer.id,
                seller_id=actor.user_id,
                buyer_id=offer.buyer_id,
                title=item["title"],
                description=item["description"],
                amount=item["amount"],
                currency=offer.currency,
                due_date=db_datetime(db, item["due_date"]),
                status="pending",
                payment_status="unpaid",
                batch_key=batch_key,
            )
            db.add(milestone)
            result.created.append(milestone)
        db.flush()

        for item in existing_items:
            updated = (
                db.query(Milestone)
                .filter(
                    Milestone.id == item["id"],
                    Milestone.seller_id == actor.user_id,
                    Milestone.offer_id == offer.id,
                )
                .update(
                    {
                        "title": item["title"],
                        "description": item["description"],
                        "amount": item["amount"],
                        "due_date": db_datetime(db, item["due_date"]),
                        "updated_at": db_now,
                    },
                    synchronize_session=False,
                )
            )
            if updated != 1:
                raise Forbidden()
            result.updated.append(rows[item["id"]])

        enqueue_notification(
            db,
            user_id=offer.buyer_id,
            title="Milestones updated",
            description=(
                f"{len(result.created)} milestone(s) added, {len(result.updated)} updated. "
                f"New amount: {offer.currency} {result.total_new_amount}"
            ),
            notification_type="milestone",
            related_id=offer.id,
        )
    # updated rows were written with synchronize_session=False
    for milestone in result.updated:
        db.refresh(milestone)
    logger.info(
        "Milestones on offer %s: %s created, %s updated",
        engagement_id,
        len(result.created),
        len(result.updated),
    )
    return result


def list_milestones(db: Session, actor: ActorContext, engagement_id: int) -> list[Milestone]:
    offer = _load_engagement(db, engagement_id)
    if not actor.is_admin and actor.user_id not in (offer.seller_id, offer.buyer_id):
        raise Forbidden()
    return (
        db.query(Milestone)
        .filter(Milestone.offer_id == offer.id)
        .order_by(Milestone.due_date.asc(), Milestone.id.asc())
        .all()
    )


def mark_milestone_paid(db: Session, actor: ActorContext, milestone_id: int) -> Milestone:
    """Buyer records that a milestone was paid through the payment link."""
    with atomic(db, "mark_milestone_paid"):
        milestone = db.query(Milestone).filter(Milestone.id == milestone_id).with_for_update().first()
        if not milestone:
            raise NotFound("Milestone not found")
        if actor.user_id != milestone.buyer_id:
            raise Forbidden()
        if milestone.status == "paid":
            raise InvalidState("Milestone is already paid")

        updated = (
            db.query(Milestone)
            .filter(Milestone.id == milestone.id, Milestone.status == "pending")
            .update(
                {"status": "paid", "payment_status": "paid", "updated_at": db_datetime(db, utcnow())},
                synchronize_session=False,
            )
        )
        if updated != 1:
            raise InvalidState("Milestone was modified by another request, reload and retry")
        enqueue_notification(
            db,
            user_id=milestone.seller_id,
            title="Milestone paid",
            description=f"The buyer marked \"{milestone.title}\" as paid.",
            notification_type="milestone",
            related_id=milestone.id,
        )
    logger.info("Milestone %s marked paid by buyer %s", milestone_id, actor.user_id)
    return milestone
