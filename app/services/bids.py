import logging

from sqlalchemy.orm import Session

from app.config import settings
from app.models import Bid, Project, User
from app.services import token_ledger
from app.services.context import ActorContext
from app.services.errors import DuplicateRequest, Forbidden, InsufficientTokens, InvalidState, NotFound, ValidationFailed
from app.services.notifications import enqueue_notification
from app.services.offers import parse_amount
from app.services.unit_of_work import atomic, flush_unique

logger = logging.getLogger(__name__)


def _find_bid(db: Session, seller_id: int, idempotency_key: str) -> Bid | None:
    return (
        db.query(Bid)
        .filter(Bid.seller_id == seller_id, Bid.idempotency_key == idempotency_key)
        .first()
    )


def place_bid(
    db: Session,
    actor: ActorContext,
    project_id: int,
    bid_amount,
    message: str,
    idempotency_key: str | None = None,
) -> Bid:
    """Spend one token and create the bid in a single transaction.

    If the balance is empty nothing is written. A repeated idempotency key
    returns the original bid and does not debit again.
    """
    if not actor.is_seller:
        raise Forbidden("Only sellers can place bids")
    amount = parse_amount(bid_amount, "Please enter a valid bid amount")
    message = (message or "").strip()
    min_length = settings.MIN_BID_MESSAGE_LENGTH
    if len(message) < min_length:
        raise ValidationFailed(f"Please enter a message of at least {min_length} characters.")

    if idempotency_key:
        existing = _find_bid(db, actor.user_id, idempotency_key)
        if existing:
            logger.info("Bid %s replayed for seller %s", idempotency_key, actor.user_id)
            return existing

    try:
        with atomic(db, "place_bid"):
            project = db.query(Project).filter(Project.id == project_id).first()
            if not project:
                raise NotFound("Project not found")
            if project.status != "open":
                raise InvalidState("This project is no longer accepting bids")
            if project.owner_id == actor.user_id:
                raise Forbidden("You cannot bid on your own project")

            if not token_ledger.debit_token(db, actor.user_id):
                logger.warning("Seller %s has no tokens left to bid on project %s", actor.user_id, project_id)
                raise InsufficientTokens()

            bid = Bid(
                project_id=project.id,
                seller_id=actor.user_id,
                bid_amount=amount,
                message=message,
                status="pending",
                idempotency_key=idempotency_key,
            )
            db.add(bid)
            flush_unique(db, "bid")

            seller = db.get(User, actor.user_id)
            seller_name = (seller.display_name or seller.email) if seller else "a seller"
            enqueue_notification(
                db,
                user_id=project.owner_id,
                title=f"New bid from {seller_name}",
                description=f"{seller_name} bid {amount} on \"{project.title}\"",
                notification_type="bid",
                related_id=bid.id,
            )
    except DuplicateRequest:
        existing = _find_bid(db, actor.user_id, idempotency_key) if idempotency_key else None
        if existing is None:
            raise
        return existing

    logger.info("Seller %s placed bid %s on project %s", actor.user_id, bid.id, project_id)
    return bid


def list_bids(db: Session, actor: ActorContext) -> list[Bid]:
    return (
        db.query(Bid)
        .filter(Bid.seller_id == actor.user_id)
        .order_by(Bid.created_at.desc(), Bid.id.desc())
        .all()
    )
