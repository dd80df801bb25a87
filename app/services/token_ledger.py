"""Per-seller token balance.

The balance is only ever changed by a single conditional UPDATE, never by
writing back a value that was read earlier.
"""

import logging

from sqlalchemy.orm import Session

from app.config import settings
from app.models import TokenBalance, TokenPlan, TokenPurchase
from app.models.database import db_datetime, upsert_insert
from app.services.clock import utcnow
from app.services.context import ActorContext
from app.services.errors import DuplicateRequest, Forbidden, NotFound, ValidationFailed
from app.services.unit_of_work import atomic, flush_unique

logger = logging.getLogger(__name__)


def _require_seller(actor: ActorContext) -> None:
    if not actor.is_seller:
        raise Forbidden("Only sellers can use tokens")


def list_plans(db: Session) -> list[TokenPlan]:
    return (
        db.query(TokenPlan)
        .filter(TokenPlan.is_active == True, TokenPlan.tokens > 0)  # noqa: E712
        .order_by(TokenPlan.tokens.asc())
        .all()
    )


def get_balance(db: Session, seller_id: int) -> int:
    row = db.get(TokenBalance, seller_id)
    return row.balance if row else 0


def balance_for(db: Session, actor: ActorContext) -> int:
    _require_seller(actor)
    return get_balance(db, actor.user_id)


def ensure_balance_row(db: Session, seller_id: int) -> None:
    table = TokenBalance.__table__
    stmt = (
        upsert_insert(db, table)
        .values(seller_id=seller_id, balance=0)
        .on_conflict_do_nothing(index_elements=[table.c.seller_id])
    )
    db.execute(stmt)


def credit_tokens(db: Session, seller_id: int, tokens: int) -> None:
    """Add tokens inside the caller's transaction."""
    if tokens <= 0:
        raise ValidationFailed("Token amount must be positive")
    ensure_balance_row(db, seller_id)
    db.query(TokenBalance).filter(TokenBalance.seller_id == seller_id).update(
        {"balance": TokenBalance.balance + tokens, "updated_at": db_datetime(db, utcnow())},
        synchronize_session=False,
    )


def debit_token(db: Session, seller_id: int) -> bool:
    """Take one token inside the caller's transaction. False when the balance is empty."""
    updated = (
        db.query(TokenBalance)
        .filter(TokenBalance.seller_id == seller_id, TokenBalance.balance >= 1)
        .update(
            {"balance": TokenBalance.balance - 1, "updated_at": db_datetime(db, utcnow())},
            synchronize_session=False,
        )
    )
    return updated == 1


def _find_purchase(db: Session, seller_id: int, purchase_key: str) -> TokenPurchase | None:
    return (
        db.query(TokenPurchase)
        .filter(TokenPurchase.seller_id == seller_id, TokenPurchase.purchase_key == purchase_key)
        .first()
    )


def purchase_tokens(
    db: Session,
    actor: ActorContext,
    plan_id: int,
    purchase_key: str | None = None,
) -> TokenPurchase:
    """Credit a plan's tokens and record the purchase in one transaction.

    A repeated purchase_key returns the original purchase without crediting again.
    """
    _require_seller(actor)
    if purchase_key:
        existing = _find_purchase(db, actor.user_id, purchase_key)
        if existing:
            logger.info("Token purchase %s replayed for seller %s", purchase_key, actor.user_id)
            return existing

    try:
        with atomic(db, "purchase_tokens"):
            plan = db.query(TokenPlan).filter(TokenPlan.id == plan_id, TokenPlan.is_active == True).first()  # noqa: E712
            if not plan:
                raise NotFound("Token plan not found")
            if plan.tokens <= 0:
                raise ValidationFailed(f"Plan '{plan.slug}' does not grant tokens")

            purchase = TokenPurchase(
                seller_id=actor.user_id,
                plan_id=plan.id,
                tokens=plan.tokens,
                amount=plan.tokens * settings.TOKEN_PRICE,
                currency=plan.currency or settings.DEFAULT_CURRENCY,
                status="completed",
                purchase_key=purchase_key,
            )
            db.add(purchase)
            flush_unique(db, "token purchase")
            credit_tokens(db, actor.user_id, plan.tokens)
    except DuplicateRequest:
        existing = _find_purchase(db, actor.user_id, purchase_key) if purchase_key else None
        if existing is None:
            raise
        return existing

    logger.info("Seller %s purchased %s tokens (plan %s)", actor.user_id, purchase.tokens, plan_id)
    return purchase


def list_purchases(db: Session, actor: ActorContext) -> list[TokenPurchase]:
    _require_seller(actor)
    return (
        db.query(TokenPurchase)
        .filter(TokenPurchase.seller_id == actor.user_id)
        .order_by(TokenPurchase.created_at.desc(), TokenPurchase.id.desc())
        .all()
    )
