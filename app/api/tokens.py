from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.dependencies import get_actor
from app.models import get_db
from app.schemas.tokens import (
    SellerPlusResponse,
    TokenBalanceResponse,
    TokenPlanResponse,
    TokenPurchaseRequest,
    TokenPurchaseResponse,
)
from app.services import seller_plus, token_ledger
from app.services.context import ActorContext

router = APIRouter()


@router.get(
    "/plans",
    response_model=list[TokenPlanResponse],
    summary="List token plans",
)
def list_plans(
    db: Annotated[Session, Depends(get_db)],
):
    """Active plans that grant bid tokens, smallest first."""
    return token_ledger.list_plans(db)


@router.get(
    "/balance",
    response_model=TokenBalanceResponse,
    summary="Get my token balance",
)
def get_balance(
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    """Sellers only; buyers do not hold bid tokens."""
    return TokenBalanceResponse(seller_id=actor.user_id, balance=token_ledger.balance_for(db, actor))


@router.get(
    "/purchases",
    response_model=list[TokenPurchaseResponse],
    summary="List my token purchases",
)
def list_purchases(
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    return token_ledger.list_purchases(db, actor)


@router.post(
    "/purchases",
    response_model=TokenPurchaseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Buy a token plan",
)
def purchase_tokens(
    body: TokenPurchaseRequest,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    """
    Credits the plan's tokens and records the purchase together.
    Sending the same purchase_key again returns the first purchase.
    """
    return token_ledger.purchase_tokens(db, actor, body.plan_id, purchase_key=body.purchase_key)


@router.post(
    "/seller-plus",
    response_model=SellerPlusResponse,
    summary="Activate Seller Plus",
)
def purchase_seller_plus(
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    """Features all of the seller's services for the subscription period. No-op while active."""
    result = seller_plus.purchase_seller_plus(db, actor)
    subscription = result.subscription
    return SellerPlusResponse(
        subscription_id=subscription.id,
        status=subscription.status,
        starts_at=subscription.starts_at,
        ends_at=subscription.ends_at,
        activated=result.activated,
        featured_services=result.featured_services,
    )
