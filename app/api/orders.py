from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.dependencies import get_actor
from app.models import get_db
from app.schemas.orders import (
    BuyerRatingRequest,
    DeliverySubmitRequest,
    OrderResponse,
    OrderReviewStatusResponse,
    OrderStatus,
    OrderStatusUpdateRequest,
    ReviewResponse,
    ReviewSubmitRequest,
)
from app.services import order_lifecycle, reputation
from app.services.context import ActorContext

router = APIRouter()


@router.get(
    "",
    response_model=list[OrderResponse],
    summary="List my orders",
)
def list_orders(
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
    status_filter: Annotated[OrderStatus | None, Query(alias="status")] = None,
    as_role: Annotated[str | None, Query(pattern="^(buyer|provider)$")] = None,
):
    """Orders where the caller is the buyer or the provider, newest first."""
    return order_lifecycle.list_orders(
        db,
        actor,
        status=status_filter.value if status_filter else None,
        as_role=as_role,
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order by ID",
)
def get_order(
    order_id: int,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    return order_lifecycle.get_order(db, actor, order_id)


@router.post(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Move an order to another status",
)
def update_order_status(
    order_id: int,
    body: OrderStatusUpdateRequest,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    """
    Forward-only moves along pending, in_progress, revision, completed.
    Either party may cancel an open order. Terminal orders cannot change.
    """
    return order_lifecycle.transition_order(db, actor, order_id, body.status.value)


@router.post(
    "/{order_id}/deliver",
    response_model=OrderResponse,
    summary="Mark order as delivered",
)
def mark_delivered(
    order_id: int,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    """Provider stamps the delivery time. The buyer still has to accept."""
    return order_lifecycle.mark_delivered(db, actor, order_id)


@router.post(
    "/{order_id}/delivery",
    response_model=OrderResponse,
    summary="Submit delivery with a note",
)
def submit_delivery(
    order_id: int,
    body: DeliverySubmitRequest,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    """
    Provider delivers the work. Completes the order unless buyer acceptance
    is required, and notifies the buyer with the delivery note.
    """
    return order_lifecycle.submit_delivery(db, actor, order_id, body.note)


@router.post(
    "/{order_id}/accept",
    response_model=OrderResponse,
    summary="Accept a delivered order",
)
def accept_delivery(
    order_id: int,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    return order_lifecycle.accept_delivery(db, actor, order_id)


@router.post(
    "/{order_id}/review",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Review the provider",
)
def submit_review(
    order_id: int,
    body: ReviewSubmitRequest,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    """Buyer rates the provider 1-5 once the order is completed. One review per order."""
    return order_lifecycle.submit_review(db, actor, order_id, body.rating, body.comment)


@router.post(
    "/{order_id}/buyer-rating",
    response_model=ReviewResponse,
    summary="Rate the buyer",
)
def rate_buyer(
    order_id: int,
    body: BuyerRatingRequest,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    """Provider rates the buyer 1-5 once the order is completed."""
    return reputation.rate_buyer(db, actor, order_id, body.rating, body.comment)


@router.get(
    "/{order_id}/review",
    response_model=OrderReviewStatusResponse,
    summary="Get the order's review",
)
def get_review(
    order_id: int,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    review = reputation.get_review(db, actor, order_id)
    return OrderReviewStatusResponse(
        order_id=order_id,
        review=ReviewResponse.model_validate(review) if review else None,
        buyer_rated=reputation.has_buyer_been_rated(db, order_id),
    )
