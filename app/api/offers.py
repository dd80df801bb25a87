from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.dependencies import get_actor
from app.models import get_db
from app.schemas.milestones import MilestoneBatchRequest, MilestoneBatchResponse, MilestoneResponse
from app.schemas.offers import OfferCreateRequest, OfferResponse
from app.schemas.orders import OrderResponse
from app.services import milestones, offers
from app.services.context import ActorContext

router = APIRouter()


@router.post(
    "",
    response_model=OfferResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send an offer to a buyer",
)
def create_offer(
    body: OfferCreateRequest,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    """Stores the offer with a payment link for the chosen method and notifies the buyer."""
    return offers.create_offer(
        db,
        actor,
        buyer_id=body.buyer_id,
        title=body.title,
        description=body.description,
        amount=body.amount,
        payment_method=body.payment_method.value,
        project_id=body.project_id,
    )


@router.get(
    "/{offer_id}",
    response_model=OfferResponse,
    summary="Get offer by ID",
)
def get_offer(
    offer_id: int,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    return offers.get_offer(db, actor, offer_id)


@router.post(
    "/{offer_id}/accept",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Accept an offer",
)
def accept_offer(
    offer_id: int,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    """Buyer accepts a pending offer. Returns the order it opened."""
    return offers.accept_offer(db, actor, offer_id)


@router.post(
    "/{offer_id}/decline",
    response_model=OfferResponse,
    summary="Decline an offer",
)
def decline_offer(
    offer_id: int,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    return offers.decline_offer(db, actor, offer_id)


@router.get(
    "/{offer_id}/milestones",
    response_model=list[MilestoneResponse],
    summary="List milestones of an offer",
)
def list_milestones(
    offer_id: int,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    return milestones.list_milestones(db, actor, offer_id)


@router.put(
    "/{offer_id}/milestones",
    response_model=MilestoneBatchResponse,
    summary="Create or edit milestones",
)
def upsert_milestones(
    offer_id: int,
    body: MilestoneBatchRequest,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    """
    Items without an id are created, items with an id update that milestone.
    Every item must have an amount above zero and a future due date; a single
    bad item rejects the whole batch. Replaying a batch_key with the same items returns the
    milestones it created the first time; reusing it for different items is a 409.
    """
    result = milestones.upsert_milestones(db, actor, offer_id, body.items, batch_key=body.batch_key)
    return MilestoneBatchResponse(
        created=[MilestoneResponse.model_validate(m) for m in result.created],
        updated=[MilestoneResponse.model_validate(m) for m in result.updated],
        deduplicated=result.deduplicated,
    )
