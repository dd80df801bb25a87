from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.dependencies import get_actor
from app.models import get_db
from app.schemas.bids import BidCreateRequest, BidResponse
from app.services import bids
from app.services.context import ActorContext

projects_router = APIRouter()
router = APIRouter()


@projects_router.post(
    "/{project_id}/bids",
    response_model=BidResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place a bid on a project",
)
def place_bid(
    project_id: int,
    body: BidCreateRequest,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    """
    Costs one token. Returns 402 when the seller has no tokens left.
    Reusing an idempotency_key returns the original bid without spending again.
    """
    return bids.place_bid(
        db,
        actor,
        project_id,
        body.bid_amount,
        body.message,
        idempotency_key=body.idempotency_key,
    )


@router.get(
    "/me",
    response_model=list[BidResponse],
    summary="List my bids",
)
def my_bids(
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    return bids.list_bids(db, actor)
