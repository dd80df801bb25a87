from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.dependencies import get_actor
from app.models import get_db
from app.schemas.milestones import MilestoneResponse
from app.services import milestones
from app.services.context import ActorContext

router = APIRouter()


@router.post(
    "/{milestone_id}/paid",
    response_model=MilestoneResponse,
    summary="Mark milestone as paid",
)
def mark_milestone_paid(
    milestone_id: int,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    """Buyer confirms payment of a milestone through its payment link."""
    return milestones.mark_milestone_paid(db, actor, milestone_id)
