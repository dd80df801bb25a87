from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.dependencies import get_actor, require_admin
from app.models import get_db
from app.schemas.notifications import DispatchResponse, NotificationResponse
from app.services import notifications
from app.services.context import ActorContext

router = APIRouter()


@router.get(
    "",
    response_model=list[NotificationResponse],
    summary="List my notifications",
)
def list_notifications(
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
    unread_only: bool = False,
):
    return notifications.list_notifications(db, actor, unread_only=unread_only)


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark notification as read",
)
def mark_read(
    notification_id: int,
    actor: Annotated[ActorContext, Depends(get_actor)],
    db: Annotated[Session, Depends(get_db)],
):
    return notifications.mark_read(db, actor, notification_id)


@router.post(
    "/dispatch",
    response_model=DispatchResponse,
    summary="Dispatch pending notifications",
)
def dispatch(
    _admin: Annotated[ActorContext, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    limit: Annotated[int | None, Query(ge=1)] = None,
):
    """Hands undispatched notifications to the delivery sink. Admin only."""
    result = notifications.dispatch_pending(db, limit=limit)
    return DispatchResponse(dispatched=result.dispatched, failed=result.failed)
