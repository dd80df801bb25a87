import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.orm import Session

from app.config import settings
from app.models import Notification
from app.models.database import db_datetime
from app.services.clock import utcnow
from app.services.context import ActorContext
from app.services.errors import Forbidden, NotFound, ValidationFailed
from app.services.unit_of_work import atomic

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = {"order", "review", "bid", "milestone", "system"}

NotificationSink = Callable[[Notification], None]


@dataclass(frozen=True)
class DispatchResult:
    dispatched: int
    failed: int


def enqueue_notification(
    db: Session,
    user_id: int,
    title: str,
    description: str,
    notification_type: str,
    related_id: int | None = None,
) -> Notification:
    """Add a notification to the caller's transaction. Never commits."""
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type: {notification_type}")
    notification = Notification(
        user_id=user_id,
        title=title,
        description=description,
        type=notification_type,
        related_id=related_id,
        is_read=False,
        dispatch_attempts=0,
    )
    db.add(notification)
    return notification


def log_sink(notification: Notification) -> None:
    logger.info(
        "Notification %s for user %s [%s]: %s",
        notification.id,
        notification.user_id,
        notification.type,
        notification.title,
    )


def dispatch_pending(
    db: Session,
    sink: NotificationSink = log_sink,
    limit: int | None = None,
) -> DispatchResult:
    """Hand undispatched notifications to the sink.

    A failing sink leaves the row pending for the next pass; the state change it
    describes is already committed and is not touched.
    """
    if limit is not None and limit < 1:
        raise ValidationFailed("Dispatch limit must be at least 1")
    batch = limit or settings.NOTIFICATION_DISPATCH_BATCH
    dispatched = 0
    failed = 0
    with atomic(db, "dispatch_notifications"):
        pending = (
            db.query(Notification)
            .filter(Notification.dispatched_at.is_(None))
            .order_by(Notification.id.asc())
            .limit(batch)
            .all()
        )
        for notification in pending:
            notification.dispatch_attempts = (notification.dispatch_attempts or 0) + 1
            try:
                sink(notification)
            except Exception as exc:
                failed += 1
                notification.last_error = str(exc)[:1000]
                logger.exception("Failed to dispatch notification %s", notification.id)
                continue
            notification.dispatched_at = db_datetime(db, utcnow())
            notification.last_error = None
            dispatched += 1
    if pending:
        logger.info("Notification dispatch finished: dispatched=%s failed=%s", dispatched, failed)
    return DispatchResult(dispatched=dispatched, failed=failed)


def list_notifications(db: Session, actor: ActorContext, unread_only: bool = False) -> list[Notification]:
    query = db.query(Notification).filter(Notification.user_id == actor.user_id)
    if unread_only:
        query = query.filter(Notification.is_read == False)  # noqa: E712
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def mark_read(db: Session, actor: ActorContext, notification_id: int) -> Notification:
    with atomic(db, "mark_notification_read"):
        notification = db.query(Notification).filter(Notification.id == notification_id).first()
        if not notification:
            raise NotFound("Notification not found")
        if notification.user_id != actor.user_id:
            raise Forbidden()
        notification.is_read = True
    return notification
