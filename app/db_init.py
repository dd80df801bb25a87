import logging
import time
from decimal import Decimal
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from app.config import settings
from app.models.database import Base, _normalize_database_url, engine
from app.models import (  # noqa: F401 - register models
    Bid,
    Milestone,
    Notification,
    Offer,
    Order,
    Project,
    Review,
    SellerSubscription,
    Service,
    TokenBalance,
    TokenPlan,
    TokenPurchase,
    User,
)

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_PLANS = (
    {
        "slug": "starter",
        "name": "Starter",
        "description": "Enough tokens to try bidding on a few projects.",
        "tokens": 10,
        "is_popular": False,
    },
    {
        "slug": "pro",
        "name": "Pro",
        "description": "For sellers who bid every week.",
        "tokens": 25,
        "is_popular": True,
    },
    {
        "slug": "agency",
        "name": "Agency",
        "description": "High-volume bidding for teams.",
        "tokens": 60,
        "is_popular": False,
    },
    {
        "slug": "seller-plus",
        "name": "Seller Plus",
        "description": "Feature all of your services for 30 days.",
        "tokens": 0,
        "price": Decimal("19.99"),
        "is_popular": False,
    },
)


def wait_for_db(retries: int, retry_delay_seconds: int) -> None:
    """Wait for database to accept connections before running migrations."""
    last_error = None
    for attempt in range(1, retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database connection established on attempt %s", attempt)
            return
        except OperationalError as exc:
            last_error = exc
            logger.warning(
                "Database not reachable yet (attempt %s/%s): %s",
                attempt,
                retries,
                exc,
            )
            if attempt < retries:
                time.sleep(retry_delay_seconds)

    raise RuntimeError(
        "Database is unreachable after "
        f"{retries} attempts. Check DATABASE_URL and ensure the DB server is running."
    ) from last_error


def init_db():
    wait_for_db(
        retries=settings.DB_CONNECT_RETRIES,
        retry_delay_seconds=settings.DB_CONNECT_RETRY_DELAY_SECONDS,
    )
    if settings.DATABASE_URL.startswith("sqlite://"):
        Base.metadata.create_all(bind=engine)
        return

    run_migrations()


def run_migrations() -> None:
    """Apply Alembic migrations to the latest revision."""
    project_root = Path(__file__).resolve().parent.parent
    alembic_ini = project_root / "alembic.ini"
    script_location = project_root / "alembic"
    if not alembic_ini.exists() or not script_location.exists():
        raise RuntimeError("Alembic configuration is missing (alembic.ini or alembic/ directory not found).")

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(script_location))
    config.set_main_option("sqlalchemy.url", _normalize_database_url(settings.DATABASE_URL))
    command.upgrade(config, "head")


def seed_token_plans(db_session) -> int:
    """Insert the default plans that are missing. Returns how many were added."""
    existing = {slug for (slug,) in db_session.query(TokenPlan.slug).all()}
    added = 0
    for plan in DEFAULT_TOKEN_PLANS:
        if plan["slug"] in existing:
            continue
        price = plan.get("price", plan["tokens"] * settings.TOKEN_PRICE)
        db_session.add(
            TokenPlan(
                slug=plan["slug"],
                name=plan["name"],
                description=plan["description"],
                tokens=plan["tokens"],
                price=price,
                currency=settings.DEFAULT_CURRENCY,
                is_popular=plan["is_popular"],
                is_active=True,
            )
        )
        added += 1
    if added:
        db_session.commit()
        logger.info("Seeded %s token plan(s)", added)
    return added
