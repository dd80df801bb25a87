import logging
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api import bids, milestones, notifications, offers, orders, tokens
from app.config import settings
from app.db_init import init_db, seed_token_plans
from app.models import get_db
from app.services.errors import MarketplaceError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("app.startup")

POSTGRES_SCHEMES = {"postgres", "postgresql", "postgresql+psycopg"}
PAYMENT_URL_SETTINGS = ("STRIPE_PAYMENT_LINK_BASE", "PAYPAL_CHECKOUT_URL")


def _is_http_url(value: str, https_only: bool = False) -> bool:
    parsed = urlparse(value)
    schemes = {"https"} if https_only else {"http", "https"}
    return parsed.scheme in schemes and bool(parsed.hostname)


def _describe_database_url(database_url: str) -> str:
    """Connection target without credentials, for startup logs."""
    parsed = urlparse(database_url)
    return (
        f"scheme={parsed.scheme or '<missing>'}, host={parsed.hostname or '<missing>'}, "
        f"port={parsed.port or '<default>'}, database={parsed.path.lstrip('/') or '<missing>'}"
    )


def _check_database_url(database_url: str) -> list[str]:
    parsed = urlparse(database_url)
    if parsed.scheme == "sqlite":
        if settings.is_production:
            return ["DATABASE_URL points to SQLite in production; row locks and upserts need PostgreSQL."]
        return []
    if parsed.scheme not in POSTGRES_SCHEMES:
        return [f"DATABASE_URL has unsupported scheme '{parsed.scheme or '<missing>'}' (expected postgresql://)."]

    errors = []
    if not parsed.hostname:
        errors.append("DATABASE_URL is missing host.")
    if not parsed.path.lstrip("/"):
        errors.append("DATABASE_URL is missing database name in path.")
    if settings.is_production and parsed.hostname in {"localhost", "127.0.0.1"}:
        errors.append("DATABASE_URL points to localhost in production.")
    return errors


def _check_settings() -> tuple[list[str], list[str]]:
    errors: list[str] = []
    warnings: list[str] = []
    production = settings.is_production

    jwt_secret = settings.JWT_SECRET.strip()
    if not jwt_secret:
        errors.append("JWT_SECRET is required.")
    elif production and jwt_secret == "change-me-in-production":
        errors.append("JWT_SECRET uses the insecure default value in production.")

    origins = settings.cors_origin_list
    if not origins:
        errors.append("CORS_ORIGINS must contain at least one comma-separated origin URL.")
    invalid_origins = [origin for origin in origins if not _is_http_url(origin)]
    if invalid_origins:
        errors.append(f"CORS_ORIGINS contains invalid URL(s): {', '.join(invalid_origins)}")
    if production:
        local = [origin for origin in origins if urlparse(origin).hostname in {"localhost", "127.0.0.1"}]
        if local:
            warnings.append(f"CORS_ORIGINS includes localhost in production: {', '.join(local)}")

    for name in PAYMENT_URL_SETTINGS:
        value = getattr(settings, name)
        if not _is_http_url(value, https_only=production):
            expected = "an https URL" if production else "an http(s) URL"
            errors.append(f"{name} must be {expected}, got {value!r}.")

    try:
        if settings.TOKEN_PRICE <= 0:
            errors.append("TOKEN_PRICE must be positive.")
        if settings.MIN_BID_MESSAGE_LENGTH < 0:
            errors.append("MIN_BID_MESSAGE_LENGTH must not be negative.")
        if settings.SELLER_PLUS_DAYS < 1:
            errors.append("SELLER_PLUS_DAYS must be at least 1.")
        if settings.NOTIFICATION_DISPATCH_BATCH < 1:
            errors.append("NOTIFICATION_DISPATCH_BATCH must be at least 1.")
    except (ArithmeticError, ValueError) as exc:
        errors.append(f"Marketplace settings are not numeric: {exc}")

    return errors, warnings


def validate_startup_settings(database_url: str) -> None:
    errors = _check_database_url(database_url)
    setting_errors, warnings = _check_settings()
    errors.extend(setting_errors)

    if warnings:
        logger.warning("Startup environment warnings: %s", " | ".join(warnings))
    if errors:
        raise RuntimeError("Startup environment validation failed: " + " | ".join(errors))


@asynccontextmanager
async def lifespan(app: FastAPI):
    database_url = settings.DATABASE_URL
    logger.info(
        "Application startup initiated (env=%s, database: %s)",
        settings.APP_ENV,
        _describe_database_url(database_url),
    )
    validate_startup_settings(database_url)
    try:
        init_db()
    except Exception:
        logger.exception("Database initialization failed (%s)", _describe_database_url(database_url))
        raise
    db = next(get_db())
    try:
        added = seed_token_plans(db)
    finally:
        db.close()
    logger.info("Application startup completed; %s token plan(s) seeded.", added)
    yield


app = FastAPI(
    title="Marketplace API",
    description=(
        "Transaction core of a services marketplace: orders, offers and milestones, "
        "two-way reviews, bid tokens and Seller Plus. "
        "Use **Authorize** with a JWT whose `sub` is the user id."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Orders", "description": "Order lifecycle, delivery and reviews."},
        {"name": "Offers", "description": "Offers to buyers, payment links and milestones."},
        {"name": "Milestones", "description": "Milestone payments."},
        {"name": "Tokens", "description": "Token plans, balance, purchases and Seller Plus."},
        {"name": "Bids", "description": "Token-gated bids on projects."},
        {"name": "Notifications", "description": "Notification inbox and dispatch."},
    ],
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    from fastapi.openapi.utils import get_openapi

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        **openapi_schema.get("components", {}).get("securitySchemes", {}),
        "bearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "JWT signed with JWT_SECRET, sub = user id",
        },
    }
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])
app.include_router(offers.router, prefix="/api/offers", tags=["Offers"])
app.include_router(milestones.router, prefix="/api/milestones", tags=["Milestones"])
app.include_router(tokens.router, prefix="/api/tokens", tags=["Tokens"])
app.include_router(bids.projects_router, prefix="/api/projects", tags=["Bids"])
app.include_router(bids.router, prefix="/api/bids", tags=["Bids"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])


@app.get("/")
def root():
    return {"status": "ok", "service": "Marketplace API"}


@app.get("/health")
def health():
    return {"status": "ok"}
