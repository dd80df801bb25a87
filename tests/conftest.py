import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Generator

# Override settings for tests before importing app modules
TEST_DATABASE_URL = "sqlite:///:memory:"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ.pop("REQUIRE_BUYER_ACCEPTANCE", None)
os.environ.pop("MIN_BID_MESSAGE_LENGTH", None)
os.environ.pop("APP_ENV", None)

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import settings
from app.main import app
from app.models import Offer, Order, Project, Service, TokenBalance, TokenPlan, User
from app.models.database import Base, get_db
from app.services.context import ActorContext

# Create test database engine
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

BID_MESSAGE = (
    "Hello, I have delivered a dozen similar projects over the last two years and can start "
    "this week. I will share progress daily and keep the scope exactly as described above."
)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=test_engine)
    db_session = TestSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _create_user(db: Session, email: str, display_name: str, role: str) -> User:
    user = User(email=email, display_name=display_name, role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def buyer(db: Session) -> User:
    return _create_user(db, "buyer@example.com", "Bea Buyer", "buyer")


@pytest.fixture
def seller(db: Session) -> User:
    return _create_user(db, "seller@example.com", "Sam Seller", "seller")


@pytest.fixture
def other_seller(db: Session) -> User:
    return _create_user(db, "other@example.com", "Olly Other", "seller")


@pytest.fixture
def admin(db: Session) -> User:
    return _create_user(db, "admin@example.com", "Ada Admin", "admin")


def make_token(user: User, **claims) -> str:
    payload = {
        "sub": str(user.id),
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        **claims,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user)}"}


@pytest.fixture
def buyer_headers(buyer: User) -> dict[str, str]:
    return headers_for(buyer)


@pytest.fixture
def seller_headers(seller: User) -> dict[str, str]:
    return headers_for(seller)


@pytest.fixture
def admin_headers(admin: User) -> dict[str, str]:
    return headers_for(admin)


def actor_for(user: User) -> ActorContext:
    return ActorContext(user_id=user.id, role=user.role)


def create_order(db: Session, buyer: User, provider: User, status: str = "pending", **fields) -> Order:
    now = datetime.now(timezone.utc)
    order = Order(
        title=fields.pop("title", "Logo design"),
        description=fields.pop("description", "Three concepts and one revision"),
        price=fields.pop("price", Decimal("120.00")),
        status=status,
        buyer_id=buyer.id,
        provider_id=provider.id,
        completed_at=now if status == "completed" else None,
        buyer_accepted=False,
        **fields,
    )
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


@pytest.fixture
def pending_order(db: Session, buyer: User, seller: User) -> Order:
    return create_order(db, buyer, seller)


@pytest.fixture
def completed_order(db: Session, buyer: User, seller: User) -> Order:
    return create_order(db, buyer, seller, status="completed")


@pytest.fixture
def offer(db: Session, buyer: User, seller: User) -> Offer:
    offer = Offer(
        seller_id=seller.id,
        buyer_id=buyer.id,
        title="Website build",
        description="Five pages, responsive",
        amount=Decimal("900.00"),
        currency="GBP",
        payment_method="stripe",
        payment_link="https://buy.stripe.com/test_payment_link_1",
        status="pending",
    )
    db.add(offer)
    db.commit()
    db.refresh(offer)
    return offer


@pytest.fixture
def project(db: Session, buyer: User) -> Project:
    project = Project(owner_id=buyer.id, title="Mobile app MVP", description="iOS and Android", status="open")
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


@pytest.fixture
def token_plan(db: Session) -> TokenPlan:
    plan = TokenPlan(
        slug="starter",
        name="Starter",
        tokens=10,
        price=Decimal("50.00"),
        currency="GBP",
        is_popular=False,
        is_active=True,
    )
    db.add(plan)
    db.commit()
    db.refresh(plan)
    return plan


def set_balance(db: Session, seller: User, balance: int) -> None:
    row = db.get(TokenBalance, seller.id)
    if row is None:
        db.add(TokenBalance(seller_id=seller.id, balance=balance))
    else:
        row.balance = balance
    db.commit()


@pytest.fixture
def seller_services(db: Session, seller: User) -> list[Service]:
    services = [
        Service(provider_id=seller.id, title="Logo design", is_active=True, is_featured=False),
        Service(provider_id=seller.id, title="Brand guide", is_active=True, is_featured=False),
    ]
    db.add_all(services)
    db.commit()
    return services
