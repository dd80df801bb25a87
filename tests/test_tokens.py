from decimal import Decimal
from unittest.mock import patch

import pytest
from fastapi import status
from sqlalchemy.exc import OperationalError

from app.db_init import seed_token_plans
from app.models import TokenBalance, TokenPlan, TokenPurchase
from app.services import token_ledger
from app.services.errors import Forbidden, NotFound, StoreUnavailable, ValidationFailed
from conftest import actor_for, set_balance


def test_list_plans_hides_subscription_plan(client, db):
    seed_token_plans(db)

    response = client.get("/api/tokens/plans")
    assert response.status_code == status.HTTP_200_OK
    slugs = [plan["slug"] for plan in response.json()]
    assert slugs == ["starter", "pro", "agency"]


def test_seed_token_plans_is_idempotent(db):
    assert seed_token_plans(db) == 4
    assert seed_token_plans(db) == 0
    assert db.query(TokenPlan).count() == 4


def test_balance_defaults_to_zero(client, seller_headers):
    response = client.get("/api/tokens/balance", headers=seller_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["balance"] == 0


def test_balance_is_seller_only(client, buyer_headers, admin_headers):
    assert client.get("/api/tokens/balance", headers=buyer_headers).status_code == status.HTTP_403_FORBIDDEN
    assert client.get("/api/tokens/balance", headers=admin_headers).status_code == status.HTTP_403_FORBIDDEN


def test_purchase_credits_balance(client, db, seller, token_plan, seller_headers):
    response = client.post("/api/tokens/purchases", json={"plan_id": token_plan.id}, headers=seller_headers)

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["tokens"] == 10
    assert data["amount"] == "50"
    assert data["status"] == "completed"
    assert token_ledger.get_balance(db, seller.id) == 10

    client.post("/api/tokens/purchases", json={"plan_id": token_plan.id}, headers=seller_headers)
    assert token_ledger.get_balance(db, seller.id) == 20

    history = client.get("/api/tokens/purchases", headers=seller_headers).json()
    assert len(history) == 2


def test_purchase_key_replay_credits_once(db, seller, token_plan):
    first = token_ledger.purchase_tokens(db, actor_for(seller), token_plan.id, purchase_key="checkout-1")
    replay = token_ledger.purchase_tokens(db, actor_for(seller), token_plan.id, purchase_key="checkout-1")

    assert replay.id == first.id
    assert token_ledger.get_balance(db, seller.id) == 10
    assert db.query(TokenPurchase).count() == 1


def test_purchase_requires_seller(db, buyer, token_plan):
    with pytest.raises(Forbidden):
        token_ledger.purchase_tokens(db, actor_for(buyer), token_plan.id)


def test_purchase_unknown_plan(db, seller):
    with pytest.raises(NotFound):
        token_ledger.purchase_tokens(db, actor_for(seller), 999)


def test_purchase_rejects_plan_without_tokens(db, seller):
    plan = TokenPlan(slug="seller-plus", name="Seller Plus", tokens=0, price=Decimal("19.99"), is_active=True)
    db.add(plan)
    db.commit()
    with pytest.raises(ValidationFailed):
        token_ledger.purchase_tokens(db, actor_for(seller), plan.id)
    assert token_ledger.get_balance(db, seller.id) == 0


def test_debit_never_goes_below_zero(db, seller):
    set_balance(db, seller, 1)
    assert token_ledger.debit_token(db, seller.id) is True
    assert token_ledger.debit_token(db, seller.id) is False
    db.commit()
    db.expire_all()
    assert db.get(TokenBalance, seller.id).balance == 0


def test_store_failure_leaves_no_partial_purchase(db, seller, token_plan):
    with patch.object(db, "commit", side_effect=OperationalError("COMMIT", {}, Exception("db down"))):
        with pytest.raises(StoreUnavailable):
            token_ledger.purchase_tokens(db, actor_for(seller), token_plan.id)

    assert db.query(TokenPurchase).count() == 0
    assert token_ledger.get_balance(db, seller.id) == 0


def test_store_unavailable_maps_to_503(client, seller, token_plan, seller_headers):
    with patch(
        "app.services.token_ledger.credit_tokens",
        side_effect=OperationalError("UPDATE", {}, Exception("db down")),
    ):
        response = client.post("/api/tokens/purchases", json={"plan_id": token_plan.id}, headers=seller_headers)
    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
