from decimal import Decimal
from unittest.mock import patch

import pytest
from fastapi import status
from sqlalchemy.exc import OperationalError

from app.models import Bid, Notification, Project, TokenBalance
from app.services import bids, token_ledger
from app.services.errors import Forbidden, InsufficientTokens, InvalidState, ValidationFailed
from conftest import BID_MESSAGE, actor_for, set_balance


def _balance(db, seller) -> int:
    db.expire_all()
    return token_ledger.get_balance(db, seller.id)


def test_place_bid_spends_one_token(client, db, project, buyer, seller, seller_headers):
    set_balance(db, seller, 2)

    response = client.post(
        f"/api/projects/{project.id}/bids",
        json={"bid_amount": "350.00", "message": BID_MESSAGE},
        headers=seller_headers,
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["bid_amount"] == "350"
    assert data["status"] == "pending"
    assert _balance(db, seller) == 1

    note = db.query(Notification).filter(Notification.user_id == buyer.id).one()
    assert note.type == "bid"
    assert note.title == "New bid from Sam Seller"


def test_bid_without_tokens_writes_nothing(client, db, project, seller, seller_headers):
    set_balance(db, seller, 0)

    response = client.post(
        f"/api/projects/{project.id}/bids",
        json={"bid_amount": "100", "message": BID_MESSAGE},
        headers=seller_headers,
    )

    assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
    assert response.json()["detail"] == "You do not have enough tokens to place a bid."
    assert db.query(Bid).count() == 0
    assert db.query(Notification).count() == 0
    assert _balance(db, seller) == 0


def test_seller_without_balance_row_cannot_bid(db, project, seller):
    with pytest.raises(InsufficientTokens):
        bids.place_bid(db, actor_for(seller), project.id, Decimal("10"), BID_MESSAGE)
    assert db.get(TokenBalance, seller.id) is None


def test_three_tokens_allow_exactly_three_bids(db, project, seller):
    set_balance(db, seller, 3)

    for _ in range(3):
        bids.place_bid(db, actor_for(seller), project.id, Decimal("100"), BID_MESSAGE)
    with pytest.raises(InsufficientTokens):
        bids.place_bid(db, actor_for(seller), project.id, Decimal("100"), BID_MESSAGE)

    assert db.query(Bid).count() == 3
    assert _balance(db, seller) == 0


def test_purchased_tokens_cover_that_many_bids(db, project, seller, token_plan):
    token_ledger.purchase_tokens(db, actor_for(seller), token_plan.id)
    for _ in range(token_plan.tokens):
        bids.place_bid(db, actor_for(seller), project.id, Decimal("80"), BID_MESSAGE)

    with pytest.raises(InsufficientTokens):
        bids.place_bid(db, actor_for(seller), project.id, Decimal("80"), BID_MESSAGE)
    assert db.query(Bid).count() == token_plan.tokens
    assert _balance(db, seller) == 0


def test_idempotency_key_prevents_double_debit(db, project, seller):
    set_balance(db, seller, 5)

    first = bids.place_bid(db, actor_for(seller), project.id, Decimal("90"), BID_MESSAGE, idempotency_key="bid-1")
    replay = bids.place_bid(db, actor_for(seller), project.id, Decimal("90"), BID_MESSAGE, idempotency_key="bid-1")

    assert replay.id == first.id
    assert db.query(Bid).count() == 1
    assert _balance(db, seller) == 4


def test_short_message_is_rejected(db, project, seller):
    set_balance(db, seller, 1)
    with pytest.raises(ValidationFailed, match="at least 150 characters"):
        bids.place_bid(db, actor_for(seller), project.id, Decimal("90"), "Pick me")
    assert _balance(db, seller) == 1


def test_message_length_is_configurable(monkeypatch, db, project, seller):
    monkeypatch.setenv("MIN_BID_MESSAGE_LENGTH", "5")
    set_balance(db, seller, 1)
    bid = bids.place_bid(db, actor_for(seller), project.id, Decimal("90"), "Pick me")
    assert bid.message == "Pick me"


@pytest.mark.parametrize("amount", ["0", "-1", "NaN"])
def test_bad_amount_is_rejected(db, project, seller, amount):
    set_balance(db, seller, 1)
    with pytest.raises(ValidationFailed):
        bids.place_bid(db, actor_for(seller), project.id, amount, BID_MESSAGE)
    assert _balance(db, seller) == 1


def test_closed_project_rejects_bids(db, project, seller):
    set_balance(db, seller, 1)
    project.status = "closed"
    db.commit()
    with pytest.raises(InvalidState):
        bids.place_bid(db, actor_for(seller), project.id, Decimal("90"), BID_MESSAGE)
    assert _balance(db, seller) == 1


def test_cannot_bid_on_own_project(db, seller):
    set_balance(db, seller, 1)
    own = Project(owner_id=seller.id, title="My own", status="open")
    db.add(own)
    db.commit()
    with pytest.raises(Forbidden):
        bids.place_bid(db, actor_for(seller), own.id, Decimal("90"), BID_MESSAGE)
    assert _balance(db, seller) == 1


def test_buyers_cannot_bid(db, project, buyer):
    with pytest.raises(Forbidden):
        bids.place_bid(db, actor_for(buyer), project.id, Decimal("90"), BID_MESSAGE)


def test_list_my_bids(client, db, project, seller, seller_headers):
    set_balance(db, seller, 2)
    bids.place_bid(db, actor_for(seller), project.id, Decimal("90"), BID_MESSAGE)
    bids.place_bid(db, actor_for(seller), project.id, Decimal("95"), BID_MESSAGE)

    response = client.get("/api/bids/me", headers=seller_headers)
    assert response.status_code == status.HTTP_200_OK
    assert sorted(b["bid_amount"] for b in response.json()) == ["90", "95"]


def test_sub_cent_bid_amount_is_rejected(client, db, project, seller, seller_headers):
    set_balance(db, seller, 1)

    response = client.post(
        f"/api/projects/{project.id}/bids",
        json={"bid_amount": "0.001", "message": BID_MESSAGE},
        headers=seller_headers,
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert db.query(Bid).count() == 0
    assert _balance(db, seller) == 1


@pytest.mark.parametrize("step", ["flush_unique", "enqueue_notification"])
def test_store_failure_after_debit_restores_balance(client, db, project, seller, seller_headers, step):
    set_balance(db, seller, 2)

    with patch(f"app.services.bids.{step}", side_effect=OperationalError("INSERT", {}, Exception("db down"))):
        response = client.post(
            f"/api/projects/{project.id}/bids",
            json={"bid_amount": "120", "message": BID_MESSAGE},
            headers=seller_headers,
        )

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert db.query(Bid).count() == 0
    assert db.query(Notification).count() == 0
    assert _balance(db, seller) == 2
