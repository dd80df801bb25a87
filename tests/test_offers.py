from decimal import Decimal
from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi import status

from app.models import Notification, Offer, Order
from app.services import offers
from app.services.errors import Forbidden, InvalidState, ValidationFailed
from app.services.payment_links import append_query_param, generate_payment_link
from conftest import actor_for, headers_for


def test_stripe_payment_link():
    assert generate_payment_link(7, "stripe", Decimal("10")) == "https://buy.stripe.com/test_payment_link_7"


def test_paypal_payment_link_carries_checkout_fields():
    link = generate_payment_link(
        12, "paypal", Decimal("450.5"), currency="GBP", account_email="seller@example.com"
    )
    query = parse_qs(urlsplit(link).query)
    assert link.startswith("https://www.paypal.com/cgi-bin/webscr?")
    assert query["cmd"] == ["_xclick"]
    assert query["business"] == ["seller@example.com"]
    assert query["amount"] == ["450.50"]
    assert query["currency_code"] == ["GBP"]
    assert query["invoice"] == ["offer-12"]


def test_unsupported_payment_method():
    with pytest.raises(ValueError, match="Unsupported payment method"):
        generate_payment_link(1, "cash", Decimal("1"))


def test_append_query_param_keeps_existing_query_and_fragment():
    url = append_query_param("https://example.com/pay?ref=abc#top", "order_id", 5)
    assert url == "https://example.com/pay?ref=abc&order_id=5#top"


def test_create_offer(client, db, buyer, seller, seller_headers):
    response = client.post(
        "/api/offers",
        json={
            "buyer_id": buyer.id,
            "title": "Landing page",
            "description": "Design and build",
            "amount": "450.00",
            "payment_method": "paypal",
        },
        headers=seller_headers,
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["status"] == "pending"
    assert data["amount"] == "450"
    assert data["currency"] == "GBP"
    assert "business=seller%40example.com" in data["payment_link"]

    note = db.query(Notification).filter(Notification.user_id == buyer.id).one()
    assert note.related_id == data["id"]


@pytest.mark.parametrize("amount", ["0", "-10", "abc", "0.004", "12.345"])
def test_create_offer_rejects_bad_amount(db, buyer, seller, amount):
    with pytest.raises(ValidationFailed):
        offers.create_offer(db, actor_for(seller), buyer.id, "Title", "Description", amount, "stripe")
    assert db.query(Offer).count() == 0


def test_create_offer_to_self_is_rejected(db, seller):
    with pytest.raises(ValidationFailed):
        offers.create_offer(db, actor_for(seller), seller.id, "Title", "Description", "10", "stripe")


def test_accept_offer_opens_order(client, db, offer, buyer, seller, buyer_headers):
    response = client.post(f"/api/offers/{offer.id}/accept", headers=buyer_headers)

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["status"] == "pending"
    assert data["provider_id"] == seller.id
    assert data["buyer_id"] == buyer.id
    assert data["price"] == "900"
    assert data["offer_id"] == offer.id

    db.expire_all()
    accepted = db.get(Offer, offer.id)
    assert accepted.status == "accepted"
    assert accepted.order_id == data["id"]
    assert db.query(Notification).filter(Notification.user_id == seller.id).count() == 1


def test_accept_offer_twice_is_rejected(db, offer, buyer):
    offers.accept_offer(db, actor_for(buyer), offer.id)
    with pytest.raises(InvalidState):
        offers.accept_offer(db, actor_for(buyer), offer.id)
    assert db.query(Order).count() == 1


def test_only_buyer_accepts_or_declines(db, offer, seller):
    with pytest.raises(Forbidden):
        offers.accept_offer(db, actor_for(seller), offer.id)
    with pytest.raises(Forbidden):
        offers.decline_offer(db, actor_for(seller), offer.id)


def test_decline_offer(client, offer, buyer_headers):
    response = client.post(f"/api/offers/{offer.id}/decline", headers=buyer_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "declined"

    again = client.post(f"/api/offers/{offer.id}/accept", headers=buyer_headers)
    assert again.status_code == status.HTTP_409_CONFLICT


def test_get_offer_visibility(client, offer, buyer_headers, other_seller):
    assert client.get(f"/api/offers/{offer.id}", headers=buyer_headers).status_code == 200
    assert client.get(f"/api/offers/{offer.id}", headers=headers_for(other_seller)).status_code == 403
