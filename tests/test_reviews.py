from decimal import Decimal

import pytest
from fastapi import status

from app.models import Notification, Review, User
from app.services import reputation
from app.services.errors import Forbidden, InvalidState, ValidationFailed
from conftest import actor_for, create_order


def test_buyer_review_creates_single_row(client, db, completed_order, buyer, seller, buyer_headers):
    response = client.post(
        f"/api/orders/{completed_order.id}/review",
        json={"rating": 5, "comment": "Fast and friendly"},
        headers=buyer_headers,
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["rating"] == 5
    assert data["buyer_rating"] is None
    assert data["reviewer_id"] == buyer.id
    assert data["reviewee_id"] == seller.id

    rows = db.query(Review).filter(Review.order_id == completed_order.id).all()
    assert len(rows) == 1
    assert rows[0].rating == 5
    assert rows[0].buyer_rating is None


def test_provider_rating_fills_same_row(db, completed_order, buyer, seller):
    reputation.rate_seller(db, actor_for(buyer), completed_order.id, 5, "Great")
    review = reputation.rate_buyer(db, actor_for(seller), completed_order.id, 4, "Clear brief")

    rows = db.query(Review).filter(Review.order_id == completed_order.id).all()
    assert len(rows) == 1
    assert review.id == rows[0].id
    assert rows[0].rating == 5
    assert rows[0].buyer_rating == 4
    assert rows[0].buyer_comment == "Clear brief"
    assert reputation.has_buyer_been_rated(db, completed_order.id) is True


def test_buyer_can_be_rated_before_seller_review(db, completed_order, buyer, seller):
    reputation.rate_buyer(db, actor_for(seller), completed_order.id, 3)
    reputation.rate_seller(db, actor_for(buyer), completed_order.id, 4, "Solid")

    row = db.query(Review).filter(Review.order_id == completed_order.id).one()
    assert row.buyer_rating == 3
    assert row.rating == 4
    assert row.reviewer_id == buyer.id
    assert row.reviewee_id == seller.id


def test_second_buyer_review_is_rejected(client, completed_order, buyer_headers, db):
    first = client.post(
        f"/api/orders/{completed_order.id}/review",
        json={"rating": 4, "comment": "Good"},
        headers=buyer_headers,
    )
    assert first.status_code == status.HTTP_201_CREATED

    second = client.post(
        f"/api/orders/{completed_order.id}/review",
        json={"rating": 1, "comment": "Changed my mind"},
        headers=buyer_headers,
    )
    assert second.status_code == status.HTTP_409_CONFLICT
    assert second.json()["detail"] == "This order has already been reviewed"

    db.expire_all()
    assert db.query(Review).one().rating == 4


def test_second_buyer_rating_is_rejected(db, completed_order, seller):
    reputation.rate_buyer(db, actor_for(seller), completed_order.id, 5)
    with pytest.raises(InvalidState, match="already rated"):
        reputation.rate_buyer(db, actor_for(seller), completed_order.id, 2)
    db.expire_all()
    assert db.query(Review).one().buyer_rating == 5


def test_review_requires_completed_order(db, pending_order, buyer):
    with pytest.raises(InvalidState):
        reputation.rate_seller(db, actor_for(buyer), pending_order.id, 5, "Too early")
    assert db.query(Review).count() == 0


@pytest.mark.parametrize("rating", [0, 6, -1])
def test_rating_out_of_range(db, completed_order, buyer, rating):
    with pytest.raises(ValidationFailed):
        reputation.rate_seller(db, actor_for(buyer), completed_order.id, rating, "Out of range")


def test_review_requires_comment(db, completed_order, buyer):
    with pytest.raises(ValidationFailed):
        reputation.rate_seller(db, actor_for(buyer), completed_order.id, 5, "  ")


def test_only_buyer_reviews_and_only_provider_rates(db, completed_order, buyer, seller):
    with pytest.raises(Forbidden):
        reputation.rate_seller(db, actor_for(seller), completed_order.id, 5, "Self review")
    with pytest.raises(Forbidden):
        reputation.rate_buyer(db, actor_for(buyer), completed_order.id, 5)


def test_seller_rating_aggregate_is_refreshed(db, buyer, seller):
    first = create_order(db, buyer, seller, status="completed")
    second = create_order(db, buyer, seller, status="completed")

    reputation.rate_seller(db, actor_for(buyer), first.id, 5, "Excellent")
    reputation.rate_seller(db, actor_for(buyer), second.id, 4, "Good")

    db.expire_all()
    provider = db.get(User, seller.id)
    assert provider.review_count == 2
    assert Decimal(provider.rating) == Decimal("4.5")


def test_review_notifies_provider(db, completed_order, buyer, seller):
    reputation.rate_seller(db, actor_for(buyer), completed_order.id, 5, "Great")
    note = db.query(Notification).filter(Notification.user_id == seller.id).one()
    assert note.type == "review"
    assert "5-star" in note.description


def test_get_review_status(client, db, completed_order, buyer, seller, seller_headers):
    empty = client.get(f"/api/orders/{completed_order.id}/review", headers=seller_headers)
    assert empty.status_code == status.HTTP_200_OK
    assert empty.json() == {"order_id": completed_order.id, "review": None, "buyer_rated": False}

    reputation.rate_seller(db, actor_for(buyer), completed_order.id, 5, "Great")
    response = client.post(
        f"/api/orders/{completed_order.id}/buyer-rating",
        json={"rating": 4},
        headers=seller_headers,
    )
    assert response.status_code == status.HTTP_200_OK

    data = client.get(f"/api/orders/{completed_order.id}/review", headers=seller_headers).json()
    assert data["buyer_rated"] is True
    assert data["review"]["rating"] == 5
    assert data["review"]["buyer_rating"] == 4
