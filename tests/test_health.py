from fastapi import status


def test_root_returns_ok(client):
    response = client.get("/")
    assert response.status_code == status.HTTP_200_OK
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["service"] == "Marketplace API"


def test_health_returns_ok(client):
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_openapi_lists_marketplace_routes(client):
    response = client.get("/openapi.json")
    assert response.status_code == status.HTTP_200_OK
    schema = response.json()
    paths = schema["paths"]
    for path in (
        "/api/orders/{order_id}/delivery",
        "/api/orders/{order_id}/review",
        "/api/offers/{offer_id}/milestones",
        "/api/tokens/purchases",
        "/api/projects/{project_id}/bids",
        "/api/notifications/dispatch",
    ):
        assert path in paths
    assert "bearerAuth" in schema["components"]["securitySchemes"]
