"""
HTTP surface tests: role gating, error-to-status mapping and the main
business flow end to end through the Flask test client.
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine

from descuentosya.main import ENGINE_EXTENSION, create_app


@pytest.fixture
def app(tmp_path):
    app = create_app(database_url=f"sqlite:///{(tmp_path / 'api.db').as_posix()}")
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


def _login(client, role, **ids):
    with client.session_transaction() as sess:
        sess.clear()
        sess["role"] = role
        sess.update(ids)


def _deal_body(**overrides):
    body = {
        "title": "Pizza libre",
        "original_price": 800,
        "discount_percent": 25,
        "available_quantity": 2,
        "expires_at": (datetime.now(timezone.utc) + timedelta(days=3)).isoformat(),
        "lat": -34.915,
        "lng": -56.150,
    }
    body.update(overrides)
    return body


def _approved_business(client):
    _login(client, "admin", user_id="root")
    resp = client.post("/api/admin/businesses", json={"name": "Pizzeria Centro", "address": "18 de Julio 1000"})
    assert resp.status_code == 201
    return resp.get_json()["business"]["id"]


def test_health_endpoint(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "UP"
    assert response.headers.get("X-Request-ID")
    assert response.get_json()["components"]["database"] == {"status": "UP"}


def test_health_reports_unreachable_database(app, client, tmp_path):
    missing = tmp_path / "no-such-dir" / "catalog.db"
    app.extensions[ENGINE_EXTENSION] = create_engine(f"sqlite:///{missing.as_posix()}")

    response = client.get("/health")

    assert response.status_code == 503
    body = response.get_json()
    assert body["status"] == "DEGRADED"
    assert body["components"]["database"]["status"] == "DOWN"


def test_anonymous_cannot_claim(client):
    assert client.post("/api/deals/1/claim").status_code == 401


def test_business_cannot_use_admin_routes(client):
    _login(client, "business", business_id=1)
    assert client.get("/api/admin/deals/pending").status_code == 403
    assert client.post("/api/admin/coupons/1/redeem").status_code == 403


def test_full_deal_lifecycle(client):
    business_id = _approved_business(client)

    _login(client, "business", business_id=business_id)
    resp = client.post("/api/business/deals", json=_deal_body(featured=True))
    assert resp.status_code == 201
    deal = resp.get_json()["deal"]
    assert deal["approval_status"] == "pending"
    assert deal["featured"] is False
    assert deal["discount_price"] == 600.0

    _login(client, "user", user_id="u-1")
    assert client.get("/api/deals").get_json()["deals"] == []
    assert client.get(f"/api/deals/{deal['id']}").status_code == 404

    _login(client, "admin", user_id="root")
    pending = client.get("/api/admin/deals/pending").get_json()["deals"]
    assert [d["id"] for d in pending] == [deal["id"]]
    assert client.post(f"/api/admin/deals/{deal['id']}/approve").status_code == 200
    assert client.post(f"/api/admin/deals/{deal['id']}/approve").status_code == 409

    _login(client, "user", user_id="u-1")
    listed = client.get("/api/deals").get_json()["deals"]
    assert [d["id"] for d in listed] == [deal["id"]]
    resp = client.post(f"/api/deals/{deal['id']}/claim")
    assert resp.status_code == 201
    code = resp.get_json()["coupon"]["redemption_code"]
    assert client.post(f"/api/deals/{deal['id']}/claim").status_code == 409
    notifications = client.get("/api/notifications").get_json()
    assert notifications["unread_count"] == 1

    _login(client, "business", business_id=business_id)
    resp = client.post("/api/business/redeem", json={"code": code})
    assert resp.status_code == 200
    assert resp.get_json()["coupon"]["status"] == "used"
    again = client.post("/api/business/redeem", json={"code": code})
    assert again.status_code == 409
    assert again.get_json()["error"] == "ALREADY_USED"
    assert again.get_json()["details"]["used_at"]

    stats = client.get("/api/business/stats").get_json()
    assert stats["total_claimed"] == 1
    assert stats["revenue"] == 600.0


def test_redeem_for_other_business_is_forbidden(client):
    business_id = _approved_business(client)
    other = client.post("/api/admin/businesses", json={"name": "Otra"}).get_json()["business"]["id"]
    deal_id = client.post("/api/admin/deals", json=_deal_body(business_id=business_id)).get_json()["deal"]["id"]

    _login(client, "user", user_id="u-2")
    code = client.post(f"/api/deals/{deal_id}/claim").get_json()["coupon"]["redemption_code"]

    _login(client, "business", business_id=other)
    resp = client.post("/api/business/redeem", json={"code": code})
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "WRONG_BUSINESS"


def test_reject_flow_and_validation_status(client):
    business_id = _approved_business(client)
    _login(client, "business", business_id=business_id)
    assert client.post("/api/business/deals", json=_deal_body(discount_percent=150)).status_code == 422
    deal_id = client.post("/api/business/deals", json=_deal_body()).get_json()["deal"]["id"]

    _login(client, "admin", user_id="root")
    assert client.post(f"/api/admin/deals/{deal_id}/reject", json={}).status_code == 422
    resp = client.post(f"/api/admin/deals/{deal_id}/reject", json={"reason": "Blurry photo"})
    assert resp.get_json()["deal"]["rejection_reason"] == "Blurry photo"

    _login(client, "business", business_id=business_id)
    inbox = client.get("/api/notifications").get_json()["notifications"]
    assert inbox[0]["type"] == "rejection"
    assert inbox[0]["message"] == "Blurry photo"
    resp = client.patch(f"/api/business/deals/{deal_id}", json={"title": "Pizza libre (nueva foto)"})
    assert resp.get_json()["deal"]["approval_status"] == "pending"


def test_nearby_listing(client):
    business_id = _approved_business(client)
    client.post("/api/admin/deals", json=_deal_body(business_id=business_id))

    _login(client, "user", user_id="u-3")
    deals = client.get("/api/deals?lat=-34.916&lng=-56.151").get_json()["deals"]
    assert len(deals) == 1
    assert deals[0]["distance"].endswith(" m")
    assert deals[0]["transit"]["zone"] == "Pocitos"
    assert client.get("/api/deals?lat=-134&lng=0").status_code == 422
