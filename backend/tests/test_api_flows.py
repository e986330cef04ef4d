from __future__ import annotations

from decimal import Decimal

from app import crud
from app.core.config import settings

API = settings.API_V1_STR


def _create_user(client, admin_headers, email: str = "lin@example.com") -> int:
    r = client.post(f"{API}/users", headers=admin_headers, json={"name": "Lin", "email": email})
    assert r.status_code == 200
    body = r.json()
    assert body["code"] == 0
    return body["data"]["id"]


def _create_consumption_rule(client, admin_headers) -> None:
    r = client.post(
        f"{API}/vip/point-rules",
        headers=admin_headers,
        json={
            "action_type": settings.CONSUMPTION_ACTION_TYPE,
            "points_per_unit": "1",
            "unit": "EUR",
            "unit_size": "10",
        },
    )
    assert r.status_code == 200
    assert r.json()["code"] == 0


def test_health_check(client):
    r = client.get(f"{API}/utils/health-check/")
    assert r.status_code == 200
    assert r.json() is True


def test_admin_routes_require_token(client):
    r = client.post(f"{API}/users", json={"name": "x", "email": "x@example.com"})
    assert r.status_code == 401
    assert r.json()["code"] == 401001

    r = client.post(
        f"{API}/users",
        headers={"Authorization": "Bearer wrong"},
        json={"name": "x", "email": "x@example.com"},
    )
    assert r.status_code == 401


def test_point_rule_crud(client, admin_headers):
    _create_consumption_rule(client, admin_headers)

    r = client.post(
        f"{API}/vip/point-rules",
        headers=admin_headers,
        json={"action_type": settings.CONSUMPTION_ACTION_TYPE, "points_per_unit": "3"},
    )
    assert r.status_code == 409
    assert r.json()["code"] == 409101

    r = client.put(
        f"{API}/vip/point-rules/{settings.CONSUMPTION_ACTION_TYPE}",
        headers=admin_headers,
        json={"points_per_unit": "2"},
    )
    assert r.status_code == 200
    assert Decimal(r.json()["data"]["points_per_unit"]) == Decimal("2")

    r = client.put(
        f"{API}/vip/point-rules/unknown",
        headers=admin_headers,
        json={"is_active": False},
    )
    assert r.status_code == 404
    assert r.json()["code"] == 404101

    r = client.get(f"{API}/vip/point-rules")
    assert [rule["action_type"] for rule in r.json()["data"]] == [settings.CONSUMPTION_ACTION_TYPE]


def test_consumption_flow(client, admin_headers, fake_redis):
    user_id = _create_user(client, admin_headers)
    _create_consumption_rule(client, admin_headers)

    r = client.post(
        f"{API}/vip/consumptions",
        headers=admin_headers,
        json={"user_id": user_id, "amount": "55", "currency": "EUR", "event_id": "gala"},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["code"] == 0
    assert body["data"]["points"] == {
        "points_awarded": 5,
        "new_balance": 5,
        "new_tier": "silver",
        "tier_changed": False,
    }
    consumption_id = body["data"]["consumption"]["id"]
    assert fake_redis.messages == []

    r = client.get(f"{API}/vip/points-log", params={"user_id": user_id})
    log = r.json()["data"]
    assert log["count"] == 1
    assert log["data"][0]["delta_points"] == 5
    assert log["data"][0]["related_entity_id"] == str(consumption_id)
    assert log["data"][0]["metadata"]["currency"] == "EUR"

    r = client.get(f"{API}/vip/consumptions", params={"user_id": user_id})
    assert r.json()["data"]["count"] == 1

    r = client.get(f"{API}/vip/memberships/{user_id}")
    detail = r.json()["data"]
    assert detail["membership"]["points_balance"] == 5
    assert detail["next_tier"] == "gold"
    assert detail["points_to_next_tier"] == 495


def test_consumption_validation_errors(client, admin_headers, fake_redis):
    user_id = _create_user(client, admin_headers)
    _create_consumption_rule(client, admin_headers)

    r = client.post(
        f"{API}/vip/consumptions", headers=admin_headers, json={"user_id": user_id, "amount": "0"}
    )
    assert r.status_code == 422
    assert r.json()["code"] == 422000

    r = client.post(
        f"{API}/vip/consumptions", headers=admin_headers, json={"user_id": 99999, "amount": "10"}
    )
    assert r.status_code == 404
    assert r.json()["code"] == 404102


def test_consumption_without_rule_returns_404(client, admin_headers, fake_redis):
    user_id = _create_user(client, admin_headers)
    r = client.post(
        f"{API}/vip/consumptions", headers=admin_headers, json={"user_id": user_id, "amount": "10"}
    )
    assert r.status_code == 404
    assert r.json()["code"] == 404101


def test_tier_change_publishes_event(client, admin_headers, fake_redis):
    user_id = _create_user(client, admin_headers)
    _create_consumption_rule(client, admin_headers)

    r = client.post(
        f"{API}/vip/consumptions",
        headers=admin_headers,
        json={"user_id": user_id, "amount": "5000"},
    )
    assert r.json()["data"]["points"]["tier_changed"] is True
    assert r.json()["data"]["points"]["new_tier"] == "gold"

    assert len(fake_redis.messages) == 1
    stream, fields = fake_redis.messages[0]
    assert stream == f"vip_tier_changes:{settings.ENVIRONMENT}"
    assert fields == {
        "user_id": str(user_id),
        "tier": "gold",
        "points_balance": "500",
        "lifetime_points": "500",
    }


def test_manual_adjustment_flow(client, admin_headers, fake_redis):
    user_id = _create_user(client, admin_headers)

    r = client.post(
        f"{API}/vip/points/adjust",
        headers=admin_headers,
        json={"user_id": user_id, "delta_points": 10, "reason": "welcome"},
    )
    assert r.status_code == 404
    assert r.json()["code"] == 404103

    r = client.post(f"{API}/vip/memberships", headers=admin_headers, json={"user_id": user_id})
    assert r.json()["data"]["tier"] == "silver"

    r = client.post(
        f"{API}/vip/points/adjust",
        headers=admin_headers,
        json={"user_id": user_id, "delta_points": 50, "reason": "welcome", "admin_id": "ops"},
    )
    assert r.json()["data"]["new_balance"] == 50

    r = client.post(
        f"{API}/vip/points/adjust",
        headers=admin_headers,
        json={"user_id": user_id, "delta_points": -20, "reason": "goodwill correction"},
    )
    body = r.json()
    assert body["data"] == {
        "success": True,
        "new_balance": 30,
        "new_tier": "silver",
        "tier_changed": False,
    }

    r = client.post(
        f"{API}/vip/points/adjust",
        headers=admin_headers,
        json={"user_id": user_id, "delta_points": 0, "reason": "noop"},
    )
    assert r.status_code == 400
    assert r.json()["code"] == 400101

    r = client.get(f"{API}/vip/points-log/{user_id}/summary")
    summary = r.json()["data"]
    assert summary["points_balance"] == 30
    assert summary["lifetime_points"] == 50
    assert summary["by_source"] == [
        {"source": "manual_adjustment", "transaction_count": 2, "total_points": 30}
    ]


def test_checkin_uses_default_points(client, admin_headers, fake_redis):
    user_id = _create_user(client, admin_headers)
    r = client.post(
        f"{API}/vip/checkins",
        headers=admin_headers,
        json={"user_id": user_id, "event_id": "e1", "checkin_id": "k1"},
    )
    assert r.status_code == 200
    assert r.json()["data"]["points_awarded"] == settings.EVENT_CHECKIN_DEFAULT_POINTS

    r = client.get(f"{API}/vip/points-log", params={"source": "event_checkin"})
    assert r.json()["data"]["count"] == 1


def test_membership_admin_edit_and_list(client, admin_headers, fake_redis):
    first = _create_user(client, admin_headers, "a@example.com")
    second = _create_user(client, admin_headers, "b@example.com")
    for user_id in (first, second):
        client.post(f"{API}/vip/memberships", headers=admin_headers, json={"user_id": user_id})

    r = client.put(
        f"{API}/vip/memberships/{second}",
        headers=admin_headers,
        json={"tier": "black", "status": "suspended"},
    )
    assert r.json()["data"]["tier"] == "black"
    assert r.json()["data"]["status"] == "suspended"

    r = client.put(f"{API}/vip/memberships/{second}", headers=admin_headers, json={})
    assert r.status_code == 400

    r = client.get(f"{API}/vip/memberships", params={"tier": "black"})
    data = r.json()["data"]
    assert data["count"] == 1
    assert data["data"][0]["user_id"] == second

    r = client.get(f"{API}/vip/memberships/424242")
    assert r.status_code == 404


def test_reconcile_endpoint(client, admin_headers, db, fake_redis):
    user_id = _create_user(client, admin_headers)
    client.post(f"{API}/vip/memberships", headers=admin_headers, json={"user_id": user_id})
    crud.points_log.append_log_entry(
        session=db,
        user_id=user_id,
        delta_points=600,
        reason="imported",
        source="manual_adjustment",
    )

    r = client.post(f"{API}/vip/memberships/{user_id}/reconcile", headers=admin_headers)
    data = r.json()["data"]
    assert data["corrected"] is True
    assert data["balance_after"] == 600
    assert data["tier"] == "gold"
    assert fake_redis.messages[0][1]["tier"] == "gold"

    r = client.post(f"{API}/vip/memberships/{user_id}/reconcile", headers=admin_headers)
    assert r.json()["data"]["corrected"] is False
    assert len(fake_redis.messages) == 1


def test_tier_benefits(client, admin_headers):
    r = client.post(
        f"{API}/vip/tier-benefits",
        headers=admin_headers,
        json={"tier_name": "gold", "title": "Priority entry"},
    )
    benefit_id = r.json()["data"]["id"]
    client.post(
        f"{API}/vip/tier-benefits",
        headers=admin_headers,
        json={"tier_name": "silver", "title": "Welcome drink"},
    )

    r = client.get(f"{API}/vip/tier-benefits")
    assert [b["tier_name"] for b in r.json()["data"]] == ["silver", "gold"]

    r = client.put(
        f"{API}/vip/tier-benefits/{benefit_id}",
        headers=admin_headers,
        json={"description": "Skip the queue"},
    )
    assert r.json()["data"]["description"] == "Skip the queue"

    r = client.delete(f"{API}/vip/tier-benefits/{benefit_id}", headers=admin_headers)
    assert r.json()["data"]["is_active"] is False

    r = client.get(f"{API}/vip/tier-benefits", params={"tier": "gold"})
    assert r.json()["data"] == []

    r = client.delete(f"{API}/vip/tier-benefits/999999", headers=admin_headers)
    assert r.status_code == 404


def test_duplicate_user_email_conflicts(client, admin_headers):
    _create_user(client, admin_headers, "dup@example.com")
    r = client.post(
        f"{API}/users", headers=admin_headers, json={"name": "Dup", "email": "dup@example.com"}
    )
    assert r.status_code == 409


def test_tier_threshold_rules_change_computed_tier(client, admin_headers, fake_redis):
    user_id = _create_user(client, admin_headers)
    client.post(f"{API}/vip/memberships", headers=admin_headers, json={"user_id": user_id})
    client.post(
        f"{API}/vip/points/adjust",
        headers=admin_headers,
        json={"user_id": user_id, "delta_points": 300, "reason": "opening balance"},
    )

    r = client.get(f"{API}/vip/memberships/{user_id}")
    assert r.json()["data"]["points_to_next_tier"] == 200

    r = client.post(
        f"{API}/vip/point-rules",
        headers=admin_headers,
        json={"action_type": "tier_threshold_gold", "points_per_unit": "600", "unit": "points"},
    )
    assert r.status_code == 200
    r = client.get(f"{API}/vip/memberships/{user_id}")
    assert r.json()["data"]["points_to_next_tier"] == 300

    r = client.put(
        f"{API}/vip/point-rules/tier_threshold_gold",
        headers=admin_headers,
        json={"points_per_unit": "250"},
    )
    assert r.status_code == 200
    data = client.get(f"{API}/vip/memberships/{user_id}").json()["data"]
    assert data["next_tier"] == "black"
    assert data["points_to_next_tier"] == 1450

    r = client.post(
        f"{API}/vip/points/adjust",
        headers=admin_headers,
        json={"user_id": user_id, "delta_points": 10, "reason": "event prize"},
    )
    assert r.json()["data"]["new_tier"] == "gold"
    assert r.json()["data"]["tier_changed"] is True
    assert fake_redis.messages[-1][1]["tier"] == "gold"

    # a gold threshold above black is ignored
    client.put(
        f"{API}/vip/point-rules/tier_threshold_gold",
        headers=admin_headers,
        json={"points_per_unit": "5000"},
    )
    r = client.get(f"{API}/vip/memberships/{user_id}")
    assert r.json()["data"]["points_to_next_tier"] == 190


def test_unknown_route_uses_envelope(client):
    r = client.get(f"{API}/does-not-exist")
    assert r.status_code == 404
    assert r.json() == {"code": 404000, "message": "Not Found", "data": None}
