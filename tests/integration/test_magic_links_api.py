from datetime import timedelta

from conftest import seed_branch, seed_link
from washboard.core.config import settings


def test_issue_returns_booking_url(client, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "public_base_url", "https://wash.example.com")

    response = client.post(
        "/magic-links",
        headers=auth_headers,
        json={"branch_code": "main", "customer_name": "Ana", "customer_messenger": "@ana"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["branch_code"] == "MAIN"
    assert len(body["token"]) == 128
    assert body["url"] == f"https://wash.example.com/book/MAIN/{body['token']}"
    assert body["expires_at"]


def test_issue_defaults_to_callers_branch_and_request_host(client, auth_headers):
    response = client.post("/magic-links", headers=auth_headers, json={})

    assert response.status_code == 201
    assert response.json()["url"].startswith("http://testserver/book/MAIN/")


def test_issue_requires_staff_of_same_branch(client, db_session, auth_headers):
    seed_branch(db_session, code="NORTH")

    anonymous = client.post("/magic-links", json={"branch_code": "MAIN"})
    other_branch = client.post("/magic-links", headers=auth_headers, json={"branch_code": "NORTH"})

    assert anonymous.status_code == 401
    assert other_branch.status_code == 403
    assert other_branch.json()["error"]["code"] == "FORBIDDEN"


def test_validate_reports_state_without_consuming(client, db_session, receptionist):
    link = seed_link(db_session, receptionist, customer_name="Ana")
    expired = seed_link(db_session, receptionist, expires_in=timedelta(minutes=-5))

    valid = client.post("/magic-links/validate", json={"token": link.token})
    again = client.post("/magic-links/validate", json={"token": link.token})
    stale = client.post("/magic-links/validate", json={"token": expired.token})

    assert valid.status_code == 200
    assert valid.json()["valid"] is True
    assert valid.json()["link"]["customer_name"] == "Ana"
    assert again.json()["valid"] is True
    assert stale.status_code == 200
    assert stale.json() == {"success": True, "valid": False, "code": "EXPIRED", "link": None}


def test_validate_rejects_malformed_token(client, branch):
    response = client.post("/magic-links/validate", json={"token": "abc"})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_TOKEN"


def test_list_links_by_status(client, db_session, receptionist, auth_headers):
    active = seed_link(db_session, receptionist)
    seed_link(db_session, receptionist, expires_in=timedelta(hours=-1))
    used = seed_link(db_session, receptionist)
    client.post(
        "/bookings/submit",
        json={"token": used.token, "plate": "USED-1", "vehicle_make": "Ford", "vehicle_model": "Focus"},
    )

    default = client.get("/magic-links", headers=auth_headers).json()
    used_links = client.get("/magic-links?status=used", headers=auth_headers).json()
    everything = client.get("/magic-links?status=all", headers=auth_headers).json()
    invalid = client.get("/magic-links?status=bogus", headers=auth_headers)

    assert [item["id"] for item in default["magic_links"]] == [active.id]
    assert default["magic_links"][0]["status"] == "active"
    assert used_links["count"] == 1
    assert used_links["magic_links"][0]["booking_plate"] == "USED-1"
    assert used_links["magic_links"][0]["status"] == "used"
    assert everything["count"] == 3
    assert invalid.status_code == 422


def test_issued_links_are_counted(client, auth_headers):
    client.post("/magic-links", headers=auth_headers, json={})

    metrics = client.get("/metrics").text

    assert 'washboard_magic_links_issued_total{branch_code="MAIN"}' in metrics
