# Showings API test suite: request/bid/accept/reject flow over HTTP, claim conflicts,
# lock-code timing, completion, and the error-kind to status-code mapping.
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Tuple

from fastapi.testclient import TestClient


# Helper: create a user and return (access_token, user JSON)
def signup(client: TestClient, email: str, password: str, role: str | None = None) -> Tuple[str, dict]:
    payload = {"email": email, "password": password}
    if role:
        payload["role"] = role
    r = client.post("/auth/signup", json=payload)
    assert r.status_code == 201, r.text
    data = r.json()
    return data["access_token"], data["user"]


# Convenience header for authenticated requests
def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# Helper: create a listing owned by the authenticated seller
def create_listing(client: TestClient, token: str, status: str = "active", lock_code: str = "2468") -> dict:
    r = client.post(
        "/api/v1/listings",
        headers=auth_headers(token),
        json={
            "address": "221 Maple Ave",
            "city": "Austin",
            "state": "TX",
            "zip": "78701",
            "price": 525000,
            "status": status,
            "lock_code": lock_code,
        },
    )
    assert r.status_code == 201, r.text
    return r.json()


def requested_at(delta: timedelta) -> str:
    return (datetime.now(timezone.utc) + delta).strftime("%Y-%m-%dT%H:%M")


def request_showing(client: TestClient, token: str, listing_id: int, bid_amount: int | float | str, when: str | None = None):
    return client.post(
        "/api/v1/showings",
        headers=auth_headers(token),
        json={"listing_id": listing_id, "requested_at": when or requested_at(timedelta(days=3)), "bid_amount": bid_amount},
    )


def error_kind(r) -> str:
    return r.json()["detail"]["error"]


# Request: $74 -> 400 validation_error, $75 -> 201 with a pending showing and pending bid
def test_request_showing_bid_minimum(client: TestClient):
    seller_token, _ = signup(client, "seller@example.com", "changeme123", "seller")
    listing = create_listing(client, seller_token)
    agent_token, agent = signup(client, "agent@example.com", "changeme123", "agent")

    r = request_showing(client, agent_token, listing["id"], 74)
    assert r.status_code == 400, r.text
    assert error_kind(r) == "validation_error"

    r = request_showing(client, agent_token, listing["id"], 75)
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["showing"]["status"] == "pending"
    assert data["showing"]["claim_mode"] == "seller_approves"
    assert data["showing"]["lock_code_revealed"] is False
    assert data["bid"]["status"] == "pending"
    assert data["bid"]["agent_id"] == agent["id"]
    assert data["bid"]["bid_amount"] == 75


# Request: anonymous 401, seller 403, inactive listing 400 invalid_state, bad datetime 400, unknown listing 404
def test_request_showing_error_mapping(client: TestClient):
    seller_token, _ = signup(client, "seller@example.com", "changeme123", "seller")
    listing = create_listing(client, seller_token)
    draft = create_listing(client, seller_token, status="draft")
    agent_token, _ = signup(client, "agent@example.com", "changeme123", "agent")

    r = client.post(
        "/api/v1/showings",
        json={"listing_id": listing["id"], "requested_at": requested_at(timedelta(days=1)), "bid_amount": 100},
    )
    assert r.status_code == 401
    assert error_kind(r) == "unauthenticated"

    r = request_showing(client, seller_token, listing["id"], 100)
    assert r.status_code == 403
    assert error_kind(r) == "forbidden"

    r = request_showing(client, agent_token, draft["id"], 100)
    assert r.status_code == 400
    assert error_kind(r) == "invalid_state"

    r = request_showing(client, agent_token, listing["id"], 100, when="next tuesday")
    assert r.status_code == 400
    assert error_kind(r) == "validation_error"

    r = request_showing(client, agent_token, 9999, 100)
    assert r.status_code == 404
    assert error_kind(r) == "not_found"

    # A token that is present but invalid never reaches the engine
    r = client.post(
        "/api/v1/showings",
        headers=auth_headers("not-a-token"),
        json={"listing_id": listing["id"], "requested_at": requested_at(timedelta(days=1)), "bid_amount": 100},
    )
    assert r.status_code == 401


# Full approval flow: A requests, B and C bid, seller accepts A -> assigned with payout and revealed code
def test_seller_accepts_one_bid_and_rejects_the_rest(client: TestClient):
    seller_token, _ = signup(client, "seller@example.com", "changeme123", "seller")
    listing = create_listing(client, seller_token)
    a_token, a = signup(client, "a@example.com", "changeme123", "agent")
    b_token, _ = signup(client, "b@example.com", "changeme123", "agent")
    c_token, _ = signup(client, "c@example.com", "changeme123", "agent")

    created = request_showing(client, a_token, listing["id"], 100).json()
    showing_id = created["showing"]["id"]
    for token, amount in ((b_token, 90), (c_token, 110)):
        r = client.post(
            f"/api/v1/showings/{showing_id}/bids",
            headers=auth_headers(token),
            json={"bid_amount": amount, "message": "Can do it"},
        )
        assert r.status_code == 201, r.text

    # Another agent cannot decide on bids
    r = client.post(f"/api/v1/bids/{created['bid']['id']}/accept", headers=auth_headers(b_token))
    assert r.status_code == 403

    r = client.post(f"/api/v1/bids/{created['bid']['id']}/accept", headers=auth_headers(seller_token))
    assert r.status_code == 200, r.text
    showing = r.json()
    assert showing["status"] == "assigned"
    assert showing["assigned_agent_id"] == a["id"]
    assert showing["payout_amount"] == 100
    assert showing["lock_code_revealed"] is True

    # Seller dashboard: nothing pending, one assigned showing with every bid settled
    r = client.get("/api/v1/seller/showings", headers=auth_headers(seller_token))
    assert r.status_code == 200, r.text
    dashboard = r.json()
    assert dashboard["pending"] == []
    assert [s["id"] for s in dashboard["assigned"]] == [showing_id]
    statuses = sorted(b["status"] for b in dashboard["assigned"][0]["bids"])
    assert statuses == ["accepted", "rejected", "rejected"]

    # The assigned showing is no longer claimable
    r = client.post(
        f"/api/v1/showings/{showing_id}/claim",
        headers=auth_headers(c_token),
        json={"bid_amount": 500},
    )
    assert r.status_code == 400
    assert error_kind(r) == "invalid_state"


# Bid amounts: fractions, strings and low values all come back as a 400 validation_error, never a 422
def test_bad_bid_amounts_render_validation_error(client: TestClient):
    seller_token, _ = signup(client, "seller@example.com", "changeme123", "seller")
    listing = create_listing(client, seller_token)
    a_token, _ = signup(client, "a@example.com", "changeme123", "agent")
    created = request_showing(client, a_token, listing["id"], 100).json()
    showing_id = created["showing"]["id"]

    for bad in (75.5, "75", "lots", 74):
        r = request_showing(client, a_token, listing["id"], bad)
        assert r.status_code == 400, r.text
        assert error_kind(r) == "validation_error"

        r = client.post(f"/api/v1/showings/{showing_id}/bids", headers=auth_headers(a_token), json={"bid_amount": bad})
        assert r.status_code == 400, r.text
        assert error_kind(r) == "validation_error"

        r = client.post(f"/api/v1/showings/{showing_id}/claim", headers=auth_headers(a_token), json={"bid_amount": bad})
        assert r.status_code == 400, r.text
        assert error_kind(r) == "validation_error"

    # A whole-dollar float is accepted and stored as an integer
    r = request_showing(client, a_token, listing["id"], 80.0)
    assert r.status_code == 201, r.text
    assert r.json()["bid"]["bid_amount"] == 80


# Reject: the first of two bids keeps the showing pending, the last cancels it
def test_rejecting_every_bid_cancels_the_showing(client: TestClient):
    seller_token, _ = signup(client, "seller@example.com", "changeme123", "seller")
    listing = create_listing(client, seller_token)
    a_token, _ = signup(client, "a@example.com", "changeme123", "agent")
    b_token, _ = signup(client, "b@example.com", "changeme123", "agent")

    created = request_showing(client, a_token, listing["id"], 100).json()
    showing_id = created["showing"]["id"]
    r = client.post(f"/api/v1/showings/{showing_id}/bids", headers=auth_headers(b_token), json={"bid_amount": 95})
    bid_b = r.json()

    r = client.post(f"/api/v1/bids/{created['bid']['id']}/reject", headers=auth_headers(seller_token))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "pending"

    r = client.post(f"/api/v1/bids/{bid_b['id']}/reject", headers=auth_headers(seller_token))
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "cancelled"

    r = client.post("/api/v1/bids/9999/reject", headers=auth_headers(seller_token))
    assert r.status_code == 404


# Claim: a seller_approves showing is never claimable; a legacy buyer showing is, once
def test_claim_paths(client: TestClient):
    seller_token, _ = signup(client, "seller@example.com", "changeme123", "seller")
    listing = create_listing(client, seller_token)
    a_token, _ = signup(client, "a@example.com", "changeme123", "agent")
    b_token, b = signup(client, "b@example.com", "changeme123", "agent")
    c_token, _ = signup(client, "c@example.com", "changeme123", "agent")

    pending = request_showing(client, a_token, listing["id"], 100).json()["showing"]
    r = client.post(f"/api/v1/showings/{pending['id']}/claim", headers=auth_headers(b_token), json={"bid_amount": 75})
    assert r.status_code == 400
    assert error_kind(r) == "invalid_state"

    starts = datetime.now(timezone.utc) + timedelta(days=2)
    r = client.post(
        "/api/v1/showings/buyer",
        json={
            "listing_id": listing["id"],
            "buyer_name": "Dana Buyer",
            "buyer_email": "Dana@Example.com ",
            "requested_date": starts.strftime("%Y-%m-%d"),
            "requested_time": starts.strftime("%H:%M"),
        },
    )
    assert r.status_code == 201, r.text
    legacy = r.json()
    assert legacy["status"] == "bidding"
    assert legacy["claim_mode"] is None

    r = client.post(f"/api/v1/showings/{legacy['id']}/claim", headers=auth_headers(b_token), json={"bid_amount": 80})
    assert r.status_code == 200, r.text
    assert r.json()["assigned_agent_id"] == b["id"]
    assert r.json()["payout_amount"] == 80

    # The winner sees the claim on their dashboard
    r = client.get("/api/v1/agents/me/showings", headers=auth_headers(b_token))
    assert r.status_code == 200, r.text
    requests = r.json()["claim_requests"]
    assert [(q["showing_id"], q["status"], q["bid_amount"]) for q in requests] == [(legacy["id"], "claimed", 80)]

    r = client.post(f"/api/v1/showings/{legacy['id']}/claim", headers=auth_headers(c_token), json={"bid_amount": 90})
    assert r.status_code == 400
    assert error_kind(r) == "invalid_state"

    r = client.post(f"/api/v1/showings/{legacy['id']}/claim", headers=auth_headers(b_token), json={"bid_amount": 74})
    assert r.status_code == 400
    assert error_kind(r) == "validation_error"


# Lock code: 425 too_early days ahead, the code itself inside the one-hour window
def test_lock_code_window(client: TestClient):
    seller_token, _ = signup(client, "seller@example.com", "changeme123", "seller")
    listing = create_listing(client, seller_token, lock_code="9753")
    a_token, _ = signup(client, "a@example.com", "changeme123", "agent")
    b_token, _ = signup(client, "b@example.com", "changeme123", "agent")

    later = request_showing(client, a_token, listing["id"], 100, when=requested_at(timedelta(days=3))).json()
    soon = request_showing(client, a_token, listing["id"], 100, when=requested_at(timedelta(minutes=30))).json()
    for created in (later, soon):
        r = client.post(f"/api/v1/bids/{created['bid']['id']}/accept", headers=auth_headers(seller_token))
        assert r.status_code == 200, r.text

    r = client.get(f"/api/v1/showings/{later['showing']['id']}/lock-code", headers=auth_headers(a_token))
    assert r.status_code == 425, r.text
    assert error_kind(r) == "too_early"

    r = client.get(f"/api/v1/showings/{soon['showing']['id']}/lock-code", headers=auth_headers(b_token))
    assert r.status_code == 403

    r = client.get(f"/api/v1/showings/{soon['showing']['id']}/lock-code", headers=auth_headers(a_token))
    assert r.status_code == 200, r.text
    assert r.json() == {"showing_id": soon["showing"]["id"], "lock_code": "9753"}

    # Listing reads never expose the code
    r = client.get("/api/v1/listings")
    assert "lock_code" not in r.json()[0]


# Complete: assigned agent only; a second completion is invalid_state
def test_complete_showing(client: TestClient):
    seller_token, _ = signup(client, "seller@example.com", "changeme123", "seller")
    listing = create_listing(client, seller_token)
    a_token, a = signup(client, "a@example.com", "changeme123", "agent")
    b_token, _ = signup(client, "b@example.com", "changeme123", "agent")

    created = request_showing(client, a_token, listing["id"], 100).json()
    showing_id = created["showing"]["id"]

    r = client.post(f"/api/v1/showings/{showing_id}/complete", headers=auth_headers(a_token), json={})
    assert r.status_code == 403

    client.post(f"/api/v1/bids/{created['bid']['id']}/accept", headers=auth_headers(seller_token))

    r = client.post(f"/api/v1/showings/{showing_id}/complete", headers=auth_headers(b_token), json={})
    assert r.status_code == 403

    r = client.post(
        f"/api/v1/showings/{showing_id}/complete",
        headers=auth_headers(a_token),
        json={"feedback": "Buyers want a second visit", "rating": 5},
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "completed"
    assert r.json()["feedback"] == "Buyers want a second visit"

    r = client.post(f"/api/v1/showings/{showing_id}/complete", headers=auth_headers(a_token), json={})
    assert r.status_code == 400
    assert error_kind(r) == "invalid_state"

    r = client.get(f"/api/v1/listings/{listing['id']}/showings", headers=auth_headers(seller_token))
    assert r.status_code == 200
    assert r.json()[0]["assigned_agent"]["id"] == a["id"]
    assert r.json()[0]["assigned_agent"]["total_showings"] == 1
