"""Leave API tests — auth, role enforcement, RFC 7807 error bodies and the
submit → approve → cancel flow over HTTP.
"""

from __future__ import annotations

import uuid
from datetime import date, timedelta

import pytest

from ems.common.constants import UserRole
from tests.conftest import bearer, create_access_token

BASE = "/api/v1/leave"


def _future(days: int) -> date:
    return date.today() + timedelta(days=days)


def _payload(start: date, end: date, leave_type: str = "Vacation") -> dict:
    return {
        "leave_type": leave_type,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "reason": "Visiting family abroad",
    }


@pytest.fixture
async def people(db, test_employee, test_manager) -> dict:
    """Commit seeded employees so request-level rollbacks cannot discard them."""
    await db.commit()
    return {"employee": test_employee, "manager": test_manager}


# ═════════════════════════════════════════════════════════════════════
# Auth
# ═════════════════════════════════════════════════════════════════════


class TestAuth:

    async def test_health_needs_no_auth(self, client):
        resp = await client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    async def test_requests_require_token(self, client):
        resp = await client.get(f"{BASE}/requests")
        assert resp.status_code == 401

    async def test_expired_token_rejected(self, client):
        token = create_access_token(uuid.uuid4(), expired=True)
        resp = await client.get(
            f"{BASE}/requests", headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 401

    async def test_refresh_token_type_rejected(self, client):
        token = create_access_token(uuid.uuid4(), token_type="refresh")
        resp = await client.get(
            f"{BASE}/requests", headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 401

    async def test_employee_cannot_open_pending_queue(self, client, people, auth_headers):
        resp = await client.get(f"{BASE}/requests/pending", headers=auth_headers)
        assert resp.status_code == 403
        body = resp.json()
        assert body["type"].endswith("/forbidden")
        assert body["instance"] == f"{BASE}/requests/pending"

    async def test_manager_cannot_update_totals(self, client, people, manager_headers):
        resp = await client.put(
            f"{BASE}/balances/{people['employee']['id']}",
            json={"year": 2025, "sick_leave_total": 12},
            headers=manager_headers,
        )
        assert resp.status_code == 403


# ═════════════════════════════════════════════════════════════════════
# Workflow
# ═════════════════════════════════════════════════════════════════════


class TestLeaveFlow:

    async def test_submit_approve_cancel(self, client, people, auth_headers, manager_headers):
        start, end = _future(30), _future(32)

        resp = await client.post(
            f"{BASE}/requests", json=_payload(start, end), headers=auth_headers,
        )
        assert resp.status_code == 201
        created = resp.json()
        assert created["status"] == "Pending"
        assert created["days_count"] == 3

        resp = await client.get(f"{BASE}/requests/pending", headers=manager_headers)
        assert resp.status_code == 200
        assert [r["id"] for r in resp.json()] == [created["id"]]
        assert resp.json()[0]["department"] == "Engineering"

        resp = await client.put(
            f"{BASE}/requests/{created['id']}/approve", headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "Approved"

        employee_id = people["employee"]["id"]
        resp = await client.get(
            f"{BASE}/balances/{employee_id}",
            params={"year": start.year},
            headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["vacation"] == {"total": 15, "used": 3, "remaining": 12}

        resp = await client.put(
            f"{BASE}/requests/{created['id']}/cancel", headers=auth_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "Cancelled"

        resp = await client.get(
            f"{BASE}/balances/{employee_id}",
            params={"year": start.year},
            headers=auth_headers,
        )
        assert resp.json()["vacation"]["remaining"] == 15

    async def test_insufficient_balance_problem_detail(self, client, people, auth_headers):
        start = _future(30)
        resp = await client.post(
            f"{BASE}/requests",
            json=_payload(start, start + timedelta(days=5), "Personal"),
            headers=auth_headers,
        )
        assert resp.status_code == 422
        assert resp.headers["content-type"].startswith("application/problem+json")
        body = resp.json()
        assert body["type"].endswith("/insufficient-balance")
        assert body["errors"]["available"] == ["5"]
        assert body["errors"]["requested"] == ["6"]

    async def test_invalid_state_is_409(self, client, people, auth_headers, manager_headers):
        start = _future(40)
        created = (await client.post(
            f"{BASE}/requests", json=_payload(start, start), headers=auth_headers,
        )).json()

        resp = await client.put(
            f"{BASE}/requests/{created['id']}/reject",
            json={"rejection_reason": "Product launch that day"},
            headers=manager_headers,
        )
        assert resp.status_code == 200

        resp = await client.put(
            f"{BASE}/requests/{created['id']}/approve", headers=manager_headers,
        )
        assert resp.status_code == 409
        assert resp.json()["type"].endswith("/invalid-state")

    async def test_short_rejection_reason_is_422(self, client, people, auth_headers, manager_headers):
        start = _future(45)
        created = (await client.post(
            f"{BASE}/requests", json=_payload(start, start), headers=auth_headers,
        )).json()

        resp = await client.put(
            f"{BASE}/requests/{created['id']}/reject",
            json={"rejection_reason": "no"},
            headers=manager_headers,
        )
        assert resp.status_code == 422
        assert "rejection_reason" in resp.json()["errors"]

    async def test_inverted_dates_is_422(self, client, people, auth_headers):
        resp = await client.post(
            f"{BASE}/requests",
            json=_payload(_future(20), _future(18)),
            headers=auth_headers,
        )
        assert resp.status_code == 422
        assert resp.json()["type"].endswith("/validation-error")

    async def test_unknown_request_is_404(self, client, people, manager_headers):
        resp = await client.get(
            f"{BASE}/requests/{uuid.uuid4()}", headers=manager_headers,
        )
        assert resp.status_code == 404
        assert resp.json()["type"].endswith("/not-found")

    async def test_list_requests_is_paginated(self, client, people, auth_headers):
        for offset in (50, 60, 70):
            start = _future(offset)
            await client.post(
                f"{BASE}/requests", json=_payload(start, start), headers=auth_headers,
            )

        resp = await client.get(
            f"{BASE}/requests", params={"page_size": 2}, headers=auth_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert len(body["data"]) == 2
        assert body["meta"]["total"] == 3
        assert body["meta"]["has_next"] is True

    async def test_manager_listing_counts_every_request(
        self, client, people, auth_headers, manager_headers,
    ):
        for offset in (50, 60, 70):
            start = _future(offset)
            await client.post(
                f"{BASE}/requests", json=_payload(start, start), headers=auth_headers,
            )

        resp = await client.get(
            f"{BASE}/requests", params={"page_size": 2}, headers=manager_headers,
        )
        assert resp.status_code == 200
        meta = resp.json()["meta"]
        assert meta["total"] == 3
        assert meta["total_pages"] == 2
        assert meta["has_next"] is True

        resp = await client.get(
            f"{BASE}/requests", params={"page": 2, "page_size": 2}, headers=manager_headers,
        )
        assert len(resp.json()["data"]) == 1
        assert resp.json()["meta"]["has_prev"] is True

    async def test_admin_updates_totals(self, client, people):
        admin_headers = bearer(uuid.uuid4(), UserRole.admin)
        resp = await client.put(
            f"{BASE}/balances/{people['employee']['id']}",
            json={"year": 2026, "vacation_leave_total": 21},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["vacation"] == {"total": 21, "used": 0, "remaining": 21}
