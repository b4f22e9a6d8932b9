"""Tests for the /cashbook ledger: guards, CRUD, listing and summaries."""

from datetime import date, datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from app.core.rbac import PermissionType, Role

API = "/api/v1"


def _entry(**overrides):
    payload = {
        "date": date.today().isoformat(),
        "type": "DEBIT",
        "amount": "150.00",
        "category": "Fabric",
        "description": "Cotton rolls",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
async def cashier(make_user, login):
    await make_user("cash@x.com", Role.CASHBOOK_MANAGER)
    return await login("cash@x.com")


@pytest.fixture
async def viewer(make_user, login):
    await make_user(
        "viewer@x.com",
        Role.REPORT_VIEWER,
        permissions=[PermissionType.CREATE_CASHBOOK, PermissionType.DELETE_CASHBOOK],
    )
    return await login("viewer@x.com")


# ── Guards ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_requires_authentication(async_client: AsyncClient):
    assert (await async_client.get(f"{API}/cashbook")).status_code == 401
    assert (await async_client.post(f"{API}/cashbook", json=_entry())).status_code == 401


@pytest.mark.asyncio
async def test_plain_user_cannot_read(async_client: AsyncClient, make_user, login):
    await make_user("alice@x.com")
    headers = await login("alice@x.com")
    resp = await async_client.get(f"{API}/cashbook", headers=headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_viewer_reads_but_never_writes(async_client: AsyncClient, cashier, viewer):
    """REPORT_VIEWER is refused writes even with explicit write grants."""
    created = await async_client.post(f"{API}/cashbook", json=_entry(), headers=cashier)
    entry_id = created.json()["id"]

    assert (await async_client.get(f"{API}/cashbook", headers=viewer)).status_code == 200
    resp = await async_client.post(f"{API}/cashbook", json=_entry(), headers=viewer)
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Read-only role cannot modify data"
    resp = await async_client.delete(f"{API}/cashbook/{entry_id}", headers=viewer)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_cashier_cannot_delete(async_client: AsyncClient, cashier):
    entry_id = (await async_client.post(f"{API}/cashbook", json=_entry(), headers=cashier)).json()["id"]
    resp = await async_client.delete(f"{API}/cashbook/{entry_id}", headers=cashier)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_explicit_grant_allows_delete(async_client: AsyncClient, make_user, login):
    await make_user("lead@x.com", Role.CASHBOOK_MANAGER, permissions=[PermissionType.DELETE_CASHBOOK])
    headers = await login("lead@x.com")
    entry_id = (await async_client.post(f"{API}/cashbook", json=_entry(), headers=headers)).json()["id"]
    resp = await async_client.delete(f"{API}/cashbook/{entry_id}", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["success"] is True


# ── CRUD ────────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_create_entry(async_client: AsyncClient, cashier):
    resp = await async_client.post(f"{API}/cashbook", json=_entry(category="  Trims "), headers=cashier)
    assert resp.status_code == 201
    data = resp.json()
    assert data["amount"] == 150.0
    assert data["type"] == "DEBIT"
    assert data["category"] == "Trims"
    assert data["created_by"]


@pytest.mark.asyncio
async def test_create_entry_validation(async_client: AsyncClient, cashier):
    for bad in (
        _entry(amount="0"),
        _entry(amount="-5"),
        _entry(type="REFUND"),
        _entry(category="   "),
    ):
        resp = await async_client.post(f"{API}/cashbook", json=bad, headers=cashier)
        assert resp.status_code == 422, bad


@pytest.mark.asyncio
async def test_get_update_and_delete(async_client: AsyncClient, admin_headers):
    entry_id = (await async_client.post(f"{API}/cashbook", json=_entry(), headers=admin_headers)).json()["id"]

    resp = await async_client.get(f"{API}/cashbook/{entry_id}", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["description"] == "Cotton rolls"

    resp = await async_client.put(
        f"{API}/cashbook/{entry_id}",
        json={"amount": "99.50", "description": "Buttons"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["amount"] == 99.5
    assert resp.json()["description"] == "Buttons"
    assert resp.json()["category"] == "Fabric"

    resp = await async_client.delete(f"{API}/cashbook/{entry_id}", headers=admin_headers)
    assert resp.status_code == 200
    resp = await async_client.get(f"{API}/cashbook/{entry_id}", headers=admin_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_entry_validation(async_client: AsyncClient, cashier):
    entry_id = (await async_client.post(f"{API}/cashbook", json=_entry(), headers=cashier)).json()["id"]
    for bad in (
        {"category": "   "},
        {"reference_type": "x" * 300},
        {"reference_id": "x" * 65},
        {"amount": "0"},
    ):
        resp = await async_client.put(f"{API}/cashbook/{entry_id}", json=bad, headers=cashier)
        assert resp.status_code == 422, bad

    resp = await async_client.put(
        f"{API}/cashbook/{entry_id}", json={"category": "  Trims  "}, headers=cashier
    )
    assert resp.status_code == 200
    assert resp.json()["category"] == "Trims"


@pytest.mark.asyncio
async def test_missing_entry(async_client: AsyncClient, admin_headers):
    assert (await async_client.get(f"{API}/cashbook/9999", headers=admin_headers)).status_code == 404
    resp = await async_client.put(f"{API}/cashbook/9999", json={"amount": "1"}, headers=admin_headers)
    assert resp.status_code == 404
    assert (await async_client.delete(f"{API}/cashbook/9999", headers=admin_headers)).status_code == 404


# ── Listing ─────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_list_running_balance_and_order(async_client: AsyncClient, cashier):
    day1, day2, day3 = "2024-03-01", "2024-03-02", "2024-03-03"
    await async_client.post(f"{API}/cashbook", json=_entry(date=day1, type="CREDIT", amount="1000", category="Sales"), headers=cashier)
    await async_client.post(f"{API}/cashbook", json=_entry(date=day2, amount="200"), headers=cashier)
    await async_client.post(f"{API}/cashbook", json=_entry(date=day3, amount="50", category="Transport"), headers=cashier)

    resp = await async_client.get(f"{API}/cashbook", headers=cashier)
    assert resp.status_code == 200
    body = resp.json()
    assert [e["date"] for e in body["entries"]] == [day3, day2, day1]
    assert [e["running_balance"] for e in body["entries"]] == [750.0, 800.0, 1000.0]
    assert body["pagination"] == {"page": 1, "limit": 50, "total": 3, "pages": 1}


@pytest.mark.asyncio
async def test_list_filters(async_client: AsyncClient, cashier):
    await async_client.post(f"{API}/cashbook", json=_entry(date="2024-03-01", type="CREDIT", category="Sales"), headers=cashier)
    await async_client.post(f"{API}/cashbook", json=_entry(date="2024-03-01", category="Fabric"), headers=cashier)
    await async_client.post(f"{API}/cashbook", json=_entry(date="2024-03-02", category="Fabric dyeing"), headers=cashier)

    async def count(**params) -> int:
        resp = await async_client.get(f"{API}/cashbook", params=params, headers=cashier)
        assert resp.status_code == 200
        return resp.json()["pagination"]["total"]

    assert await count(type="CREDIT") == 1
    assert await count(date="2024-03-01") == 2
    assert await count(category="fabric") == 2
    assert await count(category="FABRIC", date="2024-03-02") == 1


@pytest.mark.asyncio
async def test_category_filter_is_literal(async_client: AsyncClient, cashier):
    """``%`` and ``_`` in the filter match themselves, not any text."""
    await async_client.post(f"{API}/cashbook", json=_entry(category="Fabric"), headers=cashier)
    await async_client.post(f"{API}/cashbook", json=_entry(category="10% discount"), headers=cashier)

    async def categories(term: str) -> list[str]:
        resp = await async_client.get(f"{API}/cashbook", params={"category": term}, headers=cashier)
        assert resp.status_code == 200
        return [e["category"] for e in resp.json()["entries"]]

    assert await categories("%") == ["10% discount"]
    assert await categories("_") == []
    assert await categories("f_bric") == []


@pytest.mark.asyncio
async def test_list_pagination(async_client: AsyncClient, cashier):
    for day in range(1, 6):
        await async_client.post(f"{API}/cashbook", json=_entry(date=f"2024-03-0{day}"), headers=cashier)

    resp = await async_client.get(f"{API}/cashbook", params={"page": 2, "limit": 2}, headers=cashier)
    body = resp.json()
    assert [e["date"] for e in body["entries"]] == ["2024-03-03", "2024-03-02"]
    assert body["pagination"] == {"page": 2, "limit": 2, "total": 5, "pages": 3}


# ── Summary ─────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_summary_current_month(async_client: AsyncClient, cashier):
    today = datetime.now(timezone.utc).date()
    long_ago = today.replace(day=1) - timedelta(days=40)
    await async_client.post(f"{API}/cashbook", json=_entry(date=today.isoformat(), type="CREDIT", amount="500", category="Sales"), headers=cashier)
    await async_client.post(f"{API}/cashbook", json=_entry(date=today.isoformat(), amount="120", category="Fabric"), headers=cashier)
    await async_client.post(f"{API}/cashbook", json=_entry(date=today.isoformat(), amount="30", category="Fabric"), headers=cashier)
    await async_client.post(f"{API}/cashbook", json=_entry(date=today.isoformat(), amount="80", category="Transport"), headers=cashier)
    await async_client.post(f"{API}/cashbook", json=_entry(date=long_ago.isoformat(), amount="999", category="Old"), headers=cashier)

    resp = await async_client.get(f"{API}/cashbook/summary", headers=cashier)
    assert resp.status_code == 200
    data = resp.json()
    assert data["period"] == "current_month"
    assert data["start_date"] == today.replace(day=1).isoformat()
    assert data["total_credit"] == 500.0
    assert data["total_debit"] == 230.0
    assert data["net_amount"] == 270.0
    assert data["entry_count"] == 4
    assert data["debit_categories"] == [
        {"category": "Fabric", "total": 150.0, "count": 2},
        {"category": "Transport", "total": 80.0, "count": 1},
    ]


@pytest.mark.asyncio
async def test_summary_periods(async_client: AsyncClient, cashier):
    today = datetime.now(timezone.utc).date()
    last_month = today.replace(day=1) - timedelta(days=1)
    await async_client.post(f"{API}/cashbook", json=_entry(date=today.isoformat(), amount="10"), headers=cashier)
    await async_client.post(f"{API}/cashbook", json=_entry(date=last_month.isoformat(), amount="20"), headers=cashier)

    async def debit(period: str) -> float:
        resp = await async_client.get(f"{API}/cashbook/summary", params={"period": period}, headers=cashier)
        assert resp.status_code == 200
        return resp.json()["total_debit"]

    assert await debit("today") == 10.0
    assert await debit("last_month") == 20.0
    assert await debit("all_time") == 30.0


@pytest.mark.asyncio
async def test_summary_rejects_unknown_period(async_client: AsyncClient, cashier):
    resp = await async_client.get(f"{API}/cashbook/summary", params={"period": "forever"}, headers=cashier)
    assert resp.status_code == 422
