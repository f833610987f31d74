import pytest

from app.config import settings
from app.utils.calendar import today_in

USER = {"X-User-Id": "1"}


def _today() -> str:
    return today_in(settings.TIMEZONE)


async def _seed_nav(client, scheme_code=101, nav=100):
    resp = await client.post("/api/v1/admin/navs", json={
        "navs": [{"scheme_code": scheme_code, "nav_date": _today(), "nav": nav}],
    })
    assert resp.status_code == 200


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_manual_run_executes_due_sip(client):
    await _seed_nav(client)
    plan = (await client.post("/api/v1/plans", json={
        "scheme_code": 101,
        "transaction_type": "SIP",
        "amount": 2000,
        "frequency": "MONTHLY",
        "installments": 6,
    }, headers=USER)).json()

    run = await client.post("/api/v1/admin/scheduler/run", json={"date": _today()})
    assert run.status_code == 200
    summary = run.json()
    assert summary["executed"] == 1
    assert summary["total_invested"] == 2000.0
    assert summary["records"][0]["plan_id"] == plan["id"]

    # Same day again: nothing left to do
    rerun = (await client.post("/api/v1/admin/scheduler/run", json={"date": _today()})).json()
    assert rerun["total_due"] == 0

    executions = (await client.get(f"/api/v1/plans/{plan['id']}/executions", headers=USER)).json()
    assert [e["status"] for e in executions["executions"]] == ["SUCCESS"]

    portfolio = (await client.get("/api/v1/portfolio", headers=USER)).json()
    [position] = portfolio["positions"]
    assert position["units"] == 20.0
    assert position["current_value"] == 2000.0
    assert portfolio["balance"] == settings.INITIAL_DEMO_BALANCE - 2000

    ledger = (await client.get("/api/v1/portfolio/ledger", headers=USER)).json()
    assert ledger["total"] == 1
    assert ledger["entries"][0]["entry_type"] == "DEBIT"

    notes = (await client.get("/api/v1/portfolio/notifications", headers=USER)).json()
    assert notes["count"] == 1

    logs = (await client.get("/api/v1/admin/scheduler/logs")).json()
    assert [log["status"] for log in logs["logs"]] == ["SUCCESS", "SUCCESS"]
    assert {log["triggered_by"] for log in logs["logs"]} == {"MANUAL"}

    stats = (await client.get("/api/v1/admin/executions/stats")).json()
    assert stats["by_status"]["SUCCESS"]["count"] == 1


@pytest.mark.asyncio
@pytest.mark.e2e
async def test_failures_endpoint_lists_failed_installments(client):
    plan = (await client.post("/api/v1/plans", json={
        "scheme_code": 555,
        "transaction_type": "SIP",
        "amount": 1000,
        "frequency": "DAILY",
    }, headers=USER)).json()

    summary = (await client.post("/api/v1/admin/scheduler/run", json={"date": _today()})).json()
    assert summary["failed"] == 1

    failures = (await client.get("/api/v1/admin/executions/failures")).json()
    assert failures["count"] == 1
    assert failures["failures"][0]["plan_id"] == plan["id"]
    assert failures["failures"][0]["failure_reason"] == "NavUnavailable"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_lump_sum(client):
    await _seed_nav(client, scheme_code=303, nav=50)

    resp = await client.post("/api/v1/portfolio/lump-sum", json={"scheme_code": 303, "amount": 5000}, headers=USER)
    assert resp.status_code == 201
    data = resp.json()
    assert data["units"] == 100.0
    assert data["balance_after"] == settings.INITIAL_DEMO_BALANCE - 5000

    too_much = await client.post(
        "/api/v1/portfolio/lump-sum",
        json={"scheme_code": 303, "amount": settings.INITIAL_DEMO_BALANCE},
        headers=USER,
    )
    assert too_much.status_code == 400
    assert too_much.json()["error_code"] == "INSUFFICIENT_BALANCE"

    no_nav = await client.post("/api/v1/portfolio/lump-sum", json={"scheme_code": 404, "amount": 10}, headers=USER)
    assert no_nav.json()["error_code"] == "NAV_UNAVAILABLE"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_balance_for_unknown_user_is_404(client):
    resp = await client.get("/api/v1/portfolio/balance", headers={"X-User-Id": "77"})
    assert resp.status_code == 404
    assert resp.json()["error_code"] == "ACCOUNT_NOT_FOUND"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["services"]["database"] == "connected"
    assert data["services"]["scheduler"] == "disabled"
