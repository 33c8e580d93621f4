"""
Tests for the FastAPI routes: status mapping, rate-limit headers and companion endpoints.
"""
import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from api import create_app
from capabilities import SubscriptionTier
from models import PeriodType, period_start
from orchestration import Orchestrator, TenantRateLimiter
from conftest import FIXED_NOW, fixed_clock, plan_json, rate_limited_error

LIMITS = {
    SubscriptionTier.FREE: 2,
    SubscriptionTier.PROFESSIONAL: 30,
    SubscriptionTier.ENTERPRISE: 100,
}


@pytest.fixture
def make_client(build_orchestrator, manual_clock):
    def _make(*outcomes, **kwargs) -> TestClient:
        orchestrator = build_orchestrator(*outcomes, **kwargs)
        limiter = TenantRateLimiter(limits=LIMITS, clock=manual_clock)
        return TestClient(create_app(orchestrator=orchestrator, rate_limiter=limiter))

    return _make


def headers(tenant_id: str = "tenant-free", **extra) -> dict:
    return {"X-Tenant-Id": tenant_id, "X-User-Id": "user-1", **extra}


def test_health(make_client):
    response = make_client().get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_successful_query(make_client):
    client = make_client(plan_json(capabilities=[{"name": "GetTopProducts", "parameters": {"limit": 3}}]))

    response = client.post("/api/bi/query", json={"query": "Top 3 products?"}, headers=headers())

    assert response.status_code == 200
    body = response.json()
    assert body["success"]
    assert body["results"][0]["capability_name"] == "GetTopProducts"
    assert len(body["results"][0]["data"]["products"]) == 3
    assert body["remaining_daily_queries"] == 9
    assert response.headers["X-RateLimit-Limit"] == "2"
    assert response.headers["X-RateLimit-Remaining"] == "1"


def test_query_with_history(make_client):
    client = make_client(plan_json(capabilities=[{"name": "GetStock"}]))
    payload = {
        "query": "and the stock?",
        "history": [{"role": "user", "content": "show sales"}, {"role": "assistant", "content": "here"}],
    }
    response = client.post("/api/bi/query", json=payload, headers=headers())
    assert response.status_code == 200

    prompt = client.app.state.orchestrator.planner.client.client.models.calls[0]["contents"][0].parts[0].text
    assert "[user]: show sales" in prompt


@pytest.mark.parametrize("query", ["", "   "])
def test_empty_query(make_client, query):
    response = make_client().post("/api/bi/query", json={"query": query}, headers=headers())
    assert response.status_code == 400
    assert response.json()["error_code"] == "EMPTY_QUERY"


def test_missing_tenant_header(make_client):
    response = make_client().post("/api/bi/query", json={"query": "sales?"})
    assert response.status_code == 422


def test_unknown_tenant_is_forbidden(make_client):
    response = make_client().post("/api/bi/query", json={"query": "sales?"}, headers=headers("nobody"))
    assert response.status_code == 403
    assert response.json()["error_code"] == "TENANT_NOT_FOUND"


def test_insufficient_tier_is_bad_request(make_client):
    client = make_client(plan_json(intent="comparative", capabilities=[{"name": "ComparePeriod"}]))

    response = client.post("/api/bi/query", json={"query": "compare months"}, headers=headers())

    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "VALIDATION_FAILED"
    assert body["requires_upgrade"] is True
    assert body["errors"][0]["code"] == "INSUFFICIENT_TIER"


def test_out_of_scope_is_bad_request(make_client):
    response = make_client(plan_json(intent="out_of_scope")).post(
        "/api/bi/query", json={"query": "weather?"}, headers=headers()
    )
    assert response.status_code == 400
    assert len(response.json()["suggestions"]) == 3


def test_planner_busy_is_service_unavailable(make_client):
    client = make_client(rate_limited_error(), max_attempts=1)
    response = client.post("/api/bi/query", json={"query": "sales?"}, headers=headers())
    assert response.status_code == 503
    assert response.json()["error_code"] == "PLANNING_SERVICE_BUSY"


def test_rate_limit_returns_429_with_retry_after(make_client):
    client = make_client(plan_json(capabilities=[{"name": "GetStock"}]))
    for _ in range(2):
        assert client.post("/api/bi/query", json={"query": "stock?"}, headers=headers()).status_code == 200

    response = client.post("/api/bi/query", json={"query": "stock?"}, headers=headers())

    assert response.status_code == 429
    assert response.headers["Retry-After"] == "60"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    body = response.json()
    assert body["error_code"] == "RATE_LIMIT_EXCEEDED"
    assert body["retry_after"] == 60


def test_rate_limit_uses_tenant_tier(make_client):
    client = make_client(plan_json(capabilities=[{"name": "GetStock"}]))
    response = client.post("/api/bi/query", json={"query": "stock?"}, headers=headers("tenant-professional"))
    assert response.headers["X-RateLimit-Limit"] == "30"


def test_turkish_error_message(make_client):
    response = make_client().post(
        "/api/bi/query",
        json={"query": "satışlar?"},
        headers=headers("nobody", **{"Accept-Language": "tr-TR,tr;q=0.9,en;q=0.8"}),
    )
    assert response.json()["error_message"] == "Şirket hesabınız bulunamadı."


def test_capabilities_endpoint(make_client):
    client = make_client()

    free = client.get("/api/bi/capabilities", headers=headers())
    assert free.status_code == 200
    assert free.json()["tier"] == "free"
    assert "ComparePeriod" not in {c["name"] for c in free.json()["capabilities"]}

    pro = client.get("/api/bi/capabilities", headers=headers("tenant-professional")).json()
    assert pro["count"] == 6

    assert client.get("/api/bi/capabilities", headers=headers("nobody")).status_code == 403


def test_history_endpoint(make_client):
    client = make_client(plan_json(capabilities=[{"name": "GetStock"}]))
    client.post("/api/bi/query", json={"query": "first"}, headers=headers())
    client.post("/api/bi/query", json={"query": "second"}, headers=headers())

    response = client.get("/api/bi/history", params={"limit": 1}, headers=headers())

    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 1
    assert body["history"][0]["query"] == "second"
    assert body["history"][0]["executed_capabilities"] == ["GetStock"]


class WaitingPlanner:
    """Blocks until the request is cancelled"""

    def create_plan(self, query, tenant_id, tier, history=None, cancel=None):
        cancel.wait(5)
        raise AssertionError("query was never cancelled")


def post_then_disconnect(app, path: str, payload: dict, tenant_id: str) -> tuple[int, dict]:
    """Drive the ASGI app directly with a client that hangs up right after sending the body"""
    body = json.dumps(payload).encode()
    sent = []
    delivered = False

    async def receive():
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return {"type": "http.disconnect"}

    async def send(message):
        sent.append(message)

    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "POST",
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": b"",
        "headers": [
            (b"host", b"testserver"),
            (b"content-type", b"application/json"),
            (b"x-tenant-id", tenant_id.encode()),
        ],
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
    }
    asyncio.run(app(scope, receive, send))

    start = next(m for m in sent if m["type"] == "http.response.start")
    content = b"".join(m.get("body", b"") for m in sent if m["type"] == "http.response.body")
    return start["status"], json.loads(content)


def test_client_disconnect_cancels_query(registry, tenant_store, quota_store, history_store, manual_clock):
    orchestrator = Orchestrator(
        registry=registry,
        tenant_store=tenant_store,
        quota_store=quota_store,
        history_store=history_store,
        planner=WaitingPlanner(),
        clock=fixed_clock,
    )
    app = create_app(orchestrator=orchestrator, rate_limiter=TenantRateLimiter(limits=LIMITS, clock=manual_clock))

    _, body = post_then_disconnect(app, "/api/bi/query", {"query": "sales?"}, "tenant-free")

    assert body["error_code"] == "REQUEST_CANCELLED"
    start = period_start(PeriodType.DAILY, FIXED_NOW)
    assert quota_store.get_or_create("tenant-free", PeriodType.DAILY, start, 10).used_count == 0
    [record] = history_store.list_recent("tenant-free")
    assert record.error_code == "REQUEST_CANCELLED"
