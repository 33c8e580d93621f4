"""
End-to-end tests for the query orchestrator with a scripted Gemini client,
simulated retail data and in-memory stores.
"""
import json
from datetime import datetime, timezone

from models import PeriodType, SubscriptionPlan, SubscriptionTier, period_start
from orchestration import Orchestrator
from services import InMemoryHistoryStore
from utils import CancellationToken
from conftest import (
    FIXED_NOW,
    TOKENS_PER_CALL,
    fixed_clock,
    make_planner,
    make_tenant,
    plan_json,
    rate_limited_error,
    server_error,
)


def daily_used(quota_store, tenant_id: str) -> int:
    start = period_start(PeriodType.DAILY, FIXED_NOW)
    return quota_store.get_or_create(tenant_id, PeriodType.DAILY, start, 10).used_count


def only_record(history_store, tenant_id: str):
    records = history_store.list_recent(tenant_id)
    assert len(records) == 1
    return records[0]


# =============================================================================
# Successful runs
# =============================================================================

def test_low_stock_question_for_free_tenant(build_orchestrator, quota_store, history_store):
    orchestrator = build_orchestrator(plan_json(
        intent="descriptive",
        confidence=0.95,
        capabilities=[{"name": "GetLowStockAlerts", "version": "v1", "parameters": {}, "order": 1}],
    ))

    response = orchestrator.process_query("tenant-free", "user-1", "Which items are low on stock?")

    assert response.success
    assert response.error_code is None
    assert response.intent == "descriptive"
    assert response.tokens_used == TOKENS_PER_CALL
    assert response.data_source == "simulation"
    assert response.remaining_daily_queries == 9

    [result] = response.results
    assert result.capability_name == "GetLowStockAlerts"
    assert result.data["summary"]["threshold"] == 10
    for alert in result.data["alerts"]:
        assert alert["severity"] == ("critical" if alert["quantity"] <= 5 else "warning")

    assert daily_used(quota_store, "tenant-free") == 1
    record = only_record(history_store, "tenant-free")
    assert record.success
    assert record.user_id == "user-1"
    assert record.executed_capabilities == ["GetLowStockAlerts"]
    assert record.tokens_used == TOKENS_PER_CALL
    assert record.data_source == "simulation"
    assert json.loads(record.plan_json)["capabilities"][0]["name"] == "GetLowStockAlerts"


def test_multi_capability_plan(build_orchestrator):
    orchestrator = build_orchestrator(plan_json(
        intent="comparative",
        capabilities=[
            {"name": "GetTopProducts", "parameters": {"limit": 3}, "order": 2},
            {"name": "ComparePeriod", "order": 1},
        ],
    ))

    response = orchestrator.process_query("tenant-professional", "u", "How are we doing vs last month?")

    assert response.success
    assert [r.capability_name for r in response.results] == ["ComparePeriod", "GetTopProducts"]
    assert response.remaining_daily_queries == 99


def test_infinite_parameter_uses_default(build_orchestrator):
    orchestrator = build_orchestrator(plan_json(capabilities=[
        {"name": "GetLowStockAlerts", "parameters": {"threshold": float("inf")}},
    ]))

    response = orchestrator.process_query("tenant-free", "u", "low stock?")

    assert response.success
    assert response.results[0].data["summary"]["threshold"] == 10


def test_enterprise_has_unlimited_queries(build_orchestrator):
    orchestrator = build_orchestrator(plan_json(capabilities=[{"name": "GetStock"}]))
    response = orchestrator.process_query("tenant-enterprise", "u", "stock?")
    assert response.success
    assert response.remaining_daily_queries is None


# =============================================================================
# Rejections before or during planning
# =============================================================================

def test_professional_capability_rejected_for_free_tenant(build_orchestrator, quota_store, history_store):
    orchestrator = build_orchestrator(plan_json(
        intent="comparative",
        capabilities=[{"name": "ComparePeriod", "parameters": {"metric": "sales"}}],
    ))

    response = orchestrator.process_query("tenant-free", "u", "Compare this month with last month")

    assert not response.success
    assert response.error_code == "VALIDATION_FAILED"
    assert [e.code for e in response.errors] == ["INSUFFICIENT_TIER"]
    assert response.requires_upgrade
    assert "ComparePeriod" in response.upgrade_message
    assert response.results == []
    assert daily_used(quota_store, "tenant-free") == 0

    record = only_record(history_store, "tenant-free")
    assert not record.success
    assert record.error_code == "VALIDATION_FAILED"
    assert record.executed_capabilities == []


def test_out_of_scope_question(build_orchestrator, quota_store, history_store):
    orchestrator = build_orchestrator(plan_json(intent="out_of_scope", confidence=0.1))

    response = orchestrator.process_query("tenant-free", "u", "What's the weather tomorrow?")

    assert response.error_code == "OUT_OF_SCOPE"
    assert len(response.suggestions) == 3
    assert daily_used(quota_store, "tenant-free") == 0
    assert only_record(history_store, "tenant-free").intent == "out_of_scope"


def test_unknown_tenant(build_orchestrator, history_store):
    orchestrator = build_orchestrator()
    response = orchestrator.process_query("nobody", "u", "sales?")

    assert response.error_code == "TENANT_NOT_FOUND"
    assert orchestrator.planner.client.client.models.calls == []
    record = only_record(history_store, "nobody")
    assert record.error_code == "TENANT_NOT_FOUND"
    assert record.intent is None
    assert record.plan_json is None


def test_quota_exhausted_skips_planning(registry, tenant_store, quota_store, history_store, build_orchestrator):
    tenant_store.add(make_tenant(
        id="tiny",
        plan=SubscriptionPlan(name="Tiny", tier=SubscriptionTier.FREE, daily_query_limit=1, monthly_query_limit=100),
    ))
    orchestrator = build_orchestrator(plan_json(capabilities=[{"name": "GetStock"}]))

    assert orchestrator.process_query("tiny", "u", "stock?").success
    response = orchestrator.process_query("tiny", "u", "stock again?")

    assert response.error_code == "DAILY_QUOTA_EXCEEDED"
    assert response.quota_resets_at == datetime(2025, 6, 16, tzinfo=timezone.utc)
    assert response.remaining_daily_queries == 0
    assert "2025-06-16" in response.error_message
    assert len(orchestrator.planner.client.client.models.calls) == 1


def test_planner_busy(build_orchestrator, quota_store, history_store):
    orchestrator = build_orchestrator(rate_limited_error(), max_attempts=2)

    response = orchestrator.process_query("tenant-free", "u", "sales?")

    assert response.error_code == "PLANNING_SERVICE_BUSY"
    assert response.tokens_used > 0
    assert daily_used(quota_store, "tenant-free") == 0
    assert only_record(history_store, "tenant-free").tokens_used == response.tokens_used


def test_ai_service_error(build_orchestrator):
    response = build_orchestrator(server_error()).process_query("tenant-free", "u", "sales?")
    assert response.error_code == "AI_SERVICE_ERROR"


# =============================================================================
# Execution outcomes
# =============================================================================

def test_failed_capability_reports_execution_failed(build_orchestrator, quota_store, history_store):
    orchestrator = build_orchestrator(plan_json(capabilities=[
        {"name": "GetProductDetails", "parameters": {"productCode": "PRD99999"}, "order": 1},
        {"name": "GetStock", "order": 2},
    ]))

    response = orchestrator.process_query("tenant-free", "u", "details for PRD99999")

    assert not response.success
    assert response.error_code == "EXECUTION_FAILED"
    results = {r.capability_name: r for r in response.results}
    assert results["GetProductDetails"].error_code == "PRODUCT_NOT_FOUND"
    assert results["GetStock"].success
    assert daily_used(quota_store, "tenant-free") == 0

    record = only_record(history_store, "tenant-free")
    assert record.executed_capabilities == ["GetProductDetails", "GetStock"]


def test_cancelled_request_consumes_nothing(build_orchestrator, quota_store, history_store):
    cancel = CancellationToken()
    cancel.cancel()
    orchestrator = build_orchestrator(plan_json(capabilities=[{"name": "GetStock"}]))

    response = orchestrator.process_query("tenant-free", "u", "stock?", cancel=cancel)

    assert response.error_code == "REQUEST_CANCELLED"
    assert daily_used(quota_store, "tenant-free") == 0
    assert only_record(history_store, "tenant-free").error_code == "REQUEST_CANCELLED"


class ExplodingPlanner:
    def create_plan(self, *args, **kwargs):
        raise RuntimeError("unexpected")


def test_unexpected_error_becomes_internal_error(registry, tenant_store, quota_store, history_store):
    orchestrator = Orchestrator(
        registry=registry,
        tenant_store=tenant_store,
        quota_store=quota_store,
        history_store=history_store,
        planner=ExplodingPlanner(),
        clock=fixed_clock,
    )
    response = orchestrator.process_query("tenant-free", "u", "sales?")
    assert response.error_code == "INTERNAL_ERROR"
    assert only_record(history_store, "tenant-free").error_code == "INTERNAL_ERROR"


class FailingHistoryStore(InMemoryHistoryStore):
    def add(self, record):
        raise ConnectionError("database unavailable")


def test_history_write_failure_does_not_change_response(registry, tenant_store, quota_store):
    orchestrator = Orchestrator(
        registry=registry,
        tenant_store=tenant_store,
        quota_store=quota_store,
        history_store=FailingHistoryStore(),
        planner=make_planner(registry, plan_json(capabilities=[{"name": "GetStock"}])),
        clock=fixed_clock,
    )
    response = orchestrator.process_query("tenant-free", "u", "stock?")
    assert response.success


# =============================================================================
# Localization and companion operations
# =============================================================================

def test_turkish_messages(build_orchestrator):
    response = build_orchestrator().process_query("nobody", "u", "satışlar?", language="tr")
    assert response.error_message == "Şirket hesabınız bulunamadı."


def test_list_capabilities_by_tier(build_orchestrator):
    orchestrator = build_orchestrator()
    free = {c["name"] for c in orchestrator.list_capabilities("tenant-free")}
    pro = {c["name"] for c in orchestrator.list_capabilities("tenant-professional")}

    assert "ComparePeriod" not in free
    assert "ComparePeriod" in pro
    assert orchestrator.list_capabilities("nobody") is None


def test_history_is_newest_first_and_clamped(build_orchestrator):
    orchestrator = build_orchestrator(plan_json(capabilities=[{"name": "GetStock"}]))
    for i in range(3):
        orchestrator.process_query("tenant-enterprise", "u1", f"question {i}")
    orchestrator.process_query("tenant-enterprise", "u2", "other user")

    records = orchestrator.get_history("tenant-enterprise", "u1")
    assert [r.query for r in records] == ["question 2", "question 1", "question 0"]
    assert len(orchestrator.get_history("tenant-enterprise", limit=0)) == 1
    assert len(orchestrator.get_history("tenant-enterprise", limit=1000)) == 4
