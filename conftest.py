"""
Shared pytest fixtures
Fixed clock, simulated data, in-memory stores and a scripted Gemini client.
"""
import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from google.genai import errors as genai_errors

from models import (
    Tenant,
    SubscriptionPlan,
    SubscriptionTier,
    OnboardingStatus,
    ServerType,
    ConnectionStatus,
)
from registry import build_registry
from services import (
    GeminiReasoningClient,
    InMemoryTenantStore,
    InMemoryQuotaStore,
    InMemoryHistoryStore,
    RetailDataSourceFactory,
    SimulatedRetailDataSource,
)
from orchestration import Orchestrator, QueryPlanner

FIXED_NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
FIXED_TODAY = FIXED_NOW.date()
TOKENS_PER_CALL = 120


def fixed_clock() -> datetime:
    return FIXED_NOW


def rate_limited_error() -> genai_errors.ClientError:
    return genai_errors.ClientError(
        429, {"error": {"code": 429, "message": "Quota exceeded", "status": "RESOURCE_EXHAUSTED"}}
    )


def server_error() -> genai_errors.ServerError:
    return genai_errors.ServerError(
        500, {"error": {"code": 500, "message": "Internal error", "status": "INTERNAL"}}
    )


def plan_json(intent: str = "descriptive", confidence: float = 0.9, capabilities=None, suggestions=None) -> str:
    return json.dumps({
        "intent": intent,
        "confidence": confidence,
        "capabilities": capabilities or [],
        "suggestedCapabilities": suggestions or [],
    })


class FakeModels:
    """Stands in for genai.Client().models; plays back scripted outcomes in order"""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(text=outcome, usage_metadata=SimpleNamespace(total_token_count=TOKENS_PER_CALL))


class FakeGenaiClient:
    def __init__(self, *outcomes):
        self.models = FakeModels(outcomes or [plan_json()])


def make_tenant(tier: SubscriptionTier = SubscriptionTier.FREE, **overrides) -> Tenant:
    values = dict(
        id=f"tenant-{tier.value}",
        name=f"{tier.value.title()} Store",
        is_active=True,
        plan=SubscriptionPlan.for_tier(tier),
        subscription_end_date=FIXED_NOW + timedelta(days=30),
        onboarding_status=OnboardingStatus.COMPLETED,
        server_type=ServerType.SIMULATION,
        connection_status=ConnectionStatus.NOT_CONFIGURED,
    )
    values.update(overrides)
    return Tenant(**values)


class ManualClock:
    """Monotonic clock that only moves when told to"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest.fixture
def data_sources():
    return RetailDataSourceFactory(SimulatedRetailDataSource(today=FIXED_TODAY))


@pytest.fixture
def registry(data_sources):
    return build_registry(data_sources=data_sources, clock=fixed_clock)


@pytest.fixture
def free_tenant():
    return make_tenant(SubscriptionTier.FREE)


@pytest.fixture
def professional_tenant():
    return make_tenant(SubscriptionTier.PROFESSIONAL)


@pytest.fixture
def enterprise_tenant():
    return make_tenant(SubscriptionTier.ENTERPRISE)


@pytest.fixture
def tenant_store(free_tenant, professional_tenant, enterprise_tenant):
    return InMemoryTenantStore([free_tenant, professional_tenant, enterprise_tenant])


@pytest.fixture
def quota_store():
    return InMemoryQuotaStore()


@pytest.fixture
def history_store():
    return InMemoryHistoryStore()


def make_planner(registry, *outcomes, max_attempts: int = 3) -> QueryPlanner:
    client = GeminiReasoningClient(
        client=FakeGenaiClient(*outcomes),
        model_name="test-model",
        max_attempts=max_attempts,
        retry_delay=0,
    )
    return QueryPlanner(registry, client=client, clock=fixed_clock)


@pytest.fixture
def build_orchestrator(registry, tenant_store, quota_store, history_store):
    """Factory: orchestrator whose planner plays back the given Gemini outcomes"""

    def _build(*outcomes, max_attempts: int = 3) -> Orchestrator:
        return Orchestrator(
            registry=registry,
            tenant_store=tenant_store,
            quota_store=quota_store,
            history_store=history_store,
            planner=make_planner(registry, *outcomes, max_attempts=max_attempts),
            clock=fixed_clock,
        )

    return _build
