"""
Tests for tenant eligibility checks and tenant row parsing.
"""
from datetime import timedelta, timezone

import pytest

from models import (
    ConnectionStatus,
    OnboardingStatus,
    ServerType,
    SubscriptionTier,
    Tenant,
)
from orchestration import TenantValidator
from services import InMemoryTenantStore
from conftest import FIXED_NOW, fixed_clock, make_tenant


def check(tenant: Tenant | None, tenant_id: str = "tenant-free"):
    store = InMemoryTenantStore([tenant] if tenant else [])
    return TenantValidator(store, clock=fixed_clock).validate(tenant_id)


def test_eligible_tenant():
    result = check(make_tenant())
    assert result.ok
    assert result.tenant.id == "tenant-free"


@pytest.mark.parametrize("overrides, expected", [
    ({"is_active": False}, "TENANT_INACTIVE"),
    ({"onboarding_status": OnboardingStatus.IN_PROGRESS}, "ONBOARDING_INCOMPLETE"),
    ({"plan": None}, "NO_SUBSCRIPTION"),
    ({"subscription_end_date": FIXED_NOW - timedelta(seconds=1)}, "SUBSCRIPTION_EXPIRED"),
    ({"server_type": ServerType.NEBIM, "connection_status": ConnectionStatus.FAILED}, "DATA_SOURCE_NOT_CONNECTED"),
])
def test_ineligible_tenants(overrides, expected):
    result = check(make_tenant(**overrides))
    assert not result.ok
    assert result.error_code == expected


def test_unknown_tenant():
    result = check(None, "missing")
    assert result.error_code == "TENANT_NOT_FOUND"


def test_checks_run_in_order():
    tenant = make_tenant(is_active=False, onboarding_status=OnboardingStatus.PENDING, plan=None)
    assert check(tenant).error_code == "TENANT_INACTIVE"


def test_connected_real_tenant_is_eligible():
    tenant = make_tenant(
        server_type=ServerType.NEBIM,
        connection_status=ConnectionStatus.CONNECTED,
        gateway_url="https://gateway.example.com",
    )
    assert check(tenant).ok


def test_no_end_date_never_expires():
    assert check(make_tenant(subscription_end_date=None)).ok


def test_tenant_from_row():
    tenant = Tenant.from_dict({
        "id": "abc",
        "name": "Moda Store",
        "is_active": True,
        "subscription_end_date": "2026-01-01T00:00:00",
        "onboarding_status": "completed",
        "server_type": "nebim",
        "connection_status": "connected",
        "gateway_url": "https://gw",
        "subscription_plans": {"name": "Pro", "tier": "Professional", "daily_query_limit": 50},
    })

    assert tenant.tier == SubscriptionTier.PROFESSIONAL
    assert tenant.plan.daily_query_limit == 50
    assert tenant.plan.monthly_query_limit == 3000
    assert tenant.subscription_end_date.tzinfo == timezone.utc
    assert not tenant.is_simulation


def test_unknown_tier_name_falls_back_to_free():
    assert SubscriptionTier.parse("platinum") == SubscriptionTier.FREE
    assert SubscriptionTier.parse(" ENTERPRISE ") == SubscriptionTier.ENTERPRISE
