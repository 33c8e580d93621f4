"""
Tests for daily/monthly quotas and the in-memory quota store.
"""
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from models import PeriodType, Quota, SubscriptionPlan, SubscriptionTier, period_start, next_reset
from orchestration import QuotaManager
from services import InMemoryQuotaStore
from conftest import FIXED_NOW, fixed_clock, make_tenant


def limited_tenant(daily: int, monthly: int):
    plan = SubscriptionPlan(name="Custom", tier=SubscriptionTier.FREE, daily_query_limit=daily, monthly_query_limit=monthly)
    return make_tenant(plan=plan)


def test_period_boundaries():
    now = datetime(2025, 12, 31, 23, 30, tzinfo=timezone.utc)
    assert period_start(PeriodType.DAILY, now) == datetime(2025, 12, 31, tzinfo=timezone.utc)
    assert period_start(PeriodType.MONTHLY, now) == datetime(2025, 12, 1, tzinfo=timezone.utc)
    assert next_reset(PeriodType.DAILY, now) == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert next_reset(PeriodType.MONTHLY, now) == datetime(2026, 1, 1, tzinfo=timezone.utc)


def test_quota_arithmetic():
    quota = Quota("t", PeriodType.DAILY, FIXED_NOW, total_limit=3, used_count=2)
    assert not quota.is_exceeded
    assert quota.remaining == 1
    quota.used_count = 3
    assert quota.is_exceeded
    assert quota.remaining == 0


def test_zero_limit_is_unlimited():
    quota = Quota("t", PeriodType.MONTHLY, FIXED_NOW, total_limit=0, used_count=10_000)
    assert quota.is_unlimited
    assert not quota.is_exceeded
    assert quota.remaining is None


def test_check_never_consumes():
    manager = QuotaManager(InMemoryQuotaStore(), clock=fixed_clock)
    tenant = limited_tenant(2, 10)

    for _ in range(5):
        status = manager.check(tenant)
    assert status.allowed
    assert status.daily.used_count == 0
    assert status.remaining_daily == 2


def test_daily_quota_exhaustion():
    manager = QuotaManager(InMemoryQuotaStore(), clock=fixed_clock)
    tenant = limited_tenant(2, 10)

    assert manager.consume(tenant).remaining_daily == 1
    status = manager.consume(tenant)
    assert not status.allowed
    assert status.error_code == "DAILY_QUOTA_EXCEEDED"
    assert status.resets_at == datetime(2025, 6, 16, tzinfo=timezone.utc)
    assert status.monthly.used_count == 2


def test_monthly_quota_checked_after_daily():
    manager = QuotaManager(InMemoryQuotaStore(), clock=fixed_clock)
    tenant = limited_tenant(5, 1)

    manager.consume(tenant)
    status = manager.check(tenant)
    assert status.error_code == "MONTHLY_QUOTA_EXCEEDED"
    assert status.resets_at == datetime(2025, 7, 1, tzinfo=timezone.utc)


def test_consume_stops_at_ceiling():
    store = InMemoryQuotaStore()
    manager = QuotaManager(store, clock=fixed_clock)
    tenant = limited_tenant(1, 10)

    manager.consume(tenant)
    manager.consume(tenant)
    status = manager.check(tenant)
    assert status.daily.used_count == 1


def test_concurrent_consumption_never_exceeds_limit():
    store = InMemoryQuotaStore()
    start = period_start(PeriodType.DAILY, FIXED_NOW)

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(lambda _: store.try_consume("t", PeriodType.DAILY, start, 5), range(50)))

    assert outcomes.count(True) == 5
    assert store.get_or_create("t", PeriodType.DAILY, start, 5).used_count == 5


def test_enterprise_is_unlimited():
    manager = QuotaManager(InMemoryQuotaStore(), clock=fixed_clock)
    tenant = make_tenant(SubscriptionTier.ENTERPRISE)

    for _ in range(20):
        status = manager.consume(tenant)
    assert status.allowed
    assert status.remaining_daily is None
    assert status.daily.used_count == 20


def test_get_or_create_returns_a_copy():
    store = InMemoryQuotaStore()
    start = period_start(PeriodType.DAILY, FIXED_NOW)
    quota = store.get_or_create("t", PeriodType.DAILY, start, 5)
    quota.used_count = 99
    assert store.get_or_create("t", PeriodType.DAILY, start, 5).used_count == 0
