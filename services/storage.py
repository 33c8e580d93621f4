"""
Storage Service
Tenant, quota and query-history stores.

Each store has a Supabase implementation for production and an in-memory
implementation for local simulation mode and tests.
"""
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from threading import Lock

from models import (
    Tenant,
    SubscriptionPlan,
    SubscriptionTier,
    OnboardingStatus,
    ServerType,
    ConnectionStatus,
    PeriodType,
    Quota,
    QueryHistoryRecord,
)
from utils import get_logger
from utils import supabase_client

logger = get_logger(__name__)


# =============================================================================
# Tenants
# =============================================================================

class TenantStore:
    def get(self, tenant_id: str) -> Tenant | None:
        raise NotImplementedError


class InMemoryTenantStore(TenantStore):
    def __init__(self, tenants: list[Tenant] | None = None):
        self._tenants = {t.id: t for t in (tenants or [])}

    def add(self, tenant: Tenant) -> None:
        self._tenants[tenant.id] = tenant

    def get(self, tenant_id: str) -> Tenant | None:
        return self._tenants.get(tenant_id)


class SupabaseTenantStore(TenantStore):
    def get(self, tenant_id: str) -> Tenant | None:
        row = supabase_client.get_tenant(tenant_id)
        return Tenant.from_dict(row) if row else None


def demo_tenants() -> list[Tenant]:
    """Simulation tenants, one per tier, for running without a database"""
    end = datetime.now(timezone.utc) + timedelta(days=365)
    return [
        Tenant(
            id=f"demo-{tier.value}",
            name=f"Demo {tier.value.title()} Retail",
            plan=SubscriptionPlan.for_tier(tier),
            subscription_end_date=end,
            onboarding_status=OnboardingStatus.COMPLETED,
            server_type=ServerType.SIMULATION,
            connection_status=ConnectionStatus.NOT_CONFIGURED,
        )
        for tier in SubscriptionTier
    ]


# =============================================================================
# Quotas
# =============================================================================

class QuotaStore:
    """
    Quota rows keyed by (tenant, period_type, period_start), created lazily.
    """

    def get_or_create(self, tenant_id: str, period_type: PeriodType, start: datetime, total_limit: int) -> Quota:
        raise NotImplementedError

    def try_consume(self, tenant_id: str, period_type: PeriodType, start: datetime, total_limit: int) -> bool:
        """
        Atomically increment the used count if it is below the ceiling.
        Returns False (and changes nothing) when the ceiling has been reached.
        """
        raise NotImplementedError


class InMemoryQuotaStore(QuotaStore):
    def __init__(self):
        self._quotas: dict[tuple, Quota] = {}
        self._lock = Lock()

    def _get_or_create_locked(self, tenant_id, period_type, start, total_limit) -> Quota:
        key = (tenant_id, period_type, start)
        quota = self._quotas.get(key)
        if quota is None:
            quota = Quota(tenant_id=tenant_id, period_type=period_type, period_start=start, total_limit=total_limit)
            self._quotas[key] = quota
        return quota

    def get_or_create(self, tenant_id, period_type, start, total_limit) -> Quota:
        with self._lock:
            quota = self._get_or_create_locked(tenant_id, period_type, start, total_limit)
            return replace(quota)

    def try_consume(self, tenant_id, period_type, start, total_limit) -> bool:
        with self._lock:
            quota = self._get_or_create_locked(tenant_id, period_type, start, total_limit)
            if quota.is_exceeded:
                return False
            quota.used_count += 1
            quota.last_updated = datetime.now(timezone.utc)
            return True


class SupabaseQuotaStore(QuotaStore):
    def get_or_create(self, tenant_id, period_type, start, total_limit) -> Quota:
        row = supabase_client.get_query_quota(tenant_id, period_type.value, start.isoformat())
        if row is None:
            row = supabase_client.create_query_quota({
                "tenant_id": tenant_id,
                "period_type": period_type.value,
                "period_start": start.isoformat(),
                "total_limit": total_limit,
                "used_count": 0,
                "last_updated": datetime.now(timezone.utc).isoformat(),
            })
        return Quota.from_dict(row)

    def try_consume(self, tenant_id, period_type, start, total_limit) -> bool:
        self.get_or_create(tenant_id, period_type, start, total_limit)
        return supabase_client.consume_query_quota(tenant_id, period_type.value, start.isoformat())


# =============================================================================
# Query history
# =============================================================================

class HistoryStore:
    def add(self, record: QueryHistoryRecord) -> None:
        raise NotImplementedError

    def list_recent(self, tenant_id: str, user_id: str | None = None, limit: int = 20) -> list[QueryHistoryRecord]:
        """Recent records for a tenant (optionally one user), newest first"""
        raise NotImplementedError


class InMemoryHistoryStore(HistoryStore):
    def __init__(self):
        self._records: list[QueryHistoryRecord] = []
        self._lock = Lock()

    def add(self, record: QueryHistoryRecord) -> None:
        with self._lock:
            self._records.append(record)

    def list_recent(self, tenant_id, user_id=None, limit=20) -> list[QueryHistoryRecord]:
        with self._lock:
            records = [
                r for r in self._records
                if r.tenant_id == tenant_id and (user_id is None or r.user_id == user_id)
            ]
        # Newest first; equal timestamps fall back to reverse insertion order
        records = sorted(enumerate(records), key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
        return [r for _, r in records[:limit]]


class SupabaseHistoryStore(HistoryStore):
    def add(self, record: QueryHistoryRecord) -> None:
        supabase_client.insert_query_history(record.to_row())

    def list_recent(self, tenant_id, user_id=None, limit=20) -> list[QueryHistoryRecord]:
        rows = supabase_client.list_query_history(tenant_id, user_id, limit)
        return [QueryHistoryRecord.from_row(row) for row in rows]
