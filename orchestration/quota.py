"""
Quota Manager
Daily and monthly query ceilings per tenant.

check() never consumes. consume() is called only after a fully successful run
and relies on the store's atomic compare-and-increment, so concurrent requests
can never push used_count past the ceiling.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from models import Tenant, PeriodType, Quota, period_start
from services import QuotaStore
from utils import get_logger
from .types import ErrorCode

logger = get_logger(__name__)


@dataclass
class QuotaStatus:
    allowed: bool
    daily: Quota
    monthly: Quota
    error_code: str | None = None
    resets_at: datetime | None = None

    @property
    def remaining_daily(self) -> int | None:
        return self.daily.remaining


class QuotaManager:
    def __init__(self, store: QuotaStore, clock: Callable[[], datetime] | None = None):
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _limits(self, tenant: Tenant) -> dict[PeriodType, int]:
        plan = tenant.plan
        return {
            PeriodType.DAILY: plan.daily_query_limit if plan else 0,
            PeriodType.MONTHLY: plan.monthly_query_limit if plan else 0,
        }

    def _quota(self, tenant: Tenant, period_type: PeriodType, now: datetime) -> Quota:
        limit = self._limits(tenant)[period_type]
        return self.store.get_or_create(tenant.id, period_type, period_start(period_type, now), limit)

    def check(self, tenant: Tenant) -> QuotaStatus:
        """Report whether the tenant may run another query. Does not consume."""
        now = self._clock()
        daily = self._quota(tenant, PeriodType.DAILY, now)
        monthly = self._quota(tenant, PeriodType.MONTHLY, now)

        if daily.is_exceeded:
            logger.info(f"Daily quota exceeded for tenant {tenant.id} ({daily.used_count}/{daily.total_limit})")
            return QuotaStatus(False, daily, monthly, ErrorCode.DAILY_QUOTA_EXCEEDED.value, daily.resets_at)
        if monthly.is_exceeded:
            logger.info(f"Monthly quota exceeded for tenant {tenant.id} ({monthly.used_count}/{monthly.total_limit})")
            return QuotaStatus(False, daily, monthly, ErrorCode.MONTHLY_QUOTA_EXCEEDED.value, monthly.resets_at)
        return QuotaStatus(True, daily, monthly)

    def consume(self, tenant: Tenant) -> QuotaStatus:
        """
        Count one successful query against both periods.
        A consume refused because a concurrent request took the last slot is logged and not counted.
        """
        now = self._clock()
        limits = self._limits(tenant)
        for period_type in (PeriodType.DAILY, PeriodType.MONTHLY):
            start = period_start(period_type, now)
            if not self.store.try_consume(tenant.id, period_type, start, limits[period_type]):
                logger.warning(
                    f"{period_type.value} quota for tenant {tenant.id} reached its ceiling "
                    f"before this query was counted"
                )
        return self.check(tenant)
