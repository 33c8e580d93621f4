"""
Tenant Validator
Fails closed unless the tenant may run natural-language queries right now.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from models import Tenant, OnboardingStatus, ConnectionStatus
from services import TenantStore
from utils import get_logger
from .types import ErrorCode

logger = get_logger(__name__)


@dataclass
class TenantCheckResult:
    ok: bool
    tenant: Tenant | None = None
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def fail(cls, code: ErrorCode, message: str, tenant: Tenant | None = None) -> "TenantCheckResult":
        return cls(ok=False, tenant=tenant, error_code=code.value, error_message=message)


class TenantValidator:
    def __init__(self, store: TenantStore, clock: Callable[[], datetime] | None = None):
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def validate(self, tenant_id: str) -> TenantCheckResult:
        tenant = self.store.get(tenant_id)
        if tenant is None:
            return TenantCheckResult.fail(ErrorCode.TENANT_NOT_FOUND, f"Tenant not found: {tenant_id}")

        if not tenant.is_active:
            return TenantCheckResult.fail(ErrorCode.TENANT_INACTIVE, "Tenant account is inactive", tenant)

        if tenant.onboarding_status != OnboardingStatus.COMPLETED:
            return TenantCheckResult.fail(ErrorCode.ONBOARDING_INCOMPLETE, "Tenant onboarding is not complete", tenant)

        if tenant.plan is None:
            return TenantCheckResult.fail(ErrorCode.NO_SUBSCRIPTION, "Tenant has no subscription plan", tenant)

        if tenant.subscription_end_date is not None and tenant.subscription_end_date < self._clock():
            return TenantCheckResult.fail(ErrorCode.SUBSCRIPTION_EXPIRED, "Subscription has expired", tenant)

        if not tenant.is_simulation and tenant.connection_status != ConnectionStatus.CONNECTED:
            return TenantCheckResult.fail(
                ErrorCode.DATA_SOURCE_NOT_CONNECTED, "Data source connection is not ready", tenant
            )

        return TenantCheckResult(ok=True, tenant=tenant)
