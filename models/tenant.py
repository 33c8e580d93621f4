"""
Tenant Models
Tenants, their subscription plans and the status enums the query pipeline checks.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class SubscriptionTier(str, Enum):
    """Subscription tiers in ascending order of entitlement"""
    FREE = "free"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    def allows(self, required: "SubscriptionTier") -> bool:
        """True if a caller on this tier may use something that requires `required`"""
        return self.rank >= required.rank

    @classmethod
    def parse(cls, value: Any) -> "SubscriptionTier":
        """Parse a tier name case-insensitively. Unknown values fall back to FREE."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.FREE


_TIER_ORDER = [SubscriptionTier.FREE, SubscriptionTier.PROFESSIONAL, SubscriptionTier.ENTERPRISE]


class OnboardingStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ServerType(str, Enum):
    SIMULATION = "simulation"
    NEBIM = "nebim"


class ConnectionStatus(str, Enum):
    NOT_CONFIGURED = "not_configured"
    CONNECTED = "connected"
    FAILED = "failed"


# Default query limits per tier when the plan row does not override them.
# A limit <= 0 means unlimited.
DEFAULT_QUERY_LIMITS = {
    SubscriptionTier.FREE: (10, 300),
    SubscriptionTier.PROFESSIONAL: (100, 3000),
    SubscriptionTier.ENTERPRISE: (0, 0),
}


@dataclass
class SubscriptionPlan:
    """A tenant's subscription plan"""
    name: str
    tier: SubscriptionTier
    daily_query_limit: int
    monthly_query_limit: int

    @classmethod
    def for_tier(cls, tier: SubscriptionTier) -> "SubscriptionPlan":
        daily, monthly = DEFAULT_QUERY_LIMITS[tier]
        return cls(name=tier.value.title(), tier=tier, daily_query_limit=daily, monthly_query_limit=monthly)

    @classmethod
    def from_dict(cls, data: dict) -> "SubscriptionPlan":
        tier = SubscriptionTier.parse(data.get("tier"))
        default_daily, default_monthly = DEFAULT_QUERY_LIMITS[tier]
        daily = data.get("daily_query_limit")
        monthly = data.get("monthly_query_limit")
        return cls(
            name=data.get("name") or tier.value.title(),
            tier=tier,
            daily_query_limit=int(daily) if daily is not None else default_daily,
            monthly_query_limit=int(monthly) if monthly is not None else default_monthly,
        )


@dataclass
class Tenant:
    """A retail company using the dashboard"""
    id: str
    name: str
    is_active: bool = True
    plan: SubscriptionPlan | None = None
    subscription_end_date: datetime | None = None
    onboarding_status: OnboardingStatus = OnboardingStatus.PENDING
    server_type: ServerType = ServerType.SIMULATION
    connection_status: ConnectionStatus = ConnectionStatus.NOT_CONFIGURED
    gateway_url: str | None = None
    gateway_api_key: str | None = None

    @property
    def tier(self) -> SubscriptionTier:
        return self.plan.tier if self.plan else SubscriptionTier.FREE

    @property
    def is_simulation(self) -> bool:
        return self.server_type == ServerType.SIMULATION

    @classmethod
    def from_dict(cls, data: dict) -> "Tenant":
        """Build a tenant from a storage row (plan may be embedded under 'subscription_plans')"""
        plan_data = data.get("subscription_plans") or data.get("plan")
        end_date = data.get("subscription_end_date")
        if isinstance(end_date, str):
            end_date = datetime.fromisoformat(end_date.replace("Z", "+00:00"))
        if end_date is not None and end_date.tzinfo is None:
            end_date = end_date.replace(tzinfo=timezone.utc)
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            is_active=bool(data.get("is_active", True)),
            plan=SubscriptionPlan.from_dict(plan_data) if plan_data else None,
            subscription_end_date=end_date,
            onboarding_status=OnboardingStatus(data.get("onboarding_status") or OnboardingStatus.PENDING.value),
            server_type=ServerType(data.get("server_type") or ServerType.SIMULATION.value),
            connection_status=ConnectionStatus(data.get("connection_status") or ConnectionStatus.NOT_CONFIGURED.value),
            gateway_url=data.get("gateway_url"),
            gateway_api_key=data.get("gateway_api_key"),
        )
