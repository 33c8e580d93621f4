"""
Capabilities - versioned, tier-gated operations the query planner can select
"""
from .types import (
    SubscriptionTier,
    ParameterType,
    CapabilityParameter,
    ValidationIssue,
    ValidationResult,
    CapabilityResult,
)
from .base import Capability, CapabilityError
from .sales_capabilities import GetSalesCapability, GetTopProductsCapability
from .stock_capabilities import GetStockCapability, GetLowStockAlertsCapability
from .product_capabilities import GetProductDetailsCapability
from .analytics_capabilities import ComparePeriodCapability

# Every capability the service offers, registered at startup
CAPABILITY_TYPES: list[type[Capability]] = [
    GetSalesCapability,
    GetTopProductsCapability,
    GetStockCapability,
    GetLowStockAlertsCapability,
    GetProductDetailsCapability,
    ComparePeriodCapability,
]

__all__ = [
    "SubscriptionTier",
    "ParameterType",
    "CapabilityParameter",
    "ValidationIssue",
    "ValidationResult",
    "CapabilityResult",
    "Capability",
    "CapabilityError",
    "GetSalesCapability",
    "GetTopProductsCapability",
    "GetStockCapability",
    "GetLowStockAlertsCapability",
    "GetProductDetailsCapability",
    "ComparePeriodCapability",
    "CAPABILITY_TYPES",
]
