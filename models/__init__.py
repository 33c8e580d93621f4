"""
Domain models shared across the query pipeline
"""
from .tenant import (
    SubscriptionTier,
    OnboardingStatus,
    ServerType,
    ConnectionStatus,
    SubscriptionPlan,
    Tenant,
    DEFAULT_QUERY_LIMITS,
)
from .retail import Product, StockItem, SaleLine, TopProduct, Page, StockSummary
from .usage import PeriodType, Quota, QueryHistoryRecord, period_start, next_reset

__all__ = [
    "SubscriptionTier",
    "OnboardingStatus",
    "ServerType",
    "ConnectionStatus",
    "SubscriptionPlan",
    "Tenant",
    "DEFAULT_QUERY_LIMITS",
    "Product",
    "StockItem",
    "SaleLine",
    "TopProduct",
    "Page",
    "StockSummary",
    "PeriodType",
    "Quota",
    "QueryHistoryRecord",
    "period_start",
    "next_reset",
]
