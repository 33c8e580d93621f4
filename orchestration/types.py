"""
Orchestration Types
Error codes and the response returned for every natural-language query.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from capabilities import CapabilityResult, ValidationIssue
from .query_plan import SuggestedCapability


class ErrorCode(str, Enum):
    # Tenant
    TENANT_NOT_FOUND = "TENANT_NOT_FOUND"
    TENANT_INACTIVE = "TENANT_INACTIVE"
    ONBOARDING_INCOMPLETE = "ONBOARDING_INCOMPLETE"
    NO_SUBSCRIPTION = "NO_SUBSCRIPTION"
    SUBSCRIPTION_EXPIRED = "SUBSCRIPTION_EXPIRED"
    DATA_SOURCE_NOT_CONNECTED = "DATA_SOURCE_NOT_CONNECTED"
    # Quota / rate limit
    DAILY_QUOTA_EXCEEDED = "DAILY_QUOTA_EXCEEDED"
    MONTHLY_QUOTA_EXCEEDED = "MONTHLY_QUOTA_EXCEEDED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    # Planning
    PLANNING_SERVICE_BUSY = "PLANNING_SERVICE_BUSY"
    AI_SERVICE_ERROR = "AI_SERVICE_ERROR"
    # Validation
    VALIDATION_FAILED = "VALIDATION_FAILED"
    OUT_OF_SCOPE = "OUT_OF_SCOPE"
    NO_CAPABILITIES = "NO_CAPABILITIES"
    UNKNOWN_CAPABILITY = "UNKNOWN_CAPABILITY"
    INSUFFICIENT_TIER = "INSUFFICIENT_TIER"
    BROKEN_DEPENDENCY = "BROKEN_DEPENDENCY"
    # Execution
    EXECUTION_FAILED = "EXECUTION_FAILED"
    CAPABILITY_NOT_FOUND = "CAPABILITY_NOT_FOUND"
    DEPENDENCY_FAILED = "DEPENDENCY_FAILED"
    DEPENDENCY_CYCLE = "DEPENDENCY_CYCLE"
    REQUEST_CANCELLED = "REQUEST_CANCELLED"
    # Request / infrastructure
    EMPTY_QUERY = "EMPTY_QUERY"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass
class QueryResponse:
    """Response for one natural-language query (success or any terminal failure)"""
    success: bool
    query: str
    intent: str | None = None
    confidence: float = 0.0
    results: list[CapabilityResult] = field(default_factory=list)
    execution_time_ms: int = 0
    tokens_used: int = 0
    remaining_daily_queries: int | None = None
    error_code: str | None = None
    error_message: str | None = None
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggestions: list[SuggestedCapability] = field(default_factory=list)
    requires_upgrade: bool = False
    upgrade_message: str | None = None
    quota_resets_at: datetime | None = None
    data_source: str | None = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "query": self.query,
            "intent": self.intent,
            "confidence": self.confidence,
            "results": [r.to_dict() for r in self.results],
            "execution_time_ms": self.execution_time_ms,
            "tokens_used": self.tokens_used,
            "remaining_daily_queries": self.remaining_daily_queries,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": list(self.warnings),
            "suggestions": [s.to_dict() for s in self.suggestions],
            "requires_upgrade": self.requires_upgrade,
            "upgrade_message": self.upgrade_message,
            "quota_resets_at": self.quota_resets_at.isoformat() if self.quota_resets_at else None,
            "data_source": self.data_source,
        }
