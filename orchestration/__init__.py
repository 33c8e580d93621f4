"""
Orchestration Module - Query Workflow

This module provides the TENANT CHECK → QUOTA → PLANNING → VALIDATION → EXECUTION workflow:
- TenantValidator: Checks the tenant may ask questions at all
- QuotaManager: Daily and monthly query ceilings
- QueryPlanner: Turns a question into a capability plan
- QueryPlanValidator: Validates plans against the registry and the caller's tier
- CapabilityExecutor: Runs the plan in dependency order
- TenantRateLimiter: Per-tenant requests-per-minute ceiling
"""
from .orchestrator import Orchestrator, get_orchestrator
from .types import ErrorCode, QueryResponse
from .query_plan import (
    QueryPlan,
    QueryIntent,
    CapabilityCall,
    SuggestedCapability,
    PlanResult,
    ConversationTurn,
)
from .planner import QueryPlanner
from .validator import QueryPlanValidator
from .executor import CapabilityExecutor, ExecutionResult, build_dependency_groups
from .tenant_validator import TenantValidator, TenantCheckResult
from .quota import QuotaManager, QuotaStatus
from .messages import get_message, resolve_language
from .rate_limiter import (
    TenantRateLimiter,
    RateLimitDecision,
    RateLimitExceededError,
    get_rate_limiter,
)

__all__ = [
    # Main orchestrator
    "Orchestrator",
    "get_orchestrator",
    "ErrorCode",
    "QueryResponse",
    # Plans
    "QueryPlan",
    "QueryIntent",
    "CapabilityCall",
    "SuggestedCapability",
    "PlanResult",
    "ConversationTurn",
    # Pipeline stages
    "QueryPlanner",
    "QueryPlanValidator",
    "CapabilityExecutor",
    "ExecutionResult",
    "build_dependency_groups",
    "TenantValidator",
    "TenantCheckResult",
    "QuotaManager",
    "QuotaStatus",
    # Messages
    "get_message",
    "resolve_language",
    # Rate limiting
    "TenantRateLimiter",
    "RateLimitDecision",
    "RateLimitExceededError",
    "get_rate_limiter",
]
