"""
Query Orchestrator
Main orchestration logic for natural-language business questions:

TenantCheck → QuotaCheck → Plan → Validate → OutOfScopeCheck → Execute → ConsumeQuota → Audit

Every stage can end the request early, and every exit path (including
cancellation and unexpected errors) attempts one audit write. A failed audit
write is logged and never changes the response.
"""
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from capabilities import CapabilityResult, SubscriptionTier
from config import settings
from models import QueryHistoryRecord
from registry import CapabilityRegistry, get_registry
from services import (
    TenantStore,
    QuotaStore,
    HistoryStore,
    InMemoryTenantStore,
    InMemoryQuotaStore,
    InMemoryHistoryStore,
    SupabaseTenantStore,
    SupabaseQuotaStore,
    SupabaseHistoryStore,
    demo_tenants,
)
from utils import get_logger, CancellationToken, OperationCancelledError
from .executor import CapabilityExecutor
from .messages import get_message
from .planner import QueryPlanner
from .quota import QuotaManager
from .query_plan import QueryPlan, ConversationTurn
from .tenant_validator import TenantValidator
from .types import ErrorCode, QueryResponse
from .validator import QueryPlanValidator

logger = get_logger(__name__)

MAX_HISTORY_LIMIT = 100

# Results with these codes never reached the data source
_NOT_EXECUTED_CODES = {
    ErrorCode.DEPENDENCY_FAILED.value,
    ErrorCode.DEPENDENCY_CYCLE.value,
    ErrorCode.REQUEST_CANCELLED.value,
    ErrorCode.CAPABILITY_NOT_FOUND.value,
}


@dataclass
class RunState:
    """What one request has produced so far; feeds the audit record"""
    tenant_id: str
    user_id: str | None
    query: str
    started: float = field(default_factory=time.monotonic)
    plan: QueryPlan | None = None
    tokens_used: int = 0
    results: list[CapabilityResult] = field(default_factory=list)
    data_source: str | None = None

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)


def build_stores() -> tuple[TenantStore, QuotaStore, HistoryStore]:
    """Stores for the configured backend"""
    if settings.STORAGE_BACKEND == "memory":
        logger.info("Using in-memory stores with demo tenants")
        return InMemoryTenantStore(demo_tenants()), InMemoryQuotaStore(), InMemoryHistoryStore()
    return SupabaseTenantStore(), SupabaseQuotaStore(), SupabaseHistoryStore()


class Orchestrator:
    """
    Query Orchestrator - runs one natural-language question end to end.

    Key responsibilities:
    - Stage sequencing with early exits
    - Quota consumption only after a fully successful run
    - Exactly one audit record per run
    """

    def __init__(
        self,
        registry: CapabilityRegistry | None = None,
        tenant_store: TenantStore | None = None,
        quota_store: QuotaStore | None = None,
        history_store: HistoryStore | None = None,
        planner: QueryPlanner | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        if tenant_store is None or quota_store is None or history_store is None:
            default_tenants, default_quotas, default_history = build_stores()
            tenant_store = tenant_store or default_tenants
            quota_store = quota_store or default_quotas
            history_store = history_store or default_history

        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.registry = registry or get_registry()
        self.tenant_store = tenant_store
        self.history_store = history_store
        self.tenant_validator = TenantValidator(tenant_store, clock=self._clock)
        self.quota_manager = QuotaManager(quota_store, clock=self._clock)
        self.planner = planner or QueryPlanner(self.registry, clock=self._clock)
        self.validator = QueryPlanValidator(self.registry)
        self.executor = CapabilityExecutor(self.registry)

    def process_query(
        self,
        tenant_id: str,
        user_id: str | None,
        query: str,
        history: list[ConversationTurn] | None = None,
        language: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> QueryResponse:
        """Answer one question. Never raises."""
        cancel = cancel or CancellationToken()
        state = RunState(tenant_id=tenant_id, user_id=user_id, query=query)
        logger.info(f"Processing query for tenant {tenant_id}, user {user_id}: {query[:100]}")

        try:
            response = self._run(state, history, language, cancel)
        except OperationCancelledError:
            logger.info(f"Query cancelled for tenant {tenant_id}")
            response = self._failure(state, ErrorCode.REQUEST_CANCELLED, language)
            response.results = list(state.results)
        except Exception as e:
            logger.exception(f"Orchestrator error for tenant {tenant_id}: {e}")
            response = self._failure(state, ErrorCode.INTERNAL_ERROR, language)

        response.execution_time_ms = state.elapsed_ms()
        response.tokens_used = state.tokens_used
        self._audit(state, response)
        return response

    def _run(
        self,
        state: RunState,
        history: list[ConversationTurn] | None,
        language: str | None,
        cancel: CancellationToken,
    ) -> QueryResponse:
        # Tenant check
        tenant_check = self.tenant_validator.validate(state.tenant_id)
        if not tenant_check.ok:
            logger.info(f"Tenant check failed for {state.tenant_id}: {tenant_check.error_code}")
            return self._failure(state, ErrorCode(tenant_check.error_code), language)
        tenant = tenant_check.tenant
        tier = tenant.tier

        # Quota check (never consumes)
        quota = self.quota_manager.check(tenant)
        if not quota.allowed:
            response = self._failure(
                state, ErrorCode(quota.error_code), language,
                resets_at=quota.resets_at.isoformat() if quota.resets_at else "",
            )
            response.quota_resets_at = quota.resets_at
            response.remaining_daily_queries = quota.remaining_daily
            return response

        # Plan
        cancel.raise_if_cancelled()
        plan_result = self.planner.create_plan(state.query, tenant.id, tier, history, cancel)
        state.tokens_used += plan_result.tokens_used
        if not plan_result.success:
            return self._failure(state, ErrorCode(plan_result.error_code), language)
        plan = state.plan = plan_result.plan

        # Validate
        validation = self.validator.validate(plan, tenant.id, tier)

        # Out-of-scope check
        if plan.is_out_of_scope:
            response = self._failure(state, ErrorCode.OUT_OF_SCOPE, language)
            response.suggestions = list(plan.suggestions)
            return response

        if not validation.is_valid:
            response = self._failure(state, ErrorCode.VALIDATION_FAILED, language)
            response.errors = list(validation.errors)
            response.warnings = list(validation.warnings)
            response.suggestions = list(plan.suggestions)
            if validation.rejected_capabilities:
                response.requires_upgrade = True
                response.upgrade_message = get_message(
                    "UPGRADE_REQUIRED", language, capabilities=", ".join(validation.rejected_capabilities)
                )
            return response

        # Execute
        cancel.raise_if_cancelled()
        execution = self.executor.execute(plan, tenant, cancel)
        state.results = execution.results
        state.data_source = execution.data_source

        if execution.cancelled:
            raise OperationCancelledError("Request cancelled during execution")

        if not execution.success:
            response = self._failure(state, ErrorCode.EXECUTION_FAILED, language)
            response.results = list(execution.results)
            response.warnings = list(validation.warnings)
            response.remaining_daily_queries = quota.remaining_daily
            return response

        # Consume quota (only after a fully successful run)
        consumed = self.quota_manager.consume(tenant)

        return QueryResponse(
            success=True,
            query=state.query,
            intent=plan.intent.value,
            confidence=plan.confidence,
            results=list(execution.results),
            warnings=list(validation.warnings),
            remaining_daily_queries=consumed.remaining_daily,
            data_source=state.data_source,
        )

    def _failure(self, state: RunState, code: ErrorCode, language: str | None, **message_args) -> QueryResponse:
        return QueryResponse(
            success=False,
            query=state.query,
            intent=state.plan.intent.value if state.plan else None,
            confidence=state.plan.confidence if state.plan else 0.0,
            error_code=code.value,
            error_message=get_message(code.value, language, **message_args),
            data_source=state.data_source,
        )

    def _audit(self, state: RunState, response: QueryResponse) -> None:
        """Write the audit record; failures are logged and swallowed"""
        try:
            executed = [
                r.capability_name for r in state.results
                if r.success or r.error_code not in _NOT_EXECUTED_CODES
            ]
            record = QueryHistoryRecord(
                tenant_id=state.tenant_id,
                user_id=state.user_id,
                query=state.query,
                plan_json=state.plan.to_json() if state.plan else None,
                intent=state.plan.intent.value if state.plan else None,
                confidence=state.plan.confidence if state.plan else 0.0,
                executed_capabilities=executed,
                success=response.success,
                error_code=response.error_code,
                error_message=response.error_message,
                tokens_used=state.tokens_used,
                execution_time_ms=response.execution_time_ms,
                data_source=state.data_source,
                created_at=self._clock(),
            )
            self.history_store.add(record)
        except Exception as e:
            logger.exception(f"Failed to write query history for tenant {state.tenant_id}: {e}")

    def list_capabilities(self, tenant_id: str) -> list[dict] | None:
        """Capabilities visible to the tenant's tier, or None if the tenant is unknown"""
        tenant = self.tenant_store.get(tenant_id)
        if tenant is None:
            return None
        return self.registry.capability_infos(tenant.tier)

    def get_history(self, tenant_id: str, user_id: str | None = None, limit: int = 20) -> list[QueryHistoryRecord]:
        """Recent audit records, newest first"""
        limit = max(1, min(MAX_HISTORY_LIMIT, limit))
        return self.history_store.list_recent(tenant_id, user_id, limit)

    def tier_for(self, tenant_id: str) -> SubscriptionTier:
        tenant = self.tenant_store.get(tenant_id)
        return tenant.tier if tenant else SubscriptionTier.FREE


# Singleton instance
_orchestrator: Orchestrator | None = None


def get_orchestrator() -> Orchestrator:
    """Get or create orchestrator singleton"""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = Orchestrator()
    return _orchestrator
