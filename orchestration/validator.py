"""
Query Plan Validator
Responsible for the VALIDATION phase of the query workflow.

The validator:
1. Rejects out-of-scope and empty plans outright
2. Resolves every call against the capability registry
3. Enforces the caller's subscription tier
4. Runs each capability's own parameter checks
5. Verifies that every dependency names a call in the same plan

It is pure: the plan is never modified and nothing is executed.
"""
from capabilities import SubscriptionTier, ValidationResult
from config import settings
from registry import CapabilityRegistry
from utils import get_logger
from .query_plan import QueryPlan
from .types import ErrorCode

logger = get_logger(__name__)


class QueryPlanValidator:
    """
    Handles the VALIDATION phase of the query workflow.

    Key responsibilities:
    - Structural checks (scope, empty plan)
    - Capability resolution and tier gating
    - Parameter validation per capability
    - Dependency reference checks
    """

    def __init__(self, registry: CapabilityRegistry, min_confidence: float | None = None):
        self.registry = registry
        self.min_confidence = settings.MIN_PLAN_CONFIDENCE if min_confidence is None else min_confidence

    def validate(self, plan: QueryPlan, tenant_id: str, tier: SubscriptionTier) -> ValidationResult:
        """
        Validate a plan for a caller.
        Errors accumulate across calls; only out-of-scope and empty plans short-circuit.
        """
        logger.info(f"Validating plan for tenant {tenant_id}: {len(plan.calls)} calls, intent={plan.intent.value}")
        result = ValidationResult()

        if plan.is_out_of_scope:
            result.add_error(ErrorCode.OUT_OF_SCOPE.value, "The question is outside what this assistant can answer")
            return result

        if not plan.calls:
            result.add_error(ErrorCode.NO_CAPABILITIES.value, "The plan does not contain any capabilities")
            return result

        for call in plan.calls:
            capability = self.registry.get(call.name, call.version)
            if capability is None:
                result.add_error(ErrorCode.UNKNOWN_CAPABILITY.value, f"Unknown capability: {call.label}")
                continue

            if not tier.allows(capability.required_tier):
                result.add_error(
                    ErrorCode.INSUFFICIENT_TIER.value,
                    f"{call.name} requires the {capability.required_tier.value} plan",
                )
                if call.name not in result.rejected_capabilities:
                    result.rejected_capabilities.append(call.name)
                continue

            param_result = capability.validate_parameters(call.parameters)
            for issue in param_result.errors:
                result.add_error(issue.code, f"{call.name}: {issue.message}")
            for warning in param_result.warnings:
                result.add_warning(f"{call.name}: {warning}")

        names_in_plan = set(plan.call_names())
        for call in plan.calls:
            for dependency in call.depends_on:
                if dependency not in names_in_plan:
                    result.add_error(
                        ErrorCode.BROKEN_DEPENDENCY.value,
                        f"{call.name} depends on {dependency}, which is not in the plan",
                    )

        if plan.confidence < self.min_confidence:
            result.add_warning(f"Low confidence plan ({plan.confidence:.2f}); results may not match the question")

        if result.is_valid:
            logger.info(f"Plan valid with {len(result.warnings)} warnings")
        else:
            logger.info(f"Plan invalid: {[e.code for e in result.errors]}")
        return result
