"""
Query Planner
Responsible for the PLANNING phase of the query workflow.

The planner:
1. Renders the system instruction, the capability catalog, recent conversation
   turns and the user's question into one prompt
2. Asks Gemini (through GeminiReasoningClient) for a JSON plan
3. Parses the untrusted response into a QueryPlan, degrading to an
   out-of-scope plan with suggestions when the response is unusable
"""
import json
import math
import re
import time
from datetime import datetime, timezone
from typing import Callable

from capabilities import SubscriptionTier
from config import settings
from registry import CapabilityRegistry
from services import (
    GeminiReasoningClient,
    ReasoningServiceError,
    ReasoningServiceBusyError,
    get_reasoning_client,
)
from utils import get_logger, CancellationToken
from .query_plan import (
    QueryPlan,
    QueryIntent,
    CapabilityCall,
    SuggestedCapability,
    PlanResult,
    ConversationTurn,
)
from .types import ErrorCode

logger = get_logger(__name__)

DEFAULT_CONFIDENCE = 0.5
DEFAULT_VERSION = "v1"
FALLBACK_SUGGESTION_COUNT = 3
FALLBACK_RELEVANCE = 0.3


PLANNING_SYSTEM_PROMPT = """You are a query planner for a retail analytics dashboard. Store owners ask questions about their sales, stock and products. Your job is to turn each question into a plan made only of the capabilities listed in the catalog.

Respond with a single JSON object and nothing else:
{
  "intent": "descriptive" | "diagnostic" | "comparative" | "predictive" | "out_of_scope",
  "confidence": number between 0 and 1,
  "capabilities": [
    {
      "name": "CapabilityName",
      "version": "v1",
      "parameters": { "parameterName": value },
      "order": 1,
      "dependsOn": []
    }
  ],
  "suggestedCapabilities": [
    { "name": "CapabilityName", "reason": "why it might help", "confidence": number between 0 and 1 }
  ]
}

Rules:
- Only use capability names and parameters that appear in the catalog
- Dates are YYYY-MM-DD; resolve relative dates ("last week", "this month") against today's date
- Omit optional parameters you do not need; their defaults apply
- Use "dependsOn" only when a capability needs another capability in the plan to run first
- If the question cannot be answered with the catalog, use intent "out_of_scope", return no capabilities and suggest the closest capabilities instead
- Lower the confidence when the question is ambiguous
"""


_FENCE_START = re.compile(r"^```[A-Za-z]*\s*")
_FENCE_END = re.compile(r"\s*```$")


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence (``` or ```json) if present"""
    cleaned = (text or "").strip()
    cleaned = _FENCE_START.sub("", cleaned)
    cleaned = _FENCE_END.sub("", cleaned)
    return cleaned.strip()


def _to_float(value, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return default if math.isnan(number) else number


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class QueryPlanner:
    """
    Handles the PLANNING phase of the query workflow.

    Key responsibilities:
    - Prompt rendering (catalog + history + question)
    - Reasoning-service call with token and latency accounting
    - Tolerant parsing of the model's JSON into a QueryPlan
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        client: GeminiReasoningClient | None = None,
        clock: Callable[[], datetime] | None = None,
        history_turns: int | None = None,
    ):
        self.registry = registry
        self.client = client or get_reasoning_client()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.history_turns = settings.PLANNER_HISTORY_TURNS if history_turns is None else history_turns

    def create_plan(
        self,
        query: str,
        tenant_id: str,
        tier: SubscriptionTier,
        history: list[ConversationTurn] | None = None,
        cancel: CancellationToken | None = None,
    ) -> PlanResult:
        """
        Ask the reasoning service for a plan.

        Never raises for service or parsing problems: service failures come back
        as a failed PlanResult, unusable responses as an out-of-scope plan.
        OperationCancelledError propagates when the request is cancelled.
        """
        logger.info(f"Creating plan for tenant {tenant_id}: {query[:100]}")
        started = time.monotonic()
        prompt = self.build_prompt(query, tier, history)

        try:
            response = self.client.generate(prompt, PLANNING_SYSTEM_PROMPT, cancel)
        except ReasoningServiceBusyError as e:
            logger.warning(f"Planning service busy for tenant {tenant_id}: {e}")
            return PlanResult(
                success=False,
                error_code=ErrorCode.PLANNING_SERVICE_BUSY.value,
                error_message=str(e),
                tokens_used=e.tokens_used,
                latency_ms=_elapsed_ms(started),
            )
        except ReasoningServiceError as e:
            logger.error(f"Planning failed for tenant {tenant_id}: {e}")
            return PlanResult(
                success=False,
                error_code=ErrorCode.AI_SERVICE_ERROR.value,
                error_message=str(e),
                tokens_used=e.tokens_used,
                latency_ms=_elapsed_ms(started),
            )

        logger.info(f"Plan response ({response.tokens_used} tokens): {response.text[:500]}")
        plan = self.parse_plan_response(response.text, query, tier)
        return PlanResult(
            success=True,
            plan=plan,
            tokens_used=response.tokens_used,
            latency_ms=_elapsed_ms(started),
        )

    def build_prompt(
        self,
        query: str,
        tier: SubscriptionTier,
        history: list[ConversationTurn] | None = None,
    ) -> str:
        """Build the user prompt for the reasoning service"""
        parts = [
            f"Today's date: {self._clock().date().isoformat()}",
            f"Caller subscription tier: {tier.value}",
            "",
            self.registry.describe_for_prompt(),
        ]

        recent = (history or [])[-self.history_turns:] if self.history_turns > 0 else []
        if recent:
            parts.append("")
            parts.append("## CONVERSATION HISTORY")
            for turn in recent:
                parts.append(f"[{turn.role}]: {turn.content}")

        parts.append("")
        parts.append("## USER QUESTION")
        parts.append(query)
        parts.append("")
        parts.append("Respond with the JSON plan only.")
        return "\n".join(parts)

    def parse_plan_response(self, response_text: str, query: str, tier: SubscriptionTier = SubscriptionTier.FREE) -> QueryPlan:
        """Parse the model's JSON into a QueryPlan. Unusable input yields an out-of-scope plan."""
        json_text = strip_code_fences(response_text)
        if not json_text:
            logger.warning("Empty plan response")
            return self.fallback_plan(query, tier)

        try:
            plan_data = json.loads(json_text)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse plan JSON: {e}")
            logger.error(f"Response was: {response_text[:500]}")
            return self.fallback_plan(query, tier)

        if not isinstance(plan_data, dict):
            logger.error(f"Plan response is not a JSON object: {type(plan_data).__name__}")
            return self.fallback_plan(query, tier)

        intent = QueryIntent.parse(plan_data.get("intent"))
        if intent == QueryIntent.OUT_OF_SCOPE:
            suggestions = self._parse_suggestions(plan_data.get("suggestedCapabilities"))
            return QueryPlan(
                query=query,
                intent=QueryIntent.OUT_OF_SCOPE,
                confidence=_clamp(_to_float(plan_data.get("confidence"), DEFAULT_CONFIDENCE)),
                calls=[],
                suggestions=suggestions or self.default_suggestions(tier),
            )

        plan = QueryPlan(
            query=query,
            intent=intent,
            confidence=_clamp(_to_float(plan_data.get("confidence"), DEFAULT_CONFIDENCE)),
            calls=self._parse_calls(plan_data.get("capabilities")),
            suggestions=self._parse_suggestions(plan_data.get("suggestedCapabilities")),
        )
        logger.info(f"Created {plan.intent.value} plan with {len(plan.calls)} calls (confidence {plan.confidence:.2f})")
        return plan

    def _parse_calls(self, raw_calls) -> list[CapabilityCall]:
        calls = []
        if not isinstance(raw_calls, list):
            return calls
        for index, item in enumerate(raw_calls):
            if not isinstance(item, dict) or not item.get("name"):
                logger.warning(f"Skipping malformed capability entry at index {index}")
                continue
            order = item.get("order", item.get("priority"))
            try:
                order = int(order)
            except (TypeError, ValueError, OverflowError):
                order = index
            depends_on = item.get("dependsOn", item.get("depends_on")) or []
            if isinstance(depends_on, str):
                depends_on = [depends_on]
            parameters = item.get("parameters")
            calls.append(CapabilityCall(
                name=str(item["name"]),
                version=str(item.get("version") or DEFAULT_VERSION),
                parameters=parameters if isinstance(parameters, dict) else {},
                order=order,
                depends_on=[str(d) for d in depends_on if d] if isinstance(depends_on, list) else [],
            ))
        return calls

    def _parse_suggestions(self, raw_suggestions) -> list[SuggestedCapability]:
        suggestions = []
        if not isinstance(raw_suggestions, list):
            return suggestions
        for item in raw_suggestions:
            if not isinstance(item, dict) or not item.get("name"):
                continue
            capability = self.registry.get(str(item["name"]))
            example = capability.example_queries[0] if capability and capability.example_queries else None
            suggestions.append(SuggestedCapability(
                name=str(item["name"]),
                description=str(item.get("reason") or (capability.description if capability else "")),
                relevance=_clamp(_to_float(item.get("confidence"), FALLBACK_RELEVANCE)),
                example_query=example,
            ))
        return suggestions

    def default_suggestions(self, tier: SubscriptionTier) -> list[SuggestedCapability]:
        """First few capabilities the caller can use, offered when no plan could be made"""
        return [
            SuggestedCapability(
                name=c.name,
                description=c.description,
                relevance=FALLBACK_RELEVANCE,
                example_query=c.example_queries[0] if c.example_queries else None,
            )
            for c in self.registry.list_for_tier(tier)[:FALLBACK_SUGGESTION_COUNT]
        ]

    def fallback_plan(self, query: str, tier: SubscriptionTier = SubscriptionTier.FREE) -> QueryPlan:
        return QueryPlan(
            query=query,
            intent=QueryIntent.OUT_OF_SCOPE,
            confidence=0.0,
            calls=[],
            suggestions=self.default_suggestions(tier),
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
