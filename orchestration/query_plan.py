"""
Query Plan Data Structures
Represents the planner's structured interpretation of a natural-language question.
"""
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class QueryIntent(str, Enum):
    DESCRIPTIVE = "descriptive"    # What happened?
    DIAGNOSTIC = "diagnostic"      # Why did it happen?
    COMPARATIVE = "comparative"    # How does A compare to B?
    PREDICTIVE = "predictive"      # What will happen?
    OUT_OF_SCOPE = "out_of_scope"  # Not answerable with the capability catalog

    @classmethod
    def parse(cls, value: Any) -> "QueryIntent":
        """Case-insensitive parse; 'query' is a legacy alias for descriptive, anything unknown is out-of-scope."""
        text = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        if text == "query":
            return cls.DESCRIPTIVE
        if text in ("outofscope", "out_of_scope"):
            return cls.OUT_OF_SCOPE
        try:
            return cls(text)
        except ValueError:
            return cls.OUT_OF_SCOPE


@dataclass
class CapabilityCall:
    """One capability invocation selected by the planner"""
    name: str
    version: str = "v1"
    parameters: dict = field(default_factory=dict)
    order: int = 0
    depends_on: list[str] = field(default_factory=list)

    @property
    def label(self) -> str:
        return f"{self.name}@{self.version}"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "parameters": self.parameters,
            "order": self.order,
            "depends_on": list(self.depends_on),
        }


@dataclass
class SuggestedCapability:
    """A capability offered to the user when their question could not be planned"""
    name: str
    description: str
    relevance: float
    example_query: str | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "relevance": self.relevance,
            "example_query": self.example_query,
        }


@dataclass
class QueryPlan:
    """
    Structured plan for answering a question.

    Transient: created per request by the planner, checked by the validator,
    run by the executor and serialized into the audit record.
    """
    query: str
    intent: QueryIntent
    confidence: float
    calls: list[CapabilityCall] = field(default_factory=list)
    suggestions: list[SuggestedCapability] = field(default_factory=list)

    @property
    def is_out_of_scope(self) -> bool:
        return self.intent == QueryIntent.OUT_OF_SCOPE

    def call_names(self) -> list[str]:
        return [call.name for call in self.calls]

    def to_dict(self) -> dict:
        return {
            "query": self.query,
            "intent": self.intent.value,
            "confidence": self.confidence,
            "capabilities": [call.to_dict() for call in self.calls],
            "suggestions": [s.to_dict() for s in self.suggestions],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


@dataclass
class PlanResult:
    """Outcome of a planning attempt; carries token cost and latency on every path"""
    success: bool
    plan: QueryPlan | None = None
    error_code: str | None = None
    error_message: str | None = None
    tokens_used: int = 0
    latency_ms: int = 0


@dataclass
class ConversationTurn:
    role: str
    content: str

    @classmethod
    def from_dict(cls, data: dict) -> "ConversationTurn":
        return cls(role=str(data.get("role", "user")), content=str(data.get("content", "")))
