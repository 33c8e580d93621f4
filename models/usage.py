"""
Usage Models
Query quotas per period and the audit record written for every query run.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum


class PeriodType(str, Enum):
    DAILY = "daily"
    MONTHLY = "monthly"


def period_start(period_type: PeriodType, now: datetime) -> datetime:
    """Start of the quota period containing `now` (UTC midnight / first of month)"""
    day_start = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    if period_type == PeriodType.DAILY:
        return day_start
    return day_start.replace(day=1)


def next_reset(period_type: PeriodType, now: datetime) -> datetime:
    """When the quota period containing `now` resets"""
    start = period_start(period_type, now)
    if period_type == PeriodType.DAILY:
        return start + timedelta(days=1)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


@dataclass
class Quota:
    """
    Query counter for one tenant and period.
    A total_limit <= 0 means the period is unlimited.
    """
    tenant_id: str
    period_type: PeriodType
    period_start: datetime
    total_limit: int
    used_count: int = 0
    last_updated: datetime | None = None

    @property
    def is_unlimited(self) -> bool:
        return self.total_limit <= 0

    @property
    def is_exceeded(self) -> bool:
        return not self.is_unlimited and self.used_count >= self.total_limit

    @property
    def remaining(self) -> int | None:
        if self.is_unlimited:
            return None
        return max(0, self.total_limit - self.used_count)

    @property
    def resets_at(self) -> datetime:
        return next_reset(self.period_type, self.period_start)

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "period_type": self.period_type.value,
            "period_start": self.period_start.isoformat(),
            "total_limit": self.total_limit,
            "used_count": self.used_count,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Quota":
        last_updated = data.get("last_updated")
        return cls(
            tenant_id=str(data["tenant_id"]),
            period_type=PeriodType(data["period_type"]),
            period_start=_parse_dt(data["period_start"]),
            total_limit=int(data.get("total_limit", 0)),
            used_count=int(data.get("used_count", 0)),
            last_updated=_parse_dt(last_updated) if last_updated else None,
        )


@dataclass
class QueryHistoryRecord:
    """Immutable audit record of one query run"""
    tenant_id: str
    user_id: str | None
    query: str
    intent: str | None
    success: bool
    plan_json: str | None = None
    confidence: float = 0.0
    executed_capabilities: list[str] = field(default_factory=list)
    error_code: str | None = None
    error_message: str | None = None
    tokens_used: int = 0
    execution_time_ms: int = 0
    data_source: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_row(self) -> dict:
        """Storage row; executed capabilities are stored comma-joined"""
        return {
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "query": self.query,
            "plan_json": self.plan_json,
            "intent": self.intent,
            "confidence": self.confidence,
            "executed_capabilities": ",".join(self.executed_capabilities),
            "success": self.success,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "tokens_used": self.tokens_used,
            "execution_time_ms": self.execution_time_ms,
            "data_source": self.data_source,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: dict) -> "QueryHistoryRecord":
        executed = row.get("executed_capabilities") or ""
        return cls(
            tenant_id=str(row["tenant_id"]),
            user_id=row.get("user_id"),
            query=row.get("query", ""),
            plan_json=row.get("plan_json"),
            intent=row.get("intent"),
            confidence=float(row.get("confidence") or 0.0),
            executed_capabilities=[name for name in executed.split(",") if name],
            success=bool(row.get("success")),
            error_code=row.get("error_code"),
            error_message=row.get("error_message"),
            tokens_used=int(row.get("tokens_used") or 0),
            execution_time_ms=int(row.get("execution_time_ms") or 0),
            data_source=row.get("data_source"),
            created_at=_parse_dt(row["created_at"]) if row.get("created_at") else datetime.now(timezone.utc),
        )

    def to_dict(self) -> dict:
        data = self.to_row()
        data["executed_capabilities"] = list(self.executed_capabilities)
        return data


def _parse_dt(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
