"""
Capability Base
Common behaviour for every executable capability.

Subclasses declare their metadata as class attributes and implement `_run`.
`execute` wraps `_run` so that failures never escape: every outcome becomes a
CapabilityResult carrying a stable error code, its execution time and the
data-source tag.
"""
import time
from datetime import date, datetime, timezone
from typing import Any, Callable

from models import Tenant, SubscriptionTier
from services import RetailDataSource, RetailDataSourceFactory, get_data_source_factory
from utils import get_logger, CancellationToken, OperationCancelledError
from .types import CapabilityParameter, CapabilityResult, ValidationResult

logger = get_logger(__name__)


class CapabilityError(Exception):
    """Expected, user-facing failure inside a capability (e.g. product not found)"""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class Capability:
    """
    A single versioned, tier-gated unit of work the planner can select.

    Metadata is immutable once the class is defined; instances only hold
    the data-source factory and the clock.
    """

    name: str = ""
    version: str = "v1"
    description: str = ""
    category: str = ""
    required_tier: SubscriptionTier = SubscriptionTier.FREE
    parameters: tuple[CapabilityParameter, ...] = ()
    example_queries: tuple[str, ...] = ()
    # Code returned for unexpected failures during execution
    error_code: str = "CAPABILITY_EXECUTION_ERROR"

    def __init__(
        self,
        data_sources: RetailDataSourceFactory | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._data_sources = data_sources or get_data_source_factory()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}@{self.version}>"

    @property
    def key(self) -> tuple[str, str]:
        return self.name, self.version

    def today(self) -> date:
        return self._clock().date()

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def get_parameter(self, name: str) -> CapabilityParameter | None:
        return next((p for p in self.parameters if p.name == name), None)

    def to_info(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "category": self.category,
            "required_tier": self.required_tier.value,
            "parameters": [p.to_dict() for p in self.parameters],
            "example_queries": list(self.example_queries),
        }

    # ------------------------------------------------------------------
    # Parameter extraction (tolerant: malformed optional values -> default)
    # ------------------------------------------------------------------

    def _default(self, name: str) -> Any:
        param = self.get_parameter(name)
        return param.default if param else None

    def get_str(self, params: dict, name: str) -> str | None:
        value = params.get(name)
        if _is_missing(value):
            return self._default(name)
        return str(value).strip()

    def get_int(self, params: dict, name: str) -> int | None:
        value = params.get(name)
        if isinstance(value, bool) or _is_missing(value):
            return self._default(name)
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            try:
                return int(float(value))
            except (TypeError, ValueError, OverflowError):
                return self._default(name)

    def get_bool(self, params: dict, name: str) -> bool | None:
        value = params.get(name)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("true", "1", "yes"):
                return True
            if lowered in ("false", "0", "no"):
                return False
        if isinstance(value, int):
            return value != 0
        return self._default(name)

    def get_date(self, params: dict, name: str) -> date | None:
        value = params.get(name)
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if _is_missing(value):
            return self._default(name)
        text = str(value).strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return self._default(name)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate_parameters(self, params: dict | None) -> ValidationResult:
        """
        Check parameters without touching data.
        Missing required parameters are reported here; subclasses add range checks in `_validate`.
        """
        params = params or {}
        result = ValidationResult()
        for param in self.parameters:
            if param.required and _is_missing(params.get(param.name)):
                result.add_error("MISSING_PARAMETER", f"Missing required parameter '{param.name}'")
        if result.is_valid:
            self._validate(params, result)
        return result

    def _validate(self, params: dict, result: ValidationResult) -> None:
        pass

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(
        self,
        tenant: Tenant,
        params: dict | None,
        cancel: CancellationToken | None = None,
    ) -> CapabilityResult:
        """Run the capability for a tenant. Never raises."""
        cancel = cancel or CancellationToken()
        params = params or {}
        started = time.monotonic()
        data_source = None

        try:
            cancel.raise_if_cancelled()
            source = self._data_sources.create(tenant)
            data_source = source.data_source
            data, record_count = self._run(source, params, cancel)
            cancel.raise_if_cancelled()

            elapsed = _elapsed_ms(started)
            logger.info(f"{self.name} executed for tenant {tenant.id} in {elapsed}ms (source={data_source})")
            return CapabilityResult.ok(
                self.name, self.version, data,
                execution_time_ms=elapsed,
                data_source=data_source,
                record_count=record_count,
            )

        except OperationCancelledError:
            logger.info(f"{self.name} cancelled for tenant {tenant.id}")
            return CapabilityResult.error(
                self.name, self.version, "REQUEST_CANCELLED", "Request was cancelled",
                execution_time_ms=_elapsed_ms(started), data_source=data_source,
            )
        except CapabilityError as e:
            logger.warning(f"{self.name} failed for tenant {tenant.id}: {e.code} {e.message}")
            return CapabilityResult.error(
                self.name, self.version, e.code, e.message,
                execution_time_ms=_elapsed_ms(started), data_source=data_source,
            )
        except Exception as e:
            logger.exception(f"{self.name} failed for tenant {tenant.id}: {e}")
            return CapabilityResult.error(
                self.name, self.version, self.error_code, str(e),
                execution_time_ms=_elapsed_ms(started), data_source=data_source,
            )

    def _run(self, source: RetailDataSource, params: dict, cancel: CancellationToken) -> tuple[Any, int | None]:
        """Return (payload, record_count)."""
        raise NotImplementedError


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
