"""
Rate Limiter for the natural-language query endpoint
Per-tenant sliding one-minute window with tier-based ceilings.

Default ceilings:
- free: 10 requests per minute
- professional: 30 requests per minute
- enterprise: 100 requests per minute
"""
import math
import time
from collections import deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Callable

from capabilities import SubscriptionTier
from config import settings
from utils import get_logger

logger = get_logger(__name__)

WINDOW_SECONDS = 60


def default_limits() -> dict[SubscriptionTier, int]:
    return {
        SubscriptionTier.FREE: settings.RATE_LIMIT_FREE,
        SubscriptionTier.PROFESSIONAL: settings.RATE_LIMIT_PROFESSIONAL,
        SubscriptionTier.ENTERPRISE: settings.RATE_LIMIT_ENTERPRISE,
    }


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0  # seconds; 0 when allowed

    def headers(self) -> dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


@dataclass
class TenantWindow:
    """Request timestamps for one tenant inside the trailing window"""
    requests: deque = field(default_factory=deque)
    lock: Lock = field(default_factory=Lock)
    last_seen: float = 0.0


class RateLimitExceededError(Exception):
    """Raised when a tenant exceeds its per-minute request ceiling"""

    def __init__(self, decision: RateLimitDecision, tenant_id: str | None = None):
        super().__init__(f"Rate limit exceeded, retry after {decision.retry_after}s")
        self.decision = decision
        self.tenant_id = tenant_id


class TenantRateLimiter:
    """
    Sliding-window limiter keyed by tenant.

    The per-tenant lock is held only to prune and append. The shared lock
    guards the tenant map itself and idle-window eviction.
    """

    def __init__(
        self,
        limits: dict[SubscriptionTier, int] | None = None,
        window_seconds: int = WINDOW_SECONDS,
        idle_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limits = limits or default_limits()
        self.window_seconds = window_seconds
        self.idle_seconds = settings.RATE_LIMIT_IDLE_SECONDS if idle_seconds is None else idle_seconds
        self._clock = clock
        self._windows: dict[str, TenantWindow] = {}
        self._windows_lock = Lock()
        self._last_sweep = clock()

    def _window(self, tenant_id: str, now: float) -> TenantWindow:
        with self._windows_lock:
            window = self._windows.get(tenant_id)
            if window is None:
                window = self._windows[tenant_id] = TenantWindow()
            # Touch under the map lock so eviction never drops a window in use
            window.last_seen = now
            return window

    def limit_for(self, tier: SubscriptionTier) -> int:
        return self.limits.get(tier, self.limits[SubscriptionTier.FREE])

    def check(self, tenant_id: str, tier: SubscriptionTier) -> RateLimitDecision:
        """Admit and record the request, or reject it with a retry-after"""
        now = self._clock()
        self._maybe_evict(now)
        limit = self.limit_for(tier)
        window = self._window(tenant_id, now)

        with window.lock:
            cutoff = now - self.window_seconds
            while window.requests and window.requests[0] <= cutoff:
                window.requests.popleft()

            if len(window.requests) >= limit:
                oldest = window.requests[0]
                retry_after = math.ceil(oldest + self.window_seconds - now)
                retry_after = max(1, min(self.window_seconds, retry_after))
                logger.warning(f"Rate limit hit for tenant {tenant_id} ({limit}/min), retry after {retry_after}s")
                return RateLimitDecision(allowed=False, limit=limit, remaining=0, retry_after=retry_after)

            window.requests.append(now)
            return RateLimitDecision(allowed=True, limit=limit, remaining=limit - len(window.requests))

    def _maybe_evict(self, now: float) -> None:
        if self.idle_seconds > 0 and now - self._last_sweep >= self.idle_seconds:
            self.evict_idle(now)

    def evict_idle(self, now: float | None = None) -> int:
        """Drop windows for tenants not seen within idle_seconds. Returns how many were dropped."""
        now = self._clock() if now is None else now
        with self._windows_lock:
            self._last_sweep = now
            idle = [tid for tid, w in self._windows.items() if now - w.last_seen >= self.idle_seconds]
            for tenant_id in idle:
                del self._windows[tenant_id]
        if idle:
            logger.info(f"Evicted {len(idle)} idle rate-limit windows")
        return len(idle)

    def get_usage_stats(self, tenant_id: str, tier: SubscriptionTier) -> dict:
        """Get current usage statistics for a tenant"""
        now = self._clock()
        limit = self.limit_for(tier)
        with self._windows_lock:
            window = self._windows.get(tenant_id)
        count = 0
        if window is not None:
            with window.lock:
                count = sum(1 for ts in window.requests if ts > now - self.window_seconds)
        return {
            "requests_this_minute": count,
            "minute_limit": limit,
            "minute_remaining": max(0, limit - count),
        }

    def tracked_tenants(self) -> int:
        with self._windows_lock:
            return len(self._windows)


# Singleton instance
_rate_limiter: TenantRateLimiter | None = None


def get_rate_limiter() -> TenantRateLimiter:
    """Get or create rate limiter singleton"""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = TenantRateLimiter()
    return _rate_limiter
