"""
In-memory fixed-window rate limiting.

Each identifier (user id, or "<scope>:<ip>") gets a counter and a reset time.
When the window expires the counter resets wholesale; there is no sliding
window. State is per process.
"""
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from django.http import JsonResponse

from .http import rate_limited_response

logger = logging.getLogger("api")

CLEANUP_INTERVAL_SECONDS = 5 * 60


@dataclass(frozen=True)
class RateLimitRule:
    max_requests: int
    window_seconds: float


@dataclass
class RateLimitResult:
    limited: bool
    remaining: int
    reset_time: float


RATE_LIMITS = {
    "auth": RateLimitRule(max_requests=5, window_seconds=60),
    "create_post": RateLimitRule(max_requests=10, window_seconds=60),
    "send_message": RateLimitRule(max_requests=20, window_seconds=60),
    "upload": RateLimitRule(max_requests=10, window_seconds=60),
    "api": RateLimitRule(max_requests=60, window_seconds=60),
    "search": RateLimitRule(max_requests=30, window_seconds=60),
}

DEFAULT_RULE = RateLimitRule(max_requests=10, window_seconds=60)


class RateLimiter:
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._store: Dict[str, list] = {}
        self._lock = threading.Lock()
        self._last_cleanup = clock()

    def now(self) -> float:
        return self._clock()

    def check(self, identifier: str, rule: RateLimitRule = DEFAULT_RULE) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            self._cleanup(now)
            record = self._store.get(identifier)

            if record is None or now > record[1]:
                reset_time = now + rule.window_seconds
                self._store[identifier] = [1, reset_time]
                return RateLimitResult(False, rule.max_requests - 1, reset_time)

            count, reset_time = record
            if count >= rule.max_requests:
                return RateLimitResult(True, 0, reset_time)

            record[0] = count + 1
            return RateLimitResult(False, rule.max_requests - record[0], reset_time)

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < CLEANUP_INTERVAL_SECONDS:
            return
        self._last_cleanup = now
        expired = [key for key, (_, reset_time) in self._store.items() if now > reset_time]
        for key in expired:
            del self._store[key]
        if expired:
            logger.debug(f"[RATE_LIMIT] Purged {len(expired)} expired windows")

    def reset(self) -> None:
        with self._lock:
            self._store.clear()
            self._last_cleanup = self._clock()

    def __len__(self) -> int:
        return len(self._store)


def client_ip(request) -> str:
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real = request.META.get("HTTP_X_REAL_IP")
    if real:
        return real.strip()
    return "unknown"


def enforce_rate_limit(rule_name: str, identifier: str) -> Optional[JsonResponse]:
    """
    None if the request may proceed, otherwise a 429 response. Counters are
    keyed "<rule>:<identifier>" so each rule has its own window.
    """
    key = f"{rule_name}:{identifier}"
    result = rate_limiter.check(key, RATE_LIMITS[rule_name])
    if result.limited:
        logger.warning(f"[RATE_LIMIT] {rule_name} exceeded for {identifier}")
        return rate_limited_response(result.reset_time, rate_limiter.now())
    return None


# Singleton instance
rate_limiter = RateLimiter()
