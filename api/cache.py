"""
TTL caching helpers on top of Django's cache framework.

`get_or_fetch` and `cached` never store None, so a missing document is
looked up again on the next call instead of being remembered as absent.
"""
import functools
import hashlib
import json
import logging
from typing import Any, Callable, Optional

from django.core.cache import cache

logger = logging.getLogger("api")

KEY_PREFIX = "fn_cache_"


class CacheTTL:
    SHORT = 5 * 60
    MEDIUM = 30 * 60
    LONG = 60 * 60
    DAY = 24 * 60 * 60


class CacheKeys:
    @staticmethod
    def profile(user_id: str) -> str:
        return f"profile_{user_id}"


def get_or_fetch(key: str, fetch: Callable[[], Any], ttl: int = CacheTTL.LONG) -> Any:
    value = cache.get(key)
    if value is not None:
        return value

    value = fetch()
    if value is not None:
        cache.set(key, value, ttl)
    return value


def invalidate(key: str) -> None:
    cache.delete(key)


def _args_key(func: Callable, args, kwargs) -> str:
    try:
        raw = json.dumps([args, kwargs], sort_keys=True, default=str)
    except (TypeError, ValueError):
        raw = repr((args, sorted(kwargs.items())))
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()
    return f"{KEY_PREFIX}{func.__module__}.{func.__qualname__}_{digest}"


def cached(ttl: int = CacheTTL.LONG, key_func: Optional[Callable[..., str]] = None):
    """Memoize a function's non-None results for `ttl` seconds."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            key = key_func(*args, **kwargs) if key_func else _args_key(func, args, kwargs)
            return get_or_fetch(key, lambda: func(*args, **kwargs), ttl)

        wrapper.invalidate = lambda *args, **kwargs: invalidate(
            key_func(*args, **kwargs) if key_func else _args_key(func, args, kwargs)
        )
        return wrapper

    return decorator
