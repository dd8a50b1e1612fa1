"""Per-identity attempt limiting for login endpoints."""
from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import NamedTuple

from agora.core.config import get_settings


class RateLimitResult(NamedTuple):
    allowed: bool
    retry_after: float | None


@dataclass(slots=True)
class _KeyState:
    hits: deque[float] = field(default_factory=deque)
    blocked_until: float = 0.0


@dataclass(slots=True)
class SlidingWindowRateLimiter:
    """Allow ``limit`` attempts per key inside a sliding window.

    A key that exceeds the limit is blocked for ``block_seconds``. Keys with
    no attempts left in the window and no active block are forgotten, so the
    table only holds identities that are currently being limited.
    """

    limit: int
    window_seconds: float
    block_seconds: float
    clock: Callable[[], float] = time.monotonic
    _keys: dict[str, _KeyState] = field(init=False, default_factory=dict)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    def __len__(self) -> int:
        return len(self._keys)

    def _is_stale(self, state: _KeyState, now: float) -> bool:
        cutoff = now - self.window_seconds
        while state.hits and state.hits[0] <= cutoff:
            state.hits.popleft()
        return not state.hits and state.blocked_until <= now

    def _evict_stale(self, now: float) -> None:
        for key in [key for key, state in self._keys.items() if self._is_stale(state, now)]:
            del self._keys[key]

    async def consume(self, key: str) -> RateLimitResult:
        """Record one attempt for ``key`` and report whether it may proceed."""

        async with self._lock:
            now = self.clock()
            self._evict_stale(now)
            state = self._keys.setdefault(key, _KeyState())

            if state.blocked_until > now:
                return RateLimitResult(False, state.blocked_until - now)
            if len(state.hits) >= self.limit:
                state.hits.clear()
                state.blocked_until = now + self.block_seconds
                return RateLimitResult(False, self.block_seconds)

            state.hits.append(now)
            return RateLimitResult(True, None)

    async def reset(self, key: str | None = None) -> None:
        """Forget one key, or every key when ``key`` is omitted."""

        async with self._lock:
            if key is None:
                self._keys.clear()
            else:
                self._keys.pop(key, None)


def _from_settings(prefix: str) -> SlidingWindowRateLimiter:
    settings = get_settings()
    return SlidingWindowRateLimiter(
        limit=getattr(settings, f"{prefix}_rate_limit_attempts"),
        window_seconds=float(getattr(settings, f"{prefix}_rate_limit_window_seconds")),
        block_seconds=float(getattr(settings, f"{prefix}_rate_limit_block_seconds")),
    )


login_rate_limiter = _from_settings("login")
wallet_connect_rate_limiter = _from_settings("wallet_connect")


def get_login_rate_limiter() -> SlidingWindowRateLimiter:
    return login_rate_limiter


def get_wallet_connect_rate_limiter() -> SlidingWindowRateLimiter:
    return wallet_connect_rate_limiter


__all__ = [
    "RateLimitResult",
    "SlidingWindowRateLimiter",
    "get_login_rate_limiter",
    "get_wallet_connect_rate_limiter",
    "login_rate_limiter",
    "wallet_connect_rate_limiter",
]
