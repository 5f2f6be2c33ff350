"""Usage Ledger: sliding-window request/token accounting for the primary provider.

Tracks requests-per-minute and tokens-per-minute with a 60-second sliding
window, plus a rolling daily token total that resets 24 hours after the last
reset (not at wall-clock midnight).

Samples live in a deque: appended at the tail, pruned from the head. Pruning
is lazy and happens on each budget check. All timestamps are milliseconds
from the injected clock.

Thread-safe via a per-instance RLock. No method awaits, so the lock is never
held across network I/O.
"""

from __future__ import annotations

import logging
import threading
from collections import deque

from fallback_proxy.gateway.types import Clock, ProviderLimits, UsageSample, monotonic_ms

logger = logging.getLogger(__name__)

WINDOW_MS = 60_000
DAY_MS = 24 * 60 * 60 * 1000


class UsageLedger:
    """Per-process consumption ledger.

    Usage:
        ledger = UsageLedger()

        if ledger.is_within_budget(limits, now):
            ...
        ledger.record(tokens=1500, now=now)
    """

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or monotonic_ms
        self._samples: deque[UsageSample] = deque()
        self._daily_tokens = 0
        self._last_reset = self._clock()
        self.lock = threading.RLock()

    def _prune(self, now: int) -> None:
        """Drop samples that are 60s old or older."""
        cutoff = now - WINDOW_MS
        while self._samples and self._samples[0].timestamp <= cutoff:
            self._samples.popleft()

    def _current_daily(self, now: int) -> int:
        """Daily total as of `now`; a lapsed period reads as 0 until the next record resets it."""
        if now - self._last_reset >= DAY_MS:
            return 0
        return self._daily_tokens

    def record(self, tokens: int, now: int) -> None:
        """Record one completed request consuming `tokens`."""
        if tokens < 0:
            raise ValueError(f"token count must be non-negative, got {tokens}")

        with self.lock:
            self._samples.append(UsageSample(timestamp=now, tokens=tokens))

            if now - self._last_reset >= DAY_MS:
                logger.info("Daily token counter reset (previous total: %d)", self._daily_tokens)
                self._daily_tokens = tokens
                self._last_reset = now
            else:
                self._daily_tokens += tokens

    def is_within_budget(self, limits: ProviderLimits, now: int) -> bool:
        """True iff every counter is strictly below its limit."""
        with self.lock:
            self._prune(now)

            if len(self._samples) >= limits.requests_per_minute:
                return False

            if sum(s.tokens for s in self._samples) >= limits.tokens_per_minute:
                return False

            return self._current_daily(now) < limits.tokens_per_day

    def snapshot(self, limits: ProviderLimits, now: int) -> dict:
        """Current counts vs. limits. Read-only: the deque is not pruned."""
        with self.lock:
            recent = [s for s in self._samples if now - s.timestamp < WINDOW_MS]
            daily = self._current_daily(now)

        return {
            "requests_per_minute": {
                "current": len(recent),
                "limit": limits.requests_per_minute,
            },
            "tokens_per_minute": {
                "current": sum(s.tokens for s in recent),
                "limit": limits.tokens_per_minute,
            },
            "tokens_per_day": {
                "current": daily,
                "limit": limits.tokens_per_day,
            },
        }

    @property
    def daily_tokens(self) -> int:
        with self.lock:
            return self._daily_tokens

    @property
    def last_reset(self) -> int:
        with self.lock:
            return self._last_reset

    def __len__(self) -> int:
        with self.lock:
            return len(self._samples)
