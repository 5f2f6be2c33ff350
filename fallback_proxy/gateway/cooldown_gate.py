"""Cooldown Gate: forced avoidance of the primary provider after a 429.

Two states:
  - INACTIVE: now >= deadline (or never tripped)
  - ACTIVE: now < deadline

trip() is the only transition into ACTIVE; time passing is the only way out.
Repeated trips overwrite the deadline, they do not stack.
"""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)


class CooldownGate:
    def __init__(self):
        self._deadline = 0  # ms; 0 = never tripped
        self.lock = threading.RLock()

    def trip(self, now: int, duration: int) -> None:
        """Activate the gate until `now + duration` (milliseconds)."""
        if duration < 0:
            raise ValueError(f"cooldown duration must be non-negative, got {duration}")

        with self.lock:
            self._deadline = now + duration

        logger.warning("Cooldown gate tripped for %dms", duration)

    def is_active(self, now: int) -> bool:
        with self.lock:
            return now < self._deadline

    def remaining(self, now: int) -> int:
        """Milliseconds left in the cooldown, 0 when inactive."""
        with self.lock:
            return max(0, self._deadline - now)

    @property
    def deadline(self) -> int:
        with self.lock:
            return self._deadline
