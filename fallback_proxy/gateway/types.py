"""Core types and DTOs for the routing gateway."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

# Millisecond clock; injectable everywhere so tests can drive time explicitly
Clock = Callable[[], int]


def monotonic_ms() -> int:
    """Default clock: monotonic milliseconds."""
    return time.monotonic_ns() // 1_000_000


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProviderRole(str, Enum):
    """The two backend slots. There is no third tier."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


class RoutingReason(str, Enum):
    """Why the selector picked a backend."""

    WITHIN_BUDGET = "within budget"
    COOLDOWN_ACTIVE = "cooldown active"
    BUDGET_EXCEEDED = "budget exceeded"


class RequestStatus(str, Enum):
    """Outcome of a single provider call."""

    SUCCESS = "success"
    RATE_LIMITED = "rate_limited"
    VENDOR_ERROR = "vendor_error"
    TIMEOUT = "timeout"


# ---------------------------------------------------------------------------
# Limits and provider config
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderLimits:
    """Static budget for the primary provider."""

    requests_per_minute: int
    tokens_per_minute: int
    tokens_per_day: int


@dataclass(frozen=True)
class ProviderConfig:
    """Connection details for one backend."""

    role: ProviderRole
    name: str  # e.g. "cerebras", "chutes"
    endpoint: str
    api_key: str
    model: str  # Backend-specific model identifier


# ---------------------------------------------------------------------------
# Ledger sample / routing decision
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UsageSample:
    """One recorded request in the sliding window."""

    timestamp: int  # ms
    tokens: int = 0


@dataclass(frozen=True)
class RoutingDecision:
    provider: ProviderRole
    provider_name: str
    reason: RoutingReason

    def to_dict(self) -> dict:
        return {
            "provider": self.provider_name,
            "role": self.provider.value,
            "reason": self.reason.value,
        }


# ---------------------------------------------------------------------------
# Provider response / routed result
# ---------------------------------------------------------------------------


@dataclass
class ProviderResponse:
    """Raw outcome of one HTTP call to a backend.

    Adapters never raise for HTTP-level failures; they classify them here
    and let the dispatcher decide what to do.
    """

    status: RequestStatus = RequestStatus.SUCCESS
    status_code: int = 0  # 0 when no HTTP response was received
    body: Any = None
    latency_ms: int = 0
    error_message: str = ""


@dataclass
class ChatCompletionResult:
    """A successful routed completion."""

    provider: str
    response: dict[str, Any] = field(default_factory=dict)
    status_code: int = 200
    role: ProviderRole = ProviderRole.PRIMARY
    tokens_recorded: int = 0  # 0 for the secondary (untracked)
