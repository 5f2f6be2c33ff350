"""Backend Selector: combines Usage Ledger + Cooldown Gate into one decision.

    gate inactive AND within budget  -> PRIMARY   ("within budget")
    gate active                      -> SECONDARY ("cooldown active")
    otherwise                        -> SECONDARY ("budget exceeded")

The secondary is the unconditional fallback and has no budget of its own.
"""

from __future__ import annotations

import logging

from fallback_proxy.gateway.cooldown_gate import CooldownGate
from fallback_proxy.gateway.types import (
    ProviderLimits,
    ProviderRole,
    RoutingDecision,
    RoutingReason,
)
from fallback_proxy.gateway.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)


class BackendSelector:
    def __init__(self, primary_limits: ProviderLimits, primary_name: str, secondary_name: str):
        self.primary_limits = primary_limits
        self.primary_name = primary_name
        self.secondary_name = secondary_name

    def select(self, ledger: UsageLedger, gate: CooldownGate, now: int) -> RoutingDecision:
        """Decide which backend serves the next request.

        Both locks are held together (ledger, then gate) so the decision is
        made against a single consistent view at `now`.
        """
        with ledger.lock, gate.lock:
            cooling_down = gate.is_active(now)
            within_budget = ledger.is_within_budget(self.primary_limits, now)

        if not cooling_down and within_budget:
            decision = RoutingDecision(ProviderRole.PRIMARY, self.primary_name, RoutingReason.WITHIN_BUDGET)
            logger.info("Selected provider: %s (%s)", decision.provider_name, decision.reason.value)
            return decision

        reason = RoutingReason.COOLDOWN_ACTIVE if cooling_down else RoutingReason.BUDGET_EXCEEDED
        decision = RoutingDecision(ProviderRole.SECONDARY, self.secondary_name, reason)
        logger.warning(
            "Selected provider: %s (%s)",
            decision.provider_name,
            decision.reason.value,
            extra={"data": ledger.snapshot(self.primary_limits, now)},
        )
        return decision
