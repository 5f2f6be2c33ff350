"""Proxy Gateway: wires the routing components and exposes the router API.

Integrates:
  - UsageLedger: sliding-window consumption for the primary
  - CooldownGate: forced fallback after a primary 429
  - BackendSelector: primary vs. secondary decision
  - ModelMapper: proxy model name -> backend model ids
  - Provider adapters + RequestDispatcher: the outbound call

Usage:
    gateway = ProxyGateway(settings)

    result = await gateway.route_chat_completion(body)
    usage = gateway.get_usage_snapshot()
"""

from __future__ import annotations

import logging
from typing import Any

from fallback_proxy.core.config import Settings
from fallback_proxy.gateway.cooldown_gate import CooldownGate
from fallback_proxy.gateway.dispatcher import RequestDispatcher
from fallback_proxy.gateway.model_mapper import ModelMapper
from fallback_proxy.gateway.provider_adapters import BaseProviderAdapter, get_adapter
from fallback_proxy.gateway.selector import BackendSelector
from fallback_proxy.gateway.types import ChatCompletionResult, Clock, ProviderRole, monotonic_ms
from fallback_proxy.gateway.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)


class ProxyGateway:
    """Process-wide router. Build once at startup and inject where needed."""

    def __init__(
        self,
        config: Settings,
        clock: Clock | None = None,
        adapters: dict[ProviderRole, BaseProviderAdapter] | None = None,
    ):
        """
        Args:
            config: Application settings (endpoints, keys, limits, timeouts)
            clock: Millisecond clock; defaults to the monotonic clock
            adapters: Override the provider adapters (tests)
        """
        self.config = config
        self._clock = clock or monotonic_ms

        self.providers = config.provider_configs()
        self.limits = config.primary_limits()

        self.ledger = UsageLedger(clock=self._clock)
        self.gate = CooldownGate()
        self.selector = BackendSelector(
            self.limits,
            primary_name=self.providers[ProviderRole.PRIMARY].name,
            secondary_name=self.providers[ProviderRole.SECONDARY].name,
        )
        self.mapper = ModelMapper(config.proxy_model_name, self.providers)
        self.adapters = adapters or {role: get_adapter(cfg) for role, cfg in self.providers.items()}

        self.dispatcher = RequestDispatcher(
            selector=self.selector,
            ledger=self.ledger,
            gate=self.gate,
            mapper=self.mapper,
            adapters=self.adapters,
            cooldown_period=config.cooldown_period,
            timeout_seconds=config.request_timeout_seconds,
            default_token_estimate=config.default_token_estimate,
            clock=self._clock,
        )

    async def route_chat_completion(self, body: dict[str, Any], now: int | None = None) -> ChatCompletionResult:
        logger.info(
            "Processing chat completion request",
            extra={"data": {"model": body.get("model"), "messages_count": len(body.get("messages") or [])}},
        )
        return await self.dispatcher.dispatch(body, now=now)

    def get_usage_snapshot(self, now: int | None = None) -> dict:
        """Primary counts vs. limits plus cooldown state. Never mutates state."""
        now = self._clock() if now is None else now
        with self.ledger.lock, self.gate.lock:
            usage = self.ledger.snapshot(self.limits, now)
            cooldown_active = self.gate.is_active(now)
            cooldown_remaining = self.gate.remaining(now)

        return {
            "primary": {"provider": self.providers[ProviderRole.PRIMARY].name, **usage},
            "secondary": {"provider": self.providers[ProviderRole.SECONDARY].name, "tracked": False},
            "cooldown_active": cooldown_active,
            "cooldown_remaining_ms": cooldown_remaining,
        }

    def list_models(self) -> list[dict]:
        return self.mapper.available_models()
