"""Request Dispatcher: sends a chat completion to the selected backend.

Pipeline per request:
  1. Validate the logical model name (no state touched on failure)
  2. Ask the BackendSelector for a target
  3. Map the model to the backend's model id and adapt the body
  4. POST via the provider adapter, under the request timeout, with no lock held
  5. Interpret the outcome:
       - success: record token cost into the ledger (primary only)
       - primary 429: trip the cooldown gate, raise RateLimitError
       - anything else: raise TransportError with the provider's status/body

Nothing is retried here. A rate-limited call is not re-sent to the secondary;
the caller's next request is routed there by the selector instead.
"""

from __future__ import annotations

import logging
from typing import Any

from fallback_proxy.core.exceptions import RateLimitError, TransportError, ValidationError
from fallback_proxy.core.metrics import COOLDOWN_TRIPS, PROVIDER_ERRORS, RECORDED_TOKENS, ROUTED_REQUESTS
from fallback_proxy.gateway.cooldown_gate import CooldownGate
from fallback_proxy.gateway.model_mapper import ModelMapper
from fallback_proxy.gateway.provider_adapters import BaseProviderAdapter
from fallback_proxy.gateway.selector import BackendSelector
from fallback_proxy.gateway.types import (
    ChatCompletionResult,
    Clock,
    ProviderResponse,
    ProviderRole,
    RequestStatus,
    monotonic_ms,
)
from fallback_proxy.gateway.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)


def resolve_token_cost(request_body: dict[str, Any], response_body: Any, default: int) -> int:
    """Token cost to record for a successful call.

    Preference: usage reported by the provider, then the request's declared
    max_tokens, then the configured estimate.
    """
    if isinstance(response_body, dict):
        usage = response_body.get("usage") or {}
        if isinstance(usage, dict):
            total = usage.get("total_tokens")
            if isinstance(total, int) and total >= 0:
                return total
            prompt = usage.get("prompt_tokens")
            completion = usage.get("completion_tokens")
            if isinstance(prompt, int) and isinstance(completion, int):
                return max(0, prompt + completion)

    max_tokens = request_body.get("max_tokens")
    if isinstance(max_tokens, int) and max_tokens > 0:
        return max_tokens

    return default


class RequestDispatcher:
    def __init__(
        self,
        selector: BackendSelector,
        ledger: UsageLedger,
        gate: CooldownGate,
        mapper: ModelMapper,
        adapters: dict[ProviderRole, BaseProviderAdapter],
        cooldown_period: int,
        timeout_seconds: float,
        default_token_estimate: int = 100,
        clock: Clock | None = None,
    ):
        self.selector = selector
        self.ledger = ledger
        self.gate = gate
        self.mapper = mapper
        self.adapters = adapters
        self.cooldown_period = cooldown_period
        self.timeout_seconds = timeout_seconds
        self.default_token_estimate = default_token_estimate
        self._clock = clock or monotonic_ms

    async def dispatch(self, body: dict[str, Any], now: int | None = None) -> ChatCompletionResult:
        """Route one chat completion.

        Args:
            body: The inbound chat-completion body (already JSON-decoded).
            now: Decision time in ms. When given, outcomes are also accounted
                at this time; otherwise the clock is read again once the
                provider answers.

        Raises:
            ValidationError: missing or unsupported model.
            RateLimitError: the primary answered 429 (cooldown now active).
            TransportError: any other failure, with the provider's status/body.
        """
        model = body.get("model")
        if not model:
            logger.warning("Missing model parameter in request")
            raise ValidationError("Missing model parameter")
        if not self.mapper.is_supported(model):
            logger.warning("Unsupported model requested", extra={"data": {"model": model}})
            raise ValidationError(f"Model {model} not supported")

        decision_time = self._clock() if now is None else now
        decision = self.selector.select(self.ledger, self.gate, decision_time)
        ROUTED_REQUESTS.labels(provider=decision.provider_name, reason=decision.reason.value).inc()

        provider_model = self.mapper.map_to_provider_model(model, decision.provider)
        if provider_model is None:
            raise ValidationError(f"Model {model} not supported for provider {decision.provider_name}")

        adapter = self.adapters[decision.provider]
        payload = adapter.adapt_request(body, provider_model)

        logger.info(
            "Routing request",
            extra={"data": {"provider": decision.provider_name, "model": model, "provider_model": provider_model}},
        )

        # Only suspension point; CancelledError propagates and nothing is recorded
        outcome = await adapter.send(payload, timeout=self.timeout_seconds)
        observed_at = self._clock() if now is None else now

        if outcome.status == RequestStatus.SUCCESS:
            return self._on_success(body, outcome, decision.provider, adapter, observed_at)

        if outcome.status == RequestStatus.RATE_LIMITED and decision.provider == ProviderRole.PRIMARY:
            self.gate.trip(observed_at, self.cooldown_period)
            COOLDOWN_TRIPS.inc()
            PROVIDER_ERRORS.labels(provider=adapter.name, kind="rate_limited").inc()
            logger.warning("%s rate limit exceeded, cooldown active", adapter.name)
            raise RateLimitError(provider=adapter.name)

        raise self._transport_error(adapter.name, outcome)

    def _on_success(
        self,
        body: dict[str, Any],
        outcome: ProviderResponse,
        role: ProviderRole,
        adapter: BaseProviderAdapter,
        observed_at: int,
    ) -> ChatCompletionResult:
        response_body = adapter.adapt_response(outcome.body)

        tokens = 0
        if role == ProviderRole.PRIMARY:
            tokens = resolve_token_cost(body, response_body, self.default_token_estimate)
            self.ledger.record(tokens, observed_at)
            RECORDED_TOKENS.inc(tokens)
            logger.info("Added request to rate limit monitor", extra={"data": {"token_count": tokens}})

        return ChatCompletionResult(
            provider=adapter.name,
            response=response_body,
            status_code=outcome.status_code or 200,
            role=role,
            tokens_recorded=tokens,
        )

    @staticmethod
    def _transport_error(provider: str, outcome: ProviderResponse) -> TransportError:
        kind = "timeout" if outcome.status == RequestStatus.TIMEOUT else "transport"
        PROVIDER_ERRORS.labels(provider=provider, kind=kind).inc()
        logger.error(
            "Error sending request to %s",
            provider,
            extra={
                "data": {
                    "error": outcome.error_message,
                    "status": outcome.status_code or None,
                    "body": outcome.body,
                }
            },
        )
        return TransportError(
            provider=provider,
            message=outcome.error_message or f"{provider} request failed",
            status_code=outcome.status_code,
            body=outcome.body,
            timed_out=outcome.status == RequestStatus.TIMEOUT,
        )
