"""Provider Adapters: protocol-level handling for each backend.

Both backends speak the OpenAI chat-completions wire format over HTTPS POST
with bearer auth, so a single adapter covers them. Adapters classify the HTTP
outcome into a ProviderResponse and never raise for HTTP-level failures;
asyncio.CancelledError is left to propagate so an abandoned inbound request
also abandons the outbound call.

Provider-specific behaviors:
  - 429 -> RATE_LIMITED (only meaningful for the primary; see dispatcher)
  - Timeout -> TIMEOUT
  - Any other non-2xx or transport failure -> VENDOR_ERROR with status/body
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx

from fallback_proxy.gateway.types import ProviderConfig, ProviderResponse, RequestStatus

logger = logging.getLogger(__name__)


def _has_tool_calls(body: Any) -> tuple[bool, bool]:
    """(has_tool_calls, has_function_call) for the first choice of a completion."""
    if not isinstance(body, dict):
        return False, False
    choices = body.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return False, False
    message = choices[0].get("message") or {}
    return bool(message.get("tool_calls")), bool(message.get("function_call"))


def _decode_body(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text


class BaseProviderAdapter(ABC):
    """Base class for all provider adapters."""

    def __init__(self, config: ProviderConfig):
        self.config = config

    @property
    def name(self) -> str:
        return self.config.name

    def adapt_request(self, body: dict[str, Any], provider_model: str) -> dict[str, Any]:
        """Copy the inbound body and point it at the backend model."""
        adapted = dict(body)
        adapted["model"] = provider_model

        if adapted.get("tools") or adapted.get("functions"):
            logger.info(
                "Request includes function calling parameters",
                extra={
                    "data": {
                        "has_tools": bool(adapted.get("tools")),
                        "has_functions": bool(adapted.get("functions")),
                        "provider": self.name,
                    }
                },
            )
        return adapted

    def adapt_response(self, body: dict[str, Any]) -> dict[str, Any]:
        """Hook for backend-specific response fixes. Returns the body as-is."""
        has_tool_calls, has_function_call = _has_tool_calls(body)
        if has_tool_calls or has_function_call:
            logger.info(
                "Response includes function calling data",
                extra={
                    "data": {
                        "has_tool_calls": has_tool_calls,
                        "has_function_call": has_function_call,
                        "provider": self.name,
                    }
                },
            )
        return body

    @abstractmethod
    async def send(self, payload: dict[str, Any], timeout: float = 30.0) -> ProviderResponse:
        """POST the payload to the backend and classify the outcome."""
        ...


class OpenAICompatibleAdapter(BaseProviderAdapter):
    """Chat completions over HTTPS with `Authorization: Bearer <key>`."""

    async def send(self, payload: dict[str, Any], timeout: float = 30.0) -> ProviderResponse:
        response = ProviderResponse()
        start = time.monotonic()

        logger.info(
            "Sending request to %s",
            self.name,
            extra={"data": {"endpoint": self.config.endpoint, "model": payload.get("model")}},
        )

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                resp = await client.post(
                    self.config.endpoint,
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self.config.api_key}",
                        "Content-Type": "application/json",
                    },
                )

            response.latency_ms = int((time.monotonic() - start) * 1000)
            response.status_code = resp.status_code

            if resp.status_code == 429:
                response.status = RequestStatus.RATE_LIMITED
                response.body = _decode_body(resp)
                response.error_message = f"Rate limited by {self.name}"
                return response

            resp.raise_for_status()
            response.body = resp.json()
            response.status = RequestStatus.SUCCESS

            logger.info(
                "Received response from %s",
                self.name,
                extra={"data": {"status": resp.status_code, "latency_ms": response.latency_ms}},
            )

        except httpx.TimeoutException:
            response.status = RequestStatus.TIMEOUT
            response.status_code = 0
            response.error_message = f"Timeout after {timeout}s"
            response.latency_ms = int((time.monotonic() - start) * 1000)
        except httpx.HTTPStatusError as e:
            response.status = RequestStatus.VENDOR_ERROR
            response.body = _decode_body(e.response)
            response.error_message = str(e)
        except httpx.HTTPError as e:
            response.status = RequestStatus.VENDOR_ERROR
            response.status_code = 0
            response.error_message = str(e) or type(e).__name__
            response.latency_ms = int((time.monotonic() - start) * 1000)
        except ValueError as e:
            # 2xx with an unparseable body
            response.status = RequestStatus.VENDOR_ERROR
            response.status_code = 502
            response.error_message = f"Invalid JSON from {self.name}: {e}"

        return response


def get_adapter(config: ProviderConfig) -> BaseProviderAdapter:
    """Factory: create the adapter for a configured backend."""
    return OpenAICompatibleAdapter(config)
