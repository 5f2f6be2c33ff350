"""OpenAI-compatible API: models listing and chat completions."""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable
from typing import TypeVar

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from fallback_proxy.core.dependencies import get_gateway
from fallback_proxy.gateway.gateway import ProxyGateway
from fallback_proxy.schemas.chat import ChatCompletionRequest, ModelList, UsageSnapshotResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["openai"])

PROVIDER_HEADER = "X-Proxy-Provider"
DISCONNECT_POLL_SECONDS = 0.5

T = TypeVar("T")


class ClientDisconnected(Exception):
    """The inbound client went away before the provider answered."""


async def _cancel_on_disconnect(request: Request, work: Awaitable[T]) -> T:
    """Await `work`, cancelling it if the client disconnects first."""
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info("Client disconnected, cancelling provider call")
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
                raise ClientDisconnected()
    finally:
        if not task.done():
            task.cancel()


@router.get("/models", response_model=ModelList)
async def list_models(gateway: ProxyGateway = Depends(get_gateway)):
    models = gateway.list_models()
    logger.info("Returning models", extra={"data": {"count": len(models)}})
    return {"object": "list", "data": models}


@router.post("/chat/completions")
async def chat_completions(
    payload: ChatCompletionRequest,
    request: Request,
    gateway: ProxyGateway = Depends(get_gateway),
):
    """Route a chat completion to the primary or secondary provider.

    The provider's body and status are returned unchanged; the serving
    provider is named in the X-Proxy-Provider header.
    """
    try:
        result = await _cancel_on_disconnect(request, gateway.route_chat_completion(payload.to_provider_body()))
    except ClientDisconnected:
        # Nobody is listening; 499 is only for the access log
        return JSONResponse(status_code=499, content={"error": "Client closed request"})

    logger.info(
        "Returning response from provider",
        extra={"data": {"provider": result.provider, "status": result.status_code}},
    )
    return JSONResponse(
        status_code=result.status_code,
        content=result.response,
        headers={PROVIDER_HEADER: result.provider},
    )


@router.post("/completions")
async def completions():
    logger.warning("POST /v1/completions requested (not supported)")
    return JSONResponse(
        status_code=400,
        content={"error": "Completions endpoint not supported, use chat completions instead"},
    )


@router.get("/usage", response_model=UsageSnapshotResponse)
async def usage(gateway: ProxyGateway = Depends(get_gateway)):
    return gateway.get_usage_snapshot()
