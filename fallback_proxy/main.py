import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from fallback_proxy.api.v1.router import api_v1_router
from fallback_proxy.core.config import settings, validate_settings
from fallback_proxy.core.exceptions import ConfigurationError, ProxyError, TransportError
from fallback_proxy.core.logging import setup_logging
from fallback_proxy.core.metrics import PrometheusMiddleware, metrics_response
from fallback_proxy.core.middleware import RequestLoggingMiddleware
from fallback_proxy.core.sentry import init_sentry
from fallback_proxy.gateway.gateway import ProxyGateway

# Configure logging before anything else
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: missing credentials stop the process here, not per request
    try:
        validate_settings()
    except ConfigurationError as e:
        logger.error("%s", e)
        raise SystemExit(str(e)) from e

    init_sentry()
    app.state.gateway = ProxyGateway(settings)
    logger.info(
        "Qwen-3-Coder Proxy Server is running on port %d (primary=%s, secondary=%s)",
        settings.app_port,
        settings.primary_provider,
        settings.secondary_provider,
    )
    logger.info("OpenAI-compatible endpoints available at /v1")

    yield

    logger.info("Qwen-3-Coder Proxy Server shut down")


app = FastAPI(
    title="Qwen-3-Coder Proxy",
    description="OpenAI-compatible proxy with budget-aware primary/secondary provider routing",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(ProxyError)
async def _proxy_error_handler(request: Request, exc: ProxyError):
    if isinstance(exc, TransportError) and exc.upstream_status:
        logger.info("Forwarding provider error response", extra={"data": {"status": exc.upstream_status}})
        if isinstance(exc.body, str):
            return PlainTextResponse(status_code=exc.status_code, content=exc.body)
    elif exc.status_code == 429:
        logger.warning("Returning 429 due to rate limit")
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("Invalid request body on %s", request.url.path)
    detail = [{"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "Invalid request body", "detail": detail})


# Log unhandled exceptions with the full traceback
@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(PrometheusMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_v1_router)


@app.get("/")
async def root():
    logger.info("Root endpoint accessed")
    return {"message": "Qwen-3-Coder Proxy Server"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run(
        "fallback_proxy.main:app",
        host=settings.app_host,
        port=settings.app_port,
        log_config=None,  # keep our logging setup
    )
