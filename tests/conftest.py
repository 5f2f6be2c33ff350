from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from fallback_proxy.core.config import Settings, settings

# Override settings for tests
settings.cerebras_api_key = "test-primary-key"
settings.chutes_api_key = "test-secondary-key"
settings.log_json = False

from fallback_proxy.core.dependencies import get_gateway  # noqa: E402
from fallback_proxy.gateway.gateway import ProxyGateway  # noqa: E402
from fallback_proxy.main import app  # noqa: E402


class FakeClock:
    """Millisecond clock driven by the test."""

    def __init__(self, now: int = 0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    """Small limits so boundaries are easy to hit."""
    return Settings(
        _env_file=None,
        cerebras_api_key="test-primary-key",
        chutes_api_key="test-secondary-key",
        cerebras_requests_per_minute=2,
        cerebras_tokens_per_minute=1000,
        cerebras_tokens_per_day=10_000,
        cooldown_period=300_000,
        request_timeout=5_000,
        default_token_estimate=100,
    )


@pytest.fixture
def gateway(test_settings: Settings, clock: FakeClock) -> ProxyGateway:
    return ProxyGateway(test_settings, clock=clock)


@pytest.fixture
async def client(gateway: ProxyGateway) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_gateway] = lambda: gateway
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.pop(get_gateway, None)
