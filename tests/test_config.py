"""Tests for settings, startup validation and logging setup."""

import json
import logging

import pytest

from fallback_proxy.core.config import Settings, settings, validate_settings
from fallback_proxy.core.exceptions import ConfigurationError
from fallback_proxy.core.logging import JSONFormatter, PlainFormatter
from fallback_proxy.gateway.types import ProviderRole
from fallback_proxy.main import app, lifespan


def test_defaults_match_provider_limits():
    config = Settings(_env_file=None)
    limits = config.primary_limits()
    assert limits.requests_per_minute == 12
    assert limits.tokens_per_minute == 132_000
    assert limits.tokens_per_day == 19_200_000
    assert config.cooldown_period == 300_000
    assert config.request_timeout_seconds == 30.0


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("CEREBRAS_REQUESTS_PER_MINUTE", "5")
    monkeypatch.setenv("COOLDOWN_PERIOD", "1000")
    monkeypatch.setenv("PROXY_MODEL_NAME", "coder")
    config = Settings(_env_file=None)
    assert config.primary_limits().requests_per_minute == 5
    assert config.cooldown_period == 1000
    assert config.proxy_model_name == "coder"


def test_provider_configs():
    config = Settings(_env_file=None, cerebras_api_key="a", chutes_api_key="b")
    providers = config.provider_configs()
    assert set(providers) == {ProviderRole.PRIMARY, ProviderRole.SECONDARY}
    assert providers[ProviderRole.PRIMARY].name == "cerebras"
    assert providers[ProviderRole.PRIMARY].api_key == "a"
    assert providers[ProviderRole.SECONDARY].endpoint == "https://llm.chutes.ai/v1/chat/completions"


def test_validate_settings_requires_credentials():
    with pytest.raises(ConfigurationError) as exc_info:
        validate_settings(Settings(_env_file=None, cerebras_api_key="", chutes_api_key=""))

    assert "CEREBRAS_API_KEY must be set" in exc_info.value.errors
    assert "CHUTES_API_KEY must be set" in exc_info.value.errors


def test_validate_settings_rejects_non_positive_limits():
    config = Settings(_env_file=None, cerebras_api_key="a", chutes_api_key="b", cerebras_tokens_per_day=0)
    with pytest.raises(ConfigurationError, match="CEREBRAS_TOKENS_PER_DAY"):
        validate_settings(config)


def test_validate_settings_ok(test_settings):
    validate_settings(test_settings)


@pytest.mark.asyncio
async def test_lifespan_fails_fast_without_credentials(monkeypatch):
    monkeypatch.setattr(settings, "chutes_api_key", "")
    with pytest.raises(SystemExit):
        async with lifespan(app):
            pass


@pytest.mark.asyncio
async def test_lifespan_builds_gateway():
    async with lifespan(app):
        assert app.state.gateway.get_usage_snapshot()["cooldown_active"] is False


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("fallback_proxy.test", logging.INFO, __file__, 1, "Selected %s", ("chutes",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_structured_data():
    line = JSONFormatter().format(_record(request_id="abc", data={"reason": "budget exceeded"}))
    payload = json.loads(line)
    assert payload["level"] == "INFO"
    assert payload["message"] == "Selected chutes"
    assert payload["request_id"] == "abc"
    assert payload["data"] == {"reason": "budget exceeded"}


def test_json_formatter_handles_unserializable_data():
    payload = json.loads(JSONFormatter().format(_record(data={"obj": object()})))
    assert payload["data"]["obj"].startswith("<object")


def test_plain_formatter_appends_data():
    line = PlainFormatter("%(message)s").format(_record(data={"count": 1}))
    assert line == 'Selected chutes | {"count": 1}'
