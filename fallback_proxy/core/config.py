from pydantic_settings import BaseSettings, SettingsConfigDict

from fallback_proxy.core.exceptions import ConfigurationError
from fallback_proxy.gateway.types import ProviderConfig, ProviderLimits, ProviderRole


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # App
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 3000

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # set True in production for structured JSON logs

    # Sentry
    sentry_dsn: str = ""  # leave empty to disable

    # Provider names (primary is budgeted, secondary is the unconditional fallback)
    primary_provider: str = "cerebras"
    secondary_provider: str = "chutes"

    # API keys
    cerebras_api_key: str = ""
    chutes_api_key: str = ""

    # Provider model names
    cerebras_model_name: str = "qwen-3-coder-480b"
    chutes_model_name: str = "Qwen/Qwen3-Coder-480B-A35B-Instruct-FP8"

    # Public model name exposed by the proxy
    proxy_model_name: str = "qwen-3-coder"

    # Primary rate limit thresholds (80% of the actual Cerebras limits)
    cerebras_requests_per_minute: int = 12  # of 15
    cerebras_tokens_per_minute: int = 132_000  # of 165,000
    cerebras_tokens_per_day: int = 19_200_000  # of 24,000,000

    # Provider endpoints
    cerebras_endpoint: str = "https://api.cerebras.ai/v1/chat/completions"
    chutes_endpoint: str = "https://llm.chutes.ai/v1/chat/completions"

    # Cooldown before switching back to the primary (ms)
    cooldown_period: int = 5 * 60 * 1000

    # Outbound request timeout (ms)
    request_timeout: int = 30_000

    # Token cost recorded when the provider reports no usage and the request has no max_tokens
    default_token_estimate: int = 100

    def primary_limits(self) -> ProviderLimits:
        return ProviderLimits(
            requests_per_minute=self.cerebras_requests_per_minute,
            tokens_per_minute=self.cerebras_tokens_per_minute,
            tokens_per_day=self.cerebras_tokens_per_day,
        )

    def provider_configs(self) -> dict[ProviderRole, ProviderConfig]:
        return {
            ProviderRole.PRIMARY: ProviderConfig(
                role=ProviderRole.PRIMARY,
                name=self.primary_provider,
                endpoint=self.cerebras_endpoint,
                api_key=self.cerebras_api_key,
                model=self.cerebras_model_name,
            ),
            ProviderRole.SECONDARY: ProviderConfig(
                role=ProviderRole.SECONDARY,
                name=self.secondary_provider,
                endpoint=self.chutes_endpoint,
                api_key=self.chutes_api_key,
                model=self.chutes_model_name,
            ),
        }

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout / 1000


settings = Settings()


def validate_settings(config: Settings | None = None) -> None:
    """Fail fast on missing credentials or nonsensical limits. Called on startup."""
    config = config or settings
    errors: list[str] = []

    if not config.cerebras_api_key:
        errors.append("CEREBRAS_API_KEY must be set")
    if not config.chutes_api_key:
        errors.append("CHUTES_API_KEY must be set")

    for name in ("cerebras_requests_per_minute", "cerebras_tokens_per_minute", "cerebras_tokens_per_day"):
        if getattr(config, name) <= 0:
            errors.append(f"{name.upper()} must be positive")

    if config.cooldown_period < 0:
        errors.append("COOLDOWN_PERIOD must be non-negative")
    if config.request_timeout <= 0:
        errors.append("REQUEST_TIMEOUT must be positive")
    if config.default_token_estimate < 0:
        errors.append("DEFAULT_TOKEN_ESTIMATE must be non-negative")

    if errors:
        raise ConfigurationError(errors)
