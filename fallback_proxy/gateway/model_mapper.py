"""Model name mapping between the proxy's public model and backend model ids."""

from __future__ import annotations

import time

from fallback_proxy.gateway.types import ProviderConfig, ProviderRole

OWNED_BY = "qwen-3-coder-proxy"


class ModelMapper:
    def __init__(self, proxy_model_name: str, providers: dict[ProviderRole, ProviderConfig]):
        self.proxy_model_name = proxy_model_name
        self._provider_models = {role: cfg.model for role, cfg in providers.items()}

    def is_supported(self, model: str | None) -> bool:
        return bool(model) and model == self.proxy_model_name

    def map_to_provider_model(self, model: str | None, role: ProviderRole) -> str | None:
        """Backend model id for `role`, or None if the model isn't served there."""
        if not self.is_supported(model):
            return None
        return self._provider_models.get(role) or None

    def map_to_proxy_model(self, provider_model: str) -> str | None:
        if provider_model in self._provider_models.values():
            return self.proxy_model_name
        return None

    def available_models(self) -> list[dict]:
        """OpenAI-style model list entries."""
        return [
            {
                "id": self.proxy_model_name,
                "object": "model",
                "created": int(time.time()),
                "owned_by": OWNED_BY,
            }
        ]
