from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str
    content: Any = None


class ChatCompletionRequest(BaseModel):
    """Inbound chat completion. Unknown fields are passed through to the provider."""

    model_config = ConfigDict(extra="allow")

    # Optional here so a missing model is answered with a 400, not a 422
    model: str | None = None
    messages: list[ChatMessage] = Field(default_factory=list)
    max_tokens: int | None = None
    tools: list[dict[str, Any]] | None = None
    functions: list[dict[str, Any]] | None = None

    def to_provider_body(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class ModelCard(BaseModel):
    id: str
    object: str = "model"
    created: int
    owned_by: str


class ModelList(BaseModel):
    object: str = "list"
    data: list[ModelCard]


class UsageCounter(BaseModel):
    current: int
    limit: int


class PrimaryUsage(BaseModel):
    provider: str
    requests_per_minute: UsageCounter
    tokens_per_minute: UsageCounter
    tokens_per_day: UsageCounter


class SecondaryUsage(BaseModel):
    provider: str
    tracked: bool = False


class UsageSnapshotResponse(BaseModel):
    primary: PrimaryUsage
    secondary: SecondaryUsage
    cooldown_active: bool
    cooldown_remaining_ms: int
