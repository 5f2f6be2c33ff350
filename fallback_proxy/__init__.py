"""OpenAI-compatible proxy routing between a budgeted primary and a fallback provider."""

__version__ = "1.0.0"
