"""Proxy error taxonomy.

Every request-time error is a ProxyError carrying the HTTP status the API
layer should answer with. ConfigurationError is startup-only.
"""

from typing import Any


class ProxyError(Exception):
    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_body(self) -> Any:
        return {"error": self.message}


class ValidationError(ProxyError):
    """Malformed or unsupported request (missing/unknown model). Never retried."""

    status_code = 400


class RateLimitError(ProxyError):
    """The primary provider signaled exhaustion; the cooldown gate was tripped."""

    status_code = 429

    def __init__(self, provider: str, message: str = "Rate limit exceeded"):
        super().__init__(message)
        self.provider = provider


class TransportError(ProxyError):
    """Network, timeout or non-200 failure unrelated to rate limiting.

    `status_code` and `body` are the provider's, forwarded verbatim when the
    provider answered at all.
    """

    def __init__(self, provider: str, message: str, status_code: int = 0, body: Any = None, timed_out: bool = False):
        super().__init__(message)
        self.provider = provider
        self.upstream_status = status_code
        self.body = body
        self.timed_out = timed_out
        if status_code:
            self.status_code = status_code
        elif timed_out:
            self.status_code = 504
        else:
            self.status_code = 500

    def to_body(self) -> Any:
        if self.upstream_status and self.body is not None:
            return self.body
        if self.timed_out:
            return {"error": f"Upstream timeout from {self.provider}"}
        return {"error": "Internal server error"}


class ConfigurationError(Exception):
    """Invalid or incomplete settings; raised at startup, never per request."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Configuration errors:\n  - " + "\n  - ".join(errors))
