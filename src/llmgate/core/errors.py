from __future__ import annotations
from typing import Optional


class ProviderError(Exception):
    """Base class for provider-level failures."""


class ProviderClientError(ProviderError):
    """
    Non-retryable: caller/config issue (bad deployment, malformed request,
    body that cannot be encoded or decoded). The fix is change input/config, not retry.
    """


class ProviderTransientError(ProviderError):
    """
    Retryable: timeouts, connection resets, DNS/TLS hiccups.
    Retry policy belongs to the caller; this layer never retries.
    """


class ConfigError(ProviderClientError):
    """A deployment (or config file) field is missing or invalid."""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Missing or invalid field: {field}")


class ValidationError(ProviderClientError):
    """Malformed UnifiedRequest, or a deployment that cannot serve it."""


class EncodingError(ProviderClientError):
    """Request body could not be serialised to JSON."""


class DecodingError(ProviderClientError):
    """Response body did not match the expected completion schema."""


class TransportError(ProviderTransientError):
    """Network, TLS or timeout failure talking to the backend."""


class UpstreamStatusError(ProviderError):
    """Backend answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = int(status_code)
        detail = f": {message}" if message else ""
        super().__init__(f"upstream returned status {self.status_code}{detail}")

    @property
    def retryable(self) -> bool:
        s = self.status_code
        return s == 429 or 500 <= s <= 599


class StreamError(ProviderError):
    """Failure after streaming began. Only ever delivered inside a terminal chunk."""


class StreamCancelledError(StreamError):
    """The streaming task was cancelled by its caller."""


class ChannelClosedError(RuntimeError):
    """Send or close on a ChunkChannel that is already closed."""


class HealthCheckError(ProviderError):
    def __init__(self, deployment_id: str, message: str, status_code: Optional[int] = None):
        self.deployment_id = deployment_id
        self.status_code = status_code
        super().__init__(f"health check failed for '{deployment_id}': {message}")
