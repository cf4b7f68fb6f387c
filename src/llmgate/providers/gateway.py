# src/llmgate/providers/gateway.py
from __future__ import annotations
from urllib.parse import urlsplit

from llmgate.core.errors import ConfigError
from llmgate.core.schema import ProviderInfo
from llmgate.models.deployment import Deployment, ProviderKind
from llmgate.providers.base import OpenAICompatibleAdapter, require
from llmgate.providers.registry import ProviderRegistry

CHAT_COMPLETIONS_PATH = "/v1/chat/completions"


def strip_provider_prefix(provider_model_id: str) -> str:
    """'openai:gpt-4' -> 'gpt-4'. Ids without a colon pass through."""
    _, sep, rest = provider_model_id.partition(":")
    return rest if sep else provider_model_id


def is_host_url(url: str) -> bool:
    """'http://oneapi.local:3000' -> True. Needs a scheme and a host; a path is optional."""
    try:
        parts = urlsplit(url)
        parts.port  # raises on a malformed port
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


@ProviderRegistry.register(ProviderKind.GATEWAY)
class GatewayAdapter(OpenAICompatibleAdapter):
    """
    OpenAI-compatible gateway (one-api style):
    - base_url is a host root; the chat-completions path is appended
    - provider_model_id is "provider:model"; routing already encodes the provider,
      so only the model part goes on the wire
    - streams SSE with a [DONE] sentinel
    """

    framing = "sse"
    health_probe_max_tokens = 1

    def wire_model(self, deployment: Deployment) -> str:
        return strip_provider_prefix(deployment.provider_model_id)

    def endpoint_url(self, deployment: Deployment) -> str:
        return deployment.endpoint.base_url.rstrip("/") + CHAT_COMPLETIONS_PATH

    def validate_config(self, deployment: Deployment) -> None:
        # A bare host is fine here: we append the path ourselves
        require(deployment, "endpoint.base_url", deployment.endpoint.base_url)
        if not is_host_url(deployment.endpoint.base_url):
            raise ConfigError(
                "endpoint.base_url",
                f"deployment '{deployment.id}': gateway base_url must be an absolute URL "
                f"(e.g. http://oneapi.local:3000), got '{deployment.endpoint.base_url}'",
            )
        require(deployment, "provider_model_id", deployment.provider_model_id)
        auth = deployment.endpoint.auth
        if auth.wants_bearer and not auth.api_key:
            raise ConfigError(
                "endpoint.auth.api_key",
                f"deployment '{deployment.id}': API key is required but not provided",
            )

    def get_info(self) -> ProviderInfo:
        return ProviderInfo(
            name="OneAPI Gateway",
            version="1.0",
            supports_stream=True,
            requires_auth=True,
            max_request_size=4 * 1024 * 1024,
            rate_limits={"requests_per_minute": 1000, "tokens_per_minute": 1_000_000},
        )
