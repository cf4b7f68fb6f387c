# src/llmgate/providers/direct.py
from __future__ import annotations
import logging
from typing import Any, Dict
from urllib.parse import urlsplit

from llmgate.core.errors import ConfigError
from llmgate.core.schema import ProviderInfo
from llmgate.models.deployment import Deployment, ProviderKind
from llmgate.providers.base import OpenAICompatibleAdapter, require
from llmgate.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


def is_complete_endpoint(url: str) -> bool:
    """
    True for 'https://api.example.com/v1/chat/completions'.
    False for scheme-only ('https://') or pathless ('https://api.example.com') URLs.
    """
    try:
        parts = urlsplit(url)
        parts.port  # raises on a malformed port
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc and parts.path)


@ProviderRegistry.register(ProviderKind.DIRECT)
class DirectAdapter(OpenAICompatibleAdapter):
    """
    Direct OpenAI-compatible endpoint:
    - base_url is already the complete endpoint, used verbatim
    - provider_model_id goes on the wire unchanged
    - auth is optional so unauthenticated local servers work
    """

    framing = "sse"
    health_probe_max_tokens = 10

    def endpoint_url(self, deployment: Deployment) -> str:
        return deployment.endpoint.base_url

    def validate_config(self, deployment: Deployment) -> None:
        base_url = deployment.endpoint.base_url
        require(deployment, "endpoint.base_url", base_url)
        if not is_complete_endpoint(base_url):
            raise ConfigError(
                "endpoint.base_url",
                f"deployment '{deployment.id}': direct mode requires a complete endpoint URL "
                f"(e.g. https://api.openai.com/v1/chat/completions), got '{base_url}'",
            )
        require(deployment, "provider_model_id", deployment.provider_model_id)
        auth = deployment.endpoint.auth
        if auth.wants_bearer and not auth.api_key:
            logger.warning("Deployment '%s': API key is empty (OK for local models)", deployment.id)

    def response_flags(self) -> Dict[str, Any]:
        return {"baseline_mode": True}

    def get_info(self) -> ProviderInfo:
        return ProviderInfo(
            name="Baseline OpenAI Compatibility",
            version="1.0",
            supports_stream=True,
            requires_auth=False,
            max_request_size=4 * 1024 * 1024,
            rate_limits={"requests_per_minute": 100, "tokens_per_minute": 100_000},
        )


@ProviderRegistry.register(ProviderKind.LOCAL)
class LocalAdapter(DirectAdapter):
    """Direct endpoint whose streamed body is raw line-delimited JSON (no SSE, no sentinel)."""

    framing = "json"

    def response_flags(self) -> Dict[str, Any]:
        return {"baseline_mode": True, "framing": "json"}

    def get_info(self) -> ProviderInfo:
        return ProviderInfo(
            name="Local Line-JSON Backend",
            version="1.0",
            supports_stream=True,
            requires_auth=False,
            max_request_size=4 * 1024 * 1024,
            rate_limits={"requests_per_minute": 100, "tokens_per_minute": 100_000},
        )
