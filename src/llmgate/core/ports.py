from __future__ import annotations
from typing import Any, Optional, Protocol

from llmgate.core.schema import (
    ProviderInfo,
    ProviderRequest,
    ProviderResponse,
    UnifiedRequest,
    UnifiedResponse,
)
from llmgate.models.deployment import Deployment
from llmgate.streaming.channel import ChunkChannel


class Provider(Protocol):
    """
    Interface every backend adapter implements. The core only talks to adapters through this.
    """

    def translate_request(self, req: UnifiedRequest, deployment: Deployment) -> ProviderRequest:
        """Raises ValidationError if the deployment or request cannot be translated."""
        ...

    async def execute(self, req: ProviderRequest) -> ProviderResponse:
        """
        Raises TransportError / EncodingError. A non-2xx status is returned, not raised.
        """
        ...

    def translate_response(self, resp: ProviderResponse, deployment: Deployment) -> UnifiedResponse:
        ...

    async def stream(self, req: ProviderRequest, output: ChunkChannel) -> None:
        """
        Run as its own task. Owns 'output' and always closes it.
        Raises only for a transport fault before the first byte.
        """
        ...

    def validate_config(self, deployment: Deployment) -> None:
        ...

    async def health_check(self, deployment: Deployment) -> None:
        ...

    def get_info(self) -> ProviderInfo:
        ...


class AuditSink(Protocol):
    """Write-only interaction log. record() must never block for long or raise."""

    def record(
        self,
        conversation_id: str,
        model_id: str,
        deployment_id: str,
        provider_name: str,
        input: Any,
        output: str,
        input_tokens: int,
        output_tokens: int,
        error: Optional[BaseException] = None,
    ) -> None:
        ...

