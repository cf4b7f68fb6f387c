# src/llmgate/providers/base.py
from __future__ import annotations
import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from llmgate.core.errors import (
    ConfigError,
    DecodingError,
    EncodingError,
    HealthCheckError,
    StreamCancelledError,
    StreamError,
    TransportError,
    UpstreamStatusError,
    ValidationError,
)
from llmgate.core.schema import (
    Choice,
    Message,
    ProviderInfo,
    ProviderRequest,
    ProviderResponse,
    StreamChunk,
    UnifiedRequest,
    UnifiedResponse,
    Usage,
)
from llmgate.models.deployment import Deployment
from llmgate.providers.wire import WireCompletion, WireErrorBody, WireMessage, WireUsage
from llmgate.streaming.channel import ChunkChannel
from llmgate.streaming.normalizer import iter_json_chunks, iter_sse_chunks

logger = logging.getLogger(__name__)

HEALTH_CHECK_TIMEOUT = 5.0
HEALTH_CHECK_PROMPT = "Hi"
PROTECTED_HEADERS = ("content-type", "authorization")
# InvalidURL is not an HTTPError subclass
TRANSPORT_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


class OpenAICompatibleAdapter:
    """
    Shared machinery for OpenAI-compatible backends.

    Subclasses decide the per-kind policy:
    - wire_model(): model name sent on the wire
    - endpoint_url(): where the request goes
    - validate_config(): how strict to be about the deployment
    - framing: "sse" or "json" for streamed bodies
    """

    framing = "sse"
    health_probe_max_tokens = 1

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        # The client is the only state shared between calls; never mutate it per call.
        self.client = client or httpx.AsyncClient()

    @classmethod
    def create(cls, *, client: Optional[httpx.AsyncClient] = None) -> "OpenAICompatibleAdapter":
        return cls(client=client)

    async def aclose(self) -> None:
        await self.client.aclose()

    # ----- per-kind policy -----

    def wire_model(self, deployment: Deployment) -> str:
        return deployment.provider_model_id

    def endpoint_url(self, deployment: Deployment) -> str:
        raise NotImplementedError

    def validate_config(self, deployment: Deployment) -> None:
        raise NotImplementedError

    def get_info(self) -> ProviderInfo:
        raise NotImplementedError

    def response_flags(self) -> Dict[str, Any]:
        return {}

    # ----- translation -----

    def _check_translatable(self, req: UnifiedRequest, deployment: Deployment) -> None:
        if not deployment.endpoint.base_url:
            raise ValidationError(f"deployment '{deployment.id}' has no endpoint.base_url")
        if not deployment.provider_model_id:
            raise ValidationError(f"deployment '{deployment.id}' has no provider_model_id")
        if not req.messages:
            raise ValidationError("request has no messages")
        for i, m in enumerate(req.messages):
            if not m.role:
                raise ValidationError(f"message {i} has no role")

    def build_body(self, req: UnifiedRequest, deployment: Deployment) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.wire_model(deployment),
            "messages": [m.to_wire() for m in req.messages],
            "stream": req.stream,
        }
        # Unset (zero / empty) knobs are omitted, never sent as explicit defaults
        if req.temperature > 0:
            body["temperature"] = req.temperature
        if req.max_tokens > 0:
            body["max_tokens"] = req.max_tokens
        if req.top_p > 0:
            body["top_p"] = req.top_p
        if req.stop:
            body["stop"] = list(req.stop)
        if req.functions:
            body["functions"] = [f.to_wire() for f in req.functions]
        if req.response_format is not None:
            body["response_format"] = {"type": req.response_format.type}
        if req.user:
            body["user"] = req.user
        return body

    def build_headers(self, deployment: Deployment) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        auth = deployment.endpoint.auth
        if auth.wants_bearer and auth.api_key:
            headers["Authorization"] = f"Bearer {auth.api_key}"
        for k, v in deployment.endpoint.custom_headers.items():
            if k.lower() in PROTECTED_HEADERS:
                continue
            headers[k] = v
        return headers

    def translate_request(self, req: UnifiedRequest, deployment: Deployment) -> ProviderRequest:
        self._check_translatable(req, deployment)
        return ProviderRequest(
            url=self.endpoint_url(deployment),
            method="POST",
            headers=self.build_headers(deployment),
            body=self.build_body(req, deployment),
            timeout=deployment.endpoint.timeout,
        )

    def translate_response(self, resp: ProviderResponse, deployment: Deployment) -> UnifiedResponse:
        if not resp.ok:
            raise UpstreamStatusError(resp.status_code, _error_detail(resp.body))
        try:
            wire = WireCompletion.model_validate_json(resp.body)
        except PydanticValidationError as e:
            raise DecodingError(f"unexpected completion body from '{deployment.id}': {e}") from e

        out = UnifiedResponse(
            id=wire.id,
            created=wire.created,
            model=wire.model,
            object=wire.object,
            choices=[
                Choice(
                    index=c.index,
                    message=_message(c.message),
                    finish_reason=c.finish_reason or "",
                    delta=_message(c.delta) if c.delta is not None else None,
                )
                for c in wire.choices
            ],
            usage=_usage(wire.usage),
            metadata=dict(wire.metadata or {}),
        )
        # Append, never overwrite keys already present
        out.metadata.setdefault("deployment_id", deployment.id)
        out.metadata.setdefault("provider", deployment.provider.value)
        out.metadata.setdefault("provider_model", deployment.provider_model_id)
        for k, v in self.response_flags().items():
            out.metadata.setdefault(k, v)
        return out

    # ----- transport -----

    def _encode(self, body: Any) -> bytes:
        try:
            return json.dumps(body, ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise EncodingError(f"failed to marshal request body: {e}") from e

    async def execute(self, req: ProviderRequest) -> ProviderResponse:
        content = self._encode(req.body)
        try:
            r = await self.client.request(
                req.method, req.url, content=content, headers=req.headers, timeout=req.timeout
            )
        except TRANSPORT_ERRORS as e:
            raise TransportError(f"request to {req.url} failed: {e}") from e
        return ProviderResponse(status_code=r.status_code, headers=dict(r.headers), body=r.content)

    # ----- streaming -----

    def normalize(self, response: httpx.Response) -> AsyncIterator[StreamChunk]:
        if self.framing == "json":
            return iter_json_chunks(response.aiter_text())
        return iter_sse_chunks(response.aiter_lines())

    async def stream(self, req: ProviderRequest, output: ChunkChannel) -> None:
        """
        Run as a dedicated task: asyncio.create_task(adapter.stream(req, channel)).
        Cancel the task to cancel the stream.
        Only a transport fault before the first byte is raised; every other
        failure arrives as the terminal Error chunk.
        """
        response = None
        try:
            body = dict(req.body) if isinstance(req.body, dict) else req.body
            if isinstance(body, dict):
                body["stream"] = True
            content = self._encode(body)
            http_req = self.client.build_request(
                req.method, req.url, content=content, headers=req.headers, timeout=req.timeout
            )
            response = await self.client.send(http_req, stream=True)
        except EncodingError as e:
            output.send_final(StreamChunk.failed(e))
            return
        except TRANSPORT_ERRORS as e:
            err = TransportError(f"stream to {req.url} failed: {e}")
            logger.info("Stream to %s failed before first byte: %s", req.url, e)
            output.send_final(StreamChunk.failed(err))
            raise err from e
        except asyncio.CancelledError:
            output.send_final(StreamChunk.failed(StreamCancelledError("stream cancelled before first byte")))
            raise
        finally:
            if response is None and not output.closed:
                output.send_final(StreamChunk.failed(StreamError("stream could not be started")))

        await self._pump(response, output)

    async def _pump(self, response: httpx.Response, output: ChunkChannel) -> None:
        try:
            if not response.is_success:
                await response.aread()
                logger.info("Stream from %s answered %d", response.request.url, response.status_code)
                output.send_final(
                    StreamChunk.failed(UpstreamStatusError(response.status_code, _error_detail(response.content)))
                )
                return
            async for chunk in self.normalize(response):
                if chunk.is_terminal:
                    output.send_final(chunk)
                    return
                await output.send(chunk)
        except asyncio.CancelledError:
            if not output.closed:
                output.send_final(StreamChunk.failed(StreamCancelledError("stream cancelled by caller")))
            raise
        finally:
            if not output.closed:
                output.close()
            await response.aclose()

    # ----- health -----

    async def health_check(self, deployment: Deployment) -> None:
        probe = UnifiedRequest(
            model=deployment.provider_model_id,
            messages=[Message(role="user", content=HEALTH_CHECK_PROMPT)],
            max_tokens=self.health_probe_max_tokens,
            temperature=0,
        )
        try:
            preq = self.translate_request(probe, deployment)
        except ValidationError as e:
            raise HealthCheckError(deployment.id, f"translation failed: {e}") from e

        try:
            async with asyncio.timeout(HEALTH_CHECK_TIMEOUT):
                resp = await self.execute(preq)
        except TimeoutError as e:
            raise HealthCheckError(deployment.id, f"no answer within {HEALTH_CHECK_TIMEOUT:g}s") from e
        except (TransportError, EncodingError) as e:
            raise HealthCheckError(deployment.id, f"request failed: {e}") from e

        if resp.status_code != 200:
            raise HealthCheckError(
                deployment.id, f"returned status {resp.status_code}", status_code=resp.status_code
            )


def require(deployment: Deployment, field: str, value: str) -> None:
    if not value:
        raise ConfigError(field, f"deployment '{deployment.id}': {field} is required")


def _message(m: WireMessage) -> Message:
    return Message(role=m.role, content=m.content or "", name=m.name or "")


def _usage(u: Optional[WireUsage]) -> Optional[Usage]:
    if u is None:
        return None
    prompt = u.prompt_tokens or 0
    completion = u.completion_tokens or 0
    if u.prompt_tokens is not None and u.completion_tokens is not None:
        total = prompt + completion
    else:
        total = u.total_tokens or 0
    return Usage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=total)


def _error_detail(body: bytes) -> str:
    try:
        err = WireErrorBody.model_validate_json(body).error
    except PydanticValidationError:
        return body[:200].decode("utf-8", errors="replace").strip()
    if isinstance(err, dict):
        return str(err.get("message") or err)
    return str(err) if err else ""
