from __future__ import annotations
import asyncio
import logging
import uuid
from typing import AsyncIterator, List, Optional

from llmgate.core.errors import ProviderError
from llmgate.core.ports import AuditSink, Provider
from llmgate.core.schema import UnifiedRequest, UnifiedResponse
from llmgate.models.deployment import Deployment
from llmgate.storage.audit import NullAuditSink
from llmgate.streaming.channel import ChunkChannel

logger = logging.getLogger(__name__)


class GatewaySession:
    """
    One deployment bound to its adapter, plus the audit sink interactions are reported to.
    - complete(): Translate -> Execute -> Translate
    - complete_stream(): Translate -> Stream, yielding text pieces as they arrive
    Errors propagate to the caller after being recorded; nothing is retried here.
    """

    def __init__(
        self,
        adapter: Provider,
        deployment: Deployment,
        audit: Optional[AuditSink] = None,
        conversation_id: Optional[str] = None,
    ):
        self.adapter = adapter
        self.deployment = deployment
        self.audit = audit or NullAuditSink()
        self.conversation_id = conversation_id or uuid.uuid4().hex

    def _record(self, req: UnifiedRequest, output: str, in_tokens: int, out_tokens: int,
                error: Optional[BaseException]) -> None:
        self.audit.record(
            self.conversation_id,
            req.model or self.deployment.model_id,
            self.deployment.id,
            self.deployment.provider.value,
            [m.to_wire() for m in req.messages],
            output,
            in_tokens,
            out_tokens,
            error,
        )

    async def complete(self, req: UnifiedRequest) -> UnifiedResponse:
        try:
            preq = self.adapter.translate_request(req, self.deployment)
            resp = await self.adapter.execute(preq)
            out = self.adapter.translate_response(resp, self.deployment)
        except ProviderError as e:
            logger.info("Completion via %s failed: %s", self.deployment.id, e)
            self._record(req, "", 0, 0, e)
            raise
        usage = out.usage
        self._record(
            req, out.content,
            usage.prompt_tokens if usage else 0,
            usage.completion_tokens if usage else 0,
            None,
        )
        return out

    async def complete_stream(self, req: UnifiedRequest) -> AsyncIterator[str]:
        preq = self.adapter.translate_request(req, self.deployment)
        channel = ChunkChannel()
        task = asyncio.create_task(self.adapter.stream(preq, channel))
        partial: List[str] = []
        error: Optional[BaseException] = None
        try:
            async for chunk in channel:
                if chunk.error is not None:
                    error = chunk.error
                    raise chunk.error
                if chunk.done:
                    break
                partial.append(chunk.data)
                yield chunk.data
        finally:
            if not task.done():
                task.cancel()
            # The task's own failure (if any) already arrived as the terminal chunk
            await asyncio.gather(task, return_exceptions=True)
            self._record(req, "".join(partial), 0, 0, error)
