from __future__ import annotations
import json
import logging
import threading
import datetime as dt
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class NullAuditSink:
    """Audit disabled: accepts and drops every record."""

    def record(self, *args, **kwargs) -> None:
        return None

    def open(self) -> "NullAuditSink":
        return self

    def close(self) -> None:
        pass


class JsonlAuditSink:
    """
    Append-only JSONL log of LLM interactions, one record per line at <path>.
    - Explicit lifecycle: open() at startup, close() at shutdown (or use as a context manager)
    - Writes are serialised by a lock; callers on many tasks/threads may share one sink
    - record() never raises: a failing write is logged and dropped
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.Lock()
        self._fh = None

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._fh is not None

    def open(self) -> "JsonlAuditSink":
        with self._lock:
            if self._fh is None:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._fh = self._path.open("a", encoding="utf-8")
                logger.info("LLM audit log opened at %s", self._path)
        return self

    def close(self) -> None:
        with self._lock:
            if self._fh is not None:
                self._fh.close()
                self._fh = None
                logger.info("LLM audit log closed")

    def __enter__(self) -> "JsonlAuditSink":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

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
        rec = {
            "ts": dt.datetime.now(dt.timezone.utc).isoformat(),
            "conversation_id": conversation_id,
            "model": model_id,
            "deployment": deployment_id,
            "provider": provider_name,
            "input": input,
            "output": output,
            "input_tokens": int(input_tokens),
            "output_tokens": int(output_tokens),
            "error": str(error) if error is not None else "",
        }
        try:
            line = json.dumps(rec, ensure_ascii=False, default=str)
        except (TypeError, ValueError) as e:
            logger.warning("Audit record for %s not serialisable: %s", conversation_id, e)
            return
        with self._lock:
            if self._fh is None:
                logger.debug("Audit sink not open; dropping record for %s", conversation_id)
                return
            try:
                self._fh.write(line + "\n")
                self._fh.flush()
            except OSError as e:
                logger.warning("Failed to write audit record for %s: %s", conversation_id, e)

    def read_conversation(self, conversation_id: str) -> List[Dict[str, Any]]:
        """All records of one conversation, oldest first."""
        if not self._path.exists():
            return []
        entries: List[Dict[str, Any]] = []
        with self._path.open("r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    obj = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if obj.get("conversation_id") == conversation_id:
                    entries.append(obj)
        return entries
