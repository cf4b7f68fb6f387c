# tests/unit/test_audit.py

from __future__ import annotations
import json
from pathlib import Path

from llmgate.core.errors import TransportError
from llmgate.storage.audit import JsonlAuditSink, NullAuditSink


def _record(sink, conv="c1", output="hello", error=None):
    sink.record(conv, "gpt-4", "gw-main", "oneapi", [{"role": "user", "content": "hi"}],
                output, 5, 2, error)


def test_records_are_appended_as_jsonl(tmp_path: Path):
    path = tmp_path / "audit" / "llm.jsonl"
    with JsonlAuditSink(path) as sink:
        assert sink.is_open
        _record(sink)
        _record(sink, conv="c2", output="", error=TransportError("reset"))
        _record(sink, output="again")
    assert not sink.is_open

    lines = [json.loads(x) for x in path.read_text(encoding="utf-8").splitlines()]
    assert len(lines) == 3
    assert lines[0]["deployment"] == "gw-main"
    assert lines[0]["input"] == [{"role": "user", "content": "hi"}]
    assert lines[0]["input_tokens"] == 5 and lines[0]["output_tokens"] == 2
    assert lines[0]["error"] == ""
    assert lines[1]["error"] == "reset"

    convo = sink.read_conversation("c1")
    assert [r["output"] for r in convo] == ["hello", "again"]


def test_record_when_closed_is_dropped(tmp_path: Path):
    sink = JsonlAuditSink(tmp_path / "a.jsonl")
    _record(sink)                           # never opened: no error, nothing written
    assert not (tmp_path / "a.jsonl").exists()
    assert sink.read_conversation("c1") == []


def test_close_is_idempotent(tmp_path: Path):
    sink = JsonlAuditSink(tmp_path / "a.jsonl").open()
    sink.close()
    sink.close()
    assert not sink.is_open


def test_reopen_appends(tmp_path: Path):
    path = tmp_path / "a.jsonl"
    with JsonlAuditSink(path) as sink:
        _record(sink)
    with JsonlAuditSink(path) as sink:
        _record(sink)
    assert len(sink.read_conversation("c1")) == 2


def test_null_sink_accepts_anything():
    sink = NullAuditSink().open()
    _record(sink)
    sink.close()
