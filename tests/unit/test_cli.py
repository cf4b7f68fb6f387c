# tests/unit/test_cli.py

from __future__ import annotations
import json
from pathlib import Path
from textwrap import dedent

import httpx
from typer.testing import CliRunner

import llmgate.cli as cli
from conftest import mock_client, sse_body
from llmgate.bootstrap import build_gateway
from llmgate.cli import app

CONFIG = """
deployments:
  up:
    provider: openai
    provider_model_id: gpt-4o
    endpoint: { base_url: "http://up.local/v1/chat/completions" }
  down:
    provider: openai
    provider_model_id: gpt-4o
    endpoint: { base_url: "http://down.local/v1/chat/completions" }
audit:
  enabled: true
  path: audit.jsonl
"""


def _config(tmp_path: Path, text: str = CONFIG) -> Path:
    cfg = tmp_path / "deployments.yaml"
    cfg.write_text(dedent(text), encoding="utf-8")
    return cfg


def _route(request: httpx.Request) -> httpx.Response:
    if request.url.host == "down.local":
        return httpx.Response(503, json={"error": {"message": "down"}})
    body = json.loads(request.content)
    if body.get("stream"):
        return httpx.Response(200, content=sse_body(json.dumps({"choices": [{"delta": {"content": "streamed"}}]})))
    return httpx.Response(200, json={
        "id": "c", "created": 0, "model": "gpt-4o",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": "hello there"}}],
    })


def _patch_transport(monkeypatch):
    monkeypatch.setattr(cli, "build_gateway", lambda path: build_gateway(path, client=mock_client(_route)))


def test_validate_lists_deployments(tmp_path: Path):
    result = CliRunner().invoke(app, ["validate", "--config", str(_config(tmp_path))])
    assert result.exit_code == 0
    assert "ok  up  (Baseline OpenAI Compatibility)" in result.output
    assert "ok  down" in result.output


def test_validate_reports_config_error(tmp_path: Path):
    cfg = _config(tmp_path, """
        deployments:
          bad:
            provider: openai
            provider_model_id: m
            endpoint: { base_url: "https://" }
    """)
    result = CliRunner().invoke(app, ["validate", "--config", str(cfg)])
    assert result.exit_code == 2


def test_health_exit_code_reflects_failures(tmp_path: Path, monkeypatch):
    _patch_transport(monkeypatch)
    result = CliRunner().invoke(app, ["health", "--config", str(_config(tmp_path))])
    assert result.exit_code == 1
    assert "UP    up" in result.output
    assert "DOWN  down" in result.output


def test_chat_prints_reply_and_audits(tmp_path: Path, monkeypatch):
    _patch_transport(monkeypatch)
    cfg = _config(tmp_path)
    result = CliRunner().invoke(app, ["chat", "up", "hi", "--config", str(cfg)])
    assert result.exit_code == 0
    assert "hello there" in result.output

    lines = (tmp_path / "audit.jsonl").read_text(encoding="utf-8").splitlines()
    assert json.loads(lines[0])["output"] == "hello there"


def test_chat_stream(tmp_path: Path, monkeypatch):
    _patch_transport(monkeypatch)
    result = CliRunner().invoke(app, ["chat", "up", "hi", "--stream", "--config", str(_config(tmp_path))])
    assert result.exit_code == 0
    assert "streamed" in result.output


def test_chat_upstream_failure_exits_1(tmp_path: Path, monkeypatch):
    _patch_transport(monkeypatch)
    result = CliRunner().invoke(app, ["chat", "down", "hi", "--config", str(_config(tmp_path))])
    assert result.exit_code == 1


def test_chat_unknown_deployment(tmp_path: Path, monkeypatch):
    _patch_transport(monkeypatch)
    result = CliRunner().invoke(app, ["chat", "nope", "hi", "--config", str(_config(tmp_path))])
    assert result.exit_code == 2
