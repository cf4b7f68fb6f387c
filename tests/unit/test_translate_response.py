# tests/unit/test_translate_response.py

from __future__ import annotations
import json
import pytest

from conftest import make_deployment
from llmgate.core.errors import DecodingError, UpstreamStatusError
from llmgate.core.schema import ProviderResponse
from llmgate.models.deployment import ProviderKind
from llmgate.providers.direct import DirectAdapter, LocalAdapter
from llmgate.providers.gateway import GatewayAdapter


def _resp(payload, status=200) -> ProviderResponse:
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return ProviderResponse(status_code=status, headers={}, body=body)


COMPLETION = {
    "id": "chatcmpl-1",
    "object": "chat.completion",
    "created": 1700000000,
    "model": "gpt-4",
    "choices": [{"index": 0, "message": {"role": "assistant", "content": "Hello!"}, "finish_reason": "stop"}],
    "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
}


def test_completion_is_translated_with_metadata():
    dep = make_deployment(dep_id="gw-1")
    out = GatewayAdapter().translate_response(_resp(COMPLETION), dep)
    assert out.id == "chatcmpl-1"
    assert out.created == 1700000000
    assert out.content == "Hello!"
    assert out.choices[0].finish_reason == "stop"
    assert out.choices[0].delta is None
    assert (out.usage.prompt_tokens, out.usage.completion_tokens, out.usage.total_tokens) == (5, 2, 7)
    assert out.metadata == {"deployment_id": "gw-1", "provider": "oneapi", "provider_model": "openai:gpt-4"}


def test_direct_and_local_add_their_flags():
    dep = make_deployment(ProviderKind.DIRECT, base_url="https://x.example/v1/chat/completions")
    assert DirectAdapter().translate_response(_resp(COMPLETION), dep).metadata["baseline_mode"] is True
    local = LocalAdapter().translate_response(_resp(COMPLETION), dep).metadata
    assert local["framing"] == "json"


def test_existing_metadata_keys_are_not_overwritten():
    payload = dict(COMPLETION, metadata={"deployment_id": "caller-set", "trace": "t-1"})
    out = GatewayAdapter().translate_response(_resp(payload), make_deployment(dep_id="gw-1"))
    assert out.metadata["deployment_id"] == "caller-set"
    assert out.metadata["trace"] == "t-1"
    assert out.metadata["provider"] == "oneapi"


def test_total_tokens_recomputed_when_parts_present():
    payload = dict(COMPLETION, usage={"prompt_tokens": 10, "completion_tokens": 4, "total_tokens": 99})
    out = GatewayAdapter().translate_response(_resp(payload), make_deployment())
    assert out.usage.total_tokens == 14


def test_usage_may_be_absent():
    payload = {k: v for k, v in COMPLETION.items() if k != "usage"}
    out = GatewayAdapter().translate_response(_resp(payload), make_deployment())
    assert out.usage is None


def test_delta_and_null_content():
    payload = dict(COMPLETION, choices=[{
        "index": 0,
        "message": {"role": "assistant", "content": None},
        "delta": {"role": "assistant", "content": "par"},
        "finish_reason": None,
    }])
    out = GatewayAdapter().translate_response(_resp(payload), make_deployment())
    assert out.content == ""
    assert out.choices[0].delta.content == "par"
    assert out.choices[0].finish_reason == ""


@pytest.mark.parametrize("body", [b"not json", b"[]", json.dumps({"id": "x"}).encode()])
def test_bad_body_raises_decoding_error(body):
    with pytest.raises(DecodingError):
        GatewayAdapter().translate_response(_resp(body), make_deployment())


def test_non_2xx_surfaces_upstream_status():
    err_body = {"error": {"message": "model overloaded", "type": "server_error"}}
    with pytest.raises(UpstreamStatusError) as ei:
        GatewayAdapter().translate_response(_resp(err_body, status=503), make_deployment())
    assert ei.value.status_code == 503
    assert ei.value.retryable
    assert "model overloaded" in str(ei.value)
