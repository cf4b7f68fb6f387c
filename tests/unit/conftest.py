# tests/unit/conftest.py

from __future__ import annotations
import sys
from pathlib import Path
from typing import Callable, Dict, Optional

import httpx
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from llmgate.models.deployment import AuthConfig, AuthType, Deployment, Endpoint, ProviderKind  # noqa: E402


def make_deployment(
    kind: ProviderKind = ProviderKind.GATEWAY,
    *,
    dep_id: str = "dep-1",
    provider_model_id: str = "openai:gpt-4",
    base_url: str = "http://oneapi.local:3000",
    api_key: str = "sk-test",
    auth_type: AuthType = AuthType.API_KEY,
    custom_headers: Optional[Dict[str, str]] = None,
    timeout: float = 30.0,
) -> Deployment:
    return Deployment(
        id=dep_id,
        model_id="gpt-4",
        provider=kind,
        provider_model_id=provider_model_id,
        endpoint=Endpoint(
            base_url=base_url,
            auth=AuthConfig(type=auth_type, api_key=api_key),
            custom_headers=custom_headers or {},
            timeout=timeout,
        ),
    )


def mock_client(handler: Callable) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by 'handler' (sync or async)."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def sse_body(*events: str, done: bool = True) -> bytes:
    lines = [f"data: {e}\n\n" for e in events]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


@pytest.fixture
def deployment_factory():
    return make_deployment
