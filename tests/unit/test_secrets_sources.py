# tests/unit/test_secrets_sources.py

from __future__ import annotations
import pytest

from llmgate.secrets.sources import SecretsResolver, build_secret_sources


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("ONE_API_KEY", "GW_MAIN_API_KEY", "OPENAI_DIRECT_KEY"):
        monkeypatch.delenv(name, raising=False)


def test_mapping_names_the_env_var(monkeypatch):
    monkeypatch.setenv("OPENAI_DIRECT_KEY", "sk-env")
    r = SecretsResolver(method="env", mapping={"direct": {"api_key": "OPENAI_DIRECT_KEY"}})
    assert r.secret("direct") == "sk-env"


def test_derived_name_from_deployment_id(monkeypatch):
    monkeypatch.setenv("GW_MAIN_API_KEY", " sk-derived \n")
    assert SecretsResolver(method=["env"]).secret("gw-main") == "sk-derived"


def test_falls_back_to_shared_gateway_key(monkeypatch):
    monkeypatch.setenv("ONE_API_KEY", "sk-shared")
    assert SecretsResolver("env").secret("gw-main") == "sk-shared"


def test_nothing_found():
    assert SecretsResolver("env").secret("gw-main") is None


def test_unknown_method_raises():
    with pytest.raises(ValueError):
        build_secret_sources("nope")


def test_keyring_then_env(monkeypatch):
    monkeypatch.setenv("GW_MAIN_API_KEY", "sk-from-env")

    class FakeKeyring:
        def get_password(self, service, account):
            assert service == "llmgate"
            return "sk-from-keyring" if account == "gw-main" else None

    import llmgate.secrets.sources as src
    monkeypatch.setattr(src, "_keyring", FakeKeyring(), raising=True)

    r = SecretsResolver(method=["keyring", "env"])
    assert r.secret("gw-main") == "sk-from-keyring"

    class Miss:
        def get_password(self, *_):
            return None
    monkeypatch.setattr(src, "_keyring", Miss(), raising=True)
    assert SecretsResolver(method=["keyring", "env"]).secret("gw-main") == "sk-from-env"


def test_keyring_unavailable(monkeypatch):
    import llmgate.secrets.sources as src
    monkeypatch.setattr(src, "_keyring", None, raising=True)
    assert SecretsResolver("keyring").secret("gw-main") is None
