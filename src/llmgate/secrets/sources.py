# src/llmgate/secrets/sources.py

from __future__ import annotations
from typing import Protocol, Optional, Dict, Iterable, List, Union
import os

try:
    import keyring as _keyring
except ImportError:
    _keyring = None  # keyring backend unavailable on this system

KEYRING_SERVICE = "llmgate"
FALLBACK_ENV = "ONE_API_KEY"


class SecretSource(Protocol):
    def get(self, name: str) -> Optional[str]: ...


def _env_name(name: str) -> str:
    return "".join(ch if ch.isalnum() else "_" for ch in name).upper()


class EnvSource:
    def get(self, name: str) -> Optional[str]:
        # 1) exact env var name, 2) <NAME>_API_KEY derived from a deployment id
        for key in (name, f"{_env_name(name)}_API_KEY"):
            val = os.getenv(key)
            if val:
                return val.strip()
        return None


class SystemKeyringSource:
    """Looks up service 'llmgate', account <name>."""

    def get(self, name: str) -> Optional[str]:
        if _keyring is None:
            return None
        try:
            val = _keyring.get_password(KEYRING_SERVICE, name)
        except _keyring.errors.KeyringError:
            return None
        return val.strip() if val else None


_ALLOWED_METHODS = {"env", "keyring"}


def _normalise_methods(method: Union[str, Iterable[str]]) -> List[str]:
    methods = [method] if isinstance(method, str) else list(method)
    norm = []
    for m in methods:
        key = str(m).strip().lower()
        if key not in _ALLOWED_METHODS:
            raise ValueError(f"Unknown secrets method '{m}'. Allowed: {sorted(_ALLOWED_METHODS)}")
        if key not in norm:
            norm.append(key)
    return norm


def build_secret_sources(method: Union[str, Iterable[str]]) -> List[SecretSource]:
    sources: List[SecretSource] = []
    for name in _normalise_methods(method):
        if name == "env":
            sources.append(EnvSource())
        elif name == "keyring":
            sources.append(SystemKeyringSource())
    return sources


class SecretsResolver:
    """
    Resolve bearer keys per deployment using one or more methods in order.
    mapping: per-deployment map of secret names -> env var / keyring account
      e.g. { "gpt4-oneapi": { "api_key": "ONE_API_KEY_OPENAI" } }
    Unmapped deployments try <DEPLOYMENT_ID>_API_KEY, then ONE_API_KEY.
    """
    def __init__(self, method: Union[str, Iterable[str]], mapping: Optional[Dict[str, Dict[str, str]]] = None):
        self._sources = build_secret_sources(method)
        self._map = mapping or {}

    def secret(self, deployment_id: str, name: str = "api_key") -> Optional[str]:
        mapped = self._map.get(deployment_id, {}).get(name)
        candidates = [mapped] if mapped else [deployment_id, FALLBACK_ENV]
        for candidate in candidates:
            for src in self._sources:
                val = src.get(candidate)
                if val:
                    return val
        return None
