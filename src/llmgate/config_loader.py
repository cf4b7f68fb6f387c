# src/llmgate/config_loader.py

from __future__ import annotations
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
import yaml

from llmgate.core.errors import ConfigError
from llmgate.models.deployment import (
    DEFAULT_TIMEOUT,
    AuthConfig,
    AuthType,
    Deployment,
    DeploymentRegistry,
    Endpoint,
    ProviderKind,
)
from llmgate.models.model import Model, ModelCapabilities, ModelRegistry
from llmgate.secrets.sources import SecretsResolver

_ENV_REF = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def expand_env(value: str) -> str:
    """Expand ${VAR} and ${VAR:-default}."""
    def sub(m: "re.Match[str]") -> str:
        val = os.getenv(m.group(1), "")
        if not val and m.group(2) is not None:
            return m.group(2)
        return val
    return _ENV_REF.sub(sub, value)


def _require(d: Dict[str, Any], path: Union[str, Tuple[str, ...]], typ: type) -> Any:
    keys = path.split(".") if isinstance(path, str) else path
    dotted = ".".join(str(k) for k in keys)
    cur: Any = d
    for k in keys:
        if not isinstance(cur, dict) or k not in cur:
            raise ConfigError(dotted, f"Missing config key: {dotted}")
        cur = cur[k]
    if typ is str and not isinstance(cur, str):
        raise ConfigError(dotted, f"'{dotted}' must be a string")
    if typ is dict and not isinstance(cur, dict):
        raise ConfigError(dotted, f"'{dotted}' must be a mapping")
    return cur


def _mapping(raw: Dict[str, Any], key: str, where: str) -> Dict[str, Any]:
    val = raw.get(key) or {}
    if not isinstance(val, dict):
        raise ConfigError(f"{where}.{key}", f"'{where}.{key}' must be a mapping")
    return val


def load_config(path: Path) -> Dict[str, Any]:
    if not path or not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text())
    if not isinstance(raw, dict) or not raw:
        raise ConfigError(str(path), f"Config is empty or invalid YAML: {path}")

    deployments = _require(raw, "deployments", dict)
    for dep_id in deployments:
        where = f"deployments.{dep_id}"
        _require(raw, ("deployments", dep_id, "provider"), str)
        _require(raw, ("deployments", dep_id, "provider_model_id"), str)
        _require(raw, ("deployments", dep_id, "endpoint", "base_url"), str)

        # Normalise enumerations
        provider = str(deployments[dep_id]["provider"]).lower()
        known = sorted(k.value for k in ProviderKind)
        if provider not in known:
            raise ConfigError(f"{where}.provider", f"Unknown {where}.provider '{provider}' (expected one of {known}).")
        deployments[dep_id]["provider"] = provider

        endpoint = deployments[dep_id]["endpoint"]
        auth = _mapping(endpoint, "auth", f"{where}.endpoint")
        auth_type = str(auth.get("type", "none")).lower()
        if auth_type not in (AuthType.NONE.value, AuthType.API_KEY.value):
            raise ConfigError(f"{where}.endpoint.auth.type", f"Unknown auth type '{auth_type}' (expected 'none' or 'api_key').")
        endpoint["auth"] = {**auth, "type": auth_type}
        endpoint["base_url"] = expand_env(endpoint["base_url"])

        timeout = endpoint.get("timeout", DEFAULT_TIMEOUT)
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError(f"{where}.endpoint.timeout", f"'{where}.endpoint.timeout' must be a positive number of seconds")

    _mapping(raw, "models", "config")
    _mapping(raw, "audit", "config")
    _mapping(raw, "secrets", "config")
    return raw


def build_models(cfg: Dict[str, Any]) -> ModelRegistry:
    registry = ModelRegistry()
    for model_id, m in (cfg.get("models") or {}).items():
        m = m or {}
        try:
            caps = ModelCapabilities(**(m.get("capabilities") or {}))
        except TypeError as e:
            raise ConfigError(f"models.{model_id}.capabilities", f"Invalid capabilities for model '{model_id}': {e}") from e
        registry.register(Model(
            id=model_id,
            name=str(m.get("name", model_id)),
            family=str(m.get("family", "")),
            version=str(m.get("version", "")),
            capabilities=caps,
            deployments=tuple(m.get("deployments") or ()),
        ))
    return registry


def build_deployments(cfg: Dict[str, Any], secrets: Optional[SecretsResolver] = None) -> DeploymentRegistry:
    """Turn the validated 'deployments' section into immutable Deployment values."""
    out: List[Deployment] = []
    for dep_id, d in cfg["deployments"].items():
        ep = d["endpoint"]
        auth_type = AuthType(ep["auth"]["type"])
        api_key = ""
        if auth_type is AuthType.API_KEY and secrets is not None:
            api_key = secrets.secret(dep_id) or ""
        out.append(Deployment(
            id=dep_id,
            model_id=str(d.get("model_id", "")),
            provider=ProviderKind(d["provider"]),
            provider_model_id=d["provider_model_id"],
            endpoint=Endpoint(
                base_url=ep["base_url"],
                auth=AuthConfig(type=auth_type, api_key=api_key),
                custom_headers={str(k): str(v) for k, v in (ep.get("custom_headers") or {}).items()},
                timeout=float(ep.get("timeout", DEFAULT_TIMEOUT)),
            ),
            available=bool(d.get("available", True)),
            tags={str(k): str(v) for k, v in (d.get("tags") or {}).items()},
        ))
    return DeploymentRegistry(out)
