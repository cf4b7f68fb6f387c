from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from dotenv import load_dotenv

from .config_loader import build_deployments, build_models, load_config
from .providers.registry import ProviderRegistry
from .secrets.sources import SecretsResolver
from .storage.audit import JsonlAuditSink, NullAuditSink

logger = logging.getLogger(__name__)


def build_gateway(
    config_path: Path,
    repo_root: Optional[Path] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """
    Composition root: load YAML, resolve secrets, bind every deployment to its adapter,
    validate it, and create the audit sink (not yet opened).
    Returns: dict with cfg, paths, models, deployments, adapters, audit.
    Raises ConfigError on the first invalid deployment.
    """
    load_dotenv()
    cfg = load_config(config_path)
    config_dir = config_path.resolve().parent
    repo_root = repo_root or config_dir

    # ----- Secrets -----
    secrets_cfg = cfg.get("secrets") or {}
    resolver = SecretsResolver(
        method=secrets_cfg.get("method", "env"),
        mapping=secrets_cfg.get("mapping", {}),
    )

    # ----- Registries -----
    models = build_models(cfg)
    deployments = build_deployments(cfg, secrets=resolver)

    # ----- Adapters: resolved once per deployment -----
    ProviderRegistry.ensure_imports()
    adapters: Dict[str, Any] = {}
    for dep in deployments.list():
        adapter = ProviderRegistry.adapter_for(dep, client=client)
        adapter.validate_config(dep)
        adapters[dep.id] = adapter
        logger.info("Bound deployment %s -> %s", dep.id, type(adapter).__name__)

    # ----- Audit -----
    audit_cfg = cfg.get("audit") or {}
    if audit_cfg.get("enabled", False):
        p = Path(audit_cfg.get("path", "llm_audit.jsonl"))
        audit_path = p if p.is_absolute() else (repo_root / p).resolve()
        audit = JsonlAuditSink(audit_path)
    else:
        audit_path = None
        audit = NullAuditSink()

    return {
        "cfg": cfg,
        "paths": {"config_dir": config_dir, "repo_root": repo_root, "audit": audit_path},
        "models": models,
        "deployments": deployments,
        "adapters": adapters,
        "audit": audit,
    }
