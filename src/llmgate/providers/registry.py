from __future__ import annotations
from typing import Callable, Dict, Optional, Type, Union
from importlib import import_module

import httpx

from llmgate.models.deployment import Deployment, ProviderKind


class ProviderRegistry:
    _classes: Dict[ProviderKind, Type] = {}

    @classmethod
    def register(cls, kind: Union[ProviderKind, str]) -> Callable[[Type], Type]:
        key = ProviderKind(kind)
        def deco(klass: Type) -> Type:
            cls._classes[key] = klass
            return klass
        return deco

    @classmethod
    def get(cls, kind: Union[ProviderKind, str]) -> Type:
        try:
            key = ProviderKind(str(getattr(kind, "value", kind)).lower())
        except ValueError:
            raise KeyError(f"Provider '{kind}' not registered")
        if key not in cls._classes:
            raise KeyError(f"Provider '{kind}' not registered")
        return cls._classes[key]

    @classmethod
    def ensure_imports(cls) -> None:
        """
        Import built-in adapters so their @register decorators run.
        Call once at bootstrap before get().
        """
        import_module("llmgate.providers.gateway")
        import_module("llmgate.providers.direct")

    @classmethod
    def adapter_for(cls, deployment: Deployment, *, client: Optional[httpx.AsyncClient] = None):
        """Resolve the adapter for a deployment once, when it is bound."""
        return cls.get(deployment.provider).create(client=client)
