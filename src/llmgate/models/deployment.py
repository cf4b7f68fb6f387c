from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

DEFAULT_TIMEOUT = 30.0


class ProviderKind(str, Enum):
    GATEWAY = "oneapi"    # host root + fixed path, "provider:model" ids
    DIRECT = "openai"     # base URL is the complete endpoint
    LOCAL = "local"       # direct endpoint streaming raw line-delimited JSON


class AuthType(str, Enum):
    NONE = "none"
    API_KEY = "api_key"


@dataclass(frozen=True)
class AuthConfig:
    type: AuthType = AuthType.NONE
    api_key: str = field(default="", repr=False)

    @property
    def wants_bearer(self) -> bool:
        return self.type is AuthType.API_KEY


@dataclass(frozen=True)
class Endpoint:
    base_url: str
    auth: AuthConfig = field(default_factory=AuthConfig)
    custom_headers: Mapping[str, str] = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self):
        # Deployments are shared across concurrent calls; freeze the header map too.
        object.__setattr__(self, "custom_headers", MappingProxyType(dict(self.custom_headers or {})))


@dataclass(frozen=True)
class Deployment:
    """A network-addressable instance of a model behind one adapter kind. Read-only."""
    id: str
    provider: ProviderKind
    provider_model_id: str
    endpoint: Endpoint
    model_id: str = ""
    available: bool = True
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags or {})))


class DeploymentRegistry:
    """Read-mostly lookup of deployments by id / model."""

    def __init__(self, deployments: Optional[List[Deployment]] = None):
        self._deployments: Dict[str, Deployment] = {}
        for d in deployments or []:
            self.register(d)

    def register(self, deployment: Deployment) -> None:
        self._deployments[deployment.id] = deployment

    def get(self, deployment_id: str) -> Optional[Deployment]:
        return self._deployments.get(deployment_id)

    def list(self) -> List[Deployment]:
        return list(self._deployments.values())

    def get_by_model(self, model_id: str) -> List[Deployment]:
        return [d for d in self._deployments.values() if d.model_id == model_id]

    def get_available(self) -> List[Deployment]:
        return [d for d in self._deployments.values() if d.available]
