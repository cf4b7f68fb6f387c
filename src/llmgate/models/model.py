from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass(frozen=True)
class ModelCapabilities:
    max_tokens: int = 0
    context_window: int = 0
    supports_vision: bool = False
    supports_functions: bool = False
    supports_streaming: bool = True
    supports_json: bool = False


@dataclass(frozen=True)
class Model:
    """An abstract model ("gpt-4", "llama-8b") that one or more deployments serve."""
    id: str
    name: str = ""
    family: str = ""
    version: str = ""
    capabilities: ModelCapabilities = field(default_factory=ModelCapabilities)
    deployments: tuple = ()


class ModelRegistry:
    def __init__(self, models: Optional[List[Model]] = None):
        self._models: Dict[str, Model] = {}
        for m in models or []:
            self.register(m)

    def register(self, model: Model) -> None:
        self._models[model.id] = model

    def get(self, model_id: str) -> Optional[Model]:
        return self._models.get(model_id)

    def list(self) -> List[Model]:
        return list(self._models.values())

    def get_by_family(self, family: str) -> List[Model]:
        return [m for m in self._models.values() if m.family == family]
