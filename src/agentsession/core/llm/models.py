"""Model catalog.

Loads pricing and alias definitions from the packaged models.yaml.
"""

from __future__ import annotations

import importlib.resources
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

import yaml

DEFAULT_CONTEXT_LENGTH = 200000


@dataclass
class ModelSpec:
    """Pricing and limits for a single model."""

    id: str
    name: str
    context_length: int = DEFAULT_CONTEXT_LENGTH
    input_cost_per_1k: float = 0.0
    output_cost_per_1k: float = 0.0
    aliases: list[str] = field(default_factory=list)


@lru_cache(maxsize=1)
def _load_models_yaml() -> dict[str, Any]:
    """Load models.yaml from package resources."""
    files = importlib.resources.files("agentsession.core.llm")
    yaml_path = files.joinpath("models.yaml")
    with importlib.resources.as_file(yaml_path) as path:
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f) or {}


@lru_cache(maxsize=1)
def model_catalog() -> dict[str, ModelSpec]:
    """Map every model id and alias to its spec."""
    catalog: dict[str, ModelSpec] = {}
    for m in _load_models_yaml().get("models", []):
        spec = ModelSpec(
            id=m["id"],
            name=m.get("name", m["id"]),
            context_length=m.get("context_length", DEFAULT_CONTEXT_LENGTH),
            input_cost_per_1k=float(m.get("input_cost_per_1k", 0.0)),
            output_cost_per_1k=float(m.get("output_cost_per_1k", 0.0)),
            aliases=list(m.get("aliases", [])),
        )
        catalog[spec.id] = spec
        for alias in spec.aliases:
            catalog[alias] = spec
    return catalog


def resolve_model(model: str) -> ModelSpec:
    """Look up a model by id or alias.

    Provider-prefixed ids ("anthropic/claude-...") fall back to the bare id.

    Raises:
        ValueError: If the catalog does not list the model.
    """
    catalog = model_catalog()
    if model in catalog:
        return catalog[model]
    bare = model.split("/", 1)[-1]
    if bare in catalog:
        return catalog[bare]
    raise ValueError(f"Unknown model: {model}")
