"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from agentsession.agents import AgentRegistry
from agentsession.core.llm import ScriptedProvider
from agentsession.session import SessionServices
from agentsession.storage import InMemoryStorageAdapter
from tests.utils import make_registry, make_services

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture
def provider() -> ScriptedProvider:
    """Scripted provider priced at 0.003 / 0.015 per 1k tokens."""
    return ScriptedProvider()


@pytest.fixture
def registry() -> AgentRegistry:
    return make_registry()


@pytest.fixture
def storage() -> InMemoryStorageAdapter:
    return InMemoryStorageAdapter()


@pytest.fixture
def services(provider: ScriptedProvider, registry: AgentRegistry) -> SessionServices:
    return make_services(provider, agents=registry)
