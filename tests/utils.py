"""Shared test helpers for agentsession tests."""

from __future__ import annotations

from typing import Any

from agentsession.agents import AgentCommand, AgentDefinition, AgentInfo, AgentRegistry, Persona
from agentsession.core.llm import ScriptedProvider
from agentsession.session import SessionServices


def make_agent(
    agent_id: str = "pm",
    name: str = "John",
    role: str = "Product Manager",
    commands: list[str] | None = None,
) -> AgentDefinition:
    """Build an in-memory agent definition.

    Args:
        agent_id: Agent identifier
        name: Display name
        role: Persona role
        commands: Command names; defaults to help and create-doc

    Returns:
        AgentDefinition with a persona and commands
    """
    return AgentDefinition(
        agent=AgentInfo(id=agent_id, name=name, title=role),
        persona=Persona(role=role, style="Concise", core_principles=["Be precise"]),
        commands=[AgentCommand(c, f"Run {c}") for c in (commands or ["help", "create-doc"])],
    )


def make_registry() -> AgentRegistry:
    """Registry with the pm, analyst and architect agents."""
    registry = AgentRegistry()
    registry.register(make_agent("pm", "John", "Product Manager"))
    registry.register(make_agent("analyst", "Mary", "Business Analyst"))
    registry.register(make_agent("architect", "Winston", "System Architect"))
    return registry


def make_services(
    provider: ScriptedProvider | None = None,
    *,
    agents: AgentRegistry | None = None,
    **kwargs: Any,
) -> SessionServices:
    """SessionServices wired to a scripted provider and a registry."""
    if agents is None:
        agents = make_registry()
    return SessionServices(provider=provider or ScriptedProvider(), agents=agents, **kwargs)


AGENT_MARKDOWN = """---
agent:
  id: pm
  name: John
  title: Product Manager
  icon: 📋
  whenToUse: Use for PRDs and product strategy
persona:
  role: Investigative Product Strategist
  style: Analytical, inquisitive, data-driven
  identity: Product Manager specialized in document creation
  focus: Creating PRDs and other product documentation
  core_principles:
    - Deeply understand "Why"
    - Champion the user
commands:
  - help: Show numbered list of commands
  - create-prd: Create a product requirements document
dependencies:
  tasks:
    - create-doc.md
  templates:
    - prd-tmpl.yaml
---

# pm

Product manager agent.
"""
