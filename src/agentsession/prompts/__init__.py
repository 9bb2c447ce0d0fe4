"""System prompt text and assembly.

Static prompt fragments live as markdown files in this package.
"""

from importlib.resources import files

_PROMPTS_PKG = files("agentsession.prompts")


def load_prompt(name: str) -> str:
    """Load a prompt fragment by name (without .md extension)."""
    return _PROMPTS_PKG.joinpath(f"{name}.md").read_text(encoding="utf-8").strip()


def list_prompts() -> list[str]:
    return sorted(f.name[:-3] for f in _PROMPTS_PKG.iterdir() if f.name.endswith(".md"))


from agentsession.prompts.builder import CLOSING_LINE, SystemPromptBuilder  # noqa: E402

__all__ = ["CLOSING_LINE", "SystemPromptBuilder", "list_prompts", "load_prompt"]
