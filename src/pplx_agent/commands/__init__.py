"""Slash commands and the registry that dispatches them."""

from pplx_agent.commands import ai, chat, files, project, system
from pplx_agent.commands.registry import (
    CommandCategory,
    CommandDescriptor,
    CommandRegistry,
    ParsedLine,
    dispatch,
    parse_line,
    run_guarded,
)


def build_registry() -> CommandRegistry:
    """Register every built-in command, then freeze the registry."""
    registry = CommandRegistry()
    for module in (chat, files, ai, project, system):
        module.register(registry)
    registry.freeze()
    return registry


__all__ = [
    "CommandCategory",
    "CommandDescriptor",
    "CommandRegistry",
    "ParsedLine",
    "build_registry",
    "dispatch",
    "parse_line",
    "run_guarded",
]
