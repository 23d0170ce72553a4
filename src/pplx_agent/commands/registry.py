"""Command registry and dispatcher.

The registry is built once at startup, frozen, and then only read: by the
dispatcher, by autocomplete and by ``/help``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from rich.markup import escape

from pplx_agent.exceptions import AgentError, ParseError
from pplx_agent.ui import Colors, Icons, print_error, print_usage

if TYPE_CHECKING:
    from pplx_agent.session import SessionContext

logger = logging.getLogger(__name__)

Handler = Callable[[list[str], "SessionContext"], None]


class CommandCategory(str, Enum):
    """Command groups, in ``/help`` order."""

    CHAT = "chat"
    FILES = "files"
    AI = "ai"
    PROJECT = "project"
    SYSTEM = "system"


@dataclass
class CommandDescriptor:
    """A registered slash command."""

    name: str
    description: str
    usage: str
    handler: Handler
    category: CommandCategory = CommandCategory.SYSTEM


class CommandRegistry:
    """Ordered name -> descriptor table."""

    def __init__(self) -> None:
        self._commands: dict[str, CommandDescriptor] = {}
        self._frozen = False

    def register(self, descriptor: CommandDescriptor) -> CommandDescriptor:
        """Add a command.

        Raises:
            RuntimeError: If the registry is frozen
            ValueError: If the name is already taken
        """
        if self._frozen:
            raise RuntimeError(f"Registry is frozen; cannot register /{descriptor.name}")
        if descriptor.name in self._commands:
            raise ValueError(f"Command already registered: {descriptor.name}")
        self._commands[descriptor.name] = descriptor
        return descriptor

    def command(
        self,
        name: str,
        description: str,
        usage: str | None = None,
        category: CommandCategory = CommandCategory.SYSTEM,
        aliases: tuple[str, ...] = (),
    ) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register`; ``aliases`` share the handler."""

        def decorator(handler: Handler) -> Handler:
            for cmd_name in (name, *aliases):
                self.register(
                    CommandDescriptor(
                        name=cmd_name,
                        description=description,
                        usage=usage or f"/{cmd_name}",
                        handler=handler,
                        category=category,
                    )
                )
            return handler

        return decorator

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> CommandDescriptor | None:
        return self._commands.get(name)

    def names(self) -> list[str]:
        return list(self._commands)

    def by_category(self) -> dict[CommandCategory, list[CommandDescriptor]]:
        grouped: dict[CommandCategory, list[CommandDescriptor]] = {c: [] for c in CommandCategory}
        for descriptor in self._commands.values():
            grouped[descriptor.category].append(descriptor)
        return {c: cmds for c, cmds in grouped.items() if cmds}

    def __iter__(self) -> Iterator[CommandDescriptor]:
        return iter(self._commands.values())

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, name: object) -> bool:
        return name in self._commands


@dataclass
class ParsedLine:
    """A command line after alias expansion."""

    name: str
    args: list[str]
    alias: str | None = None
    expansion: str | None = None


def parse_line(raw_line: str, aliases: dict[str, str] | None = None) -> ParsedLine:
    """Split a line into name and arguments, expanding a single level of alias.

    The leading ``/`` is optional. Alias arguments are placed before the
    arguments typed by the user.
    """
    tokens = raw_line.split()
    if not tokens:
        return ParsedLine(name="", args=[])
    name = tokens[0][1:] if tokens[0].startswith("/") else tokens[0]
    args = tokens[1:]

    expansion = (aliases or {}).get(name)
    if expansion and expansion.split():
        parts = expansion.split()
        target = parts[0][1:] if parts[0].startswith("/") else parts[0]
        return ParsedLine(name=target, args=[*parts[1:], *args], alias=name, expansion=expansion)
    return ParsedLine(name=name, args=args)


def run_guarded(ctx: SessionContext, fn: Callable[..., Any], *args: Any, usage: str | None = None) -> None:
    """Run ``fn``, reporting any error on the console instead of raising.

    The message is stored in ``ctx.last_error``; a ``ParseError`` also echoes
    its usage string.
    """
    try:
        fn(*args)
    except Exception as e:
        message = e.message if isinstance(e, AgentError) else str(e) or e.__class__.__name__
        ctx.last_error = message
        logger.debug("Command failed", exc_info=True)
        print_error(ctx.console, message)
        if isinstance(e, ParseError):
            print_usage(ctx.console, e.usage or usage or "")
        ctx.console.print()


def dispatch(raw_line: str, ctx: SessionContext) -> bool:
    """Run the command named by ``raw_line``.

    Returns:
        False if no command matches (the caller decides what to do with the
        line); True otherwise, even when the handler failed
    """
    registry = ctx.registry
    if registry is None:
        return False
    parsed = parse_line(raw_line, ctx.settings.aliases)
    descriptor = registry.get(parsed.name)
    if descriptor is None:
        return False
    if parsed.alias is not None:
        note = f"{Icons.ALIAS} Alias: {parsed.alias} -> {parsed.expansion}"
        ctx.console.print(
            f"[{Colors.TEXT_MUTED}]{escape(note)}[/{Colors.TEXT_MUTED}]",
            highlight=False,
        )
    logger.debug("Dispatching command", extra={"command": descriptor.name, "args": len(parsed.args)})
    run_guarded(ctx, descriptor.handler, parsed.args, ctx, usage=descriptor.usage)
    return True
