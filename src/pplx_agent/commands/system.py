"""System commands: help, settings, model, aliases, workspaces and quitting."""

from __future__ import annotations

import logging
import os
import platform
import random
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table

from pplx_agent import __version__
from pplx_agent.client import ChatClient
from pplx_agent.commands.chat import autosave
from pplx_agent.commands.registry import CommandCategory, CommandRegistry
from pplx_agent.exceptions import NotFoundError, ParseError
from pplx_agent.settings import BOOLEAN_KEYS
from pplx_agent.tui.keymap import KeymapManager
from pplx_agent.ui import (
    COLOR_SCHEMES,
    Colors,
    Icons,
    apply_color_scheme,
    print_heading,
    print_success,
    print_warning,
    terminal_editor,
)

if TYPE_CHECKING:
    from pplx_agent.session import SessionContext

logger = logging.getLogger(__name__)

AVAILABLE_MODELS = (
    ("sonar-pro", "Best for coding"),
    ("sonar-reasoning", "Best for logic"),
    ("sonar", "Fast"),
)
API_KEY_PREFIX = "pplx-"
SUMMARY_WIDTH = 50
FAREWELL_QUOTES = (
    "Keep shipping.",
    "Code is poetry.",
    "See you in the repo.",
    "Terminal closed, mind open.",
)
CATEGORY_TITLES = {
    "chat": "💬 Chat",
    "files": "📁 Files",
    "ai": "🤖 AI Tools",
    "project": "🧩 Project",
    "system": "⚙️  System",
}


def mask_key(key: str) -> str:
    """``pplx-abcdef...wxyz`` style masking; short keys are fully hidden."""
    if len(key) <= 12:
        return "*" * len(key)
    return f"{key[:8]}{'*' * 16}{key[-4:]}"


def cmd_help(args: list[str], ctx: SessionContext) -> None:
    registry = ctx.registry
    if registry is None:
        return
    ctx.console.print()
    for category, commands in registry.by_category().items():
        title = CATEGORY_TITLES.get(category.value, category.value)
        ctx.console.print(f"[bold {Colors.PRIMARY}]{title}[/bold {Colors.PRIMARY}]")
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style=Colors.PRIMARY, no_wrap=True)
        table.add_column(style=Colors.TEXT_MUTED)
        for command in commands:
            table.add_row(escape(command.usage), escape(command.description))
        ctx.console.print(table)
        ctx.console.print()

    ctx.console.print(f"[bold {Colors.PRIMARY}]⌨️  Keys[/bold {Colors.PRIMARY}]")
    keys = Table(show_header=False, box=None, padding=(0, 2))
    keys.add_column(style=Colors.PRIMARY, no_wrap=True)
    keys.add_column(style=Colors.TEXT_MUTED)
    for shortcut, description, when in KeymapManager().get_help_text():
        suffix = " (in the command menu)" if when == "menu" else ""
        keys.add_row(shortcut, f"{description}{suffix}")
    ctx.console.print(keys)
    ctx.console.print()
    ctx.console.print("[dim]Type @ to list project files. Mention files with @path in a question.[/dim]")
    ctx.console.print()


def _show_settings(ctx: SessionContext) -> None:
    print_heading(ctx.console, "⚙️  Settings")
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style=Colors.PRIMARY, no_wrap=True)
    table.add_column()
    for key, value in ctx.settings.to_json_dict().items():
        if key in BOOLEAN_KEYS:
            shown = "[green]on[/green]" if value else "[dim]off[/dim]"
        elif key == "apiKey":
            shown = mask_key(value) if value else "[dim](not set)[/dim]"
        else:
            shown = escape(str(value))
        table.add_row(key, shown)
    ctx.console.print(table)
    ctx.console.print()
    ctx.console.print("[dim]Change with: /settings set <key> <value>[/dim]")
    ctx.console.print()


def cmd_settings(args: list[str], ctx: SessionContext) -> None:
    usage = "/settings [set <key> <value>]"
    if not args:
        _show_settings(ctx)
        return
    if args[0] != "set" or len(args) < 3:
        raise ParseError("Expected: set <key> <value>", usage)
    key, raw = args[1], " ".join(args[2:])
    value = ctx.settings.set_value(key, raw)
    ctx.save_settings()
    if key == "colorScheme":
        if raw not in COLOR_SCHEMES:
            print_warning(ctx.console, f"Unknown color scheme {raw}; using vibrant")
        apply_color_scheme(raw)
    print_success(ctx.console, f"{key} = {value}")
    ctx.console.print()


def cmd_model(args: list[str], ctx: SessionContext) -> None:
    if args:
        ctx.settings.model = args[0]
        ctx.save_settings()
        print_success(ctx.console, f"Model set to {args[0]}")
        ctx.console.print()
        return
    ctx.console.print(f"[bold]Current Model:[/bold] [{Colors.WARNING}]{escape(ctx.settings.model)}[/{Colors.WARNING}]")
    ctx.console.print()
    ctx.console.print("[dim]Available Models:[/dim]")
    for name, note in AVAILABLE_MODELS:
        ctx.console.print(f"  [{Colors.PRIMARY}]{name:<16}[/{Colors.PRIMARY}] [dim]({note})[/dim]")
    ctx.console.print()
    ctx.console.print("[dim]Usage: /model <name>[/dim]")
    ctx.console.print()


def cmd_alias(args: list[str], ctx: SessionContext) -> None:
    usage = "/alias [set <name> <expansion>|remove <name>|list]"
    aliases = ctx.settings.aliases
    sub = args[0] if args else "list"

    if sub == "list":
        if not aliases:
            print_warning(ctx.console, "No aliases defined")
        else:
            print_heading(ctx.console, f"{Icons.ALIAS} Aliases")
            for name, expansion in aliases.items():
                ctx.console.print(
                    f"  [{Colors.PRIMARY}]{escape(name)}[/{Colors.PRIMARY}] -> {escape(expansion)}",
                    highlight=False,
                )
    elif sub == "set":
        if len(args) < 3:
            raise ParseError("Name and expansion required", usage)
        name, expansion = args[1].lstrip("/"), " ".join(args[2:])
        if ctx.registry is not None and name in ctx.registry:
            raise ParseError(f"{name} is a built-in command", usage)
        aliases[name] = expansion
        ctx.save_settings()
        print_success(ctx.console, f"Alias set: {name} -> {expansion}")
    elif sub == "remove":
        if len(args) < 2:
            raise ParseError("Alias name required", usage)
        name = args[1].lstrip("/")
        if name not in aliases:
            raise NotFoundError("alias", name)
        del aliases[name]
        ctx.save_settings()
        print_success(ctx.console, f"Alias removed: {name}")
    else:
        raise ParseError(f"Unknown subcommand: {sub}", usage)
    ctx.console.print()


def _switch_root(ctx: SessionContext, path: str | Path) -> Path:
    new_root = ctx.set_root(path)
    ctx.brain = ctx.stores.brain.load(new_root)
    return new_root


def cmd_directory(args: list[str], ctx: SessionContext) -> None:
    """Workspaces: a saved list of roots to switch between."""
    usage = "/directory <list|add|switch|remove> [path]"
    sub = args[0] if args else "list"
    target = " ".join(args[1:])
    workspaces = ctx.settings.workspaces
    current = str(ctx.root)

    if sub in ("list", "ls"):
        print_heading(ctx.console, f"{Icons.FOLDER} Workspaces")
        for workspace in workspaces or [current]:
            if workspace == current:
                ctx.console.print(f"  [green]●[/green] [{Colors.PRIMARY}]{escape(workspace)}[/{Colors.PRIMARY}]")
            else:
                ctx.console.print(f"  [dim]○ {escape(workspace)}[/dim]")
        ctx.console.print()
        ctx.console.print("[dim]Use /directory switch <path> to change the active root.[/dim]")
        ctx.console.print()
        return

    if sub not in ("add", "switch", "remove", "rm"):
        raise ParseError(f"Unknown subcommand: {sub}", usage)
    if not target:
        raise ParseError("Path required", usage)

    if sub == "add":
        resolved = Path(target).expanduser()
        if not resolved.is_absolute():
            resolved = ctx.root / resolved
        resolved = resolved.resolve()
        if not resolved.is_dir():
            raise NotFoundError("directory", target)
        if str(resolved) in workspaces:
            print_warning(ctx.console, "Workspace already exists.")
        else:
            if not workspaces:
                workspaces.append(current)
            workspaces.append(str(resolved))
            ctx.save_settings()
            print_success(ctx.console, f"Added workspace: {resolved}")
    elif sub == "switch":
        match = next((w for w in workspaces if target in w), None)
        new_root = _switch_root(ctx, match or target)
        if str(new_root) not in workspaces:
            workspaces.append(str(new_root))
            ctx.save_settings()
        print_success(ctx.console, f"Switched to: {new_root}")
    else:
        match = next((w for w in workspaces if target in w), None)
        if match is None:
            raise NotFoundError("workspace", target)
        workspaces.remove(match)
        ctx.save_settings()
        print_success(ctx.console, f"Removed: {match}")
        if match == current and workspaces:
            _switch_root(ctx, workspaces[0])
            print_warning(ctx.console, f"Switched to fallback: {workspaces[0]}")
    ctx.console.print()


def cmd_editor(args: list[str], ctx: SessionContext) -> None:
    if not args:
        current = terminal_editor(ctx.settings.editor) or "System Default"
        ctx.console.print(f"[bold]Current Editor:[/bold] [{Colors.PRIMARY}]{escape(current)}[/{Colors.PRIMARY}]")
        ctx.console.print("[dim]Usage: /editor <command>[/dim]")
        ctx.console.print()
        return
    ctx.settings.editor = " ".join(args)
    ctx.save_settings()
    print_success(ctx.console, f"Editor set to: {ctx.settings.editor}")
    ctx.console.print()


def cmd_vim(args: list[str], ctx: SessionContext) -> None:
    ctx.settings.vim_mode = not ctx.settings.vim_mode
    ctx.save_settings()
    state = "[green]ON[/green]" if ctx.settings.vim_mode else "[red]OFF[/red]"
    ctx.console.print(f"[bold]Vim Mode:[/bold] {state}")
    ctx.console.print()


def cmd_auth(args: list[str], ctx: SessionContext) -> None:
    """Show the active key (masked) or store a new one in the settings file."""
    print_heading(ctx.console, f"{Icons.LOCK} Authentication")
    if args:
        key = args[0].strip()
        if not key.startswith(API_KEY_PREFIX):
            raise ParseError(f"Invalid key format; keys start with {API_KEY_PREFIX}", "/auth [key]")
        ctx.settings.api_key = key
        ctx.save_settings()
        if isinstance(ctx.client, ChatClient):
            ctx.client.api_key = key
        print_success(ctx.console, "Key saved to local settings.")
        ctx.console.print("[dim]It replaces the environment key for this session.[/dim]")
        ctx.console.print()
        return

    active = getattr(ctx.client, "api_key", "") or ctx.settings.api_key
    if active:
        source = "settings" if active == ctx.settings.api_key else "environment"
        print_success(ctx.console, f"Active key: {mask_key(active)}")
        ctx.console.print(f"[dim]  Source: {source}[/dim]")
    else:
        print_warning(ctx.console, "No API key found")
    ctx.console.print("[dim]To get a key, visit: https://www.perplexity.ai/settings/api[/dim]")
    ctx.console.print()


def cmd_about(args: list[str], ctx: SessionContext) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style=Colors.PRIMARY)
    table.add_column()
    table.add_row("Version", f"v{__version__}")
    table.add_row("Python", platform.python_version())
    table.add_row("OS", f"{platform.system()} {platform.release()} ({platform.machine()})")
    table.add_row("Hostname", escape(platform.node()))
    table.add_row("Process ID", str(os.getpid()))
    table.add_row("Executable", escape(sys.executable))
    table.add_row("Project root", escape(str(ctx.root)))
    table.add_row("State dir", escape(str(ctx.state_dir)))
    print_heading(ctx.console, f"{Icons.PACKAGE} pplx-agent")
    ctx.console.print("[dim]Terminal assistant for the Perplexity API[/dim]")
    ctx.console.print()
    ctx.console.print(table)
    ctx.console.print()


def _summary_row(label: str, value: str) -> str:
    pad = max(0, SUMMARY_WIDTH - len(label) - len(value) - 2)
    return f"[dim]│[/dim] {label}{' ' * pad} [{Colors.PRIMARY}]{value}[/{Colors.PRIMARY}] [dim]│[/dim]"


def cmd_quit(args: list[str], ctx: SessionContext) -> None:
    ctx.console.print()
    ctx.console.print(f"[bold {Colors.PRIMARY}]{Icons.WAVE} Session Summary[/bold {Colors.PRIMARY}]")
    ctx.console.print()
    line = "─" * SUMMARY_WIDTH
    ctx.console.print(f"[dim]╭{line}╮[/dim]")
    ctx.console.print(_summary_row("Duration", f"{round(ctx.elapsed)} s"))
    ctx.console.print(_summary_row("Messages", str(len(ctx.conversation))))
    ctx.console.print(_summary_row("Tokens Used", f"{ctx.usage.total_tokens:,}"))
    ctx.console.print(_summary_row("Files Accessed", str(ctx.files_read)))
    ctx.console.print(f"[dim]╰{line}╯[/dim]")

    if ctx.settings.auto_save:
        ctx.console.print()
        ctx.console.print("[dim]Auto-saving session...[/dim]")
        autosave(ctx)
        print_success(ctx.console, "Saved.")

    ctx.console.print()
    ctx.console.print(f"[italic]{random.choice(FAREWELL_QUOTES)}[/italic]")
    ctx.console.print()
    ctx.quit_requested = True


def register(registry: CommandRegistry) -> None:
    group = CommandCategory.SYSTEM
    registry.command("help", "Show commands and keys", "/help", group)(cmd_help)
    registry.command("settings", "Show or change settings", "/settings [set <key> <value>]", group)(cmd_settings)
    registry.command("model", "Show or set the model", "/model [name]", group)(cmd_model)
    registry.command("alias", "Manage command aliases", "/alias [set <name> <expansion>|remove <name>|list]", group)(
        cmd_alias
    )
    registry.command(
        "directory", "Manage workspace directories", "/directory <list|add|switch|remove> [path]", group
    )(cmd_directory)
    registry.command("editor", "Show or set the external editor", "/editor [cmd]", group)(cmd_editor)
    registry.command("vim", "Toggle vi key bindings", "/vim", group)(cmd_vim)
    registry.command("auth", "Show or set the API key", "/auth [key]", group)(cmd_auth)
    registry.command("about", "Version and environment info", "/about", group)(cmd_about)
    registry.command("quit", "Exit with a session summary", "/quit", group, aliases=("exit",))(cmd_quit)
