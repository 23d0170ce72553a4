"""Conversation commands and the free-text chat flow."""

from __future__ import annotations

import logging
import platform
import subprocess
from datetime import datetime
from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table

from pplx_agent.commands.registry import CommandCategory, CommandRegistry
from pplx_agent.context import ContextAssembler, build_messages, route_model
from pplx_agent.conversation import ConversationBuffer, ConversationTurn, Role
from pplx_agent.exceptions import AgentError, NotFoundError, ParseError
from pplx_agent.persistence import AUTOSAVE_TAG
from pplx_agent.security import filter_env_vars
from pplx_agent.ui import Colors, Icons, print_heading, print_response, print_success, print_warning

if TYPE_CHECKING:
    from pplx_agent.session import SessionContext

logger = logging.getLogger(__name__)

HISTORY_PREVIEW_CHARS = 100


def handle_chat(query: str, ctx: SessionContext) -> str:
    """Answer a free-text question with project context.

    The user turn joins the conversation only once the reply has arrived, so a
    failed request leaves the conversation unchanged.

    Returns:
        The assistant's reply
    """
    settings = ctx.settings
    assembled = ContextAssembler(ctx).assemble(query)

    pending = ConversationTurn(Role.USER, query)
    window = ConversationBuffer([*ctx.conversation, pending])
    window.truncate_to_window(settings.max_history)
    messages = build_messages(ctx.brain, settings, window, assembled.bundle)

    model = settings.model
    routed = route_model(query, settings)
    if routed:
        model = routed
        ctx.console.print(
            f"[dim]{Icons.BRAIN} Smart Route: Switching to [/dim][{Colors.ACCENT}]{model}[/{Colors.ACCENT}]"
            "[dim] for complex task[/dim]"
        )
        ctx.console.print()

    with ctx.console.status("Thinking...", spinner="dots"):
        response = ctx.client.send(messages, model=model, temperature=settings.temperature)

    ctx.usage.record(response)
    ctx.conversation.append(pending)
    ctx.conversation.add(Role.ASSISTANT, response.text)
    ctx.conversation.truncate_to_window(settings.max_history)

    print_response(ctx.console, response.text, markdown=settings.syntax)
    if settings.show_timestamps:
        ctx.console.print(f"[dim]{datetime.now():%H:%M:%S} · {response.duration_ms:.0f} ms[/dim]")
    return response.text


def cmd_ask(args: list[str], ctx: SessionContext) -> None:
    if not args:
        raise ParseError("Missing question", "/ask <question>")
    handle_chat(" ".join(args), ctx)


def cmd_clear(args: list[str], ctx: SessionContext) -> None:
    target = args[0] if args else "screen"
    if target not in ("screen", "history", "all"):
        raise ParseError(f"Unknown target: {target}", "/clear [screen|history|all]")
    if target in ("screen", "all"):
        ctx.console.clear()
        ctx.console.print("[dim]Screen cleared.[/dim]")
    if target in ("history", "all"):
        removed = ctx.conversation.clear(keep_system=True)
        print_success(ctx.console, f"Removed {removed} messages from history.")
    if target == "all":
        ctx.console.print(f"[bold {Colors.SUCCESS}]Everything fresh! Ready for a new start.[/bold {Colors.SUCCESS}]")
    ctx.console.print()


def cmd_history(args: list[str], ctx: SessionContext) -> None:
    if not len(ctx.conversation):
        print_warning(ctx.console, "No conversation history")
        ctx.console.print()
        return
    print_heading(ctx.console, f"{Icons.LOG} History · {len(ctx.conversation)} messages")
    for turn in ctx.conversation:
        icon = {"user": "👤", "assistant": "🤖"}.get(turn.role, "⚙")
        color = Colors.PRIMARY if turn.role == Role.USER.value else Colors.ACCENT
        preview = turn.content[:HISTORY_PREVIEW_CHARS]
        if len(turn.content) > HISTORY_PREVIEW_CHARS:
            preview += "..."
        ctx.console.print(f"[{color}]{icon} {turn.role}:[/{color}] {escape(preview)}", highlight=False)
    ctx.console.print()


def cmd_compress(args: list[str], ctx: SessionContext) -> None:
    total = len(ctx.conversation)
    if total < 2:
        print_warning(ctx.console, "Context is already small.")
        return
    ctx.console.print(f"[dim]Compressing {total} messages...[/dim]")
    folded = ctx.conversation.compress()
    if not folded:
        print_warning(ctx.console, f"Context not large enough to compress (only {total} messages).")
        return
    print_success(ctx.console, f"Context compressed. Kept last {len(ctx.conversation) - 1} messages.")
    ctx.console.print()


def cmd_chat(args: list[str], ctx: SessionContext) -> None:
    """Session save/resume/list/clear; also registered as ``/session``."""
    usage = "/chat <save|resume|load|list|clear> [tag]"
    if not args:
        raise ParseError("Missing subcommand", usage)
    sub, rest = args[0], args[1:]

    if sub == "save":
        if not rest:
            raise ParseError("Tag required", "/chat save <tag>")
        ctx.stores.sessions.save(rest[0], ctx.conversation.turns, ctx.root, ctx.settings.to_json_dict())
        print_success(ctx.console, f"Session saved: {rest[0]}")
    elif sub in ("resume", "load"):
        if not rest:
            raise ParseError("Tag required", f"/chat {sub} <tag>")
        session = ctx.stores.sessions.load(rest[0])
        ctx.conversation.replace(session.history)
        if session.root:
            try:
                ctx.set_root(session.root)
            except NotFoundError:
                print_warning(ctx.console, f"Saved root no longer exists: {session.root}")
        print_success(ctx.console, f"Loaded: {rest[0]}")
        ctx.console.print(f"[dim]Time: {escape(_format_timestamp(session.timestamp))}[/dim]")
        ctx.console.print(f"[dim]Messages: {len(session.history)}[/dim]")
    elif sub == "list":
        _list_sessions(ctx)
    elif sub == "clear":
        ctx.conversation.clear(keep_system=False)
        print_success(ctx.console, "History cleared.")
    else:
        raise ParseError(f"Unknown subcommand: {sub}", usage)
    ctx.console.print()


def _format_timestamp(value: str) -> str:
    try:
        return datetime.fromisoformat(value).astimezone().strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return value


def _list_sessions(ctx: SessionContext) -> None:
    sessions = ctx.stores.sessions.list_sessions()
    if not sessions:
        print_warning(ctx.console, "No saved sessions")
        return
    print_heading(ctx.console, "💾 Saved Sessions")
    for session in sessions:
        ctx.console.print(
            f"  [{Colors.PRIMARY}]{escape(session.tag)}[/{Colors.PRIMARY}] "
            f"[dim]· {escape(_format_timestamp(session.timestamp))} · {len(session.history)} messages[/dim]"
        )


def cmd_resume(args: list[str], ctx: SessionContext) -> None:
    ctx.console.print("[dim]To resume a session, use: /chat resume <tag>[/dim]")
    _list_sessions(ctx)
    ctx.console.print()


def clipboard_command() -> list[str]:
    system = platform.system()
    if system == "Darwin":
        return ["pbcopy"]
    if system == "Windows":
        return ["clip"]
    return ["xclip", "-selection", "clipboard"]


def cmd_copy(args: list[str], ctx: SessionContext) -> None:
    last = ctx.conversation.last(Role.ASSISTANT)
    if last is None or not last.content:
        print_warning(ctx.console, "No recent AI response found to copy.")
        return
    command = clipboard_command()
    try:
        result = subprocess.run(
            command,
            input=last.content,
            capture_output=True,
            text=True,
            check=False,
            env=filter_env_vars(),
        )
    except FileNotFoundError:
        raise AgentError(f"Clipboard tool not found: {command[0]}") from None
    if result.returncode != 0:
        raise AgentError(f"Failed to copy: {result.stderr.strip() or command[0]}")
    print_success(ctx.console, "Response copied to clipboard!")


def cmd_role(args: list[str], ctx: SessionContext) -> None:
    if not args:
        current = ctx.settings.role or "(none)"
        ctx.console.print(f"{Icons.ROLE} Current persona: [{Colors.ACCENT}]{escape(current)}[/{Colors.ACCENT}]")
        ctx.console.print("[dim]Usage: /role <persona> | /role clear[/dim]")
        return
    if args == ["clear"]:
        ctx.settings.role = ""
        ctx.save_settings()
        print_success(ctx.console, "Persona cleared")
        return
    ctx.settings.role = " ".join(args)
    ctx.save_settings()
    print_success(ctx.console, f"Persona set: {ctx.settings.role}")


def cmd_usage(args: list[str], ctx: SessionContext) -> None:
    usage = ctx.usage
    print_heading(ctx.console, f"{Icons.STATS} Detailed Statistics")

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column()
    table.add_row("Prompt", f"{usage.prompt_tokens:,} tokens")
    table.add_row("Completion", f"{usage.completion_tokens:,} tokens")
    table.add_row("Total", f"{usage.total_tokens:,} tokens")
    table.add_row("Est. Cost", f"${usage.cost:.6f}")
    table.add_row("Requests", str(usage.request_count))
    if usage.request_count:
        table.add_row("Avg Latency", f"{usage.avg_latency_ms:.0f} ms")
    table.add_row("Turns", f"{ctx.conversation.count(Role.USER)} User / {ctx.conversation.count(Role.ASSISTANT)} AI")
    table.add_row("Context", f"{ctx.conversation.count(Role.SYSTEM)} System prompts")
    table.add_row("Depth", f"{len(ctx.conversation)} messages in buffer")
    ctx.console.print(table)

    if args and args[0] == "reset":
        usage.reset()
        ctx.console.print()
        print_warning(ctx.console, "Stats have been reset.")
    ctx.console.print()


def autosave(ctx: SessionContext) -> None:
    ctx.stores.sessions.save(AUTOSAVE_TAG, ctx.conversation.turns, ctx.root, ctx.settings.to_json_dict())


def register(registry: CommandRegistry) -> None:
    chat = CommandCategory.CHAT
    registry.command("ask", "Chat with AI (reads code!)", "/ask <question>", chat)(cmd_ask)
    registry.command("clear", "Clear screen and/or history", "/clear [screen|history|all]", chat)(cmd_clear)
    registry.command("history", "Show conversation history", "/history", chat)(cmd_history)
    registry.command("compress", "Summarize old messages, keep the last 5", "/compress", chat)(cmd_compress)
    registry.command(
        "chat",
        "Save, resume or list conversations",
        "/chat <save|resume|load|list|clear> [tag]",
        chat,
        aliases=("session",),
    )(cmd_chat)
    registry.command("resume", "List saved conversations", "/resume", chat)(cmd_resume)
    registry.command("copy", "Copy the last AI response", "/copy", chat)(cmd_copy)
    registry.command("role", "Set or clear the AI persona", "/role [persona|clear]", chat)(cmd_role)
    registry.command("usage", "Token usage and cost", "/usage [reset]", chat, aliases=("stats",))(cmd_usage)
