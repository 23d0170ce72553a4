"""AI-assisted code commands: edit, review, tests, docs, refactor, commit, scaffold."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.markup import escape

from pplx_agent import files, tools
from pplx_agent.commands.registry import CommandCategory, CommandRegistry
from pplx_agent.conversation import ConversationTurn
from pplx_agent.exceptions import AgentError, NotFoundError, ParseError
from pplx_agent.git import GitRepo
from pplx_agent.project import analyze_project
from pplx_agent.ui import (
    Colors,
    Icons,
    print_heading,
    print_panel,
    print_response,
    print_success,
    print_warning,
    render_diff,
    strip_code_fences,
    unified_diff,
)

if TYPE_CHECKING:
    from pplx_agent.session import SessionContext

logger = logging.getLogger(__name__)

REFACTOR_PREVIEW_CHARS = 500


def confirm_save(ctx: SessionContext, question: str) -> bool:
    """Ask before a non-destructive save; auto-run answers yes."""
    if ctx.auto_run:
        ctx.console.print(f"[{Colors.WARNING}]auto-run:[/{Colors.WARNING}] [dim]{escape(question)} yes[/dim]")
        return True
    return ctx.confirm(question)


def _ask_model(ctx: SessionContext, label: str, turns: list[ConversationTurn], temperature: float | None = None) -> str:
    with ctx.console.status(f"{label}...", spinner="dots"):
        return ctx.chat(turns, temperature=temperature)


def _save(ctx: SessionContext, path: str, content: str) -> None:
    backup = files.write_file(ctx.root, path, content, state_dir=ctx.state_dir)
    print_success(ctx.console, f"Saved {path}")
    if backup is not None:
        ctx.console.print(f"[dim]Backup: {escape(backup.name)}[/dim]")


def _file_arg(args: list[str], usage: str) -> str:
    if not args:
        raise ParseError("Missing file", usage)
    return " ".join(args)


def cmd_edit(args: list[str], ctx: SessionContext) -> None:
    usage = "/edit <file> <instruction>"
    if len(args) < 2:
        raise ParseError("File and instruction required", usage)
    path, instruction = args[0], " ".join(args[1:])
    try:
        original = files.read_file(ctx.root, path)
    except NotFoundError:
        original = ""

    updated = strip_code_fences(
        _ask_model(ctx, "Editing", tools.edit_prompt(path, instruction, original), ctx.settings.edit_temp)
    )
    diff = unified_diff(original, updated, path)
    if not diff:
        print_warning(ctx.console, "No changes proposed")
        ctx.console.print()
        return

    ctx.console.print()
    print_panel(ctx.console, render_diff(diff), f"Proposed Changes · {escape(path)}")
    ctx.console.print()
    if confirm_save(ctx, "Save?"):
        _save(ctx, path, updated)
    else:
        ctx.console.print("[dim]Discarded[/dim]")
    ctx.console.print()


def cmd_review(args: list[str], ctx: SessionContext) -> None:
    path = _file_arg(args, "/review <file>")
    content = files.read_file(ctx.root, path)
    review = _ask_model(ctx, "Reviewing", tools.review_prompt(path, content))
    print_heading(ctx.console, f"{Icons.SEARCH} Code Review: {escape(path)}")
    print_response(ctx.console, review, markdown=ctx.settings.syntax)


def cmd_test(args: list[str], ctx: SessionContext) -> None:
    path = _file_arg(args, "/test <file>")
    content = files.read_file(ctx.root, path)
    prompt = tools.tests_prompt(content, analyze_project(ctx.root))
    generated = strip_code_fences(_ask_model(ctx, "Writing tests", prompt, tools.TESTS_TEMPERATURE))
    print_heading(ctx.console, f"{Icons.TEST} Generated Tests")
    print_response(ctx.console, generated, markdown=ctx.settings.syntax)

    test_path = tools.tests_path_for(path)
    if confirm_save(ctx, f"Save to {test_path}?"):
        _save(ctx, test_path, generated)
    ctx.console.print()


def cmd_document(args: list[str], ctx: SessionContext) -> None:
    path = _file_arg(args, "/document <file>")
    content = files.read_file(ctx.root, path)
    documented = strip_code_fences(_ask_model(ctx, "Documenting", tools.docs_prompt(content), tools.DOCS_TEMPERATURE))
    print_heading(ctx.console, f"{Icons.DOC} Documented Code")
    print_response(ctx.console, documented, markdown=ctx.settings.syntax)
    if confirm_save(ctx, "Save?"):
        _save(ctx, path, documented)
    ctx.console.print()


def cmd_refactor(args: list[str], ctx: SessionContext) -> None:
    path = _file_arg(args, "/refactor <file>")
    content = files.read_file(ctx.root, path)
    refactored = strip_code_fences(
        _ask_model(ctx, "Refactoring", tools.refactor_prompt(content), tools.REFACTOR_TEMPERATURE)
    )
    print_heading(ctx.console, f"{Icons.RECYCLE} Refactored Code")
    preview = refactored
    if len(preview) > REFACTOR_PREVIEW_CHARS:
        preview = preview[:REFACTOR_PREVIEW_CHARS] + "..."
    print_response(ctx.console, preview, markdown=ctx.settings.syntax)
    if confirm_save(ctx, "Save?"):
        _save(ctx, path, refactored)
    ctx.console.print()


def cmd_commit(args: list[str], ctx: SessionContext) -> None:
    """Suggest a commit message from the working-tree diff, optionally committing."""
    repo = GitRepo(ctx.root)
    if not repo.is_git_repo():
        print_warning(ctx.console, "Not a git repository")
        ctx.console.print()
        return
    diff = repo.diff()
    if not diff.strip():
        print_warning(ctx.console, "No changes to commit")
        ctx.console.print()
        return

    message = _ask_model(ctx, "Writing commit message", tools.commit_prompt(diff), tools.COMMIT_TEMPERATURE)
    message = strip_code_fences(message).strip()
    ctx.console.print()
    ctx.console.print(f"[bold {Colors.PRIMARY}]{Icons.GIT} Suggested commit:[/bold {Colors.PRIMARY}]")
    ctx.console.print(f"  [{Colors.SECONDARY}]{escape(message)}[/{Colors.SECONDARY}]")
    ctx.console.print()

    if not (ctx.settings.git_integration and (ctx.settings.auto_commit or ctx.confirm("Commit with this message?"))):
        ctx.console.print()
        return
    result = repo.commit_all(message)
    if not result.success:
        raise AgentError(f"Commit failed: {result.error}")
    hash_note = f" ({result.commit_hash})" if result.commit_hash else ""
    print_success(ctx.console, f"Committed {result.files_staged} file(s){hash_note}")
    ctx.console.print()


def cmd_scaffold(args: list[str], ctx: SessionContext) -> None:
    if len(args) < 2:
        raise ParseError("Type and name required", "/scaffold <type> <name>")
    kind, name = args[0], args[1]
    plan = tools.scaffold(kind, name, analyze_project(ctx.root))
    content = plan.content
    if content is None:
        content = strip_code_fences(_ask_model(ctx, "Scaffolding", plan.prompt or []))

    print_heading(ctx.console, f"{Icons.SPARKLE} Scaffold: {escape(plan.filename)}")
    print_response(ctx.console, content, markdown=ctx.settings.syntax)
    if confirm_save(ctx, f"Create {plan.filename}?"):
        _save(ctx, plan.filename, content)
    ctx.console.print()


def register(registry: CommandRegistry) -> None:
    group = CommandCategory.AI
    registry.command("edit", "AI edit a file, with diff preview", "/edit <file> <instruction>", group)(cmd_edit)
    registry.command("review", "AI code review", "/review <file>", group)(cmd_review)
    registry.command("test", "Generate unit tests", "/test <file>", group)(cmd_test)
    registry.command("document", "Add documentation to a file", "/document <file>", group)(cmd_document)
    registry.command("refactor", "Refactor a file", "/refactor <file>", group)(cmd_refactor)
    registry.command("commit", "Suggest a commit message from the diff", "/commit", group)(cmd_commit)
    registry.command("scaffold", "Generate a file from a template", "/scaffold <type> <name>", group)(cmd_scaffold)
