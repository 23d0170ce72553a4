"""Project commands: metrics, search, git, snippets and the project brain."""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table
from rich.text import Text

from pplx_agent import files, tools
from pplx_agent.commands.files import read_multiline
from pplx_agent.commands.registry import CommandCategory, CommandRegistry
from pplx_agent.exceptions import ParseError
from pplx_agent.git import GitRepo
from pplx_agent.persistence import ProjectBrain
from pplx_agent.project import (
    ProjectType,
    analyze_deps,
    analyze_project,
    collect_project_files,
    grep_project,
    scan_todos,
)
from pplx_agent.ui import Colors, Icons, print_code, print_heading, print_panel, print_success, print_warning

if TYPE_CHECKING:
    from pplx_agent.session import SessionContext

logger = logging.getLogger(__name__)

GREP_LIMIT = 50
GIT_DIFF_PREVIEW = 1000
BRAIN_IMPORTANT_FILES = 10
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def cmd_metrics(args: list[str], ctx: SessionContext) -> None:
    if not args:
        raise ParseError("Missing file", "/metrics <file>")
    path = " ".join(args)
    metrics = tools.code_metrics(files.read_file(ctx.root, path), path)

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column(justify="right")
    table.add_row("Total lines", str(metrics.total))
    table.add_row("Code", str(metrics.code))
    table.add_row("Comments", str(metrics.comments))
    table.add_row("Blank", str(metrics.blank))
    table.add_row("Code/Comment", f"{metrics.code_comment_ratio:.2f}")
    print_heading(ctx.console, f"{Icons.STATS} Metrics: {escape(path)}")
    ctx.console.print(table)
    ctx.console.print()


def cmd_grep(args: list[str], ctx: SessionContext) -> None:
    usage = "/grep <pattern>"
    if not args:
        raise ParseError("Missing pattern", usage)
    pattern = " ".join(args)
    try:
        with ctx.console.status("Searching...", spinner="dots"):
            matches = grep_project(ctx.root, pattern)
    except re.error as e:
        raise ParseError(f"Invalid pattern: {e}", usage) from None

    if not matches:
        print_warning(ctx.console, "No matches found")
        ctx.console.print()
        return
    print_heading(ctx.console, f"{Icons.SEARCH} Found {len(matches)} matches")
    for match in matches[:GREP_LIMIT]:
        ctx.console.print(
            f"  [{Colors.PRIMARY}]{escape(match.file)}[/{Colors.PRIMARY}]:[{Colors.WARNING}]{match.line}"
            f"[/{Colors.WARNING}]  [dim]{escape(match.content)}[/dim]",
            highlight=False,
        )
    if len(matches) > GREP_LIMIT:
        ctx.console.print(f"  [dim]...and {len(matches) - GREP_LIMIT} more[/dim]")
    ctx.console.print()


def cmd_todo(args: list[str], ctx: SessionContext) -> None:
    with ctx.console.status("Scanning TODOs...", spinner="dots"):
        todos = scan_todos(ctx.root)
    if not todos:
        print_success(ctx.console, "No TODOs found!")
        ctx.console.print()
        return
    print_heading(ctx.console, f"{Icons.DOC} Project Tasks")
    for todo in todos:
        ctx.console.print(
            f"  [{Colors.PRIMARY}]{escape(todo.file)}[/{Colors.PRIMARY}]:[{Colors.WARNING}]{todo.line}"
            f"[/{Colors.WARNING}] {escape(todo.content)}",
            highlight=False,
        )
    ctx.console.print()


def cmd_deps(args: list[str], ctx: SessionContext) -> None:
    deps = analyze_deps(ctx.root)
    if deps is None:
        print_warning(ctx.console, "No package.json or requirements.txt found")
        ctx.console.print()
        return
    print_heading(ctx.console, f"{Icons.PACKAGE} Dependencies [dim]({deps.source})[/dim]")
    for title, group in (("Production", deps.dependencies), ("Dev", deps.dev_dependencies)):
        if not group and title == "Dev":
            continue
        ctx.console.print(f"[bold]{title}:[/bold]")
        for name, version in group.items():
            ctx.console.print(f"  [{Colors.PRIMARY}]{escape(name)}[/{Colors.PRIMARY}]: {escape(version)}", highlight=False)
        ctx.console.print()


def cmd_git(args: list[str], ctx: SessionContext) -> None:
    usage = "/git <status|diff|log>"
    if not args:
        raise ParseError("Missing subcommand", usage)
    sub = args[0]
    if sub not in ("status", "diff", "log"):
        raise ParseError(f"Unknown subcommand: {sub}", usage)

    repo = GitRepo(ctx.root)
    if not repo.is_git_repo():
        print_warning(ctx.console, "Not a git repository")
        ctx.console.print()
        return

    if sub == "status":
        status = repo.status()
        print_heading(ctx.console, f"{Icons.GIT} Git Status")
        if status.strip():
            ctx.console.print(status.rstrip(), markup=False, highlight=False)
        else:
            ctx.console.print("[dim]Working tree clean[/dim]")
    elif sub == "diff":
        diff = repo.diff()
        if not diff:
            print_warning(ctx.console, "No changes")
        else:
            print_heading(ctx.console, f"{Icons.GIT} Git Diff")
            preview = diff[:GIT_DIFF_PREVIEW]
            if len(diff) > GIT_DIFF_PREVIEW:
                preview += "\n..."
            print_code(ctx.console, preview, "changes.diff", highlight=False)
    else:
        count = int(args[1]) if len(args) > 1 and args[1].isdigit() else 5
        log = repo.log(count)
        print_heading(ctx.console, f"{Icons.LOG} Git Log")
        ctx.console.print(log or "(no commits)", markup=False, highlight=False)
    ctx.console.print()


def cmd_snippet(args: list[str], ctx: SessionContext) -> None:
    usage = "/snippet <save|get|list|delete> [name]"
    if not args:
        raise ParseError("Missing subcommand", usage)
    sub, rest = args[0], args[1:]
    snippets = ctx.stores.snippets

    if sub == "list":
        if not len(snippets):
            print_warning(ctx.console, "No snippets saved")
        else:
            print_heading(ctx.console, f"{Icons.SNIPPET} Snippets ({len(snippets)})")
            for name, snippet in snippets.items():
                ctx.console.print(
                    f"  [{Colors.PRIMARY}]{escape(name)}[/{Colors.PRIMARY}] [dim]{escape(snippet.preview)}[/dim]",
                    highlight=False,
                )
        ctx.console.print()
        return

    if sub not in ("save", "get", "delete"):
        raise ParseError(f"Unknown subcommand: {sub}", usage)
    if not rest:
        raise ParseError("Snippet name required", f"/snippet {sub} <name>")
    name = rest[0]

    if sub == "save":
        code = read_multiline(ctx, "Paste the snippet, end with ::end")
        snippets.save(name, code)
        print_success(ctx.console, f"Snippet saved: {name}")
    elif sub == "get":
        snippet = snippets.get(name)
        print_heading(ctx.console, f"{Icons.SNIPPET} {escape(name)}")
        ctx.console.print(snippet.code, markup=False, highlight=False)
    else:
        snippets.delete(name)
        print_success(ctx.console, f"Snippet deleted: {name}")
    ctx.console.print()


def init_brain(ctx: SessionContext) -> ProjectBrain:
    """Start a fresh brain for the current root and save it."""
    project_type = analyze_project(ctx.root)
    brain = ProjectBrain(
        name=ctx.root.name,
        description=f"A {project_type.value} project" if project_type is not ProjectType.UNKNOWN else "",
        important_files=collect_project_files(ctx.root)[:BRAIN_IMPORTANT_FILES],
    )
    ctx.stores.brain.save(brain)
    ctx.brain = brain
    return brain


def update_brain(ctx: SessionContext) -> ProjectBrain:
    """Ask the model to summarise the project and merge the answer into the brain.

    An unparseable answer leaves the brain's text fields as they were; the
    important-file list is refreshed either way.
    """
    brain = ctx.brain
    project_files = collect_project_files(ctx.root)
    brain.important_files = project_files[:BRAIN_IMPORTANT_FILES]
    package_json = ctx.root / "package.json"
    manifest = package_json.read_text(encoding="utf-8", errors="replace") if package_json.is_file() else ""

    with ctx.console.status("Updating brain...", spinner="dots"):
        text = ctx.chat(tools.brain_prompt(manifest, project_files))

    match = _JSON_OBJECT.search(text)
    try:
        analysis = json.loads(match.group(0)) if match else None
    except json.JSONDecodeError:
        analysis = None
    if isinstance(analysis, dict):
        brain.merge(analysis)
    else:
        logger.debug("Brain analysis was not a JSON object", extra={"response_chars": len(text)})
        print_warning(ctx.console, "Could not parse AI analysis")
    ctx.stores.brain.save(brain)
    return brain


def cmd_brain(args: list[str], ctx: SessionContext) -> None:
    usage = "/brain <init|show|update|add> [note]"
    if not args:
        raise ParseError("Missing subcommand", usage)
    sub = args[0]

    if sub == "init":
        init_brain(ctx)
        print_success(ctx.console, f"Brain initialized. Edit {ctx.stores.brain.path.name} to add details.")
    elif sub == "show":
        print_panel(ctx.console, Text(json.dumps(ctx.brain.to_dict(), indent=2)), f"{Icons.BRAIN} Project Brain")
    elif sub == "update":
        update_brain(ctx)
        print_success(ctx.console, "Brain updated")
    elif sub == "add":
        if len(args) < 2:
            raise ParseError("Note text required", "/brain add <note>")
        ctx.brain.notes.append(" ".join(args[1:]))
        ctx.stores.brain.save(ctx.brain)
        print_success(ctx.console, f"Note added ({len(ctx.brain.notes)} total)")
    else:
        raise ParseError(f"Unknown subcommand: {sub}", usage)
    ctx.console.print()


def cmd_init(args: list[str], ctx: SessionContext) -> None:
    ctx.console.print("[dim]Initializing project brain...[/dim]")
    project_type = analyze_project(ctx.root)
    print_success(ctx.console, f"Detected type: {project_type.value}")
    brain = init_brain(ctx)
    print_success(ctx.console, f"Created {ctx.stores.brain.path.name} ({len(brain.important_files)} important files)")
    ctx.console.print()


def register(registry: CommandRegistry) -> None:
    group = CommandCategory.PROJECT
    registry.command("metrics", "Line counts for a file", "/metrics <file>", group)(cmd_metrics)
    registry.command("grep", "Search project files", "/grep <pattern>", group)(cmd_grep)
    registry.command("todo", "List TODO/FIXME markers", "/todo", group)(cmd_todo)
    registry.command("deps", "Show declared dependencies", "/deps", group)(cmd_deps)
    registry.command("git", "Git status, diff or log", "/git <status|diff|log>", group)(cmd_git)
    registry.command("snippet", "Save and reuse code snippets", "/snippet <save|get|list|delete> [name]", group)(
        cmd_snippet
    )
    registry.command("brain", "Project memory sent with every chat", "/brain <init|show|update|add> [note]", group)(
        cmd_brain
    )
    registry.command("init", "Analyze the project and create its brain", "/init", group)(cmd_init)
