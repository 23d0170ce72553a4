"""Filesystem commands, all confined to the project root."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from rich.markup import escape
from rich.table import Table

from pplx_agent import files
from pplx_agent.commands.registry import CommandCategory, CommandRegistry
from pplx_agent.exceptions import ParseError
from pplx_agent.security import relative_to_root
from pplx_agent.ui import Colors, Icons, file_icon, format_size, print_code, print_heading, print_success, print_warning

if TYPE_CHECKING:
    from pplx_agent.session import SessionContext

logger = logging.getLogger(__name__)

PASTE_TERMINATOR = "::end"


def read_multiline(ctx: SessionContext, prompt: str = "Paste content, end with ::end") -> str:
    """Collect lines from ``ctx.ask`` until a line that is exactly ``::end``."""
    ctx.console.print(f"[dim]{escape(prompt)}[/dim]")
    lines: list[str] = []
    while True:
        try:
            line = ctx.ask("")
        except EOFError:
            break
        if line.strip() == PASTE_TERMINATOR:
            break
        lines.append(line)
    return "\n".join(lines)


def _path_arg(args: list[str], usage: str) -> str:
    if not args:
        raise ParseError("Missing path", usage)
    return " ".join(args)


def cmd_root(args: list[str], ctx: SessionContext) -> None:
    ctx.console.print(f"{Icons.PIN} Project root: [{Colors.PRIMARY}]{escape(str(ctx.root))}[/{Colors.PRIMARY}]")
    ctx.console.print()


def cmd_ls(args: list[str], ctx: SessionContext) -> None:
    path = " ".join(args) or "."
    entries = files.list_dir(ctx.root, path)
    print_heading(ctx.console, escape(path), Icons.FOLDER)
    if not entries:
        ctx.console.print("[dim]  (empty)[/dim]")
    for entry in entries:
        if entry.is_dir:
            ctx.console.print(f"  {Icons.FOLDER} [{Colors.PRIMARY}]{escape(entry.name)}/[/{Colors.PRIMARY}]")
        else:
            ctx.console.print(
                f"  {file_icon(entry.name)} {escape(entry.name)} [dim]{format_size(entry.size)}[/dim]",
                highlight=False,
            )
    ctx.console.print()


def cmd_cd(args: list[str], ctx: SessionContext) -> None:
    new_root = ctx.set_root(_path_arg(args, "/cd <dir>"))
    ctx.brain = ctx.stores.brain.load(new_root)
    print_success(ctx.console, f"Root: {new_root}")
    ctx.console.print()


def cmd_tree(args: list[str], ctx: SessionContext) -> None:
    lines = files.tree(ctx.root, " ".join(args) or ".")
    ctx.console.print()
    ctx.console.print(f"{Icons.TREE} [{Colors.PRIMARY}]{escape(lines[0])}[/{Colors.PRIMARY}]")
    for line in lines[1:]:
        ctx.console.print(line, markup=False, highlight=False)
    ctx.console.print()


def cmd_find(args: list[str], ctx: SessionContext) -> None:
    usage = "/find <pattern> [dir]"
    if not args:
        raise ParseError("Missing pattern", usage)
    matches = files.find(ctx.root, args[0], " ".join(args[1:]) or ".")
    if not matches:
        print_warning(ctx.console, f"No matches for {args[0]}")
        ctx.console.print()
        return
    print_heading(ctx.console, f"{Icons.SEARCH} {len(matches)} match(es)")
    for match in matches:
        ctx.console.print(f"  {file_icon(match)} {escape(match)}", highlight=False)
    ctx.console.print()


def cmd_stat(args: list[str], ctx: SessionContext) -> None:
    info = files.stat(ctx.root, _path_arg(args, "/stat <path>"))
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column()
    table.add_row("Path", escape(info.path))
    table.add_row("Type", "directory" if info.is_dir else "file")
    table.add_row("Size", format_size(info.size))
    table.add_row("Modified", f"{info.modified:%Y-%m-%d %H:%M:%S}")
    table.add_row("Created", f"{info.created:%Y-%m-%d %H:%M:%S}")
    table.add_row("Mode", info.mode)
    ctx.console.print()
    ctx.console.print(table)
    ctx.console.print()


def cmd_mkdir(args: list[str], ctx: SessionContext) -> None:
    path = _path_arg(args, "/mkdir <dir>")
    files.make_dir(ctx.root, path)
    print_success(ctx.console, f"Created {path}")
    ctx.console.print()


def cmd_rm(args: list[str], ctx: SessionContext) -> None:
    """Delete a file or directory; always asks first, even with auto-run on."""
    path = _path_arg(args, "/rm <path>")
    if not ctx.confirm(f"Delete {path}?"):
        ctx.console.print("[dim]Cancelled[/dim]")
        ctx.console.print()
        return
    files.remove(ctx.root, path)
    print_success(ctx.console, f"Removed {path}")
    ctx.console.print()


def cmd_cp(args: list[str], ctx: SessionContext) -> None:
    if len(args) < 2:
        raise ParseError("Source and destination required", "/cp <src> <dst>")
    files.copy(ctx.root, args[0], " ".join(args[1:]))
    print_success(ctx.console, f"Copied {args[0]} -> {' '.join(args[1:])}")
    ctx.console.print()


def cmd_mv(args: list[str], ctx: SessionContext) -> None:
    if len(args) < 2:
        raise ParseError("Source and destination required", "/mv <src> <dst>")
    files.move(ctx.root, args[0], " ".join(args[1:]))
    print_success(ctx.console, f"Moved {args[0]} -> {' '.join(args[1:])}")
    ctx.console.print()


def cmd_read(args: list[str], ctx: SessionContext) -> None:
    path = _path_arg(args, "/read <file>")
    content = files.read_file(ctx.root, path)
    info = files.stat(ctx.root, path)
    line_count = len(content.split("\n"))
    ctx.console.print()
    ctx.console.print(
        f"{file_icon(path)} [bold {Colors.PRIMARY}]{escape(info.path)}[/bold {Colors.PRIMARY}] "
        f"[dim]· {line_count} lines · {format_size(info.size)}[/dim]"
    )
    ctx.console.print()
    print_code(ctx.console, content, path, highlight=ctx.settings.syntax)
    ctx.files_read += 1
    ctx.console.print()


def cmd_write(args: list[str], ctx: SessionContext) -> None:
    path = _path_arg(args, "/write <file>")
    content = read_multiline(ctx)
    backup = files.write_file(ctx.root, path, content, state_dir=ctx.state_dir)
    print_success(ctx.console, f"Written to {path}")
    if backup is not None:
        ctx.console.print(f"[dim]Backup: {escape(backup.name)}[/dim]")
    ctx.console.print()


def cmd_restore(args: list[str], ctx: SessionContext) -> None:
    """List backups newest first; ``/restore <n> [path]`` restores one."""
    backups = files.list_backups(ctx.state_dir)
    if not backups:
        print_warning(ctx.console, "No backups found")
        ctx.console.print()
        return

    if not args:
        print_heading(ctx.console, f"{Icons.RECYCLE} Backups (newest first)")
        for number, backup in enumerate(backups, start=1):
            ctx.console.print(
                f"  [{Colors.PRIMARY}]{number:>3}.[/{Colors.PRIMARY}] {escape(backup.name)} "
                f"[dim]· {backup.modified:%Y-%m-%d %H:%M:%S}[/dim]",
                highlight=False,
            )
        ctx.console.print()
        ctx.console.print(r"[dim]Restore with: /restore <number> \[path][/dim]")
        ctx.console.print()
        return

    usage = "/restore [number] [path]"
    try:
        index = int(args[0])
    except ValueError:
        raise ParseError(f"Not a backup number: {args[0]}", usage) from None
    if not 1 <= index <= len(backups):
        raise ParseError(f"Backup number out of range: {index}", usage)
    backup = backups[index - 1]
    target = files.restore_backup(ctx.root, backup, " ".join(args[1:]) or None)
    print_success(ctx.console, f"Restored {backup.name} -> {relative_to_root(ctx.root, target)}")
    ctx.console.print()


def register(registry: CommandRegistry) -> None:
    group = CommandCategory.FILES
    registry.command("root", "Show the project root", "/root", group)(cmd_root)
    registry.command("ls", "List a directory", "/ls [dir]", group)(cmd_ls)
    registry.command("cd", "Change the project root", "/cd <dir>", group)(cmd_cd)
    registry.command("tree", "Show a directory tree", "/tree [dir]", group)(cmd_tree)
    registry.command("find", "Find files by name", "/find <pattern> [dir]", group)(cmd_find)
    registry.command("stat", "Show file details", "/stat <path>", group)(cmd_stat)
    registry.command("mkdir", "Create a directory", "/mkdir <dir>", group)(cmd_mkdir)
    registry.command("rm", "Delete a file or directory", "/rm <path>", group)(cmd_rm)
    registry.command("cp", "Copy a file or directory", "/cp <src> <dst>", group)(cmd_cp)
    registry.command("mv", "Move or rename", "/mv <src> <dst>", group)(cmd_mv)
    registry.command("read", "Show a file with line numbers", "/read <file>", group)(cmd_read)
    registry.command("write", "Write pasted content to a file", "/write <file>", group)(cmd_write)
    registry.command("restore", "List or restore backups", "/restore [number] [path]", group)(cmd_restore)
