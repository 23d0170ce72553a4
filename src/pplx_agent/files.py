"""Filesystem operations confined to the project root.

Every function takes the root and a user-supplied path, resolves it through
:func:`pplx_agent.security.resolve_path`, and raises ``PathEscapeError`` before
touching anything outside the root.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pplx_agent.exceptions import NotFoundError, ParseError
from pplx_agent.security import relative_to_root, resolve_path

logger = logging.getLogger(__name__)

BACKUP_DIRNAME = ".pplx-backups"
TREE_MAX_DEPTH = 3


@dataclass
class DirEntry:
    name: str
    is_dir: bool
    size: int = 0


@dataclass
class FileStat:
    """Metadata shown by ``/stat``."""

    path: str
    is_dir: bool
    size: int
    modified: datetime
    created: datetime
    mode: str


@dataclass
class Backup:
    name: str
    path: Path
    modified: datetime


def list_dir(root: str | Path, path: str | Path = ".") -> list[DirEntry]:
    """List a directory with directories first, then files, each sorted by name."""
    target = resolve_path(root, path)
    if not target.is_dir():
        raise NotFoundError("directory", str(path))
    dirs: list[DirEntry] = []
    files: list[DirEntry] = []
    with os.scandir(target) as it:
        for entry in it:
            if entry.is_dir():
                dirs.append(DirEntry(entry.name, True))
            else:
                try:
                    size = entry.stat().st_size
                except OSError:
                    size = 0
                files.append(DirEntry(entry.name, False, size))
    dirs.sort(key=lambda e: e.name)
    files.sort(key=lambda e: e.name)
    return dirs + files


def tree(root: str | Path, path: str | Path = ".", max_depth: int = TREE_MAX_DEPTH) -> list[str]:
    """Render a directory tree as text lines, skipping dot-entries."""
    target = resolve_path(root, path)
    if not target.is_dir():
        raise NotFoundError("directory", str(path))
    lines = [f"{target.name or str(target)}/"]

    def walk(directory: Path, prefix: str, depth: int) -> None:
        if depth >= max_depth:
            return
        try:
            with os.scandir(directory) as it:
                entries = sorted(
                    (e for e in it if not e.name.startswith(".")),
                    key=lambda e: (not e.is_dir(), e.name),
                )
        except OSError:
            return
        for index, entry in enumerate(entries):
            last = index == len(entries) - 1
            connector = "└── " if last else "├── "
            suffix = "/" if entry.is_dir() else ""
            lines.append(f"{prefix}{connector}{entry.name}{suffix}")
            if entry.is_dir(follow_symlinks=False):
                walk(Path(entry.path), prefix + ("    " if last else "│   "), depth + 1)

    walk(target, "", 0)
    return lines


def find(root: str | Path, pattern: str, path: str | Path = ".") -> list[str]:
    """Case-insensitive regex match over entry names below ``path``.

    Raises:
        ParseError: If ``pattern`` is not a valid regular expression
    """
    try:
        regex = re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise ParseError(f"Invalid pattern: {e}", "/find <pattern> [dir]") from None
    target = resolve_path(root, path)
    matches: list[str] = []
    for dirpath, dirnames, filenames in os.walk(target):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith(".") and d != "node_modules")
        for name in sorted(dirnames + filenames):
            if regex.search(name):
                matches.append(relative_to_root(root, Path(dirpath) / name))
    return matches


def stat(root: str | Path, path: str | Path) -> FileStat:
    target = resolve_path(root, path)
    if not target.exists():
        raise NotFoundError("file", str(path))
    st = target.stat()
    return FileStat(
        path=relative_to_root(root, target),
        is_dir=target.is_dir(),
        size=st.st_size,
        modified=datetime.fromtimestamp(st.st_mtime),
        created=datetime.fromtimestamp(st.st_ctime),
        mode=oct(st.st_mode & 0o777),
    )


def make_dir(root: str | Path, path: str | Path) -> Path:
    target = resolve_path(root, path)
    target.mkdir(parents=True, exist_ok=True)
    logger.debug("Created directory", extra={"path": str(target)})
    return target


def remove(root: str | Path, path: str | Path) -> Path:
    """Delete a file, or a directory recursively. The root itself is refused."""
    target = resolve_path(root, path)
    if target == Path(root).resolve():
        raise ParseError("Refusing to remove the project root", "/rm <path>")
    if not target.exists():
        raise NotFoundError("file", str(path))
    if target.is_dir():
        shutil.rmtree(target)
    else:
        target.unlink()
    logger.info("Removed path", extra={"path": str(target)})
    return target


def copy(root: str | Path, src: str | Path, dst: str | Path) -> Path:
    source = resolve_path(root, src)
    dest = resolve_path(root, dst)
    if not source.exists():
        raise NotFoundError("file", str(src))
    if source.is_dir():
        shutil.copytree(source, dest, dirs_exist_ok=True)
    else:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, dest)
    return dest


def move(root: str | Path, src: str | Path, dst: str | Path) -> Path:
    source = resolve_path(root, src)
    dest = resolve_path(root, dst)
    if not source.exists():
        raise NotFoundError("file", str(src))
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(source), str(dest))
    return dest


def read_file(root: str | Path, path: str | Path) -> str:
    target = resolve_path(root, path)
    if not target.is_file():
        raise NotFoundError("file", str(path))
    return target.read_text(encoding="utf-8", errors="replace")


def backup_dir(state_dir: str | Path) -> Path:
    return Path(state_dir) / BACKUP_DIRNAME


def write_file(root: str | Path, path: str | Path, content: str, *, state_dir: str | Path) -> Path | None:
    """Write ``content`` to ``path``, backing up any existing file first.

    Returns:
        The backup path, or ``None`` when the file was new
    """
    target = resolve_path(root, path)
    backup = None
    if target.is_file():
        stamp = datetime.now().strftime("%Y%m%d%H%M%S%f")
        # Stored under its root-relative path
        backup = backup_dir(state_dir) / f"{relative_to_root(root, target)}.{stamp}.bak"
        backup.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(target, backup)
        logger.debug("Backed up file", extra={"path": str(target), "backup": str(backup)})
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return backup


def list_backups(state_dir: str | Path) -> list[Backup]:
    """Backups made by :func:`write_file`, newest first."""
    backups = backup_dir(state_dir)
    if not backups.is_dir():
        return []
    result = [
        Backup(p.relative_to(backups).as_posix(), p, datetime.fromtimestamp(p.stat().st_mtime))
        for p in backups.rglob("*.bak")
        if p.is_file()
    ]
    result.sort(key=lambda b: (b.modified, b.name), reverse=True)
    return result


def original_name(backup_name: str) -> str:
    """Root-relative path a backup was taken from (``src/app.py.20240101120000000000.bak`` -> ``src/app.py``)."""
    return re.sub(r"\.\d{14,20}\.bak$", "", backup_name)


def restore_backup(root: str | Path, backup: Backup, path: str | Path | None = None) -> Path:
    """Copy a backup over ``path`` (default: the file it was taken from)."""
    target = resolve_path(root, path if path is not None else original_name(backup.name))
    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(backup.path, target)
    logger.info("Restored backup", extra={"backup": str(backup.path), "path": str(target)})
    return target
