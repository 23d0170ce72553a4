"""
Security utilities for pplx-agent.

Confines every user-supplied path to the current project root and filters the
environment handed to subprocesses (git, clipboard helpers) so the API key is
never inherited by them.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Sequence

from pplx_agent.exceptions import PathEscapeError

# Environment variables that are safe to pass to subprocesses
ENV_ALLOWLIST: frozenset[str] = frozenset(
    {
        "PATH",
        "HOME",
        "USER",
        "SHELL",
        "TERM",
        "LANG",
        "LC_ALL",
        "LC_CTYPE",
        "TZ",
        "TMPDIR",
        "TEMP",
        "TMP",
        "EDITOR",
        "VISUAL",
        "DISPLAY",
        "WAYLAND_DISPLAY",
        "SYSTEMROOT",
        "GIT_AUTHOR_NAME",
        "GIT_AUTHOR_EMAIL",
        "GIT_COMMITTER_NAME",
        "GIT_COMMITTER_EMAIL",
        "XDG_CONFIG_HOME",
        "XDG_DATA_HOME",
        "XDG_CACHE_HOME",
        "XDG_RUNTIME_DIR",
    }
)


def filter_env_vars(
    env: Mapping[str, str] | None = None,
    *,
    allowlist: frozenset[str] | None = None,
    include_prefixes: Sequence[str] | None = None,
) -> dict[str, str]:
    """Filter environment variables to only include safe ones.

    Args:
        env: Environment dict to filter (defaults to os.environ)
        allowlist: Set of allowed variable names (defaults to ENV_ALLOWLIST)
        include_prefixes: Additional prefixes to allow (e.g., ["GIT_"])

    Returns:
        Filtered environment dictionary
    """
    if env is None:
        env = os.environ
    if allowlist is None:
        allowlist = ENV_ALLOWLIST

    prefixes = tuple(include_prefixes) if include_prefixes else ()

    result: dict[str, str] = {}
    for key, value in env.items():
        if key in allowlist:
            result[key] = value
        elif prefixes and key.startswith(prefixes):
            result[key] = value
    return result


def resolve_path(root: str | Path, path: str | Path) -> Path:
    """Resolve ``path`` against ``root`` and confine it there.

    Relative paths are taken from ``root``; absolute paths are accepted only
    if they already lie under it. The root itself is a valid result.

    Args:
        root: Project root
        path: User-supplied path

    Returns:
        Absolute resolved path under ``root``

    Raises:
        PathEscapeError: If the path is outside ``root`` or cannot be resolved
    """
    raw = str(path)
    root_resolved = Path(root).resolve()

    if "\x00" in raw:
        raise PathEscapeError(raw[:100], str(root_resolved), {"reason": "null byte"})

    candidate = Path(raw).expanduser()
    if not candidate.is_absolute():
        candidate = root_resolved / candidate

    try:
        resolved = candidate.resolve()
    except (OSError, ValueError, RuntimeError) as e:
        raise PathEscapeError(raw, str(root_resolved), {"reason": str(e)}) from e

    try:
        resolved.relative_to(root_resolved)
    except ValueError:
        raise PathEscapeError(raw, str(root_resolved)) from None
    return resolved


def relative_to_root(root: str | Path, path: str | Path) -> str:
    """Root-relative POSIX form of an absolute path under ``root``."""
    rel = Path(path).resolve().relative_to(Path(root).resolve())
    return rel.as_posix() or "."
