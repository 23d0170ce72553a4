"""Project discovery: type detection, file collection, grep, TODOs, dependencies."""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

logger = logging.getLogger(__name__)

SKIP_DIRS = frozenset(
    {"node_modules", ".git", "build", "dist", ".gradle", "__pycache__", "target", ".venv"}
)
IMPORTANT_FILE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"README|\.md$", re.IGNORECASE),
    re.compile(r"package\.json|build\.gradle|settings\.gradle|AndroidManifest\.xml$", re.IGNORECASE),
    re.compile(r"\.(kt|java|js|ts|py|rs|go)$", re.IGNORECASE),
)
TODO_PATTERN = r"(TODO|FIXME|BUG|HACK):?"


class ProjectType(str, Enum):
    """Detected project flavour."""

    ANDROID = "android"
    GRADLE = "gradle"
    JAVASCRIPT = "javascript"
    JAVA_MAVEN = "java-maven"
    PYTHON = "python"
    RUST = "rust"
    GO = "go"
    UNKNOWN = "unknown"


@dataclass
class GrepMatch:
    file: str
    line: int
    content: str


@dataclass
class Dependencies:
    """Declared dependencies, split into runtime and development."""

    source: str
    dependencies: dict[str, str]
    dev_dependencies: dict[str, str]


def analyze_project(root: str | Path) -> ProjectType:
    """Guess the project type from marker files in ``root``."""
    try:
        items = set(os.listdir(root))
    except OSError:
        return ProjectType.UNKNOWN
    if "build.gradle" in items or "build.gradle.kts" in items:
        return ProjectType.ANDROID if "app" in items else ProjectType.GRADLE
    if "package.json" in items:
        return ProjectType.JAVASCRIPT
    if "pom.xml" in items:
        return ProjectType.JAVA_MAVEN
    if "requirements.txt" in items or "pyproject.toml" in items:
        return ProjectType.PYTHON
    if "Cargo.toml" in items:
        return ProjectType.RUST
    if "go.mod" in items:
        return ProjectType.GO
    return ProjectType.UNKNOWN


def collect_project_files(root: str | Path, max_depth: int = 2) -> list[str]:
    """Collect root-relative paths of notable source and manifest files.

    Dot-entries and build/dependency directories are skipped. ``max_depth``
    counts directory levels below the root.
    """
    root = Path(root)
    files: list[str] = []

    def scan(directory: Path, depth: int) -> None:
        if depth > max_depth:
            return
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError:
            return
        for entry in entries:
            if entry.name.startswith("."):
                continue
            if entry.is_dir(follow_symlinks=False):
                if entry.name not in SKIP_DIRS:
                    scan(Path(entry.path), depth + 1)
            elif any(p.search(entry.name) for p in IMPORTANT_FILE_PATTERNS):
                files.append(Path(entry.path).relative_to(root).as_posix())

    scan(root, 0)
    return files


def grep_project(root: str | Path, pattern: str, *, max_depth: int = 4) -> list[GrepMatch]:
    """Case-insensitive regex search over the collected project files.

    Raises:
        re.error: If ``pattern`` is not a valid regular expression
    """
    regex = re.compile(pattern, re.IGNORECASE)
    matches: list[GrepMatch] = []
    root = Path(root)
    for rel in collect_project_files(root, max_depth=max_depth):
        try:
            text = (root / rel).read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        for number, line in enumerate(text.split("\n"), start=1):
            if regex.search(line):
                matches.append(GrepMatch(file=rel, line=number, content=line.strip()))
    return matches


def scan_todos(root: str | Path) -> list[GrepMatch]:
    return grep_project(root, TODO_PATTERN)


def analyze_deps(root: str | Path) -> Dependencies | None:
    """Read dependencies from ``package.json`` or ``requirements.txt``."""
    root = Path(root)
    package_json = root / "package.json"
    if package_json.is_file():
        try:
            pkg = json.loads(package_json.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.debug("Unreadable package.json", extra={"path": str(package_json)})
            return None
        return Dependencies(
            source="package.json",
            dependencies=dict(pkg.get("dependencies") or {}),
            dev_dependencies=dict(pkg.get("devDependencies") or {}),
        )

    requirements = root / "requirements.txt"
    if requirements.is_file():
        deps: dict[str, str] = {}
        for line in requirements.read_text(encoding="utf-8").splitlines():
            line = line.split("#", 1)[0].strip()
            if not line or line.startswith("-"):
                continue
            match = re.match(r"([A-Za-z0-9_.\-\[\]]+)\s*(.*)", line)
            if match:
                deps[match.group(1)] = match.group(2) or "*"
        return Dependencies(source="requirements.txt", dependencies=deps, dev_dependencies={})
    return None
