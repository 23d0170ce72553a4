"""Terminal UI helpers for pplx-agent.

Colours, icons and small print helpers shared by the renderer and the command
handlers. Everything prints through a rich ``Console`` so tests can capture
output with ``Console(file=io.StringIO())``.
"""

from __future__ import annotations

import difflib
import os
from pathlib import Path

from rich.box import ROUNDED
from rich.console import Console
from rich.markup import escape
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.text import Text

# ═══════════════════════════════════════════════════════════════════════════════
# Theme and Icons
# ═══════════════════════════════════════════════════════════════════════════════


class Colors:
    """Active colour palette (see :func:`apply_color_scheme`)."""

    PRIMARY = "#20b8cd"  # Teal
    SECONDARY = "#9ece6a"
    ACCENT = "#bb9af7"

    SUCCESS = "#9ece6a"
    WARNING = "#e0af68"
    ERROR = "#f7768e"
    INFO = "#7dcfff"

    TEXT = "#c0caf5"
    TEXT_MUTED = "#565f89"
    TEXT_DIM = "#3b4261"

    BORDER = "#20b8cd"
    BORDER_ACTIVE = "#7aa2f7"


COLOR_SCHEMES = {
    "vibrant": {
        "PRIMARY": "#20b8cd",
        "SECONDARY": "#9ece6a",
        "ACCENT": "#bb9af7",
        "SUCCESS": "#9ece6a",
        "WARNING": "#e0af68",
        "ERROR": "#f7768e",
        "INFO": "#7dcfff",
        "TEXT": "#c0caf5",
        "TEXT_MUTED": "#565f89",
        "TEXT_DIM": "#3b4261",
        "BORDER": "#20b8cd",
        "BORDER_ACTIVE": "#7aa2f7",
    },
    "mono": {
        "PRIMARY": "white",
        "SECONDARY": "bright_white",
        "ACCENT": "white",
        "SUCCESS": "bright_white",
        "WARNING": "white",
        "ERROR": "bold white",
        "INFO": "white",
        "TEXT": "default",
        "TEXT_MUTED": "grey50",
        "TEXT_DIM": "grey35",
        "BORDER": "grey50",
        "BORDER_ACTIVE": "white",
    },
    "ocean": {
        "PRIMARY": "#7aa2f7",
        "SECONDARY": "#7dcfff",
        "ACCENT": "#2ac3de",
        "SUCCESS": "#73daca",
        "WARNING": "#e0af68",
        "ERROR": "#f7768e",
        "INFO": "#7dcfff",
        "TEXT": "#c0caf5",
        "TEXT_MUTED": "#565f89",
        "TEXT_DIM": "#3b4261",
        "BORDER": "#7aa2f7",
        "BORDER_ACTIVE": "#2ac3de",
    },
}


def apply_color_scheme(name: str) -> None:
    """Apply a colour scheme globally; unknown names fall back to ``vibrant``."""
    palette = COLOR_SCHEMES.get(name, COLOR_SCHEMES["vibrant"])
    for key, value in palette.items():
        setattr(Colors, key, value)


class Icons:
    """Unicode icons."""

    PROMPT = "λ"
    DONE = "✓"
    ERROR = "✗"
    WARNING = "⚠"
    INFO = "ℹ"
    ALIAS = "➜"
    FOLDER = "📂"
    FILE = "📄"
    TREE = "🌳"
    PIN = "📍"
    LOCK = "🔐"
    SEARCH = "🔍"
    GIT = "🔀"
    LOG = "📜"
    SNIPPET = "✂️"
    BRAIN = "🧠"
    STATS = "📊"
    ROLE = "🎭"
    TEST = "🧪"
    DOC = "📝"
    PACKAGE = "📦"
    RECYCLE = "♻️"
    SPARKLE = "✨"
    WAVE = "👋"
    RESPONSE = "◈"


FILE_ICONS = {
    ".py": "🐍",
    ".js": "📜",
    ".mjs": "📜",
    ".ts": "📘",
    ".tsx": "📘",
    ".jsx": "📜",
    ".json": "📋",
    ".md": "📝",
    ".kt": "🟣",
    ".java": "☕",
    ".rs": "🦀",
    ".go": "🐹",
    ".html": "🌐",
    ".css": "🎨",
    ".xml": "📰",
    ".gradle": "🐘",
    ".toml": "⚙️",
    ".yml": "⚙️",
    ".yaml": "⚙️",
}

SYNTAX_LEXERS = {
    ".py": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".jsx": "jsx",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".json": "json",
    ".kt": "kotlin",
    ".java": "java",
    ".rs": "rust",
    ".go": "go",
    ".md": "markdown",
    ".xml": "xml",
    ".toml": "toml",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".sh": "bash",
}


def file_icon(name: str | Path) -> str:
    return FILE_ICONS.get(Path(name).suffix.lower(), Icons.FILE)


def terminal_editor(configured: str = "") -> str:
    """Editor named by the settings, ``$VISUAL`` or ``$EDITOR``."""
    return configured or os.environ.get("VISUAL") or os.environ.get("EDITOR") or ""


def format_size(size: int) -> str:
    """Human-readable byte count."""
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


# ═══════════════════════════════════════════════════════════════════════════════
# Print helpers
# ═══════════════════════════════════════════════════════════════════════════════


def print_success(console: Console, message: str) -> None:
    console.print(f"[{Colors.SUCCESS}]{Icons.DONE}[/{Colors.SUCCESS}] {escape(message)}")


def print_warning(console: Console, message: str) -> None:
    console.print(f"[{Colors.WARNING}]{Icons.WARNING}[/{Colors.WARNING}] {escape(message)}")


def print_error(console: Console, message: str) -> None:
    console.print(f"[{Colors.ERROR}]{Icons.ERROR} Error:[/{Colors.ERROR}] {escape(message)}", highlight=False)


def print_usage(console: Console, usage: str) -> None:
    console.print(
        f"[{Colors.WARNING}]{Icons.WARNING}[/{Colors.WARNING}] Usage: [{Colors.INFO}]{escape(usage)}[/{Colors.INFO}]"
    )


def print_heading(console: Console, title: str, icon: str = "") -> None:
    console.print()
    prefix = f"{icon} " if icon else ""
    console.print(f"[bold {Colors.PRIMARY}]{prefix}{title}[/bold {Colors.PRIMARY}]")
    console.print()


def print_response(console: Console, text: str, *, markdown: bool = True) -> None:
    """Print an assistant reply."""
    console.print()
    console.print(f"[bold {Colors.ACCENT}]{Icons.RESPONSE} AI Response:[/bold {Colors.ACCENT}]")
    console.print()
    if markdown:
        console.print(Markdown(text))
    else:
        console.print(text, markup=False, highlight=False)
    console.print()


def print_code(console: Console, code: str, filename: str, *, highlight: bool = True) -> None:
    """Print code with line numbers, highlighted by file extension."""
    lexer = SYNTAX_LEXERS.get(Path(filename).suffix.lower(), "text")
    if highlight:
        console.print(Syntax(code, lexer, line_numbers=True, word_wrap=False))
        return
    for number, line in enumerate(code.split("\n"), start=1):
        row = Text(f"{number:>4} ", style=Colors.TEXT_MUTED)
        row.append(line)
        console.print(row)


def print_panel(console: Console, body: str | Text, title: str) -> None:
    console.print(
        Panel(
            body,
            title=title,
            title_align="left",
            border_style=Colors.BORDER,
            box=ROUNDED,
        )
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Diff rendering
# ═══════════════════════════════════════════════════════════════════════════════


def unified_diff(original: str, updated: str, filename: str = "file") -> str:
    lines = difflib.unified_diff(
        original.splitlines(),
        updated.splitlines(),
        fromfile=f"a/{filename}",
        tofile=f"b/{filename}",
        lineterm="",
    )
    return "\n".join(lines)


def render_diff(diff_text: str, show_line_numbers: bool = True) -> Text:
    """Render a unified diff with colours and new-side line numbers."""
    result = Text()
    old_ln = 0
    new_ln = 0
    ln_width = 4

    for line in diff_text.split("\n"):
        if line.startswith("@@"):
            try:
                parts = line.split()
                old_ln = int(parts[1][1:].split(",")[0])
                new_ln = int(parts[2][1:].split(",")[0])
            except (ValueError, IndexError):
                old_ln, new_ln = 1, 1
            if result:
                result.append(f"{' ' * (ln_width + 1)}⋮\n", style="dim")
            continue

        if line.startswith(("---", "+++")):
            continue
        if line.startswith("+"):
            if show_line_numbers:
                result.append(f"{new_ln:>{ln_width}} ", style="dim")
            result.append(f"+{line[1:]}\n", style="green")
            new_ln += 1
        elif line.startswith("-"):
            if show_line_numbers:
                result.append(f"{old_ln:>{ln_width}} ", style="dim")
            result.append(f"-{line[1:]}\n", style="red")
            old_ln += 1
        elif line.startswith(" "):
            if show_line_numbers:
                result.append(f"{new_ln:>{ln_width}} ", style="dim")
            result.append(f" {line[1:]}\n", style="default")
            old_ln += 1
            new_ln += 1

    return result


def strip_code_fences(text: str) -> str:
    """Remove a single surrounding markdown code fence, if present."""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return text
    lines = stripped.split("\n")
    if lines[-1].strip() == "```":
        lines = lines[1:-1]
    else:
        lines = lines[1:]
    return "\n".join(lines)
