"""
Context assembly for free-text questions.

Decides which project files a question needs, asks the user before reading
them, bundles their contents, and builds the message list sent to the chat
API (system prompt, optional persona, conversation turns).
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from rich.markup import escape

from pplx_agent.conversation import ConversationBuffer, ConversationTurn, Role
from pplx_agent.exceptions import PathEscapeError
from pplx_agent.persistence import ProjectBrain
from pplx_agent.project import ProjectType, analyze_project, collect_project_files
from pplx_agent.security import relative_to_root, resolve_path
from pplx_agent.settings import Settings
from pplx_agent.ui import Colors, Icons, file_icon, print_warning

if TYPE_CHECKING:
    from pplx_agent.session import SessionContext

logger = logging.getLogger(__name__)

REASONING_MODEL = "sonar-reasoning"
DISCOVERY_DEPTH = 3
TRACE_PREVIEW_LINES = 50
IMPORT_EXTENSIONS = ("", ".js", ".mjs", ".ts", ".jsx", ".tsx", ".json", ".py")

MENTION_PATTERN = re.compile(r"@([\w.\-/]+)")

_CONVERSATIONAL_PATTERNS = tuple(
    re.compile(p)
    for p in (
        r"^(hi|hello|hey|yo|sup|wassup)$",
        r"^(thanks|thank you|thx|ty)$",
        r"^(ok|okay|cool|nice|awesome|great)$",
        r"^(bye|goodbye|see you|later)$",
        r"^(yes|no|yep|nope|yeah|nah)$",
        r"^(lol|lmao|haha|😂|👍)$",
        r"^(oh|hmm|uh|ah|wow)$",
    )
)
_ACKNOWLEDGEMENT_PATTERN = re.compile(r"^(ok|cool|nice|thanks|alright)\s+(bro|man|dude|mate)")

_NEEDS_FILES_PATTERNS = tuple(
    re.compile(p)
    for p in (
        r"what.*do",
        r"explain",
        r"show",
        r"find",
        r"search",
        r"dependenc",
        r"import",
        r"function",
        r"class",
        r"code",
        r"file",
        r"implement",
        r"how.*work",
        r"manifest",
        r"permission",
        r"gradle",
        r"build",
    )
)

_COMPLEX_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"fix.*bug",
        r"debug",
        r"why.*fail",
        r"root cause",
        r"complex",
        r"architecture",
        r"design pattern",
        r"optimize",
        r"refactor",
        r"security",
        r"memory leak",
    )
)

_JS_IMPORT = re.compile(r"""import\s+.*?\s+from\s+['"](.*?)['"]""")
_PY_RELATIVE_IMPORT = re.compile(r"^\s*from\s+(\.+)([\w.]*)\s+import\b", re.MULTILINE)


# ═══════════════════════════════════════════════════════════════════════════════
# Query classification
# ═══════════════════════════════════════════════════════════════════════════════


def is_conversational(query: str) -> bool:
    """Small talk that never needs project files."""
    text = query.lower().strip()
    if len(text) < 15 and any(p.search(text) for p in _CONVERSATIONAL_PATTERNS):
        return True
    return bool(_ACKNOWLEDGEMENT_PATTERN.search(text))


def needs_files(query: str) -> bool:
    text = query.lower()
    return any(p.search(text) for p in _NEEDS_FILES_PATTERNS)


def classify_query(query: str) -> str | None:
    """Suggest a model for the query, or ``None`` to keep the active one."""
    if any(p.search(query) for p in _COMPLEX_PATTERNS):
        return REASONING_MODEL
    return None


def route_model(query: str, settings: Settings) -> str | None:
    """The model to switch to for this query, or ``None`` if no switch applies."""
    suggested = classify_query(query)
    if suggested and settings.smart_context and suggested != settings.model:
        return suggested
    return None


def parse_selection(text: str, count: int) -> list[int]:
    """Parse a 1-based selection like ``"1 3 5"``, ``"1,2"`` or ``"1-3 5"``.

    Out-of-range numbers and malformed tokens are dropped; duplicates keep
    their first position.
    """
    selected: list[int] = []
    for part in re.split(r"[\s,]+", text.strip()):
        if not part:
            continue
        if "-" in part:
            bounds = part.split("-")
            if len(bounds) != 2:
                continue
            try:
                start, end = int(bounds[0]), int(bounds[1])
            except ValueError:
                continue
            numbers = range(max(start, 1), min(end, count) + 1)
        else:
            try:
                numbers = range(int(part), int(part) + 1)
            except ValueError:
                continue
        for number in numbers:
            if 1 <= number <= count and number not in selected:
                selected.append(number)
    return selected


# ═══════════════════════════════════════════════════════════════════════════════
# File discovery
# ═══════════════════════════════════════════════════════════════════════════════


def resolve_mentions(root: str | Path, query: str) -> list[str]:
    """Root-relative paths of ``@file`` mentions that name existing files.

    Raises:
        PathEscapeError: If a mention resolves outside the root
    """
    found: list[str] = []
    for mention in MENTION_PATTERN.findall(query):
        path = resolve_path(root, mention)
        if path.is_file():
            rel = relative_to_root(root, path)
            if rel not in found:
                found.append(rel)
    return found


def _dedupe(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def discover_files(root: str | Path, query: str, settings: Settings) -> list[str]:
    """Pick the project files a question is about; the first rule that yields files wins."""
    explicit = resolve_mentions(root, query)
    if explicit:
        return explicit

    if settings.smart_file_detection and is_conversational(query):
        return []
    if not needs_files(query):
        return []

    text = query.lower()
    all_files = collect_project_files(root, max_depth=DISCOVERY_DEPTH)
    relevant: list[str] = []

    if analyze_project(root) is ProjectType.ANDROID:
        if "manifest" in text or "permission" in text:
            relevant += [f for f in all_files if "AndroidManifest.xml" in f]
        if any(word in text for word in ("main", "activity", "app do", "purpose")):
            relevant += [f for f in all_files if "MainActivity" in f or "Main" in f]
        if any(word in text for word in ("gradle", "dependenc", "build")):
            relevant += [f for f in all_files if "build.gradle" in f]

    if any(word in text for word in ("what", "about", "do")):
        relevant += [f for f in all_files if "readme" in f.lower()]

    if not relevant and settings.smart_context:
        markers = ("Main", "index", "app", "build.gradle", "AndroidManifest")
        relevant += [f for f in all_files if any(m in f for m in markers)]

    return _dedupe(relevant)[: settings.max_files_per_query]


# ═══════════════════════════════════════════════════════════════════════════════
# Import tracing and bundling
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class TracedFile:
    file: str
    content: str


def _import_targets(source: str) -> list[str]:
    """Relative import specifiers found in ``source``, as path fragments."""
    targets = [m for m in _JS_IMPORT.findall(source) if m.startswith(".")]
    for dots, module in _PY_RELATIVE_IMPORT.findall(source):
        if not module:
            continue
        prefix = "./" if len(dots) == 1 else "../" * (len(dots) - 1)
        targets.append(prefix + module.replace(".", "/"))
    return targets


def _resolve_import(root: Path, source_file: str, target: str) -> str | None:
    base = (root / source_file).parent / target
    for ext in IMPORT_EXTENSIONS:
        candidate = Path(f"{base}{ext}")
        if candidate.is_file():
            try:
                return relative_to_root(root, resolve_path(root, candidate))
            except PathEscapeError:
                return None
    return None


def trace_imports(root: str | Path, files: list[str]) -> list[TracedFile]:
    """Follow relative imports of ``files`` one level deep.

    Each newly found file is previewed with its first lines; files already in
    ``files`` or already traced are skipped.
    """
    root = Path(root).resolve()
    seen = set(files)
    traced: list[TracedFile] = []
    for file in files:
        try:
            source = (root / file).read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        for target in _import_targets(source):
            resolved = _resolve_import(root, file, target)
            if resolved is None or resolved in seen:
                continue
            seen.add(resolved)
            try:
                content = (root / resolved).read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            preview = "\n".join(content.split("\n")[:TRACE_PREVIEW_LINES])
            traced.append(TracedFile(resolved, preview + "\n... (more)"))
    logger.debug("Traced imports", extra={"files": len(files), "traced": len(traced)})
    return traced


def build_bundle(contents: list[tuple[str, str]], traced: list[TracedFile] | None = None) -> str:
    """Concatenate file contents (and traced previews) into one context block."""
    bundle = "".join(f"\n\n=== {name} ===\n{content}\n" for name, content in contents)
    for t in traced or []:
        bundle += f"\n\n=== [TRACED] {t.file} ===\n(First {TRACE_PREVIEW_LINES} lines preview)\n{t.content}\n"
    return bundle


def build_system_prompt(brain: ProjectBrain, bundle: str) -> str:
    brain_block = ""
    if brain.has_context:
        brain_block = f"\n\n=== PROJECT BRAIN ===\n{json.dumps(brain.to_dict(), indent=2)}\n"
    if bundle:
        return (
            "You are a helpful AI assistant. Use the project brain and files below:\n"
            f"{brain_block}\n{bundle}\n\n"
            "Provide detailed, accurate answers based on the actual code."
        )
    return f"You are a helpful AI assistant. Use this project context:\n{brain_block}\nProvide clear, concise answers."


def build_messages(
    brain: ProjectBrain,
    settings: Settings,
    conversation: ConversationBuffer,
    bundle: str = "",
) -> list[ConversationTurn]:
    """System prompt, optional persona, then the conversation turns in order."""
    messages = [ConversationTurn(Role.SYSTEM, build_system_prompt(brain, bundle))]
    if settings.role:
        messages.append(ConversationTurn(Role.SYSTEM, f"IMPORTANT: Adopt the persona of: {settings.role}"))
    messages.extend(conversation)
    return messages


# ═══════════════════════════════════════════════════════════════════════════════
# Assembler
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class AssembledContext:
    """Files actually read for one turn and their bundled contents."""

    files: list[str] = field(default_factory=list)
    bundle: str = ""
    traced: list[TracedFile] = field(default_factory=list)


class ContextAssembler:
    """Runs discovery, permission and reading against a live session context."""

    def __init__(self, ctx: SessionContext) -> None:
        self.ctx = ctx

    def discover(self, query: str) -> list[str]:
        files = discover_files(self.ctx.root, query, self.ctx.settings)
        if self.ctx.settings.verbose:
            if files:
                self.ctx.console.print(f"[dim]\\[Relevant files: {escape(', '.join(files))}][/dim]")
            else:
                self.ctx.console.print("[dim]\\[Smart detection: No files needed][/dim]")
        return files

    def request_permission(self, files: list[str]) -> list[str]:
        """Show the numbered file list and ask ``Allow? (y/n/select)``."""
        console = self.ctx.console
        console.print()
        console.print(f"[bold {Colors.WARNING}]{Icons.LOCK} Permission Request[/bold {Colors.WARNING}]")
        console.print()
        console.print("[dim]AI wants to read these files:[/dim]")
        console.print()
        for number, name in enumerate(files, start=1):
            console.print(
                f"  [{Colors.TEXT_MUTED}]{number}.[/{Colors.TEXT_MUTED}] {file_icon(name)} "
                f"[{Colors.PRIMARY}]{escape(name)}[/{Colors.PRIMARY}]"
            )
        console.print()

        answer = self.ctx.ask("Allow? (y/n/select): ").strip().lower()
        if answer in ("y", "yes"):
            return list(files)
        if answer in ("s", "select"):
            console.print('[dim]Enter numbers (e.g., "1 3 5" or "1-3"):[/dim]')
            selection = self.ctx.ask("Selection: ")
            return [files[n - 1] for n in parse_selection(selection, len(files))]
        return []

    def read(self, files: list[str]) -> list[tuple[str, str]]:
        """Read the allowed files, reporting each one."""
        console = self.ctx.console
        contents: list[tuple[str, str]] = []
        console.print(f"[{Colors.SUCCESS}]{Icons.DONE}[/{Colors.SUCCESS}] Reading files...")
        console.print()
        for name in files:
            try:
                content = resolve_path(self.ctx.root, name).read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.debug("Could not read file", extra={"file": name, "error": str(e)})
                console.print(
                    f"  [{Colors.ERROR}]{Icons.ERROR}[/{Colors.ERROR}] "
                    f"[{Colors.PRIMARY}]{escape(name)}[/{Colors.PRIMARY}] [dim](error)[/dim]"
                )
                continue
            lines = len(content.split("\n"))
            console.print(
                f"  {file_icon(name)} [{Colors.PRIMARY}]{escape(name)}[/{Colors.PRIMARY}] [dim]({lines} lines)[/dim]"
            )
            contents.append((name, content))
        console.print()
        self.ctx.files_read += len(contents)
        return contents

    def assemble(self, query: str) -> AssembledContext:
        """Discover, confirm and read the files for ``query``.

        Raises:
            PathEscapeError: If an ``@`` mention points outside the root
        """
        relevant = self.discover(query)
        if not relevant:
            return AssembledContext()

        if self.ctx.settings.ask_permission:
            allowed = self.request_permission(relevant)
        else:
            allowed = relevant
            self.ctx.console.print()
            self.ctx.console.print(f"[dim]Reading {len(allowed)} file(s)...[/dim]")
            self.ctx.console.print()

        if not allowed:
            print_warning(self.ctx.console, "No files read. Using general knowledge...")
            return AssembledContext()

        contents = self.read(allowed)
        traced: list[TracedFile] = []
        if self.ctx.settings.deep_analysis and contents:
            traced = trace_imports(self.ctx.root, [name for name, _ in contents])
            if traced:
                self.ctx.console.print(f"[dim]  + Traced {len(traced)} dependency file(s)[/dim]")

        return AssembledContext(
            files=[name for name, _ in contents],
            bundle=build_bundle(contents, traced),
            traced=traced,
        )
