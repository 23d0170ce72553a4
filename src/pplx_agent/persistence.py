"""
Flat JSON stores for sessions, snippets and the project brain.

Each store reads and writes its file whole. Files live in the state
directory (the launch directory unless configured otherwise).
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pplx_agent.conversation import ConversationTurn
from pplx_agent.exceptions import NotFoundError

logger = logging.getLogger(__name__)

SESSION_DIRNAME = ".pplx-sessions"
SNIPPETS_FILENAME = "pplx-snippets.json"
BRAIN_FILENAME = ".pplx-brain.json"
AUTOSAVE_TAG = "autosave-last"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


@dataclass
class SessionData:
    """A saved conversation."""

    tag: str
    timestamp: str
    root: str
    history: list[ConversationTurn] = field(default_factory=list)
    settings: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "root": self.root,
            "history": [t.to_dict() for t in self.history],
            "settings": self.settings,
        }

    @classmethod
    def from_dict(cls, tag: str, data: dict[str, Any]) -> "SessionData":
        return cls(
            tag=tag,
            timestamp=data.get("timestamp", ""),
            root=data.get("root", ""),
            history=[ConversationTurn.from_dict(t) for t in data.get("history", [])],
            settings=dict(data.get("settings") or {}),
        )


class SessionStore:
    """Saved sessions under ``.pplx-sessions/<tag>.json``."""

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = base_dir / SESSION_DIRNAME

    def _session_path(self, tag: str) -> Path:
        safe_tag = re.sub(r"[^\w.\-]", "_", tag)
        return self.base_dir / f"{safe_tag}.json"

    def save(
        self,
        tag: str,
        history: list[ConversationTurn],
        root: str | Path,
        settings: dict[str, Any],
    ) -> Path:
        data = SessionData(tag=tag, timestamp=_now(), root=str(root), history=list(history), settings=settings)
        path = self._session_path(tag)
        _write_json(path, data.to_dict())
        logger.debug("Session saved", extra={"tag": tag, "messages": len(history)})
        return path

    def load(self, tag: str) -> SessionData:
        """Load a session.

        Raises:
            NotFoundError: If no session with ``tag`` exists or it is unreadable
        """
        path = self._session_path(tag)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise NotFoundError("session", tag) from None
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Unreadable session file", extra={"path": str(path), "error": str(e)})
            raise NotFoundError("session", tag) from e
        return SessionData.from_dict(tag, data)

    def list_sessions(self) -> list[SessionData]:
        """All readable sessions, newest first."""
        if not self.base_dir.is_dir():
            return []
        sessions = []
        for path in self.base_dir.glob("*.json"):
            try:
                with open(path, encoding="utf-8") as f:
                    sessions.append(SessionData.from_dict(path.stem, json.load(f)))
            except (OSError, json.JSONDecodeError):
                logger.debug("Skipping unreadable session", extra={"path": str(path)})
        sessions.sort(key=lambda s: s.timestamp, reverse=True)
        return sessions


@dataclass
class Snippet:
    code: str
    timestamp: str

    @property
    def preview(self) -> str:
        return self.code.split("\n")[0][:50]


class SnippetStore:
    """Named code snippets in ``pplx-snippets.json`` as ``{name: {code, timestamp}}``."""

    def __init__(self, base_dir: Path) -> None:
        self.path = base_dir / SNIPPETS_FILENAME
        self._snippets: dict[str, Snippet] = {}
        self._loaded = False

    def _load(self) -> dict[str, Snippet]:
        if self._loaded:
            return self._snippets
        self._loaded = True
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            return self._snippets
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not load snippets", extra={"path": str(self.path), "error": str(e)})
            return self._snippets
        for name, entry in raw.items():
            if isinstance(entry, dict) and "code" in entry:
                self._snippets[name] = Snippet(code=str(entry["code"]), timestamp=str(entry.get("timestamp", "")))
        return self._snippets

    def _flush(self) -> None:
        _write_json(self.path, {name: asdict(s) for name, s in self._snippets.items()})

    def save(self, name: str, code: str) -> Snippet:
        snippets = self._load()
        snippet = Snippet(code=code, timestamp=_now())
        snippets[name] = snippet
        self._flush()
        return snippet

    def get(self, name: str) -> Snippet:
        """Raises ``NotFoundError`` for an unknown name."""
        try:
            return self._load()[name]
        except KeyError:
            raise NotFoundError("snippet", name) from None

    def delete(self, name: str) -> None:
        snippets = self._load()
        if name not in snippets:
            raise NotFoundError("snippet", name)
        del snippets[name]
        self._flush()

    def items(self) -> list[tuple[str, Snippet]]:
        return list(self._load().items())

    def __len__(self) -> int:
        return len(self._load())


@dataclass
class ProjectBrain:
    """Long-lived project notes sent with every chat request."""

    name: str
    description: str = ""
    architecture: str = ""
    conventions: str = ""
    important_files: list[str] = field(default_factory=list)
    last_updated: str | None = None
    notes: list[str] = field(default_factory=list)

    @property
    def has_context(self) -> bool:
        return bool(self.description or self.architecture)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "architecture": self.architecture,
            "conventions": self.conventions,
            "importantFiles": list(self.important_files),
            "lastUpdated": self.last_updated,
            "notes": list(self.notes),
        }

    def merge(self, analysis: dict[str, Any]) -> None:
        """Merge an AI analysis (``description``/``architecture``/``conventions``)."""
        for key in ("name", "description", "architecture", "conventions"):
            value = analysis.get(key)
            if value:
                setattr(self, key, value if isinstance(value, str) else json.dumps(value))

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_name: str) -> "ProjectBrain":
        return cls(
            name=str(data.get("name") or default_name),
            description=str(data.get("description") or ""),
            architecture=str(data.get("architecture") or ""),
            conventions=str(data.get("conventions") or ""),
            important_files=[str(f) for f in data.get("importantFiles") or []],
            last_updated=data.get("lastUpdated"),
            notes=[str(n) for n in data.get("notes") or []],
        )


class BrainStore:
    """The project brain in ``.pplx-brain.json``."""

    def __init__(self, base_dir: Path) -> None:
        self.path = base_dir / BRAIN_FILENAME

    def load(self, root: str | Path) -> ProjectBrain:
        """Load the brain, or a blank one named after ``root`` if missing or corrupt."""
        default_name = Path(root).name
        try:
            with open(self.path, encoding="utf-8") as f:
                return ProjectBrain.from_dict(json.load(f), default_name)
        except FileNotFoundError:
            return ProjectBrain(name=default_name)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not load brain", extra={"path": str(self.path), "error": str(e)})
            return ProjectBrain(name=default_name)

    def save(self, brain: ProjectBrain) -> None:
        brain.last_updated = _now()
        _write_json(self.path, brain.to_dict())
        logger.debug("Brain saved", extra={"path": str(self.path)})


@dataclass
class Stores:
    """Every store rooted at one state directory."""

    state_dir: Path
    sessions: SessionStore
    snippets: SnippetStore
    brain: BrainStore

    @classmethod
    def in_dir(cls, state_dir: Path) -> "Stores":
        return cls(
            state_dir=state_dir,
            sessions=SessionStore(state_dir),
            snippets=SnippetStore(state_dir),
            brain=BrainStore(state_dir),
        )
