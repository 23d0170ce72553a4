"""Per-process session context passed to every command handler."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Protocol

from rich.console import Console

from pplx_agent.client import ChatResponse, UsageStats
from pplx_agent.conversation import ConversationBuffer, ConversationTurn
from pplx_agent.exceptions import NotFoundError
from pplx_agent.persistence import ProjectBrain, Stores
from pplx_agent.settings import Settings, SettingsStore

if TYPE_CHECKING:
    from pplx_agent.commands.registry import CommandRegistry

logger = logging.getLogger(__name__)


class ChatBackend(Protocol):
    """Anything that can answer a list of turns (the real client or a test fake)."""

    def send(self, turns: list[ConversationTurn], *, model: str, temperature: float) -> ChatResponse: ...


@dataclass
class SessionContext:
    """Mutable state shared by the loop, the dispatcher and every handler.

    Handlers mutate it in place; there is exactly one per process.
    """

    settings: Settings
    root: Path
    console: Console
    client: ChatBackend
    stores: Stores
    settings_store: SettingsStore
    ask: Callable[[str], str]
    brain: ProjectBrain
    conversation: ConversationBuffer = field(default_factory=ConversationBuffer)
    usage: UsageStats = field(default_factory=UsageStats)
    registry: CommandRegistry | None = None
    last_error: str | None = None
    auto_run: bool = False
    files_read: int = 0
    started_at: float = field(default_factory=time.time)
    quit_requested: bool = False

    @property
    def state_dir(self) -> Path:
        return self.stores.state_dir

    def save_settings(self) -> None:
        self.settings_store.save(self.settings)

    def set_root(self, path: str | Path) -> Path:
        """Switch the project root.

        Raises:
            NotFoundError: If ``path`` is not an existing directory
        """
        new_root = Path(path).expanduser()
        if not new_root.is_absolute():
            new_root = self.root / new_root
        new_root = new_root.resolve()
        if not new_root.is_dir():
            raise NotFoundError("directory", str(path))
        logger.info("Project root changed", extra={"old": str(self.root), "new": str(new_root)})
        self.root = new_root
        return new_root

    def confirm(self, question: str) -> bool:
        answer = self.ask(f"{question} (y/n): ").strip().lower()
        return answer in ("y", "yes")

    def chat(self, turns: list[ConversationTurn], *, temperature: float | None = None, model: str | None = None) -> str:
        """One-shot request outside the conversation; usage is still recorded."""
        response = self.client.send(
            turns,
            model=model or self.settings.model,
            temperature=self.settings.temperature if temperature is None else temperature,
        )
        self.usage.record(response)
        return response.text

    @property
    def elapsed(self) -> float:
        return time.time() - self.started_at
