"""Conversation state: an ordered, size-bounded turn buffer."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

DEFAULT_KEEP_LAST = 5


class Role(str, Enum):
    """Message role."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass
class ConversationTurn:
    """One role-tagged message."""

    role: str
    content: str

    def __post_init__(self) -> None:
        # Accept Role members but store the plain value
        self.role = Role(self.role).value

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConversationTurn":
        return cls(role=data["role"], content=str(data.get("content", "")))


class ConversationBuffer:
    """Chronological turn buffer.

    Every operation mutates the same underlying list: command handlers and the
    context assembler hold a live reference to this object, never a copy.
    """

    def __init__(self, turns: Iterable[ConversationTurn] | None = None) -> None:
        self._turns: list[ConversationTurn] = list(turns or [])

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[ConversationTurn]:
        return iter(self._turns)

    def __getitem__(self, index: int) -> ConversationTurn:
        return self._turns[index]

    @property
    def turns(self) -> list[ConversationTurn]:
        """The live list (not a copy)."""
        return self._turns

    def append(self, turn: ConversationTurn) -> None:
        self._turns.append(turn)

    def add(self, role: Role | str, content: str) -> ConversationTurn:
        turn = ConversationTurn(role=role, content=content)
        self._turns.append(turn)
        return turn

    def truncate_to_window(self, max_history: int) -> int:
        """Drop the oldest turns so at most ``2 * max_history`` remain.

        Returns:
            Number of turns dropped
        """
        limit = max(0, 2 * max_history)
        excess = len(self._turns) - limit
        if excess <= 0:
            return 0
        del self._turns[:excess]
        return excess

    def compress(self, keep_last: int = DEFAULT_KEEP_LAST) -> int:
        """Replace everything but the last ``keep_last`` turns with one summary turn.

        A buffer of ``keep_last`` turns or fewer is left untouched.

        Returns:
            Number of turns folded into the summary (0 for a no-op)
        """
        keep_last = max(0, keep_last)
        if len(self._turns) <= keep_last:
            return 0
        folded = len(self._turns) - keep_last
        summary = ConversationTurn(
            role=Role.SYSTEM,
            content=(
                f"[System Summary of previous {folded} messages]: "
                "Conversation focused on user request. Previous context compressed."
            ),
        )
        self._turns[:folded] = [summary]
        return folded

    def clear(self, keep_system: bool = True) -> int:
        """Remove turns, optionally keeping system turns.

        Returns:
            Number of turns removed
        """
        before = len(self._turns)
        if keep_system:
            self._turns[:] = [t for t in self._turns if t.role == Role.SYSTEM.value]
        else:
            self._turns.clear()
        return before - len(self._turns)

    def replace(self, turns: Iterable[ConversationTurn]) -> None:
        """Swap in new contents (used when resuming a saved session)."""
        self._turns[:] = list(turns)

    def last(self, role: Role | str | None = None) -> ConversationTurn | None:
        wanted = Role(role).value if role is not None else None
        for turn in reversed(self._turns):
            if wanted is None or turn.role == wanted:
                return turn
        return None

    def count(self, role: Role | str) -> int:
        wanted = Role(role).value
        return sum(1 for t in self._turns if t.role == wanted)

    def to_list(self) -> list[dict[str, str]]:
        return [t.to_dict() for t in self._turns]
