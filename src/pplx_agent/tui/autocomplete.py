"""Slash-command autocomplete for the boxed input."""

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from .state import InputDrawState

if TYPE_CHECKING:  # pragma: no cover
    from pplx_agent.commands.registry import CommandDescriptor

DROPDOWN_WINDOW = 5


def in_menu_mode(text: str) -> bool:
    """A ``/``-prefixed buffer with no whitespace yet."""
    return text.startswith("/") and not any(ch.isspace() for ch in text)


def compute_matches(buffer: str, registry: Iterable["CommandDescriptor"]) -> list["CommandDescriptor"]:
    """Commands whose name starts with the typed prefix, in registry order.

    Matching is case-insensitive; a buffer without the ``/`` prefix has no
    matches.
    """
    if not buffer.startswith("/"):
        return []
    prefix = buffer[1:].lower()
    return [cmd for cmd in registry if cmd.name.lower().startswith(prefix)]


class AutocompleteEngine:
    """Tracks matches and the dropdown selection while the user types."""

    def __init__(
        self,
        registry: Iterable["CommandDescriptor"],
        state: InputDrawState | None = None,
        enabled: Callable[[], bool] | None = None,
    ) -> None:
        self.registry = registry
        self.state = state or InputDrawState()
        self.matches: list["CommandDescriptor"] = []
        self.menu_mode = False
        self._enabled = enabled or (lambda: True)

    def reset(self, state: InputDrawState) -> None:
        """Attach a fresh draw state for the next prompt."""
        self.state = state
        self.matches = []
        self.menu_mode = False

    def on_buffer_changed(self, text: str) -> None:
        """Recompute matches for the current buffer text."""
        self.menu_mode = in_menu_mode(text)
        if not self._enabled() or not self.menu_mode:
            self.matches = []
            self.state.hide_dropdown()
            return
        self.matches = compute_matches(text, self.registry)
        self.state.dropdown_visible = bool(self.matches)
        # The match set may have shrunk under the selection
        self.state.move_selection(0, len(self.matches) - 1)
        self.state.scroll_offset = min(self.state.scroll_offset, max(0, len(self.matches) - DROPDOWN_WINDOW))
        self.state.scroll_to_selection(DROPDOWN_WINDOW)

    def move_selection(self, delta: int) -> None:
        if not self.matches:
            return
        self.state.move_selection(delta, len(self.matches) - 1)
        self.state.scroll_to_selection(DROPDOWN_WINDOW)

    @property
    def selected(self) -> "CommandDescriptor | None":
        if not self.matches:
            return None
        return self.matches[self.state.selected_index]

    def accept(self) -> str | None:
        """Buffer text after accepting the selection (``/name ``), or ``None``."""
        selected = self.selected
        if selected is None:
            return None
        self.matches = []
        self.menu_mode = False
        self.state.hide_dropdown()
        return f"/{selected.name} "

    def visible_window(self) -> list[tuple[int, "CommandDescriptor"]]:
        """(index, descriptor) pairs currently inside the dropdown window."""
        start = self.state.scroll_offset
        window = self.matches[start : start + DROPDOWN_WINDOW]
        return list(enumerate(window, start=start))

    def indicator(self) -> str:
        """``(a-b of n)`` when more matches exist than fit, else an empty string."""
        total = len(self.matches)
        if total <= DROPDOWN_WINDOW:
            return ""
        start = self.state.scroll_offset + 1
        end = min(self.state.scroll_offset + DROPDOWN_WINDOW, total)
        return f"({start}-{end} of {total})"
