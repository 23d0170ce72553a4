"""Key bindings for the interactive prompt."""

import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from prompt_toolkit.key_binding import KeyBindings

DOUBLE_PRESS_WINDOW = 0.5


class QuitRequested(Exception):
    """Raised out of the prompt when a double Ctrl+C or double Esc asks to leave."""

    def __init__(self, message: str = "Exiting...") -> None:
        super().__init__(message)
        self.message = message


class Action(str, Enum):
    """Prompt actions that can be bound to keys."""

    INTERRUPT = "interrupt"
    ESCAPE = "escape"
    TOGGLE_AUTO_RUN = "toggle_auto_run"
    OPEN_EDITOR = "open_editor"

    # Dropdown
    MENU_UP = "menu_up"
    MENU_DOWN = "menu_down"
    MENU_ACCEPT = "menu_accept"


@dataclass
class KeyBinding:
    """A single key binding."""

    keys: tuple[str, ...]
    action: Action
    description: str
    when: str = "always"  # always, menu


DEFAULT_BINDINGS: list[KeyBinding] = [
    KeyBinding(
        keys=("c-c",),
        action=Action.INTERRUPT,
        description="Press twice to force quit",
    ),
    KeyBinding(
        keys=("escape",),
        action=Action.ESCAPE,
        description="Press twice to exit",
    ),
    KeyBinding(
        keys=("s-tab",),
        action=Action.TOGGLE_AUTO_RUN,
        description="Toggle auto-run (skip save confirmations)",
    ),
    KeyBinding(
        keys=("c-g",),
        action=Action.OPEN_EDITOR,
        description="Open external editor",
    ),
    KeyBinding(
        keys=("up",),
        action=Action.MENU_UP,
        description="Move selection up",
        when="menu",
    ),
    KeyBinding(
        keys=("down",),
        action=Action.MENU_DOWN,
        description="Move selection down",
        when="menu",
    ),
    KeyBinding(
        keys=("tab",),
        action=Action.MENU_ACCEPT,
        description="Complete command",
        when="menu",
    ),
    KeyBinding(
        keys=("right",),
        action=Action.MENU_ACCEPT,
        description="Complete command",
        when="menu",
    ),
]


class DoublePressGuard:
    """Detects two presses of the same key within ``window`` seconds."""

    def __init__(self, window: float = DOUBLE_PRESS_WINDOW, clock: Callable[[], float] = time.monotonic) -> None:
        self.window = window
        self._clock = clock
        self._last: float | None = None

    def press(self) -> bool:
        """Record a press; True if it completes a double press."""
        now = self._clock()
        if self._last is not None and now - self._last < self.window:
            self._last = None
            return True
        self._last = now
        return False


class KeymapManager:
    """Maps actions to handlers and builds the prompt_toolkit bindings."""

    def __init__(self) -> None:
        self.bindings = list(DEFAULT_BINDINGS)
        self._handlers: dict[Action, Callable[[Any], None]] = {}

    def register_handler(self, action: Action, handler: Callable[[Any], None]) -> None:
        """Register a handler for an action; it receives the key press event."""
        self._handlers[action] = handler

    def get_handler(self, action: Action) -> Callable[[Any], None] | None:
        return self._handlers.get(action)

    def _format_keys(self, keys: tuple[str, ...]) -> str:
        """Format keys for display."""
        result = []
        for key in keys:
            if key.startswith("c-"):
                result.append(f"Ctrl+{key[2:].upper()}")
            elif key == "s-tab":
                result.append("Shift+Tab")
            else:
                result.append(key.capitalize())
        return " ".join(result)

    def get_help_text(self) -> list[tuple[str, str, str]]:
        """Get list of (shortcut, description, context) for help display."""
        return [(self._format_keys(b.keys), b.description, b.when) for b in self.bindings]

    def build_prompt_toolkit_bindings(self, menu_active: Callable[[], bool]) -> "KeyBindings":
        """Build prompt_toolkit KeyBindings.

        ``menu`` bindings are active only while ``menu_active()`` is true;
        otherwise the keys keep their default behaviour (history, completion).
        """
        from prompt_toolkit.filters import Condition
        from prompt_toolkit.key_binding import KeyBindings

        kb = KeyBindings()
        menu_filter = Condition(menu_active)

        for binding in self.bindings:
            handler = self._handlers.get(binding.action)
            if handler is None:
                continue
            keys = self._convert_keys(binding.keys)
            if binding.when == "menu":
                kb.add(*keys, filter=menu_filter)(handler)
            else:
                kb.add(*keys)(handler)

        return kb

    def _convert_keys(self, keys: tuple[str, ...]) -> tuple:
        """Convert our key names to prompt_toolkit keys."""
        from prompt_toolkit.keys import Keys

        named = {
            "escape": Keys.Escape,
            "up": Keys.Up,
            "down": Keys.Down,
            "right": Keys.Right,
            "tab": Keys.Tab,
            "s-tab": Keys.BackTab,
        }
        return tuple(named.get(key, key) for key in keys)
