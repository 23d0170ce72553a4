"""Boxed prompt UI: draw state, autocomplete, renderer and key bindings."""

from .autocomplete import DROPDOWN_WINDOW, AutocompleteEngine, compute_matches, in_menu_mode
from .keymap import Action, DoublePressGuard, KeyBinding, KeymapManager, QuitRequested
from .render import BoxRenderer, StatusInfo, render_to_ansi
from .state import InputDrawState

__all__ = [
    "Action",
    "AutocompleteEngine",
    "BoxRenderer",
    "DROPDOWN_WINDOW",
    "DoublePressGuard",
    "InputDrawState",
    "KeyBinding",
    "KeymapManager",
    "QuitRequested",
    "StatusInfo",
    "compute_matches",
    "in_menu_mode",
    "render_to_ansi",
]
