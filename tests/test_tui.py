"""Tests for the boxed prompt: autocomplete, draw state, rendering and keys."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from pplx_agent.commands import build_registry
from pplx_agent.tui import (
    Action,
    AutocompleteEngine,
    BoxRenderer,
    DoublePressGuard,
    InputDrawState,
    KeymapManager,
    StatusInfo,
)
from pplx_agent.tui.autocomplete import DROPDOWN_WINDOW, compute_matches, in_menu_mode
from pplx_agent.tui.render import MIN_BOX_WIDTH


@pytest.fixture
def registry():
    return build_registry()


@pytest.fixture
def engine(registry):
    return AutocompleteEngine(list(registry), InputDrawState())


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class TestMatching:
    """Prefix matching against the registry."""

    def test_matches_follow_registration_order(self, registry):
        names = [cmd.name for cmd in compute_matches("/a", registry)]
        assert names == ["ask", "alias", "auth", "about"]

    def test_matching_is_case_insensitive(self, registry):
        assert [cmd.name for cmd in compute_matches("/HEL", registry)] == ["help"]

    def test_bare_slash_matches_everything(self, registry):
        assert len(compute_matches("/", registry)) == len(registry)

    def test_no_slash_no_matches(self, registry):
        assert compute_matches("help", registry) == []

    def test_menu_mode_ends_at_whitespace(self):
        assert in_menu_mode("/git")
        assert not in_menu_mode("/git status")
        assert not in_menu_mode("git")


class TestEngine:
    """Dropdown selection and window."""

    def test_typing_shows_dropdown(self, engine):
        engine.on_buffer_changed("/a")
        assert engine.state.dropdown_visible
        assert engine.selected.name == "ask"

    def test_selection_is_clamped(self, engine):
        engine.on_buffer_changed("/a")
        engine.move_selection(-1)
        assert engine.state.selected_index == 0
        for _ in range(10):
            engine.move_selection(1)
        assert engine.state.selected_index == 3
        assert engine.selected.name == "about"

    def test_shrinking_match_set_clamps_selection(self, engine):
        engine.on_buffer_changed("/a")
        engine.move_selection(3)
        engine.on_buffer_changed("/as")
        assert engine.state.selected_index == 0
        assert engine.selected.name == "ask"

    def test_window_scrolls_with_selection(self, engine):
        engine.on_buffer_changed("/c")
        assert len(engine.matches) == 7
        assert engine.indicator() == f"(1-{DROPDOWN_WINDOW} of 7)"
        for _ in range(6):
            engine.move_selection(1)
        window = engine.visible_window()
        assert len(window) == DROPDOWN_WINDOW
        assert window[-1][0] == 6
        assert engine.indicator() == "(3-7 of 7)"

    def test_small_match_set_has_no_indicator(self, engine):
        engine.on_buffer_changed("/a")
        assert engine.indicator() == ""

    def test_accept_fills_buffer_and_hides_dropdown(self, engine):
        engine.on_buffer_changed("/a")
        engine.move_selection(1)
        assert engine.accept() == "/alias "
        assert not engine.state.dropdown_visible
        assert engine.matches == []

    def test_accept_without_matches(self, engine):
        engine.on_buffer_changed("/zzz")
        assert engine.accept() is None

    def test_menu_mode_without_matches(self, engine):
        engine.on_buffer_changed("/zzz")
        assert engine.matches == []
        assert engine.menu_mode
        engine.on_buffer_changed("/zzz now")
        assert not engine.menu_mode

    def test_whitespace_hides_dropdown(self, engine):
        engine.on_buffer_changed("/git")
        engine.on_buffer_changed("/git ")
        assert not engine.state.dropdown_visible
        assert engine.matches == []

    def test_disabled_engine_never_matches(self, registry):
        engine = AutocompleteEngine(list(registry), InputDrawState(), enabled=lambda: False)
        engine.on_buffer_changed("/a")
        assert engine.matches == []


class TestDrawState:
    def test_move_selection_with_no_matches(self):
        state = InputDrawState(selected_index=3)
        state.move_selection(1, -1)
        assert state.selected_index == 0

    def test_hide_dropdown_resets(self):
        state = InputDrawState(dropdown_visible=True, selected_index=2, scroll_offset=1)
        state.hide_dropdown()
        assert (state.dropdown_visible, state.selected_index, state.scroll_offset) == (False, 0, 0)


class TestRenderer:
    """Box drawing."""

    def _renderer(self, width: int = 80) -> BoxRenderer:
        return BoxRenderer(Console(file=io.StringIO(), width=width, color_system=None))

    def test_box_width_has_a_floor(self):
        assert self._renderer(width=10).box_width == MIN_BOX_WIDTH
        assert self._renderer(width=80).box_width == 78

    def test_borders_span_box_width(self):
        renderer = self._renderer()
        assert len(renderer.top_border().plain) == renderer.box_width
        assert renderer.bottom_border().plain.startswith("╰")

    def test_open_then_close_once(self):
        renderer = self._renderer()
        state = InputDrawState()
        renderer.open_box(state)
        renderer.close_box(state)
        renderer.close_box(state)
        output = renderer.console.file.getvalue()
        assert state.box_top_drawn and state.box_bottom_drawn
        assert output.count("╭") == 1
        assert output.count("╰") == 1

    def test_status_lines(self):
        info = StatusInfo(cwd="~/proj", model="sonar-pro", memory_turns=4, memory_limit=20, tokens=1234, auto_run=True)
        lines = [line.plain for line in self._renderer().status_lines(info)]
        assert "~/proj" in lines[0]
        assert "memory 4/20" in lines[1]
        assert "1,234 tokens" in lines[1]
        assert "auto-run on" in lines[1]

    def test_dropdown_selected_row_is_reversed(self, engine):
        engine.on_buffer_changed("/a")
        engine.move_selection(1)
        lines = self._renderer().dropdown_lines(engine)
        assert len(lines) == 4
        selected = lines[1]
        assert "/alias" in selected.plain
        assert any("reverse" in str(span.style) for span in selected.spans)
        assert not any("reverse" in str(span.style) for span in lines[0].spans)

    def test_hidden_dropdown_renders_nothing(self, engine):
        assert self._renderer().dropdown_lines(engine) == []


class TestKeys:
    def test_double_press_within_window(self):
        clock = FakeClock()
        guard = DoublePressGuard(window=0.5, clock=clock)
        assert guard.press() is False
        clock.now += 0.3
        assert guard.press() is True

    def test_slow_presses_are_singles(self):
        clock = FakeClock()
        guard = DoublePressGuard(window=0.5, clock=clock)
        guard.press()
        clock.now += 1.0
        assert guard.press() is False
        clock.now += 0.1
        assert guard.press() is True

    def test_help_text_lists_shortcuts(self):
        shortcuts = [shortcut for shortcut, _, _ in KeymapManager().get_help_text()]
        assert "Shift+Tab" in shortcuts
        assert "Ctrl+C" in shortcuts

    def test_registered_handler_is_returned(self):
        keymap = KeymapManager()

        def handler(event):
            return None

        keymap.register_handler(Action.TOGGLE_AUTO_RUN, handler)
        assert keymap.get_handler(Action.TOGGLE_AUTO_RUN) is handler
        assert keymap.get_handler(Action.OPEN_EDITOR) is None
