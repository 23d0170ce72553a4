"""Tests for UI helpers."""

from __future__ import annotations

import io

import pytest
from rich.console import Console

from pplx_agent.ui import (
    COLOR_SCHEMES,
    Colors,
    Icons,
    apply_color_scheme,
    file_icon,
    format_size,
    print_code,
    print_error,
    render_diff,
    strip_code_fences,
    terminal_editor,
    unified_diff,
)


@pytest.fixture
def restore_colors():
    yield
    apply_color_scheme("vibrant")


class TestColorSchemes:
    def test_apply_known_scheme(self, restore_colors):
        apply_color_scheme("ocean")
        assert Colors.PRIMARY == COLOR_SCHEMES["ocean"]["PRIMARY"]

    def test_unknown_scheme_falls_back(self, restore_colors):
        apply_color_scheme("ocean")
        apply_color_scheme("neon")
        assert Colors.PRIMARY == COLOR_SCHEMES["vibrant"]["PRIMARY"]


class TestFormatting:
    def test_format_size(self):
        assert format_size(512) == "512 B"
        assert format_size(2048) == "2.0 KB"
        assert format_size(5 * 1024 * 1024) == "5.0 MB"

    def test_file_icon_falls_back(self):
        assert file_icon("notes.unknownext") == Icons.FILE

    def test_terminal_editor_prefers_setting(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("EDITOR", "nano")
        monkeypatch.delenv("VISUAL", raising=False)
        assert terminal_editor("vim") == "vim"
        assert terminal_editor() == "nano"


class TestFences:
    def test_strips_fenced_block(self):
        assert strip_code_fences("```python\nx = 1\n```") == "x = 1"

    def test_unterminated_fence(self):
        assert strip_code_fences("```\nx = 1") == "x = 1"

    def test_plain_text_untouched(self):
        assert strip_code_fences("x = 1\n") == "x = 1\n"


class TestDiff:
    """Unified diff rendering."""

    def test_no_changes_is_empty(self):
        assert unified_diff("a\n", "a\n") == ""

    def test_render_marks_added_and_removed(self):
        diff = unified_diff("a\nb\n", "a\nc\n", "f.txt")
        text = render_diff(diff)
        plain = text.plain
        assert "-b" in plain
        assert "+c" in plain
        assert "a/f.txt" not in plain
        styles = {str(span.style) for span in text.spans}
        assert "green" in styles
        assert "red" in styles

    def test_line_numbers_can_be_hidden(self):
        diff = unified_diff("a\n", "b\n")
        assert render_diff(diff, show_line_numbers=False).plain == "-a\n+b\n"


class TestPrinting:
    def _console(self) -> Console:
        return Console(file=io.StringIO(), width=100, color_system=None)

    def test_error_text_is_not_markup(self):
        console = self._console()
        print_error(console, "bad [bold]input[/bold]")
        assert "bad [bold]input[/bold]" in console.file.getvalue()

    def test_plain_code_has_line_numbers(self):
        console = self._console()
        print_code(console, "x = 1\ny = 2", "a.py", highlight=False)
        output = console.file.getvalue()
        assert "   1 x = 1" in output
        assert "   2 y = 2" in output
