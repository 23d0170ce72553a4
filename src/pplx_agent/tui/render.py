"""Bordered-box renderer for the input prompt."""

import io
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rich.console import Console, RenderableType
from rich.text import Text

from pplx_agent.ui import Colors, Icons

from .autocomplete import AutocompleteEngine
from .state import InputDrawState

if TYPE_CHECKING:  # pragma: no cover
    from pplx_agent.session import SessionContext

MIN_BOX_WIDTH = 20
ERASE_BELOW = "\x1b[J"


def render_to_ansi(
    renderable: RenderableType,
    *,
    width: int | None = None,
    force_terminal: bool = True,
) -> str:
    """
    Render a Rich renderable to ANSI escape codes.

    prompt_toolkit takes the prompt message and the bottom toolbar as ANSI
    strings, so everything drawn around the input line goes through here.
    """
    console = Console(
        file=io.StringIO(),
        width=width or 120,
        force_terminal=force_terminal,
        color_system="truecolor",
        legacy_windows=False,
    )
    console.print(renderable, end="")
    return console.file.getvalue()


@dataclass
class StatusInfo:
    """Values shown in the two-line status block under the box."""

    cwd: str
    model: str
    memory_turns: int
    memory_limit: int
    tokens: int
    auto_run: bool

    @classmethod
    def from_context(cls, ctx: "SessionContext") -> "StatusInfo":
        return cls(
            cwd=str(ctx.root),
            model=ctx.settings.model,
            memory_turns=len(ctx.conversation),
            memory_limit=ctx.settings.max_history * 2,
            tokens=ctx.usage.total_tokens,
            auto_run=ctx.auto_run,
        )


class BoxRenderer:
    """Draws the box around the prompt line, the status block and the dropdown.

    The top border is printed before the prompt starts. The bottom border,
    status block and dropdown are produced as the prompt's bottom toolbar, so
    prompt_toolkit redraws them below the cursor without moving the typed text.
    """

    def __init__(self, console: Console) -> None:
        self.console = console

    @property
    def box_width(self) -> int:
        return max(MIN_BOX_WIDTH, self.console.width - 2)

    def top_border(self) -> Text:
        return Text(f"╭{'─' * (self.box_width - 2)}╮", style=Colors.BORDER)

    def bottom_border(self) -> Text:
        return Text(f"╰{'─' * (self.box_width - 2)}╯", style=Colors.BORDER)

    def prompt_line(self) -> Text:
        line = Text("│ ", style=Colors.BORDER)
        line.append(Icons.PROMPT, style=f"bold {Colors.TEXT}")
        line.append(" ")
        return line

    def prompt_message(self) -> str:
        return render_to_ansi(self.prompt_line(), width=self.box_width)

    def open_box(self, state: InputDrawState) -> None:
        self.console.print()
        self.console.print(self.top_border())
        state.box_top_drawn = True

    def status_lines(self, info: StatusInfo) -> list[Text]:
        first = Text(f"  {Icons.PIN} ", style=Colors.TEXT_MUTED)
        first.append(info.cwd, style=Colors.TEXT_MUTED)

        second = Text("  ")
        second.append(info.model, style=f"bold {Colors.PRIMARY}")
        second.append(" • ", style=Colors.TEXT_DIM)
        second.append(f"memory {info.memory_turns}/{info.memory_limit}", style=Colors.TEXT_MUTED)
        second.append(" • ", style=Colors.TEXT_DIM)
        second.append(f"{info.tokens:,} tokens", style=Colors.TEXT_MUTED)
        second.append(" • ", style=Colors.TEXT_DIM)
        if info.auto_run:
            second.append("auto-run on", style=Colors.WARNING)
        else:
            second.append("auto-run off", style=Colors.TEXT_MUTED)
        second.append("  (shift+tab)", style=Colors.TEXT_DIM)
        return [first, second]

    def dropdown_lines(self, engine: AutocompleteEngine) -> list[Text]:
        """Rows for the visible dropdown window; the selected row is reversed."""
        if not engine.state.dropdown_visible:
            return []
        width = max((len(cmd.name) for _, cmd in engine.visible_window()), default=0) + 3
        lines: list[Text] = []
        for index, cmd in engine.visible_window():
            selected = index == engine.state.selected_index
            row = Text("  ")
            name = f"/{cmd.name}".ljust(width)
            if selected:
                row.append(f" {name} {cmd.description} ", style=f"reverse {Colors.PRIMARY}")
            else:
                row.append(f" {name} ", style=Colors.PRIMARY)
                row.append(cmd.description, style=Colors.TEXT_MUTED)
            lines.append(row)
        indicator = engine.indicator()
        if indicator:
            lines.append(Text(f"  {indicator}", style=Colors.TEXT_DIM))
        return lines

    def toolbar(self, info: StatusInfo, engine: AutocompleteEngine) -> str:
        """ANSI text for everything below the input line."""
        text = Text("\n").join([self.bottom_border(), *self.status_lines(info), *self.dropdown_lines(engine)])
        return render_to_ansi(text, width=self.box_width)

    def close_box(self, state: InputDrawState) -> None:
        """Erase what was drawn below the input line and close the box.

        Safe to call more than once per prompt.
        """
        if state.box_bottom_drawn:
            return
        if self.console.is_terminal:
            self.console.file.write(ERASE_BELOW)
            self.console.file.flush()
        self.console.print(self.bottom_border())
        state.box_bottom_drawn = True
        state.hide_dropdown()

