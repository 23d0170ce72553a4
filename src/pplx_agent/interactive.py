"""Interactive mode: the boxed prompt loop.

Each iteration draws the box, reads one line through prompt_toolkit with the
status block and the command dropdown in the bottom toolbar, closes the box
and routes the line:

- an empty line is ignored;
- ``@`` lists project files;
- registered commands (and aliases) are dispatched;
- anything else is chat when ``conversationalMode`` is on, otherwise an
  unknown command.
"""

from __future__ import annotations

import logging
import signal
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from prompt_toolkit import PromptSession
from prompt_toolkit.application import run_in_terminal
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.history import FileHistory, InMemoryHistory
from prompt_toolkit.styles import Style
from rich.markup import escape
from rich.text import Text

from pplx_agent import __version__
from pplx_agent.commands import dispatch, parse_line, run_guarded
from pplx_agent.commands.chat import autosave, handle_chat
from pplx_agent.context import DISCOVERY_DEPTH
from pplx_agent.project import ProjectType, analyze_project, collect_project_files
from pplx_agent.tui import (
    Action,
    AutocompleteEngine,
    BoxRenderer,
    DoublePressGuard,
    InputDrawState,
    KeymapManager,
    QuitRequested,
    StatusInfo,
)
from pplx_agent.ui import Colors, Icons, file_icon, print_error, print_warning, terminal_editor

if TYPE_CHECKING:
    from pplx_agent.session import SessionContext

logger = logging.getLogger(__name__)

FILE_LIST_LIMIT = 20

PROMPT_STYLE = Style.from_dict(
    {
        "bottom-toolbar": "noreverse",
    }
)


class InteractiveSession:
    """Owns the prompt, the draw state and the global key handling.

    ``read_line`` replaces the prompt_toolkit prompt; tests pass a scripted
    reader that raises ``EOFError`` when it runs out of lines.
    """

    def __init__(
        self,
        ctx: SessionContext,
        *,
        read_line: Callable[[], str] | None = None,
        history_file: Path | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ctx = ctx
        self.state = InputDrawState()
        self.engine = AutocompleteEngine(
            list(ctx.registry or []),
            self.state,
            enabled=lambda: self.ctx.settings.auto_suggest,
        )
        self.renderer = BoxRenderer(ctx.console)
        self.keymap = KeymapManager()
        self.interrupts = DoublePressGuard(clock=clock)
        self.escapes = DoublePressGuard(clock=clock)
        self._read_line = read_line
        self._history_file = history_file
        self._prompt: PromptSession | None = None

    # ── prompt_toolkit wiring ───────────────────────────────────────────

    def _register_handlers(self) -> None:
        self.keymap.register_handler(Action.INTERRUPT, self._on_interrupt)
        self.keymap.register_handler(Action.ESCAPE, self._on_escape)
        self.keymap.register_handler(Action.TOGGLE_AUTO_RUN, self._on_toggle_auto_run)
        self.keymap.register_handler(Action.OPEN_EDITOR, self._on_open_editor)
        self.keymap.register_handler(Action.MENU_UP, lambda event: self._on_menu_move(event, -1))
        self.keymap.register_handler(Action.MENU_DOWN, lambda event: self._on_menu_move(event, 1))
        self.keymap.register_handler(Action.MENU_ACCEPT, self._on_menu_accept)

    def menu_active(self) -> bool:
        """True while the buffer is a bare slash command; Up/Down then skip history."""
        return self.engine.menu_mode

    def _build_prompt(self) -> PromptSession:
        self._register_handlers()
        if self._history_file is not None:
            self._history_file.parent.mkdir(parents=True, exist_ok=True)
            history: Any = FileHistory(str(self._history_file))
        else:
            history = InMemoryHistory()
        session: PromptSession = PromptSession(
            history=history,
            key_bindings=self.keymap.build_prompt_toolkit_bindings(self.menu_active),
            style=PROMPT_STYLE,
        )
        session.default_buffer.on_text_changed += lambda buffer: self.engine.on_buffer_changed(buffer.text)
        return session

    def _toolbar(self) -> ANSI:
        return ANSI(self.renderer.toolbar(StatusInfo.from_context(self.ctx), self.engine))

    def read_line(self) -> str:
        """Read one submitted line.

        Raises:
            EOFError: On Ctrl+D or when a scripted reader is exhausted
            QuitRequested: On a double Ctrl+C or double Esc inside the prompt
        """
        if self._read_line is not None:
            return self._read_line()
        if self._prompt is None:
            self._prompt = self._build_prompt()
        return self._prompt.prompt(
            ANSI(self.renderer.prompt_message()),
            bottom_toolbar=self._toolbar,
            vi_mode=self.ctx.settings.vim_mode,
        )

    def _notify(self, message: str) -> None:
        run_in_terminal(lambda: print_warning(self.ctx.console, message))

    def _on_interrupt(self, event: Any) -> None:
        if self.interrupts.press():
            event.app.exit(exception=QuitRequested("Force quit."))
            return
        self._notify("(Press Ctrl+C again to quit)")

    def _on_escape(self, event: Any) -> None:
        if self.escapes.press():
            event.app.exit(exception=QuitRequested())
            return
        if self.engine.state.dropdown_visible:
            self.engine.state.hide_dropdown()
            self.engine.matches = []
            event.app.invalidate()

    def _on_toggle_auto_run(self, event: Any) -> None:
        self.ctx.auto_run = not self.ctx.auto_run
        logger.debug("Auto-run toggled", extra={"auto_run": self.ctx.auto_run})
        event.app.invalidate()

    def _on_open_editor(self, event: Any) -> None:
        editor = terminal_editor(self.ctx.settings.editor)
        if editor:
            message = f"External editor ({editor}) is not available inside the prompt yet"
        else:
            message = "No editor configured; set $EDITOR or use /editor <cmd>"
        self._notify(message)

    def _on_menu_move(self, event: Any, delta: int) -> None:
        self.engine.move_selection(delta)
        event.app.invalidate()

    def _on_menu_accept(self, event: Any) -> None:
        text = self.engine.accept()
        if text is None:
            return
        buffer = event.app.current_buffer
        buffer.text = text
        buffer.cursor_position = len(text)

    # ── loop ───────────────────────────────────────────────────────────

    def handle_interrupt(self) -> bool:
        """Ctrl+C outside the prompt; True when it completes a double press."""
        if self.interrupts.press():
            return True
        self.ctx.console.print()
        print_warning(self.ctx.console, "(Press Ctrl+C again to quit)")
        return False

    def _on_sigint(self, signum: int, frame: Any) -> None:
        """SIGINT while a line is being handled; the running work carries on."""
        if self.handle_interrupt():
            raise KeyboardInterrupt

    def list_project_files(self) -> None:
        project_files = collect_project_files(self.ctx.root, max_depth=DISCOVERY_DEPTH)
        console = self.ctx.console
        console.print()
        console.print(f"[bold {Colors.PRIMARY}]📁 Project Files[/bold {Colors.PRIMARY}]")
        console.print()
        for name in project_files[:FILE_LIST_LIMIT]:
            console.print(f"  {file_icon(name)} {escape(name)}", highlight=False)
        if len(project_files) > FILE_LIST_LIMIT:
            console.print(f"  [dim]... and {len(project_files) - FILE_LIST_LIMIT} more[/dim]")
        if not project_files:
            console.print("  [dim](no project files found)[/dim]")
        console.print()

    def handle_line(self, line: str) -> None:
        """Route one submitted line."""
        text = line.strip()
        if not text:
            return
        if text == "@":
            self.list_project_files()
            return
        if dispatch(text, self.ctx):
            return
        if self.ctx.settings.conversational_mode:
            run_guarded(self.ctx, handle_chat, text, self.ctx)
            return
        name = parse_line(text, self.ctx.settings.aliases).name
        self.ctx.console.print(
            f"[{Colors.ERROR}]{Icons.ERROR} Unknown command: {escape(name)}[/{Colors.ERROR}]",
            highlight=False,
        )
        self.ctx.console.print("[dim]Try /help[/dim]")
        self.ctx.console.print()

    def run(self) -> None:
        """Run until a quit command, Ctrl+D, or a double Ctrl+C/Esc."""
        self.print_welcome()
        previous = signal.signal(signal.SIGINT, self._on_sigint)
        try:
            self._loop()
        finally:
            signal.signal(signal.SIGINT, previous)
        self._finish()

    def _loop(self) -> None:
        while not self.ctx.quit_requested:
            self.state = InputDrawState()
            self.engine.reset(self.state)
            self.renderer.open_box(self.state)
            try:
                line = self.read_line()
            except QuitRequested as e:
                self.renderer.close_box(self.state)
                self.ctx.console.print(f"[dim]{escape(e.message)}[/dim]")
                break
            except EOFError:
                self.renderer.close_box(self.state)
                break
            except KeyboardInterrupt:
                self.renderer.close_box(self.state)
                if self.handle_interrupt():
                    break
                continue
            self.renderer.close_box(self.state)

            try:
                self.handle_line(line)
            except KeyboardInterrupt:
                self.ctx.console.print("[dim]Force quit.[/dim]")
                break

    def _finish(self) -> None:
        if self.ctx.quit_requested or not self.ctx.settings.auto_save:
            return
        try:
            autosave(self.ctx)
        except OSError as e:
            print_error(self.ctx.console, f"Auto-save failed: {e}")

    def print_welcome(self) -> None:
        console = self.ctx.console
        project_type = analyze_project(self.ctx.root)
        console.print()
        banner = Text()
        banner.append("  ╭──────────────────────────────────────╮\n", style=Colors.PRIMARY)
        banner.append("  │ ", style=Colors.PRIMARY)
        banner.append(f"  {Icons.RESPONSE} pplx-agent", style=f"bold {Colors.PRIMARY}")
        banner.append(" - Perplexity CLI", style=Colors.TEXT_MUTED)
        banner.append("       │\n", style=Colors.PRIMARY)
        banner.append("  ╰──────────────────────────────────────╯\n", style=Colors.PRIMARY)
        console.print(banner)

        info = Text()
        info.append("  Model: ", style=Colors.TEXT_MUTED)
        info.append(self.ctx.settings.model, style=f"bold {Colors.PRIMARY}")
        info.append("  │  ", style=Colors.TEXT_DIM)
        info.append("Project: ", style=Colors.TEXT_MUTED)
        info.append(project_type.value, style=f"bold {Colors.ACCENT}")
        info.append("  │  ", style=Colors.TEXT_DIM)
        info.append(f"v{__version__}", style=Colors.TEXT_MUTED)
        console.print(info)
        if project_type is not ProjectType.UNKNOWN:
            console.print(
                f"  [{Colors.SUCCESS}]{Icons.DONE}[/{Colors.SUCCESS}] [dim]Detected {project_type.value} project[/dim]"
            )
        if self.ctx.brain.has_context:
            console.print(f"  [dim]{Icons.BRAIN} Project brain loaded[/dim]")
        console.print()

        help_text = Text("  ")
        for key, desc in [("/help", "commands"), ("@", "files"), ("Shift+Tab", "auto-run"), ("/quit", "exit")]:
            help_text.append(key, style="bold")
            help_text.append(f" {desc}  ", style=Colors.TEXT_MUTED)
        console.print(help_text)
