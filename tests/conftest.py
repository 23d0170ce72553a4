from __future__ import annotations

import io
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from pplx_agent.client import ChatResponse, Usage
from pplx_agent.commands import build_registry
from pplx_agent.conversation import ConversationTurn
from pplx_agent.persistence import Stores
from pplx_agent.session import SessionContext
from pplx_agent.settings import Settings, SettingsStore


class FakeClient:
    """Records every request and answers from a list of canned replies."""

    def __init__(self, replies: Iterable[str] = (), error: Exception | None = None) -> None:
        self.replies = list(replies)
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def send(self, turns: list[ConversationTurn], *, model: str, temperature: float) -> ChatResponse:
        self.calls.append({"turns": list(turns), "model": model, "temperature": temperature})
        if self.error is not None:
            raise self.error
        text = self.replies.pop(0) if self.replies else "ok"
        return ChatResponse(
            text=text,
            usage=Usage(prompt_tokens=10, completion_tokens=5),
            model=model,
            duration_ms=12.0,
        )


class ScriptedInput:
    """Stands in for the interactive prompt; raises EOFError once exhausted."""

    def __init__(self, answers: Iterable[str] = ()) -> None:
        self.answers = list(answers)
        self.prompts: list[str] = []

    def __call__(self, message: str) -> str:
        self.prompts.append(message)
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)


def output_of(ctx: SessionContext) -> str:
    return ctx.console.file.getvalue()


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def make_ctx(tmp_path: Path, project_root: Path) -> Callable[..., SessionContext]:
    """Build a session context with a fake client and scripted answers."""

    def factory(
        answers: Iterable[str] = (),
        replies: Iterable[str] = (),
        error: Exception | None = None,
        settings: Settings | None = None,
    ) -> SessionContext:
        state_dir = tmp_path / "state"
        state_dir.mkdir(exist_ok=True)
        stores = Stores.in_dir(state_dir)
        ctx = SessionContext(
            settings=settings or Settings(),
            root=project_root,
            console=Console(file=io.StringIO(), width=100, color_system=None),
            client=FakeClient(replies, error),
            stores=stores,
            settings_store=SettingsStore.in_dir(state_dir),
            ask=ScriptedInput(answers),
            brain=stores.brain.load(project_root),
        )
        ctx.registry = build_registry()
        return ctx

    return factory
