"""Tests for query classification, file discovery and context assembly."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import output_of
from pplx_agent.context import (
    REASONING_MODEL,
    ContextAssembler,
    build_bundle,
    build_messages,
    classify_query,
    discover_files,
    is_conversational,
    needs_files,
    parse_selection,
    resolve_mentions,
    route_model,
    TracedFile,
    trace_imports,
)
from pplx_agent.conversation import ConversationBuffer, Role
from pplx_agent.exceptions import PathEscapeError
from pplx_agent.persistence import ProjectBrain
from pplx_agent.settings import Settings


class TestParseSelection:
    def test_numbers_and_ranges(self):
        assert parse_selection("1-3 5", 5) == [1, 2, 3, 5]

    def test_commas(self):
        assert parse_selection("2,4", 5) == [2, 4]

    def test_out_of_range_and_junk_dropped(self):
        assert parse_selection("0 3 9 x 2-x 1-2-3", 4) == [3]

    def test_duplicates_keep_first_position(self):
        assert parse_selection("3 1-3", 5) == [3, 1, 2]

    def test_huge_range_is_clamped(self):
        assert parse_selection("1-99999999999999", 3) == [1, 2, 3]
        assert parse_selection("7-99999999999999", 3) == []


class TestClassification:
    def test_small_talk(self):
        assert is_conversational("hi")
        assert is_conversational("thanks")
        assert is_conversational("ok bro, got it")
        assert not is_conversational("explain the build")

    def test_needs_files(self):
        assert needs_files("explain this function")
        assert not needs_files("good morning")

    def test_complex_queries_route_to_reasoning(self):
        assert classify_query("why does the login fail") == REASONING_MODEL
        assert classify_query("hello") is None

    def test_route_model_respects_smart_context(self):
        assert route_model("please debug this", Settings()) == REASONING_MODEL
        assert route_model("please debug this", Settings(smart_context=False)) is None
        assert route_model("please debug this", Settings(model=REASONING_MODEL)) is None


class TestDiscovery:
    """Which files a question is about."""

    def test_mentions_win(self, tmp_path: Path):
        (tmp_path / "app.py").write_text("print(1)\n")
        (tmp_path / "README.md").write_text("# demo\n")
        assert discover_files(tmp_path, "what does @app.py do", Settings()) == ["app.py"]

    def test_missing_mention_is_ignored(self, tmp_path: Path):
        assert resolve_mentions(tmp_path, "look at @nothing.py") == []

    def test_escaping_mention_raises(self, tmp_path: Path):
        root = tmp_path / "root"
        root.mkdir()
        with pytest.raises(PathEscapeError):
            resolve_mentions(root, "read @../secret.txt")

    def test_small_talk_reads_nothing(self, tmp_path: Path):
        (tmp_path / "README.md").write_text("# demo\n")
        assert discover_files(tmp_path, "hi", Settings()) == []

    def test_readme_for_what_questions(self, tmp_path: Path):
        (tmp_path / "README.md").write_text("# demo\n")
        (tmp_path / "util.py").write_text("x = 1\n")
        assert discover_files(tmp_path, "what does this project do", Settings()) == ["README.md"]

    def test_limit_applies(self, tmp_path: Path):
        for i in range(5):
            (tmp_path / f"app{i}.js").write_text("x\n")
        files = discover_files(tmp_path, "explain the code", Settings(max_files_per_query=2))
        assert len(files) == 2


class TestBundle:
    def test_bundle_format(self):
        bundle = build_bundle([("a.py", "x = 1")])
        assert bundle == "\n\n=== a.py ===\nx = 1\n"

    def test_traced_preview_section(self):
        bundle = build_bundle([], [TracedFile("b.js", "line")])
        assert "=== [TRACED] b.js ===" in bundle
        assert "(First 50 lines preview)" in bundle

    def test_trace_imports_one_level(self, tmp_path: Path):
        (tmp_path / "main.js").write_text("import util from './util'\n")
        (tmp_path / "util.js").write_text("export default 1\n")
        traced = trace_imports(tmp_path, ["main.js"])
        assert [t.file for t in traced] == ["util.js"]
        assert traced[0].content.endswith("... (more)")


class TestBuildMessages:
    def test_order_is_system_persona_then_turns(self):
        conversation = ConversationBuffer()
        conversation.add(Role.USER, "q")
        brain = ProjectBrain(name="demo", description="A demo")
        messages = build_messages(brain, Settings(role="pirate"), conversation, "bundle")
        assert [m.role for m in messages] == ["system", "system", "user"]
        assert "PROJECT BRAIN" in messages[0].content
        assert "bundle" in messages[0].content
        assert messages[1].content == "IMPORTANT: Adopt the persona of: pirate"

    def test_no_brain_block_without_context(self):
        messages = build_messages(ProjectBrain(name="demo"), Settings(), ConversationBuffer())
        assert "PROJECT BRAIN" not in messages[0].content
        assert len(messages) == 1


class TestAssembler:
    """Permission prompt and reading."""

    def test_yes_reads_all(self, make_ctx, project_root):
        (project_root / "app.py").write_text("a\nb\n")
        ctx = make_ctx(answers=["y"])
        assembled = ContextAssembler(ctx).assemble("explain @app.py")
        assert assembled.files == ["app.py"]
        assert "=== app.py ===" in assembled.bundle
        assert ctx.files_read == 1
        assert "Permission Request" in output_of(ctx)

    def test_select_reads_subset(self, make_ctx, project_root):
        (project_root / "a.py").write_text("a\n")
        (project_root / "b.py").write_text("b\n")
        ctx = make_ctx(answers=["select", "2"])
        assembled = ContextAssembler(ctx).assemble("compare @a.py and @b.py")
        assert assembled.files == ["b.py"]

    def test_no_reads_nothing(self, make_ctx, project_root):
        (project_root / "app.py").write_text("a\n")
        ctx = make_ctx(answers=["n"])
        assembled = ContextAssembler(ctx).assemble("explain @app.py")
        assert assembled.files == []
        assert assembled.bundle == ""
        assert ctx.files_read == 0

    def test_permission_off_skips_prompt(self, make_ctx, project_root):
        (project_root / "app.py").write_text("a\n")
        ctx = make_ctx(settings=Settings(ask_permission=False))
        assembled = ContextAssembler(ctx).assemble("explain @app.py")
        assert assembled.files == ["app.py"]
        assert ctx.ask.prompts == []
