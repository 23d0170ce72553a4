"""Tests for slash command handlers, driven through the dispatcher."""

from __future__ import annotations

import json

import pytest

from conftest import output_of
from pplx_agent.commands import dispatch
from pplx_agent.commands.system import mask_key
from pplx_agent.files import BACKUP_DIRNAME
from pplx_agent.persistence import AUTOSAVE_TAG, BRAIN_FILENAME
from pplx_agent.settings import SETTINGS_FILENAME, Settings


class TestFileCommands:
    """Filesystem commands."""

    def test_rm_asks_and_deletes(self, make_ctx, project_root):
        (project_root / "old.txt").write_text("x")
        ctx = make_ctx(answers=["y"])
        dispatch("/rm old.txt", ctx)
        assert not (project_root / "old.txt").exists()
        assert ctx.ask.prompts == ["Delete old.txt? (y/n): "]

    def test_rm_refused_keeps_file(self, make_ctx, project_root):
        (project_root / "old.txt").write_text("x")
        ctx = make_ctx(answers=["n"])
        dispatch("/rm old.txt", ctx)
        assert (project_root / "old.txt").exists()
        assert "Cancelled" in output_of(ctx)

    def test_rm_confirms_even_in_auto_run(self, make_ctx, project_root):
        (project_root / "old.txt").write_text("x")
        ctx = make_ctx(answers=["n"])
        ctx.auto_run = True
        dispatch("/rm old.txt", ctx)
        assert (project_root / "old.txt").exists()

    def test_rm_outside_root_is_blocked(self, make_ctx, tmp_path):
        (tmp_path / "keep.txt").write_text("x")
        ctx = make_ctx(answers=["y"])
        dispatch("/rm ../keep.txt", ctx)
        assert (tmp_path / "keep.txt").exists()
        assert ctx.last_error.startswith("Blocked path (outside root)")

    def test_write_reads_until_terminator(self, make_ctx, project_root):
        ctx = make_ctx(answers=["line one", "line two", "::end", "ignored"])
        dispatch("/write notes.txt", ctx)
        assert (project_root / "notes.txt").read_text() == "line one\nline two"
        assert ctx.ask.answers == ["ignored"]

    def test_write_over_existing_file_backs_up(self, make_ctx, project_root, tmp_path):
        (project_root / "notes.txt").write_text("before")
        ctx = make_ctx(answers=["after", "::end"])
        dispatch("/write notes.txt", ctx)
        assert "Backup: notes.txt." in output_of(ctx)
        backups = list((tmp_path / "state" / BACKUP_DIRNAME).iterdir())
        assert [b.read_text() for b in backups] == ["before"]

    def test_restore_lists_then_restores(self, make_ctx, project_root):
        (project_root / "notes.txt").write_text("before")
        ctx = make_ctx(answers=["after", "::end"])
        dispatch("/write notes.txt", ctx)
        dispatch("/restore", ctx)
        assert "Backups (newest first)" in output_of(ctx)
        dispatch("/restore 1", ctx)
        assert (project_root / "notes.txt").read_text() == "before"

    def test_restore_nested_file(self, make_ctx, project_root):
        (project_root / "src").mkdir()
        (project_root / "src" / "app.py").write_text("v1")
        ctx = make_ctx(answers=["v2", "::end"])
        dispatch("/write src/app.py", ctx)
        dispatch("/restore 1", ctx)
        assert (project_root / "src" / "app.py").read_text() == "v1"
        assert not (project_root / "app.py").exists()
        assert "-> src/app.py" in output_of(ctx)

    def test_restore_bad_number(self, make_ctx, project_root):
        (project_root / "notes.txt").write_text("before")
        ctx = make_ctx(answers=["after", "::end"])
        dispatch("/write notes.txt", ctx)
        dispatch("/restore 9", ctx)
        assert ctx.last_error == "Backup number out of range: 9"

    def test_read_counts_file_access(self, make_ctx, project_root):
        (project_root / "app.py").write_text("a = 1\nb = 2\n")
        ctx = make_ctx()
        dispatch("/read app.py", ctx)
        assert ctx.files_read == 1
        assert "3 lines" in output_of(ctx)

    def test_cd_switches_root(self, make_ctx, project_root):
        (project_root / "sub").mkdir()
        ctx = make_ctx()
        dispatch("/cd sub", ctx)
        assert ctx.root == (project_root / "sub").resolve()

    def test_cd_to_missing_directory(self, make_ctx, project_root):
        ctx = make_ctx()
        dispatch("/cd nowhere", ctx)
        assert ctx.root == project_root
        assert ctx.last_error == "Directory not found: nowhere"


class TestChatCommands:
    """Conversation commands."""

    def test_ask_appends_both_turns(self, make_ctx):
        ctx = make_ctx(replies=["Paris."])
        dispatch("/ask capital of france?", ctx)
        assert [(t.role, t.content) for t in ctx.conversation] == [
            ("user", "capital of france?"),
            ("assistant", "Paris."),
        ]
        assert ctx.usage.total_tokens == 15

    def test_ask_without_question(self, make_ctx):
        ctx = make_ctx()
        dispatch("/ask", ctx)
        assert ctx.client.calls == []
        assert "Usage: /ask <question>" in output_of(ctx)

    def test_window_limits_what_is_sent(self, make_ctx):
        ctx = make_ctx(settings=Settings(max_history=1))
        for i in range(3):
            ctx.conversation.add("user", f"old {i}")
        dispatch("/ask newest", ctx)
        sent = ctx.client.calls[0]["turns"]
        assert [t.content for t in sent if t.role != "system"] == ["old 2", "newest"]
        assert len(ctx.conversation) == 2

    def test_clear_history_keeps_system(self, make_ctx):
        ctx = make_ctx()
        ctx.conversation.add("system", "summary")
        ctx.conversation.add("user", "q")
        dispatch("/clear history", ctx)
        assert [t.role for t in ctx.conversation] == ["system"]

    def test_compress(self, make_ctx):
        ctx = make_ctx()
        for i in range(8):
            ctx.conversation.add("user", f"m{i}")
        dispatch("/compress", ctx)
        assert len(ctx.conversation) == 6
        assert "Kept last 5 messages" in output_of(ctx)

    def test_save_and_resume_session(self, make_ctx):
        ctx = make_ctx()
        ctx.conversation.add("user", "remember me")
        dispatch("/chat save work", ctx)
        ctx.conversation.clear(keep_system=False)
        dispatch("/session resume work", ctx)
        assert [t.content for t in ctx.conversation] == ["remember me"]
        assert "Loaded: work" in output_of(ctx)

    def test_resume_unknown_session(self, make_ctx):
        ctx = make_ctx()
        dispatch("/chat resume ghost", ctx)
        assert ctx.last_error == "Session not found: ghost"

    def test_role_sets_persona(self, make_ctx):
        ctx = make_ctx()
        dispatch("/role senior reviewer", ctx)
        assert ctx.settings.role == "senior reviewer"
        dispatch("/role clear", ctx)
        assert ctx.settings.role == ""


class TestAiCommands:
    """Model-assisted file commands."""

    def test_edit_shows_diff_and_saves(self, make_ctx, project_root):
        (project_root / "app.py").write_text("x = 1\n")
        ctx = make_ctx(answers=["y"], replies=["```python\nx = 2\n```"])
        dispatch("/edit app.py bump the value", ctx)
        assert (project_root / "app.py").read_text() == "x = 2"
        assert "Proposed Changes" in output_of(ctx)
        assert ctx.client.calls[0]["temperature"] == ctx.settings.edit_temp

    def test_edit_discarded(self, make_ctx, project_root):
        (project_root / "app.py").write_text("x = 1\n")
        ctx = make_ctx(answers=["n"], replies=["x = 2"])
        dispatch("/edit app.py bump", ctx)
        assert (project_root / "app.py").read_text() == "x = 1\n"

    def test_edit_auto_run_skips_prompt(self, make_ctx, project_root):
        (project_root / "app.py").write_text("x = 1\n")
        ctx = make_ctx(replies=["x = 3"])
        ctx.auto_run = True
        dispatch("/edit app.py bump", ctx)
        assert (project_root / "app.py").read_text() == "x = 3"
        assert ctx.ask.prompts == []

    def test_test_saves_next_to_source(self, make_ctx, project_root):
        (project_root / "calc.py").write_text("def add(a, b):\n    return a + b\n")
        ctx = make_ctx(answers=["y"], replies=["def test_add():\n    assert True"])
        dispatch("/test calc.py", ctx)
        assert (project_root / "calc.test.py").exists()

    def test_review_does_not_write(self, make_ctx, project_root):
        (project_root / "app.py").write_text("x = 1\n")
        ctx = make_ctx(replies=["Looks fine."])
        dispatch("/review app.py", ctx)
        assert "Code Review: app.py" in output_of(ctx)
        assert ctx.ask.prompts == []

    def test_scaffold_from_template(self, make_ctx, project_root):
        (project_root / "package.json").write_text("{}")
        ctx = make_ctx(answers=["y"])
        dispatch("/scaffold component Card", ctx)
        assert "export default Card;" in (project_root / "Card.jsx").read_text()
        assert ctx.client.calls == []

    def test_commit_outside_git(self, make_ctx):
        ctx = make_ctx()
        dispatch("/commit", ctx)
        assert "Not a git repository" in output_of(ctx)
        assert ctx.client.calls == []


class TestProjectCommands:
    def test_snippet_save_get_delete(self, make_ctx):
        ctx = make_ctx(answers=["print('hi')", "::end"])
        dispatch("/snippet save greet", ctx)
        dispatch("/snippet get greet", ctx)
        assert "print('hi')" in output_of(ctx)
        dispatch("/snippet delete greet", ctx)
        assert len(ctx.stores.snippets) == 0

    def test_snippet_requires_name(self, make_ctx):
        ctx = make_ctx()
        dispatch("/snippet get", ctx)
        assert ctx.last_error == "Snippet name required"

    def test_brain_init_add_update(self, make_ctx, project_root, tmp_path):
        (project_root / "requirements.txt").write_text("rich\n")
        (project_root / "main.py").write_text("print(1)\n")
        reply = 'Here you go: {"description": "CLI tool", "architecture": "single module"}'
        ctx = make_ctx(replies=[reply])

        dispatch("/init", ctx)
        assert ctx.brain.description == "A python project"
        assert ctx.brain.important_files == ["main.py"]

        dispatch("/brain add uses rich for output", ctx)
        dispatch("/brain update", ctx)
        saved = json.loads((tmp_path / "state" / BRAIN_FILENAME).read_text())
        assert saved["description"] == "CLI tool"
        assert saved["architecture"] == "single module"
        assert saved["notes"] == ["uses rich for output"]

    def test_brain_update_with_unparseable_reply(self, make_ctx):
        ctx = make_ctx(replies=["no json here"])
        dispatch("/brain update", ctx)
        assert "Could not parse AI analysis" in output_of(ctx)
        assert ctx.last_error is None

    def test_grep_bad_pattern(self, make_ctx):
        ctx = make_ctx()
        dispatch("/grep (", ctx)
        assert ctx.last_error.startswith("Invalid pattern")

    def test_git_unknown_subcommand(self, make_ctx):
        ctx = make_ctx()
        dispatch("/git push", ctx)
        assert ctx.last_error == "Unknown subcommand: push"


class TestSystemCommands:
    """Settings, aliases, auth and quitting."""

    def test_settings_set_persists(self, make_ctx, tmp_path):
        ctx = make_ctx()
        dispatch("/settings set temperature 5", ctx)
        assert ctx.settings.temperature == 1.0
        data = json.loads((tmp_path / "state" / SETTINGS_FILENAME).read_text())
        assert data["temperature"] == 1.0

    def test_settings_show_masks_key(self, make_ctx):
        ctx = make_ctx(settings=Settings(api_key="pplx-1234567890abcdef"))
        dispatch("/settings", ctx)
        output = output_of(ctx)
        assert "pplx-1234567890abcdef" not in output
        assert mask_key("pplx-1234567890abcdef") in output

    def test_alias_set_and_use(self, make_ctx):
        ctx = make_ctx()
        dispatch("/alias set gs /git status", ctx)
        assert ctx.settings.aliases == {"gs": "/git status"}
        dispatch("/gs", ctx)
        assert "Alias: gs -> /git status" in output_of(ctx)
        assert "Not a git repository" in output_of(ctx)

    def test_alias_cannot_shadow_builtin(self, make_ctx):
        ctx = make_ctx()
        dispatch("/alias set help /quit", ctx)
        assert "help" not in ctx.settings.aliases
        assert ctx.last_error == "help is a built-in command"

    def test_alias_remove_unknown(self, make_ctx):
        ctx = make_ctx()
        dispatch("/alias remove nope", ctx)
        assert ctx.last_error == "Alias not found: nope"

    def test_model_switch(self, make_ctx):
        ctx = make_ctx()
        dispatch("/model sonar", ctx)
        assert ctx.settings.model == "sonar"

    def test_vim_toggle(self, make_ctx):
        ctx = make_ctx()
        dispatch("/vim", ctx)
        assert ctx.settings.vim_mode is True

    def test_auth_rejects_bad_prefix(self, make_ctx):
        ctx = make_ctx()
        dispatch("/auth sk-123", ctx)
        assert ctx.settings.api_key == ""
        assert ctx.last_error.startswith("Invalid key format")

    def test_auth_saves_key(self, make_ctx):
        ctx = make_ctx()
        dispatch("/auth pplx-abcdefghijklmnop", ctx)
        assert ctx.settings.api_key == "pplx-abcdefghijklmnop"

    def test_directory_add_and_switch(self, make_ctx, project_root):
        (project_root / "other").mkdir()
        ctx = make_ctx()
        dispatch("/directory add other", ctx)
        assert len(ctx.settings.workspaces) == 2
        dispatch("/directory switch other", ctx)
        assert ctx.root == (project_root / "other").resolve()

    def test_help_lists_commands_and_keys(self, make_ctx):
        ctx = make_ctx()
        dispatch("/help", ctx)
        output = output_of(ctx)
        assert "/edit <file> <instruction>" in output
        assert "Shift+Tab" in output

    @pytest.mark.parametrize("command", ["/quit", "/exit"])
    def test_quit_prints_summary(self, make_ctx, command):
        ctx = make_ctx(settings=Settings(auto_save=True))
        ctx.conversation.add("user", "hi")
        ctx.files_read = 2
        dispatch(command, ctx)
        output = output_of(ctx)
        assert ctx.quit_requested
        assert "Session Summary" in output
        assert "Files Accessed" in output
        assert ctx.stores.sessions.load(AUTOSAVE_TAG).history[0].content == "hi"


def test_mask_key() -> None:
    assert mask_key("pplx-1234567890abcdef") == "pplx-123" + "*" * 16 + "cdef"
    assert mask_key("short") == "*****"
