from __future__ import annotations

from pathlib import Path

import pytest

from pplx_agent.exceptions import PathEscapeError
from pplx_agent.security import filter_env_vars, relative_to_root, resolve_path


class TestResolvePath:
    """Paths are confined to the project root."""

    def test_relative_path_resolves_under_root(self, tmp_path: Path):
        assert resolve_path(tmp_path, "src/app.py") == tmp_path.resolve() / "src" / "app.py"

    def test_parent_traversal_is_blocked(self, tmp_path: Path):
        with pytest.raises(PathEscapeError) as exc_info:
            resolve_path(tmp_path, "../../etc/passwd")
        assert "outside root" in exc_info.value.message

    def test_absolute_path_outside_root_is_blocked(self, tmp_path: Path):
        with pytest.raises(PathEscapeError):
            resolve_path(tmp_path / "inner", str(tmp_path))

    def test_absolute_path_inside_root_is_allowed(self, tmp_path: Path):
        target = tmp_path / "a.txt"
        assert resolve_path(tmp_path, str(target)) == target.resolve()

    def test_root_itself_is_allowed(self, tmp_path: Path):
        assert resolve_path(tmp_path, ".") == tmp_path.resolve()

    def test_null_byte_is_blocked(self, tmp_path: Path):
        with pytest.raises(PathEscapeError):
            resolve_path(tmp_path, "a\x00b")

    def test_symlink_out_of_root_is_blocked(self, tmp_path: Path):
        root = tmp_path / "root"
        root.mkdir()
        (root / "link").symlink_to(tmp_path)
        with pytest.raises(PathEscapeError):
            resolve_path(root, "link")


def test_relative_to_root(tmp_path: Path) -> None:
    assert relative_to_root(tmp_path, tmp_path / "a" / "b.py") == "a/b.py"
    assert relative_to_root(tmp_path, tmp_path) == "."


def test_filter_env_vars_keeps_allowlist_only() -> None:
    env = {"PATH": "/bin", "HOME": "/home/u", "PPLX_API_KEY": "secret", "GIT_DIR": ".git"}
    filtered = filter_env_vars(env)
    assert "PATH" in filtered
    assert "PPLX_API_KEY" not in filtered
    assert filter_env_vars(env, include_prefixes=["GIT_"])["GIT_DIR"] == ".git"
