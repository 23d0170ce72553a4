from __future__ import annotations

from pathlib import Path

from pplx_agent import tools
from pplx_agent.project import ProjectType, analyze_deps, analyze_project, collect_project_files, scan_todos


class TestMetrics:
    def test_counts_python_comments(self):
        metrics = tools.code_metrics("# header\nx = 1\n\n// odd\ny = 2", "mod.py")
        assert (metrics.total, metrics.code, metrics.comments, metrics.blank) == (5, 2, 2, 1)
        assert metrics.code_comment_ratio == 1.0

    def test_hash_is_code_outside_python(self):
        metrics = tools.code_metrics("#include <x>\nint a;", "main.c")
        assert metrics.comments == 0
        assert metrics.code == 2

    def test_ratio_without_comments(self):
        assert tools.code_metrics("a\nb", "x.js").code_comment_ratio == 2.0


class TestPrompts:
    def test_tests_path_for(self):
        assert tools.tests_path_for("src/app.py") == "src/app.test.py"
        assert tools.tests_path_for("Makefile") == "Makefile.test"

    def test_framework_by_project_type(self):
        assert tools.pick_test_framework(ProjectType.PYTHON) == "pytest"
        assert tools.pick_test_framework(ProjectType.JAVASCRIPT) == "Jest"

    def test_review_prompt_shape(self):
        turns = tools.review_prompt("a.py", "x = 1")
        assert [t.role for t in turns] == ["system", "user"]
        assert "a.py" in turns[1].content

    def test_commit_prompt_truncates_diff(self):
        turns = tools.commit_prompt("x" * (tools.COMMIT_DIFF_CHARS + 500))
        assert len(turns[1].content) < tools.COMMIT_DIFF_CHARS + 200


class TestScaffold:
    def test_android_activity_template(self):
        plan = tools.scaffold("activity", "Login", ProjectType.ANDROID)
        assert plan.filename == "LoginActivity.kt"
        assert "class LoginActivity : AppCompatActivity()" in plan.content
        assert plan.prompt is None

    def test_react_component_template(self):
        plan = tools.scaffold("component", "Card", ProjectType.JAVASCRIPT)
        assert plan.filename == "Card.jsx"
        assert "export default Card;" in plan.content

    def test_other_kinds_need_the_model(self):
        plan = tools.scaffold("service", "Billing", ProjectType.PYTHON)
        assert plan.filename == "Billing.py"
        assert plan.content is None
        assert "Create service: Billing" in plan.prompt[1].content


class TestProject:
    def test_detects_types(self, tmp_path: Path):
        assert analyze_project(tmp_path) is ProjectType.UNKNOWN
        (tmp_path / "pyproject.toml").write_text("")
        assert analyze_project(tmp_path) is ProjectType.PYTHON
        (tmp_path / "package.json").write_text("{}")
        assert analyze_project(tmp_path) is ProjectType.JAVASCRIPT

    def test_android_needs_app_dir(self, tmp_path: Path):
        (tmp_path / "build.gradle").write_text("")
        assert analyze_project(tmp_path) is ProjectType.GRADLE
        (tmp_path / "app").mkdir()
        assert analyze_project(tmp_path) is ProjectType.ANDROID

    def test_collect_skips_build_dirs(self, tmp_path: Path):
        (tmp_path / "node_modules").mkdir()
        (tmp_path / "node_modules" / "dep.js").write_text("")
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "main.ts").write_text("")
        (tmp_path / "notes.txt").write_text("")
        assert collect_project_files(tmp_path) == ["src/main.ts"]

    def test_scan_todos(self, tmp_path: Path):
        (tmp_path / "a.py").write_text("x = 1\n# TODO: fix\n")
        todos = scan_todos(tmp_path)
        assert [(t.file, t.line) for t in todos] == [("a.py", 2)]

    def test_requirements_deps(self, tmp_path: Path):
        (tmp_path / "requirements.txt").write_text("httpx>=0.27\nrich\n# comment\n")
        deps = analyze_deps(tmp_path)
        assert deps.source == "requirements.txt"
        assert deps.dependencies["httpx"] == ">=0.27"
        assert "rich" in deps.dependencies
