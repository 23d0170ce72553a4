"""AI-assisted code tools, code metrics and scaffolding templates.

The prompt builders return the turns to send; the command handlers own the
request, the confirmation and the write.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from pplx_agent.conversation import ConversationTurn, Role
from pplx_agent.project import ProjectType

REVIEW_SYSTEM = (
    "You are a senior code reviewer. Analyze for: bugs, performance issues, security "
    "vulnerabilities, best practices, and improvements. Provide a structured review."
)
DOCS_SYSTEM = (
    "Generate comprehensive documentation with: overview, functions/classes, parameters, "
    "usage examples, return values. Return ONLY documented code."
)
REFACTOR_SYSTEM = (
    "Refactor this code: improve structure, performance, readability, follow best practices. "
    "Return ONLY the refactored code."
)
COMMIT_SYSTEM = (
    "Generate a concise conventional commit message. Format: <type>(<scope>): <description>. "
    "Types: feat, fix, docs, style, refactor, test, chore. Keep under 72 chars."
)
EDIT_SYSTEM = "You are a code editor. Return ONLY updated file content, no markdown fences or explanations."
BRAIN_SYSTEM = (
    "Analyze this project structure and package.json. "
    "Return a JSON object with keys: description, architecture, conventions."
)

DOCS_TEMPERATURE = 0.3
REFACTOR_TEMPERATURE = 0.2
TESTS_TEMPERATURE = 0.2
COMMIT_TEMPERATURE = 0.3
COMMIT_DIFF_CHARS = 3000


def _pair(system: str, user: str) -> list[ConversationTurn]:
    return [ConversationTurn(Role.SYSTEM, system), ConversationTurn(Role.USER, user)]


def review_prompt(file: str, content: str) -> list[ConversationTurn]:
    return _pair(REVIEW_SYSTEM, f"Review:\n\nFile: {file}\n\n{content}")


def pick_test_framework(project_type: ProjectType) -> str:
    if project_type is ProjectType.PYTHON:
        return "pytest"
    if project_type in (ProjectType.ANDROID, ProjectType.JAVA_MAVEN, ProjectType.GRADLE):
        return "JUnit"
    return "Jest"


def tests_prompt(content: str, project_type: ProjectType) -> list[ConversationTurn]:
    framework = pick_test_framework(project_type)
    system = (
        f"Generate comprehensive unit tests using {framework}. Include setup/teardown, "
        "positive/negative cases, edge cases, mocks. Return ONLY test code."
    )
    return _pair(system, f"Generate tests:\n\n{content}")


def tests_path_for(file: str) -> str:
    """``src/app.js`` -> ``src/app.test.js``."""
    path = Path(file)
    return (path.parent / f"{path.stem}.test{path.suffix}").as_posix()


def docs_prompt(content: str) -> list[ConversationTurn]:
    return _pair(DOCS_SYSTEM, f"Document:\n\n{content}")


def refactor_prompt(content: str) -> list[ConversationTurn]:
    return _pair(REFACTOR_SYSTEM, f"Refactor:\n\n{content}")


def commit_prompt(diff: str) -> list[ConversationTurn]:
    return _pair(COMMIT_SYSTEM, f"Generate commit message:\n\n{diff[:COMMIT_DIFF_CHARS]}")


def edit_prompt(file: str, instruction: str, original: str) -> list[ConversationTurn]:
    return _pair(EDIT_SYSTEM, f"File: {file}\nInstruction: {instruction}\n\nCurrent:\n{original}")


def brain_prompt(package_json: str, files: list[str]) -> list[ConversationTurn]:
    file_list = "\n".join(files)
    return _pair(BRAIN_SYSTEM, f"Context:\n{package_json}\n\nFiles:\n{file_list}")


# ═══════════════════════════════════════════════════════════════════════════════
# Metrics
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass
class CodeMetrics:
    """Line counts for one file."""

    total: int
    code: int
    comments: int
    blank: int

    @property
    def code_comment_ratio(self) -> float:
        return self.code / max(self.comments, 1)


def code_metrics(content: str, filename: str = "") -> CodeMetrics:
    """Count lines; ``//`` starts a comment, and ``#`` too for Python files."""
    markers: tuple[str, ...] = ("//",)
    if Path(filename).suffix == ".py":
        markers = ("//", "#")
    lines = content.split("\n")
    comments = 0
    code = 0
    blank = 0
    for line in lines:
        stripped = line.strip()
        if not stripped:
            blank += 1
        elif stripped.startswith(markers):
            comments += 1
        else:
            code += 1
    return CodeMetrics(total=len(lines), code=code, comments=comments, blank=blank)


# ═══════════════════════════════════════════════════════════════════════════════
# Scaffolding
# ═══════════════════════════════════════════════════════════════════════════════

_ANDROID_ACTIVITY = """package com.example.app

import android.os.Bundle
import androidx.appcompat.app.AppCompatActivity

class {name}Activity : AppCompatActivity() {{
    override fun onCreate(savedInstanceState: Bundle?) {{
        super.onCreate(savedInstanceState)
    }}
}}"""

_REACT_COMPONENT = """import React from 'react';

const {name} = () => {{
  return (
    <div>
      <h1>{name}</h1>
    </div>
  );
}};

export default {name};"""


@dataclass
class Scaffold:
    filename: str
    content: str | None
    prompt: list[ConversationTurn] | None = None


def scaffold(kind: str, name: str, project_type: ProjectType) -> Scaffold:
    """Built-in template when one exists, otherwise a prompt to generate one.

    When ``content`` is ``None`` the caller sends ``prompt`` and uses the reply.
    """
    if project_type is ProjectType.ANDROID and kind == "activity":
        return Scaffold(f"{name}Activity.kt", _ANDROID_ACTIVITY.format(name=name))
    if project_type is ProjectType.JAVASCRIPT and kind == "component":
        return Scaffold(f"{name}.jsx", _REACT_COMPONENT.format(name=name))

    if project_type is ProjectType.PYTHON:
        ext = "py"
    elif project_type in (ProjectType.JAVA_MAVEN, ProjectType.GRADLE):
        ext = "java"
    else:
        ext = "js"
    prompt = _pair(
        f"Generate a {kind} template named {name} for {project_type.value}. Return ONLY code.",
        f"Create {kind}: {name}",
    )
    return Scaffold(f"{name}.{ext}", None, prompt)
