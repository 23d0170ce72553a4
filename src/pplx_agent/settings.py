"""User settings persisted as ``pplx-settings.json``."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from pplx_agent.exceptions import ParseError

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "pplx-settings.json"

BOOLEAN_KEYS: tuple[str, ...] = (
    "autoContext",
    "syntax",
    "askPermission",
    "autoSuggest",
    "gitIntegration",
    "conversationalMode",
    "smartFileDetection",
    "showFilePreview",
    "autoSave",
    "verbose",
    "compactMode",
    "showTimestamps",
    "autoCommit",
    "autoFormat",
    "cacheResponses",
    "streamingMode",
    "debugMode",
    "quietMode",
    "smartContext",
    "deepAnalysis",
)
_CLAMPED_FLOAT_KEYS = ("temperature", "editTemp")
_INT_KEYS = ("maxHistory", "maxFilesPerQuery")
_STRING_KEYS = ("model", "colorScheme", "role", "editor")


class Settings(BaseModel):
    """Runtime options. Attribute names are snake_case; the JSON uses camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
        extra="ignore",
    )

    model: str = "sonar-pro"
    temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    edit_temp: float = Field(default=0.2, ge=0.0, le=1.0)
    max_history: int = Field(default=10, ge=1)
    max_files_per_query: int = Field(default=8, ge=1)
    color_scheme: str = "vibrant"
    role: str = ""
    editor: str = ""
    api_key: str = ""

    auto_context: bool = True
    syntax: bool = True
    ask_permission: bool = True
    auto_suggest: bool = True
    git_integration: bool = True
    conversational_mode: bool = False
    smart_file_detection: bool = True
    show_file_preview: bool = True
    auto_save: bool = False
    verbose: bool = False
    compact_mode: bool = False
    show_timestamps: bool = False
    auto_commit: bool = False
    auto_format: bool = True
    cache_responses: bool = False
    streaming_mode: bool = False
    debug_mode: bool = False
    quiet_mode: bool = False
    smart_context: bool = True
    deep_analysis: bool = False
    vim_mode: bool = False

    aliases: dict[str, str] = Field(default_factory=dict)
    workspaces: list[str] = Field(default_factory=list)

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def get(self, key: str) -> Any:
        """Look up a value by its camelCase key."""
        return getattr(self, _field_for_key(key))

    def set_value(self, key: str, raw: str) -> Any:
        """Parse ``raw`` for ``key`` and assign it; returns the stored value.

        Temperatures are clamped to ``[0, 1]``, integers parsed, booleans are
        true only for the literal ``true``.

        Raises:
            ParseError: Unknown key or unparseable value
        """
        usage = "/settings set <key> <value>"
        if key in _CLAMPED_FLOAT_KEYS:
            try:
                value: Any = min(1.0, max(0.0, float(raw)))
            except ValueError:
                raise ParseError(f"{key} must be a number", usage) from None
        elif key in _INT_KEYS:
            try:
                value = int(raw)
            except ValueError:
                raise ParseError(f"{key} must be an integer", usage) from None
            if value < 1:
                raise ParseError(f"{key} must be at least 1", usage)
        elif key in BOOLEAN_KEYS:
            value = raw.strip().lower() == "true"
        elif key in _STRING_KEYS:
            value = raw
        else:
            raise ParseError(f"Unknown setting: {key}", usage)

        setattr(self, _field_for_key(key), value)
        return value


def _field_for_key(key: str) -> str:
    for name, info in Settings.model_fields.items():
        if info.alias == key or name == key:
            return name
    raise ParseError(f"Unknown setting: {key}")


class SettingsStore:
    """Reads and writes the settings file whole."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def in_dir(cls, state_dir: Path) -> "SettingsStore":
        return cls(state_dir / SETTINGS_FILENAME)

    def load(self) -> Settings:
        if not self.path.exists():
            return Settings()
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            return Settings.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning("Could not load settings, using defaults", extra={"path": str(self.path), "error": str(e)})
            return Settings()

    def save(self, settings: Settings) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(settings.to_json_dict(), f, indent=2)
        logger.debug("Settings saved", extra={"path": str(self.path)})
