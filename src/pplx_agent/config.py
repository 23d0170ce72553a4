"""Configuration management for pplx-agent."""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, Field, ValidationError, field_validator

from pplx_agent.exceptions import ConfigError

DEFAULT_API_BASE_URL = "https://api.perplexity.ai"
DEFAULT_API_KEY_ENV = "PPLX_API_KEY"

_LOG_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}
_LOG_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
}


def _parse_log_level(level: str) -> int:
    normalized = level.strip().lower()
    if normalized in _LOG_LEVELS:
        return _LOG_LEVELS[normalized]
    valid = ", ".join(sorted({k for k in _LOG_LEVELS if k != "warn"}))
    raise ValueError(f"Invalid log level: {level}. Valid: {valid}")


def _coerce_log_levels(levels: dict[str, str]) -> dict[str, str]:
    normalized: dict[str, str] = {}
    for name, level in levels.items():
        _parse_log_level(level)
        normalized[name] = level.strip().lower()
    return normalized


def _iter_log_levels(
    default_level: str,
    per_component: dict[str, str],
) -> Iterable[int]:
    yield _parse_log_level(default_level)
    for level in per_component.values():
        yield _parse_log_level(level)


class _StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _LOG_RECORD_KEYS
        }
        for key, value in extras.items():
            if isinstance(value, (str, int, float, bool)) or value is None:
                payload[key] = value
            else:
                payload[key] = str(value)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack_info"] = record.stack_info
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(config: "AgentConfig") -> None:
    """Configure structured logging for CLI usage.

    Logs go to stderr unless ``log_file`` is set; the default level is
    ``warning`` so records do not interleave with the prompt box.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handler: logging.Handler
    if config.log_file:
        handler = logging.FileHandler(config.log_file)
    else:
        handler = logging.StreamHandler()
    handler.setLevel(logging.NOTSET)
    handler.setFormatter(_StructuredFormatter())
    root_logger.addHandler(handler)

    min_level = min(_iter_log_levels(config.log_level, config.log_levels))
    root_logger.setLevel(min_level)

    for name, level in config.log_levels.items():
        logging.getLogger(name).setLevel(_parse_log_level(level))


class AgentConfig(BaseModel):
    """Process-level configuration, read from ``~/.config/pplx/config.toml``.

    User-facing runtime options (model, temperature, permissions...) live in
    :class:`pplx_agent.settings.Settings` instead.
    """

    api_base_url: str = Field(default=DEFAULT_API_BASE_URL, description="Chat API base URL")
    api_key_env: str = Field(
        default=DEFAULT_API_KEY_ENV,
        description="Environment variable holding the API key",
    )
    timeout: float = Field(default=120.0, ge=5.0, description="HTTP request timeout (seconds)")
    state_dir: str | None = Field(
        default=None,
        description="Directory for settings/session/snippet/brain files (default: launch directory)",
    )
    history_file: str | None = Field(
        default=None,
        description="Prompt history file (default: ~/.pplx/history)",
    )
    log_level: str = Field(default="warning", description="Log level")
    log_levels: dict[str, str] = Field(
        default_factory=dict,
        description="Per-component log levels (e.g., {'pplx_agent.client': 'debug'})",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path (structured JSON)",
    )

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        _parse_log_level(value)
        return value.strip().lower()

    @field_validator("log_levels")
    @classmethod
    def _validate_log_levels(cls, value: dict[str, str]) -> dict[str, str]:
        return _coerce_log_levels(value)

    @field_validator("api_base_url")
    @classmethod
    def _validate_api_base_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("api_base_url must start with http:// or https://")
        return value

    @classmethod
    def from_file(cls, path: str | Path) -> "AgentConfig":
        """Load configuration from TOML file."""
        import tomllib

        path = Path(path)
        if not path.exists():
            return cls()

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
            return cls(**data)
        except (tomllib.TOMLDecodeError, ValidationError) as e:
            raise ConfigError(f"Invalid config file: {e}", {"path": str(path)}) from e

    @classmethod
    def default_path(cls) -> Path:
        """Get default config file path."""
        return Path.home() / ".config" / "pplx" / "config.toml"

    def resolve_state_dir(self) -> Path:
        """Directory holding the JSON stores."""
        if self.state_dir:
            return Path(self.state_dir).expanduser().resolve()
        return Path.cwd()

    def resolve_history_file(self) -> Path:
        if self.history_file:
            return Path(self.history_file).expanduser()
        return Path.home() / ".pplx" / "history"

    def get_api_key(self) -> str:
        """Return the API key from the environment.

        Raises:
            ConfigError: If the variable is unset or empty
        """
        key = os.environ.get(self.api_key_env, "").strip()
        if not key:
            raise ConfigError(
                f"Missing {self.api_key_env}",
                {"hint": f"export {self.api_key_env}=your_key"},
            )
        return key


def write_default_config(path: Path) -> Path:
    """Write a default TOML config file and return its path."""
    import tomli_w

    path.parent.mkdir(parents=True, exist_ok=True)
    config: dict[str, Any] = {
        "api_base_url": DEFAULT_API_BASE_URL,
        "api_key_env": DEFAULT_API_KEY_ENV,
        "timeout": 120.0,
        "log_level": "warning",
        "log_levels": {},
    }
    with open(path, "wb") as f:
        tomli_w.dump(config, f)
    return path
