"""pplx-agent: an interactive terminal assistant for the Perplexity chat API."""

__version__ = "0.4.0"

# Re-export core components for convenience
from .client import ChatClient, ChatResponse, Usage, UsageStats
from .config import AgentConfig, configure_logging
from .conversation import ConversationBuffer, ConversationTurn, Role
from .exceptions import (
    AgentError,
    ApiError,
    ConfigError,
    NotFoundError,
    ParseError,
    PathEscapeError,
)
from .settings import Settings, SettingsStore

__all__ = [
    "AgentConfig",
    "AgentError",
    "ApiError",
    "ChatClient",
    "ChatResponse",
    "ConfigError",
    "ConversationBuffer",
    "ConversationTurn",
    "NotFoundError",
    "ParseError",
    "PathEscapeError",
    "Role",
    "Settings",
    "SettingsStore",
    "Usage",
    "UsageStats",
    "__version__",
    "configure_logging",
]
