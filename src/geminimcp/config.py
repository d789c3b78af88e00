"""Configuration and logging setup for geminimcp."""

import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError
from rich.console import Console
from rich.logging import RichHandler

from geminimcp.errors import ConfigurationError

API_KEY_ENV = "GOOGLE_GEMINI_API_KEY"
MODEL_ENV = "GOOGLE_GEMINI_MODEL"
SESSION_TTL_ENV = "GEMINI_MCP_SESSION_TTL"
MAX_SESSIONS_ENV = "GEMINI_MCP_MAX_SESSIONS"
LOG_LEVEL_ENV = "GEMINI_MCP_LOG_LEVEL"

DEFAULT_SESSION_TTL = 3600
DEFAULT_MAX_SESSIONS = 100


class Settings(BaseModel):
    """Process-wide settings resolved from the environment."""

    api_key: str = Field(min_length=1, description="Gemini API key")
    default_model: str | None = Field(default=None, description="Model used when a call names none")
    session_ttl_seconds: int = Field(default=DEFAULT_SESSION_TTL, ge=0)
    max_sessions: int = Field(default=DEFAULT_MAX_SESSIONS, ge=0)
    log_level: str = "INFO"


def load_settings(env: dict[str, str] | None = None) -> Settings:
    """Build settings from ``env`` (or the process environment plus ``.env``).

    Raises ConfigurationError when the API key is missing or a value is invalid.
    """
    if env is None:
        load_dotenv()
        env = dict(os.environ)

    api_key = env.get(API_KEY_ENV, "").strip()
    if not api_key:
        raise ConfigurationError(f"{API_KEY_ENV} is not set")

    try:
        return Settings(
            api_key=api_key,
            default_model=env.get(MODEL_ENV, "").strip() or None,
            session_ttl_seconds=env.get(SESSION_TTL_ENV, DEFAULT_SESSION_TTL),
            max_sessions=env.get(MAX_SESSIONS_ENV, DEFAULT_MAX_SESSIONS),
            log_level=env.get(LOG_LEVEL_ENV, "INFO").upper(),
        )
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def setup_logging(level: str = "INFO") -> None:
    """Send log records to stderr; stdout carries the MCP stdio stream."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )
