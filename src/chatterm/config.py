"""Configuration management for Chatterm."""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from chatterm.exceptions import ConfigError
from chatterm.streaming import STREAM_FORMATS

API_KEY_ENV = "ANTHROPIC_API_KEY"
ENV_PREFIX = "CHATTERM_"

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
# Settings that may be overridden from the environment as CHATTERM_<NAME>.
_ENV_OVERRIDES = (
    "base_url",
    "api_version",
    "model",
    "max_tokens",
    "stream_format",
    "connect_timeout",
    "read_timeout",
    "check_on_startup",
    "log_level",
    "log_file",
)


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
            "thread": record.threadName,
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


def configure_logging(config: "ChatConfig") -> None:
    """Configure structured logging.

    The TUI owns the terminal, so without a log file records are dropped
    instead of being written over the display.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handler: logging.Handler
    if config.log_file:
        handler = logging.FileHandler(config.log_file, encoding="utf-8")
        handler.setFormatter(_StructuredFormatter())
    else:
        handler = logging.NullHandler()
    handler.setLevel(logging.NOTSET)
    root_logger.addHandler(handler)

    min_level = min(_iter_log_levels(config.log_level, config.log_levels))
    root_logger.setLevel(min_level)

    for name, level in config.log_levels.items():
        logging.getLogger(name).setLevel(_parse_log_level(level))

    # Keep transport chatter out of debug logs unless asked for explicitly.
    if "httpx" not in config.log_levels:
        logging.getLogger("httpx").setLevel(logging.WARNING)
    if "httpcore" not in config.log_levels:
        logging.getLogger("httpcore").setLevel(logging.WARNING)


class ChatConfig(BaseModel):
    """Main configuration for the chat client."""

    api_key: str = Field(description="Credential sent as x-api-key")
    base_url: str = Field(
        default="https://api.anthropic.com", description="Completion service base URL"
    )
    api_version: str = Field(default="2023-06-01", description="anthropic-version header")
    model: str = Field(default="claude-3-opus-20240229", description="Model identifier")
    max_tokens: int = Field(default=4096, ge=1, description="Max output tokens per turn")
    stream_format: str = Field(
        default="sse",
        description="Response framing: sse (server-sent events) or lines (raw text lines)",
    )

    # Transport
    connect_timeout: float = Field(default=10.0, gt=0, description="Connect timeout (seconds)")
    read_timeout: float = Field(
        default=60.0, gt=0, description="Read-inactivity timeout (seconds) - resets on each chunk"
    )
    check_on_startup: bool = Field(
        default=False, description="Verify the service is reachable before starting the UI"
    )

    # Logging
    log_level: str = Field(default="warning", description="Log level")
    log_levels: dict[str, str] = Field(
        default_factory=dict,
        description="Per-component log levels (e.g., {'chatterm.client': 'debug'})",
    )
    log_file: str | None = Field(
        default=None,
        description="Optional log file path (structured JSON)",
    )

    @field_validator("api_key")
    @classmethod
    def _validate_api_key(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError(f"{API_KEY_ENV} is empty")
        return value

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return value.rstrip("/")

    @field_validator("stream_format")
    @classmethod
    def _validate_stream_format(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in STREAM_FORMATS:
            valid = ", ".join(sorted(STREAM_FORMATS))
            raise ValueError(f"Invalid stream_format. Valid: {valid}")
        return normalized

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        _parse_log_level(value)
        return value.strip().lower()

    @field_validator("log_levels")
    @classmethod
    def _validate_log_levels(cls, value: dict[str, str]) -> dict[str, str]:
        return _coerce_log_levels(value)

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/v1/messages"

    @property
    def models_url(self) -> str:
        return f"{self.base_url}/v1/models"

    @classmethod
    def default_path(cls) -> Path:
        """Get default config file path."""
        return Path.home() / ".config" / "chatterm" / "config.toml"

    @classmethod
    def from_env(
        cls,
        *,
        env: dict[str, str] | None = None,
        dotenv_path: str | Path | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> "ChatConfig":
        """Build the configuration from the environment.

        A ``.env`` file is loaded first when one is present. ``CHATTERM_*``
        variables are applied on top of ``overrides``, and the credential
        always comes from ``ANTHROPIC_API_KEY``.

        Raises:
            ConfigError: If the credential is missing or a setting is invalid.
        """
        if env is None:
            load_dotenv(dotenv_path=dotenv_path)
            env = dict(os.environ)

        data: dict[str, Any] = dict(overrides or {})
        for name in _ENV_OVERRIDES:
            value = env.get(f"{ENV_PREFIX}{name.upper()}")
            if value is not None:
                data[name] = value

        api_key = env.get(API_KEY_ENV, "").strip()
        if not api_key:
            raise ConfigError(f"{API_KEY_ENV} is not set")
        data["api_key"] = api_key

        try:
            return cls(**data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        *,
        env: dict[str, str] | None = None,
        dotenv_path: str | Path | None = None,
    ) -> "ChatConfig":
        """Load settings from a TOML file, then apply the environment."""
        path = Path(path)
        if not path.exists():
            raise ConfigError("Config file not found", {"path": str(path)})
        return cls.from_env(env=env, dotenv_path=dotenv_path, overrides=cls._read_toml(path))

    @classmethod
    def load(
        cls,
        path: str | Path | None = None,
        *,
        env: dict[str, str] | None = None,
        dotenv_path: str | Path | None = None,
    ) -> "ChatConfig":
        """Build the configuration once at startup.

        Uses ``path`` when given, else the default config file if it exists,
        else the environment alone.
        """
        if path is None:
            default = cls.default_path()
            if not default.exists():
                return cls.from_env(env=env, dotenv_path=dotenv_path)
            path = default
        return cls.from_file(path, env=env, dotenv_path=dotenv_path)

    @staticmethod
    def _read_toml(path: Path) -> dict[str, Any]:
        import tomllib

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(f"Cannot read config file: {exc}", {"path": str(path)}) from exc
        # The credential is never taken from a file.
        data.pop("api_key", None)
        return data
