"""Configuration loading and validation for the codebase chat client."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
from typing import Any

from platformdirs import user_config_path, user_data_path, user_state_path
from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .exceptions import ConfigValidationError
from .models import ModelOption
from .persistence import THREADS_KEY

import tomllib

LOGGER = logging.getLogger(__name__)

APP_NAME = "codebase-chat"

CONFIG_DIR = user_config_path(APP_NAME)
CONFIG_PATH = CONFIG_DIR / "config.toml"

ENV_ENDPOINT_URL = "CODEBASE_CHAT_ENDPOINT_URL"
ENV_API_KEY = "CODEBASE_CHAT_API_KEY"

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}

DEFAULT_MODELS: list[dict[str, str]] = [
    {"id": "gemini-3-flash-preview", "name": "Gemini-3-flash"},
    {"id": "gpt-5", "name": "GPT-5"},
    {"id": "gpt-4.1", "name": "GPT-4.1"},
    {"id": "gpt-4", "name": "GPT-4"},
    {"id": "gpt-4-turbo", "name": "GPT-4 Turbo"},
    {"id": "gpt-3.5-turbo", "name": "GPT-3.5 Turbo"},
    {"id": "x-ai/grok-code-fast-1", "name": "Grok Code Fast"},
    {"id": "claude-3-opus", "name": "Claude 3 Opus"},
    {"id": "claude-3-sonnet", "name": "Claude 3 Sonnet"},
]


def _require_text(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip()
    if not normalized:
        raise ValueError("String value must not be empty.")
    return normalized


class AppConfig(BaseModel):
    """Application metadata."""

    title: str = "Support Chat"

    @field_validator("title", mode="before")
    @classmethod
    def _validate_title(cls, value: Any) -> str:
        return _require_text(value)


class ModelEntry(BaseModel):
    """A selectable model id with its display name."""

    id: str
    name: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _validate_id(cls, value: Any) -> str:
        return _require_text(value)

    @model_validator(mode="after")
    def _default_name(self) -> ModelEntry:
        self.name = self.name.strip() or self.id
        return self


class EndpointConfig(BaseModel):
    """Completion endpoint and model selection.

    ``url`` and ``api_key`` are deliberately not required here: a missing value
    surfaces as a failed send.
    """

    url: str = ""
    api_key: str = ""
    timeout: float | None = Field(default=None, gt=0, le=3600)
    model: str = "gpt-4.1"
    models: list[ModelEntry] = Field(default_factory=list)

    @field_validator("url", "api_key", mode="before")
    @classmethod
    def _normalize_optional_string(cls, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        return value.strip()

    @field_validator("model", mode="before")
    @classmethod
    def _validate_model(cls, value: Any) -> str:
        return _require_text(value)

    @field_validator("models", mode="before")
    @classmethod
    def _validate_models(cls, value: Any) -> list[Any]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError("models must be a list of {id, name} tables.")
        normalized: list[Any] = []
        for item in value:
            # Bare strings are accepted as ids.
            normalized.append({"id": item} if isinstance(item, str) else item)
        return normalized

    @model_validator(mode="after")
    def _normalize_model_list(self) -> EndpointConfig:
        entries = list(self.models) or [ModelEntry(**item) for item in DEFAULT_MODELS]
        deduped: list[ModelEntry] = []
        seen: set[str] = set()
        for entry in entries:
            if entry.id not in seen:
                seen.add(entry.id)
                deduped.append(entry)
        if self.model not in seen:
            deduped.insert(0, ModelEntry(id=self.model))
        self.models = deduped
        return self


class PersistenceConfig(BaseModel):
    """Where the thread collection is stored."""

    directory: str = str(user_data_path(APP_NAME))
    storage_key: str = THREADS_KEY

    @field_validator("directory", "storage_key", mode="before")
    @classmethod
    def _validate_path_string(cls, value: Any) -> str:
        return _require_text(value)


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = str(user_state_path(APP_NAME) / "app.log")

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        return _require_text(value)


class Config(BaseModel):
    """Root configuration model for all sections."""

    app: AppConfig = AppConfig()
    endpoint: EndpointConfig = EndpointConfig()
    persistence: PersistenceConfig = PersistenceConfig()
    logging: LoggingConfig = LoggingConfig()


def _build_default_config() -> dict[str, dict[str, Any]]:
    """Build default config with an empty models list for clean merging."""
    data = Config().model_dump()
    # A user `models` list replaces the defaults rather than merging with them.
    data["endpoint"]["models"] = []
    return data


DEFAULT_CONFIG: dict[str, dict[str, Any]] = _build_default_config()


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _apply_environment(
    data: dict[str, Any], environ: dict[str, str] | None = None
) -> dict[str, Any]:
    """Overlay endpoint settings taken from the process environment."""
    env = os.environ if environ is None else environ
    endpoint = dict(data.get("endpoint") or {})
    url = env.get(ENV_ENDPOINT_URL)
    api_key = env.get(ENV_API_KEY)
    if url:
        endpoint["url"] = url
    if api_key:
        endpoint["api_key"] = api_key
    data["endpoint"] = endpoint
    return data


def _safe_default_config(
    environ: dict[str, str] | None = None,
) -> dict[str, dict[str, Any]]:
    """Return validated defaults, keeping environment endpoint settings."""
    return Config.model_validate(
        _apply_environment(deepcopy(DEFAULT_CONFIG), environ)
    ).model_dump()


def _validate_config(
    raw: dict[str, Any], environ: dict[str, str] | None = None
) -> dict[str, dict[str, Any]]:
    """Validate merged config and fallback to safe defaults when possible."""
    try:
        config = Config.model_validate(raw)
        return config.model_dump()
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return _safe_default_config(environ)
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def load_config(
    config_path: Path | None = None, environ: dict[str, str] | None = None
) -> dict[str, dict[str, Any]]:
    """
    Load configuration from TOML, merge with defaults and environment, and validate.

    The optional ``config_path`` and ``environ`` arguments are intended for tests.
    """
    target_path = config_path or CONFIG_PATH

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    merged = _deep_merge(DEFAULT_CONFIG, raw_data)
    return _validate_config(_apply_environment(merged, environ), environ)


def model_options(config: dict[str, Any]) -> list[ModelOption]:
    """Return the configured models as :class:`ModelOption` records."""
    return [
        ModelOption(id=str(item["id"]), name=str(item.get("name") or item["id"]))
        for item in config["endpoint"]["models"]
    ]
