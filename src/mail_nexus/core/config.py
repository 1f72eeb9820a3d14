"""Application configuration models and loader utilities."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any, cast

from dotenv import dotenv_values
from pydantic import BaseModel, Field

LOGGER = logging.getLogger(__name__)


class BackendSettings(BaseModel):
    """Settings for the remote data service holding emails and templates."""

    url: str | None = Field(default=None, description="Service endpoint URL")
    anon_key: str | None = Field(default=None, description="Public access key")
    service_role_key: str | None = Field(
        default=None, description="Privileged key used instead of the anon key"
    )
    timeout_seconds: float = Field(
        default=30.0, gt=0, description="Request timeout for remote calls"
    )
    stats_function: str = Field(
        default="get_email_stats", description="Remote aggregation procedure"
    )
    send_function: str = Field(
        default="send-email", description="Remote function that delivers a message"
    )

    @property
    def is_configured(self) -> bool:
        """Return ``True`` when both an endpoint and a credential are set."""
        return bool(self.url and self.anon_key)

    @property
    def access_key(self) -> str | None:
        """Key sent with every request, preferring the service role key."""
        return self.service_role_key or self.anon_key


class SmtpSettings(BaseModel):
    """Outbound SMTP account shown on the settings screen."""

    host: str = Field(default="", description="SMTP hostname")
    port: int = Field(default=587, description="SMTP port")
    secure: bool = Field(default=False, description="Use implicit TLS")
    username: str = Field(default="", description="SMTP username")
    password: str = Field(default="", description="SMTP password")
    from_email: str = Field(default="", description="Default sender address")
    from_name: str = Field(
        default="Mail Nexus Gateway", description="Default sender display name"
    )


class ServerSettings(BaseModel):
    """Public facing server details of the gateway."""

    vps_ip: str = Field(default="", description="Server IP address")
    domain: str = Field(default="", description="Public domain")
    ssl_enabled: bool = Field(default=True, description="Serve over HTTPS")


class LoggingSettings(BaseModel):
    """Logging preferences."""

    level: str = Field(default="INFO", description="Root logging level")
    structured: bool = Field(
        default=False, description="Toggle JSON structured logging"
    )
    file: Path | None = Field(
        default=None, description="Optional rotating log file next to the console"
    )
    loggers: dict[str, str] = Field(
        default_factory=dict, description="Per-logger level overrides"
    )


class AppSettings(BaseModel):
    """Aggregated application configuration."""

    backend: BackendSettings = Field(default_factory=BackendSettings)
    smtp: SmtpSettings = Field(default_factory=SmtpSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    app_name: str = Field(default="Mail Nexus Gateway")
    timezone: str | None = Field(
        default=None,
        description="IANA zone used for 'today' boundaries; system local when unset",
    )


ENV_PREFIX = "MAIL_NEXUS_"

# Saved console configuration documents name the backend section "supabase".
_SECTION_ALIASES: dict[str, str] = {"supabase": "backend"}


def _normalize_key(raw_key: str) -> list[str]:
    """Convert an environment variable key into a nested attribute path."""
    trimmed = raw_key.removeprefix(ENV_PREFIX)
    return [segment.lower() for segment in trimmed.split("__") if segment]


def _coerce_env_value(value: str) -> Any:
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return value


def _merge_into_tree(tree: dict[str, Any], path: list[str], value: Any) -> None:
    """Assign a value to a nested dictionary given a path."""
    cursor = tree
    for segment in path[:-1]:
        next_node = cursor.setdefault(segment, {})
        cursor = cast(dict[str, Any], next_node)
    cursor[path[-1]] = value


def _deep_merge(base: dict[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``base`` updated with ``updates``, merging nested sections."""
    merged = dict(base)
    for key, value in updates.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def _drop_blank(tree: Mapping[str, Any]) -> dict[str, Any]:
    """Remove empty strings so that they fall back to model defaults."""
    cleaned: dict[str, Any] = {}
    for key, value in tree.items():
        if isinstance(value, Mapping):
            cleaned[key] = _drop_blank(value)
        elif value != "" and value is not None:
            cleaned[key] = value
    return cleaned


def _read_config_document(path: Path | str) -> dict[str, Any]:
    """Load a saved JSON configuration; unreadable documents are ignored."""
    document_path = Path(path).expanduser()
    if not document_path.is_file():
        return {}
    try:
        raw = json.loads(document_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        LOGGER.warning("Ignoring unreadable configuration %s: %s", document_path, exc)
        return {}
    if not isinstance(raw, dict):
        LOGGER.warning("Ignoring configuration %s: expected an object", document_path)
        return {}
    return _drop_blank(
        {_SECTION_ALIASES.get(key, key): value for key, value in raw.items()}
    )


def _collect_env_values(
    env_file: Path | str | None, *, include_environment: bool
) -> dict[str, Any]:
    """Load configuration values from environment variables and optional file.

    Process variables win over the file. Empty values count as unset.
    """
    file_values: dict[str, str | None] = {}
    if env_file:
        env_path = Path(env_file)
        if env_path.is_file():
            file_values = dict(dotenv_values(env_path))

    combined: dict[str, str | None] = {**file_values}
    if include_environment:
        combined.update(os.environ)

    collected: dict[str, Any] = {}
    for key, value in combined.items():
        if not key or not key.startswith(ENV_PREFIX) or not value:
            continue
        path = _normalize_key(key)
        if path:
            _merge_into_tree(collected, path, _coerce_env_value(value))
    return collected


@lru_cache(maxsize=1)
def load_app_settings(
    env_file: Path | str | None = None,
    *,
    config_file: Path | str | None = None,
    include_environment: bool = True,
    **overrides: Any,
) -> AppSettings:
    """Load application settings from every configured source.

    Sources are layered from weakest to strongest: a saved JSON document
    (``config_file`` or ``MAIL_NEXUS_CONFIG_FILE``), the ``.env`` file, the
    process environment and finally keyword ``overrides``.
    """
    env_tree = _collect_env_values(env_file, include_environment=include_environment)
    env_tree.pop("env_file", None)
    document_path = config_file or env_tree.pop("config_file", None)

    collected: dict[str, Any] = {}
    if document_path:
        collected = _read_config_document(document_path)
    collected = _deep_merge(collected, env_tree)
    if overrides:
        collected = _deep_merge(collected, overrides)
    return AppSettings.model_validate(collected)


__all__ = [
    "ENV_PREFIX",
    "AppSettings",
    "BackendSettings",
    "LoggingSettings",
    "ServerSettings",
    "SmtpSettings",
    "load_app_settings",
]
