"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

from dataclasses import dataclass
import json
import os
from pathlib import Path
from typing import Any

from core.errors import ValidationError
from core.services.interfaces import ExecutionConfig

URL_ENV = "IMMICH_URL"
API_KEY_ENV = "IMMICH_API_KEY"


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access."""

    def __init__(self, settings_path: str | Path | None = None) -> None:
        self._path = Path(settings_path) if settings_path else None
        self._data: dict[str, Any] = {}
        if self._path is None:
            return
        if not self._path.exists():
            raise FileNotFoundError(f"settings.json not found: {self._path}")
        with self._path.open("r", encoding="utf-8") as f:
            self._data = json.load(f)

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node


@dataclass(frozen=True)
class ServerConfig:
    url: str | None = None
    api_key: str | None = None


def load_server_config(settings: JsonSettings) -> ServerConfig:
    """Server URL and API key; environment variables win over the file."""
    return ServerConfig(
        url=os.environ.get(URL_ENV) or settings.get("server.url"),
        api_key=os.environ.get(API_KEY_ENV) or settings.get("server.api_key"),
    )


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def load_execution_config(settings: JsonSettings, **overrides: Any) -> ExecutionConfig:
    """Build an `ExecutionConfig` from the `execution` section.

    Keyword `overrides` that are not None replace file values.
    """
    defaults = ExecutionConfig()
    values: dict[str, Any] = {
        "requests_per_sec": settings.get("execution.requests_per_sec", defaults.requests_per_sec),
        "max_concurrent": settings.get("execution.max_concurrent", defaults.max_concurrent),
        "backup_dir": settings.get("execution.backup_dir", str(defaults.backup_dir)),
        "force_delete": settings.get("execution.force_delete", defaults.force_delete),
        "preserve_albums": settings.get("execution.preserve_albums", defaults.preserve_albums),
    }
    for key, value in overrides.items():
        if key not in values:
            raise ValidationError(f"Unknown execution option: {key}")
        if value is not None:
            values[key] = value

    try:
        return ExecutionConfig(
            requests_per_sec=int(values["requests_per_sec"]),
            max_concurrent=int(values["max_concurrent"]),
            backup_dir=Path(os.path.expanduser(str(values["backup_dir"]))),
            force_delete=_as_bool(values["force_delete"]),
            preserve_albums=_as_bool(values["preserve_albums"]),
        )
    except (TypeError, ValueError) as ex:
        raise ValidationError(f"Invalid execution settings: {ex}") from ex
