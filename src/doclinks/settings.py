"""Settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from .core.encoding import DEFAULT_ENCODING, normalize_encoding
from .utils.file_io import write_text

__all__ = [
    "LinkSettings",
    "SettingsStore",
    "coerce_settings_overrides",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".doclinks"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_DEFAULT_HIGHLIGHT_STYLE = "Underlined"
_ENV_OVERRIDES: Mapping[str, str] = {
    "DOCLINKS_HIGHLIGHT_STYLE": "highlight_style",
    "DOCLINKS_POSITION_ENCODING": "position_encoding",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "DOCLINKS_HIGHLIGHT": "highlight_enabled",
    "DOCLINKS_DISCARD_SUPERSEDED": "discard_superseded_responses",
    "DOCLINKS_DEBUG_LOGGING": "debug_logging",
}
_INT_ENV_OVERRIDES: Mapping[str, str] = {
    "DOCLINKS_IDLE_REFRESH_MS": "idle_refresh_interval_ms",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_CAMEL_CASE_ALIASES: Mapping[str, str] = {
    "highlightEnabled": "highlight_enabled",
    "highlightStyle": "highlight_style",
    "positionEncoding": "position_encoding",
    "discardSupersededResponses": "discard_superseded_responses",
    "idleRefreshIntervalMs": "idle_refresh_interval_ms",
    "debugLogging": "debug_logging",
}


@dataclass(slots=True, frozen=True)
class LinkSettings:
    """User-configurable behaviour of the link engine."""

    highlight_enabled: bool = True
    highlight_style: str = _DEFAULT_HIGHLIGHT_STYLE
    position_encoding: str = DEFAULT_ENCODING
    discard_superseded_responses: bool = True
    idle_refresh_interval_ms: int = 0
    debug_logging: bool = False

    def merged(self, overrides: Mapping[str, Any] | None) -> LinkSettings:
        """Return a copy with ``overrides`` applied (unknown keys ignored)."""

        filtered = coerce_settings_overrides(overrides or {})
        if not filtered:
            return self
        return _normalized(replace(self, **filtered))


class SettingsStore:
    """Persistence adapter for :class:`LinkSettings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> LinkSettings:
        """Load settings from disk, applying runtime/environment overrides when present."""

        payload = self._read_payload()
        settings = LinkSettings()
        if payload:
            data = coerce_settings_overrides(payload)
            try:
                settings = LinkSettings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = LinkSettings()

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="runtime")

        settings = self._apply_env_overrides(settings)
        return _normalized(settings)

    def save(self, settings: LinkSettings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = asdict(settings)
        payload["version"] = _SETTINGS_VERSION
        write_text(self._path, json.dumps(payload, indent=2, sort_keys=True))
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: LinkSettings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> LinkSettings:
        filtered = coerce_settings_overrides(overrides)
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: LinkSettings) -> LinkSettings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _INT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = int(value, 10)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid integer",
                    env_name,
                    value,
                )
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def coerce_settings_overrides(overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Keep only known :class:`LinkSettings` fields, accepting camelCase keys."""

    allowed = {field.name for field in fields(LinkSettings)}
    filtered: Dict[str, Any] = {}
    for key, value in overrides.items():
        name = _CAMEL_CASE_ALIASES.get(key, key)
        if name not in allowed or value is None:
            continue
        filtered[name] = value
    return filtered


def _normalized(settings: LinkSettings) -> LinkSettings:
    try:
        encoding = normalize_encoding(settings.position_encoding)
    except ValueError:
        LOGGER.warning(
            "Unsupported position encoding %r; falling back to %s",
            settings.position_encoding,
            DEFAULT_ENCODING,
        )
        encoding = DEFAULT_ENCODING
    interval = max(0, int(settings.idle_refresh_interval_ms or 0))
    style = str(settings.highlight_style or "").strip() or _DEFAULT_HIGHLIGHT_STYLE
    if (
        encoding == settings.position_encoding
        and interval == settings.idle_refresh_interval_ms
        and style == settings.highlight_style
    ):
        return settings
    return replace(settings, position_encoding=encoding, idle_refresh_interval_ms=interval, highlight_style=style)
