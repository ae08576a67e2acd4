"""calnotes.config_loader

Config loader for calnotes.

- Reads YAML via PyYAML's safe_load.
- Exposes a typed dataclass `Config` and a `load_config()` helper that accepts
  an optional path override.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from pydantic import ValidationError

from .calendar.models import CalendarSource
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "calnotes" / "config.yaml"

MIN_REFRESH_MINUTES = 1
MAX_REFRESH_MINUTES = 1440


@dataclass
class Config:
    """Typed configuration for calnotes.

    Fields:
        sources: calendar feeds to aggregate
        refresh_interval_minutes: how often to refresh (1..1440)
        cache_path: where the last refreshed events are persisted
        request_timeout: default HTTP read timeout in seconds
        max_occurrences_per_rule: cap on occurrences one RRULE may produce
        log_level: logging level name
    """

    sources: list[CalendarSource] = field(default_factory=list)
    refresh_interval_minutes: int = 15
    cache_path: str | None = None
    request_timeout: int = 30
    max_occurrences_per_rule: int = 250
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Config:
        """Create Config from a plain mapping, applying defaults and validation.

        Sources may be given as mappings with `name`/`url` or as bare URL
        strings (named after their host). Invalid entries are dropped with a
        warning. Numeric values are coerced to int and the refresh interval
        is clamped to 1..1440 minutes.
        """
        if data is None:
            data = {}

        # Single-feed configs use `source_url`
        sources_raw = data.get("sources") or data.get("source_url") or []
        if isinstance(sources_raw, str):
            sources_raw = [sources_raw]
        elif not isinstance(sources_raw, (list, tuple)):
            logger.warning("Config `sources` is not a list; coercing to single-item list")
            sources_raw = [sources_raw]

        sources = []
        for i, raw in enumerate(sources_raw):
            source = _coerce_source(raw, i)
            if source is not None:
                sources.append(source)

        def _coerce_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            try:
                return int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default

        refresh = _coerce_int("refresh_interval_minutes", 15)
        if refresh < MIN_REFRESH_MINUTES:
            logger.warning(
                "refresh_interval_minutes %d below minimum; coercing to %d", refresh, MIN_REFRESH_MINUTES
            )
            refresh = MIN_REFRESH_MINUTES
        elif refresh > MAX_REFRESH_MINUTES:
            logger.warning(
                "refresh_interval_minutes %d above maximum; coercing to %d", refresh, MAX_REFRESH_MINUTES
            )
            refresh = MAX_REFRESH_MINUTES

        cache_path = data.get("cache_path")
        log_level = data.get("log_level", "INFO")

        return cls(
            sources=sources,
            refresh_interval_minutes=refresh,
            cache_path=str(cache_path) if cache_path else None,
            request_timeout=_coerce_int("request_timeout", 30),
            max_occurrences_per_rule=_coerce_int("max_occurrences_per_rule", 250),
            log_level=str(log_level).upper() if log_level is not None else "INFO",
        )


def _coerce_source(raw: Any, index: int) -> CalendarSource | None:
    if isinstance(raw, str):
        host = urlparse(raw).hostname or f"calendar-{index + 1}"
        raw = {"name": host, "url": raw}

    if not isinstance(raw, dict):
        logger.warning("Ignoring source #%d: expected mapping or URL, got %r", index + 1, raw)
        return None

    try:
        return CalendarSource.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Ignoring invalid source #%d: %s", index + 1, exc)
        return None


def load_config(path: str | None = None) -> Config:
    """Load configuration from a YAML file and return a Config instance.

    Args:
        path: Optional path to the config file. Defaults to
              ~/.config/calnotes/config.yaml.

    Returns:
        Config dataclass instance with values from file (or defaults).

    Raises:
        ConfigurationError: If the file cannot be parsed or its top level
            is not a mapping.
    """
    p = Path(path) if path else DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load config from %s", p)
    if not p.exists():
        logger.info("Config file %s not found; using defaults", p)
        return Config()

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Unable to read config {p}: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, raw)
        raise ConfigurationError("Config file must contain a mapping at top level")

    cfg = Config.from_dict(raw)
    logger.info("Loaded configuration from %s (%d sources)", p, len(cfg.sources))
    logger.debug("Configuration values: %s", cfg)
    return cfg
