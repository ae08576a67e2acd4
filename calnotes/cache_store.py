"""JSON-backed store for the last refreshed event cache, with atomic writes."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from .calendar.datetime_utils import normalize_instant, serialize_datetime_utc
from .calendar.models import CachedEvent

logger = logging.getLogger(__name__)

DEFAULT_CACHE_PATH = Path.home() / ".cache" / "calnotes" / "events.json"


class EventCacheStore:
    """Persistent cache of the unexpanded events from the last refresh.

    The on-disk format is a JSON object:
        {"refreshed_at": "<iso>", "events": [<CachedEvent json>, ...]}

    A save always replaces the whole file; there is no partial update.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else DEFAULT_CACHE_PATH
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> tuple[list[CachedEvent], datetime | None]:
        """Load cached events and the time they were refreshed.

        A missing, unreadable or malformed file yields an empty cache.
        Individual malformed entries are skipped.
        """
        with self._lock:
            if not self._path.exists():
                logger.debug("Event cache file not found; starting empty: %s", self._path)
                return [], None

            try:
                with self._path.open("r", encoding="utf-8") as fh:
                    data = json.load(fh)
                if not isinstance(data, dict):
                    raise ValueError("event cache JSON root must be an object")  # noqa: TRY004
            except (OSError, ValueError) as exc:
                logger.warning("Failed to read event cache %s: %s", self._path, exc)
                return [], None

        events: list[CachedEvent] = []
        for entry in data.get("events") or []:
            try:
                events.append(CachedEvent.model_validate(entry))
            except ValidationError as exc:
                logger.debug("Skipping malformed cache entry: %s", exc)

        refreshed_at = normalize_instant(data.get("refreshed_at"))
        logger.debug("Loaded event cache %s (%d events)", self._path, len(events))
        return events, refreshed_at

    def save(self, events: list[CachedEvent], refreshed_at: datetime) -> None:
        """Persist the cache atomically.

        Writes to a temporary file in the same directory then replaces the
        target, so readers never observe a half-written cache.

        Raises:
            OSError: If the file cannot be written
        """
        payload = {
            "refreshed_at": serialize_datetime_utc(refreshed_at),
            "events": [event.model_dump(mode="json") for event in events],
        }

        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = None
            try:
                with tempfile.NamedTemporaryFile(
                    "w", dir=self._path.parent, delete=False, encoding="utf-8", suffix=".tmp"
                ) as tf:
                    tmp_path = Path(tf.name)
                    json.dump(payload, tf, ensure_ascii=False)
                    tf.flush()
                    with contextlib.suppress(OSError):
                        os.fsync(tf.fileno())
                tmp_path.replace(self._path)
            except OSError:
                if tmp_path is not None:
                    with contextlib.suppress(OSError):
                        tmp_path.unlink()
                raise

        logger.debug("Persisted %d events to %s", len(events), self._path)
