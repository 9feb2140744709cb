"""In-process mutation log with optional JSON-lines persistence.

Records are appended in order and folded into registered aggregations on
read. Each aggregation keeps a checkpoint ``(position, state)`` so a read
only folds the records appended since the previous read.

The on-disk format is one JSON object per line:
``{"sequence": 1, "timestamp": "...Z", "record": {...}, "meta": {...}}``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Union

from calendarlog.core.time_utils import format_instant, now_utc
from calendarlog.domain.event_store import CalendarState, EventStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogEntry:
    """One appended record with its position and metadata."""

    sequence: int
    record: dict[str, Any]
    meta: dict[str, Any] = field(default_factory=dict)
    timestamp: str = ""


class InMemoryEventLog:
    """Ordered mutation log that folds records into aggregations on demand."""

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        clock: Callable[[], Any] = now_utc,
    ) -> None:
        """Create an event log.

        Args:
            path: Optional JSON-lines file; existing entries are loaded and new
                ones appended to it
            clock: Callable returning the current UTC datetime
        """
        self._path = Path(path) if path else None
        self._clock = clock
        self._entries: list[LogEntry] = []
        self._aggregations: dict[str, EventStore] = {}
        self._checkpoints: dict[str, tuple[int, CalendarState]] = {}
        self._lock = asyncio.Lock()

        if self._path is not None:
            self.load()

    @property
    def entries(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    def register_aggregation(self, name: str, store: EventStore) -> None:
        self._aggregations[name] = store
        self._checkpoints.pop(name, None)
        logger.debug("Registered aggregation %s", name)

    def load(self) -> None:
        """Load entries from the JSON-lines file, skipping unreadable lines."""
        assert self._path is not None
        self._entries = []
        self._checkpoints.clear()
        if not self._path.exists():
            logger.debug("Event log file not found; starting empty: %s", self._path)
            return

        with self._path.open("r", encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                if not line.strip():
                    continue
                try:
                    data = json.loads(line)
                    record = data["record"]
                    if not isinstance(record, dict):
                        raise ValueError("record must be an object")
                except (ValueError, KeyError, TypeError) as exc:
                    logger.warning("Skipping unreadable event log line %s:%d: %s", self._path, lineno, exc)
                    continue
                self._entries.append(
                    LogEntry(
                        sequence=len(self._entries) + 1,
                        record=record,
                        meta=data.get("meta") or {},
                        timestamp=data.get("timestamp", ""),
                    )
                )
        logger.debug("Loaded %d entries from %s", len(self._entries), self._path)

    async def append_record(
        self,
        tag: str,
        payload: Mapping[str, Any],
        meta: Optional[Mapping[str, Any]] = None,
    ) -> None:
        tag_value = tag.value if isinstance(tag, Enum) else str(tag)
        record = {"type": tag_value, **payload}
        async with self._lock:
            entry = LogEntry(
                sequence=len(self._entries) + 1,
                record=record,
                meta=dict(meta or {}),
                timestamp=format_instant(self._clock()),
            )
            if self._path is not None:
                # Written under the lock so file order matches sequence numbers.
                await asyncio.to_thread(self._write_entry, entry)
            self._entries.append(entry)
        logger.debug("Appended %s record #%d", tag_value, entry.sequence)

    def _write_entry(self, entry: LogEntry) -> None:
        assert self._path is not None
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(asdict(entry), ensure_ascii=False) + "\n")

    async def get_current_snapshot(self, aggregation_name: str) -> CalendarState:
        """Fold records appended since the last checkpoint and return the state.

        Raises:
            KeyError: If no aggregation is registered under ``aggregation_name``
        """
        store = self._aggregations.get(aggregation_name)
        if store is None:
            raise KeyError(f"Unknown aggregation: {aggregation_name!r}")

        async with self._lock:
            position, state = self._checkpoints.get(aggregation_name, (0, store.initialize()))
            pending = [entry.record for entry in self._entries[position:]]
            if pending:
                state = store.fold(pending, state)
            self._checkpoints[aggregation_name] = (len(self._entries), state)
        return state

    def replay(self, aggregation_name: str) -> CalendarState:
        """Fold the whole log from empty state, ignoring checkpoints."""
        store = self._aggregations[aggregation_name]
        return store.fold(entry.record for entry in self._entries)
