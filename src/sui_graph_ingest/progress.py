"""Progress feed for ingestion runs.

A run reports what happened as an ordered sequence of typed, timestamped
records. The reporter is a single-producer channel: the pipeline writes to it,
the transport layer drains it through ``stream()`` and serializes each record
as one line of JSON.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ProgressEventType(str, Enum):
    """Kinds of progress records."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    PROGRESS = "progress"
    COMPLETE = "complete"


_LOG_LEVELS = {
    ProgressEventType.INFO: logging.INFO,
    ProgressEventType.SUCCESS: logging.INFO,
    ProgressEventType.WARNING: logging.WARNING,
    ProgressEventType.ERROR: logging.ERROR,
    ProgressEventType.PROGRESS: logging.DEBUG,
    ProgressEventType.COMPLETE: logging.INFO,
}


@dataclass(frozen=True)
class ProgressEvent:
    """One record of the progress feed."""

    type: ProgressEventType
    message: str
    data: dict[str, Any] | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def percent(self) -> int | None:
        """Return the progress percentage carried by a ``progress`` record."""
        if self.type is not ProgressEventType.PROGRESS or not self.data:
            return None
        value = self.data.get("progress")
        return int(value) if value is not None else None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type.value, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        payload["timestamp"] = self.timestamp.isoformat().replace("+00:00", "Z")
        return payload

    def to_json(self) -> str:
        """Serialize as a single NDJSON line (without the trailing newline)."""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


class ProgressReporter:
    """Append-only sink of progress records backed by an asyncio queue.

    ``progress`` percentages are clamped so the feed never goes backwards
    within a run, whatever the caller passes.

    Example:
        ```python
        reporter = ProgressReporter()
        reporter.info("starting")
        reporter.progress("checkpoint 1/10", 3)
        reporter.close()

        async for event in reporter.stream():
            print(event.to_json())
        ```
    """

    def __init__(self, *, keep_history: bool = False, streaming: bool = True) -> None:
        self._queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
        self._keep_history = keep_history
        self._streaming = streaming
        self._events: list[ProgressEvent] = []
        self._last_percent = 0
        self._closed = False

    @property
    def events(self) -> tuple[ProgressEvent, ...]:
        """Records emitted so far, in emission order.

        Empty unless the reporter was created with ``keep_history=True``.
        """
        return tuple(self._events)

    @property
    def last_percent(self) -> int:
        return self._last_percent

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(
        self,
        event_type: ProgressEventType,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> ProgressEvent:
        """Append a record to the feed.

        Raises:
            RuntimeError: If the reporter was already closed.
        """
        if self._closed:
            raise RuntimeError("Cannot emit on a closed progress reporter")
        event = ProgressEvent(type=event_type, message=message, data=data)
        if self._keep_history:
            self._events.append(event)
        if self._streaming:
            self._queue.put_nowait(event)
        logger.log(_LOG_LEVELS[event_type], "[%s] %s", event_type.value, message)
        return event

    def info(self, message: str, data: dict[str, Any] | None = None) -> ProgressEvent:
        return self.emit(ProgressEventType.INFO, message, data)

    def success(self, message: str, data: dict[str, Any] | None = None) -> ProgressEvent:
        return self.emit(ProgressEventType.SUCCESS, message, data)

    def warning(self, message: str, data: dict[str, Any] | None = None) -> ProgressEvent:
        return self.emit(ProgressEventType.WARNING, message, data)

    def error(self, message: str, data: dict[str, Any] | None = None) -> ProgressEvent:
        return self.emit(ProgressEventType.ERROR, message, data)

    def progress(self, message: str, percent: float) -> ProgressEvent:
        """Emit a ``progress`` record, clamped to ``[last, 100]``."""
        value = max(self._last_percent, min(100, int(round(percent))))
        self._last_percent = value
        return self.emit(ProgressEventType.PROGRESS, message, {"progress": value})

    def complete(self, message: str, stats: dict[str, int]) -> ProgressEvent:
        return self.emit(ProgressEventType.COMPLETE, message, {"stats": dict(stats)})

    def close(self) -> None:
        """Mark the end of the feed; pending consumers drain and stop."""
        if self._closed:
            return
        self._closed = True
        if self._streaming:
            self._queue.put_nowait(None)

    async def stream(self) -> AsyncIterator[ProgressEvent]:
        """Yield records in emission order until the reporter is closed."""
        if not self._streaming:
            raise RuntimeError("Progress reporter was created without streaming")
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


def band(start: int, end: int, done: int, total: int) -> float:
    """Map ``done/total`` into the ``[start, end]`` percentage band."""
    if total <= 0:
        return float(end)
    fraction = max(0.0, min(1.0, done / total))
    return start + fraction * (end - start)
