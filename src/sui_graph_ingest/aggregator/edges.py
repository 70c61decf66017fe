"""Append-only collection of transfer events."""

from __future__ import annotations

from collections.abc import Iterator

from sui_graph_ingest.ingestor.models import TransferEvent


class EdgeCollector:
    """Ordered list of every accepted transfer.

    No deduplication: a digest seen twice is stored twice and written to the
    store as two edges.
    """

    def __init__(self) -> None:
        self._edges: list[TransferEvent] = []

    def append(self, event: TransferEvent) -> None:
        self._edges.append(event)

    @property
    def edges(self) -> tuple[TransferEvent, ...]:
        return tuple(self._edges)

    def __len__(self) -> int:
        return len(self._edges)

    def __iter__(self) -> Iterator[TransferEvent]:
        return iter(self._edges)
