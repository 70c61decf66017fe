"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest

from sui_graph_ingest.progress import ProgressReporter

SENDER = "0x" + "a" * 64
RECIPIENT = "0x" + "b" * 64


@pytest.fixture
def sender() -> str:
    """Sample sender address (0x-prefixed, full width)."""
    return SENDER


@pytest.fixture
def recipient() -> str:
    """Sample recipient address (0x-prefixed, full width)."""
    return RECIPIENT


@pytest.fixture
def checkpoint_time() -> datetime:
    return datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)


@pytest.fixture
def reporter() -> ProgressReporter:
    return ProgressReporter(keep_history=True)


@pytest.fixture
def make_tx() -> Callable[..., dict[str, Any]]:
    """Factory for ``sui_getTransactionBlock`` results."""

    def _make_tx(
        *,
        sender: str | None = SENDER,
        commands: list[dict[str, Any]] | None = None,
        inputs: list[dict[str, Any]] | None = None,
        kind: str = "ProgrammableTransaction",
        gas: int = 10,
        status: str = "success",
    ) -> dict[str, Any]:
        data: dict[str, Any] = {
            "transaction": {
                "kind": kind,
                "inputs": inputs if inputs is not None else [],
                "transactions": commands if commands is not None else [],
            }
        }
        if sender is not None:
            data["sender"] = sender
        return {
            "transaction": {"data": data},
            "effects": {
                "status": {"status": status},
                "gasUsed": {"computationCost": str(gas), "storageCost": "0"},
            },
        }

    return _make_tx


@pytest.fixture
def transfer_sui_tx(make_tx: Callable[..., dict[str, Any]]) -> dict[str, Any]:
    """A transaction sending 1.5 SUI from SENDER to RECIPIENT."""
    return make_tx(
        inputs=[
            {"type": "pure", "valueType": "address", "value": RECIPIENT},
            {"type": "pure", "valueType": "u64", "value": "1500000000"},
        ],
        commands=[{"TransferSui": [{"Input": 1}, {"Input": 0}]}],
    )
