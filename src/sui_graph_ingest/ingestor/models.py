"""Data models for the ingestor module."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Union

ADDRESS_HEX_WIDTH = 64
MIST_PER_SUI = Decimal("1000000000")

_HEX_RE = re.compile(r"^[0-9a-f]+$")


def normalize_address(raw: str) -> str:
    """Normalize a Sui address to the store's vertex-id format.

    Lower-case hex without the ``0x`` prefix, left-padded with zeros to 64
    characters.

    Raises:
        ValueError: If the value is not a hex address of at most 64 digits.
    """
    if not isinstance(raw, str):
        raise ValueError(f"address must be a string, got {type(raw).__name__}")
    value = raw.strip().lower()
    if value.startswith("0x"):
        value = value[2:]
    if not value or len(value) > ADDRESS_HEX_WIDTH or not _HEX_RE.match(value):
        raise ValueError(f"not a Sui address: {raw!r}")
    return value.zfill(ADDRESS_HEX_WIDTH)


def to_rpc_address(address: str) -> str:
    """Render a normalized address in the ``0x``-prefixed form the node expects."""
    return address if address.startswith("0x") else f"0x{address}"


def mist_to_sui(mist: int | str | Decimal) -> Decimal:
    return Decimal(str(mist)) / MIST_PER_SUI


def timestamp_from_ms(value: int | str) -> datetime:
    return datetime.fromtimestamp(int(value) / 1000, tz=UTC)


@dataclass(frozen=True)
class Checkpoint:
    """A finalized batch of transactions at one sequence number."""

    sequence_number: int
    timestamp: datetime
    transaction_digests: tuple[str, ...]

    @classmethod
    def from_rpc(cls, data: dict[str, Any]) -> Checkpoint:
        """Create a Checkpoint from a ``sui_getCheckpoint`` result.

        Raises:
            KeyError, TypeError, ValueError: If required fields are missing
                or malformed.
        """
        digests = data["transactions"]
        if not isinstance(digests, list):
            raise TypeError("checkpoint.transactions must be a list")
        return cls(
            sequence_number=int(data["sequenceNumber"]),
            timestamp=timestamp_from_ms(data["timestampMs"]),
            transaction_digests=tuple(str(d) for d in digests),
        )


class TransferKind(str, Enum):
    """Command shapes recognized as value transfers."""

    TRANSFER_OBJECTS = "TransferObjects"
    TRANSFER_SUI = "TransferSui"


@dataclass(frozen=True)
class LiteralAddress:
    """Recipient embedded directly in the command."""

    address: str


@dataclass(frozen=True)
class InputIndex:
    """Recipient given as an index into the transaction's input table."""

    index: int


RecipientRef = Union[LiteralAddress, InputIndex]


@dataclass(frozen=True)
class TransferEvent:
    """One directed transfer extracted from a transaction command.

    Addresses are normalized; ``src`` never equals ``dst``.
    """

    src: str
    dst: str
    amount: Decimal
    timestamp: datetime
    tx_hash: str
    gas_used: int
    success: bool
    transaction_type: TransferKind | None = None

    def __post_init__(self) -> None:
        if self.src == self.dst:
            raise ValueError("transfer source and destination must differ")


class SkipReason(str, Enum):
    """Why a transfer-shaped command produced no event."""

    UNRESOLVED_RECIPIENT = "unresolved_recipient"
    SELF_TRANSFER = "self_transfer"


@dataclass(frozen=True)
class SkippedCommand:
    command_index: int
    kind: TransferKind
    reason: SkipReason


@dataclass
class DecodeOutcome:
    """Result of decoding one transaction."""

    digest: str
    events: list[TransferEvent] = field(default_factory=list)
    skipped: list[SkippedCommand] = field(default_factory=list)
    ignored_reason: str | None = None

    @property
    def unresolved(self) -> list[SkippedCommand]:
        return [s for s in self.skipped if s.reason is SkipReason.UNRESOLVED_RECIPIENT]
