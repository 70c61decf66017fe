"""nGQL literal rendering and statement builders.

Every statement is prefixed with ``USE <space>;`` because the HTTP gateway
does not keep a session space between requests.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from datetime import UTC, datetime
from decimal import Decimal

from sui_graph_ingest.aggregator.wallets import Wallet
from sui_graph_ingest.analysis.relationships import RelationshipPair
from sui_graph_ingest.ingestor.models import TransferEvent

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

NqlValue = str | int | float | bool | Decimal | datetime | None


def quote(value: str) -> str:
    """Render a double-quoted nGQL string literal."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{escaped}"'


def format_datetime(value: datetime) -> str:
    """Render ``datetime("YYYY-MM-DD HH:MM:SS")`` in UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return f'datetime("{value.strftime(DATETIME_FORMAT)}")'


def format_double(value: float | Decimal) -> str:
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"cannot store non-finite amount {value}")
        text = format(value, "f")
    else:
        if not math.isfinite(value):
            raise ValueError(f"cannot store non-finite value {value}")
        text = repr(float(value))
    return text if "." in text or "e" in text else f"{text}.0"


def literal(value: NqlValue) -> str:
    """Render a Python value as an nGQL literal."""
    if value is None:
        return "NULL"
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (float, Decimal)):
        return format_double(value)
    if isinstance(value, datetime):
        return format_datetime(value)
    return quote(str(value))


def use(space: str, statement: str) -> str:
    return f"USE {space}; {statement}"


def _values(values: Sequence[NqlValue]) -> str:
    return ", ".join(literal(v) for v in values)


def insert_vertex(
    space: str,
    tag: str,
    vid: str,
    fields: Sequence[str],
    values: Sequence[NqlValue],
) -> str:
    if len(fields) != len(values):
        raise ValueError("fields and values must have the same length")
    return use(
        space,
        f"INSERT VERTEX {tag}({', '.join(fields)}) VALUES {quote(vid)}:({_values(values)})",
    )


def insert_edge(
    space: str,
    edge_type: str,
    src: str,
    dst: str,
    fields: Sequence[str],
    values: Sequence[NqlValue],
) -> str:
    if len(fields) != len(values):
        raise ValueError("fields and values must have the same length")
    return use(
        space,
        f"INSERT EDGE {edge_type}({', '.join(fields)}) VALUES "
        f"{quote(src)}->{quote(dst)}:({_values(values)})",
    )


WALLET_FIELDS = ("address", "first_seen", "last_seen", "transaction_count", "total_amount", "is_contract")
WALLET_ENHANCED_FIELDS = WALLET_FIELDS + ("sui_balance", "owned_objects_count", "last_activity")

TRANSACTION_FIELDS = ("amount", "tx_timestamp", "tx_hash", "gas_used", "success")
TRANSACTION_ENHANCED_FIELDS = TRANSACTION_FIELDS + ("transaction_type",)

RELATED_FIELDS = (
    "relationship_score",
    "common_transactions",
    "total_amount",
    "first_interaction",
    "last_interaction",
    "relationship_type",
)
RELATED_ENHANCED_FIELDS = RELATED_FIELDS + ("avg_gas_used",)


def insert_wallet(space: str, wallet: Wallet, *, enhanced: bool = False) -> str:
    values: list[NqlValue] = [
        wallet.address,
        wallet.first_seen,
        wallet.last_seen,
        wallet.transaction_count,
        wallet.total_amount,
        wallet.is_contract,
    ]
    if not enhanced:
        return insert_vertex(space, "wallet", wallet.address, WALLET_FIELDS, values)
    values += [
        wallet.sui_balance if wallet.sui_balance is not None else Decimal("0"),
        wallet.owned_objects_count or 0,
        wallet.last_activity or wallet.last_seen,
    ]
    return insert_vertex(space, "wallet", wallet.address, WALLET_ENHANCED_FIELDS, values)


def insert_transaction(space: str, edge: TransferEvent, *, enhanced: bool = False) -> str:
    values: list[NqlValue] = [edge.amount, edge.timestamp, edge.tx_hash, edge.gas_used, edge.success]
    if not enhanced:
        return insert_edge(space, "transaction", edge.src, edge.dst, TRANSACTION_FIELDS, values)
    kind = edge.transaction_type.value if edge.transaction_type is not None else "unknown"
    values.append(kind)
    return insert_edge(space, "transaction", edge.src, edge.dst, TRANSACTION_ENHANCED_FIELDS, values)


def insert_relationship(space: str, pair: RelationshipPair, *, enhanced: bool = False) -> str:
    values: list[NqlValue] = [
        pair.relationship_score,
        pair.common_transactions,
        pair.total_amount,
        pair.first_interaction,
        pair.last_interaction,
        pair.relationship_type.value,
    ]
    if not enhanced:
        return insert_edge(space, "related_to", pair.src, pair.dst, RELATED_FIELDS, values)
    values.append(pair.avg_gas_used)
    return insert_edge(space, "related_to", pair.src, pair.dst, RELATED_ENHANCED_FIELDS, values)
