"""Transfer extraction from decoded Sui transaction blocks.

Only programmable transactions are considered, and within them only the two
transfer-shaped commands: ``TransferObjects`` (``[objects, recipient]``) and
``TransferSui`` (``[amount, recipient]``, amount optional). The recipient is
always the last argument. Every other command is ignored.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Any

from sui_graph_ingest.ingestor.models import (
    DecodeOutcome,
    InputIndex,
    LiteralAddress,
    RecipientRef,
    SkippedCommand,
    SkipReason,
    TransferEvent,
    TransferKind,
    mist_to_sui,
    normalize_address,
)

logger = logging.getLogger(__name__)

PROGRAMMABLE_KIND = "ProgrammableTransaction"


class DecodeError(Exception):
    """Raised when a transaction's structure cannot be interpreted."""


def parse_recipient(arg: Any) -> RecipientRef | None:
    """Parse a command argument into a recipient reference.

    Returns None for argument forms that cannot name a recipient address
    (``GasCoin``, ``Result``, ``NestedResult``, null).
    """
    if not isinstance(arg, dict):
        return None
    if "Input" in arg:
        index = arg["Input"]
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            return None
        return InputIndex(index)
    if "AddressOwner" in arg:
        return LiteralAddress(str(arg["AddressOwner"]))
    return None


def resolve_recipient(ref: RecipientRef | None, inputs: Sequence[Any]) -> str | None:
    """Resolve a recipient reference to a normalized address, or None."""
    if ref is None:
        return None
    if isinstance(ref, LiteralAddress):
        raw: Any = ref.address
    elif isinstance(ref, InputIndex):
        if ref.index >= len(inputs):
            return None
        entry = inputs[ref.index]
        if not isinstance(entry, dict):
            return None
        value_type = entry.get("valueType")
        if value_type is not None and value_type != "address":
            return None
        raw = entry.get("value")
    else:
        raise DecodeError(f"unknown recipient reference {ref!r}")

    if not isinstance(raw, str):
        return None
    try:
        return normalize_address(raw)
    except ValueError:
        return None


def resolve_amount(arg: Any, inputs: Sequence[Any]) -> Decimal:
    """Resolve a ``TransferSui`` amount argument to SUI, or zero if unknown."""
    if not isinstance(arg, dict) or "Input" not in arg:
        return Decimal("0")
    index = arg["Input"]
    if not isinstance(index, int) or not 0 <= index < len(inputs):
        return Decimal("0")
    entry = inputs[index]
    if not isinstance(entry, dict) or entry.get("valueType") != "u64":
        return Decimal("0")
    try:
        return mist_to_sui(entry["value"])
    except (KeyError, ArithmeticError):
        return Decimal("0")


def _mapping(value: Any, what: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodeError(f"{what} is not an object")
    return value


def _gas_used(effects: dict[str, Any]) -> int:
    gas = _mapping(effects.get("gasUsed"), "gasUsed")
    try:
        return int(gas.get("computationCost", 0))
    except (TypeError, ValueError) as e:
        raise DecodeError(f"malformed gas cost: {e}") from e


class TransferDecoder:
    """Extracts normalized transfer events from a decoded transaction."""

    def decode(self, tx: dict[str, Any], *, digest: str, timestamp: datetime) -> DecodeOutcome:
        """Decode one transaction into zero or more transfer events.

        Args:
            tx: ``sui_getTransactionBlock`` result (with input and effects).
            digest: Transaction digest, used as the event's ``tx_hash``.
            timestamp: Timestamp of the checkpoint containing the transaction.

        Raises:
            DecodeError: If the transaction's command structure is malformed.
        """
        outcome = DecodeOutcome(digest=digest)
        if not isinstance(tx, dict):
            raise DecodeError("transaction block is not an object")

        data = _mapping(_mapping(tx.get("transaction"), "transaction").get("data"), "data")
        sender_raw = data.get("sender")
        if not sender_raw:
            outcome.ignored_reason = "no_sender"
            return outcome
        try:
            sender = normalize_address(sender_raw)
        except ValueError:
            outcome.ignored_reason = "no_sender"
            return outcome

        program = _mapping(data.get("transaction"), "transaction kind")
        if program.get("kind") != PROGRAMMABLE_KIND:
            outcome.ignored_reason = "not_programmable"
            return outcome

        inputs = program.get("inputs") or []
        commands = program.get("transactions") or []
        if not isinstance(inputs, list) or not isinstance(commands, list):
            raise DecodeError("programmable transaction inputs/commands must be lists")

        effects = _mapping(tx.get("effects"), "effects")
        gas_used = _gas_used(effects)
        success = _mapping(effects.get("status"), "status").get("status") == "success"

        for index, command in enumerate(commands):
            if not isinstance(command, dict):
                continue
            for kind in TransferKind:
                if kind.value not in command:
                    continue
                recipient_arg, amount = self._command_args(kind, command[kind.value], inputs)
                recipient = resolve_recipient(parse_recipient(recipient_arg), inputs)
                if recipient is None:
                    outcome.skipped.append(
                        SkippedCommand(index, kind, SkipReason.UNRESOLVED_RECIPIENT)
                    )
                    continue
                if recipient == sender:
                    outcome.skipped.append(SkippedCommand(index, kind, SkipReason.SELF_TRANSFER))
                    continue
                outcome.events.append(
                    TransferEvent(
                        src=sender,
                        dst=recipient,
                        amount=amount,
                        timestamp=timestamp,
                        tx_hash=digest,
                        gas_used=gas_used,
                        success=success,
                        transaction_type=kind,
                    )
                )

        if outcome.skipped:
            logger.debug(
                "Transaction %s: %d event(s), %d skipped command(s)",
                digest,
                len(outcome.events),
                len(outcome.skipped),
            )
        return outcome

    @staticmethod
    def _command_args(kind: TransferKind, args: Any, inputs: Sequence[Any]) -> tuple[Any, Decimal]:
        if not isinstance(args, list) or not args:
            raise DecodeError(f"{kind.value} arguments must be a non-empty list")
        if kind is TransferKind.TRANSFER_OBJECTS:
            if len(args) < 2:
                raise DecodeError("TransferObjects requires objects and a recipient")
            return args[1], Decimal("0")
        amount = Decimal("0")
        for amount_arg in args[:-1]:
            amount = resolve_amount(amount_arg, inputs)
            if amount:
                break
        return args[-1], amount
