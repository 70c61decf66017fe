"""Pairwise relationship scoring over collected transfer edges.

Edges are grouped by the unordered pair of endpoints, so A->B and B->A fold
into one relationship. Each group is scored with ``ln(n + 1)`` where ``n`` is
the number of edges in the group.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sui_graph_ingest.ingestor.models import TransferEvent

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400


def relationship_score(common_transactions: int) -> float:
    """Score a pair by how many transfers it shares.

    Monotonically increasing and unbounded; ``relationship_score(0) == 0``.

    Raises:
        ValueError: If ``common_transactions`` is negative.
    """
    if common_transactions < 0:
        raise ValueError("common_transactions must be >= 0")
    return math.log(common_transactions + 1)


def canonical_pair(a: str, b: str) -> tuple[str, str]:
    return (a, b) if a <= b else (b, a)


class RelationshipType(str, Enum):
    """Relationship strength labels."""

    UNKNOWN = "unknown"
    STRONG = "strong"
    MEDIUM = "medium"
    WEAK = "weak"


@dataclass
class RelationshipPair:
    """Aggregate of every transfer between two wallets, in either direction.

    ``src`` is always the lexicographically smaller address.
    """

    src: str
    dst: str
    common_transactions: int
    total_amount: Decimal
    first_interaction: datetime
    last_interaction: datetime
    relationship_score: float = 0.0
    relationship_type: RelationshipType = RelationshipType.UNKNOWN
    total_gas: int = 0

    @property
    def key(self) -> tuple[str, str]:
        return (self.src, self.dst)

    @property
    def avg_gas_used(self) -> float:
        if self.common_transactions == 0:
            return 0.0
        return self.total_gas / self.common_transactions

    @property
    def timespan_days(self) -> int:
        """Whole days between the first and last interaction, rounded up."""
        seconds = (self.last_interaction - self.first_interaction).total_seconds()
        return max(0, math.ceil(seconds / SECONDS_PER_DAY))


class RelationshipScorer:
    """Folds transfer edges into scored relationship pairs."""

    def score(self, edges: Iterable[TransferEvent]) -> list[RelationshipPair]:
        """Group edges by unordered endpoint pair and score each group.

        Runs in a single pass over ``edges``. Pairs are returned in the
        order their first edge was seen.
        """
        pairs: dict[tuple[str, str], RelationshipPair] = {}
        for edge in edges:
            key = canonical_pair(edge.src, edge.dst)
            pair = pairs.get(key)
            if pair is None:
                pairs[key] = RelationshipPair(
                    src=key[0],
                    dst=key[1],
                    common_transactions=1,
                    total_amount=edge.amount,
                    first_interaction=edge.timestamp,
                    last_interaction=edge.timestamp,
                    total_gas=edge.gas_used,
                )
                continue
            pair.common_transactions += 1
            pair.total_amount += edge.amount
            pair.first_interaction = min(pair.first_interaction, edge.timestamp)
            pair.last_interaction = max(pair.last_interaction, edge.timestamp)
            pair.total_gas += edge.gas_used

        for pair in pairs.values():
            pair.relationship_score = relationship_score(pair.common_transactions)

        logger.debug("Scored %d relationship pair(s)", len(pairs))
        return list(pairs.values())


@dataclass(frozen=True)
class ClassifierWeights:
    """Weights of the four strength factors. They sum to 1."""

    transactions: float = 0.4
    amount: float = 0.3
    timespan: float = 0.2
    frequency: float = 0.1


class RelationshipClassifier:
    """Labels pairs strong/medium/weak from a capped multi-factor score.

    Factors, each in ``[0, 1]`` before weighting:
    - transactions: ``min(n / 10, 1)``
    - amount: ``min(log10(amount + 1) / 4, 1)``
    - timespan: ``max(0, (60 - days) / 60)``, shorter spans score higher
    - frequency: ``min((n / days) / 5, 1)``, zero when ``days == 0``
    """

    STRONG_THRESHOLD = 0.7
    MEDIUM_THRESHOLD = 0.4

    def __init__(self, weights: ClassifierWeights | None = None) -> None:
        self._weights = weights or ClassifierWeights()

    def strength(self, pair: RelationshipPair) -> float:
        n = pair.common_transactions
        days = pair.timespan_days
        frequency = n / days if days > 0 else 0.0
        amount = max(0.0, float(pair.total_amount))

        w = self._weights
        score = (
            min(n / 10, 1.0) * w.transactions
            + min(math.log10(amount + 1) / 4, 1.0) * w.amount
            + max(0.0, (60 - days) / 60) * w.timespan
            + min(frequency / 5, 1.0) * w.frequency
        )
        return min(score, 1.0)

    def classify(self, pair: RelationshipPair) -> RelationshipType:
        score = self.strength(pair)
        if score >= self.STRONG_THRESHOLD:
            return RelationshipType.STRONG
        if score >= self.MEDIUM_THRESHOLD:
            return RelationshipType.MEDIUM
        return RelationshipType.WEAK

    def apply(self, pairs: Iterable[RelationshipPair]) -> None:
        """Set ``relationship_type`` on every pair in place."""
        for pair in pairs:
            pair.relationship_type = self.classify(pair)
