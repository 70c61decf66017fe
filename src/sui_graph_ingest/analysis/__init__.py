"""Relationship analysis over collected transfers."""

from sui_graph_ingest.analysis.relationships import (
    ClassifierWeights,
    RelationshipClassifier,
    RelationshipPair,
    RelationshipScorer,
    RelationshipType,
    canonical_pair,
    relationship_score,
)

__all__ = [
    "ClassifierWeights",
    "RelationshipClassifier",
    "RelationshipPair",
    "RelationshipScorer",
    "RelationshipType",
    "canonical_pair",
    "relationship_score",
]
