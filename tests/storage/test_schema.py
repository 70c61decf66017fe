"""Tests for graph schema statements."""

from __future__ import annotations

from sui_graph_ingest.storage.schema import GraphSchema


class TestGraphSchema:
    def test_space_statements(self) -> None:
        schema = GraphSchema()
        assert schema.drop_space() == "DROP SPACE IF EXISTS sui_analysis"
        assert schema.create_space() == (
            "CREATE SPACE IF NOT EXISTS sui_analysis "
            "(partition_num = 10, replica_factor = 1, vid_type = FIXED_STRING(64))"
        )

    def test_type_statements_are_idempotent_forms(self) -> None:
        for statement in GraphSchema(space="g").type_statements():
            assert statement.startswith("USE g; CREATE ")
            assert "IF NOT EXISTS" in statement

    def test_basic_types_omit_enrichment_columns(self) -> None:
        schema = GraphSchema()
        assert "sui_balance" not in schema.create_wallet_tag()
        assert "transaction_type" not in schema.create_transaction_edge()
        assert "avg_gas_used" not in schema.create_related_edge()

    def test_enhanced_types_add_columns(self) -> None:
        schema = GraphSchema(enhanced=True)
        assert "owned_objects_count int DEFAULT 0" in schema.create_wallet_tag()
        assert 'transaction_type string DEFAULT "unknown"' in schema.create_transaction_edge()
        assert "avg_gas_used double DEFAULT 0.0" in schema.create_related_edge()
