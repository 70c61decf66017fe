"""Test that the project setup is working correctly."""

import sui_graph_ingest


def test_version() -> None:
    """Test that version is defined."""
    assert sui_graph_ingest.__version__ == "0.1.0"


def test_import_modules() -> None:
    """Test that all submodules can be imported."""
    from sui_graph_ingest import aggregator
    from sui_graph_ingest import analysis
    from sui_graph_ingest import ingestor
    from sui_graph_ingest import pipeline
    from sui_graph_ingest import storage

    # Just verify imports work
    assert aggregator is not None
    assert analysis is not None
    assert ingestor is not None
    assert pipeline is not None
    assert storage is not None
