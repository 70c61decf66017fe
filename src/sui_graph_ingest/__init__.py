"""Sui checkpoint ingestion into a NebulaGraph wallet-relationship graph."""

__version__ = "0.1.0"
