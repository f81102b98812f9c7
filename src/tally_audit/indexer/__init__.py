"""Indexer (subgraph) readers."""
