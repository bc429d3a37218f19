"""Personal chess game library: PGN import, deduplication and indexing."""
