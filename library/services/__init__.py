"""Services for importing and indexing chess games."""

from library.services.opening_stats import OpeningAggregator
from library.services.positions import (
    AppliedMove,
    ChessMoveApplier,
    IndexedPosition,
    MoveApplier,
    PositionIndexer,
)

__all__ = [
    "AppliedMove",
    "ChessMoveApplier",
    "IndexedPosition",
    "MoveApplier",
    "OpeningAggregator",
    "PositionIndexer",
]
