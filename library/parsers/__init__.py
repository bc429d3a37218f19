"""Chess game parsers package.

This package turns stored PGN bytes into normalized games: the stream
decoder splits a file into raw game blocks and the PGN parser normalizes
each block into a NormalizedGame.
"""

from .base import (
    GameParser,
    MainlineMoves,
    MoveNode,
    MoveTree,
    NormalizedGame,
    PgnParseError,
    VariationTree,
    move_tree_from_json,
)
from .pgn import PGNParser
from .stream import RawGame, iter_lines, iter_pgn_games

__all__ = [
    "GameParser",
    "MainlineMoves",
    "MoveNode",
    "MoveTree",
    "NormalizedGame",
    "PGNParser",
    "PgnParseError",
    "RawGame",
    "VariationTree",
    "iter_lines",
    "iter_pgn_games",
    "move_tree_from_json",
]
