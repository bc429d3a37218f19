"""Position indexing service for chess games."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import chess

from library.behaviors import STARTING_FEN, FenError, normalize_fen

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppliedMove:
    """The outcome of playing one move.

    Attributes:
        uci: The move in coordinate notation, e.g. "g1f3" or "e7e8q".
        fen: The full FEN of the resulting position.
    """

    uci: str
    fen: str


class MoveApplier(Protocol):
    """Narrow rules-engine interface used by the indexer."""

    def apply(self, move: str, fen: str) -> AppliedMove | None:
        """Play a move in SAN from a position.

        Returns:
            The applied move, or None if the move is illegal there.
        """
        ...


class ChessMoveApplier:
    """MoveApplier backed by python-chess."""

    def apply(self, move: str, fen: str) -> AppliedMove | None:
        """Play a SAN move on a board set up from ``fen``."""
        try:
            board = chess.Board(fen)
            parsed = board.parse_san(move)
        except ValueError:
            return None
        board.push(parsed)
        return AppliedMove(uci=parsed.uci(), fen=board.fen())


@dataclass(frozen=True)
class IndexedPosition:
    """One position of a game and the move played from it.

    Attributes:
        ply: 1-based index of the position within the game.
        fen_norm: Normalized position identity.
        stm: Side to move.
        castling: Castling rights.
        ep_square: En-passant square, or None.
        halfmove: Halfmove clock.
        fullmove: Fullmove number.
        material_key: Coarse material signature.
        next_move_uci: The move played from this position, None for the
            final position.
        next_fen_norm: Identity of the resulting position.
    """

    ply: int
    fen_norm: str
    stm: str
    castling: str
    ep_square: str | None
    halfmove: int
    fullmove: int
    material_key: str
    next_move_uci: str | None = None
    next_fen_norm: str | None = None


class PositionIndexer:
    """Replays a game's moves to build its per-ply position index.

    A move that cannot be applied truncates the rest of the game instead of
    failing, so a partly broken game is still indexed up to that point.

    Example:
        >>> indexer = PositionIndexer()
        >>> [p.next_move_uci for p in indexer.build_index(None, ["e4", "e5"])]
        ['e2e4', 'e7e5', None]
    """

    def __init__(self, applier: MoveApplier | None = None) -> None:
        """Initialize the indexer.

        Args:
            applier: Rules engine used to play moves. Defaults to
                python-chess.
        """
        self._applier = applier or ChessMoveApplier()

    def build_index(
        self, starting_fen: str | None, mainline_sans: Sequence[str]
    ) -> list[IndexedPosition]:
        """Build the position records of a game.

        Args:
            starting_fen: Starting FEN, or None (or "startpos") for the
                standard initial position.
            mainline_sans: Mainline moves in SAN.

        Returns:
            Records for every position reached, in order. Each record except
            the last carries the move played from it. An invalid starting
            FEN gives an empty list.
        """
        fen = STARTING_FEN if starting_fen in (None, "", "startpos") else starting_fen
        try:
            current = normalize_fen(fen)
        except FenError:
            logger.warning("Cannot index game with invalid starting FEN %r", fen)
            return []

        records: list[IndexedPosition] = []
        for san in mainline_sans:
            applied = self._applier.apply(san, fen)
            if applied is None:
                logger.debug(
                    "Truncating index at ply %d: %s is not playable", len(records) + 1, san
                )
                break
            after = normalize_fen(applied.fen)
            records.append(
                self._record(len(records) + 1, current, applied.uci, after.fen_norm)
            )
            fen, current = applied.fen, after

        records.append(self._record(len(records) + 1, current, None, None))
        return records

    def _record(self, ply, position, next_move_uci, next_fen_norm) -> IndexedPosition:
        return IndexedPosition(
            ply=ply,
            fen_norm=position.fen_norm,
            stm=position.stm,
            castling=position.castling,
            ep_square=position.ep_square,
            halfmove=position.halfmove,
            fullmove=position.fullmove,
            material_key=position.material_key,
            next_move_uci=next_move_uci,
            next_fen_norm=next_fen_norm,
        )
