"""Repository for persisting imported games and their position index.

This module provides the GameRepository class which bridges the gap between
framework-agnostic NormalizedGame objects and Django ORM models.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .models import Game, GameMoves, GamePgn, GamePosition
from .parsers.base import NormalizedGame
from .services.positions import IndexedPosition


@dataclass(frozen=True)
class DuplicateMatch:
    """Which content hashes of a game already exist for the user.

    Attributes:
        by_moves: A game with the same moves_hash exists.
        by_canonical: A game with the same canonical_pgn_hash exists.
    """

    by_moves: bool
    by_canonical: bool

    def __bool__(self) -> bool:
        """True when either hash matched."""
        return self.by_moves or self.by_canonical


class GameRepository:
    """Handles persistence of games, their companions and their positions.

    All methods are expected to run inside the caller's per-game
    transaction.

    Example:
        >>> repo = GameRepository()
        >>> if not repo.find_duplicate(user.id, game.moves_hash, game.canonical_pgn_hash):
        ...     repo.insert_game(user.id, job.id, game, pgn_text)
    """

    def find_duplicate(
        self, user_id: int, moves_hash: str, canonical_pgn_hash: str
    ) -> DuplicateMatch:
        """Look up both content hashes among the user's games.

        Args:
            user_id: The owning user.
            moves_hash: Semantic hash of the incoming game.
            canonical_pgn_hash: Textual hash of the incoming game.

        Returns:
            A DuplicateMatch telling which hashes already exist.
        """
        games = Game.objects.filter(user_id=user_id)
        return DuplicateMatch(
            by_moves=games.filter(moves_hash=moves_hash).exists(),
            by_canonical=games.filter(canonical_pgn_hash=canonical_pgn_hash).exists(),
        )

    def insert_game(
        self,
        user_id: int,
        import_job_id: int | None,
        game: NormalizedGame,
        pgn_text: str,
    ) -> Game:
        """Insert a game row with its raw text and move tree.

        Args:
            user_id: The owning user.
            import_job_id: The job importing the game, if any.
            game: The normalized game.
            pgn_text: The raw PGN text of the game.

        Returns:
            The created Game.
        """
        model = Game.objects.create(
            user_id=user_id,
            import_job_id=import_job_id,
            **self._to_model_fields(game),
        )
        GamePgn.objects.create(game=model, pgn_text=pgn_text)
        GameMoves.objects.create(game=model, move_tree=game.move_tree.to_json())
        return model

    def replace_positions(self, game: Game, positions: Iterable[IndexedPosition]) -> int:
        """Replace the whole position index of a game.

        Existing rows are deleted before the new ones are inserted so the
        index always matches the game's current moves.

        Args:
            game: The indexed game.
            positions: The game's position records.

        Returns:
            The number of position rows written.
        """
        GamePosition.objects.filter(game=game).delete()
        rows = [
            GamePosition(
                user_id=game.user_id,
                game=game,
                ply=position.ply,
                fen_norm=position.fen_norm,
                stm=position.stm,
                castling=position.castling,
                ep_square=position.ep_square,
                halfmove=position.halfmove,
                fullmove=position.fullmove,
                material_key=position.material_key,
                next_move_uci=position.next_move_uci,
                next_fen_norm=position.next_fen_norm,
            )
            for position in positions
        ]
        GamePosition.objects.bulk_create(rows)
        return len(rows)

    def _to_model_fields(self, game: NormalizedGame) -> dict[str, Any]:
        """Convert a NormalizedGame to a dictionary of model fields."""
        return {
            "white": game.white,
            "white_norm": game.white_norm,
            "black": game.black,
            "black_norm": game.black_norm,
            "result": game.result,
            "event": game.event,
            "event_norm": game.event_norm,
            "site": game.site,
            "eco": game.eco,
            "time_control": game.time_control,
            "rated": game.rated,
            "played_on": game.played_on,
            "white_elo": game.white_elo,
            "black_elo": game.black_elo,
            "starting_fen": game.starting_fen,
            "ply_count": game.ply_count,
            "moves_hash": game.moves_hash,
            "canonical_pgn_hash": game.canonical_pgn_hash,
            "source": game.source,
            "license": game.license,
        }
