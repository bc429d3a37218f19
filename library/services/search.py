"""Position search over the per-game position index.

Two lookups are offered: games that reached an exact position (compared by
normalized FEN, so transpositions match) and positions sharing a material
profile.
"""

from dataclasses import dataclass

from library.behaviors import normalize_fen
from library.models import GamePosition
from library.parsers import move_tree_from_json

MOVE_SNIPPET_RADIUS = 4


class SearchError(ValueError):
    """Raised when a search request names nothing to search for."""


@dataclass
class MoveSnippet:
    """Moves around a position in a game's mainline.

    Attributes:
        before: Up to ``radius`` moves leading to the position, ending with
            the move that reached it.
        at: The move that reached the position, None at the start.
        after: Up to ``radius`` moves played from the position.
    """

    before: list[str]
    at: str | None
    after: list[str]


@dataclass
class PositionMatch:
    """A game that reached the searched position."""

    game_id: int
    ply: int
    side_to_move: str
    white: str
    black: str
    result: str
    event: str | None
    snippet: MoveSnippet


@dataclass
class MaterialMatch:
    """A position with the searched material profile."""

    game_id: int
    ply: int
    side_to_move: str
    fen_norm: str


def build_move_snippet(
    sans: list[str], ply: int, radius: int = MOVE_SNIPPET_RADIUS
) -> MoveSnippet:
    """Cut the moves around a position out of a mainline.

    The position at ``ply`` is reached after ``ply - 1`` moves.
    """
    played = max(0, min(len(sans), ply - 1))
    return MoveSnippet(
        before=sans[max(0, played - radius) : played],
        at=sans[played - 1] if played > 0 else None,
        after=sans[played : played + radius],
    )


def _page(qs, page: int, page_size: int):
    start = (page - 1) * page_size
    return qs[start : start + page_size]


class PositionSearch:
    """Searches a user's position index.

    Results are ordered newest game first, then by ply.
    """

    def find_position(
        self, user_id: int, fen: str, *, page: int = 1, page_size: int = 50
    ) -> tuple[str, int, list[PositionMatch]]:
        """Find the games in which a position occurred.

        Args:
            user_id: Owner of the games.
            fen: A full or normalized FEN; move counters are ignored.
            page: 1-based page number.
            page_size: Results per page.

        Returns:
            Tuple of (fen_norm, total matches, matches on this page).

        Raises:
            FenError: If the FEN cannot be normalized.
        """
        fen_norm = normalize_fen(fen).fen_norm
        qs = GamePosition.objects.filter(user_id=user_id, fen_norm=fen_norm)
        total = qs.count()
        rows = _page(
            qs.select_related("game", "game__move_tree").order_by("-game_id", "ply"),
            page,
            page_size,
        )
        matches = []
        for row in rows:
            sans = move_tree_from_json(row.game.move_tree.move_tree).mainline_sans()
            matches.append(
                PositionMatch(
                    game_id=row.game_id,
                    ply=row.ply,
                    side_to_move=row.stm,
                    white=row.game.white,
                    black=row.game.black,
                    result=row.game.result,
                    event=row.game.event,
                    snippet=build_move_snippet(sans, row.ply),
                )
            )
        return fen_norm, total, matches

    def find_material(
        self,
        user_id: int,
        *,
        material_key: str | None = None,
        fen: str | None = None,
        side_to_move: str | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[str, int, list[MaterialMatch]]:
        """Find positions with a material profile.

        The profile is ``material_key`` when given, else the material key
        of ``fen``.

        Returns:
            Tuple of (material_key, total matches, matches on this page).

        Raises:
            SearchError: If neither a material key nor a FEN is given.
            FenError: If the FEN cannot be normalized.
        """
        material_key = (material_key or "").strip()
        if not material_key:
            if not fen or not fen.strip():
                raise SearchError("Provide either material_key or fen for material search")
            material_key = normalize_fen(fen).material_key

        qs = GamePosition.objects.filter(user_id=user_id, material_key=material_key)
        if side_to_move:
            qs = qs.filter(stm=side_to_move)
        total = qs.count()
        rows = _page(
            qs.order_by("-game_id", "ply").values_list("game_id", "ply", "stm", "fen_norm"),
            page,
            page_size,
        )
        return (
            material_key,
            total,
            [
                MaterialMatch(game_id=game_id, ply=ply, side_to_move=stm, fen_norm=fen_norm)
                for game_id, ply, stm, fen_norm in rows
            ],
        )
