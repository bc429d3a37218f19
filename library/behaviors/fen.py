"""Position identity and material signature derived from FEN."""

from dataclasses import dataclass

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"
MATERIAL_ORDER = "KQRBNP"


class FenError(ValueError):
    """Raised when a FEN string is too short to describe a position."""


@dataclass(frozen=True)
class NormalizedFen:
    """A FEN split into its identity and informational parts.

    Attributes:
        fen_norm: Piece placement, side to move, castling rights and
            en-passant square. Two positions reached by different move
            orders compare equal on this key.
        stm: Side to move, "w" or "b".
        castling: Castling rights, "-" when none.
        ep_square: En-passant target square, or None.
        halfmove: Halfmove clock (not part of the identity).
        fullmove: Fullmove number (not part of the identity).
        material_key: Piece counts per side, e.g.
            "w:K1Q1R2B2N2P8|b:K1Q1R2B2N2P8".
    """

    fen_norm: str
    stm: str
    castling: str
    ep_square: str | None
    halfmove: int
    fullmove: int
    material_key: str


def build_material_key(placement: str) -> str:
    """Count pieces per side in a FEN piece-placement field.

    The key ignores where pieces stand, so many positions share one key.
    It is meant for material-profile search only.

    Args:
        placement: The first FEN field, or a full FEN.

    Returns:
        The material key in fixed K, Q, R, B, N, P order for white then black.
    """
    board = placement.split()[0] if placement.strip() else ""
    white = "".join(f"{piece}{board.count(piece)}" for piece in MATERIAL_ORDER)
    black = "".join(
        f"{piece}{board.count(piece.lower())}" for piece in MATERIAL_ORDER
    )
    return f"w:{white}|b:{black}"


def _parse_counter(value: str | None, default: int, minimum: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def normalize_fen(fen: str) -> NormalizedFen:
    """Normalize a FEN into its position identity and material key.

    Args:
        fen: A FEN string with at least placement, side to move, castling
            and en-passant fields. Counters are optional.

    Returns:
        A NormalizedFen. Missing or invalid counters fall back to a halfmove
        clock of 0 and a fullmove number of 1.

    Raises:
        FenError: If fewer than four fields are present.
    """
    fields = fen.split()
    if len(fields) < 4:
        raise FenError(f"Invalid FEN: expected at least 4 fields, got {fen!r}")

    board = fields[0]
    stm = "b" if fields[1] == "b" else "w"
    castling = fields[2]
    ep_square = fields[3] if fields[3] != "-" else None

    return NormalizedFen(
        fen_norm=f"{board} {stm} {castling} {ep_square or '-'}",
        stm=stm,
        castling=castling,
        ep_square=ep_square,
        halfmove=_parse_counter(fields[4] if len(fields) > 4 else None, 0, 0),
        fullmove=_parse_counter(fields[5] if len(fields) > 5 else None, 1, 1),
        material_key=build_material_key(board),
    )
