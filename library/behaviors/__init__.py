"""Chess position behaviors derived from FEN strings."""

from .fen import STARTING_FEN, FenError, NormalizedFen, build_material_key, normalize_fen

__all__ = [
    "STARTING_FEN",
    "FenError",
    "NormalizedFen",
    "build_material_key",
    "normalize_fen",
]
