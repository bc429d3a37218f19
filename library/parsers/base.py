"""Parser protocol and data transfer objects for imported games.

This module defines the framework-agnostic structures produced by the
import parsers. Parsers turn one raw PGN block into a NormalizedGame which
the repository layer can then persist and index.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Protocol, Union


class PgnParseError(ValueError):
    """Raised when a raw PGN block cannot be read as a game."""


@dataclass(frozen=True)
class MoveNode:
    """One move of a variation tree.

    Attributes:
        san: The move in standard algebraic notation.
        comment: The comment following the move, if any.
        nags: Numeric annotation glyphs attached to the move.
        variations: Alternative lines to this move, each a sequence of
            nodes starting with the alternative move.
    """

    san: str
    comment: str = ""
    nags: tuple[int, ...] = ()
    variations: tuple[tuple[MoveNode, ...], ...] = ()

    def to_json(self) -> dict[str, Any]:
        """Serialize the node and its variations."""
        data: dict[str, Any] = {"san": self.san}
        if self.comment:
            data["comment"] = self.comment
        if self.nags:
            data["nags"] = list(self.nags)
        if self.variations:
            data["variations"] = [
                [node.to_json() for node in line] for line in self.variations
            ]
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> MoveNode:
        """Rebuild a node from its serialized form."""
        return cls(
            san=data["san"],
            comment=data.get("comment", ""),
            nags=tuple(data.get("nags", ())),
            variations=tuple(
                tuple(cls.from_json(node) for node in line)
                for line in data.get("variations", ())
            ),
        )


@dataclass(frozen=True)
class MainlineMoves:
    """A game without variations: a flat list of SAN moves."""

    sans: tuple[str, ...]
    kind: str = field(default="mainline", init=False)

    def mainline_sans(self) -> list[str]:
        """Return the mainline moves in SAN."""
        return list(self.sans)

    def to_json(self) -> dict[str, Any]:
        """Serialize to the stored JSON form."""
        return {"kind": self.kind, "moves": list(self.sans)}


@dataclass(frozen=True)
class VariationTree:
    """A game with variations: mainline nodes carrying alternative lines."""

    nodes: tuple[MoveNode, ...]
    kind: str = field(default="tree", init=False)

    def mainline_sans(self) -> list[str]:
        """Return the mainline moves in SAN."""
        return [node.san for node in self.nodes]

    def to_json(self) -> dict[str, Any]:
        """Serialize to the stored JSON form."""
        return {"kind": self.kind, "nodes": [node.to_json() for node in self.nodes]}


MoveTree = Union[MainlineMoves, VariationTree]


def move_tree_from_json(data: dict[str, Any]) -> MoveTree:
    """Rebuild a stored move tree.

    Args:
        data: The JSON form written by ``MoveTree.to_json``.

    Returns:
        The MainlineMoves or VariationTree the data describes.

    Raises:
        ValueError: If the data carries an unknown kind.
    """
    kind = data.get("kind")
    if kind == "mainline":
        return MainlineMoves(sans=tuple(data.get("moves", ())))
    if kind == "tree":
        return VariationTree(
            nodes=tuple(MoveNode.from_json(node) for node in data.get("nodes", ()))
        )
    raise ValueError(f"Unknown move tree kind: {kind!r}")


@dataclass
class NormalizedGame:
    """Canonical record of one imported game.

    Attributes:
        white: White player name ("Unknown White" when absent).
        white_norm: Search form of the white name.
        black: Black player name ("Unknown Black" when absent).
        black_norm: Search form of the black name.
        result: Game result ("1-0", "0-1", "1/2-1/2", or "*").
        event: Event name.
        event_norm: Search form of the event name.
        site: Site or platform.
        eco: ECO code.
        time_control: Time control tag value.
        rated: Whether the game was rated, when stated.
        played_on: Date the game was played, when fully known.
        white_elo: White rating.
        black_elo: Black rating.
        ply_count: Number of half-moves.
        starting_fen: Starting position, None for the standard position.
        moves_hash: Digest of start position, mainline and result.
        canonical_pgn_hash: Digest of the whitespace-normalized raw text.
        move_tree: The parsed moves as a tagged variant.
        source: Source tag.
        license: License tag.
    """

    white: str
    white_norm: str
    black: str
    black_norm: str
    result: str
    event: str | None
    event_norm: str | None
    site: str | None
    eco: str | None
    time_control: str | None
    rated: bool | None
    played_on: date | None
    white_elo: int | None
    black_elo: int | None
    ply_count: int | None
    starting_fen: str | None
    moves_hash: str
    canonical_pgn_hash: str
    move_tree: MoveTree
    source: str | None = None
    license: str | None = None

    @property
    def mainline_sans(self) -> list[str]:
        """The mainline moves in SAN."""
        return self.move_tree.mainline_sans()


class GameParser(Protocol):
    """Protocol for parsers that normalize one raw game block."""

    def parse_game(self, pgn_text: str) -> NormalizedGame:
        """Parse and normalize one game.

        Args:
            pgn_text: The raw text of a single game.

        Returns:
            The normalized game.

        Raises:
            PgnParseError: If the text is not a readable game.
        """
        ...
