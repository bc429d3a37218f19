"""PGN game normalizer.

This module turns the raw text of one game into a NormalizedGame: tags are
sanitized, the moves are read with python-chess and two content hashes are
computed for deduplication.
"""

from __future__ import annotations

import hashlib
import io
import logging
import re
from datetime import date

import chess
import chess.pgn

from .base import MainlineMoves, MoveNode, MoveTree, NormalizedGame, PgnParseError, VariationTree

logger = logging.getLogger(__name__)

PGN_DATE_PATTERN = re.compile(r"^(\d{4})\.(\d{2})\.(\d{2})$")
MOVETEXT_COMMENT_PATTERN = re.compile(r"\{[^}]*\}|;[^\n]*")
RATED_TRUE = frozenset({"true", "yes", "1"})
RATED_FALSE = frozenset({"false", "no", "0"})
GAME_RESULTS = frozenset({"1-0", "0-1", "1/2-1/2", "*"})

# Moves python-chess can read but not play. They end the line they occur in
# instead of failing the game.
UNPLAYABLE_MOVE_ERRORS = (chess.IllegalMoveError, chess.AmbiguousMoveError)


def normalize_text(value: str) -> str:
    """Search form of a name: trimmed, whitespace collapsed, lowercase."""
    return " ".join(value.split()).lower()


def sanitize_tag(value: str | None) -> str | None:
    """Trim a tag value, mapping empty strings to None."""
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def parse_pgn_date(value: str | None) -> date | None:
    """Parse a PGN date in strict YYYY.MM.DD form.

    Partial dates such as "2024.??.??" are rejected rather than guessed.

    Args:
        value: The Date tag value.

    Returns:
        The date, or None if the value is absent, partial or not a real
        calendar date.
    """
    if value is None:
        return None
    match = PGN_DATE_PATTERN.match(value.strip())
    if not match:
        return None
    year, month, day = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_rated(value: str | None) -> bool | None:
    """Map a Rated tag to a boolean, case-insensitively."""
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in RATED_TRUE:
        return True
    if normalized in RATED_FALSE:
        return False
    return None


def parse_non_negative_int(value: str | None) -> int | None:
    """Parse a tag holding a non-negative integer, else None."""
    if value is None:
        return None
    value = value.strip()
    if not value.isdigit():
        return None
    return int(value)


def parse_ply_count(value: str | None, move_count: int) -> int | None:
    """Read the PlyCount tag, falling back to the number of parsed moves."""
    parsed = parse_non_negative_int(value)
    if parsed is not None:
        return parsed
    return move_count if move_count > 0 else None


def build_moves_hash(starting_fen: str | None, mainline_sans: list[str], result: str) -> str:
    """Digest of what was played: start position, mainline and result.

    Comments, annotations and line wrapping do not affect the digest, so
    the same game exported by two tools hashes the same.
    """
    digest = hashlib.sha256()
    digest.update((starting_fen or "startpos").encode())
    digest.update(b"\n")
    digest.update(" ".join(mainline_sans).encode())
    digest.update(b"\n")
    digest.update(result.encode())
    return digest.hexdigest()


def build_canonical_pgn_hash(pgn_text: str) -> str:
    """Digest of the raw text with whitespace differences removed.

    Every line is trimmed and has its internal whitespace collapsed;
    blank lines are dropped.
    """
    lines = (" ".join(line.split()) for line in pgn_text.splitlines())
    canonical = "\n".join(line for line in lines if line)
    return hashlib.sha256(canonical.encode()).hexdigest()


def written_mainline(pgn_text: str) -> tuple[list[str], str | None]:
    """Read the mainline moves and result as they are written.

    Tokenizes the movetext with python-chess's movetext pattern but never
    plays the moves, so it also covers moves after an unplayable one.
    Tags, comments, annotations and variations are skipped.

    Returns:
        The mainline SAN tokens and the result token, if any.
    """
    lines = (
        line for line in pgn_text.splitlines() if not line.lstrip().startswith(("[", "%"))
    )
    movetext = MOVETEXT_COMMENT_PATTERN.sub(" ", "\n".join(lines))

    sans: list[str] = []
    result = None
    depth = 0
    for match in chess.pgn.MOVETEXT_REGEX.finditer(movetext):
        token = match.group(0)
        if token == "(":
            depth += 1
        elif token == ")":
            depth = max(depth - 1, 0)
        elif depth or token.startswith("$") or token[0] in "?!":
            continue
        elif token in GAME_RESULTS:
            result = token
        else:
            sans.append(token)
    return sans, result


def with_unplayable_tail(tree: MoveTree, tail: list[str]) -> MoveTree:
    """Append mainline moves python-chess could not play to a move tree."""
    if not tail:
        return tree
    if isinstance(tree, MainlineMoves):
        return MainlineMoves(sans=tree.sans + tuple(tail))
    return VariationTree(nodes=tree.nodes + tuple(MoveNode(san=san) for san in tail))


class LenientGameBuilder(chess.pgn.GameBuilder):
    """GameBuilder that keeps games containing unplayable moves.

    An illegal or ambiguous move ends its line, as python-chess always
    does, but is not reported as an error. ``mainline_truncated`` tells
    whether the mainline itself was cut short. Other errors (bad FEN,
    unknown variant, unreadable SAN) are collected in ``game.errors``.
    """

    def begin_game(self) -> None:
        super().begin_game()
        self.mainline_truncated = False

    def handle_error(self, error: Exception) -> None:
        if not isinstance(error, UNPLAYABLE_MOVE_ERRORS):
            self.game.errors.append(error)
            return
        if len(self.variation_stack) == 1:
            self.mainline_truncated = True
        logger.debug("Unplayable move ends line: %s", error)


def _line_nodes(start: chess.pgn.ChildNode) -> tuple[MoveNode, ...]:
    """Convert a line (a node and its mainline continuation) into MoveNodes."""
    nodes: list[MoveNode] = []
    node: chess.pgn.GameNode = start
    while True:
        nodes.append(
            MoveNode(
                san=node.san(),
                comment=node.comment.strip(),
                nags=tuple(sorted(node.nags)),
                variations=tuple(
                    _line_nodes(alternative)
                    for alternative in node.parent.variations[1:]
                )
                if node.is_main_variation()
                else (),
            )
        )
        if not node.variations:
            return tuple(nodes)
        node = node.variations[0]


def _has_variations(game: chess.pgn.Game) -> bool:
    node: chess.pgn.GameNode = game
    while node.variations:
        if len(node.variations) > 1:
            return True
        node = node.variations[0]
    return False


def build_move_tree(game: chess.pgn.Game) -> MoveTree:
    """Decide the move tree shape once for a parsed game.

    Games without variations become a flat MainlineMoves list; games with
    at least one variation keep their structure in a VariationTree.
    """
    if not _has_variations(game):
        return MainlineMoves(sans=tuple(node.san() for node in game.mainline()))
    if not game.variations:
        return VariationTree(nodes=())
    return VariationTree(nodes=_line_nodes(game.variations[0]))


class PGNParser:
    """Normalizer for single PGN games.

    Uses python-chess to read the tags and moves of one raw game block and
    produces a NormalizedGame with sanitized tags and dedup hashes.

    Example:
        >>> parser = PGNParser()
        >>> game = parser.parse_game('[White "A"]\\n\\n1. e4 e5 *')
        >>> game.mainline_sans
        ['e4', 'e5']
    """

    def parse_game(self, pgn_text: str) -> NormalizedGame:
        """Parse and normalize one game.

        Args:
            pgn_text: The raw text of a single game.

        Returns:
            The normalized game.

        Raises:
            PgnParseError: If python-chess finds no game in the text or
                reports errors while reading it (bad FEN, unreadable SAN).
                Illegal moves are not errors: the game keeps its mainline
                as written and indexing stops at the first unplayable move.
        """
        game, truncated = self._read_game(pgn_text)
        headers = game.headers

        white = sanitize_tag(headers.get("White")) or "Unknown White"
        black = sanitize_tag(headers.get("Black")) or "Unknown Black"
        result = sanitize_tag(headers.get("Result")) or "*"
        event = sanitize_tag(headers.get("Event"))
        starting_fen = sanitize_tag(headers.get("FEN"))

        move_tree = build_move_tree(game)
        if truncated:
            # python-chess stops reading the mainline at the unplayable move.
            written, written_result = written_mainline(pgn_text)
            move_tree = with_unplayable_tail(
                move_tree, written[len(move_tree.mainline_sans()):]
            )
            if result == "*" and written_result:
                result = written_result
        mainline_sans = move_tree.mainline_sans()

        return NormalizedGame(
            white=white,
            white_norm=normalize_text(white),
            black=black,
            black_norm=normalize_text(black),
            result=result,
            event=event,
            event_norm=normalize_text(event) if event else None,
            site=sanitize_tag(headers.get("Site")),
            eco=sanitize_tag(headers.get("ECO")),
            time_control=sanitize_tag(headers.get("TimeControl")),
            rated=parse_rated(headers.get("Rated")),
            played_on=parse_pgn_date(headers.get("Date")),
            white_elo=parse_non_negative_int(headers.get("WhiteElo")),
            black_elo=parse_non_negative_int(headers.get("BlackElo")),
            ply_count=parse_ply_count(headers.get("PlyCount"), len(mainline_sans)),
            starting_fen=starting_fen,
            moves_hash=build_moves_hash(starting_fen, mainline_sans, result),
            canonical_pgn_hash=build_canonical_pgn_hash(pgn_text),
            move_tree=move_tree,
            source=sanitize_tag(headers.get("Source")),
            license=sanitize_tag(headers.get("License")),
        )

    def _read_game(self, pgn_text: str) -> tuple[chess.pgn.Game, bool]:
        """Read one game with python-chess, without the default tag roster.

        The default roster would fill absent tags with "?", which must stay
        distinguishable from real values.

        Returns:
            The game and whether its mainline stopped at an unplayable move.
        """
        builder = LenientGameBuilder(Game=chess.pgn.Game.without_tag_roster)
        game = chess.pgn.read_game(io.StringIO(pgn_text), Visitor=lambda: builder)
        if game is None:
            raise PgnParseError("No game found in PGN text")
        if game.errors:
            raise PgnParseError(f"Invalid PGN: {game.errors[0]}")
        if not game.headers and not game.variations and not builder.mainline_truncated:
            raise PgnParseError("PGN text has neither tags nor moves")
        return game, builder.mainline_truncated
