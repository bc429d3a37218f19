"""Streaming decoder from stored bytes to raw PGN game blocks.

The decoder is a chain of generators: byte chunks are (optionally)
zstd-decompressed, decoded to text, split into lines and grouped into one
block per game. Only the game currently being assembled is held in memory.
"""

from __future__ import annotations

import codecs
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

import zstandard


@dataclass(frozen=True)
class RawGame:
    """The raw text of one game as found in the source file.

    Attributes:
        game_offset: 1-based position of the game in the file.
        line_number: 1-based line on which the game starts.
        pgn_text: The trimmed game text.
    """

    game_offset: int
    line_number: int
    pgn_text: str


def iter_decoded_bytes(chunks: Iterable[bytes], compressed: bool) -> Iterator[bytes]:
    """Yield the decompressed form of a byte stream.

    Args:
        chunks: Byte chunks in stream order.
        compressed: True when the stream is zstd-compressed.

    Yields:
        Non-empty byte chunks of the plain stream.
    """
    if not compressed:
        for chunk in chunks:
            if chunk:
                yield chunk
        return

    context = zstandard.ZstdDecompressor()
    decompressor = context.decompressobj()
    mid_frame = False
    for chunk in chunks:
        while chunk:
            output = decompressor.decompress(chunk)
            if output:
                yield output
            # Concatenated frames: restart on whatever followed the frame end.
            if decompressor.eof:
                chunk = decompressor.unused_data
                decompressor = context.decompressobj()
                mid_frame = False
            else:
                chunk = b""
                mid_frame = True
    if mid_frame:
        raise zstandard.ZstdError("compressed stream ended in the middle of a frame")


def iter_lines(chunks: Iterable[bytes], compressed: bool = False) -> Iterator[str]:
    """Split a byte stream into text lines.

    Lines are split on ``\\n`` with a trailing ``\\r`` removed, so both Unix
    and Windows line endings work. Invalid UTF-8 is replaced rather than
    raised. A final line without a newline is still yielded.

    Args:
        chunks: Byte chunks in stream order.
        compressed: True when the stream is zstd-compressed.

    Yields:
        Lines without their line terminators.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    carry = ""

    for data in iter_decoded_bytes(chunks, compressed):
        carry += decoder.decode(data)
        *complete, carry = carry.split("\n")
        for line in complete:
            yield line.removesuffix("\r")

    carry += decoder.decode(b"", final=True)
    if carry:
        yield carry.removesuffix("\r")


def iter_pgn_games(lines: Iterable[str]) -> Iterator[RawGame]:
    """Group lines into one text block per game.

    A new game starts at a tag line (``[``) once the current block has seen
    move text. This finds game boundaries in concatenated files without a
    full PGN grammar. The last block is flushed at end of input.

    Args:
        lines: Lines of a PGN file.

    Yields:
        RawGame blocks in file order. Blank blocks are skipped and do not
        consume a game offset.
    """
    current: list[str] = []
    start_line = 1
    has_text = False
    has_moves = False
    game_offset = 0

    for line_number, line in enumerate(lines, start=1):
        trimmed = line.strip()

        if trimmed.startswith("[") and has_moves:
            game_offset += 1
            yield RawGame(game_offset, start_line, "\n".join(current).strip())
            current = []
            has_text = False
            has_moves = False

        if trimmed and not has_text:
            start_line = line_number
            has_text = True
        if trimmed and not trimmed.startswith("["):
            has_moves = True
        current.append(line)

    pgn_text = "\n".join(current).strip()
    if pgn_text:
        game_offset += 1
        yield RawGame(game_offset, start_line, pgn_text)
