"""Conversion between string offsets and protocol positions.

A protocol position is a zero-based line and a zero-based character
counted in UTF-16 code units within that line. Python strings index by code
point, so any character outside the Basic Multilingual Plane occupies one
string index but two position characters.
"""

import re
from bisect import bisect_right

from lsprotocol.types import Position, Range

NEWLINE = re.compile(r"\r\n|\r|\n")


class PositionError(ValueError):
    """An offset or position does not belong to the text"""


def utf16_length(text: str) -> int:
    return len(text.encode("utf-16-le")) // 2


class PositionMapper:
    """Maps positions over one immutable snapshot of a document's text."""

    def __init__(self, text: str):
        self.text = text
        self._line_starts = [0]
        self._line_ends = []
        for match in NEWLINE.finditer(text):
            self._line_ends.append(match.start())
            self._line_starts.append(match.end())
        self._line_ends.append(len(text))

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def line_text(self, line: int) -> str:
        """Text of a line without its terminator"""
        return self.text[self._line_starts[line]:self._line_ends[line]]

    def offset_to_position(self, offset: int) -> Position:
        if not 0 <= offset <= len(self.text):
            raise PositionError(
                f"Offset {offset} outside text of length {len(self.text)}"
            )
        line = bisect_right(self._line_starts, offset) - 1
        start = self._line_starts[line]
        return Position(line=line, character=utf16_length(self.text[start:offset]))

    def position_to_offset(self, position: Position) -> int:
        """Inverse of offset_to_position.

        A line past the end maps to the end of the text. A character past the
        end of its line maps to the last offset on that line, and one that
        falls inside a surrogate pair maps to the start of that code point.
        """
        if position.line >= self.line_count:
            return len(self.text)

        offset = self._line_starts[position.line]
        if position.line + 1 < self.line_count:
            # Offsets inside a "\r\n" terminator still belong to this line
            last = self._line_starts[position.line + 1] - 1
        else:
            last = len(self.text)

        units = 0
        while offset < last:
            width = 2 if ord(self.text[offset]) > 0xFFFF else 1
            if units + width > position.character:
                break
            units += width
            offset += 1
        return offset

    def range(self, start: int, end: int) -> Range:
        if end < start:
            raise PositionError(f"Range end {end} before start {start}")
        return Range(
            start=self.offset_to_position(start), end=self.offset_to_position(end)
        )
