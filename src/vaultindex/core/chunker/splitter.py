"""
Recursive character splitter for Markdown text.

Splits on the coarsest separator present (headings first, single characters
last), keeps each separator at the start of the piece that follows it, and
greedily merges small pieces back together up to the chunk size with a
bounded overlap. All work is done on (start, end) offsets so every chunk is
an exact span of the input.
"""

import logging
import re
from bisect import bisect_left
from typing import List, Tuple

logger = logging.getLogger(__name__)

Span = Tuple[int, int]

# Ordered from coarsest to finest. The empty string means "split into characters".
MARKDOWN_SEPARATORS: List[str] = [
    r"\n#{1,6} ",
    r"```\n",
    r"\n\*\*\*+\n",
    r"\n---+\n",
    r"\n___+\n",
    r"\n\n",
    r"\n",
    r" ",
    "",
]


class MarkdownTextSplitter:
    """
    Markdown-aware recursive splitter producing text spans.

    Attributes:
        chunk_size: Maximum characters per chunk (a single unsplittable piece
            may not exceed it, since the last separator splits characters)
        chunk_overlap: Maximum characters shared by consecutive chunks
    """

    def __init__(self, chunk_size: int, chunk_overlap: int, separators: List[str] | None = None):
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap must not be negative")
        if chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size})"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self._separators = separators or MARKDOWN_SEPARATORS
        self._compiled = {sep: re.compile(sep) for sep in self._separators if sep}

    def split_spans(self, text: str) -> List[Span]:
        """
        Split ``text`` into stripped, non-empty spans.

        Returns:
            (start, end) offsets into ``text`` in document order
        """
        if not text.strip():
            return []
        spans = self._split(text, 0, len(text), self._separators)
        return [span for span in (self._strip(text, s, e) for s, e in spans) if span]

    def split_with_lines(self, text: str) -> List[Tuple[str, int, int]]:
        """
        Split ``text`` and attach 1-based inclusive line numbers.

        Returns:
            (content, start_line, end_line) tuples
        """
        newlines = [i for i, ch in enumerate(text) if ch == "\n"]
        result = []
        for start, end in self.split_spans(text):
            start_line = bisect_left(newlines, start) + 1
            end_line = bisect_left(newlines, end - 1) + 1
            result.append((text[start:end], start_line, end_line))
        return result

    def _split(self, text: str, start: int, end: int, separators: List[str]) -> List[Span]:
        separator = separators[-1]
        remaining: List[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if self._compiled[candidate].search(text, start, end):
                separator = candidate
                remaining = separators[i + 1 :]
                break

        pieces = self._split_on(text, start, end, separator)

        final: List[Span] = []
        pending: List[Span] = []
        for piece in pieces:
            if piece[1] - piece[0] < self.chunk_size:
                pending.append(piece)
                continue
            if pending:
                final.extend(self._merge(pending))
                pending = []
            if not remaining:
                final.append(piece)
            else:
                final.extend(self._split(text, piece[0], piece[1], remaining))
        if pending:
            final.extend(self._merge(pending))
        return final

    def _split_on(self, text: str, start: int, end: int, separator: str) -> List[Span]:
        if separator == "":
            return [(i, i + 1) for i in range(start, end)]

        bounds = [start]
        for match in self._compiled[separator].finditer(text, start, end):
            if match.start() > bounds[-1]:
                bounds.append(match.start())
        bounds.append(end)
        return [(a, b) for a, b in zip(bounds, bounds[1:]) if b > a]

    def _merge(self, pieces: List[Span]) -> List[Span]:
        """Greedily merge contiguous pieces up to chunk_size, carrying overlap."""
        merged: List[Span] = []
        window: List[Span] = []
        total = 0
        for piece in pieces:
            length = piece[1] - piece[0]
            if total + length > self.chunk_size and window:
                merged.append((window[0][0], window[-1][1]))
                while total > self.chunk_overlap or (
                    total + length > self.chunk_size and total > 0
                ):
                    first = window.pop(0)
                    total -= first[1] - first[0]
            window.append(piece)
            total += length
        if window:
            merged.append((window[0][0], window[-1][1]))
        return merged

    @staticmethod
    def _strip(text: str, start: int, end: int) -> Span | None:
        while start < end and text[start].isspace():
            start += 1
        while end > start and text[end - 1].isspace():
            end -= 1
        if start == end:
            return None
        return (start, end)
