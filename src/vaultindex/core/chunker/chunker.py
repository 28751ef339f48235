"""
Main Chunker implementation.

Provides Markdown chunking with a recursive, structure-aware splitter and
exact line ranges for every chunk.
"""

import logging
from typing import Optional

from .interfaces import ChunkerConfig, ChunkerInterface
from .models import Chunk, Document
from .splitter import MarkdownTextSplitter

logger = logging.getLogger(__name__)

DEFAULT_MAX_OVERLAP = 200


def default_overlap(chunk_size: int) -> int:
    """Default overlap: a fifth of the chunk size, at most 200 characters."""
    return min(DEFAULT_MAX_OVERLAP, chunk_size // 5)


def sanitize_content(text: str) -> str:
    """Remove NUL bytes, which embedding providers and stores reject."""
    return text.replace("\x00", "")


class MarkdownChunker(ChunkerInterface):
    """
    Concrete implementation of ChunkerInterface for Markdown notes.

    Provides:
    - Splitting on headings, fenced code, rules, paragraphs, lines and words
    - Greedy merging up to ``chunk_size`` characters with bounded overlap
    - Line ranges computed from the span offsets in the sanitized text
    """

    def __init__(self, chunk_size: int = 1000, chunk_overlap: Optional[int] = None):
        """
        Initialize the MarkdownChunker.

        Args:
            chunk_size: Maximum characters per chunk (default: 1000)
            chunk_overlap: Characters shared by consecutive chunks
                (default: min(200, chunk_size // 5))

        Raises:
            ValueError: If chunk_size < 1 or chunk_overlap >= chunk_size
        """
        overlap = default_overlap(chunk_size) if chunk_overlap is None else chunk_overlap
        self._splitter = MarkdownTextSplitter(chunk_size=chunk_size, chunk_overlap=overlap)
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def chunk_overlap(self) -> int:
        return self._splitter.chunk_overlap

    def get_config(self) -> ChunkerConfig:
        return ChunkerConfig(chunk_size=self._chunk_size, chunk_overlap=self._chunk_overlap)

    def chunk(self, document: Document, text: str) -> list[Chunk]:
        """Split a document into chunks tagged with its path and mtime."""
        clean = sanitize_content(text)
        chunks = [
            Chunk(
                path=document.path,
                mtime=document.mtime,
                content=content,
                start_line=start_line,
                end_line=end_line,
            )
            for content, start_line, end_line in self._splitter.split_with_lines(clean)
        ]
        logger.debug(f"Chunked {document.path} into {len(chunks)} chunks")
        return chunks


def chunk_document(
    document: Document,
    text: str,
    chunk_size: int = 1000,
    chunk_overlap: Optional[int] = None,
) -> list[Chunk]:
    """
    Sanitize and split one document.

    Args:
        document: Document identity (path, mtime)
        text: Raw content
        chunk_size: Maximum characters per chunk
        chunk_overlap: Optional overlap override

    Returns:
        Chunks in document order
    """
    return MarkdownChunker(chunk_size=chunk_size, chunk_overlap=chunk_overlap).chunk(
        document, text
    )


def create_chunker(config: Optional[ChunkerConfig] = None) -> ChunkerInterface:
    """
    Factory function to create a chunker.

    Args:
        config: Chunker settings; defaults when None

    Returns:
        Configured ChunkerInterface instance
    """
    config = config or ChunkerConfig()
    return MarkdownChunker(chunk_size=config.chunk_size, chunk_overlap=config.chunk_overlap)
