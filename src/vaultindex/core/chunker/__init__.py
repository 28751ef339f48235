"""
Chunker module for vaultindex.

Provides Markdown chunking with recursive, structure-aware splitting and
exact 1-based line ranges.
"""

from .chunker import (
    MarkdownChunker,
    chunk_document,
    create_chunker,
    default_overlap,
    sanitize_content,
)
from .interfaces import ChunkerConfig, ChunkerInterface
from .models import Chunk, Document
from .splitter import MARKDOWN_SEPARATORS, MarkdownTextSplitter

__all__ = [
    # Models
    "Document",
    "Chunk",
    # Main classes
    "ChunkerInterface",
    "ChunkerConfig",
    "MarkdownChunker",
    # Splitter
    "MarkdownTextSplitter",
    "MARKDOWN_SEPARATORS",
    # Helpers
    "sanitize_content",
    "default_overlap",
    "chunk_document",
    # Factory
    "create_chunker",
]
