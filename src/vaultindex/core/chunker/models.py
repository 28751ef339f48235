"""
Data models for the chunker module.

Contains the Document and Chunk dataclasses.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Document:
    """
    A Markdown document in the vault.

    Attributes:
        path: POSIX-style path relative to the vault root, unique in the vault
        mtime: Last modification time (seconds since the epoch)
    """

    path: str
    mtime: float


@dataclass(frozen=True)
class Chunk:
    """
    A contiguous span of a document prepared for embedding.

    Attributes:
        path: Source document path
        mtime: Source document mtime at chunking time
        content: The chunk text (never empty)
        start_line: Start line number (1-based)
        end_line: End line number (1-based, inclusive)
    """

    path: str
    mtime: float
    content: str
    start_line: int
    end_line: int
