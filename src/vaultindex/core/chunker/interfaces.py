"""
Abstract interfaces for the chunker module.

Contains ChunkerInterface and ChunkerConfig.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .models import Chunk, Document


@dataclass
class ChunkerConfig:
    """Configuration for chunker instances.

    Used to rebuild an equivalent chunker for each indexing run.
    """

    chunk_size: int = 1000
    chunk_overlap: Optional[int] = None


class ChunkerInterface(ABC):
    """Abstract interface for document chunking operations."""

    @abstractmethod
    def chunk(self, document: Document, text: str) -> list[Chunk]:
        """
        Split a document's text into chunks.

        Args:
            document: The document the text belongs to
            text: Raw document content

        Returns:
            Chunks in document order; empty for empty or whitespace-only text

        Notes:
            - Chunk line numbers refer to the sanitized text
            - Every chunk's content is non-empty and free of NUL bytes
        """
        pass

    @abstractmethod
    def get_config(self) -> ChunkerConfig:
        """
        Get the chunker configuration.

        Returns:
            ChunkerConfig with current settings
        """
        pass
