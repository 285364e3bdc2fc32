# ingestion/chunker.py
"""
Fixed-window document chunking with overlap.
Windows are measured in characters so chunk boundaries do not depend on a
tokenizer.
"""

import logging
from typing import Iterator

logger = logging.getLogger(__name__)


class CharacterChunker:
    """
    Split text into overlapping character windows.

    A window starts every ``size - overlap`` characters; the final window
    may be shorter than ``size``.
    """

    def __init__(self, size: int = 900, overlap: int = 150):
        if size <= 0:
            raise ValueError(f"size must be > 0, got {size}")
        if not (0 <= overlap < size):
            raise ValueError(f"overlap must be >= 0 and < size ({size}), got {overlap}")
        self.size = size
        self.overlap = overlap

    @property
    def step(self) -> int:
        return self.size - self.overlap

    def iter_chunks(self, text: str) -> Iterator[str]:
        for start in range(0, len(text), self.step):
            yield text[start:start + self.size]

    def chunk(self, text: str) -> list[str]:
        """
        Chunk document text.

        Args:
            text: Full document text

        Returns:
            List of chunk texts (empty for empty input)
        """
        if not text:
            return []
        return list(self.iter_chunks(text))

    def estimate_chunk_count(self, text: str) -> int:
        """Estimate number of chunks for a document (without actually chunking)."""
        if not text:
            return 0
        return -(-len(text) // self.step)
