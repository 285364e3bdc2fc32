# storage/knowledge_base.py
"""
Immutable in-memory knowledge base and its swap-able reference.

A KnowledgeBase is built once (at startup or by maintenance), never mutated
afterwards, and published to searches through a KnowledgeBaseHolder.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from threading import Lock
from typing import Iterable, Optional

from ..retrieval.bm25 import DEFAULT_MAX_DOC_TOKENS, BM25Index
from ..retrieval.synonyms import SynonymTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Chunk:
    """A searchable slice of a source document."""

    id: Optional[str]
    source: Optional[str]
    text: str
    norm_text: str
    embedding: Optional[tuple[float, ...]]  # None if embedding generation failed


@dataclass(frozen=True)
class KnowledgeBase:
    """
    Chunk sequence plus its lexical index.

    ``chunks[i]`` is the document addressed as ``i`` by ``index``.
    """

    chunks: tuple[Chunk, ...] = ()
    index: BM25Index = field(default_factory=BM25Index)
    synonyms: SynonymTable = field(default_factory=SynonymTable.empty)

    def __len__(self) -> int:
        return len(self.chunks)

    @property
    def avg_doc_length(self) -> float:
        return self.index.avg_doc_length

    def stats(self) -> dict:
        """
        Get knowledge base statistics.

        Returns:
            Dict with chunk, embedding and index statistics
        """
        return {
            "chunks": len(self.chunks),
            "chunks_with_embeddings": sum(1 for c in self.chunks if c.embedding),
            "sources": len({c.source for c in self.chunks if c.source}),
            "synonyms": len(self.synonyms),
            **self.index.get_index_stats(),
        }


def build_knowledge_base(
    chunks: Iterable[Chunk],
    synonyms: Optional[SynonymTable] = None,
    max_doc_tokens: int = DEFAULT_MAX_DOC_TOKENS,
    k1: float = 1.2,
    b: float = 0.75,
) -> KnowledgeBase:
    """
    Index chunks and assemble an immutable knowledge base.

    Args:
        chunks: Chunks in their final, stable order
        synonyms: Synonym table used for query expansion
        max_doc_tokens: Tokens per chunk counted toward the index
        k1: BM25 saturation parameter
        b: BM25 length normalization parameter

    Returns:
        KnowledgeBase
    """
    chunk_seq = tuple(chunks)
    index = BM25Index.build(
        (c.norm_text for c in chunk_seq), max_doc_tokens=max_doc_tokens, k1=k1, b=b
    )
    return KnowledgeBase(
        chunks=chunk_seq,
        index=index,
        synonyms=synonyms if synonyms is not None else SynonymTable.empty(),
    )


def load_knowledge_base(
    kb_dir: str | Path,
    synonyms: Optional[SynonymTable] = None,
    pattern: str = "*.json.gz",
    max_doc_tokens: int = DEFAULT_MAX_DOC_TOKENS,
    k1: float = 1.2,
    b: float = 0.75,
) -> KnowledgeBase:
    """
    Load every archive in ``kb_dir`` and build a knowledge base.

    Raises:
        ArchiveLoadError: If any archive is unreadable or malformed
    """
    from .archive import load_chunks

    chunks = load_chunks(kb_dir, pattern=pattern)
    kb = build_knowledge_base(chunks, synonyms, max_doc_tokens=max_doc_tokens, k1=k1, b=b)
    logger.info(f"Knowledge base ready: {len(kb)} chunks from {kb_dir}")
    return kb


class KnowledgeBaseHolder:
    """
    Atomically swappable reference to the live knowledge base.

    Readers take ``current`` once per operation and never lock. Writers build
    a complete replacement first and then ``swap`` it in.
    """

    def __init__(self, kb: Optional[KnowledgeBase] = None):
        self._kb = kb if kb is not None else KnowledgeBase()
        self._lock = Lock()

    @property
    def current(self) -> KnowledgeBase:
        return self._kb

    def swap(self, kb: KnowledgeBase) -> KnowledgeBase:
        """
        Publish a new knowledge base.

        Args:
            kb: Fully built replacement

        Returns:
            The knowledge base that was replaced
        """
        with self._lock:
            previous, self._kb = self._kb, kb
        logger.info(f"Knowledge base swapped: {len(previous)} -> {len(kb)} chunks")
        return previous
