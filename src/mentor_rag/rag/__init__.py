"""
Mentor RAG hybrid retrieval engine.

Architecture:
- storage/: Gzip JSON archives and the immutable in-memory knowledge base
- retrieval/: BM25 index, synonym expansion, cosine, hybrid ranker
- embedding/: Gemini API adapter and maintenance re-embedding
- ingestion/: Text chunking and archive building
"""

from .embedding import EmbeddingUnavailableError, GeminiEmbedderAdapter, reembed_knowledge_base
from .retrieval.hybrid_search import HybridRetriever, SearchResult
from .storage import (
    ArchiveLoadError,
    Chunk,
    KnowledgeBase,
    KnowledgeBaseHolder,
    build_knowledge_base,
    load_knowledge_base,
    replace_archive,
    write_archive,
)
from .text import normalize

__all__ = [
    "ArchiveLoadError",
    "Chunk",
    "EmbeddingUnavailableError",
    "GeminiEmbedderAdapter",
    "HybridRetriever",
    "KnowledgeBase",
    "KnowledgeBaseHolder",
    "SearchResult",
    "build_knowledge_base",
    "load_knowledge_base",
    "normalize",
    "reembed_knowledge_base",
    "replace_archive",
    "write_archive",
]
