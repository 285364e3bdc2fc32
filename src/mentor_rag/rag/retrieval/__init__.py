"""
Retrieval primitives for the knowledge base.

Components:
- BM25Index: Immutable inverted index with BM25 scoring
- SynonymTable: Data-driven bidirectional synonym lookup
- expand_query / analyze_query: Query normalization and synonym expansion
- cosine: Dense similarity between embedding vectors

The hybrid ranker lives in ``hybrid_search`` and is exported from
``mentor_rag.rag``; importing it here would tie this package to storage.
"""

from .bm25 import BM25Index, tokenize
from .expansion import ExpandedQuery, analyze_query, expand_query
from .similarity import cosine
from .synonyms import SynonymTable

__all__ = [
    "BM25Index",
    "ExpandedQuery",
    "SynonymTable",
    "analyze_query",
    "cosine",
    "expand_query",
    "tokenize",
]
