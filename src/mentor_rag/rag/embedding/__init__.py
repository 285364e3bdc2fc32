"""Embedding services for semantic search."""

from .embedder import (
    EmbeddingProvider,
    EmbeddingResult,
    EmbeddingUnavailableError,
    GeminiEmbedderAdapter,
    RateLimiter,
)
from .reembed import reembed_knowledge_base

__all__ = [
    "EmbeddingProvider",
    "EmbeddingResult",
    "EmbeddingUnavailableError",
    "GeminiEmbedderAdapter",
    "RateLimiter",
    "reembed_knowledge_base",
]
