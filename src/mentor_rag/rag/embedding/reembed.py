# embedding/reembed.py
"""
Maintenance re-embedding of a knowledge base.

Produces a new KnowledgeBase instead of mutating the live one, so the
result can be swapped in atomically while searches keep reading the old
instance.
"""

import logging
from dataclasses import replace

from ..storage.knowledge_base import KnowledgeBase
from .embedder import EmbeddingProvider, EmbeddingUnavailableError

logger = logging.getLogger(__name__)


def reembed_knowledge_base(kb: KnowledgeBase, embedder: EmbeddingProvider) -> KnowledgeBase:
    """
    Regenerate every chunk embedding.

    A chunk whose embedding fails gets ``None``; the run continues. The chunk
    order, lexical index and synonym table are carried over unchanged.

    Args:
        kb: Knowledge base to re-embed (left untouched)
        embedder: Embedding capability

    Returns:
        New KnowledgeBase with fresh embeddings
    """
    logger.info(f"Starting re-embedding of {len(kb)} chunks")

    chunks = []
    failed = 0
    for position, chunk in enumerate(kb.chunks):
        try:
            vector = tuple(embedder.embed(chunk.text, task_type="retrieval_document"))
        except EmbeddingUnavailableError as e:
            logger.warning(f"Failed to embed chunk {chunk.id or position}: {e}. Storing no vector")
            vector = None
            failed += 1
        except Exception as e:
            logger.error(f"Unexpected error embedding chunk {chunk.id or position}: {e}. Storing no vector")
            vector = None
            failed += 1
        chunks.append(replace(chunk, embedding=vector))

    logger.info(f"Re-embedding complete: {len(chunks) - failed} embedded, {failed} failed")
    return replace(kb, chunks=tuple(chunks))
