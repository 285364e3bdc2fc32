# retrieval/hybrid_search.py
"""
Hybrid lexical + semantic retriever.

Main entry point for knowledge base search.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Union

from ..embedding.embedder import EmbeddingProvider, EmbeddingUnavailableError
from ..storage.knowledge_base import KnowledgeBase, KnowledgeBaseHolder
from ..text import normalize
from .expansion import analyze_query
from .similarity import cosine

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Data Types
# -----------------------------------------------------------------------------


@dataclass
class SearchResult:
    """A ranked chunk returned from search."""

    id: Optional[str]
    source: Optional[str]
    score: float  # Blended score (or the nominal fallback score)
    keyword_score: float  # Raw BM25 score
    semantic_score: float  # Cosine similarity, 0 when unavailable
    text: str

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "source": self.source,
            "score": self.score,
            "keyword_score": self.keyword_score,
            "semantic_score": self.semantic_score,
            "text": self.text,
        }


# -----------------------------------------------------------------------------
# Hybrid Retriever
# -----------------------------------------------------------------------------


class HybridRetriever:
    """
    Hybrid BM25 + embedding retriever over an in-memory knowledge base.

    Architecture:
    1. Expand query with synonyms
    2. Score the whole corpus with BM25
    3. Preselect the best lexical candidates (or a corpus prefix if none match)
    4. Embed the query (failure degrades to a zero semantic score)
    5. Blend: alpha * cosine + (1 - alpha) * compress(bm25)
    6. Sort, truncate, and fall back to a substring scan when nothing ranks

    The retriever keeps no per-search state; concurrent searches only read
    the knowledge base published in the holder.

    Example:
        retriever = HybridRetriever(kb, embedder=embedder)
        results = retriever.search("körömvirág kenőcs", k=6)
    """

    def __init__(
        self,
        kb: Union[KnowledgeBase, KnowledgeBaseHolder],
        embedder: Optional[EmbeddingProvider] = None,
        preselect_cap: int = 2000,
        fallback_score: float = 0.01,
        lexical_compression: Callable[[float], float] = math.tanh,
    ):
        """
        Initialize the hybrid retriever.

        Args:
            kb: Knowledge base, or a holder whose current value is searched
            embedder: Query embedding capability (None disables semantic scoring)
            preselect_cap: Corpus prefix scanned when no term matches
            fallback_score: Nominal score given to substring fallback hits
            lexical_compression: Maps unbounded BM25 scores onto cosine's scale
        """
        self.holder = kb if isinstance(kb, KnowledgeBaseHolder) else KnowledgeBaseHolder(kb)
        self.embedder = embedder
        self.preselect_cap = preselect_cap
        self.fallback_score = fallback_score
        self.lexical_compression = lexical_compression

    def search(
        self,
        query: str,
        k: int = 12,
        k_kw: int = 80,
        alpha: float = 0.55,
    ) -> List[SearchResult]:
        """
        Search the knowledge base.

        Args:
            query: User's search query
            k: Maximum number of results to return
            k_kw: Number of lexical candidates passed to semantic scoring
            alpha: Semantic weight in the blend (1 - alpha goes to BM25)

        Returns:
            List of SearchResult objects, best first. Empty if nothing matched.

        Note:
            Never raises; unexpected failures are logged and yield [].
        """
        start_time = time.perf_counter()

        try:
            if not query or not query.strip():
                logger.warning("Empty query provided to search")
                return []

            kb = self.holder.current
            if not kb.chunks or k <= 0:
                return []

            # Step 1: Expand query
            expanded = analyze_query(query, kb.synonyms)

            # Step 2: BM25 over the full corpus
            lexical_scores = kb.index.score(expanded.terms, expanded.phrases)

            # Step 3: Preselect candidates
            candidates = self._preselect(lexical_scores, k_kw, len(kb.chunks))

            # Step 4: Query embedding (degrades to None)
            query_embedding = self._get_query_embedding(query)

            # Step 5-7: Blend, sort, truncate
            results = self._rank(kb, candidates, lexical_scores, query_embedding, k, alpha)

            # Step 8: Last-resort substring scan
            if not results:
                results = self._fallback_scan(kb, query, k)

            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                f"Search completed: query='{query[:30]}', terms={len(expanded.terms)}, "
                f"phrases={len(expanded.phrases)}, "
                f"candidates={len(candidates)}, results={len(results)}, "
                f"semantic={query_embedding is not None}, latency={latency_ms:.1f}ms"
            )

            return results

        except Exception as e:
            logger.error(f"Search failed: {e}", exc_info=True)
            return []

    def _preselect(
        self,
        lexical_scores: Dict[int, float],
        k_kw: int,
        corpus_size: int,
    ) -> List[int]:
        """
        Choose the chunk indices that get a semantic score.

        Top ``k_kw`` by BM25 (ties by chunk order); when no term matched,
        a bounded prefix of the corpus so purely semantic queries still rank.
        """
        if not lexical_scores:
            return list(range(min(self.preselect_cap, corpus_size)))

        ranked = sorted(lexical_scores.items(), key=lambda item: (-item[1], item[0]))
        return [doc_index for doc_index, _ in ranked[:max(k_kw, 0)]]

    def _get_query_embedding(self, query: str) -> Optional[Sequence[float]]:
        """
        Embed the query, or return None if no embedding is available.

        The embedder applies its own timeout and retry policy.
        """
        if self.embedder is None:
            return None

        try:
            return self.embedder.embed(query, task_type="retrieval_query")
        except EmbeddingUnavailableError as e:
            logger.warning(f"Query embedding unavailable, using lexical scores only: {e}")
            return None
        except Exception as e:
            logger.error(f"Query embedding failed: {e}")
            return None

    def _rank(
        self,
        kb: KnowledgeBase,
        candidates: List[int],
        lexical_scores: Dict[int, float],
        query_embedding: Optional[Sequence[float]],
        k: int,
        alpha: float,
    ) -> List[SearchResult]:
        """
        Blend both signals and keep the ``k`` best candidates scoring above 0.

        Ties keep chunk-sequence order.
        """
        scored = []
        for doc_index in sorted(candidates):
            chunk = kb.chunks[doc_index]
            keyword_score = lexical_scores.get(doc_index, 0.0)
            semantic_score = cosine(query_embedding, chunk.embedding)
            hybrid = alpha * semantic_score + (1 - alpha) * self.lexical_compression(keyword_score)
            if hybrid > 0:
                scored.append((hybrid, keyword_score, semantic_score, chunk))

        # Stable sort on the chunk-ordered list: equal scores keep first-seen order
        scored.sort(key=lambda item: item[0], reverse=True)

        return [
            SearchResult(
                id=chunk.id,
                source=chunk.source,
                score=hybrid,
                keyword_score=keyword_score,
                semantic_score=semantic_score,
                text=chunk.text,
            )
            for hybrid, keyword_score, semantic_score, chunk in scored[:k]
        ]

    def _fallback_scan(self, kb: KnowledgeBase, query: str, k: int) -> List[SearchResult]:
        """Return chunks whose normalized text contains the normalized query."""
        needle = normalize(query).strip()
        if not needle:
            return []

        hits = []
        for chunk in kb.chunks:
            if needle in chunk.norm_text:
                hits.append(
                    SearchResult(
                        id=chunk.id,
                        source=chunk.source,
                        score=self.fallback_score,
                        keyword_score=0.0,
                        semantic_score=0.0,
                        text=chunk.text,
                    )
                )
                if len(hits) >= k:
                    break

        if hits:
            logger.warning(f"No ranked results; substring fallback returned {len(hits)}")
        return hits
