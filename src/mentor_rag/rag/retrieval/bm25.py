# retrieval/bm25.py
"""
BM25 lexical index for hybrid retrieval.

Implements a compact BM25 (Best Matching 25) variant over an inverted
index. Documents are addressed by their position in the knowledge base's
chunk sequence, which is stable for the lifetime of the process.
"""

import logging
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Mapping, Sequence

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"[a-z0-9]+")

DEFAULT_MAX_DOC_TOKENS = 500


def tokenize(norm_text: str, max_tokens: int = DEFAULT_MAX_DOC_TOKENS) -> list[str]:
    """
    Tokenize already-normalized text.

    Extracts maximal runs of lowercase ASCII letters and digits and keeps
    at most the first ``max_tokens`` of them.

    Args:
        norm_text: Text passed through ``normalize``
        max_tokens: Cap on the number of tokens kept

    Returns:
        List of tokens in document order
    """
    if not norm_text:
        return []
    return TOKEN_PATTERN.findall(norm_text)[:max_tokens]


@dataclass(frozen=True)
class BM25Index:
    """
    Immutable inverted index with per-document length statistics.

    ``postings`` maps token -> tuple of (doc_index, term_frequency).
    ``doc_lengths[i]`` is the truncated token count of document ``i``.

    BM25 Parameters:
    - k1: Term frequency saturation parameter (default 1.2)
    - b: Document length normalization (default 0.75)

    Example:
        index = BM25Index.build(["soothing chamomile tea", "ginger tea"])
        index.score(["tea", "ginger"])
        # Returns: {0: <tea score>, 1: <tea + ginger score>}
    """

    postings: Mapping[str, tuple[tuple[int, int], ...]] = field(default_factory=dict)
    doc_lengths: tuple[int, ...] = ()
    avg_doc_length: float = 0.0
    k1: float = 1.2
    b: float = 0.75

    @classmethod
    def build(
        cls,
        norm_texts: Iterable[str],
        max_doc_tokens: int = DEFAULT_MAX_DOC_TOKENS,
        k1: float = 1.2,
        b: float = 0.75,
    ) -> "BM25Index":
        """
        Build the index from normalized document texts.

        Args:
            norm_texts: Normalized texts, in chunk-sequence order
            max_doc_tokens: Tokens per document counted toward the index
            k1: BM25 saturation parameter
            b: BM25 length normalization parameter

        Returns:
            A new BM25Index
        """
        postings: dict[str, list[tuple[int, int]]] = {}
        doc_lengths: list[int] = []

        for doc_index, text in enumerate(norm_texts):
            tokens = tokenize(text, max_doc_tokens)
            doc_lengths.append(len(tokens))
            for term, tf in Counter(tokens).items():
                postings.setdefault(term, []).append((doc_index, tf))

        # max() guards the empty corpus
        avg_doc_length = sum(doc_lengths) / max(1, len(doc_lengths))

        index = cls(
            postings={term: tuple(plist) for term, plist in postings.items()},
            doc_lengths=tuple(doc_lengths),
            avg_doc_length=avg_doc_length,
            k1=k1,
            b=b,
        )
        logger.info(
            f"BM25 index built: {len(doc_lengths)} documents, "
            f"{len(postings)} unique terms, "
            f"avg length {avg_doc_length:.1f}"
        )
        return index

    @property
    def total_docs(self) -> int:
        return len(self.doc_lengths)

    def idf(self, term: str) -> float:
        """Smoothed IDF: ln(1 + (N - df + 0.5) / (df + 0.5)); 0 for unknown terms."""
        df = len(self.postings.get(term, ()))
        if df == 0:
            return 0.0
        return math.log(1 + (self.total_docs - df + 0.5) / (df + 0.5))

    def term_score(self, tf: int, doc_length: int, idf: float) -> float:
        """
        Single-term BM25 contribution.

        score = idf * (tf * (k1 + 1)) / (tf + k1 * (1 - b + b * |D|/avgdl))
        """
        # avgdl is 0 only when every document is empty, and then no posting exists
        avgdl = self.avg_doc_length or 1.0
        denominator = tf + self.k1 * (1 - self.b + self.b * (doc_length / avgdl))
        return idf * (tf * (self.k1 + 1)) / denominator

    def score(
        self,
        terms: Sequence[str],
        phrases: Iterable[Sequence[str]] = (),
    ) -> dict[int, float]:
        """
        Score every document containing at least one of ``terms``.

        Each distinct term contributes once; terms absent from the index
        contribute nothing. The words of a phrase contribute only to
        documents that contain every word of that phrase.

        Args:
            terms: Expanded, normalized query terms
            phrases: Multi-word synonyms, one tuple of words each

        Returns:
            Sparse mapping doc_index -> score (missing keys mean 0)
        """
        scores: dict[int, float] = {}
        counted = dict.fromkeys(terms)

        for term in counted:
            plist = self.postings.get(term)
            if not plist:
                continue

            idf = self.idf(term)
            for doc_index, tf in plist:
                contribution = self.term_score(tf, self.doc_lengths[doc_index], idf)
                scores[doc_index] = scores.get(doc_index, 0.0) + contribution

        # doc_index -> {word: tf} for phrase words not already counted as terms
        phrase_hits: dict[int, dict[str, int]] = {}
        for phrase in phrases:
            words = list(dict.fromkeys(phrase))
            tf_by_doc = [dict(self.postings.get(word, ())) for word in words]
            if not words or not all(tf_by_doc):
                continue

            for doc_index in set(tf_by_doc[0]).intersection(*tf_by_doc[1:]):
                hits = phrase_hits.setdefault(doc_index, {})
                for word, tfs in zip(words, tf_by_doc):
                    if word not in counted:
                        hits[word] = tfs[doc_index]

        for doc_index, hits in phrase_hits.items():
            for word, tf in hits.items():
                contribution = self.term_score(tf, self.doc_lengths[doc_index], self.idf(word))
                scores[doc_index] = scores.get(doc_index, 0.0) + contribution

        return scores

    def get_index_stats(self) -> dict:
        """
        Get statistics about the index.

        Returns:
            Dict with index statistics
        """
        return {
            "total_documents": self.total_docs,
            "unique_terms": len(self.postings),
            "avg_doc_length": self.avg_doc_length,
            "k1": self.k1,
            "b": self.b,
        }
