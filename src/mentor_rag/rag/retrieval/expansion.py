"""Query normalization and synonym expansion."""

import re
from dataclasses import dataclass

from ..text import normalize
from .synonyms import SynonymTable

_EDGE_PUNCTUATION = re.compile(r"^[^a-z0-9]+|[^a-z0-9]+$")


def _terms(norm_text: str) -> list[str]:
    """Split on whitespace and trim punctuation from both ends of each term."""
    terms = (_EDGE_PUNCTUATION.sub("", part) for part in norm_text.split())
    return [t for t in terms if t]


@dataclass(frozen=True)
class ExpandedQuery:
    """
    Normalized query terms plus multi-word synonyms kept as phrases.

    Phrase words only count where the whole phrase is present, so generic
    words such as "officinale" or "tea" cannot match on their own.
    """

    terms: tuple[str, ...]
    phrases: tuple[tuple[str, ...], ...] = ()

    def all_terms(self) -> list[str]:
        """Flat term list: terms first, then phrase words, without duplicates."""
        merged = dict.fromkeys(self.terms)
        for phrase in self.phrases:
            for word in phrase:
                merged.setdefault(word)
        return list(merged)


def analyze_query(query: str, synonyms: SynonymTable | None = None) -> ExpandedQuery:
    """
    Normalize a raw query and collect its synonyms.

    Single-word synonyms join the query terms. Multi-word synonyms are kept
    as phrases since the lexical index only holds single tokens. The whole
    query is also tried as a phrase key so multi-word names expand.

    Args:
        query: Raw user query
        synonyms: Table of alternate names (optional)

    Returns:
        ExpandedQuery with terms and phrases in first-insertion order
    """
    expanded = dict.fromkeys(_terms(normalize(query)))
    if synonyms is None or not len(synonyms) or not expanded:
        return ExpandedQuery(terms=tuple(expanded))

    lookups = list(expanded)
    whole = " ".join(lookups)
    if whole not in expanded:
        lookups.append(whole)

    phrases: dict[tuple[str, ...], None] = {}
    for term in lookups:
        for synonym in synonyms.lookup(term):
            words = _terms(normalize(synonym))
            if len(words) == 1:
                expanded.setdefault(words[0])
            elif words:
                phrases.setdefault(tuple(words))

    return ExpandedQuery(
        terms=tuple(expanded),
        phrases=tuple(p for p in phrases if not all(w in expanded for w in p)),
    )


def expand_query(query: str, synonyms: SynonymTable | None = None) -> list[str]:
    """
    Normalize a raw query and enrich it with synonyms.

    The result is deduplicated and keeps first-insertion order. Every term
    carries equal weight downstream. Multi-word synonyms appear word by word;
    use ``analyze_query`` to keep them grouped.

    Args:
        query: Raw user query
        synonyms: Table of alternate names (optional)

    Returns:
        Expanded list of normalized terms
    """
    return analyze_query(query, synonyms).all_terms()
