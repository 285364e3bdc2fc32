"""Pytest fixtures and test utilities for the Mentor RAG test suite."""

import gzip
import json
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from mentor_rag.rag.embedding.embedder import EmbeddingUnavailableError
from mentor_rag.rag.retrieval.synonyms import SynonymTable
from mentor_rag.rag.storage.knowledge_base import Chunk, build_knowledge_base
from mentor_rag.rag.text import normalize


# ============================================================================
# EMBEDDING FIXTURES
# ============================================================================


class FakeEmbedder:
    """
    Deterministic stand-in for the Gemini adapter.

    Known texts map to fixed vectors; unknown texts raise
    EmbeddingUnavailableError, as the real adapter does after retries.
    """

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, error: Optional[Exception] = None):
        self.vectors = vectors or {}
        self.error = error
        self.calls: List[tuple] = []

    def embed(self, text: str, task_type: str = "retrieval_query") -> List[float]:
        self.calls.append((text, task_type))
        if self.error is not None:
            raise self.error
        if text not in self.vectors:
            raise EmbeddingUnavailableError(f"no vector for {text!r}")
        return list(self.vectors[text])

    def get_usage(self) -> Dict:
        return {"call_count": len(self.calls)}


@pytest.fixture
def fake_embedder():
    """
    Factory for FakeEmbedder instances.

    Returns:
        Callable(vectors=None, error=None) -> FakeEmbedder
    """
    return FakeEmbedder


# ============================================================================
# KNOWLEDGE BASE FIXTURES
# ============================================================================


@pytest.fixture
def make_chunk():
    """
    Factory building Chunk objects with normalized text filled in.

    Returns:
        Callable(text, id=None, source=None, embedding=None) -> Chunk
    """

    def _make(text: str, id: Optional[str] = None, source: Optional[str] = None, embedding=None) -> Chunk:
        return Chunk(
            id=id,
            source=source,
            text=text,
            norm_text=normalize(text),
            embedding=tuple(embedding) if embedding is not None else None,
        )

    return _make


@pytest.fixture
def herbal_synonyms():
    """Synonym table with one vernacular/English/Latin group per herb."""
    return SynonymTable.from_groups([
        ["körömvirág", "calendula", "marigold"],
        ["kamilla", "chamomile"],
        ["gyömbér", "ginger"],
    ])


@pytest.fixture
def herbal_kb(make_chunk, herbal_synonyms):
    """
    Three-chunk knowledge base.

    A: chamomile, B: calendula, C: ginger. Embeddings point in three
    different directions so semantic ranking is predictable.
    """
    chunks = [
        make_chunk("soothing chamomile tea", id="A", source="teas.txt", embedding=[1.0, 0.0, 0.0]),
        make_chunk("calendula wound healing ointment", id="B", source="skin.txt", embedding=[0.0, 1.0, 0.0]),
        make_chunk("ginger relieves nausea", id="C", source="digestion.txt", embedding=[0.0, 0.0, 1.0]),
    ]
    return build_knowledge_base(chunks, herbal_synonyms)


# ============================================================================
# ARCHIVE FIXTURES
# ============================================================================


@pytest.fixture
def write_gz():
    """
    Write a gzip-compressed JSON archive.

    Returns:
        Callable(path, payload) -> Path, where payload is JSON-serializable
    """

    def _write(path: Path, payload) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with gzip.open(path, "wb") as f:
            f.write(json.dumps(payload, ensure_ascii=False).encode("utf-8"))
        return path

    return _write


@pytest.fixture
def kb_dir(tmp_path, write_gz):
    """Directory with one archive holding the three herbal records plus junk."""
    directory = tmp_path / "kb"
    write_gz(directory / "kb_store-000.json.gz", [
        {"id": "A", "source": "teas.txt", "text": "soothing chamomile tea", "embedding": [1.0, 0.0, 0.0]},
        {"id": "B", "source": "skin.txt", "text": "calendula wound healing ointment", "embedding": [0.0, 1.0, 0.0]},
        {"id": "C", "source": "digestion.txt", "text": "ginger relieves nausea", "embedding": [0.0, 0.0, 1.0]},
        {"id": "no-embedding", "text": "orphan text"},
        {"id": "no-text", "embedding": [0.5, 0.5, 0.5]},
    ])
    return directory
