"""
Tests for archive loading/writing and the knowledge base.

Tests:
- Loading valid archives, skipping incomplete records
- Fatal errors for broken archives or directories
- Sharded writes and reload
- KnowledgeBase invariants, stats, and holder swapping
"""

import gzip
import json

import pytest

from mentor_rag.rag.storage.archive import (
    ArchiveLoadError,
    load_chunks,
    read_archive,
    replace_archive,
    write_archive,
)
from mentor_rag.rag.storage.knowledge_base import (
    KnowledgeBase,
    KnowledgeBaseHolder,
    build_knowledge_base,
    load_knowledge_base,
)


class TestLoadChunks:
    """Test suite for load_chunks()."""

    def test_loads_valid_records(self, kb_dir):
        chunks = load_chunks(kb_dir)

        assert [c.id for c in chunks] == ["A", "B", "C"]
        assert chunks[1].source == "skin.txt"
        assert chunks[1].embedding == (0.0, 1.0, 0.0)

    def test_normalizes_text(self, tmp_path, write_gz):
        write_gz(tmp_path / "a.json.gz", [{"text": "Körömvirág KENŐCS", "embedding": [1]}])

        chunk = load_chunks(tmp_path)[0]
        assert chunk.text == "Körömvirág KENŐCS"
        assert chunk.norm_text == "koromvirag kenocs"
        assert chunk.id is None
        assert chunk.source is None

    def test_skips_incomplete_records(self, tmp_path, write_gz):
        write_gz(tmp_path / "a.json.gz", [
            {"text": "", "embedding": [1.0]},
            {"text": "no vector", "embedding": None},
            {"text": "bad vector", "embedding": ["x", "y"]},
            "not a record",
            {"text": "kept", "embedding": [0.5]},
        ])

        chunks = load_chunks(tmp_path)
        assert [c.text for c in chunks] == ["kept"]

    def test_archives_read_in_sorted_order(self, tmp_path, write_gz):
        write_gz(tmp_path / "kb_store-001.json.gz", [{"id": "second", "text": "b", "embedding": [1]}])
        write_gz(tmp_path / "kb_store-000.json.gz", [{"id": "first", "text": "a", "embedding": [1]}])

        assert [c.id for c in load_chunks(tmp_path)] == ["first", "second"]

    def test_ignores_non_matching_files(self, tmp_path, write_gz):
        write_gz(tmp_path / "a.json.gz", [{"text": "a", "embedding": [1]}])
        (tmp_path / "notes.txt").write_text("not an archive", encoding="utf-8")

        assert len(load_chunks(tmp_path)) == 1

    def test_empty_directory(self, tmp_path):
        assert load_chunks(tmp_path) == []

    def test_missing_directory_is_fatal(self, tmp_path):
        with pytest.raises(ArchiveLoadError):
            load_chunks(tmp_path / "missing")

    def test_corrupt_gzip_is_fatal(self, tmp_path, write_gz):
        write_gz(tmp_path / "a.json.gz", [{"text": "fine", "embedding": [1]}])
        broken = tmp_path / "b.json.gz"
        broken.write_bytes(b"definitely not gzip")

        with pytest.raises(ArchiveLoadError) as exc_info:
            load_chunks(tmp_path)
        assert exc_info.value.path == broken

    def test_truncated_gzip_is_fatal(self, tmp_path):
        data = gzip.compress(json.dumps([{"text": "x" * 1000, "embedding": [1]}]).encode())
        (tmp_path / "a.json.gz").write_bytes(data[: len(data) // 2])

        with pytest.raises(ArchiveLoadError):
            load_chunks(tmp_path)

    def test_invalid_json_is_fatal(self, tmp_path):
        (tmp_path / "a.json.gz").write_bytes(gzip.compress(b"[{not json"))

        with pytest.raises(ArchiveLoadError):
            read_archive(tmp_path / "a.json.gz")

    def test_non_array_is_fatal(self, tmp_path, write_gz):
        write_gz(tmp_path / "a.json.gz", {"text": "object", "embedding": [1]})

        with pytest.raises(ArchiveLoadError, match="JSON array"):
            load_chunks(tmp_path)


class TestWriteArchive:
    """Test suite for write_archive()."""

    def test_shards_and_names(self, tmp_path, make_chunk):
        chunks = [make_chunk(f"text {i}", id=str(i), embedding=[0.1 * i]) for i in range(5)]

        paths = write_archive(chunks, tmp_path / "out", shard_size=2)

        assert [p.name for p in paths] == [
            "kb_store-000.json.gz",
            "kb_store-001.json.gz",
            "kb_store-002.json.gz",
        ]
        assert [len(read_archive(p)) for p in paths] == [2, 2, 1]

    def test_round_trip_with_rounding(self, tmp_path, make_chunk):
        chunks = [make_chunk("Kamilla tea", id="k", source="teas.txt", embedding=[0.123456, -0.987654])]

        write_archive(chunks, tmp_path, decimals=4)
        loaded = load_chunks(tmp_path)

        assert loaded[0].id == "k"
        assert loaded[0].source == "teas.txt"
        assert loaded[0].text == "Kamilla tea"
        assert loaded[0].embedding == (0.1235, -0.9877)

    def test_missing_embedding_written_as_null(self, tmp_path, make_chunk):
        write_archive([make_chunk("lost vector", embedding=None)], tmp_path)

        records = read_archive(tmp_path / "kb_store-000.json.gz")
        assert records[0]["embedding"] is None
        assert load_chunks(tmp_path) == []

    def test_nothing_to_write(self, tmp_path):
        assert write_archive([], tmp_path) == []

    def test_invalid_shard_size(self, tmp_path):
        with pytest.raises(ValueError):
            write_archive([], tmp_path, shard_size=0)


class TestKnowledgeBase:
    """Test suite for KnowledgeBase construction and swapping."""

    def test_index_covers_every_chunk(self, herbal_kb):
        referenced = {doc for plist in herbal_kb.index.postings.values() for doc, _ in plist}
        assert referenced == set(range(len(herbal_kb)))
        assert len(herbal_kb.index.doc_lengths) == len(herbal_kb.chunks)

    def test_avgdl(self, herbal_kb):
        assert herbal_kb.avg_doc_length == pytest.approx((3 + 4 + 3) / 3)

    def test_load_knowledge_base(self, kb_dir, herbal_synonyms):
        kb = load_knowledge_base(kb_dir, synonyms=herbal_synonyms)

        assert len(kb) == 3
        assert kb.synonyms is herbal_synonyms
        assert "calendula" in kb.index.postings

    def test_load_knowledge_base_propagates_errors(self, tmp_path):
        with pytest.raises(ArchiveLoadError):
            load_knowledge_base(tmp_path / "missing")

    def test_empty_knowledge_base(self):
        kb = build_knowledge_base([])
        assert len(kb) == 0
        assert kb.avg_doc_length == 0.0
        assert len(kb.synonyms) == 0

    def test_stats(self, herbal_kb):
        stats = herbal_kb.stats()
        assert stats["chunks"] == 3
        assert stats["chunks_with_embeddings"] == 3
        assert stats["sources"] == 3
        assert stats["total_documents"] == 3

    def test_immutable(self, herbal_kb):
        with pytest.raises(AttributeError):
            herbal_kb.chunks = ()

    def test_holder_swap(self, herbal_kb):
        holder = KnowledgeBaseHolder()
        assert len(holder.current) == 0

        previous = holder.swap(herbal_kb)

        assert isinstance(previous, KnowledgeBase)
        assert len(previous) == 0
        assert holder.current is herbal_kb


class TestReplaceArchive:
    """Test suite for replace_archive()."""

    def test_supersedes_differently_named_archives(self, tmp_path, write_gz, make_chunk):
        write_gz(tmp_path / "herbs.json.gz", [{"id": "A", "text": "kamilla", "embedding": [1]}])
        (tmp_path / "README.txt").write_text("keep me", encoding="utf-8")

        paths = replace_archive([make_chunk("kamilla", id="A", embedding=[0.5])], tmp_path)

        assert [p.name for p in paths] == ["kb_store-000.json.gz"]
        assert sorted(p.name for p in tmp_path.iterdir()) == ["README.txt", "kb_store-000.json.gz"]
        assert [(c.id, c.embedding) for c in load_chunks(tmp_path)] == [("A", (0.5,))]

    def test_overwrites_same_named_shards_and_drops_extra(self, tmp_path, make_chunk):
        old = [make_chunk(f"old {i}", id=f"old-{i}", embedding=[1.0]) for i in range(3)]
        write_archive(old, tmp_path, shard_size=1)

        replace_archive([make_chunk("new", id="new", embedding=[1.0])], tmp_path, shard_size=1)

        assert [c.id for c in load_chunks(tmp_path)] == ["new"]
        assert [p.name for p in tmp_path.iterdir()] == ["kb_store-000.json.gz"]

    def test_failed_write_leaves_archives_untouched(self, tmp_path, write_gz, make_chunk):
        write_gz(tmp_path / "kb" / "herbs.json.gz", [{"id": "A", "text": "kamilla", "embedding": [1]}])

        with pytest.raises(ValueError):
            replace_archive([make_chunk("x", embedding=[1.0])], tmp_path / "kb", shard_size=0)

        assert [p.name for p in (tmp_path / "kb").iterdir()] == ["herbs.json.gz"]
        assert sorted(p.name for p in tmp_path.iterdir()) == ["kb"]
