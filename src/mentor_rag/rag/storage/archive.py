# storage/archive.py
"""
Compressed knowledge base archives.

Each archive is a gzip-compressed JSON array of records::

    [{"id": "...", "source": "...", "text": "...", "embedding": [0.1, ...]}, ...]

Loading is all-or-nothing: any unreadable or malformed archive aborts the
load, so a partial knowledge base is never served. Individual records
missing ``text`` or ``embedding`` are skipped.
"""

import gzip
import json
import logging
import os
import shutil
import tempfile
import zlib
from pathlib import Path
from typing import Any, Iterable, Optional

from ..text import normalize
from .knowledge_base import Chunk

logger = logging.getLogger(__name__)


class ArchiveLoadError(Exception):
    """Raised when a knowledge base archive cannot be read or parsed."""

    def __init__(self, message: str, path: Optional[Path] = None):
        super().__init__(message)
        self.path = path


def _parse_embedding(value: Any) -> Optional[tuple[float, ...]]:
    if not isinstance(value, list):
        return None
    try:
        return tuple(float(x) for x in value)
    except (TypeError, ValueError):
        return None


def _chunk_from_record(record: Any) -> Optional[Chunk]:
    """Turn one archive record into a Chunk, or None if it must be skipped."""
    if not isinstance(record, dict):
        return None

    text = record.get("text")
    if not text or not isinstance(text, str):
        return None

    embedding = _parse_embedding(record.get("embedding"))
    if embedding is None:
        return None

    return Chunk(
        id=record.get("id"),
        source=record.get("source"),
        text=text,
        norm_text=normalize(text),
        embedding=embedding,
    )


def read_archive(path: str | Path) -> list:
    """
    Decompress and parse a single archive.

    Raises:
        ArchiveLoadError: If the file is unreadable, not gzip, not UTF-8 JSON,
            or not a JSON array
    """
    path = Path(path)
    try:
        with gzip.open(path, "rb") as f:
            raw = f.read()
        records = json.loads(raw.decode("utf-8"))
    except (OSError, EOFError, zlib.error) as e:
        raise ArchiveLoadError(f"Cannot read archive {path}: {e}", path) from e
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ArchiveLoadError(f"Archive {path} is not valid JSON: {e}", path) from e

    if not isinstance(records, list):
        raise ArchiveLoadError(
            f"Archive {path} must contain a JSON array, got {type(records).__name__}", path
        )

    return records


def load_chunks(kb_dir: str | Path, pattern: str = "*.json.gz") -> list[Chunk]:
    """
    Load chunks from every archive in ``kb_dir`` matching ``pattern``.

    Archives are read in sorted file-name order; chunk order within an
    archive is preserved.

    Args:
        kb_dir: Directory holding the archives
        pattern: Glob pattern selecting archive files

    Returns:
        Chunks in load order

    Raises:
        ArchiveLoadError: If the directory or any archive cannot be loaded
    """
    kb_path = Path(kb_dir)
    if not kb_path.is_dir():
        raise ArchiveLoadError(f"Knowledge base directory not found: {kb_path}", kb_path)

    files = sorted(p for p in kb_path.glob(pattern) if p.is_file())
    if not files:
        logger.warning(f"No archives matching {pattern!r} in {kb_path}")
        return []

    chunks: list[Chunk] = []
    skipped = 0

    for file in files:
        records = read_archive(file)
        loaded = 0
        for record in records:
            chunk = _chunk_from_record(record)
            if chunk is None:
                skipped += 1
                continue
            chunks.append(chunk)
            loaded += 1
        logger.debug(f"Loaded {loaded} chunks from {file.name}")

    if skipped:
        logger.debug(f"Skipped {skipped} records without text or embedding")

    logger.info(f"Loaded {len(chunks)} chunks from {len(files)} archives in {kb_path}")
    return chunks


def _round_embedding(embedding: Optional[Iterable[float]], decimals: int) -> Optional[list[float]]:
    if embedding is None:
        return None
    return [round(v, decimals) for v in embedding]


def write_archive(
    chunks: Iterable[Chunk],
    out_dir: str | Path,
    prefix: str = "kb_store-",
    shard_size: int = 2500,
    decimals: int = 4,
) -> list[Path]:
    """
    Write chunks as sharded gzip JSON archives.

    Shards are named ``<prefix>000.json.gz``, ``<prefix>001.json.gz``, ...
    and hold at most ``shard_size`` records each. Embeddings are rounded to
    ``decimals`` places to keep files small.

    Args:
        chunks: Chunks to persist, in order
        out_dir: Target directory (created if missing)
        prefix: Shard file name prefix
        shard_size: Records per shard
        decimals: Rounding applied to embedding values

    Returns:
        Paths of the written shards
    """
    if shard_size <= 0:
        raise ValueError(f"shard_size must be > 0, got {shard_size}")

    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)

    records = [
        {
            "id": c.id,
            "source": c.source,
            "text": c.text,
            "embedding": _round_embedding(c.embedding, decimals),
        }
        for c in chunks
    ]

    written: list[Path] = []
    for shard_index, start in enumerate(range(0, len(records), shard_size)):
        shard = records[start:start + shard_size]
        target = out_path / f"{prefix}{shard_index:03d}.json.gz"
        payload = json.dumps(shard, ensure_ascii=False).encode("utf-8")
        with gzip.open(target, "wb") as f:
            f.write(payload)
        written.append(target)
        logger.info(
            f"Saved {target.name} ({target.stat().st_size / 1024 / 1024:.1f} MB, "
            f"{len(shard)} chunks)"
        )

    return written


def replace_archive(
    chunks: Iterable[Chunk],
    kb_dir: str | Path,
    pattern: str = "*.json.gz",
    prefix: str = "kb_store-",
    shard_size: int = 2500,
    decimals: int = 4,
) -> list[Path]:
    """
    Rewrite the archives of ``kb_dir`` in place.

    Shards are first written to a staging directory next to ``kb_dir``; the
    existing archives stay untouched until every shard is complete. The new
    shards are then moved in and every other file matching ``pattern`` is
    removed, so a reload sees each chunk once.

    Args:
        chunks: Chunks to persist, in order
        kb_dir: Knowledge base directory holding the current archives
        pattern: Glob of the archives being replaced
        prefix: Shard file name prefix
        shard_size: Records per shard
        decimals: Rounding applied to embedding values

    Returns:
        Paths of the shards now in ``kb_dir``
    """
    target = Path(kb_dir)
    target.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{target.name}-", dir=target.parent))

    try:
        staged = write_archive(
            chunks, staging, prefix=prefix, shard_size=shard_size, decimals=decimals
        )
        stale = [p for p in target.glob(pattern) if p.is_file()]

        written = []
        for path in staged:
            destination = target / path.name
            os.replace(path, destination)
            written.append(destination)

        kept = set(written)
        for path in stale:
            if path not in kept:
                path.unlink()
                logger.info(f"Removed superseded archive {path.name}")
    finally:
        shutil.rmtree(staging, ignore_errors=True)

    return written
