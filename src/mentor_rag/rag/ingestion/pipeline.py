# ingestion/pipeline.py
"""
Build knowledge base archives from plain-text source files.

Pipeline: read *.txt -> chunk -> embed in batches -> write gzip shards.
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..embedding.embedder import EmbeddingUnavailableError, GeminiEmbedderAdapter
from ..storage.archive import write_archive
from ..storage.knowledge_base import Chunk
from ..text import normalize
from .chunker import CharacterChunker

logger = logging.getLogger(__name__)


@dataclass
class SourceRecord:
    """A chunk of a source file awaiting its embedding."""
    id: str
    source: str
    text: str


@dataclass
class IngestReport:
    """Outcome of an ingestion run."""
    documents: int = 0
    chunks: int = 0
    embedded: int = 0
    skipped: int = 0
    shards: List[Path] = field(default_factory=list)


def collect_documents(src_dir: str | Path, chunker: Optional[CharacterChunker] = None) -> tuple[int, List[SourceRecord]]:
    """
    Read and chunk every ``*.txt`` file in ``src_dir``.

    Records are identified as ``<file name>#<chunk number>``.

    Returns:
        (number of files read, chunk records in file-then-chunk order)
    """
    chunker = chunker or CharacterChunker()
    src_path = Path(src_dir)
    if not src_path.is_dir():
        logger.warning(f"Source directory not found: {src_path}")
        return 0, []

    files = sorted(p for p in src_path.glob("*.txt") if p.is_file())
    records: List[SourceRecord] = []
    for file in files:
        text = file.read_text(encoding="utf-8")
        for n, part in enumerate(chunker.chunk(text)):
            records.append(SourceRecord(id=f"{file.name}#{n}", source=file.name, text=part))

    logger.info(f"Collected {len(records)} chunks from {len(files)} files in {src_path}")
    return len(files), records


def ingest_directory(
    src_dir: str | Path,
    out_dir: str | Path,
    embedder: GeminiEmbedderAdapter,
    chunker: Optional[CharacterChunker] = None,
    batch_size: int = 64,
    batch_pause: float = 0.5,
    prefix: str = "kb_store-",
    shard_size: int = 2500,
    decimals: int = 4,
) -> IngestReport:
    """
    Chunk, embed and archive a directory of text files.

    A batch whose embedding fails is logged and skipped; the run continues.

    Args:
        src_dir: Directory with ``*.txt`` sources
        out_dir: Directory receiving the archive shards
        embedder: Embedding adapter (document task type)
        chunker: Chunking strategy (default 900/150 characters)
        batch_size: Chunks per embedding call
        batch_pause: Seconds to wait between batches (rate limits)
        prefix: Shard file name prefix
        shard_size: Records per shard
        decimals: Rounding applied to embedding values

    Returns:
        IngestReport
    """
    documents, records = collect_documents(src_dir, chunker)
    report = IngestReport(documents=documents, chunks=len(records))
    if not records:
        logger.info("No text chunks to ingest")
        return report

    logger.info(f"Embedding {len(records)} chunks with {embedder.model}...")

    chunks: List[Chunk] = []
    for start in range(0, len(records), batch_size):
        batch = records[start:start + batch_size]
        try:
            results = embedder.embed_batch([r.text for r in batch])
        except EmbeddingUnavailableError as e:
            logger.error(f"Error in batch {start}: {e}. Skipping {len(batch)} chunks")
            report.skipped += len(batch)
            continue

        for record, result in zip(batch, results):
            chunks.append(Chunk(
                id=record.id,
                source=record.source,
                text=record.text,
                norm_text=normalize(record.text),
                embedding=tuple(result.vector),
            ))

        logger.info(f"  -> {min(start + batch_size, len(records))} / {len(records)}")
        if batch_pause > 0 and start + batch_size < len(records):
            time.sleep(batch_pause)

    report.embedded = len(chunks)
    report.shards = write_archive(
        chunks, out_dir, prefix=prefix, shard_size=shard_size, decimals=decimals
    )
    logger.info(
        f"Ingestion done: {report.embedded} embedded, {report.skipped} skipped, "
        f"{len(report.shards)} shards"
    )
    return report
