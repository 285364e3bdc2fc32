"""Ingestion pipeline for text sources."""

from .chunker import CharacterChunker
from .pipeline import IngestReport, SourceRecord, collect_documents, ingest_directory

__all__ = [
    "CharacterChunker",
    "IngestReport",
    "SourceRecord",
    "collect_documents",
    "ingest_directory",
]
