"""Knowledge base storage: archives and the in-memory index."""

from .archive import ArchiveLoadError, load_chunks, read_archive, replace_archive, write_archive
from .knowledge_base import (
    Chunk,
    KnowledgeBase,
    KnowledgeBaseHolder,
    build_knowledge_base,
    load_knowledge_base,
)

__all__ = [
    "ArchiveLoadError",
    "Chunk",
    "KnowledgeBase",
    "KnowledgeBaseHolder",
    "build_knowledge_base",
    "load_chunks",
    "load_knowledge_base",
    "read_archive",
    "replace_archive",
    "write_archive",
]
