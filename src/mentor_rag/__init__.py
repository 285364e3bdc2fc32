"""Mentor RAG - hybrid lexical + semantic search over a herbal knowledge base."""

__version__ = "0.1.0"
