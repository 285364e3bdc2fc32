"""Centralized configuration for the Mentor RAG engine."""

import os
from pathlib import Path

_DEFAULT_SYNONYMS_PATH = str(
    Path(__file__).resolve().parent / "rag" / "retrieval" / "synonyms.yaml"
)


class Config:
    """
    Mentor RAG configuration with environment variable overrides.

    All configuration values are centralized here with sensible defaults.
    Values can be overridden via environment variables. Library classes take
    explicit arguments; only the CLI reads from here.
    """

    # ========================================================================
    # Knowledge Base Archives
    # ========================================================================
    KB_DIR: str = os.getenv("KB_DIR", "./kb")
    ARCHIVE_PATTERN: str = os.getenv("ARCHIVE_PATTERN", "*.json.gz")
    ARCHIVE_PREFIX: str = os.getenv("ARCHIVE_PREFIX", "kb_store-")
    ARCHIVE_SHARD_SIZE: int = int(os.getenv("ARCHIVE_SHARD_SIZE", "2500"))
    EMBEDDING_DECIMALS: int = int(os.getenv("EMBEDDING_DECIMALS", "4"))
    SYNONYMS_PATH: str = os.getenv("SYNONYMS_PATH", _DEFAULT_SYNONYMS_PATH)
    MAX_DOC_TOKENS: int = int(os.getenv("MAX_DOC_TOKENS", "500"))

    # ========================================================================
    # Embedding Provider (Gemini)
    # ========================================================================
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "models/text-embedding-004")
    EMBEDDING_TIMEOUT: float = float(os.getenv("EMBEDDING_TIMEOUT", "10"))
    EMBEDDING_MAX_RETRIES: int = int(os.getenv("EMBEDDING_MAX_RETRIES", "5"))
    EMBEDDING_RETRY_BASE_DELAY: float = float(
        os.getenv("EMBEDDING_RETRY_BASE_DELAY", "1.0")
    )
    EMBEDDING_BATCH_SIZE: int = int(os.getenv("EMBEDDING_BATCH_SIZE", "64"))
    EMBEDDING_CALLS_PER_MINUTE: int = int(os.getenv("EMBEDDING_CALLS_PER_MINUTE", "120"))

    # ========================================================================
    # Hybrid Search
    # ========================================================================
    SEARCH_TOP_K: int = int(os.getenv("SEARCH_TOP_K", "12"))
    SEARCH_KEYWORD_CANDIDATES: int = int(os.getenv("SEARCH_KEYWORD_CANDIDATES", "80"))
    SEARCH_ALPHA: float = float(os.getenv("SEARCH_ALPHA", "0.55"))
    SEARCH_PRESELECT_CAP: int = int(os.getenv("SEARCH_PRESELECT_CAP", "2000"))
    SEARCH_FALLBACK_SCORE: float = float(os.getenv("SEARCH_FALLBACK_SCORE", "0.01"))
    BM25_K1: float = float(os.getenv("BM25_K1", "1.2"))
    BM25_B: float = float(os.getenv("BM25_B", "0.75"))

    # ========================================================================
    # Ingestion
    # ========================================================================
    CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "900"))
    CHUNK_OVERLAP: int = int(os.getenv("CHUNK_OVERLAP", "150"))

    @classmethod
    def validate(cls) -> bool:
        """
        Validate configuration consistency.

        Returns:
            True if validation passes

        Raises:
            ValueError: If validation fails (all problems are reported at once)
        """
        errors = []

        if not (0.0 <= cls.SEARCH_ALPHA <= 1.0):
            errors.append(f"SEARCH_ALPHA must be within [0, 1], got {cls.SEARCH_ALPHA}")

        positive_ints = {
            "SEARCH_TOP_K": cls.SEARCH_TOP_K,
            "SEARCH_KEYWORD_CANDIDATES": cls.SEARCH_KEYWORD_CANDIDATES,
            "SEARCH_PRESELECT_CAP": cls.SEARCH_PRESELECT_CAP,
            "ARCHIVE_SHARD_SIZE": cls.ARCHIVE_SHARD_SIZE,
            "EMBEDDING_BATCH_SIZE": cls.EMBEDDING_BATCH_SIZE,
            "EMBEDDING_MAX_RETRIES": cls.EMBEDDING_MAX_RETRIES,
            "EMBEDDING_CALLS_PER_MINUTE": cls.EMBEDDING_CALLS_PER_MINUTE,
            "MAX_DOC_TOKENS": cls.MAX_DOC_TOKENS,
            "CHUNK_SIZE": cls.CHUNK_SIZE,
        }
        for name, value in positive_ints.items():
            if value <= 0:
                errors.append(f"{name} must be > 0, got {value}")

        if cls.EMBEDDING_TIMEOUT <= 0:
            errors.append(f"EMBEDDING_TIMEOUT must be > 0, got {cls.EMBEDDING_TIMEOUT}")

        if cls.EMBEDDING_RETRY_BASE_DELAY < 0:
            errors.append(
                f"EMBEDDING_RETRY_BASE_DELAY must be >= 0, got {cls.EMBEDDING_RETRY_BASE_DELAY}"
            )

        if cls.EMBEDDING_DECIMALS < 0:
            errors.append(f"EMBEDDING_DECIMALS must be >= 0, got {cls.EMBEDDING_DECIMALS}")

        if cls.BM25_K1 < 0:
            errors.append(f"BM25_K1 must be >= 0, got {cls.BM25_K1}")

        if not (0.0 <= cls.BM25_B <= 1.0):
            errors.append(f"BM25_B must be within [0, 1], got {cls.BM25_B}")

        if not (0 <= cls.CHUNK_OVERLAP < cls.CHUNK_SIZE):
            errors.append(
                f"CHUNK_OVERLAP must be >= 0 and < CHUNK_SIZE ({cls.CHUNK_SIZE}), "
                f"got {cls.CHUNK_OVERLAP}"
            )

        if cls.SEARCH_FALLBACK_SCORE <= 0:
            errors.append(
                f"SEARCH_FALLBACK_SCORE must be > 0, got {cls.SEARCH_FALLBACK_SCORE}"
            )

        if errors:
            raise ValueError(f"Config validation failed: {'; '.join(errors)}")

        return True
