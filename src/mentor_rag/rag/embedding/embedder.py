# embedding/embedder.py
"""
Gemini API embedding adapter with batching, retry, and rate limiting.
"""

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
import time
from typing import List, Dict, Optional, Protocol
from dataclasses import dataclass
import logging
from threading import Lock

logger = logging.getLogger(__name__)


class EmbeddingUnavailableError(Exception):
    """Raised when the embedding service cannot produce a vector."""


class EmbeddingProvider(Protocol):
    """Anything that turns a string into a vector."""

    def embed(self, text: str, task_type: str = "retrieval_query") -> List[float]:
        ...


@dataclass
class EmbeddingResult:
    """Result of an embedding operation."""
    vector: List[float]
    token_count: int
    model: str


class RateLimiter:
    """Simple token bucket rate limiter."""

    def __init__(self, calls_per_minute: int = 60):
        self.calls_per_minute = calls_per_minute
        self.interval = 60.0 / calls_per_minute
        self.last_call = 0.0
        self.lock = Lock()

    def wait(self):
        """Wait until we can make the next call."""
        with self.lock:
            now = time.time()
            time_since_last = now - self.last_call
            if time_since_last < self.interval:
                sleep_time = self.interval - time_since_last
                logger.debug(f"Rate limiting: sleeping {sleep_time:.2f}s")
                time.sleep(sleep_time)
            self.last_call = time.time()


def _is_invalid_request(error: Exception) -> bool:
    """HTTP 400 class errors (bad argument, bad model name) never succeed on retry."""
    return isinstance(error, google_exceptions.BadRequest)


class GeminiEmbedderAdapter:
    """
    Adapter for Gemini embedding API with production features.

    Features:
    - Per-call timeout
    - Automatic retry with exponential backoff
    - Batch embedding for ingestion
    - Rate limiting
    - Usage tracking for quota management
    """

    def __init__(
        self,
        api_key: str,
        model: str = "models/text-embedding-004",
        timeout: float = 10.0,
        max_retries: int = 5,
        retry_base_delay: float = 1.0,
        batch_size: int = 64,
        calls_per_minute: int = 120,
    ):
        genai.configure(api_key=api_key)
        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.batch_size = batch_size

        # Rate limiter
        self.rate_limiter = RateLimiter(calls_per_minute)

        # Usage tracking
        self.call_count = 0
        self.token_count = 0
        self.error_count = 0

    def _call_with_retry(self, content, task_type: str):
        """
        Call ``genai.embed_content`` under the retry policy.

        Waits ``retry_base_delay * 2**attempt`` between attempts. Invalid
        requests are not retried.

        Raises:
            EmbeddingUnavailableError: If every attempt failed
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                self.rate_limiter.wait()

                response = genai.embed_content(
                    model=self.model,
                    content=content,
                    task_type=task_type,
                    request_options={"timeout": self.timeout},
                )
                self.call_count += 1
                return response["embedding"]

            except Exception as e:
                last_error = e
                self.error_count += 1

                if _is_invalid_request(e):
                    logger.error(f"Invalid embedding request: {e}")
                    break

                if attempt < self.max_retries - 1:
                    wait_time = self.retry_base_delay * (2 ** attempt)
                    logger.warning(
                        f"Embedding call failed (attempt {attempt + 1}/{self.max_retries}): "
                        f"{e}. Retrying in {wait_time:.1f}s"
                    )
                    time.sleep(wait_time)

        logger.error(f"Embedding unavailable after {self.max_retries} attempts: {last_error}")
        raise EmbeddingUnavailableError(str(last_error)) from last_error

    def embed(self, text: str, task_type: str = "retrieval_query") -> List[float]:
        """
        Embed a single text.

        Uses "retrieval_query" by default for asymmetric search; pass
        "retrieval_document" when embedding corpus text.

        Raises:
            EmbeddingUnavailableError: If the service keeps failing
        """
        vector = self._call_with_retry(text, task_type)
        self.token_count += len(text.split())  # Approximate
        return list(vector)

    def embed_batch(self, texts: List[str]) -> List[EmbeddingResult]:
        """
        Batch embed document texts via Gemini API with retry.

        Args:
            texts: List of texts to embed

        Returns:
            List of EmbeddingResult objects, in input order

        Raises:
            EmbeddingUnavailableError: If any batch keeps failing
        """
        results = []

        for i in range(0, len(texts), self.batch_size):
            batch = texts[i:i + self.batch_size]
            embeddings = self._call_with_retry(batch, "retrieval_document")

            # Handle single vs batch response
            if embeddings and not isinstance(embeddings[0], list):
                embeddings = [embeddings]

            for text, embedding in zip(batch, embeddings):
                token_count = len(text.split())  # Approximate
                self.token_count += token_count
                results.append(EmbeddingResult(
                    vector=list(embedding),
                    token_count=token_count,
                    model=self.model,
                ))

            logger.debug(f"Embedded batch of {len(batch)} texts")

        return results

    def get_usage(self) -> Dict:
        """Get usage statistics."""
        return {
            "call_count": self.call_count,
            "token_count": self.token_count,
            "error_count": self.error_count,
            "model": self.model,
        }

    def reset_usage(self):
        """Reset usage counters (e.g., for daily reset)."""
        self.call_count = 0
        self.token_count = 0
        self.error_count = 0
