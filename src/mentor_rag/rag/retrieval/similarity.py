# retrieval/similarity.py
"""Dense similarity primitive."""

import math
from typing import Optional, Sequence


def cosine(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """
    Cosine similarity between two vectors.

    The dot product runs over the shorter length so embeddings of different
    dimensions still compare. Returns 0.0 when either vector is empty/None or
    has zero magnitude.
    """
    if not a or not b:
        return 0.0

    dot_product = sum(x * y for x, y in zip(a, b))
    magnitude_a = math.sqrt(sum(x * x for x in a))
    magnitude_b = math.sqrt(sum(y * y for y in b))
    if magnitude_a == 0.0 or magnitude_b == 0.0:
        return 0.0

    # Clamp to [-1, 1] (handles floating point errors)
    return max(-1.0, min(1.0, dot_product / (magnitude_a * magnitude_b)))
