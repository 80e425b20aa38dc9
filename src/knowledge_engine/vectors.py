"""Vector similarity helpers."""

import math
from typing import Optional

from .items import SimilarityMatch


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Calculate cosine similarity between two vectors."""
    if len(a) != len(b):
        raise ValueError("Vectors must have the same dimension")

    dot_product = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return dot_product / (norm_a * norm_b)


def top_k_matches(
    query_embedding: list[float],
    embeddings: list[list[float]],
    k: Optional[int] = None,
    min_score: float = -1.0,
    ids: Optional[list[str]] = None,
) -> list[SimilarityMatch]:
    """Rank candidate vectors by cosine similarity to a query vector.

    Args:
        query_embedding: Query vector
        embeddings: Candidate vectors
        k: Number of matches to return (all when None)
        min_score: Matches below this score are dropped
        ids: Optional ids aligned with ``embeddings``

    Returns:
        Matches sorted by descending score; ties keep candidate order
    """
    if ids is not None and len(ids) != len(embeddings):
        raise ValueError("Number of ids must match number of embeddings")

    matches = []
    for index, embedding in enumerate(embeddings):
        score = cosine_similarity(query_embedding, embedding)
        if score < min_score:
            continue
        matches.append(SimilarityMatch(
            index=index,
            score=score,
            id=ids[index] if ids is not None else None,
        ))

    # list.sort is stable
    matches.sort(key=lambda m: m.score, reverse=True)

    if k is not None:
        return matches[:k]
    return matches
