"""
Knowledge engine exceptions.
"""


class KnowledgeEngineError(Exception):
    """Base exception for knowledge engine errors."""

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code
        super().__init__(self.message)


class EmbeddingError(KnowledgeEngineError):
    """Raised when the embedding capability fails or is unavailable."""

    def __init__(self, message: str = "Embedding request failed", code: str = "EMBEDDING_FAILED"):
        super().__init__(message, code=code)


class EmbeddingTimeoutError(EmbeddingError):
    """Raised when an embedding request exceeds its time bound."""

    def __init__(self, timeout: float, count: int = 1):
        self.timeout = timeout
        self.count = count
        super().__init__(
            f"Embedding request for {count} text(s) timed out after {timeout:.1f}s",
            code="EMBEDDING_TIMEOUT",
        )


class KnowledgeSearchError(KnowledgeEngineError):
    """Raised when a knowledge search fails for a reason other than embedding."""

    def __init__(self, query: str, message: str):
        self.query = query
        super().__init__(f"Knowledge search failed for {query!r}: {message}", code="SEARCH_FAILED")


class NoRelevantKnowledgeError(KnowledgeEngineError):
    """Raised when a search that must return results finds nothing above the threshold."""

    def __init__(self, query: str, min_score: float):
        self.query = query
        self.min_score = min_score
        super().__init__(
            f"No knowledge items scored >= {min_score:.2f} for query {query!r}",
            code="NO_RELEVANT_KNOWLEDGE",
        )
