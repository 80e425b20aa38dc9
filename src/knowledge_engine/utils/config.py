"""
Configuration utilities.
"""

import json
from pathlib import Path
from typing import Literal, Optional

import yaml

from pydantic import BaseModel, Field, model_validator

from ..analytics import HealthWeights
from ..base import BaseEmbedding
from ..chunking import ContentChunker
from ..embeddings import FakeEmbedding, HashingEmbedding, LocalEmbedding, OpenAIEmbedding
from ..gateway import EmbeddingGateway
from ..relevance import RelevanceEngine, ScoringWeights
from ..tags import TagExtractor


class Config(BaseModel):
    """Base configuration class."""

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls(**(data or {}))

    @classmethod
    def from_file(cls, path: str | Path) -> "Config":
        """Load configuration from file (YAML or JSON)."""
        path = Path(path)

        if path.suffix in (".yaml", ".yml"):
            return cls.from_yaml(path)
        elif path.suffix == ".json":
            with open(path) as f:
                data = json.load(f)
            return cls(**data)
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")


class ChunkingConfig(BaseModel):
    """Chunker and tag extractor settings."""
    min_chunk_size: int = Field(default=50, ge=1)
    max_chunk_size: int = Field(default=2000, ge=2)
    default_title: str = "General Information"
    max_tags: int = Field(default=10, ge=1)

    @model_validator(mode="after")
    def _check_bounds(self) -> "ChunkingConfig":
        if self.min_chunk_size >= self.max_chunk_size:
            raise ValueError("min_chunk_size must be less than max_chunk_size")
        return self


class EmbeddingConfig(BaseModel):
    """Embedding provider settings."""
    provider: Literal["openai", "local", "hashing", "fake"] = "openai"
    model: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    device: str | None = None
    timeout: float = Field(default=30.0, gt=0)
    batch_size: int = Field(default=100, ge=1)

    # Only used by the hashing and fake providers
    dimension: int = Field(default=256, ge=1)


class RelevanceConfig(BaseModel):
    """Relevance scoring and search defaults."""
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    max_results: int = Field(default=5, ge=1)
    min_relevance_score: float = Field(default=0.3, ge=0.0, le=1.0)
    similar_content_min_score: float = Field(default=0.6, ge=0.0, le=1.0)


class DeduplicationConfig(BaseModel):
    """Near-duplicate and clustering thresholds."""
    near_duplicate_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    cluster_threshold: float = Field(default=0.6, ge=0.0, le=1.0)


class AnalyticsConfig(BaseModel):
    """Health analytics settings."""
    stale_after_days: int = Field(default=90, ge=1)
    health_weights: HealthWeights = Field(default_factory=HealthWeights)


class EngineConfig(Config):
    """Configuration for the knowledge engine."""
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    relevance: RelevanceConfig = Field(default_factory=RelevanceConfig)
    deduplication: DeduplicationConfig = Field(default_factory=DeduplicationConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    log_level: str | None = None

    def create_embedding(self) -> BaseEmbedding:
        """Build the configured embedding provider."""
        settings = self.embedding

        if settings.provider == "openai":
            return OpenAIEmbedding(
                model=settings.model or "text-embedding-3-small",
                api_key=settings.api_key,
                base_url=settings.base_url,
                batch_size=settings.batch_size,
                timeout=settings.timeout,
            )
        elif settings.provider == "local":
            return LocalEmbedding(
                model_name=settings.model or "all-MiniLM-L6-v2",
                device=settings.device,
            )
        elif settings.provider == "hashing":
            return HashingEmbedding(dimension=settings.dimension)
        else:
            return FakeEmbedding(dimension=settings.dimension)

    def create_gateway(self, embedding: Optional[BaseEmbedding] = None) -> EmbeddingGateway:
        return EmbeddingGateway(embedding or self.create_embedding(), timeout=self.embedding.timeout)

    def create_chunker(self) -> ContentChunker:
        return ContentChunker(
            min_chunk_size=self.chunking.min_chunk_size,
            max_chunk_size=self.chunking.max_chunk_size,
            tag_extractor=TagExtractor(max_tags=self.chunking.max_tags),
            default_title=self.chunking.default_title,
        )

    def create_engine(self, gateway: EmbeddingGateway) -> RelevanceEngine:
        return RelevanceEngine(
            gateway,
            weights=self.relevance.weights,
            similar_content_min_score=self.relevance.similar_content_min_score,
        )


def load_config(path: str | Path = "knowledge_engine.yaml") -> EngineConfig:
    """
    Load engine configuration from file.

    Args:
        path: Path to config file

    Returns:
        EngineConfig instance (defaults when the file does not exist)
    """
    path = Path(path)

    if not path.exists():
        return EngineConfig()

    return EngineConfig.from_file(path)
