"""Tests for configuration and logging utilities."""

import json
import logging

import pytest
from pydantic import ValidationError

from knowledge_engine import (
    EmbeddingGateway,
    EngineConfig,
    FakeEmbedding,
    HashingEmbedding,
    OpenAIEmbedding,
    load_config,
)
from knowledge_engine.utils.config import ChunkingConfig
from knowledge_engine.utils.logging import get_logger, set_log_level


class TestEngineConfig:
    """Tests for EngineConfig."""

    def test_defaults(self):
        """Test default thresholds."""
        config = EngineConfig()

        assert config.embedding.provider == "openai"
        assert config.embedding.timeout == 30.0
        assert config.relevance.max_results == 5
        assert config.relevance.min_relevance_score == 0.3
        assert config.relevance.weights.semantic == 0.8
        assert config.deduplication.near_duplicate_threshold == 0.7
        assert config.analytics.stale_after_days == 90

    def test_from_yaml(self, tmp_path):
        """Test loading a YAML file."""
        path = tmp_path / "engine.yaml"
        path.write_text(
            "embedding:\n"
            "  provider: hashing\n"
            "  dimension: 128\n"
            "relevance:\n"
            "  max_results: 3\n"
        )

        config = EngineConfig.from_file(path)

        assert config.embedding.provider == "hashing"
        assert config.embedding.dimension == 128
        assert config.relevance.max_results == 3
        assert config.chunking.max_chunk_size == 2000

    def test_empty_yaml(self, tmp_path):
        """Test an empty YAML file gives defaults."""
        path = tmp_path / "engine.yml"
        path.write_text("")

        assert EngineConfig.from_file(path) == EngineConfig()

    def test_from_json(self, tmp_path):
        """Test loading a JSON file."""
        path = tmp_path / "engine.json"
        path.write_text(json.dumps({"analytics": {"stale_after_days": 30}}))

        config = EngineConfig.from_file(path)

        assert config.analytics.stale_after_days == 30

    def test_unsupported_format(self, tmp_path):
        """Test unknown file suffixes are rejected."""
        path = tmp_path / "engine.toml"
        path.write_text("")

        with pytest.raises(ValueError):
            EngineConfig.from_file(path)

    def test_load_missing_file(self, tmp_path):
        """Test a missing file gives defaults."""
        assert load_config(tmp_path / "missing.yaml") == EngineConfig()

    def test_invalid_values(self):
        """Test out-of-range settings are rejected."""
        with pytest.raises(ValidationError):
            EngineConfig(relevance={"min_relevance_score": 1.5})
        with pytest.raises(ValidationError):
            EngineConfig(embedding={"timeout": 0})
        with pytest.raises(ValidationError):
            EngineConfig(embedding={"provider": "unknown"})
        with pytest.raises(ValidationError):
            ChunkingConfig(min_chunk_size=500, max_chunk_size=100)

    def test_create_embedding(self):
        """Test each provider setting builds the matching embedding."""
        assert isinstance(EngineConfig().create_embedding(), OpenAIEmbedding)
        assert isinstance(
            EngineConfig(embedding={"provider": "hashing"}).create_embedding(), HashingEmbedding
        )
        fake = EngineConfig(embedding={"provider": "fake", "dimension": 32}).create_embedding()
        assert isinstance(fake, FakeEmbedding)
        assert fake.dimension == 32

    def test_openai_settings(self):
        """Test OpenAI settings are passed through without creating a client."""
        config = EngineConfig(embedding={"model": "text-embedding-3-large", "batch_size": 10})

        embedding = config.create_embedding()

        assert embedding.model == "text-embedding-3-large"
        assert embedding.dimension == 3072
        assert embedding.batch_size == 10

    def test_create_gateway(self):
        """Test the gateway gets the configured timeout."""
        config = EngineConfig(embedding={"provider": "fake", "timeout": 2.5})

        gateway = config.create_gateway()

        assert isinstance(gateway, EmbeddingGateway)
        assert gateway.timeout == 2.5

    def test_create_chunker(self):
        """Test chunker bounds come from the configuration."""
        chunker = EngineConfig(chunking={"min_chunk_size": 10, "max_chunk_size": 80}).create_chunker()

        assert chunker.min_chunk_size == 10
        assert chunker.max_chunk_size == 80


class TestLogging:
    """Tests for logging utilities."""

    def test_get_logger(self):
        """Test a handler is attached once."""
        logger = get_logger("knowledge_engine.test_logging")
        again = get_logger("knowledge_engine.test_logging")

        assert logger is again
        assert len(logger.handlers) == 1

    def test_set_log_level(self):
        """Test the package log level can be set by name."""
        package_logger = logging.getLogger("knowledge_engine")
        previous = package_logger.level
        try:
            set_log_level("debug")
            assert package_logger.level == logging.DEBUG
            set_log_level(logging.WARNING)
            assert package_logger.level == logging.WARNING
        finally:
            package_logger.setLevel(previous)

    def test_unknown_log_level(self):
        """Test unknown level names are rejected."""
        with pytest.raises(ValueError):
            set_log_level("chatty")
