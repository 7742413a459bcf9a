"""Pytest configuration and shared fixtures for vec-memory tests.

This module provides reusable fixtures for testing:
- env_setup: (autouse) Clears configuration variables that would leak in
- mock_embedder: Deterministic bag-of-words embeddings without Ollama
- failing_embedder: Embedder whose every call raises EmbeddingError
- store / service: SQLite store and MemoryService on a temporary database

Usage:
    def test_something(service):
        memory_id = service.add_memory("Paris is the capital of France")
"""

import math
import os
import re
from collections.abc import Generator
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from vecmem.embedding import EmbeddingError
from vecmem.service import MemoryService
from vecmem.storage import SQLiteStore

# Configure pytest-asyncio
pytest_plugins = ["pytest_asyncio"]

DIMENSIONS = 768

CONFIG_ENV_VARS = (
    "MEMORY_DB_PATH",
    "OLLAMA_BASE_URL",
    "OLLAMA_MODEL",
    "VEC_MEMORY_DB_PATH",
    "VEC_MEMORY_OLLAMA_BASE_URL",
    "VEC_MEMORY_OLLAMA_MODEL",
    "VEC_MEMORY_TRANSPORT",
    "VEC_MEMORY_PORT",
    "VEC_MEMORY_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def env_setup() -> Generator[None, None, None]:
    """Remove configuration variables so tests see defaults.

    Restores the original values afterwards.
    """
    original = {k: os.environ.get(k) for k in CONFIG_ENV_VARS}
    for key in CONFIG_ENV_VARS:
        os.environ.pop(key, None)
    yield
    for key, value in original.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


def one_hot(index: int, dimensions: int = DIMENSIONS) -> list[float]:
    """Unit vector along a single axis."""
    vector = [0.0] * dimensions
    vector[index] = 1.0
    return vector


class BagOfWordsEmbedding:
    """Deterministic embedding: one axis per distinct lowercase word.

    Vectors are L2-normalized, so cosine similarity is the shared-word
    overlap. Axes are assigned on first sight, so distinct words never
    collide within one instance.
    """

    def __init__(self, dimensions: int = DIMENSIONS):
        self.dimensions = dimensions
        self._vocabulary: dict[str, int] = {}

    def __call__(self, text: str) -> list[float]:
        vector = [0.0] * self.dimensions
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            index = self._vocabulary.setdefault(word, len(self._vocabulary) % self.dimensions)
            vector[index] += 1.0
        norm = math.sqrt(sum(x * x for x in vector))
        if norm == 0:
            raise EmbeddingError("Text has no words to embed")
        return [x / norm for x in vector]


@pytest.fixture
def mock_embedder() -> MagicMock:
    """Create a mock embedding provider with bag-of-words embeddings.

    The mock implements the EmbeddingProvider protocol:
    - embed(text: str) -> list[float]
    - health_check() -> bool
    - close() -> None

    Returns:
        MagicMock: A mock embedder implementing EmbeddingProvider protocol
    """
    embedder = MagicMock()
    embedder.embed = MagicMock(side_effect=BagOfWordsEmbedding())
    embedder.health_check = MagicMock(return_value=True)
    embedder.close = MagicMock()
    return embedder


@pytest.fixture
def failing_embedder() -> MagicMock:
    """Create a mock embedding provider that is always down."""
    embedder = MagicMock()
    embedder.embed = MagicMock(side_effect=EmbeddingError("Ollama API request failed"))
    embedder.health_check = MagicMock(return_value=False)
    embedder.close = MagicMock()
    return embedder


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path for a fresh database file."""
    return tmp_path / "memories.db"


@pytest.fixture
def store(db_path: Path) -> Generator[SQLiteStore, None, None]:
    """Provide a SQLiteStore on a temporary file with sqlite-vec loaded."""
    s = SQLiteStore(db_path)
    yield s
    s.close()


@pytest.fixture
def service(store: SQLiteStore, mock_embedder: MagicMock) -> MemoryService:
    """Provide a MemoryService backed by the temporary store."""
    return MemoryService(store=store, embedder=mock_embedder)
