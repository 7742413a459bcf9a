"""Embedding generation for vec-memory.

Embeddings come from a local Ollama server (nomic-embed-text, 768 dimensions
by default). The memory service only depends on the EmbeddingProvider
protocol.

Usage:
    >>> from vecmem.embedding import OllamaProvider
    >>> provider = OllamaProvider()
    >>> vector = provider.embed("What is Python?")
"""

from .ollama_provider import EmbeddingError, OllamaProvider
from .provider import EmbeddingProvider

__all__ = [
    "EmbeddingProvider",
    "OllamaProvider",
    "EmbeddingError",
]
