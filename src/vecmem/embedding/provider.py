"""Embedding provider protocol.

This module defines the EmbeddingProvider protocol the memory service depends
on, so any backend producing fixed-width vectors can be swapped in (tests use
an in-process fake).

API Contract:
    - embed(text: str) -> list[float] - one embedding per call
"""

from typing import Protocol, runtime_checkable

__all__ = ["EmbeddingProvider"]


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol defining the interface for embedding providers.

    This protocol enables structural typing for embedding backends,
    allowing any class implementing these methods to be used as a provider
    without explicit inheritance.

    Required Methods:
        embed: Generate the embedding for a single text
        health_check: Check if the provider is ready
        close: Release resources

    Example:
        >>> class CustomProvider:
        ...     def embed(self, text: str) -> list[float]:
        ...         ...
        ...     def health_check(self) -> bool:
        ...         ...
        ...     def close(self) -> None:
        ...         ...
        >>>
        >>> isinstance(CustomProvider(), EmbeddingProvider)
        True
    """

    def embed(self, text: str) -> list[float]:
        """Generate the embedding for a single text.

        The same method is used for stored content and for search queries.

        Args:
            text: Input text to embed

        Returns:
            Embedding vector (768 floats for nomic-embed-text)

        Raises:
            EmbeddingError: If embedding generation fails
        """
        ...

    def health_check(self) -> bool:
        """Check if the provider is available and ready.

        Returns:
            True if provider is ready, False otherwise.
        """
        ...

    def close(self) -> None:
        """Release resources held by the provider.

        Implementations should be idempotent (safe to call multiple times).
        """
        ...
