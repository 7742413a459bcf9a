"""Memory service coordinating storage and embedding generation.

MemoryService wraps SQLiteStore with an EmbeddingProvider:
- The memories table is the source of truth; embedding rows are best-effort
- Embedding failures propagate on writes and degrade search to substring match
- Relationship reads and the connected-memories traversal live here too

Usage:
    >>> service = MemoryService.from_settings(VecMemorySettings())
    >>> mem_id = service.add_memory("Paris is the capital of France")
    >>> service.search_memories("capital of France", limit=1)
"""

import logging
from collections import deque
from typing import Optional

from vecmem.config import VecMemorySettings
from vecmem.constants import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_RELATIONSHIP_LIMIT,
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_STRENGTH,
)
from vecmem.embedding import EmbeddingProvider, OllamaProvider
from vecmem.storage import (
    IndexSyncResult,
    Memory,
    Metadata,
    Relationship,
    RelationshipQuery,
    SQLiteStore,
)

logger = logging.getLogger(__name__)


class MemoryService:
    """Memory and relationship operations over a single SQLite store.

    Args:
        store: SQLiteStore instance (owns the connection)
        embedder: EmbeddingProvider used for content and queries
    """

    def __init__(self, store: SQLiteStore, embedder: EmbeddingProvider):
        self._store = store
        self._embedder = embedder

    @classmethod
    def from_settings(
        cls,
        settings: VecMemorySettings,
        embedder: Optional[EmbeddingProvider] = None,
    ) -> "MemoryService":
        """Build a service from settings.

        Args:
            settings: Loaded configuration
            embedder: Existing provider to reuse (default: new OllamaProvider)
        """
        store = SQLiteStore(
            db_path=settings.get_db_path(),
            embedding_dimensions=settings.embedding_dimensions,
            enable_wal=settings.enable_wal,
        )
        if embedder is None:
            embedder = OllamaProvider(
                base_url=settings.ollama_base_url,
                model=settings.ollama_model,
                timeout=settings.ollama_timeout,
                poll_interval=settings.startup_poll_interval,
                max_attempts=settings.startup_max_attempts,
                expected_dimensions=settings.embedding_dimensions,
            )
        return cls(store=store, embedder=embedder)

    @property
    def store(self) -> SQLiteStore:
        return self._store

    def close(self) -> None:
        """Close the embedder and the store."""
        self._embedder.close()
        self._store.close()

    def _log_index_sync(self, action: str, memory_id: str, result: IndexSyncResult) -> None:
        if result.synced or result.skipped:
            return
        logger.warning(f"Embedding {action} failed for memory {memory_id}: {result.error}")

    # =========================================================================
    # Memory Operations
    # =========================================================================

    def add_memory(self, content: str, metadata: Optional[Metadata] = None) -> str:
        """Store a memory and its embedding.

        The embedding is generated first, so a provider failure leaves
        nothing behind.

        Returns:
            New memory ID

        Raises:
            EmbeddingError: If embedding generation fails
            SQLiteStoreError: If the memory row cannot be written
        """
        embedding = self._embedder.embed(content)
        memory_id = self._store.create_memory(content, metadata)
        self._log_index_sync("insert", memory_id, self._store.upsert_embedding(memory_id, embedding))
        logger.debug(f"Added memory {memory_id}")
        return memory_id

    def get_memory(self, memory_id: str) -> Optional[Memory]:
        return self._store.read_memory(memory_id)

    def update_memory(
        self,
        memory_id: str,
        content: Optional[str] = None,
        metadata: Optional[Metadata] = None,
    ) -> bool:
        """Update content and/or replace metadata.

        New content is re-embedded before anything is written.

        Returns:
            False if the memory does not exist

        Raises:
            EmbeddingError: If embedding generation fails
        """
        if self._store.read_memory(memory_id) is None:
            return False
        if content is None and metadata is None:
            return True

        embedding = self._embedder.embed(content) if content is not None else None

        if not self._store.update_memory(memory_id, content=content, metadata=metadata):
            return False

        if embedding is not None:
            self._log_index_sync(
                "update", memory_id, self._store.upsert_embedding(memory_id, embedding)
            )
        return True

    def delete_memory(self, memory_id: str) -> bool:
        """Delete a memory, its relationships and its embedding.

        Returns:
            True if a memory row was removed
        """
        deleted = self._store.delete_memory(memory_id)
        if deleted:
            self._log_index_sync("delete", memory_id, self._store.delete_embedding(memory_id))
        return deleted

    def search_memories(
        self,
        query: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ) -> list[Memory]:
        """Semantic search, degrading to substring match.

        Vector results are those with cosine distance strictly below
        ``1 - threshold``, nearest first. When the vector index is missing or
        the vector path fails for any reason, returns memories whose content
        contains ``query`` verbatim, newest first.
        """
        if self._store.vector_search_available:
            try:
                embedding = self._embedder.embed(query)
                return self._store.nearest_by_embedding(
                    embedding, max_distance=1.0 - threshold, limit=limit
                )
            except Exception as e:
                logger.warning(f"Vector search failed, falling back to text search: {e}")
        else:
            logger.debug("Vector index unavailable, using text search")

        return self._store.search_content(query, limit)

    # =========================================================================
    # Relationship Operations
    # =========================================================================

    def add_relationship(
        self,
        from_memory_id: str,
        to_memory_id: str,
        relationship_type: str,
        strength: float = DEFAULT_STRENGTH,
        metadata: Optional[Metadata] = None,
    ) -> str:
        """Create a directed relationship. Endpoints are not checked."""
        return self._store.create_relationship(
            from_memory_id, to_memory_id, relationship_type, strength, metadata
        )

    def get_relationships(
        self,
        memory_id: Optional[str] = None,
        relationship_type: Optional[str] = None,
        direction: str = "both",
        min_strength: float = 0.0,
        limit: Optional[int] = DEFAULT_RELATIONSHIP_LIMIT,
    ) -> list[Relationship]:
        """Filter relationships, strongest first.

        Raises:
            ValueError: If direction is not 'from', 'to' or 'both'
        """
        query = RelationshipQuery(
            memory_id=memory_id,
            relationship_type=relationship_type,
            direction=direction,
            min_strength=min_strength,
            limit=limit,
        )
        return self._store.query_relationships(query)

    def update_relationship(
        self,
        relationship_id: str,
        strength: Optional[float] = None,
        metadata: Optional[Metadata] = None,
    ) -> bool:
        return self._store.update_relationship(relationship_id, strength=strength, metadata=metadata)

    def delete_relationship(self, relationship_id: str) -> bool:
        return self._store.delete_relationship(relationship_id)

    def get_connected_memories(
        self, memory_id: str, max_depth: int = DEFAULT_MAX_DEPTH
    ) -> list[Memory]:
        """Memories reachable from ``memory_id`` within ``max_depth`` hops.

        Edges are followed in both directions. Results are in breadth-first
        discovery order and never include the start memory. Relationship
        endpoints that no longer resolve to a memory are skipped.
        """
        if max_depth <= 0:
            return []

        visited: set[str] = {memory_id}
        discovered: list[str] = []
        queue: deque[tuple[str, int]] = deque([(memory_id, 0)])

        while queue:
            current, depth = queue.popleft()
            if depth >= max_depth:
                continue

            edges = self._store.query_relationships(
                RelationshipQuery(memory_id=current, direction="both", limit=None)
            )
            for edge in edges:
                neighbor = edge.other_endpoint(current)
                if neighbor in visited:
                    continue
                visited.add(neighbor)
                discovered.append(neighbor)
                queue.append((neighbor, depth + 1))

        connected = []
        for neighbor_id in discovered:
            memory = self._store.read_memory(neighbor_id)
            if memory is not None:
                connected.append(memory)
        return connected
