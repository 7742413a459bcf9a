"""Tests for MemoryService.

This module tests the service layer coordinating storage and embeddings:
- Write path: embedding first, best-effort index sync
- Search path: cosine search with substring fallback
- Relationship passthrough and connected-memory traversal
"""

import sqlite3
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from vecmem.config import VecMemorySettings
from vecmem.embedding import EmbeddingError, OllamaProvider
from vecmem.service import MemoryService
from vecmem.storage import SQLiteStore


@pytest.fixture
def plain_service(db_path: Path, mock_embedder: MagicMock) -> MemoryService:
    """MemoryService on a store without the vector index."""
    with patch(
        "vecmem.storage.sqlite_store.sqlite_vec.load",
        side_effect=sqlite3.OperationalError("no such extension"),
    ):
        store = SQLiteStore(db_path)
    service = MemoryService(store=store, embedder=mock_embedder)
    yield service
    store.close()


# =============================================================================
# Write Path
# =============================================================================


class TestAddMemory:
    """Test add_memory."""

    def test_round_trip(self, service: MemoryService) -> None:
        """Test get(add(C, M)) returns C and M."""
        memory_id = service.add_memory("Remember the milk", {"list": "groceries"})

        memory = service.get_memory(memory_id)

        assert memory is not None
        assert memory.content == "Remember the milk"
        assert memory.metadata == {"list": "groceries"}

    def test_embedding_written(self, service: MemoryService, mock_embedder: MagicMock) -> None:
        """Test the content embedding is stored with the memory."""
        memory_id = service.add_memory("Remember the milk")

        mock_embedder.embed.assert_called_once_with("Remember the milk")
        assert service.store.get_embedding(memory_id) is not None

    def test_provider_failure_propagates(
        self, store: SQLiteStore, failing_embedder: MagicMock
    ) -> None:
        """Test embedding failure raises and writes nothing."""
        service = MemoryService(store=store, embedder=failing_embedder)

        with pytest.raises(EmbeddingError):
            service.add_memory("lost")

        assert store.count_memories() == 0

    def test_index_failure_is_swallowed(self, service: MemoryService) -> None:
        """Test a failed embedding write still keeps the memory."""
        with patch.object(service.store, "_serialize_embedding", side_effect=ValueError("bad")):
            memory_id = service.add_memory("kept anyway")

        assert service.get_memory(memory_id) is not None
        assert service.store.get_embedding(memory_id) is None

    def test_without_vector_index(self, plain_service: MemoryService) -> None:
        """Test memories are stored when the index is unavailable."""
        memory_id = plain_service.add_memory("plain")

        assert plain_service.get_memory(memory_id) is not None


class TestUpdateMemory:
    """Test update_memory."""

    def test_missing_memory(self, service: MemoryService, mock_embedder: MagicMock) -> None:
        """Test unknown IDs return False without embedding."""
        assert service.update_memory("unknown", content="x") is False
        assert service.update_memory("unknown") is False
        assert mock_embedder.embed.call_count == 0

    def test_missing_memory_with_provider_down(
        self, store: SQLiteStore, failing_embedder: MagicMock
    ) -> None:
        """Test unknown IDs return False even when the provider is unreachable."""
        service = MemoryService(store=store, embedder=failing_embedder)

        assert service.update_memory("unknown", content="x") is False
        failing_embedder.embed.assert_not_called()

    def test_no_fields_is_noop(self, service: MemoryService, mock_embedder: MagicMock) -> None:
        """Test no fields returns True without re-embedding."""
        memory_id = service.add_memory("static")
        mock_embedder.embed.reset_mock()

        assert service.update_memory(memory_id) is True
        mock_embedder.embed.assert_not_called()

    def test_content_is_reembedded(self, service: MemoryService) -> None:
        """Test new content moves the memory in vector space."""
        memory_id = service.add_memory("cats purr")

        assert service.update_memory(memory_id, content="dogs bark") is True

        assert [m.id for m in service.search_memories("dogs bark", threshold=0.9)] == [memory_id]
        assert service.search_memories("cats purr", threshold=0.9) == []

    def test_content_update_creates_missing_embedding(self, service: MemoryService) -> None:
        """Test a memory without an embedding gets one on content update."""
        memory_id = service.store.create_memory("no vector yet")

        service.update_memory(memory_id, content="now with vector")

        assert service.store.get_embedding(memory_id) is not None

    def test_metadata_only_skips_embedding(
        self, service: MemoryService, mock_embedder: MagicMock
    ) -> None:
        """Test metadata updates do not call the provider."""
        memory_id = service.add_memory("content", {"v": 1})
        mock_embedder.embed.reset_mock()

        service.update_memory(memory_id, metadata={"v": 2})

        mock_embedder.embed.assert_not_called()
        memory = service.get_memory(memory_id)
        assert memory is not None
        assert memory.metadata == {"v": 2}

    def test_provider_failure_leaves_row_unchanged(
        self, service: MemoryService, mock_embedder: MagicMock
    ) -> None:
        """Test an embedding failure propagates before any write."""
        memory_id = service.add_memory("original")
        mock_embedder.embed.side_effect = EmbeddingError("down")

        with pytest.raises(EmbeddingError):
            service.update_memory(memory_id, content="changed")

        memory = service.get_memory(memory_id)
        assert memory is not None
        assert memory.content == "original"


class TestDeleteMemory:
    """Test delete_memory."""

    def test_delete_removes_embedding_and_relationships(self, service: MemoryService) -> None:
        """Test cascade to relationships and the embedding row."""
        a = service.add_memory("alpha")
        b = service.add_memory("beta")
        service.add_relationship(a, b, "relates_to")
        service.add_relationship(b, a, "relates_to")

        assert service.delete_memory(a) is True

        assert service.get_memory(a) is None
        assert service.store.get_embedding(a) is None
        assert service.get_relationships(memory_id=a) == []
        assert service.get_relationships(memory_id=b) == []

    def test_delete_unknown(self, service: MemoryService) -> None:
        """Test unknown IDs return False."""
        assert service.delete_memory("unknown") is False


# =============================================================================
# Search Path
# =============================================================================


class TestSearchMemories:
    """Test search_memories."""

    def test_capital_of_france(self, service: MemoryService) -> None:
        """Test the nearest memory wins."""
        paris = service.add_memory("Paris is the capital of France")
        service.add_memory("Tokyo is the capital of Japan")

        results = service.search_memories("capital of France", limit=1)

        assert [m.id for m in results] == [paris]

    def test_threshold_excludes_weak_matches(self, service: MemoryService) -> None:
        """Test similarity must exceed the threshold."""
        paris = service.add_memory("Paris is the capital of France")
        service.add_memory("Tokyo is the capital of Japan")

        # 3 of 3 query words vs 2 of 3: cosine 0.71 and 0.47
        results = service.search_memories("capital of France", threshold=0.5)

        assert [m.id for m in results] == [paris]

    def test_results_nearest_first(self, service: MemoryService) -> None:
        """Test results are ordered by similarity."""
        partial = service.add_memory("red apples")
        exact = service.add_memory("red apples and green pears")

        results = service.search_memories("red apples and green pears", threshold=0.1)

        assert [m.id for m in results] == [exact, partial]

    def test_fallback_on_provider_failure(
        self, service: MemoryService, mock_embedder: MagicMock
    ) -> None:
        """Test substring fallback when the embedding call fails."""
        ids = [service.add_memory(f"entry {i}: apples") for i in range(3)]
        service.add_memory("entry: pears")
        mock_embedder.embed.side_effect = EmbeddingError("down")

        results = service.search_memories("apples", limit=2)

        assert [m.id for m in results] == [ids[2], ids[1]]

    def test_fallback_without_vector_index(
        self, plain_service: MemoryService, mock_embedder: MagicMock
    ) -> None:
        """Test the vector path is skipped entirely without an index."""
        memory_id = plain_service.add_memory("Paris is the capital of France")
        mock_embedder.embed.reset_mock()

        results = plain_service.search_memories("capital of France")

        assert [m.id for m in results] == [memory_id]
        mock_embedder.embed.assert_not_called()

    def test_fallback_on_query_failure(self, service: MemoryService) -> None:
        """Test a failing vector query falls back to substring search."""
        memory_id = service.add_memory("searchable text")

        with patch.object(
            service.store, "nearest_by_embedding", side_effect=sqlite3.OperationalError("boom")
        ):
            results = service.search_memories("searchable")

        assert [m.id for m in results] == [memory_id]


# =============================================================================
# Relationships and Traversal
# =============================================================================


class TestRelationships:
    """Test relationship passthrough."""

    def test_min_strength_filter(self, service: MemoryService) -> None:
        """Test only edges at or above min_strength are returned."""
        a, b, c = (service.add_memory(x) for x in ("alpha", "beta", "gamma"))
        service.add_relationship(a, b, "weak", strength=0.3)
        strong = service.add_relationship(a, c, "strong", strength=0.9)

        results = service.get_relationships(memory_id=a, min_strength=0.5)

        assert [r.id for r in results] == [strong]

    def test_ordering(self, service: MemoryService) -> None:
        """Test non-increasing strength, ties newest first."""
        a, b = service.add_memory("alpha"), service.add_memory("beta")
        for strength in (0.2, 0.9, 0.5, 0.9):
            service.add_relationship(a, b, "t", strength=strength)

        results = service.get_relationships(memory_id=a)

        strengths = [r.strength for r in results]
        assert strengths == sorted(strengths, reverse=True)
        assert results[0].created_at >= results[1].created_at

    def test_invalid_direction(self, service: MemoryService) -> None:
        """Test an unknown direction raises ValueError."""
        with pytest.raises(ValueError):
            service.get_relationships(memory_id="x", direction="up")

    def test_update_and_delete(self, service: MemoryService) -> None:
        """Test update and delete report existence."""
        rel_id = service.add_relationship("a", "b", "t", strength=0.1)

        assert service.update_relationship(rel_id, strength=0.4) is True
        assert service.get_relationships()[0].strength == pytest.approx(0.4)
        assert service.delete_relationship(rel_id) is True
        assert service.update_relationship(rel_id, strength=0.5) is False
        assert service.delete_relationship(rel_id) is False


class TestConnectedMemories:
    """Test get_connected_memories traversal."""

    @pytest.fixture
    def chain(self, service: MemoryService) -> list[str]:
        """Build A -> B -> C -> D."""
        ids = [service.add_memory(name) for name in ("node A", "node B", "node C", "node D")]
        for left, right in zip(ids, ids[1:]):
            service.add_relationship(left, right, "next")
        return ids

    def test_depth_bounds(self, service: MemoryService, chain: list[str]) -> None:
        """Test depth 1, 2 and beyond the chain length."""
        a, b, c, d = chain

        assert [m.id for m in service.get_connected_memories(a, max_depth=1)] == [b]
        assert [m.id for m in service.get_connected_memories(a, max_depth=2)] == [b, c]
        assert [m.id for m in service.get_connected_memories(a, max_depth=10)] == [b, c, d]

    def test_edges_followed_backwards(self, service: MemoryService, chain: list[str]) -> None:
        """Test traversal ignores edge direction."""
        a, b, c, d = chain

        assert {m.id for m in service.get_connected_memories(d, max_depth=2)} == {c, b}

    def test_start_never_included(self, service: MemoryService) -> None:
        """Test cycles do not return the start memory."""
        a, b = service.add_memory("loop a"), service.add_memory("loop b")
        service.add_relationship(a, b, "t")
        service.add_relationship(b, a, "t")
        service.add_relationship(a, a, "self")

        assert [m.id for m in service.get_connected_memories(a, max_depth=5)] == [b]

    def test_zero_depth(self, service: MemoryService, chain: list[str]) -> None:
        """Test max_depth 0 returns nothing."""
        assert service.get_connected_memories(chain[0], max_depth=0) == []

    def test_dangling_endpoints_skipped(self, service: MemoryService) -> None:
        """Test relationships to missing memories are not returned."""
        a = service.add_memory("real")
        b = service.add_memory("also real")
        service.add_relationship(a, "ghost", "t")
        service.add_relationship(a, b, "t")

        assert [m.id for m in service.get_connected_memories(a)] == [b]


class TestFromSettings:
    """Test MemoryService.from_settings."""

    def test_builds_store_and_provider(self, db_path: Path) -> None:
        """Test settings flow into the store and the provider."""
        settings = VecMemorySettings(db_path=db_path, ollama_model="custom-embed")

        service = MemoryService.from_settings(settings)
        try:
            assert service.store.db_path == db_path.resolve()
            assert isinstance(service._embedder, OllamaProvider)
            assert service._embedder.model == "custom-embed"
            assert service._embedder.expected_dimensions == 768
        finally:
            service.close()
