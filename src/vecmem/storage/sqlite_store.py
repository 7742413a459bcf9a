"""SQLite storage layer for vec-memory.

This module provides persistent storage for:
- Memory content, metadata and timestamps (``memories``)
- Typed, weighted, directed relationships between memories (``relationships``)
- Vector embeddings (sqlite-vec ``vec0``) for cosine nearest-neighbor search

The vector index is optional. If sqlite-vec cannot be loaded, or the vec0
table cannot be created, the store runs without it and reports
``vector_search_available = False``. Writes to the index are best-effort and
return an IndexSyncResult instead of raising.

The schema matches the vec-memory-mcp data file layout, so existing databases
open unchanged.

Example:
    >>> store = SQLiteStore(Path("~/.vec-memory-mcp.db").expanduser())
    >>> mem_id = store.create_memory("Python is great", {"type": "fact"})
    >>> store.upsert_embedding(mem_id, [0.1] * 768)
    >>> results = store.nearest_by_embedding([0.1] * 768, max_distance=0.5, limit=5)
"""

import json
import logging
import sqlite3
import struct
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

import sqlite_vec

from vecmem.constants import BUSY_TIMEOUT_MS, DEFAULT_DB_PATH, EMBEDDING_DIMENSIONS
from vecmem.storage.types import IndexSyncResult, Memory, Metadata, Relationship, RelationshipQuery

# MCP servers must never write to stdout (corrupts JSON-RPC)
logger = logging.getLogger(__name__)

_MEMORY_COLUMNS = "id, content, metadata, created_at, updated_at"
_RELATIONSHIP_COLUMNS = (
    "id, from_memory_id, to_memory_id, relationship_type, strength, metadata, created_at"
)


class SQLiteStoreError(Exception):
    """Custom exception for SQLite storage errors."""

    pass


class VectorIndexUnavailableError(SQLiteStoreError):
    """Raised when a vector query is issued against a store without sqlite-vec."""

    pass


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime for storage.

    Microseconds are always written so stored values sort lexicographically.
    """
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: Any) -> datetime:
    """Parse a stored timestamp.

    Accepts ISO-8601 text (with or without a trailing ``Z``) and SQLite's
    ``CURRENT_TIMESTAMP`` format. Naive values are treated as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_metadata(raw: Optional[str]) -> Metadata:
    """Parse a metadata column, defaulting to an empty mapping."""
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return {}
    return value if isinstance(value, dict) else {}


class SQLiteStore:
    """SQLite storage for memories, relationships and embeddings.

    Args:
        db_path: Path to database file. Defaults to ~/.vec-memory-mcp.db
        embedding_dimensions: Width of the vec0 embedding column
        enable_wal: Use write-ahead logging (readers never block on a writer)

    Attributes:
        db_path: Path to database file
        embedding_dimensions: Fixed embedding width
        vector_search_available: Whether the vector index initialized
    """

    def __init__(
        self,
        db_path: Optional[Path] = None,
        embedding_dimensions: int = EMBEDDING_DIMENSIONS,
        enable_wal: bool = True,
    ):
        """Initialize SQLite storage.

        Raises:
            SQLiteStoreError: If the primary tables cannot be initialized
        """
        self.db_path = db_path or DEFAULT_DB_PATH
        self.embedding_dimensions = embedding_dimensions
        self.vector_search_available = False

        try:
            if str(self.db_path) != ":memory:":
                self.db_path.parent.mkdir(parents=True, exist_ok=True)

            self._conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
            )
            if enable_wal:
                self._conn.execute("PRAGMA journal_mode = WAL")
            self._conn.execute(f"PRAGMA busy_timeout = {BUSY_TIMEOUT_MS}")
            self._conn.row_factory = sqlite3.Row

            self._init_schema()

        except Exception as e:
            raise SQLiteStoreError(f"Failed to initialize SQLite storage: {e}") from e

        self.vector_search_available = self._init_vector_index()
        logger.info(
            f"SQLiteStore ready at {self.db_path} "
            f"(vector search {'enabled' if self.vector_search_available else 'disabled'})"
        )

    def _init_schema(self) -> None:
        """Initialize the primary tables and their indexes.

        Foreign keys are declared for data file compatibility but not
        enforced: relationships may be created before their endpoints exist.
        delete_memory performs the cascade itself.
        """
        cursor = self._conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS memories (
                id TEXT PRIMARY KEY,
                content TEXT NOT NULL,
                metadata TEXT DEFAULT '{}',
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS relationships (
                id TEXT PRIMARY KEY,
                from_memory_id TEXT NOT NULL,
                to_memory_id TEXT NOT NULL,
                relationship_type TEXT NOT NULL,
                strength REAL DEFAULT 1.0,
                metadata TEXT DEFAULT '{}',
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (from_memory_id) REFERENCES memories(id) ON DELETE CASCADE,
                FOREIGN KEY (to_memory_id) REFERENCES memories(id) ON DELETE CASCADE
            )
        """
        )

        for statement in (
            "CREATE INDEX IF NOT EXISTS idx_memories_created_at ON memories(created_at)",
            "CREATE INDEX IF NOT EXISTS idx_memories_updated_at ON memories(updated_at)",
            "CREATE INDEX IF NOT EXISTS idx_relationships_from ON relationships(from_memory_id)",
            "CREATE INDEX IF NOT EXISTS idx_relationships_to ON relationships(to_memory_id)",
            "CREATE INDEX IF NOT EXISTS idx_relationships_type ON relationships(relationship_type)",
            "CREATE INDEX IF NOT EXISTS idx_relationships_strength ON relationships(strength)",
        ):
            cursor.execute(statement)

        self._conn.commit()

    def _init_vector_index(self) -> bool:
        """Load sqlite-vec and create the embedding table.

        Returns:
            True if vector search is available on this connection
        """
        try:
            self._conn.enable_load_extension(True)
            sqlite_vec.load(self._conn)
            self._conn.enable_load_extension(False)  # Disable for security
        except Exception as e:
            logger.warning(f"sqlite-vec not available, falling back to text search: {e}")
            return False

        try:
            self._conn.execute(
                f"""
                CREATE VIRTUAL TABLE IF NOT EXISTS memory_embeddings USING vec0(
                    id TEXT PRIMARY KEY,
                    embedding FLOAT[{self.embedding_dimensions}]
                )
            """
            )
            self._conn.commit()
        except sqlite3.Error as e:
            logger.warning(f"Failed to create vector table, falling back to text search: {e}")
            return False

        return True

    def close(self) -> None:
        """Close database connection."""
        if self._conn:
            self._conn.close()

    # =========================================================================
    # Memory Operations
    # =========================================================================

    def create_memory(
        self,
        content: str,
        metadata: Optional[Metadata] = None,
    ) -> str:
        """Insert a memory row.

        Args:
            content: Memory content text
            metadata: Optional JSON metadata

        Returns:
            Memory ID (uuid4 string)

        Raises:
            SQLiteStoreError: If the insert fails
        """
        memory_id = str(uuid4())
        now = format_timestamp(utc_now())

        try:
            self._conn.execute(
                f"""
                INSERT INTO memories ({_MEMORY_COLUMNS})
                VALUES (?, ?, ?, ?, ?)
                """,
                (memory_id, content, json.dumps(metadata or {}), now, now),
            )
            self._conn.commit()
            return memory_id

        except Exception as e:
            self._conn.rollback()
            raise SQLiteStoreError(f"Failed to add memory: {e}") from e

    def read_memory(self, memory_id: str) -> Optional[Memory]:
        """Get memory by ID.

        Returns:
            Memory or None if not found
        """
        try:
            cursor = self._conn.execute(
                f"SELECT {_MEMORY_COLUMNS} FROM memories WHERE id = ?",
                (memory_id,),
            )
            row = cursor.fetchone()
            return self._row_to_memory(row) if row else None

        except Exception as e:
            raise SQLiteStoreError(f"Failed to get memory: {e}") from e

    def update_memory(
        self,
        memory_id: str,
        content: Optional[str] = None,
        metadata: Optional[Metadata] = None,
    ) -> bool:
        """Update memory content and/or metadata.

        Metadata is replaced wholesale. updated_at advances when any field
        is written. With no fields, this only reports whether the memory exists.

        Returns:
            True if the memory exists, False if not found

        Raises:
            SQLiteStoreError: If the update fails
        """
        updates: list[str] = []
        values: list[Any] = []

        if content is not None:
            updates.append("content = ?")
            values.append(content)

        if metadata is not None:
            updates.append("metadata = ?")
            values.append(json.dumps(metadata))

        if not updates:
            return self.read_memory(memory_id) is not None

        updates.append("updated_at = ?")
        values.append(format_timestamp(utc_now()))
        values.append(memory_id)

        try:
            cursor = self._conn.execute(
                f"UPDATE memories SET {', '.join(updates)} WHERE id = ?",
                values,
            )
            self._conn.commit()
            return cursor.rowcount > 0

        except Exception as e:
            self._conn.rollback()
            raise SQLiteStoreError(f"Failed to update memory: {e}") from e

    def delete_memory(self, memory_id: str) -> bool:
        """Delete a memory and every relationship touching it.

        Returns:
            True if deleted, False if not found

        Raises:
            SQLiteStoreError: If delete fails
        """
        try:
            cursor = self._conn.execute("DELETE FROM memories WHERE id = ?", (memory_id,))
            if cursor.rowcount == 0:
                self._conn.rollback()
                return False

            self._conn.execute(
                "DELETE FROM relationships WHERE from_memory_id = ? OR to_memory_id = ?",
                (memory_id, memory_id),
            )
            self._conn.commit()
            return True

        except Exception as e:
            self._conn.rollback()
            raise SQLiteStoreError(f"Failed to delete memory: {e}") from e

    def search_content(self, substring: str, limit: int) -> list[Memory]:
        """Case-sensitive substring scan over memory content.

        Used when vector search is unavailable. Newest memories first.

        Args:
            substring: Text that must appear verbatim in content
            limit: Maximum number of results

        Returns:
            List of matching memories
        """
        try:
            cursor = self._conn.execute(
                f"""
                SELECT {_MEMORY_COLUMNS}
                FROM memories
                WHERE instr(content, ?) > 0
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (substring, limit),
            )
            return [self._row_to_memory(row) for row in cursor.fetchall()]

        except Exception as e:
            raise SQLiteStoreError(f"Failed to search content: {e}") from e

    def count_memories(self) -> int:
        """Get total number of memories."""
        try:
            result = self._conn.execute("SELECT COUNT(*) FROM memories").fetchone()
            return result[0] if result else 0

        except Exception as e:
            raise SQLiteStoreError(f"Failed to count memories: {e}") from e

    def _row_to_memory(self, row: sqlite3.Row) -> Memory:
        """Convert SQLite row to Memory."""
        return Memory(
            id=row["id"],
            content=row["content"],
            metadata=parse_metadata(row["metadata"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )

    # =========================================================================
    # Embedding Operations
    # =========================================================================

    def _serialize_embedding(self, embedding: list[float]) -> bytes:
        """Serialize embedding to float32 bytes for sqlite-vec storage.

        Raises:
            ValueError: If the embedding width does not match the index
        """
        if len(embedding) != self.embedding_dimensions:
            raise ValueError(
                f"Embedding has {len(embedding)} dimensions, "
                f"expected {self.embedding_dimensions}"
            )
        return struct.pack(f"<{len(embedding)}f", *embedding)

    def _deserialize_embedding(self, data: bytes) -> list[float]:
        """Deserialize embedding from bytes."""
        count = len(data) // 4  # 4 bytes per float
        return list(struct.unpack(f"<{count}f", data))

    def upsert_embedding(self, memory_id: str, embedding: list[float]) -> IndexSyncResult:
        """Insert or overwrite the embedding for a memory.

        Never raises: failures are reported in the result.
        """
        if not self.vector_search_available:
            return IndexSyncResult(synced=False, skipped=True, error="Vector index unavailable")

        try:
            blob = self._serialize_embedding(embedding)
            # vec0 tables do not support INSERT OR REPLACE
            self._conn.execute("DELETE FROM memory_embeddings WHERE id = ?", (memory_id,))
            self._conn.execute(
                "INSERT INTO memory_embeddings (id, embedding) VALUES (?, ?)",
                (memory_id, blob),
            )
            self._conn.commit()
            return IndexSyncResult(synced=True)

        except Exception as e:
            self._conn.rollback()
            return IndexSyncResult(synced=False, error=str(e))

    def delete_embedding(self, memory_id: str) -> IndexSyncResult:
        """Remove the embedding for a memory, if any.

        Never raises: failures are reported in the result.
        """
        if not self.vector_search_available:
            return IndexSyncResult(synced=False, skipped=True, error="Vector index unavailable")

        try:
            self._conn.execute("DELETE FROM memory_embeddings WHERE id = ?", (memory_id,))
            self._conn.commit()
            return IndexSyncResult(synced=True)

        except Exception as e:
            self._conn.rollback()
            return IndexSyncResult(synced=False, error=str(e))

    def get_embedding(self, memory_id: str) -> Optional[list[float]]:
        """Get the stored embedding for a memory.

        Returns:
            Embedding vector, or None if the memory has none
        """
        if not self.vector_search_available:
            return None

        try:
            row = self._conn.execute(
                "SELECT embedding FROM memory_embeddings WHERE id = ?",
                (memory_id,),
            ).fetchone()
            return self._deserialize_embedding(row["embedding"]) if row else None

        except Exception as e:
            raise SQLiteStoreError(f"Failed to get embedding: {e}") from e

    def nearest_by_embedding(
        self,
        embedding: list[float],
        max_distance: float,
        limit: int,
    ) -> list[Memory]:
        """Linear-scan cosine nearest neighbors.

        Args:
            embedding: Query embedding vector
            max_distance: Exclusive upper bound on cosine distance
            limit: Maximum number of results

        Returns:
            Memories ordered by ascending cosine distance

        Raises:
            VectorIndexUnavailableError: If the store has no vector index
            ValueError: If the query width does not match the index
            SQLiteStoreError: If the query fails
        """
        if not self.vector_search_available:
            raise VectorIndexUnavailableError("Vector search is not available")

        vec_param = self._serialize_embedding(embedding)

        try:
            cursor = self._conn.execute(
                """
                SELECT m.id, m.content, m.metadata, m.created_at, m.updated_at,
                       vec_distance_cosine(v.embedding, ?) AS distance
                FROM memories m
                JOIN memory_embeddings v ON m.id = v.id
                WHERE vec_distance_cosine(v.embedding, ?) < ?
                ORDER BY distance ASC
                LIMIT ?
                """,
                (vec_param, vec_param, max_distance, limit),
            )
            return [self._row_to_memory(row) for row in cursor.fetchall()]

        except Exception as e:
            raise SQLiteStoreError(f"Failed to search vectors: {e}") from e

    # =========================================================================
    # Relationship Operations
    # =========================================================================

    def create_relationship(
        self,
        from_memory_id: str,
        to_memory_id: str,
        relationship_type: str,
        strength: float = 1.0,
        metadata: Optional[Metadata] = None,
    ) -> str:
        """Insert a directed relationship.

        Endpoints are not checked for existence.

        Returns:
            Relationship ID (uuid4 string)

        Raises:
            SQLiteStoreError: If the insert fails
        """
        relationship_id = str(uuid4())

        try:
            self._conn.execute(
                f"""
                INSERT INTO relationships ({_RELATIONSHIP_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    relationship_id,
                    from_memory_id,
                    to_memory_id,
                    relationship_type,
                    strength,
                    json.dumps(metadata or {}),
                    format_timestamp(utc_now()),
                ),
            )
            self._conn.commit()
            return relationship_id

        except Exception as e:
            self._conn.rollback()
            raise SQLiteStoreError(f"Failed to add relationship: {e}") from e

    def read_relationship(self, relationship_id: str) -> Optional[Relationship]:
        """Get relationship by ID.

        Returns:
            Relationship or None if not found
        """
        try:
            row = self._conn.execute(
                f"SELECT {_RELATIONSHIP_COLUMNS} FROM relationships WHERE id = ?",
                (relationship_id,),
            ).fetchone()
            return self._row_to_relationship(row) if row else None

        except Exception as e:
            raise SQLiteStoreError(f"Failed to get relationship: {e}") from e

    def query_relationships(self, query: RelationshipQuery) -> list[Relationship]:
        """Query relationships with optional filters.

        Results are ordered by strength descending, then newest first.

        Args:
            query: Relationship filter

        Returns:
            List of matching relationships
        """
        conditions = ["strength >= ?"]
        params: list[Any] = [query.min_strength]

        if query.memory_id:
            if query.direction == "from":
                conditions.append("from_memory_id = ?")
                params.append(query.memory_id)
            elif query.direction == "to":
                conditions.append("to_memory_id = ?")
                params.append(query.memory_id)
            else:
                conditions.append("(from_memory_id = ? OR to_memory_id = ?)")
                params.extend([query.memory_id, query.memory_id])

        if query.relationship_type:
            conditions.append("relationship_type = ?")
            params.append(query.relationship_type)

        # SQLite treats a negative LIMIT as unbounded
        params.append(query.limit if query.limit is not None else -1)

        try:
            cursor = self._conn.execute(
                f"""
                SELECT {_RELATIONSHIP_COLUMNS}
                FROM relationships
                WHERE {' AND '.join(conditions)}
                ORDER BY strength DESC, created_at DESC, rowid DESC
                LIMIT ?
                """,
                params,
            )
            return [self._row_to_relationship(row) for row in cursor.fetchall()]

        except Exception as e:
            raise SQLiteStoreError(f"Failed to get relationships: {e}") from e

    def update_relationship(
        self,
        relationship_id: str,
        strength: Optional[float] = None,
        metadata: Optional[Metadata] = None,
    ) -> bool:
        """Update relationship strength and/or metadata in place.

        Returns:
            True if the relationship exists, False if not found

        Raises:
            SQLiteStoreError: If the update fails
        """
        updates: list[str] = []
        values: list[Any] = []

        if strength is not None:
            updates.append("strength = ?")
            values.append(strength)

        if metadata is not None:
            updates.append("metadata = ?")
            values.append(json.dumps(metadata))

        if not updates:
            return self.read_relationship(relationship_id) is not None

        values.append(relationship_id)

        try:
            cursor = self._conn.execute(
                f"UPDATE relationships SET {', '.join(updates)} WHERE id = ?",
                values,
            )
            self._conn.commit()
            return cursor.rowcount > 0

        except Exception as e:
            self._conn.rollback()
            raise SQLiteStoreError(f"Failed to update relationship: {e}") from e

    def delete_relationship(self, relationship_id: str) -> bool:
        """Delete a relationship by its ID.

        Returns:
            True if deleted, False if not found

        Raises:
            SQLiteStoreError: If delete fails
        """
        try:
            cursor = self._conn.execute(
                "DELETE FROM relationships WHERE id = ?", (relationship_id,)
            )
            self._conn.commit()
            return cursor.rowcount > 0

        except Exception as e:
            self._conn.rollback()
            raise SQLiteStoreError(f"Failed to delete relationship: {e}") from e

    def count_relationships(self) -> int:
        """Get total number of relationships."""
        try:
            result = self._conn.execute("SELECT COUNT(*) FROM relationships").fetchone()
            return result[0] if result else 0

        except Exception as e:
            raise SQLiteStoreError(f"Failed to count relationships: {e}") from e

    def _row_to_relationship(self, row: sqlite3.Row) -> Relationship:
        """Convert SQLite row to Relationship."""
        strength = row["strength"]
        return Relationship(
            id=row["id"],
            from_memory_id=row["from_memory_id"],
            to_memory_id=row["to_memory_id"],
            relationship_type=row["relationship_type"],
            strength=float(strength) if strength is not None else 1.0,
            metadata=parse_metadata(row["metadata"]),
            created_at=parse_timestamp(row["created_at"]),
        )
