"""Storage layer for vec-memory.

A single SQLite file holds:
- memories: content, JSON metadata and timestamps
- relationships: typed, weighted, directed edges between memories
- memory_embeddings: sqlite-vec vec0 table for cosine nearest-neighbor search

The vector table is optional; see SQLiteStore.vector_search_available.

Example:
    >>> from vecmem.storage import SQLiteStore, RelationshipQuery
    >>> store = SQLiteStore()
    >>> a = store.create_memory("Python is great")
    >>> b = store.create_memory("Python has a GIL")
    >>> store.create_relationship(a, b, "related_to", strength=0.8)
    >>> store.query_relationships(RelationshipQuery(memory_id=a, direction="from"))
"""

from vecmem.storage.sqlite_store import (
    SQLiteStore,
    SQLiteStoreError,
    VectorIndexUnavailableError,
)
from vecmem.storage.types import (
    IndexSyncResult,
    JSONValue,
    Memory,
    Metadata,
    Relationship,
    RelationshipQuery,
)

__all__ = [
    "SQLiteStore",
    "SQLiteStoreError",
    "VectorIndexUnavailableError",
    "IndexSyncResult",
    "JSONValue",
    "Memory",
    "Metadata",
    "Relationship",
    "RelationshipQuery",
]
