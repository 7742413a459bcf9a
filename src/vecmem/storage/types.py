"""Storage layer types for vec-memory.

This module defines the records exchanged with the storage layer:
- Memory: A stored content unit with metadata and timestamps
- Relationship: A directed, typed, weighted edge between two memories
- RelationshipQuery: Filter for relationship lookups
- IndexSyncResult: Outcome of a best-effort embedding index write

Metadata is an arbitrary JSON document, so it is typed as a JSON value
rather than a fixed schema.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Union

from vecmem.constants import DEFAULT_RELATIONSHIP_LIMIT, RELATIONSHIP_DIRECTIONS

JSONValue = Union[str, int, float, bool, None, list["JSONValue"], dict[str, "JSONValue"]]
Metadata = dict[str, JSONValue]


@dataclass
class Memory:
    """A memory stored in the ``memories`` table.

    Attributes:
        id: Unique identifier (uuid4 string)
        content: The memory text
        metadata: Arbitrary JSON metadata (empty dict when absent)
        created_at: When the memory was created (UTC)
        updated_at: When content or metadata last changed (UTC)
    """

    id: str
    content: str
    created_at: datetime
    updated_at: datetime
    metadata: Metadata = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict for tool responses."""
        return {
            "id": self.id,
            "content": self.content,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class Relationship:
    """A directed edge in the ``relationships`` table.

    Relationships have no updated_at: only strength and metadata
    change in place after creation.
    """

    id: str
    from_memory_id: str
    to_memory_id: str
    relationship_type: str
    strength: float
    created_at: datetime
    metadata: Metadata = field(default_factory=dict)

    def other_endpoint(self, memory_id: str) -> str:
        """Return the endpoint opposite to ``memory_id``."""
        if self.from_memory_id == memory_id:
            return self.to_memory_id
        return self.from_memory_id

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict for tool responses."""
        return {
            "id": self.id,
            "from_memory_id": self.from_memory_id,
            "to_memory_id": self.to_memory_id,
            "relationship_type": self.relationship_type,
            "strength": self.strength,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class RelationshipQuery:
    """Filter for relationship lookups.

    Attributes:
        memory_id: Only edges touching this memory (optional)
        relationship_type: Exact relationship type match (optional)
        direction: 'from', 'to' or 'both'; only meaningful with memory_id
        min_strength: Inclusive lower bound on strength
        limit: Maximum rows returned; None for no limit
    """

    memory_id: Optional[str] = None
    relationship_type: Optional[str] = None
    direction: str = "both"
    min_strength: float = 0.0
    limit: Optional[int] = DEFAULT_RELATIONSHIP_LIMIT

    def __post_init__(self) -> None:
        if self.direction not in RELATIONSHIP_DIRECTIONS:
            raise ValueError(
                f"Invalid direction: {self.direction}. "
                f"Must be one of: {list(RELATIONSHIP_DIRECTIONS)}"
            )
        if self.limit is not None and self.limit < 0:
            raise ValueError(f"Limit must be non-negative, got {self.limit}")


@dataclass
class IndexSyncResult:
    """Outcome of a write to the embedding index.

    The memories table is the source of truth, so index writes never fail
    the surrounding operation. Callers log this result instead.

    Attributes:
        synced: The index now reflects the write
        skipped: The vector index is not available in this database
        error: Failure description when not synced
    """

    synced: bool
    skipped: bool = False
    error: Optional[str] = None
