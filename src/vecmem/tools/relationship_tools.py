"""Relationship tools for the vec-memory MCP server.

This module provides MCP tools for the memory graph:
- add_relationship: Create a typed, weighted edge between two memories
- get_relationships: Filter edges by memory, type, direction and strength
- update_relationship: Change edge strength and/or metadata
- delete_relationship: Delete an edge
- get_connected_memories: Memories within N hops, edges treated as undirected
"""

import logging
from typing import Any, Optional

from vecmem.constants import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_RELATIONSHIP_LIMIT,
    DEFAULT_STRENGTH,
    RELATIONSHIP_DIRECTIONS,
)
from vecmem.service import MemoryService

# MCP servers must never write to stdout (corrupts JSON-RPC)
logger = logging.getLogger(__name__)

RELATIONSHIP_NOT_FOUND = "Relationship not found"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class RelationshipTools:
    """Tool implementations for relationship operations.

    Args:
        service: MemoryService instance

    Example:
        >>> tools = RelationshipTools(service)
        >>> result = await tools.add_relationship(a, b, "supports", strength=0.8)
        >>> connected = await tools.get_connected_memories(a, max_depth=2)
    """

    def __init__(self, service: MemoryService) -> None:
        self._service = service

    async def add_relationship(
        self,
        from_memory_id: str,
        to_memory_id: str,
        relationship_type: str,
        strength: float = DEFAULT_STRENGTH,
        metadata: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Create a directed relationship.

        Endpoints are not required to exist.

        Returns:
            Dictionary with success and data.id, or error
        """
        try:
            for value, name in (
                (from_memory_id, "fromMemoryId"),
                (to_memory_id, "toMemoryId"),
                (relationship_type, "relationshipType"),
            ):
                if not isinstance(value, str) or not value.strip():
                    return {"success": False, "error": f"{name} is required"}
            if not _is_number(strength):
                return {"success": False, "error": "strength must be a number"}
            if metadata is not None and not isinstance(metadata, dict):
                return {"success": False, "error": "metadata must be an object"}

            relationship_id = self._service.add_relationship(
                from_memory_id,
                to_memory_id,
                relationship_type,
                strength=float(strength),
                metadata=metadata or {},
            )
            logger.info(
                f"Created relationship {relationship_id}: "
                f"{from_memory_id} -[{relationship_type}]-> {to_memory_id}"
            )
            return {"success": True, "data": {"id": relationship_id}}

        except Exception as e:
            logger.error(f"add_relationship failed: {e}", exc_info=True)
            return {"success": False, "error": str(e)}

    async def get_relationships(
        self,
        memory_id: Optional[str] = None,
        relationship_type: Optional[str] = None,
        direction: str = "both",
        min_strength: float = 0.0,
        limit: int = DEFAULT_RELATIONSHIP_LIMIT,
    ) -> dict[str, Any]:
        """Get relationships with optional filtering, strongest first.

        Returns:
            Dictionary with:
            - success: Boolean indicating operation success
            - data: Dictionary with relationships, total
            - error: Error message if operation failed
        """
        try:
            if direction not in RELATIONSHIP_DIRECTIONS:
                return {
                    "success": False,
                    "error": f"direction must be one of: {', '.join(RELATIONSHIP_DIRECTIONS)}",
                }
            if not _is_number(min_strength):
                return {"success": False, "error": "minStrength must be a number"}
            if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
                return {"success": False, "error": "limit must be a non-negative integer"}

            relationships = self._service.get_relationships(
                memory_id=memory_id or None,
                relationship_type=relationship_type or None,
                direction=direction,
                min_strength=float(min_strength),
                limit=limit,
            )
            return {
                "success": True,
                "data": {
                    "relationships": [r.to_dict() for r in relationships],
                    "total": len(relationships),
                },
            }

        except Exception as e:
            logger.error(f"get_relationships failed: {e}", exc_info=True)
            return {"success": False, "error": str(e)}

    async def update_relationship(
        self,
        relationship_id: str,
        strength: Optional[float] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Update relationship strength and/or metadata."""
        try:
            if not isinstance(relationship_id, str) or not relationship_id.strip():
                return {"success": False, "error": "id is required"}
            if strength is not None and not _is_number(strength):
                return {"success": False, "error": "strength must be a number"}
            if metadata is not None and not isinstance(metadata, dict):
                return {"success": False, "error": "metadata must be an object"}

            updated = self._service.update_relationship(
                relationship_id,
                strength=float(strength) if strength is not None else None,
                metadata=metadata,
            )
            if not updated:
                return {"success": False, "error": RELATIONSHIP_NOT_FOUND}
            return {"success": True, "data": {"id": relationship_id}}

        except Exception as e:
            logger.error(f"update_relationship failed: {e}", exc_info=True)
            return {"success": False, "error": str(e)}

    async def delete_relationship(self, relationship_id: str) -> dict[str, Any]:
        """Delete a relationship by ID."""
        try:
            if not isinstance(relationship_id, str) or not relationship_id.strip():
                return {"success": False, "error": "id is required"}

            if not self._service.delete_relationship(relationship_id):
                return {"success": False, "error": RELATIONSHIP_NOT_FOUND}
            return {"success": True, "data": {"id": relationship_id}}

        except Exception as e:
            logger.error(f"delete_relationship failed: {e}", exc_info=True)
            return {"success": False, "error": str(e)}

    async def get_connected_memories(
        self, memory_id: str, max_depth: int = DEFAULT_MAX_DEPTH
    ) -> dict[str, Any]:
        """Get memories reachable within max_depth hops.

        Returns:
            Dictionary with success and data.memories, data.total
        """
        try:
            if not isinstance(memory_id, str) or not memory_id.strip():
                return {"success": False, "error": "memoryId is required"}
            if isinstance(max_depth, bool) or not isinstance(max_depth, int) or max_depth < 0:
                return {"success": False, "error": "maxDepth must be a non-negative integer"}

            memories = self._service.get_connected_memories(memory_id, max_depth=max_depth)
            return {
                "success": True,
                "data": {
                    "memories": [m.to_dict() for m in memories],
                    "total": len(memories),
                },
            }

        except Exception as e:
            logger.error(f"get_connected_memories failed: {e}", exc_info=True)
            return {"success": False, "error": str(e)}
