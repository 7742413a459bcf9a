"""Memory tools for the vec-memory MCP server.

This module provides MCP tools for memory operations:
- add_memory: Store a new memory with a semantic embedding
- get_memory: Retrieve a memory by ID
- update_memory: Change content (re-embedded) and/or replace metadata
- delete_memory: Delete a memory with its relationships
- search_memories: Semantic search with substring fallback

Every tool returns a result dict with ``success`` plus ``data`` or ``error``;
exceptions never escape to the MCP layer.
"""

import logging
from typing import Any, Optional

from vecmem.constants import DEFAULT_SEARCH_LIMIT, DEFAULT_SIMILARITY_THRESHOLD
from vecmem.service import MemoryService

# MCP servers must never write to stdout (corrupts JSON-RPC)
logger = logging.getLogger(__name__)

MEMORY_NOT_FOUND = "Memory not found"


def _check_metadata(metadata: Any) -> Optional[str]:
    """Return an error message if metadata is not a JSON object."""
    if metadata is not None and not isinstance(metadata, dict):
        return "metadata must be an object"
    return None


def _check_id(value: Any, name: str = "id") -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return f"{name} is required"
    return None


class MemoryTools:
    """Tool implementations for memory operations.

    Thin async wrapper around MemoryService: validates arguments, converts
    records to JSON-ready dicts and maps failures to error results.

    Args:
        service: MemoryService instance

    Example:
        >>> tools = MemoryTools(service)
        >>> result = await tools.add_memory("User prefers dark mode")
        >>> if result["success"]:
        ...     print(f"Stored memory: {result['data']['id']}")
    """

    def __init__(self, service: MemoryService) -> None:
        self._service = service

    async def add_memory(
        self, content: str, metadata: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        """Store a new memory.

        Returns:
            Dictionary with:
            - success: Boolean indicating operation success
            - data: Dictionary with id
            - error: Error message if operation failed
        """
        try:
            if not isinstance(content, str) or not content.strip():
                return {"success": False, "error": "content is required"}
            error = _check_metadata(metadata)
            if error:
                return {"success": False, "error": error}

            memory_id = self._service.add_memory(content, metadata or {})
            logger.info(f"Stored memory {memory_id}")
            return {"success": True, "data": {"id": memory_id}}

        except Exception as e:
            logger.error(f"add_memory failed: {e}", exc_info=True)
            return {"success": False, "error": str(e)}

    async def get_memory(self, memory_id: str) -> dict[str, Any]:
        """Retrieve a memory by ID.

        Returns:
            Dictionary with success and data.memory, or error "Memory not found"
        """
        try:
            error = _check_id(memory_id)
            if error:
                return {"success": False, "error": error}

            memory = self._service.get_memory(memory_id)
            if memory is None:
                return {"success": False, "error": MEMORY_NOT_FOUND}
            return {"success": True, "data": {"memory": memory.to_dict()}}

        except Exception as e:
            logger.error(f"get_memory failed: {e}", exc_info=True)
            return {"success": False, "error": str(e)}

    async def update_memory(
        self,
        memory_id: str,
        content: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Update memory content and/or metadata.

        Metadata replaces the stored value wholesale.
        """
        try:
            error = _check_id(memory_id) or _check_metadata(metadata)
            if error:
                return {"success": False, "error": error}
            if content is not None and (not isinstance(content, str) or not content.strip()):
                return {"success": False, "error": "content must be a non-empty string"}

            if not self._service.update_memory(memory_id, content=content, metadata=metadata):
                return {"success": False, "error": MEMORY_NOT_FOUND}
            return {"success": True, "data": {"id": memory_id}}

        except Exception as e:
            logger.error(f"update_memory failed: {e}", exc_info=True)
            return {"success": False, "error": str(e)}

    async def delete_memory(self, memory_id: str) -> dict[str, Any]:
        """Delete a memory and every relationship touching it."""
        try:
            error = _check_id(memory_id)
            if error:
                return {"success": False, "error": error}

            if not self._service.delete_memory(memory_id):
                return {"success": False, "error": MEMORY_NOT_FOUND}
            logger.info(f"Deleted memory {memory_id}")
            return {"success": True, "data": {"id": memory_id}}

        except Exception as e:
            logger.error(f"delete_memory failed: {e}", exc_info=True)
            return {"success": False, "error": str(e)}

    async def search_memories(
        self,
        query: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ) -> dict[str, Any]:
        """Search memories by semantic similarity.

        The threshold is not clamped. Values above 1 match nothing and
        negative values admit vectors pointing away from the query.

        Returns:
            Dictionary with:
            - success: Boolean indicating operation success
            - data: Dictionary with memories, total
            - error: Error message if operation failed
        """
        try:
            if not isinstance(query, str) or not query.strip():
                return {"success": False, "error": "query is required"}
            if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
                return {"success": False, "error": "limit must be a positive integer"}
            if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
                return {"success": False, "error": "threshold must be a number"}

            memories = self._service.search_memories(query, limit=limit, threshold=threshold)
            return {
                "success": True,
                "data": {
                    "memories": [m.to_dict() for m in memories],
                    "total": len(memories),
                },
            }

        except Exception as e:
            logger.error(f"search_memories failed: {e}", exc_info=True)
            return {"success": False, "error": str(e)}
