"""vec-memory MCP server module.

This module provides the FastMCP server instance and tool registration.

The server exposes tools for:
- Memory operations (add_memory, get_memory, update_memory, delete_memory)
- Semantic search (search_memories)
- Relationship graph (add_relationship, get_relationships, update_relationship,
  delete_relationship, get_connected_memories)

Argument names follow the camelCase schema existing vec-memory clients send
(fromMemoryId, memoryId, maxDepth, ...).

CRITICAL: MCP servers using stdio transport must NEVER write to stdout
as it corrupts JSON-RPC messages. All logging goes to stderr.
"""

import logging
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from vecmem.constants import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_RELATIONSHIP_LIMIT,
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_SIMILARITY_THRESHOLD,
    DEFAULT_STRENGTH,
    SERVER_NAME,
)

# MCP servers must never write to stdout (corrupts JSON-RPC)
logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP(SERVER_NAME)

NOT_INITIALIZED = {"success": False, "error": "Server not initialized"}


# ==============================================================================
# Global Tool Instances (initialized in __main__.py)
# ==============================================================================

memory_tools: Optional[Any] = None
relationship_tools: Optional[Any] = None


def set_tool_instances(memory: Any, relationship: Any) -> None:
    """Set global tool instances after initialization.

    Called by __main__.py after components are initialized.

    Args:
        memory: MemoryTools instance
        relationship: RelationshipTools instance
    """
    global memory_tools, relationship_tools
    memory_tools = memory
    relationship_tools = relationship


# ==============================================================================
# Memory Tools
# ==============================================================================


@mcp.tool()
async def add_memory(content: str, metadata: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """Add a new memory with semantic embedding.

    Args:
        content: The content to store
        metadata: Optional metadata object

    Returns:
        Dictionary with:
        - success: Boolean indicating operation success
        - data: Dictionary with the new memory id
        - error: Error message if operation failed
    """
    if memory_tools is None:
        return dict(NOT_INITIALIZED)

    return await memory_tools.add_memory(content, metadata=metadata)


@mcp.tool()
async def get_memory(id: str) -> dict[str, Any]:
    """Retrieve a memory by ID.

    Args:
        id: Memory ID

    Returns:
        Dictionary with data.memory, or error "Memory not found"
    """
    if memory_tools is None:
        return dict(NOT_INITIALIZED)

    return await memory_tools.get_memory(id)


@mcp.tool()
async def update_memory(
    id: str,
    content: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Update memory content or metadata.

    New content is re-embedded. Metadata replaces the stored value.

    Args:
        id: Memory ID
        content: New content
        metadata: New metadata
    """
    if memory_tools is None:
        return dict(NOT_INITIALIZED)

    return await memory_tools.update_memory(id, content=content, metadata=metadata)


@mcp.tool()
async def delete_memory(id: str) -> dict[str, Any]:
    """Delete a memory and all of its relationships.

    Args:
        id: Memory ID
    """
    if memory_tools is None:
        return dict(NOT_INITIALIZED)

    return await memory_tools.delete_memory(id)


@mcp.tool()
async def search_memories(
    query: str,
    limit: int = DEFAULT_SEARCH_LIMIT,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
) -> dict[str, Any]:
    """Search memories using semantic similarity.

    Falls back to substring matching when embeddings are unavailable.

    Args:
        query: Search query
        limit: Maximum results (default: 10)
        threshold: Similarity threshold 0-1 (default: 0.5)

    Returns:
        Dictionary with:
        - success: Boolean indicating operation success
        - data: Dictionary with memories, total
        - error: Error message if operation failed
    """
    if memory_tools is None:
        return dict(NOT_INITIALIZED)

    return await memory_tools.search_memories(query, limit=limit, threshold=threshold)


# ==============================================================================
# Relationship Tools
# ==============================================================================


@mcp.tool()
async def add_relationship(
    fromMemoryId: str,
    toMemoryId: str,
    relationshipType: str,
    strength: float = DEFAULT_STRENGTH,
    metadata: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Add a relationship between two memories.

    Args:
        fromMemoryId: Source memory ID
        toMemoryId: Target memory ID
        relationshipType: Type of relationship
        strength: Relationship strength 0-1 (default: 1.0)
        metadata: Optional metadata
    """
    if relationship_tools is None:
        return dict(NOT_INITIALIZED)

    return await relationship_tools.add_relationship(
        fromMemoryId,
        toMemoryId,
        relationshipType,
        strength=strength,
        metadata=metadata,
    )


@mcp.tool()
async def get_relationships(
    memoryId: Optional[str] = None,
    relationshipType: Optional[str] = None,
    direction: str = "both",
    minStrength: float = 0.0,
    limit: int = DEFAULT_RELATIONSHIP_LIMIT,
) -> dict[str, Any]:
    """Get relationships with optional filtering.

    Args:
        memoryId: Filter by memory ID
        relationshipType: Filter by relationship type
        direction: 'from', 'to' or 'both' (default: 'both')
        minStrength: Minimum strength, inclusive (default: 0)
        limit: Maximum results (default: 100)

    Returns:
        Dictionary with:
        - success: Boolean indicating operation success
        - data: Dictionary with relationships, total
        - error: Error message if operation failed
    """
    if relationship_tools is None:
        return dict(NOT_INITIALIZED)

    return await relationship_tools.get_relationships(
        memory_id=memoryId,
        relationship_type=relationshipType,
        direction=direction,
        min_strength=minStrength,
        limit=limit,
    )


@mcp.tool()
async def update_relationship(
    id: str,
    strength: Optional[float] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Update relationship strength or metadata.

    Args:
        id: Relationship ID
        strength: New strength
        metadata: New metadata
    """
    if relationship_tools is None:
        return dict(NOT_INITIALIZED)

    return await relationship_tools.update_relationship(id, strength=strength, metadata=metadata)


@mcp.tool()
async def delete_relationship(id: str) -> dict[str, Any]:
    """Delete a relationship.

    Args:
        id: Relationship ID
    """
    if relationship_tools is None:
        return dict(NOT_INITIALIZED)

    return await relationship_tools.delete_relationship(id)


@mcp.tool()
async def get_connected_memories(
    memoryId: str, maxDepth: int = DEFAULT_MAX_DEPTH
) -> dict[str, Any]:
    """Get memories connected to a given memory through relationships.

    Relationships are followed in both directions.

    Args:
        memoryId: Starting memory ID
        maxDepth: Maximum connection depth (default: 2)

    Returns:
        Dictionary with:
        - success: Boolean indicating operation success
        - data: Dictionary with memories, total
        - error: Error message if operation failed
    """
    if relationship_tools is None:
        return dict(NOT_INITIALIZED)

    return await relationship_tools.get_connected_memories(memoryId, max_depth=maxDepth)
