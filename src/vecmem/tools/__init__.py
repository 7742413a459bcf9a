"""MCP tools module for vec-memory.

Tool implementations for the vec-memory MCP server, organized by category:

- memory_tools: Memory CRUD and semantic search
- relationship_tools: Relationship CRUD and connected-memory traversal

Each tool module provides a class whose dependencies are injected via
constructor.

Example:
    >>> from vecmem.tools import MemoryTools, RelationshipTools
    >>> memory = MemoryTools(service)
    >>> result = await memory.search_memories("capital of France", limit=1)
"""

from vecmem.tools.memory_tools import MemoryTools
from vecmem.tools.relationship_tools import RelationshipTools

__all__ = [
    "MemoryTools",
    "RelationshipTools",
]
