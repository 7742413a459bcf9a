"""vec-memory - Graph-based semantic memory over SQLite and Ollama embeddings.

Stores short text memories with sqlite-vec embeddings, searches them by cosine
similarity (falling back to substring search when the vector path is down), and
keeps a typed, weighted relationship graph between them. Exposed to AI
assistants as an MCP server.
"""

__version__ = "1.0.3"
__all__ = ["__version__"]
