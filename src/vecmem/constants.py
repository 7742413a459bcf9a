"""vec-memory implementation constants.

These are implementation details, not user settings. User-facing configuration
lives in vecmem.config and is read from the environment (.env).
"""

from pathlib import Path

# =============================================================================
# Storage
# =============================================================================

DEFAULT_DB_PATH = Path.home() / ".vec-memory-mcp.db"

# nomic-embed-text produces 768-dimensional embeddings
EMBEDDING_DIMENSIONS = 768

# SQLite busy timeout in milliseconds
BUSY_TIMEOUT_MS = 10000

# =============================================================================
# Service defaults (mirrored in the MCP tool schemas)
# =============================================================================

DEFAULT_SEARCH_LIMIT = 10
DEFAULT_SIMILARITY_THRESHOLD = 0.5
DEFAULT_RELATIONSHIP_LIMIT = 100
DEFAULT_STRENGTH = 1.0
DEFAULT_MAX_DEPTH = 2

RELATIONSHIP_DIRECTIONS = ("from", "to", "both")

# =============================================================================
# Ollama
# =============================================================================

DEFAULT_OLLAMA_BASE_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "nomic-embed-text"
DEFAULT_OLLAMA_TIMEOUT = 30

# Startup readiness poll: 1 second apart, 30 attempts
STARTUP_POLL_INTERVAL_SECONDS = 1.0
STARTUP_MAX_ATTEMPTS = 30

# Grace period after spawning `ollama serve` before polling starts
OLLAMA_SPAWN_GRACE_SECONDS = 2.0

# =============================================================================
# MCP server
# =============================================================================

SERVER_NAME = "vec-memory"
DEFAULT_SSE_PORT = 3000
