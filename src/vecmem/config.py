"""Configuration settings for the vec-memory MCP server.

This module provides Pydantic Settings for configuration management.
Settings are loaded from environment variables with the VEC_MEMORY_ prefix.
The unprefixed variables MEMORY_DB_PATH, OLLAMA_BASE_URL and
OLLAMA_MODEL are honoured as aliases.
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from vecmem.constants import (
    DEFAULT_DB_PATH,
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_TIMEOUT,
    DEFAULT_SSE_PORT,
    EMBEDDING_DIMENSIONS,
    STARTUP_MAX_ATTEMPTS,
    STARTUP_POLL_INTERVAL_SECONDS,
)

# Type alias for MCP transport selection
Transport = Literal["stdio", "sse"]


class VecMemorySettings(BaseSettings):
    """Configuration settings for the vec-memory MCP server.

    Attributes:
        db_path: Path to the SQLite database file
        enable_wal: Use write-ahead logging so readers never block on a writer
        ollama_base_url: Ollama server URL
        ollama_model: Embedding model name
        ollama_timeout: Ollama request timeout in seconds
        embedding_dimensions: Fixed embedding width of the vector index
        startup_poll_interval: Seconds between readiness probes after launching Ollama
        startup_max_attempts: Readiness probes before giving up
        transport: MCP transport ('stdio' or 'sse')
        port: Port for the SSE transport
        log_level: Logging level
    """

    model_config = SettingsConfigDict(
        env_prefix="VEC_MEMORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",  # Allow extra env vars without error
    )

    # Storage
    db_path: Path = Field(
        default=DEFAULT_DB_PATH,
        validation_alias=AliasChoices("VEC_MEMORY_DB_PATH", "MEMORY_DB_PATH"),
        description="Path to SQLite database",
    )
    enable_wal: bool = Field(default=True, description="Enable WAL journal mode")
    embedding_dimensions: int = Field(
        default=EMBEDDING_DIMENSIONS,
        gt=0,
        description="Embedding dimensionality of the vector index",
    )

    # Ollama
    ollama_base_url: str = Field(
        default=DEFAULT_OLLAMA_BASE_URL,
        validation_alias=AliasChoices("VEC_MEMORY_OLLAMA_BASE_URL", "OLLAMA_BASE_URL"),
        description="Ollama server URL",
    )
    ollama_model: str = Field(
        default=DEFAULT_OLLAMA_MODEL,
        validation_alias=AliasChoices("VEC_MEMORY_OLLAMA_MODEL", "OLLAMA_MODEL"),
        description="Embedding model name",
    )
    ollama_timeout: int = Field(
        default=DEFAULT_OLLAMA_TIMEOUT, gt=0, description="Ollama request timeout in seconds"
    )
    startup_poll_interval: float = Field(
        default=STARTUP_POLL_INTERVAL_SECONDS,
        ge=0.0,
        description="Seconds between Ollama readiness probes",
    )
    startup_max_attempts: int = Field(
        default=STARTUP_MAX_ATTEMPTS,
        gt=0,
        description="Readiness probes before startup fails",
    )

    # Server
    transport: Transport = Field(default="stdio", description="MCP transport")
    port: int = Field(default=DEFAULT_SSE_PORT, gt=0, description="Port for SSE transport")

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    def get_db_path(self) -> Path:
        """Get the database path, expanding user home."""
        return self.db_path.expanduser().resolve()
