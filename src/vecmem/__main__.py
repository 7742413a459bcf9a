"""MCP server entry point for vec-memory.

This module provides the main entry point for the vec-memory MCP server with:
- CLI argument parsing (defaults come from VecMemorySettings / .env)
- Ollama bootstrap: start the server and pull the model when needed
- Component initialization in dependency order
- Signal handling for graceful shutdown
- Logging to stderr (CRITICAL for MCP stdio)

Usage:
    vec-memory-mcp [options]
    python -m vecmem [options]

    Options:
        --sse                   Serve over SSE instead of stdio
        --port PORT             Port for the SSE transport (default: 3000)
        --db-path PATH          SQLite database (default: ~/.vec-memory-mcp.db)
        --ollama-base-url URL   Ollama server URL (default: http://localhost:11434)
        --ollama-model MODEL    Embedding model (default: nomic-embed-text)
        --log-level LEVEL       Logging level (default: INFO)
        --skip-ollama-check     Do not start Ollama or pull the model at startup

CRITICAL: MCP servers using stdio transport must NEVER write to stdout
as it corrupts JSON-RPC messages. All logging goes to stderr.
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

# Load .env file - must be done before any config access
load_dotenv()

logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Configure logging to stderr (never stdout for MCP servers).

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,  # Critical: never use stdout in MCP servers
    )

    logger.info(f"Logging initialized at {log_level.upper()} level")


def parse_arguments(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments, defaulting to environment configuration.

    Args:
        argv: Argument list (default: sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    from vecmem.config import VecMemorySettings

    settings = VecMemorySettings()

    parser = argparse.ArgumentParser(
        prog="vec-memory-mcp",
        description="vec-memory MCP server: semantic memory with a relationship graph",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # Transport
    parser.add_argument(
        "--sse",
        action="store_true",
        default=settings.transport == "sse",
        help="Use the SSE transport instead of stdio",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help="Port for the SSE transport (from VEC_MEMORY_PORT)",
    )

    # Storage
    parser.add_argument(
        "--db-path",
        type=Path,
        default=settings.get_db_path(),
        help="SQLite database path (from MEMORY_DB_PATH)",
    )

    # Ollama
    parser.add_argument(
        "--ollama-base-url",
        type=str,
        default=settings.ollama_base_url,
        help="Ollama server URL (from OLLAMA_BASE_URL)",
    )
    parser.add_argument(
        "--ollama-model",
        type=str,
        default=settings.ollama_model,
        help="Ollama embedding model (from OLLAMA_MODEL)",
    )
    parser.add_argument(
        "--skip-ollama-check",
        action="store_true",
        help="Skip starting Ollama and pulling the model at startup",
    )

    # Logging
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default=settings.log_level.upper(),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (from VEC_MEMORY_LOG_LEVEL)",
    )

    args = parser.parse_args(argv)
    args.settings = settings.model_copy(
        update={
            "db_path": args.db_path,
            "ollama_base_url": args.ollama_base_url,
            "ollama_model": args.ollama_model,
            "transport": "sse" if args.sse else "stdio",
            "port": args.port,
            "log_level": args.log_level,
        }
    )
    return args


def initialize_components(args: argparse.Namespace) -> dict[str, Any]:
    """Initialize all components in dependency order.

    1. OllamaProvider (started and model pulled unless --skip-ollama-check)
    2. SQLiteStore + MemoryService
    3. Tool instances (MemoryTools, RelationshipTools)

    Args:
        args: Parsed CLI arguments

    Returns:
        Dictionary containing all initialized components

    Raises:
        Exception: If any component initialization fails
    """
    logger.info("Initializing components...")
    components: dict[str, Any] = {}
    settings = args.settings

    try:
        # 1. Embedding provider
        logger.info(f"Initializing OllamaProvider (model={settings.ollama_model})")
        from vecmem.embedding import OllamaProvider

        embedder = OllamaProvider(
            base_url=settings.ollama_base_url,
            model=settings.ollama_model,
            timeout=settings.ollama_timeout,
            poll_interval=settings.startup_poll_interval,
            max_attempts=settings.startup_max_attempts,
            expected_dimensions=settings.embedding_dimensions,
        )
        components["embedder"] = embedder

        if args.skip_ollama_check:
            logger.info("Skipping Ollama startup checks")
        else:
            embedder.ensure_running()
            embedder.ensure_model()

        # 2. Storage and service
        logger.info(f"Initializing SQLiteStore at {settings.get_db_path()}")
        from vecmem.service import MemoryService

        service = MemoryService.from_settings(settings, embedder=embedder)
        components["service"] = service

        # 3. Tool instances
        logger.info("Initializing tools")
        from vecmem.tools import MemoryTools, RelationshipTools

        components["memory_tools"] = MemoryTools(service)
        components["relationship_tools"] = RelationshipTools(service)

        logger.info("All components initialized successfully")
        return components

    except Exception as e:
        logger.error(f"Failed to initialize components: {e}", exc_info=True)
        raise


def handle_shutdown(signum: int, _frame: Any) -> None:
    """Handle SIGINT/SIGTERM for graceful shutdown.

    Args:
        signum: Signal number
        _frame: Current stack frame
    """
    logger.info(f"Received signal {signum}, shutting down gracefully...")
    sys.exit(0)


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for MCP server.

    Workflow:
    1. Parse CLI arguments
    2. Setup logging to stderr
    3. Initialize components (including the Ollama bootstrap)
    4. Set global tool instances
    5. Register signal handlers
    6. Run MCP server with the selected transport
    """
    args = parse_arguments(argv)

    setup_logging(args.log_level)

    logger.info("Starting vec-memory MCP Server...")

    try:
        components = initialize_components(args)

        from vecmem.mcp_server import mcp, set_tool_instances

        set_tool_instances(
            memory=components["memory_tools"],
            relationship=components["relationship_tools"],
        )

        signal.signal(signal.SIGINT, handle_shutdown)
        signal.signal(signal.SIGTERM, handle_shutdown)

        # mcp.run() is synchronous and manages its own event loop
        if args.sse:
            mcp.settings.port = args.port
            logger.info(f"MCP server ready, starting SSE transport on port {args.port}...")
            mcp.run(transport="sse")
        else:
            logger.info("MCP server ready, starting stdio transport...")
            mcp.run(transport="stdio")

    except Exception as e:
        logger.error(f"Server failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
