"""Ollama embedding provider with retry logic and startup management.

This module provides an HTTP client for the Ollama embeddings API with:
- Exponential backoff retry logic for network resilience
- Server bootstrap: launch ``ollama serve`` when nothing answers, then poll
- Model bootstrap: pull the embedding model when it is not present locally
- Configurable timeout handling

Uses nomic-embed-text by default (768 dimensions).
"""

import json
import logging
import shutil
import subprocess
import time
from functools import wraps
from typing import Callable, Optional

import requests

from vecmem.constants import (
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_TIMEOUT,
    OLLAMA_SPAWN_GRACE_SECONDS,
    STARTUP_MAX_ATTEMPTS,
    STARTUP_POLL_INTERVAL_SECONDS,
)

logger = logging.getLogger(__name__)

OLLAMA_INSTALL_HINT = (
    "Ollama is not installed. Please install Ollama from https://ollama.ai "
    "and make sure the 'ollama' command is on your PATH."
)


class EmbeddingError(Exception):
    """Custom exception for embedding-related errors."""

    pass


def retry_with_backoff(
    max_retries: int = 3, base_delay: float = 1.0, max_delay: float = 10.0
) -> Callable:
    """Decorator for retrying functions with exponential backoff.

    Args:
        max_retries: Maximum number of attempts (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay between retries (default: 10.0)

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except (requests.RequestException, EmbeddingError):
                    if attempt == max_retries - 1:
                        raise

                    delay = min(base_delay * (2**attempt), max_delay)
                    logger.debug(f"Attempt {attempt + 1} failed, retrying in {delay:.1f}s")
                    time.sleep(delay)

            return func(*args, **kwargs)

        return wrapper

    return decorator


class OllamaProvider:
    """HTTP client for the Ollama embeddings API.

    Implements the EmbeddingProvider protocol. Besides embedding, it owns the
    provider's availability lifecycle: ``ensure_running`` and ``ensure_model``
    are meant to be called once at startup, not per request.

    Args:
        base_url: Ollama server URL (default: "http://localhost:11434")
        model: Embedding model name (default: "nomic-embed-text" - 768d)
        timeout: Request timeout in seconds (default: 30)
        poll_interval: Seconds between readiness probes after launching Ollama
        max_attempts: Readiness probes before startup fails
        expected_dimensions: If set, reject embeddings of any other width

    Example:
        >>> provider = OllamaProvider()
        >>> provider.ensure_running()
        >>> provider.ensure_model()
        >>> vector = provider.embed("What is Python?")
    """

    def __init__(
        self,
        base_url: str = DEFAULT_OLLAMA_BASE_URL,
        model: str = DEFAULT_OLLAMA_MODEL,
        timeout: int = DEFAULT_OLLAMA_TIMEOUT,
        poll_interval: float = STARTUP_POLL_INTERVAL_SECONDS,
        max_attempts: int = STARTUP_MAX_ATTEMPTS,
        expected_dimensions: Optional[int] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.expected_dimensions = expected_dimensions
        self._session = requests.Session()

    # =========================================================================
    # Server lifecycle
    # =========================================================================

    def is_running(self) -> bool:
        """Check whether an Ollama server answers on base_url."""
        try:
            response = self._session.get(f"{self.base_url}/api/version", timeout=self.timeout)
            return response.ok
        except requests.RequestException:
            return False

    def ensure_running(self) -> None:
        """Make sure an Ollama server is reachable, launching one if needed.

        If nothing answers, ``ollama serve`` is started as a detached process
        and the version endpoint is polled until it responds.

        Raises:
            EmbeddingError: If Ollama is not installed or never becomes ready
        """
        if self.is_running():
            logger.debug(f"Ollama is running at {self.base_url}")
            return

        if shutil.which("ollama") is None:
            raise EmbeddingError(OLLAMA_INSTALL_HINT)

        logger.info("Ollama is not running, starting 'ollama serve'...")
        try:
            subprocess.Popen(
                ["ollama", "serve"],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise EmbeddingError(f"Failed to start Ollama: {e}") from e

        time.sleep(OLLAMA_SPAWN_GRACE_SECONDS)

        for attempt in range(1, self.max_attempts + 1):
            if self.is_running():
                logger.info(f"Ollama started (ready after {attempt} probe(s))")
                return
            time.sleep(self.poll_interval)

        raise EmbeddingError(
            f"Ollama did not become ready at {self.base_url} "
            f"after {self.max_attempts} attempts"
        )

    # =========================================================================
    # Model lifecycle
    # =========================================================================

    def is_model_available(self) -> bool:
        """Check if the configured model is available locally.

        Returns:
            True if model is available, False otherwise
        """
        try:
            response = self._session.post(
                f"{self.base_url}/api/show",
                json={"name": self.model},
                timeout=self.timeout,
            )
            return response.ok
        except requests.RequestException:
            return False

    def pull_model(self) -> bool:
        """Pull the configured model from the Ollama registry.

        Blocks until the download finishes. Progress is streamed as NDJSON and
        logged, deduplicated by status.

        Returns:
            True if model was pulled successfully, False otherwise
        """
        logger.info(f"Pulling model '{self.model}' from Ollama registry...")

        try:
            response = self._session.post(
                f"{self.base_url}/api/pull",
                json={"name": self.model, "stream": True},
                timeout=None,  # Model pulls can take minutes
                stream=True,
            )
            response.raise_for_status()

            last_status = ""
            for line in response.iter_lines():
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except ValueError:
                    continue

                if "error" in data:
                    logger.error(f"Failed to pull model '{self.model}': {data['error']}")
                    return False

                status = data.get("status", "")
                if status == last_status:
                    continue
                last_status = status

                total = data.get("total", 0)
                if "pulling" in status and total:
                    pct = data.get("completed", 0) / total * 100
                    logger.info(f"Pulling {self.model}: {pct:.1f}%")
                else:
                    logger.info(f"Pull status: {status}")

            logger.info(f"Successfully pulled model '{self.model}'")
            return True

        except requests.RequestException as e:
            logger.error(f"Failed to pull model '{self.model}': {e}")
            return False

    def ensure_model(self) -> None:
        """Ensure the model is available, pulling it if necessary.

        Raises:
            EmbeddingError: If the model could not be made available
        """
        if self.is_model_available():
            logger.info(f"Model '{self.model}' is already available")
            return

        logger.info(f"Model '{self.model}' not found locally, attempting to pull...")
        if not self.pull_model():
            raise EmbeddingError(
                f"Failed to pull model '{self.model}'. "
                f"Try running 'ollama pull {self.model}' manually."
            )

    def health_check(self) -> bool:
        """Check if the server answers and the model is present."""
        return self.is_running() and self.is_model_available()

    # =========================================================================
    # Embedding
    # =========================================================================

    @retry_with_backoff(max_retries=3, base_delay=1.0, max_delay=10.0)
    def _request_with_retry(self, payload: dict) -> requests.Response:
        """Make HTTP request to Ollama API with retry logic.

        Raises:
            EmbeddingError: If request fails after all retries
        """
        try:
            response = self._session.post(
                f"{self.base_url}/api/embeddings",
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response

        except requests.Timeout as e:
            raise EmbeddingError(
                f"Request timeout after {self.timeout}s. "
                f"Consider increasing timeout for model {self.model}"
            ) from e

        except requests.RequestException as e:
            raise EmbeddingError(f"Ollama API request failed: {e}") from e

    def embed(self, text: str) -> list[float]:
        """Generate the embedding for a single text.

        Args:
            text: Input text to embed

        Returns:
            Embedding vector as list of floats

        Raises:
            EmbeddingError: If embedding generation fails
            ValueError: If text is empty
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")

        try:
            response = self._request_with_retry({"model": self.model, "prompt": text})
            embedding = response.json().get("embedding")

            if not embedding:
                raise EmbeddingError("No embedding returned from Ollama API")

            if self.expected_dimensions and len(embedding) != self.expected_dimensions:
                raise EmbeddingError(
                    f"Model '{self.model}' returned {len(embedding)} dimensions, "
                    f"expected {self.expected_dimensions}"
                )

            return [float(x) for x in embedding]

        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Failed to generate embedding: {e}") from e

    def close(self) -> None:
        """Close the HTTP session and release resources.

        This method is idempotent (safe to call multiple times).
        """
        if self._session is not None:
            self._session.close()
            logger.debug("OllamaProvider session closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit - close session."""
        self.close()
