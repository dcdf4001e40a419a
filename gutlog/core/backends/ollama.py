"""Ollama HTTP backend for gutlog.

Connects to a running Ollama instance and uses /api/chat with
``format="json"`` for single-shot extraction. Ollama loads models itself;
this backend only manages the HTTP client.

Ollama API documentation: https://github.com/ollama/ollama/blob/main/docs/api.md
"""

from __future__ import annotations

import json
import logging

import httpx

from . import GenerationError, ModelLoadError
from .base import ExtractionBackend

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://localhost:11434"


class OllamaBackend(ExtractionBackend):
    """HTTP client backend for Ollama chat completion.

    Example:
        backend = OllamaBackend("llama3.2:latest")
        text = await backend.complete(messages)  # loads lazily on first call
        await backend.close()

    Attributes:
        _name: The Ollama model name (e.g., "llama3.2:latest")
        _endpoint: Ollama API base URL
        _timeout: Transport timeout in seconds
        _client: httpx.AsyncClient for making requests
    """

    def __init__(
        self,
        model_name: str,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 0.8,
    ) -> None:
        """Initialize the Ollama backend.

        Args:
            model_name: Name of the model in Ollama (e.g., "llama3.2:latest")
            endpoint: Ollama API base URL. Default: http://localhost:11434
            timeout: Transport timeout in seconds
        """
        self._name = model_name
        self._endpoint = endpoint.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @property
    def model_name(self) -> str:
        """Get the Ollama model name."""
        return self._name

    @property
    def is_loaded(self) -> bool:
        """Check if HTTP client is initialized.

        Note: This only checks if the client exists, not if Ollama
        has the model loaded in memory.
        """
        return self._client is not None

    async def load(self) -> None:
        """Open the HTTP client.

        Model availability is not checked here; a missing model surfaces as
        a GenerationError on the first completion.
        """
        if self._client is not None:
            return
        try:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        except Exception as e:
            raise ModelLoadError(f"Cannot create HTTP client for {self._endpoint}: {e}") from e

    async def close(self) -> None:
        """Close HTTP client.

        Note: This does NOT unload the model from Ollama's memory.

        This method is idempotent - safe to call multiple times.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def complete(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 64,
        temperature: float = 0.0,
    ) -> str:
        """Run one non-streaming chat request in JSON mode.

        Args:
            messages: List of {"role": "system"|"user", "content": str}
            max_tokens: Maximum tokens to generate (maps to num_predict)
            temperature: Sampling temperature (0.0 = deterministic)

        Returns:
            The assistant message content

        Raises:
            RuntimeError: If backend not loaded (call load() first)
            GenerationError: If the request fails
        """
        if not self.is_loaded:
            raise RuntimeError("OllamaBackend not loaded. Call load() before complete()")

        assert self._client is not None  # Type narrowing for mypy

        payload = {
            "model": self._name,
            "messages": messages,
            "stream": False,
            "format": "json",
            "options": {
                "temperature": temperature,
                "num_predict": max_tokens,
            },
        }

        try:
            response = await self._client.post(f"{self._endpoint}/api/chat", json=payload)
        except httpx.ConnectError as e:
            raise GenerationError(f"Cannot connect to Ollama at {self._endpoint}") from e
        except httpx.TimeoutException as e:
            raise GenerationError("Timeout during generation - Ollama may be overloaded") from e

        if response.status_code != 200:
            error_msg = f"Ollama API error (status {response.status_code})"
            try:
                data = response.json()
                if "error" in data:
                    error_msg = f"Ollama error: {data['error']}"
            except (json.JSONDecodeError, KeyError, ValueError):
                pass
            raise GenerationError(error_msg)

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise GenerationError(f"Ollama returned invalid JSON: {e}") from e

        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content", "") if isinstance(message, dict) else ""
        if not content:
            raise GenerationError("Ollama response had no content")
        if not isinstance(content, str):
            raise GenerationError(f"Ollama content is {type(content).__name__}, expected text")
        return content

    @classmethod
    async def is_available(cls, endpoint: str = DEFAULT_ENDPOINT) -> bool:
        """Check if Ollama is running and accessible.

        Makes a GET request to /api/tags to verify connectivity.
        Times out after 2 seconds.

        Args:
            endpoint: Ollama API base URL to check

        Returns:
            True if Ollama responds, False otherwise
        """
        try:
            async with httpx.AsyncClient(timeout=2.0) as client:
                response = await client.get(f"{endpoint.rstrip('/')}/api/tags")
                return response.status_code == 200
        except Exception:
            return False


__all__ = ["DEFAULT_ENDPOINT", "OllamaBackend"]
