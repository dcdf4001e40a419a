"""Abstract base class for model extraction backends."""

from __future__ import annotations

from abc import ABC, abstractmethod


class ExtractionBackend(ABC):
    """Abstract base class for JSON-mode chat completion transports.

    Lifecycle:
    1. Create backend instance with endpoint and model name (no I/O)
    2. Call load() to open the HTTP client; done lazily on first use
    3. Call complete() once per extraction
    4. Call close() to release the client (must be idempotent)

    Timeouts:
    - Callers enforce the wall-clock budget with asyncio.wait_for();
      cancellation must leave the backend usable for the next call
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the model name sent with each request."""
        ...

    @property
    @abstractmethod
    def is_loaded(self) -> bool:
        """Check if the HTTP client is open."""
        ...

    @abstractmethod
    async def load(self) -> None:
        """Open the HTTP client.

        Raises:
            ModelLoadError: If the backend cannot be initialized
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the HTTP client.

        Must be idempotent - safe to call multiple times.
        """
        ...

    @abstractmethod
    async def complete(
        self,
        messages: list[dict[str, str]],
        max_tokens: int = 64,
        temperature: float = 0.0,
    ) -> str:
        """Run one non-streaming, JSON-only chat completion.

        Args:
            messages: List of {"role": "system"|"user", "content": str}
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0.0 = deterministic)

        Returns:
            Raw response text (expected to be a JSON object)

        Raises:
            RuntimeError: If backend not loaded
            GenerationError: If the request fails or returns no content
        """
        ...

    @classmethod
    @abstractmethod
    async def is_available(cls, endpoint: str) -> bool:
        """Check if the endpoint is reachable.

        Does not send a completion request.
        """
        ...


__all__ = ["ExtractionBackend"]
