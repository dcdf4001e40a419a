"""OpenAI-compatible HTTP backend for gutlog.

Talks to any server exposing the OpenAI /v1/chat/completions endpoint
(OpenAI itself, or a local gateway) and requests a JSON object response.
"""

from __future__ import annotations

import json
import logging

import httpx

from . import GenerationError, ModelLoadError
from .base import ExtractionBackend

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://api.openai.com"


class OpenAICompatBackend(ExtractionBackend):
    """HTTP client backend for OpenAI-compatible chat completions.

    Example:
        backend = OpenAICompatBackend("gpt-4o-mini", api_key="sk-...")
        await backend.load()  # Opens the HTTP client, no network call

        text = await backend.complete(messages, max_tokens=64, temperature=0)

        await backend.close()

    Attributes:
        _name: Model name sent with each request
        _endpoint: API base URL (without the /v1 suffix)
        _api_key: Bearer token for authentication
        _timeout: Transport timeout in seconds
        _client: httpx.AsyncClient for making requests
    """

    def __init__(
        self,
        model_name: str,
        endpoint: str = DEFAULT_ENDPOINT,
        api_key: str | None = None,
        timeout: float = 0.8,
    ) -> None:
        """Initialize the backend.

        Args:
            model_name: Model to request (e.g., "gpt-4o-mini")
            endpoint: API base URL. Default: https://api.openai.com
            api_key: Optional API key for Bearer token authentication
            timeout: Transport timeout in seconds
        """
        self._name = model_name
        self._endpoint = endpoint.rstrip("/")
        if self._endpoint.endswith("/v1"):
            self._endpoint = self._endpoint[: -len("/v1")]
        self._api_key = api_key
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @property
    def model_name(self) -> str:
        """Get the model name."""
        return self._name

    @property
    def is_loaded(self) -> bool:
        """Check if HTTP client is initialized."""
        return self._client is not None

    def _get_headers(self) -> dict[str, str]:
        """Build request headers including auth if configured."""
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def load(self) -> None:
        """Open the HTTP client.

        No request is made; the first completion doubles as the connectivity
        check so the latency budget is spent on one round trip.

        Raises:
            ModelLoadError: If the client cannot be created
        """
        if self._client is not None:
            return
        try:
            self._client = httpx.AsyncClient(timeout=self._timeout, headers=self._get_headers())
        except Exception as e:
            raise ModelLoadError(f"Cannot create HTTP client for {self._endpoint}: {e}") from e

    async def close(self) -> None:
        """Close HTTP client.

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
        """Run one JSON-mode chat completion.

        Args:
            messages: List of {"role": "system"|"user", "content": str}
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0.0 = deterministic)

        Returns:
            The assistant message content

        Raises:
            RuntimeError: If backend not loaded (call load() first)
            GenerationError: If the request fails or returns no content
        """
        if not self.is_loaded:
            raise RuntimeError("OpenAICompatBackend not loaded. Call load() before complete()")

        assert self._client is not None

        payload = {
            "model": self._name,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "response_format": {"type": "json_object"},
        }

        try:
            response = await self._client.post(
                f"{self._endpoint}/v1/chat/completions",
                json=payload,
            )
        except httpx.ConnectError as e:
            raise GenerationError(f"Cannot connect to {self._endpoint}") from e
        except httpx.TimeoutException as e:
            raise GenerationError(f"Timeout calling {self._endpoint}") from e

        if response.status_code != 200:
            error_msg = f"Completion API error (status {response.status_code})"
            try:
                data = response.json()
                if "error" in data:
                    error_detail = data["error"]
                    if isinstance(error_detail, dict):
                        error_msg = f"Completion error: {error_detail.get('message', error_detail)}"
                    else:
                        error_msg = f"Completion error: {error_detail}"
            except (json.JSONDecodeError, KeyError, ValueError):
                pass
            raise GenerationError(error_msg)

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (json.JSONDecodeError, KeyError, IndexError, TypeError, ValueError) as e:
            raise GenerationError(f"Unexpected completion response: {e}") from e

        if not content:
            raise GenerationError("Completion response had no content")
        if not isinstance(content, str):
            raise GenerationError(f"Completion content is {type(content).__name__}, expected text")
        return content

    @classmethod
    async def is_available(cls, endpoint: str = DEFAULT_ENDPOINT) -> bool:
        """Check if the endpoint responds.

        Makes a GET request to /v1/models. Times out after 2 seconds.

        Args:
            endpoint: API base URL to check

        Returns:
            True if the endpoint responds (401 counts, it is reachable), False otherwise
        """
        try:
            async with httpx.AsyncClient(timeout=2.0) as client:
                response = await client.get(f"{endpoint.rstrip('/')}/v1/models")
                return response.status_code in (200, 401, 404)
        except Exception:
            return False


__all__ = ["DEFAULT_ENDPOINT", "OpenAICompatBackend"]
