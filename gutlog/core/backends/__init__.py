"""Model transports for gutlog's fallback extraction.

This package provides adapters for the external model used when the rules
pass is not confident enough:
- OpenAICompatBackend: any OpenAI-compatible /v1/chat/completions endpoint
- OllamaBackend: HTTP API wrapper for a local Ollama

Usage:
    from gutlog.config import NLUConfig
    from gutlog.core.backends import create_backend

    backend = create_backend(NLUConfig.load())
    if backend is not None:
        text = await backend.complete(messages, max_tokens=64, temperature=0)
        await backend.close()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import ExtractionBackend

if TYPE_CHECKING:
    from ...config import NLUConfig


# Exceptions
class BackendError(Exception):
    """Base exception for backend errors."""

    pass


class ModelLoadError(BackendError):
    """Failed to initialize the backend."""

    pass


class GenerationError(BackendError):
    """Error during a completion request."""

    pass


def create_backend(config: "NLUConfig") -> ExtractionBackend | None:
    """Create the configured backend.

    Uses lazy imports so only the selected transport is loaded. The backend
    is returned unconnected; it opens its client on first use.

    Args:
        config: NLU configuration with model settings.

    Returns:
        Configured ExtractionBackend, or None when the model fallback is
        disabled or the OpenAI-compatible backend has no API key.

    Raises:
        ValueError: If backend type is unknown.
    """
    model = config.model

    if not model.enabled:
        return None

    if model.backend == "openai":
        from .openai_compat import OpenAICompatBackend

        api_key = model.resolved_api_key()
        if not api_key:
            return None
        return OpenAICompatBackend(
            model.name,
            endpoint=model.resolved_endpoint(),
            api_key=api_key,
            timeout=model.timeout_ms / 1000,
        )

    elif model.backend == "ollama":
        from .ollama import OllamaBackend

        return OllamaBackend(
            model.name,
            endpoint=model.resolved_endpoint(),
            timeout=model.timeout_ms / 1000,
        )

    else:
        raise ValueError(f"Unknown backend: {model.backend}")


__all__ = [
    # Base class
    "ExtractionBackend",
    # Backends (lazy imported)
    "OllamaBackend",
    "OpenAICompatBackend",
    # Factory
    "create_backend",
    # Exceptions
    "BackendError",
    "ModelLoadError",
    "GenerationError",
]


def __getattr__(name: str):
    """Lazy import backends to avoid loading unused transports."""
    if name == "OllamaBackend":
        from .ollama import OllamaBackend
        return OllamaBackend
    if name == "OpenAICompatBackend":
        from .openai_compat import OpenAICompatBackend
        return OpenAICompatBackend
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
