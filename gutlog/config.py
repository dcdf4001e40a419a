"""gutlog configuration.

Includes:
- NLUConfig: Pipeline settings with environment variable support
- ModelSettings: External model used for the fallback path
- CacheSettings: Extraction cache bounds

Environment Variables:
    GUTLOG_TIMEZONE: IANA timezone for meal-window inference
    GUTLOG_MODEL__BACKEND: "openai" or "ollama"
    GUTLOG_MODEL__NAME: Model name (e.g., gpt-4o-mini, llama3.2:latest)
    GUTLOG_MODEL__ENDPOINT: API base URL
    GUTLOG_MODEL__API_KEY: API key (OPENAI_API_KEY is used when unset)
    GUTLOG_MODEL__TIMEOUT_MS: Hard budget for one model call
    GUTLOG_MODEL__ENABLED: Set to false for rules-only parsing
"""

import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_DIR = ".gutlog"
CONFIG_FILE = "config.yaml"

DEFAULT_ENDPOINTS = {
    "openai": "https://api.openai.com",
    "ollama": "http://localhost:11434",
}


class ModelSettings(BaseModel):
    """External model settings for the fallback path.

    Attributes:
        enabled: Whether the model may be called at all
        backend: Transport to use
        name: Model name sent with each request
        endpoint: API base URL (None uses the backend default)
        api_key: Bearer token for OpenAI-compatible endpoints
        timeout_ms: Hard wall-clock budget per call
        max_tokens: Output cap per call
    """

    model_config = {"protected_namespaces": ()}

    enabled: bool = True
    backend: Literal["openai", "ollama"] = "openai"
    name: str = "gpt-4o-mini"
    endpoint: Optional[str] = None
    api_key: Optional[str] = Field(default=None, repr=False)
    timeout_ms: int = Field(default=800, gt=0)
    max_tokens: int = Field(default=64, gt=0)

    def resolved_endpoint(self) -> str:
        """Return the configured endpoint or the backend default."""
        return self.endpoint or DEFAULT_ENDPOINTS[self.backend]

    def resolved_api_key(self) -> Optional[str]:
        """Return the configured API key, falling back to OPENAI_API_KEY."""
        return self.api_key or os.environ.get("OPENAI_API_KEY") or None


class CacheSettings(BaseModel):
    """Bounds for the model extraction cache."""

    max_entries: int = Field(default=500, gt=0)
    ttl_seconds: int = Field(default=3 * 24 * 60 * 60, gt=0)


class NLUConfig(BaseSettings):
    """Pipeline configuration with environment variable support.

    Configuration is loaded from environment variables with GUTLOG_ prefix;
    nested fields use a double underscore (GUTLOG_MODEL__NAME).

    Precedence (highest to lowest):
        1. Config file sections (.gutlog/config.yaml), when loaded via load()
        2. Environment variables (GUTLOG_*)
        3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="GUTLOG_",
        env_nested_delimiter="__",
        extra="ignore",
        protected_namespaces=(),  # Allow the "model" field name
    )

    project_path: Path = Field(default_factory=Path.cwd)
    timezone: str = "America/Los_Angeles"
    model: ModelSettings = Field(default_factory=ModelSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)

    @property
    def config_file(self) -> Path:
        """Path of the YAML config file for this project."""
        return self.project_path / CONFIG_DIR / CONFIG_FILE

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "NLUConfig":
        """Load configuration from .gutlog/config.yaml if it exists.

        Args:
            path: Project path to load configuration for (default: cwd)

        Returns:
            NLUConfig with file values applied over environment and defaults
        """
        from ruamel.yaml import YAML

        path = Path(path) if path is not None else Path.cwd()
        config_file = path / CONFIG_DIR / CONFIG_FILE

        data: dict = {}
        if config_file.exists():
            yaml = YAML(typ="safe")
            with config_file.open() as f:
                loaded = yaml.load(f)
            if isinstance(loaded, dict):
                data = {k: loaded[k] for k in ("timezone", "model", "cache") if k in loaded}

        return cls(project_path=path, **data)

    def save(self) -> None:
        """Save configuration to .gutlog/config.yaml in the project path.

        The API key is never written to disk.
        """
        from ruamel.yaml import YAML

        config_dir = self.project_path / CONFIG_DIR
        config_dir.mkdir(parents=True, exist_ok=True)

        yaml = YAML()
        yaml.default_flow_style = False

        data = {
            "timezone": self.timezone,
            "model": self.model.model_dump(exclude={"api_key"}),
            "cache": self.cache.model_dump(),
        }

        with self.config_file.open("w") as f:
            yaml.dump(data, f)


__all__ = ["CacheSettings", "ModelSettings", "NLUConfig"]
