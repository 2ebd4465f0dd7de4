"""Service configuration.

``Settings`` is loaded once at startup from environment variables (a ``.env``
file in the working directory is honoured, see ``main.main``).  Only
``OPENAI_API_KEY`` is mandatory; everything else has a default suited to a
local deployment with the osquery schema checked out under ``./data``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional

from osquery_rag.errors import ConfigurationError


@dataclass(frozen=True)
class Settings:
    """Settings loaded from environment variables.

    Attributes:
        openai_api_key: Credential for the generation provider.
        openai_model: Chat-completions model id.
        openai_base_url: Base URL of an OpenAI-compatible API.
        temperature: Generation temperature.
        request_timeout: Seconds before a generation call is abandoned.
        host: Listen address.
        port: Listen port.
        data_dir: Directory holding the schema corpus.
        embedding_model: sentence-transformers model used for the index.
        chunk_size: Words per chunk.
        chunk_overlap: Words shared by consecutive chunks.
        top_k: Passages retrieved per question.
        max_context_chars: Upper bound on the context sent to the model.
        cors_origins: Origins allowed to call the API.
        log_level: Root logger level name.
    """

    openai_api_key: str
    openai_model: str = "gpt-4o"
    openai_base_url: str = "https://api.openai.com/v1"
    temperature: float = 0.5
    request_timeout: float = 120.0

    host: str = "0.0.0.0"
    port: int = 3000
    data_dir: str = "./data"

    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    chunk_size: int = 500
    chunk_overlap: int = 50
    top_k: int = 3
    max_context_chars: int = 12000

    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @staticmethod
    def _get_int(name: str, default: int) -> int:
        value = os.getenv(name)
        if value is None or value.strip() == "":
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc

    @staticmethod
    def _get_float(name: str, default: float) -> float:
        value = os.getenv(name)
        if value is None or value.strip() == "":
            return default
        try:
            return float(value)
        except ValueError as exc:
            raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc

    @staticmethod
    def _get_list(value: Optional[str], default: List[str]) -> List[str]:
        if value is None:
            return list(default)
        items = [item.strip() for item in value.split(",") if item.strip()]
        return items or list(default)

    @classmethod
    def from_env(cls) -> "Settings":
        """Create a Settings instance from the process environment.

        Raises:
            ConfigurationError: if the API key is absent, a numeric
                variable cannot be parsed or is out of range, or
                LOG_LEVEL is not a logging level name.
        """
        api_key = os.getenv("OPENAI_API_KEY", "").strip()
        if not api_key:
            raise ConfigurationError("No OpenAI API key provided")

        chunk_size = cls._get_int("CHUNK_SIZE", 500)
        chunk_overlap = cls._get_int("CHUNK_OVERLAP", 50)
        if chunk_size < 1:
            raise ConfigurationError("CHUNK_SIZE must be at least 1")
        if not 0 <= chunk_overlap < chunk_size:
            raise ConfigurationError("CHUNK_OVERLAP must be between 0 and CHUNK_SIZE - 1")
        top_k = cls._get_int("TOP_K", 3)
        if top_k < 1:
            raise ConfigurationError("TOP_K must be at least 1")
        request_timeout = cls._get_float("REQUEST_TIMEOUT", 120.0)
        if request_timeout <= 0:
            raise ConfigurationError("REQUEST_TIMEOUT must be greater than 0")
        max_context_chars = cls._get_int("MAX_CONTEXT_CHARS", 12000)
        if max_context_chars < 1:
            raise ConfigurationError("MAX_CONTEXT_CHARS must be at least 1")
        log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
        # getLevelName maps known names to their numeric level
        if not isinstance(logging.getLevelName(log_level), int):
            raise ConfigurationError(f"LOG_LEVEL {log_level!r} is not a logging level")

        return cls(
            openai_api_key=api_key,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
            openai_base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
            temperature=cls._get_float("TEMPERATURE", 0.5),
            request_timeout=request_timeout,
            host=os.getenv("HOST", "0.0.0.0"),
            port=cls._get_int("PORT", 3000),
            data_dir=os.getenv("DATA_DIR", "./data"),
            embedding_model=os.getenv(
                "EMBEDDING_MODEL", "sentence-transformers/all-MiniLM-L6-v2"
            ),
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            top_k=top_k,
            max_context_chars=max_context_chars,
            cors_origins=cls._get_list(os.getenv("CORS_ORIGINS"), ["*"]),
            log_level=log_level,
        )
