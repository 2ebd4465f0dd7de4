"""Generation client for an OpenAI-compatible chat-completions API."""

from __future__ import annotations

import logging
from typing import Optional

import requests

from osquery_rag.errors import GenerationError

logger = logging.getLogger(__name__)


class OpenAIGenerator:
    """Sends a prompt to ``{base_url}/chat/completions`` and returns the text.

    One attempt per call; a failure is raised as :class:`GenerationError`
    and never retried.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str = "https://api.openai.com/v1",
        temperature: Optional[float] = 0.5,
        timeout_sec: float = 120.0,
        session: Optional[requests.Session] = None,
    ):
        if timeout_sec <= 0:
            raise ValueError("timeout_sec must be greater than 0")
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    def generate(self, prompt: str) -> str:
        url = f"{self.base_url}/chat/completions"
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature

        try:
            r = self.session.post(url, json=payload, timeout=self.timeout_sec)
        except requests.Timeout as exc:
            raise GenerationError(
                f"Model call timed out after {self.timeout_sec}s"
            ) from exc
        except requests.RequestException as exc:
            raise GenerationError(f"Model call failed: {exc}") from exc

        if not r.ok:
            # The body usually carries the provider's explanation
            raise GenerationError(
                f"Model provider returned HTTP {r.status_code}: {r.text[:500]}"
            )

        try:
            data = r.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise GenerationError("Unexpected response shape from model provider") from exc

        if not isinstance(content, str) or not content.strip():
            raise GenerationError("Model provider returned an empty response")
        logger.debug("Model returned %d characters", len(content))
        return content.strip()

    def close(self) -> None:
        self.session.close()
