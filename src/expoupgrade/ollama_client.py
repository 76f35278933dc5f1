"""Ollama integration for local LLM-based repair."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from .errors import UpstreamUnavailableError
from .llm_client import LLMClient

logger = logging.getLogger(__name__)

# Default Ollama endpoint
OLLAMA_BASE_URL = "http://localhost:11434"

DEFAULT_MODEL = "llama3.2"
DEFAULT_TIMEOUT = 300


class OllamaClient(LLMClient):
    """Client for the Ollama ``/api/generate`` endpoint."""

    backend = "Ollama"
    supports_response_schema = True

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        base_url: str = OLLAMA_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        """Initialize the Ollama client.

        Args:
            model: The Ollama model to use.
            base_url: Ollama API base URL.
            timeout: Request timeout in seconds.
        """
        super().__init__(model=model, timeout=timeout)
        self.base_url = base_url.rstrip("/")

    def is_available(self) -> bool:
        """Check if Ollama is running and the model has been pulled."""
        try:
            response = httpx.get(f"{self.base_url}/api/tags", timeout=5)
        except httpx.HTTPError as e:
            logger.debug(f"Ollama not available: {e}")
            return False

        if response.status_code != 200:
            return False

        try:
            models = [m.get("name", "") for m in response.json().get("models", [])]
        except ValueError:
            logger.debug("Ollama /api/tags returned a non-JSON body")
            return False
        model_base = self.model.split(":")[0]
        available = any(m == self.model or m.split(":")[0] == model_base for m in models)
        if not available:
            logger.warning(
                f"Ollama running but model '{self.model}' not found. "
                f"Available: {models}. Run: ollama pull {self.model}"
            )
        return available

    def _endpoint(self, model: str) -> str:
        return f"{self.base_url}/api/generate"

    def _build_payload(
        self,
        prompt: str,
        system_prompt: Optional[str],
        model: str,
        response_schema: Optional[dict],
    ) -> dict:
        payload: dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "stream": False,
        }

        if system_prompt and system_prompt.strip():
            payload["system"] = system_prompt

        # Structured output
        if response_schema:
            payload["format"] = response_schema

        return payload

    def _post(self, url: str, payload: dict) -> tuple[int, str]:
        try:
            response = httpx.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise UpstreamUnavailableError(
                f"Ollama request timed out after {self.timeout}s",
                backend=self.backend,
            ) from exc
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(
                f"Ollama API request failed: No response received - {exc}",
                backend=self.backend,
            ) from exc

        return response.status_code, response.text

    def _extract_text(self, data: Any) -> str:
        text = data["response"]
        if not isinstance(text, str):
            raise TypeError(f"reply text is {type(text).__name__}, expected str")
        if data.get("eval_count"):
            logger.debug(f"Ollama usage: {data.get('prompt_eval_count', 0)} input, {data['eval_count']} output tokens")
        return text
