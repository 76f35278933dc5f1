"""Gemini API client for expo-doctor repair.

Talks to the Google Generative Language REST API. The API key travels in
the query string, so every error message is sanitized before it leaves this
module.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from .errors import InvalidInputError, UpstreamUnavailableError
from .llm_client import LLMClient, sanitize_error

logger = logging.getLogger(__name__)

# Gemini API host
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"

# Default settings
DEFAULT_MODEL = "gemini-2.0-flash-lite"
DEFAULT_METHOD = "generateContent"
DEFAULT_TIMEOUT = 120


class GeminiClient(LLMClient):
    """Client for the Gemini ``generateContent`` endpoint."""

    backend = "Gemini"
    supports_response_schema = False

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        method: str = DEFAULT_METHOD,
        base_url: str = GEMINI_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        """Initialize the Gemini client.

        Args:
            api_key: Gemini API key.
            model: Default model id.
            method: API method appended to the model path.
            base_url: API host.
            timeout: Request timeout in seconds.

        Raises:
            InvalidInputError: If the API key is blank.
        """
        if not api_key or not api_key.strip():
            raise InvalidInputError("Gemini API key is required")

        super().__init__(model=model, timeout=timeout)
        self.api_key = api_key.strip()
        self.method = method
        self.base_url = base_url.rstrip("/")

    def _endpoint(self, model: str) -> str:
        return f"{self.base_url}/v1beta/models/{model}:{self.method}?key={self.api_key}"

    def _build_payload(
        self,
        prompt: str,
        system_prompt: Optional[str],
        model: str,
        response_schema: Optional[dict],
    ) -> dict:
        payload: dict[str, Any] = {
            "contents": [
                {
                    "role": "user",
                    "parts": [{"text": prompt}],
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
            },
        }

        if system_prompt and system_prompt.strip():
            payload["systemInstruction"] = {"parts": [{"text": system_prompt}]}

        if response_schema:
            payload["generationConfig"]["responseSchema"] = response_schema

        return payload

    def _post(self, url: str, payload: dict) -> tuple[int, str]:
        try:
            response = requests.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise UpstreamUnavailableError(
                f"Gemini API request timed out after {self.timeout} seconds",
                backend=self.backend,
            ) from exc
        except requests.RequestException as exc:
            raise UpstreamUnavailableError(
                sanitize_error(f"Gemini API request failed: No response received - {exc}"),
                backend=self.backend,
            ) from exc

        return response.status_code, response.text

    def _extract_text(self, data: Any) -> str:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
        if not isinstance(text, str):
            raise TypeError(f"reply text is {type(text).__name__}, expected str")
        return text
