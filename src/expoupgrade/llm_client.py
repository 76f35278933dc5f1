"""Common LLM client contract shared by the Gemini and Ollama backends.

Both backends reduce to one call: send a prompt (plus optional system prompt
and response schema) and get the model's raw text reply back. Adapters only
supply the endpoint, the request body, the transport and the response
envelope; validation and the error taxonomy live here.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

from .errors import (
    InvalidInputError,
    ProtocolError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should be masked in error messages
SENSITIVE_PATTERNS = [
    (re.compile(r'([?&]key=)[^&\s\'"]+', re.IGNORECASE), r'\1[REDACTED]'),
    (re.compile(r'(Bearer\s+)[A-Za-z0-9_-]+', re.IGNORECASE), r'\1[REDACTED]'),
    (re.compile(r'(api[_-]?key["\s:=]+)[A-Za-z0-9_-]+', re.IGNORECASE), r'\1[REDACTED]'),
    (re.compile(r'(AIza)[A-Za-z0-9_-]+'), r'\1[REDACTED]'),  # Google API key format
]

# Longest response body kept in UpstreamError messages
MAX_ERROR_BODY = 500


def sanitize_error(message: str) -> str:
    """Mask API keys and tokens in an error message.

    The Gemini key travels in the query string, so transport errors that echo
    the URL would otherwise leak it into logs.

    Args:
        message: Error message that may contain sensitive data.

    Returns:
        Sanitized message with sensitive data masked.
    """
    result = message
    for pattern, replacement in SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


class LLMClient(ABC):
    """Single-call text completion against one LLM backend."""

    backend: str = "llm"
    supports_response_schema: bool = False

    def __init__(self, model: str, timeout: int = 120):
        self.model = model
        self.timeout = timeout

    def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        response_schema: Optional[dict] = None,
    ) -> str:
        """Send one prompt and return the raw reply text.

        Args:
            prompt: The user prompt. Must not be blank.
            system_prompt: Optional system prompt.
            model: Override the configured model.
            response_schema: Optional JSON schema constraining the reply.

        Returns:
            The model's free-text reply. Not guaranteed to be valid JSON.

        Raises:
            InvalidInputError: If the prompt is empty.
            UpstreamError: If the backend answers with a non-2xx status.
            UpstreamUnavailableError: If no response was received.
            ProtocolError: If a 2xx response lacks the reply text.
        """
        if not prompt or not prompt.strip():
            raise InvalidInputError("User prompt is required")

        model_id = model or self.model
        url = self._endpoint(model_id)
        payload = self._build_payload(prompt, system_prompt, model_id, response_schema)

        logger.debug(f"Querying {self.backend} with model={model_id}")

        status_code, body = self._post(url, payload)

        if not 200 <= status_code < 300:
            raise UpstreamError(self.backend, status_code, sanitize_error(body[:MAX_ERROR_BODY]))

        try:
            return self._extract_text(self._decode(body))
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise ProtocolError(
                f"Unexpected {self.backend} API response format: {exc}",
                backend=self.backend,
            ) from exc

    @staticmethod
    def _decode(body: str) -> Any:
        return json.loads(body)

    @abstractmethod
    def _endpoint(self, model: str) -> str:
        """Return the URL to POST to."""

    @abstractmethod
    def _build_payload(
        self,
        prompt: str,
        system_prompt: Optional[str],
        model: str,
        response_schema: Optional[dict],
    ) -> dict:
        """Return the JSON request body."""

    @abstractmethod
    def _post(self, url: str, payload: dict) -> tuple[int, str]:
        """POST the payload and return ``(status_code, body_text)``.

        Raises:
            UpstreamUnavailableError: If no response was received.
        """

    @abstractmethod
    def _extract_text(self, data: Any) -> str:
        """Pull the reply text out of the decoded response envelope."""


class MockLLMClient(LLMClient):
    """Scripted LLM client for testing without API calls.

    Each call pops the next entry from ``replies``; an entry that is an
    exception instance is raised instead of returned. When the script runs
    out, ``default_reply`` is returned.
    """

    backend = "mock"

    def __init__(
        self,
        replies: Optional[list] = None,
        default_reply: str = '{"status": "error"}',
        supports_response_schema: bool = False,
    ):
        super().__init__(model="mock-model", timeout=0)
        self.replies = list(replies or [])
        self.default_reply = default_reply
        self.supports_response_schema = supports_response_schema
        self.calls: list[dict] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def last_prompt(self) -> Optional[str]:
        return self.calls[-1]["prompt"] if self.calls else None

    def _endpoint(self, model: str) -> str:
        return "mock://generate"

    def _build_payload(
        self,
        prompt: str,
        system_prompt: Optional[str],
        model: str,
        response_schema: Optional[dict],
    ) -> dict:
        return {
            "prompt": prompt,
            "system_prompt": system_prompt,
            "model": model,
            "response_schema": response_schema,
        }

    def _post(self, url: str, payload: dict) -> tuple[int, str]:
        self.calls.append(payload)

        reply = self.replies.pop(0) if self.replies else self.default_reply
        if isinstance(reply, Exception):
            raise reply
        return 200, json.dumps({"response": reply})

    def _extract_text(self, data: Any) -> str:
        return data["response"]
