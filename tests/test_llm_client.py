"""Tests for the shared LLM client contract and the mock client."""

from __future__ import annotations

import pytest

from expoupgrade.errors import InvalidInputError, UpstreamUnavailableError
from expoupgrade.llm_client import MockLLMClient, sanitize_error


class TestSanitizeError:
    """Tests for sanitize_error."""

    def test_masks_query_key(self) -> None:
        message = "HTTPSConnectionPool: /v1beta/models/x:generateContent?key=AIzaSecret123&alt=json"

        result = sanitize_error(message)

        assert "AIzaSecret123" not in result
        assert "key=[REDACTED]" in result
        assert "&alt=json" in result

    def test_masks_bearer_token(self) -> None:
        assert "abc123" not in sanitize_error("Authorization: Bearer abc123")

    def test_masks_google_key_anywhere(self) -> None:
        assert "SyD-secret" not in sanitize_error("bad key AIzaSyD-secret given")

    def test_leaves_plain_text(self) -> None:
        assert sanitize_error("Connection refused") == "Connection refused"


class TestMockLLMClient:
    """Tests for MockLLMClient."""

    def test_returns_scripted_replies_in_order(self) -> None:
        client = MockLLMClient(replies=["first", "second"], default_reply="fallback")

        assert client.complete("a") == "first"
        assert client.complete("b") == "second"
        assert client.complete("c") == "fallback"
        assert client.call_count == 3

    def test_records_call_arguments(self) -> None:
        client = MockLLMClient()

        client.complete("prompt text", system_prompt="system", response_schema={"type": "object"})

        assert client.last_prompt == "prompt text"
        assert client.calls[0]["system_prompt"] == "system"
        assert client.calls[0]["response_schema"] == {"type": "object"}
        assert client.calls[0]["model"] == "mock-model"

    def test_raises_scripted_errors(self) -> None:
        client = MockLLMClient(replies=[UpstreamUnavailableError("down", backend="mock")])

        with pytest.raises(UpstreamUnavailableError):
            client.complete("prompt")

    def test_rejects_blank_prompt_without_calling(self) -> None:
        client = MockLLMClient()

        with pytest.raises(InvalidInputError):
            client.complete(" \n")

        assert client.call_count == 0
