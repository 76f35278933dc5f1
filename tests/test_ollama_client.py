"""Unit tests for ollama_client.py."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from expoupgrade.errors import (
    InvalidInputError,
    ProtocolError,
    UpstreamError,
    UpstreamUnavailableError,
)
from expoupgrade.ollama_client import OllamaClient


def ollama_response(status_code: int = 200, body=None, text: str | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text if text is not None else json.dumps(body)
    response.json.return_value = body
    return response


class TestOllamaComplete:
    """Tests for OllamaClient.complete."""

    @patch("expoupgrade.ollama_client.httpx.post")
    def test_successful_generate(self, mock_post: MagicMock) -> None:
        """Reply text comes from the response field."""
        mock_post.return_value = ollama_response(body={"response": '{"status": "success"}', "done": True})

        client = OllamaClient(model="llama3.2")
        result = client.complete("Fix it")

        assert result == '{"status": "success"}'

    @patch("expoupgrade.ollama_client.httpx.post")
    def test_request_shape(self, mock_post: MagicMock) -> None:
        """Body has model, prompt and stream=false; no system/format by default."""
        mock_post.return_value = ollama_response(body={"response": "{}"})

        client = OllamaClient(model="qwen2.5:7b", base_url="http://gpu-box:11434/", timeout=60)
        client.complete("Hello")

        assert mock_post.call_args.args[0] == "http://gpu-box:11434/api/generate"
        assert mock_post.call_args.kwargs["json"] == {
            "model": "qwen2.5:7b",
            "prompt": "Hello",
            "stream": False,
        }
        assert mock_post.call_args.kwargs["timeout"] == 60

    @patch("expoupgrade.ollama_client.httpx.post")
    def test_system_and_format(self, mock_post: MagicMock) -> None:
        mock_post.return_value = ollama_response(body={"response": "{}"})
        schema = {"type": "object", "required": ["data", "status"]}

        client = OllamaClient()
        client.complete("Hello", system_prompt="Answer in JSON", response_schema=schema)

        payload = mock_post.call_args.kwargs["json"]
        assert payload["system"] == "Answer in JSON"
        assert payload["format"] == schema

    def test_empty_prompt_raises(self) -> None:
        with pytest.raises(InvalidInputError):
            OllamaClient().complete("")

    @patch("expoupgrade.ollama_client.httpx.post")
    def test_http_error(self, mock_post: MagicMock) -> None:
        """A 404 for an unknown model is an UpstreamError."""
        mock_post.return_value = ollama_response(
            status_code=404,
            text='{"error":"model \\"nope\\" not found, try pulling it first"}',
        )

        with pytest.raises(UpstreamError) as exc_info:
            OllamaClient(model="nope").complete("Hello")

        assert exc_info.value.status_code == 404
        assert "not found" in exc_info.value.body

    @patch("expoupgrade.ollama_client.httpx.post")
    def test_connection_refused(self, mock_post: MagicMock) -> None:
        mock_post.side_effect = httpx.ConnectError("Connection refused")

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            OllamaClient().complete("Hello")

        assert "No response received" in str(exc_info.value)

    @patch("expoupgrade.ollama_client.httpx.post")
    def test_timeout(self, mock_post: MagicMock) -> None:
        mock_post.side_effect = httpx.ReadTimeout("timed out")

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            OllamaClient(timeout=10).complete("Hello")

        assert "timed out after 10s" in str(exc_info.value)

    @patch("expoupgrade.ollama_client.httpx.post")
    def test_missing_response_field(self, mock_post: MagicMock) -> None:
        mock_post.return_value = ollama_response(body={"done": True})

        with pytest.raises(ProtocolError):
            OllamaClient().complete("Hello")


class TestOllamaAvailability:
    """Tests for OllamaClient.is_available."""

    @patch("expoupgrade.ollama_client.httpx.get")
    def test_model_pulled(self, mock_get: MagicMock) -> None:
        mock_get.return_value = ollama_response(body={"models": [{"name": "llama3.2:latest"}]})

        assert OllamaClient(model="llama3.2").is_available() is True

    @patch("expoupgrade.ollama_client.httpx.get")
    def test_model_missing(self, mock_get: MagicMock) -> None:
        mock_get.return_value = ollama_response(body={"models": [{"name": "qwen2.5:7b"}]})

        assert OllamaClient(model="llama3.2").is_available() is False

    @patch("expoupgrade.ollama_client.httpx.get")
    def test_server_down(self, mock_get: MagicMock) -> None:
        mock_get.side_effect = httpx.ConnectError("Connection refused")

        assert OllamaClient().is_available() is False
