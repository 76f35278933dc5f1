"""Exception types shared across expo-upgrade."""

from __future__ import annotations

from typing import Optional


class ExpoUpgradeError(Exception):
    """Base exception for all expo-upgrade errors."""

    pass


class InvalidInputError(ExpoUpgradeError):
    """Raised when caller-supplied arguments are missing or malformed.

    Carries every problem found so they can be reported together.
    """

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class ExecutionError(ExpoUpgradeError):
    """Raised when an external process cannot be launched or talked to."""

    def __init__(self, message: str, command: Optional[str] = None):
        self.command = command
        super().__init__(message)


class InstallError(ExecutionError):
    """Raised when the dependency installer fails."""

    pass


class StagingError(ExpoUpgradeError):
    """Raised when the project cannot be extracted, copied or bumped."""

    pass


class LLMClientError(ExpoUpgradeError):
    """Base exception for LLM backend failures."""

    def __init__(self, message: str, backend: str = "llm"):
        self.backend = backend
        super().__init__(message)


class UpstreamError(LLMClientError):
    """Raised when the backend answers with a non-2xx status."""

    def __init__(self, backend: str, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"{backend} API error {status_code}: {body}", backend=backend)


class UpstreamUnavailableError(LLMClientError):
    """Raised when no response was received from the backend."""

    pass


class ProtocolError(LLMClientError):
    """Raised when a 2xx response lacks the expected reply text."""

    pass


class ReplyParseError(ExpoUpgradeError):
    """Raised when an LLM reply is not JSON or has no usable ``data`` field."""

    def __init__(self, message: str, raw_reply: str = ""):
        self.raw_reply = raw_reply
        super().__init__(message)
