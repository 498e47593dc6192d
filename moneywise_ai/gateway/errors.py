"""
Gateway Error Taxonomy

Every failure that can come out of the AI gateway is one of the classes
below. Classification happens exactly once, at the transport boundary
(see client.py). Orchestration services never re-classify: they either
add context or let the error through unchanged.

Each class carries a short human-readable `user_message`.
Presentation and localization belong to the caller.
"""

from typing import Any, Optional


class AIServiceError(Exception):
    """Base exception for all AI gateway errors."""

    user_message = "AI response error, please try again later"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message or self.user_message
        self.details = details or {}
        super().__init__(self.message)


class MissingCredentialError(AIServiceError):
    """No API key was supplied."""

    user_message = "Please configure Gemini API Key first"


class InvalidCredentialError(AIServiceError):
    """The API key was rejected by the remote service."""

    user_message = "Invalid API Key. Please check your key."


class InvalidConfigurationError(AIServiceError):
    """Endpoint configuration cannot be turned into a usable URL."""

    def __init__(self, reason: str, details: Optional[dict[str, Any]] = None):
        self.reason = reason
        super().__init__(f"Configuration Error: {reason}", details)


class NetworkFailureError(AIServiceError):
    """
    Transport-level failure (timeout, host unreachable, no connection).

    These are classified but never retried.
    """

    def __init__(self, kind: str, details: Optional[dict[str, Any]] = None):
        self.kind = kind
        super().__init__(f"Network Error: {kind}", details)


class ServerFailureError(AIServiceError):
    """The remote service answered with a 5xx status."""

    def __init__(self, code: int, details: Optional[dict[str, Any]] = None):
        self.code = code
        super().__init__(
            f"Server Error (Code: {code}). Please try again later.",
            details,
        )


class ClientFailureError(AIServiceError):
    """The remote service answered with a non-credential 4xx status."""

    def __init__(
        self,
        code: int,
        reason: str,
        details: Optional[dict[str, Any]] = None,
    ):
        self.code = code
        self.reason = reason
        super().__init__(f"Request Error (Code: {code}): {reason}", details)

    @property
    def is_rate_limited(self) -> bool:
        return self.code == 429


class DecodingFailureError(AIServiceError):
    """The response could not be turned into the expected structure."""

    user_message = "Failed to parse AI response"


class OperationCancelledError(AIServiceError):
    """A cancellation token was observed at a checkpoint."""

    user_message = "Operation was cancelled"
