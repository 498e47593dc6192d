"""AI gateway package: transport, prompts, extraction, cancellation."""

from moneywise_ai.gateway.cancellation import CancellationToken
from moneywise_ai.gateway.client import GeminiClient, MAX_ATTEMPTS
from moneywise_ai.gateway.errors import (
    AIServiceError,
    ClientFailureError,
    DecodingFailureError,
    InvalidConfigurationError,
    InvalidCredentialError,
    MissingCredentialError,
    NetworkFailureError,
    OperationCancelledError,
    ServerFailureError,
)
from moneywise_ai.gateway.extraction import ResponseExtractor
from moneywise_ai.gateway.prompts import PromptBuilder

__all__ = [
    "CancellationToken",
    "GeminiClient",
    "MAX_ATTEMPTS",
    "PromptBuilder",
    "ResponseExtractor",
    # Errors
    "AIServiceError",
    "ClientFailureError",
    "DecodingFailureError",
    "InvalidConfigurationError",
    "InvalidCredentialError",
    "MissingCredentialError",
    "NetworkFailureError",
    "OperationCancelledError",
    "ServerFailureError",
]
