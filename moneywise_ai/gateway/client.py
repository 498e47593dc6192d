"""
Gemini REST client with classification, retry and cancellation.

This is the ONLY place that talks to the network and the ONLY place
where failures are classified. Everything above it receives either the
response bytes or one of the errors in errors.py.

RETRY POLICY (max 3 attempts total):

| Classification      | Backoff before next attempt |
|---------------------|-----------------------------|
| ServerFailure (5xx) | 1s, 2s, 4s  (2^(attempt-1)) |
| ClientFailure(429)  | 2s, 4s, 8s  (2^attempt)     |
| anything else       | none - raised immediately   |

Network failures (timeouts, unreachable host) are classified but NOT
retried: the caller sees them on the first occurrence.

CANCELLATION is checked immediately before each attempt and immediately
after each backoff sleep. A request already on the wire is not
interrupted, but if it fails after the token was set the caller sees
OperationCancelledError rather than the classified failure.

When retries run out, the error from the final attempt is raised.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlparse

import requests
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)

from moneywise_ai.config import GeminiSettings, get_settings
from moneywise_ai.gateway.cancellation import CancellationToken
from moneywise_ai.gateway.errors import (
    AIServiceError,
    ClientFailureError,
    InvalidConfigurationError,
    InvalidCredentialError,
    MissingCredentialError,
    NetworkFailureError,
    OperationCancelledError,
    ServerFailureError,
)
from moneywise_ai.models.gemini import GoogleErrorResponse, RequestPayload

logger = structlog.get_logger(__name__)

MAX_ATTEMPTS = 3
API_KEY_HEADER = "x-goog-api-key"

SleepFunc = Callable[[float], Awaitable[Any]]


def is_retryable(error: BaseException) -> bool:
    """Only 5xx and 429 are worth another attempt."""
    if isinstance(error, ServerFailureError):
        return True
    return isinstance(error, ClientFailureError) and error.is_rate_limited


def backoff_seconds(retry_state: RetryCallState) -> float:
    """
    Delay before the next attempt.

    `attempt_number` is the attempt that just failed (1-based).
    """
    attempt = retry_state.attempt_number
    error = retry_state.outcome.exception() if retry_state.outcome else None
    if isinstance(error, ClientFailureError) and error.is_rate_limited:
        return float(2 ** attempt)
    return float(2 ** (attempt - 1))


def classify_status(status_code: int, body: bytes) -> AIServiceError:
    """Map a non-2xx response onto the error taxonomy."""
    message = _error_message(body)

    if status_code == 400:
        if "API_KEY_INVALID" in message:
            return InvalidCredentialError(details={"status_code": 400})
        return ClientFailureError(400, message)
    if status_code in (401, 403):
        return InvalidCredentialError(details={"status_code": status_code})
    if status_code == 404:
        return ClientFailureError(404, f"Model not found or invalid endpoint. {message}")
    if status_code == 429:
        return ClientFailureError(429, "Rate limit exceeded. Please try again later.")
    if 500 <= status_code < 600:
        return ServerFailureError(status_code, details={"body": message})
    return ClientFailureError(status_code, message)


def classify_transport_error(error: requests.exceptions.RequestException) -> NetworkFailureError:
    """Map a requests exception onto NetworkFailureError(kind)."""
    if isinstance(error, requests.exceptions.Timeout):
        kind = "Request Timed Out"
    elif isinstance(error, requests.exceptions.ConnectionError):
        kind = "Host Unreachable"
    else:
        kind = str(error) or type(error).__name__
    return NetworkFailureError(kind, details={"error": str(error)})


def _error_message(body: bytes) -> str:
    """Prefer the Google error envelope, then raw text."""
    if not body:
        return "Unknown Error"
    try:
        return GoogleErrorResponse.model_validate_json(body).error.message
    except ValueError:
        pass
    text = body.decode("utf-8", errors="replace").strip()
    return text or "Unknown Error"


class GeminiClient:
    """
    Transport for the generateContent endpoint.

    Holds no per-call state, so one instance is shared by every
    orchestration service and may be used concurrently; each call
    carries its own CancellationToken.

    The single requests.Session is used from asyncio.to_thread workers.
    This relies on urllib3's connection pool being thread-safe, so nothing
    is ever set on the session itself: headers, timeout and proxies are
    passed with each post().
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        session: Optional[requests.Session] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self._settings = settings or get_settings().gemini
        self._session = session or requests.Session()
        self._sleep = sleep

    @property
    def endpoint(self) -> str:
        """
        Full generateContent URL.

        Raises:
            InvalidConfigurationError: base URL has no http(s) scheme or host
        """
        host = self._settings.base_url.strip()
        if host.endswith("/"):
            host = host[:-1]
        parsed = urlparse(host)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidConfigurationError(
                f"Invalid URL configuration: {host}",
                details={"base_url": self._settings.base_url},
            )
        return f"{host}/v1beta/models/{self._settings.model_name}:generateContent"

    async def send(
        self,
        payload: RequestPayload,
        api_key: Optional[str],
        token: Optional[CancellationToken] = None,
    ) -> bytes:
        """
        Send `payload` and return the raw response body.

        Raises:
            MissingCredentialError: no API key
            InvalidConfigurationError: unusable base URL
            OperationCancelledError: token observed at a checkpoint
            AIServiceError: the classified failure of the last attempt
        """
        if not api_key or not api_key.strip():
            raise MissingCredentialError()

        token = token or CancellationToken()
        url = self.endpoint
        body = json.dumps(payload.to_wire())

        async def backoff(seconds: float) -> None:
            await self._sleep(seconds)
            # Checkpoint 2: right after the delay
            token.check_cancellation()

        retrying = AsyncRetrying(
            stop=stop_after_attempt(MAX_ATTEMPTS),
            wait=backoff_seconds,
            retry=retry_if_exception(is_retryable),
            sleep=backoff,
            before_sleep=self._log_backoff,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    # Checkpoint 1: right before the attempt
                    token.check_cancellation()
                    logger.debug(
                        "gemini_attempt",
                        attempt=attempt.retry_state.attempt_number,
                        response_format=payload.response_format.value,
                    )
                    return await asyncio.to_thread(self._post, url, body, api_key)
        except AIServiceError as e:
            logger.warning(
                "gemini_request_failed",
                error_type=type(e).__name__,
                error=e.message,
            )
            # Cancellation outranks whatever the last attempt returned
            if token.is_cancelling and not isinstance(e, OperationCancelledError):
                raise OperationCancelledError(
                    details={"superseded": type(e).__name__}
                ) from e
            raise

    def _post(self, url: str, body: str, api_key: str) -> bytes:
        """One blocking HTTP attempt. Runs in a worker thread."""
        headers = {
            "Content-Type": "application/json",
            API_KEY_HEADER: api_key,
        }
        try:
            response = self._session.post(
                url,
                headers=headers,
                data=body,
                timeout=self._settings.request_timeout,
                proxies=self._settings.proxies,
            )
        except requests.exceptions.RequestException as e:
            raise classify_transport_error(e) from e

        if 200 <= response.status_code < 300:
            return response.content

        raise classify_status(response.status_code, response.content)

    @staticmethod
    def _log_backoff(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.info(
            "gemini_retry_scheduled",
            attempt=retry_state.attempt_number,
            delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error_type=type(error).__name__ if error else None,
        )
