"""
Shared fixtures.

No real network calls: the HTTP session and the backoff sleep are
injected into GeminiClient and scripted per test.
"""

import json
from datetime import datetime, timezone
from typing import Optional, Union

import pytest
import requests

from moneywise_ai.audit import AuditLogger
from moneywise_ai.config import GeminiSettings
from moneywise_ai.gateway import GeminiClient
from moneywise_ai.services import InMemoryRecordStore


FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
TEST_API_KEY = "test-key"


def envelope(
    text: str,
    prompt_tokens: Optional[int] = 12,
    candidate_tokens: Optional[int] = 34,
) -> bytes:
    """A generateContent success body carrying `text`."""
    body = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    if prompt_tokens is not None or candidate_tokens is not None:
        body["usageMetadata"] = {
            "promptTokenCount": prompt_tokens,
            "candidatesTokenCount": candidate_tokens,
        }
    return json.dumps(body).encode("utf-8")


def error_body(code: int, message: str, status: str = "") -> bytes:
    """A Google error envelope."""
    return json.dumps(
        {"error": {"code": code, "message": message, "status": status}}
    ).encode("utf-8")


class FakeResponse:
    def __init__(self, status_code: int, content: bytes = b""):
        self.status_code = status_code
        self.content = content


class FakeSession:
    """
    Stands in for requests.Session.

    Each queued item is either a FakeResponse or an exception to raise.
    The last item is repeated once the queue runs dry.
    """

    def __init__(self, *responses: Union[FakeResponse, Exception]):
        self._responses = list(responses)
        self.calls: list[dict] = []

    def queue(self, *responses: Union[FakeResponse, Exception]) -> None:
        self._responses.extend(responses)

    def post(self, url, headers=None, data=None, timeout=None, proxies=None):
        self.calls.append({
            "url": url,
            "headers": headers,
            "data": data,
            "timeout": timeout,
            "proxies": proxies,
        })
        if len(self._responses) > 1:
            item = self._responses.pop(0)
        else:
            item = self._responses[0]
        if isinstance(item, Exception):
            raise item
        return item

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def sent_payload(self, index: int = -1) -> dict:
        return json.loads(self.calls[index]["data"])

    def sent_prompt(self, index: int = -1) -> str:
        payload = self.sent_payload(index)
        return payload["contents"][0]["parts"][0]["text"]


class SleepRecorder:
    """Async sleep replacement that records delays instead of waiting."""

    def __init__(self, on_sleep=None):
        self.delays: list[float] = []
        self._on_sleep = on_sleep

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        if self._on_sleep:
            self._on_sleep(seconds)


def make_settings(**overrides) -> GeminiSettings:
    values = {
        "api_key": TEST_API_KEY,
        "base_url": "https://generativelanguage.googleapis.com",
        "model_name": "gemini-2.5-flash",
        "request_timeout": 60,
    }
    values.update(overrides)
    return GeminiSettings(_env_file=None, **values)


def make_client(session: FakeSession, sleep: Optional[SleepRecorder] = None, **overrides) -> GeminiClient:
    return GeminiClient(
        settings=make_settings(**overrides),
        session=session,
        sleep=sleep or SleepRecorder(),
    )


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def audit_logger(store):
    return AuditLogger(store)


@pytest.fixture
def connection_error():
    return requests.exceptions.ConnectionError("connection refused")
