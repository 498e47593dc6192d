"""
Response Extractor

Turns raw response bytes into typed records.

The model is ASKED for raw JSON but does not always comply. Observed
variations we tolerate:
- the JSON wrapped in a ```json ... ``` (or bare ``` ... ```) fence
- the JSON surrounded by prose ("Sure! Here is the result: {...}")

Anything we cannot recover becomes a DecodingFailureError.
We never guess at missing values here; defaults belong to the caller.
"""

import re
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from moneywise_ai.gateway.errors import DecodingFailureError
from moneywise_ai.models.gemini import GeminiTextResponse, parse_model_date

T = TypeVar("T", bound=BaseModel)

# First fenced block, with or without a language tag
_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
# First "{" through last "}"
_BRACE_SPAN = re.compile(r"\{.*\}", re.DOTALL)


class ResponseExtractor:
    """Stateless helpers for pulling data out of model responses."""

    @staticmethod
    def parse_envelope(data: bytes) -> GeminiTextResponse:
        """Decode the success envelope returned by generateContent."""
        try:
            return GeminiTextResponse.model_validate_json(data)
        except (ValidationError, ValueError) as e:
            raise DecodingFailureError(
                details={"stage": "envelope", "reason": str(e)}
            ) from e

    @staticmethod
    def text(raw: GeminiTextResponse) -> str:
        """First candidate's text parts joined by newline ("" if none)."""
        return raw.text

    @staticmethod
    def extract_json(text: str) -> str:
        """
        Locate the JSON object embedded in model text.

        Order of preference:
        1. first fenced code block
        2. largest brace-delimited span
        """
        if not text or not text.strip():
            raise DecodingFailureError(details={"stage": "locate", "reason": "empty response"})

        fenced = _FENCED_BLOCK.search(text)
        if fenced:
            return fenced.group(1).strip()

        braces = _BRACE_SPAN.search(text)
        if braces:
            return braces.group(0).strip()

        raise DecodingFailureError(
            details={"stage": "locate", "reason": "no JSON object found"}
        )

    @classmethod
    def decode(cls, text: str, model_cls: type[T]) -> T:
        """Locate the embedded JSON and validate it into `model_cls`."""
        json_str = cls.extract_json(text)
        try:
            return model_cls.model_validate_json(json_str)
        except (ValidationError, ValueError) as e:
            raise DecodingFailureError(
                details={
                    "stage": "decode",
                    "target": model_cls.__name__,
                    "reason": str(e),
                }
            ) from e

    @classmethod
    def decode_response(cls, data: bytes, model_cls: type[T]) -> T:
        """Envelope -> text -> embedded JSON -> `model_cls`."""
        return cls.decode(cls.text(cls.parse_envelope(data)), model_cls)


__all__ = ["ResponseExtractor", "parse_model_date"]
