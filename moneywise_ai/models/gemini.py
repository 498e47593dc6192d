"""
Wire Models for the Gemini generateContent API

These models describe exactly what goes over the wire:

REQUEST:
    {"contents": [{"parts": [{"text": ...}]}],
     "generationConfig": {"responseMimeType": ...}}

SUCCESS:
    {"candidates": [{"content": {"parts": [{"text": ...}]}}],
     "usageMetadata": {"promptTokenCount": n, "candidatesTokenCount": n}}

ERROR:
    {"error": {"code": n, "message": ..., "status": ...}}

They also hold the structured records the model is asked to produce
(ExtractedTransaction, InsightResult). Those arrive embedded in free-form
text and are decoded by the ResponseExtractor.

DESIGN DECISION: Every field of ExtractedTransaction is optional.
The model may leave things out; defaults are applied by the
orchestration layer, never here.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel

from moneywise_ai.models.finance import TransactionType


# Accepted model date formats, in the order they are tried
_ISO_FRACTIONAL = "%Y-%m-%dT%H:%M:%S.%f%z"
_ISO_PLAIN = "%Y-%m-%dT%H:%M:%S%z"
_DATE_ONLY = "%Y-%m-%d"


def parse_model_date(value: str) -> datetime:
    """
    Parse a date string produced by the model.

    Tries, in order:
    1. ISO-8601 with fractional seconds ("2025-01-15T10:00:00.250Z")
    2. ISO-8601 without fractional seconds ("2025-01-15T10:00:00Z")
    3. Plain calendar date ("2025-01-15"), placed in the local timezone

    Raises:
        ValueError: naming the offending string if no format matches
    """
    text = value.strip()

    for fmt in (_ISO_FRACTIONAL, _ISO_PLAIN):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue

    try:
        # Naive midnight -> aware in the local timezone
        return datetime.strptime(text, _DATE_ONLY).astimezone()
    except ValueError:
        pass

    raise ValueError(f"Cannot decode date from '{value}'")


# =============================================================================
# REQUEST
# =============================================================================

class _WireModel(BaseModel):
    """Base for models whose JSON keys are camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ResponseFormat(str, Enum):
    """Response format hint sent with every request."""
    JSON = "application/json"
    TEXT = "text/plain"


class Part(_WireModel):
    text: str


class Content(_WireModel):
    parts: list[Part]


class GenerationConfig(_WireModel):
    response_mime_type: ResponseFormat


class RequestPayload(_WireModel):
    """
    A complete request body.

    Built by the PromptBuilder, serialized by the client.
    """
    contents: list[Content]
    generation_config: GenerationConfig

    @classmethod
    def from_text(cls, text: str, response_format: ResponseFormat) -> "RequestPayload":
        return cls(
            contents=[Content(parts=[Part(text=text)])],
            generation_config=GenerationConfig(response_mime_type=response_format),
        )

    @property
    def response_format(self) -> ResponseFormat:
        return self.generation_config.response_mime_type

    @property
    def prompt_text(self) -> str:
        """All text parts, in order, joined by newline."""
        return "\n".join(
            part.text for content in self.contents for part in content.parts
        )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# RESPONSE ENVELOPES
# =============================================================================

class ResponsePart(_WireModel):
    text: Optional[str] = None


class CandidateContent(_WireModel):
    parts: list[ResponsePart] = Field(default_factory=list)


class Candidate(_WireModel):
    content: CandidateContent = Field(default_factory=CandidateContent)


class UsageMetadata(_WireModel):
    prompt_token_count: Optional[int] = None
    candidates_token_count: Optional[int] = None


class GeminiTextResponse(_WireModel):
    """
    Raw success envelope.

    Only the first candidate is ever used.
    """
    candidates: list[Candidate] = Field(default_factory=list)
    usage_metadata: Optional[UsageMetadata] = None

    @property
    def text(self) -> str:
        """Text parts of the first candidate joined by newline."""
        if not self.candidates:
            return ""
        return "\n".join(
            part.text
            for part in self.candidates[0].content.parts
            if part.text is not None
        )

    @property
    def input_tokens(self) -> int:
        if self.usage_metadata is None:
            return 0
        return self.usage_metadata.prompt_token_count or 0

    @property
    def output_tokens(self) -> int:
        if self.usage_metadata is None:
            return 0
        return self.usage_metadata.candidates_token_count or 0


class GoogleErrorDetail(BaseModel):
    code: int
    message: str
    status: str = ""


class GoogleErrorResponse(BaseModel):
    """Error envelope returned with non-2xx statuses."""
    error: GoogleErrorDetail


# =============================================================================
# STRUCTURED RECORDS EMBEDDED IN MODEL TEXT
# =============================================================================

class ExtractedTransaction(BaseModel):
    """
    A transaction as described by the model.

    CRITICAL: This is PROPOSED data. Nothing here is persisted
    until the caller decides to save it.
    """
    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    amount: Optional[float] = None
    type: Optional[TransactionType] = None
    category: Optional[str] = None
    account: Optional[str] = None
    payment_method: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("payment_method", "paymentMethod"),
    )
    note: Optional[str] = None
    confidence: Optional[float] = None
    date: Optional[datetime] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: Optional[float]) -> Optional[float]:
        """Keep confidence inside [0, 1] whatever the model says."""
        if v is None:
            return v
        return min(max(v, 0.0), 1.0)

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, v):
        if isinstance(v, str):
            return parse_model_date(v)
        return v


class InsightResult(BaseModel):
    """Periodic spending summary produced by the model."""

    summary: str
    # 2-3 items expected, not enforced
    insights: list[str] = Field(default_factory=list)
