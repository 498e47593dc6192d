"""
Core Domain Models for Moneywise

These are the records the gateway hands back to the application and the
records it reads from / writes to the external record store.

DESIGN DECISION: The gateway never owns persistence.
These models are plain values; the record store decides how they are kept.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"

    @property
    def label(self) -> str:
        """Prefix used when rendering history for the model."""
        return self.value.capitalize()


class InsightPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class SpendingCategory(BaseModel):
    """A user-visible spending/income category."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    icon: str = "❓"
    color_hex: str = "#94A3B8"
    type: TransactionType = TransactionType.EXPENSE


class Transaction(BaseModel):
    """
    A financial record.

    Produced (unsaved) by the transaction parsing flow.
    The caller decides whether to persist it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    amount: Decimal = Field(default=Decimal("0"))
    type: TransactionType = TransactionType.EXPENSE
    category: Optional[SpendingCategory] = None
    account: str = "Cash"
    date: datetime = Field(default_factory=utcnow)
    note: str = ""
    payment_method: str = "Cash"
    is_ai_generated: bool = False
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)

    @property
    def category_name(self) -> str:
        return self.category.name if self.category else "Uncategorized"


# =============================================================================
# CONVERSATIONS
# =============================================================================

class Message(BaseModel):
    """One turn of a conversation. Owned by exactly one Conversation."""

    id: UUID = Field(default_factory=uuid4)
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utcnow)
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)

    def render(self) -> str:
        return f"{self.role.label}: {self.content}"


class Conversation(BaseModel):
    """
    A persisted, ordered thread of messages.

    INVARIANTS:
    - Messages are always read in ascending timestamp order
    - updated_at only moves forward
    """

    id: UUID = Field(default_factory=uuid4)
    title: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    is_archived: bool = False
    messages: list[Message] = Field(default_factory=list)

    @property
    def sorted_messages(self) -> list[Message]:
        # sorted() is stable: same-timestamp messages keep insertion order
        return sorted(self.messages, key=lambda m: m.timestamp)

    def recent_messages(self, limit: int) -> list[Message]:
        """The last `limit` messages, oldest first."""
        if limit <= 0:
            return []
        return self.sorted_messages[-limit:]

    def touch(self, at: datetime) -> None:
        """Advance updated_at to `at`; an earlier value is ignored."""
        if at > self.updated_at:
            self.updated_at = at


# =============================================================================
# INSIGHTS & USAGE
# =============================================================================

class Insight(BaseModel):
    """
    A cached AI insight for one logical period.

    Regeneration is "latest wins": the previous insight for the same
    period is removed before a new one is stored.
    """

    id: UUID = Field(default_factory=uuid4)
    period: InsightPeriod
    start_date: date
    end_date: date
    summary: str
    consumption_insights: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utcnow)


class UsageStats(BaseModel):
    """Cumulative token usage across all gateway calls."""

    id: UUID = Field(default_factory=uuid4)
    date: datetime = Field(default_factory=utcnow)
    input_tokens: int = Field(default=0, ge=0)
    output_tokens: int = Field(default=0, ge=0)
    total_calls: int = Field(default=0, ge=0)
