"""
Abstract Record Store Interface

DESIGN DECISION: The gateway does not own persistence. It talks to the
application's record store through these interfaces only. This allows us to:
1. Plug in whatever engine the application uses
2. Use in-memory storage for testing
3. Keep gateway logic decoupled from storage implementation

CONTRACT for every save/delete operation:
- returns True on success, False on failure
- NEVER raises; the caller logs the failure and carries on
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from moneywise_ai.models.audit import AuditEvent
from moneywise_ai.models.finance import (
    Conversation,
    Insight,
    InsightPeriod,
    Message,
    SpendingCategory,
    Transaction,
    TransactionType,
    UsageStats,
)


class TransactionStorageInterface(ABC):
    """Categories and transactions."""

    @abstractmethod
    async def category_named(
        self,
        name: str,
        type: TransactionType,
    ) -> SpendingCategory:
        """
        Look up a category by exact name, creating it if absent.

        Args:
            name: Exact category name
            type: Type used when the category has to be created

        Returns:
            The existing or newly created category
        """
        pass

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> bool:
        """Persist a transaction."""
        pass

    @abstractmethod
    async def list_transactions(
        self,
        since: Optional[datetime] = None,
    ) -> list[Transaction]:
        """
        List transactions, optionally only those dated on/after `since`.

        Returns:
            Transactions in ascending date order
        """
        pass


class ConversationStorageInterface(ABC):
    """Conversations and their messages."""

    @abstractmethod
    async def get_conversation(self, conversation_id: UUID) -> Optional[Conversation]:
        """
        Fetch a conversation with all its messages.

        Returns:
            The conversation if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_conversations(self) -> list[Conversation]:
        """All conversations, archived ones included, in no particular order."""
        pass

    @abstractmethod
    async def save_conversation(self, conversation: Conversation) -> bool:
        """Insert or update conversation metadata (title, timestamps, archived)."""
        pass

    @abstractmethod
    async def add_message(self, conversation_id: UUID, message: Message) -> bool:
        """Append a message to an existing conversation."""
        pass

    @abstractmethod
    async def delete_conversation(self, conversation_id: UUID) -> bool:
        """Delete a conversation and, with it, all of its messages."""
        pass


class InsightStorageInterface(ABC):
    """Cached AI insights."""

    @abstractmethod
    async def list_insights(
        self,
        period: Optional[InsightPeriod] = None,
    ) -> list[Insight]:
        """Cached insights, newest first, optionally for one period type."""
        pass

    @abstractmethod
    async def save_insight(self, insight: Insight) -> bool:
        pass

    @abstractmethod
    async def delete_insight(self, insight_id: UUID) -> bool:
        pass


class UsageStorageInterface(ABC):
    """Cumulative token usage."""

    @abstractmethod
    async def usage_stats(self) -> UsageStats:
        """The single usage record, created on first access."""
        pass

    @abstractmethod
    async def save_usage_stats(self, stats: UsageStats) -> bool:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        pass

    @abstractmethod
    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Most recent audit events, newest first."""
        pass


class RecordStoreInterface(
    TransactionStorageInterface,
    ConversationStorageInterface,
    InsightStorageInterface,
    UsageStorageInterface,
    AuditStorageInterface,
):
    """Everything the gateway needs from the application's record store."""
