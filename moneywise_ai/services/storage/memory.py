"""
In-memory record store.

Reference implementation of RecordStoreInterface used for tests and for
running the gateway without the application's real store. Everything is
copied on the way in and out so callers cannot mutate stored state
without going through a save.
"""

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
from moneywise_ai.services.storage.interface import RecordStoreInterface


class InMemoryRecordStore(RecordStoreInterface):
    """Dict-backed store. Set `fail_saves` to simulate a failing backend."""

    def __init__(self, fail_saves: bool = False):
        self.fail_saves = fail_saves
        self._categories: dict[str, SpendingCategory] = {}
        self._transactions: dict[UUID, Transaction] = {}
        self._conversations: dict[UUID, Conversation] = {}
        self._insights: dict[UUID, Insight] = {}
        self._usage: Optional[UsageStats] = None
        self._events: list[AuditEvent] = []

    # -------------------------------------------------------------------------
    # Categories & transactions
    # -------------------------------------------------------------------------

    async def category_named(
        self,
        name: str,
        type: TransactionType,
    ) -> SpendingCategory:
        existing = self._categories.get(name)
        if existing is not None:
            return existing.model_copy()
        category = SpendingCategory(name=name, type=type)
        self._categories[name] = category
        return category.model_copy()

    async def save_transaction(self, transaction: Transaction) -> bool:
        if self.fail_saves:
            return False
        self._transactions[transaction.id] = transaction.model_copy(deep=True)
        return True

    async def list_transactions(
        self,
        since: Optional[datetime] = None,
    ) -> list[Transaction]:
        transactions = [
            t.model_copy(deep=True)
            for t in self._transactions.values()
            if since is None or t.date >= since
        ]
        return sorted(transactions, key=lambda t: t.date)

    # -------------------------------------------------------------------------
    # Conversations
    # -------------------------------------------------------------------------

    async def get_conversation(self, conversation_id: UUID) -> Optional[Conversation]:
        conversation = self._conversations.get(conversation_id)
        return conversation.model_copy(deep=True) if conversation else None

    async def list_conversations(self) -> list[Conversation]:
        return [c.model_copy(deep=True) for c in self._conversations.values()]

    async def save_conversation(self, conversation: Conversation) -> bool:
        if self.fail_saves:
            return False
        stored = self._conversations.get(conversation.id)
        # Metadata only; messages go through add_message
        messages = stored.messages if stored else []
        self._conversations[conversation.id] = conversation.model_copy(
            deep=True, update={"messages": messages}
        )
        return True

    async def add_message(self, conversation_id: UUID, message: Message) -> bool:
        if self.fail_saves:
            return False
        stored = self._conversations.get(conversation_id)
        if stored is None:
            return False
        stored.messages.append(message.model_copy())
        return True

    async def delete_conversation(self, conversation_id: UUID) -> bool:
        return self._conversations.pop(conversation_id, None) is not None

    # -------------------------------------------------------------------------
    # Insights
    # -------------------------------------------------------------------------

    async def list_insights(
        self,
        period: Optional[InsightPeriod] = None,
    ) -> list[Insight]:
        insights = [
            i.model_copy(deep=True)
            for i in self._insights.values()
            if period is None or i.period == period
        ]
        return sorted(insights, key=lambda i: i.generated_at, reverse=True)

    async def save_insight(self, insight: Insight) -> bool:
        if self.fail_saves:
            return False
        self._insights[insight.id] = insight.model_copy(deep=True)
        return True

    async def delete_insight(self, insight_id: UUID) -> bool:
        return self._insights.pop(insight_id, None) is not None

    # -------------------------------------------------------------------------
    # Usage
    # -------------------------------------------------------------------------

    async def usage_stats(self) -> UsageStats:
        if self._usage is None:
            self._usage = UsageStats()
        return self._usage.model_copy()

    async def save_usage_stats(self, stats: UsageStats) -> bool:
        if self.fail_saves:
            return False
        self._usage = stats.model_copy()
        return True

    # -------------------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------------------

    async def append_event(self, event: AuditEvent) -> bool:
        if self.fail_saves:
            return False
        self._events.append(event)
        return True

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
