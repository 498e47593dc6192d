"""
Main Orchestrator for Moneywise AI

This module ties together all the components behind one facade,
AIService, covering:
1. Transaction parsing (text → prompt → Gemini → Transaction → confirm → save)
2. Chat (message + history → Gemini → persisted exchange)
3. Insights & analysis (transactions → dataset → Gemini → summary/answer)
4. Usage (token totals across every call)

DESIGN DECISION: The facade COMPOSES the services; it does not inherit
from them. There is exactly ONE GeminiClient and it is shared by every
service. The orchestrator enforces the boundaries:
- No transaction persists without an explicit save_transaction() call
- No analysis answers without a dataset taken from the record store
- Every step is audited
"""

from datetime import date, datetime
from typing import Callable, Optional, Sequence, Union
from uuid import UUID

import structlog

from moneywise_ai.audit import AuditLogger, setup_logging
from moneywise_ai.config import Settings, get_settings
from moneywise_ai.gateway import CancellationToken, GeminiClient, PromptBuilder
from moneywise_ai.models.finance import (
    Conversation,
    Insight,
    InsightPeriod,
    Transaction,
    UsageStats,
)
from moneywise_ai.models.gemini import InsightResult
from moneywise_ai.services import (
    ConversationService,
    InMemoryRecordStore,
    InsightService,
    RecordStoreInterface,
    TransactionParsingService,
    UsageTracker,
)

logger = structlog.get_logger(__name__)

ApiKeyProvider = Callable[[], Optional[str]]


class AIService:
    """
    Single entry point for every AI feature of the app.

    Thin: each method delegates to exactly one service. Errors from the
    gateway propagate unchanged; callers show `error.user_message`.
    """

    def __init__(
        self,
        client: GeminiClient,
        store: RecordStoreInterface,
        api_key_provider: ApiKeyProvider,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        app_settings = (settings or get_settings()).app
        prompts = PromptBuilder()
        clock_kwargs = {"clock": clock} if clock else {}

        self.client = client
        self.usage_tracker = UsageTracker(store)
        self.transactions = TransactionParsingService(
            client,
            store,
            api_key_provider,
            prompts=prompts,
            usage=self.usage_tracker,
            audit_logger=audit_logger,
            **clock_kwargs,
        )
        self.conversations = ConversationService(
            client,
            store,
            api_key_provider,
            prompts=prompts,
            usage=self.usage_tracker,
            audit_logger=audit_logger,
            history_window=app_settings.history_window,
            title_max_length=app_settings.title_max_length,
            **clock_kwargs,
        )
        self.insights = InsightService(
            client,
            store,
            api_key_provider,
            prompts=prompts,
            usage=self.usage_tracker,
            audit_logger=audit_logger,
            lookback_days=app_settings.analysis_lookback_days,
            **clock_kwargs,
        )

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def parse(
        self,
        text: str,
        now: Optional[datetime] = None,
        token: Optional[CancellationToken] = None,
    ) -> Transaction:
        """Free text → unsaved Transaction (the user confirms before save)."""
        return await self.transactions.extract(text, now=now, token=token)

    async def save_transaction(self, transaction: Transaction) -> bool:
        """Persist a transaction the user confirmed."""
        return await self.transactions.save(transaction)

    # -------------------------------------------------------------------------
    # Chat
    # -------------------------------------------------------------------------

    async def chat(
        self,
        message: str,
        conversation_id: Union[UUID, str, None] = None,
        token: Optional[CancellationToken] = None,
    ) -> tuple[str, str]:
        """Returns (reply, conversation_id)."""
        return await self.conversations.exchange(message, conversation_id, token)

    async def list_conversations(self) -> list[Conversation]:
        return await self.conversations.list_conversations()

    async def get_conversation(
        self,
        conversation_id: Union[UUID, str],
    ) -> Optional[Conversation]:
        return await self.conversations.get_conversation(conversation_id)

    async def delete_conversation(self, conversation_id: Union[UUID, str]) -> bool:
        return await self.conversations.delete_conversation(conversation_id)

    async def archive_conversation(self, conversation_id: Union[UUID, str]) -> bool:
        return await self.conversations.archive_conversation(conversation_id)

    # -------------------------------------------------------------------------
    # Insights & analysis
    # -------------------------------------------------------------------------

    async def analyze(
        self,
        question: str,
        token: Optional[CancellationToken] = None,
    ) -> str:
        return await self.insights.analyze(question, token)

    async def generate_insights(
        self,
        transactions: Sequence[Transaction],
        period_label: str,
        token: Optional[CancellationToken] = None,
    ) -> InsightResult:
        return await self.insights.summarize(transactions, period_label, token)

    async def store_insight(
        self,
        result: InsightResult,
        period: InsightPeriod,
        start_date: date,
        end_date: date,
    ) -> Insight:
        return await self.insights.store_insight(result, period, start_date, end_date)

    # -------------------------------------------------------------------------
    # Usage
    # -------------------------------------------------------------------------

    async def usage(self) -> UsageStats:
        return await self.usage_tracker.current()

    async def reset_usage(self) -> UsageStats:
        return await self.usage_tracker.reset()


def create_app_components(
    store: Optional[RecordStoreInterface] = None,
    api_key_provider: Optional[ApiKeyProvider] = None,
    client: Optional[GeminiClient] = None,
) -> tuple[AIService, RecordStoreInterface]:
    """
    Factory function to create all application components.

    Args:
        store: The application's record store.
              If None, an in-memory store is used.
        api_key_provider: Returns the current API key (or None).
              Defaults to reading GEMINI_API_KEY from settings.
        client: Pre-built GeminiClient (e.g. with a test session).

    Returns:
        (ai_service, store)
    """
    settings = get_settings()
    setup_logging(settings.app.effective_log_level)
    logger.info(
        "app_components_starting",
        environment=settings.app.app_environment,
        log_level=settings.app.effective_log_level,
    )

    if store is None:
        logger.warning("record_store_not_configured", fallback="in_memory")
        store = InMemoryRecordStore()

    if api_key_provider is None:
        def api_key_provider() -> Optional[str]:
            return settings.gemini.api_key

    client = client or GeminiClient(settings.gemini)
    audit_logger = AuditLogger(store)

    service = AIService(
        client,
        store,
        api_key_provider,
        audit_logger=audit_logger,
        settings=settings,
    )
    return service, store
