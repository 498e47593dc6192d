"""Services package."""

from moneywise_ai.services.conversation import (
    PLACEHOLDER_TITLE,
    ConversationService,
    build_prompt,
    make_title,
)
from moneywise_ai.services.insights import (
    InsightService,
    analysis_dataset,
    insight_dataset,
)
from moneywise_ai.services.storage import (
    AuditStorageInterface,
    ConversationStorageInterface,
    InMemoryRecordStore,
    InsightStorageInterface,
    RecordStoreInterface,
    TransactionStorageInterface,
    UsageStorageInterface,
)
from moneywise_ai.services.transaction_parsing import TransactionParsingService
from moneywise_ai.services.usage import UsageTracker

__all__ = [
    # Orchestration services
    "ConversationService",
    "InsightService",
    "TransactionParsingService",
    "UsageTracker",
    # Helpers
    "PLACEHOLDER_TITLE",
    "analysis_dataset",
    "build_prompt",
    "insight_dataset",
    "make_title",
    # Storage services
    "AuditStorageInterface",
    "ConversationStorageInterface",
    "InMemoryRecordStore",
    "InsightStorageInterface",
    "RecordStoreInterface",
    "TransactionStorageInterface",
    "UsageStorageInterface",
]
