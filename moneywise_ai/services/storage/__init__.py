"""
Storage Services Package

Abstract record store interfaces plus an in-memory implementation.
The application's real store lives outside this package.
"""

from moneywise_ai.services.storage.interface import (
    AuditStorageInterface,
    ConversationStorageInterface,
    InsightStorageInterface,
    RecordStoreInterface,
    TransactionStorageInterface,
    UsageStorageInterface,
)
from moneywise_ai.services.storage.memory import InMemoryRecordStore

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "ConversationStorageInterface",
    "InsightStorageInterface",
    "RecordStoreInterface",
    "TransactionStorageInterface",
    "UsageStorageInterface",
    # In-memory implementation
    "InMemoryRecordStore",
]
