"""
Data Models Package

Wire models for the Gemini API, domain records handed to the application,
and audit events.
"""

from moneywise_ai.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from moneywise_ai.models.finance import (
    Conversation,
    Insight,
    InsightPeriod,
    Message,
    MessageRole,
    SpendingCategory,
    Transaction,
    TransactionType,
    UsageStats,
)
from moneywise_ai.models.gemini import (
    ExtractedTransaction,
    GeminiTextResponse,
    GoogleErrorResponse,
    InsightResult,
    RequestPayload,
    ResponseFormat,
    parse_model_date,
)

__all__ = [
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
    # Domain models
    "Conversation",
    "Insight",
    "InsightPeriod",
    "Message",
    "MessageRole",
    "SpendingCategory",
    "Transaction",
    "TransactionType",
    "UsageStats",
    # Wire models
    "ExtractedTransaction",
    "GeminiTextResponse",
    "GoogleErrorResponse",
    "InsightResult",
    "RequestPayload",
    "ResponseFormat",
    "parse_model_date",
]
