"""
Audit Models for the Moneywise AI gateway

Every business operation that goes through the gateway leaves an audit
event behind. This provides:
1. Traceability of what the model was asked and what came back
2. Debugging information when the remote service misbehaves
3. A record of what was persisted on the user's behalf

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transaction parsing
    TRANSACTION_EXTRACTED = "transaction_extracted"
    TRANSACTION_SAVED = "transaction_saved"

    # Conversations
    CONVERSATION_CREATED = "conversation_created"
    MESSAGE_EXCHANGED = "message_exchanged"
    CONVERSATION_ARCHIVED = "conversation_archived"
    CONVERSATION_DELETED = "conversation_deleted"

    # Analytics
    ANALYSIS_ANSWERED = "analysis_answered"
    INSIGHT_GENERATED = "insight_generated"
    INSIGHT_REPLACED = "insight_replaced"

    # Persistence
    SAVE_FAILED = "save_failed"

    # Gateway
    AI_REQUEST_FAILED = "ai_request_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'conversation')"
    )
    entity_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_type: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "description": self.description,
            "details": self.details,
            "error_type": self.error_type,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_extracted(transaction_id, "Food", 0.9)
        event = AuditEventBuilder.conversation_created(conversation_id, "New Chat")
    """

    @staticmethod
    def transaction_extracted(
        transaction_id: UUID,
        category: str,
        confidence: float,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_EXTRACTED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction extracted with {confidence:.0%} confidence",
            details={
                "category": category,
                "confidence": confidence,
            },
        )

    @staticmethod
    def transaction_saved(transaction_id: UUID, amount: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_SAVED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction saved: {amount}",
            details={"amount": amount},
        )

    @staticmethod
    def conversation_created(conversation_id: UUID, title: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONVERSATION_CREATED,
            entity_type="conversation",
            entity_id=conversation_id,
            description=f"Conversation created: {title}",
        )

    @staticmethod
    def message_exchanged(
        conversation_id: UUID,
        history_size: int,
        input_tokens: int,
        output_tokens: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MESSAGE_EXCHANGED,
            entity_type="conversation",
            entity_id=conversation_id,
            description=f"Message exchanged with {history_size} messages of history",
            details={
                "history_size": history_size,
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
            },
        )

    @staticmethod
    def conversation_archived(conversation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONVERSATION_ARCHIVED,
            entity_type="conversation",
            entity_id=conversation_id,
            description="Conversation archived",
        )

    @staticmethod
    def conversation_deleted(conversation_id: UUID, message_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONVERSATION_DELETED,
            entity_type="conversation",
            entity_id=conversation_id,
            description=f"Conversation deleted with {message_count} messages",
            details={"message_count": message_count},
        )

    @staticmethod
    def analysis_answered(record_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ANALYSIS_ANSWERED,
            entity_type="analysis",
            description=f"Question answered from {record_count} transactions",
            details={"record_count": record_count},
        )

    @staticmethod
    def insight_generated(period_label: str, record_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHT_GENERATED,
            entity_type="insight",
            description=f"Insight generated for {period_label}",
            details={
                "period": period_label,
                "record_count": record_count,
            },
        )

    @staticmethod
    def insight_replaced(insight_id: UUID, replaced: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHT_REPLACED,
            entity_type="insight",
            entity_id=insight_id,
            description=f"Insight stored, {replaced} previous insight(s) removed",
            details={"replaced": replaced},
        )

    @staticmethod
    def save_failed(entity_type: str, entity_id: Optional[UUID]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Record store failed to save {entity_type}",
        )

    @staticmethod
    def ai_request_failed(
        operation: str,
        error: Exception,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_REQUEST_FAILED,
            severity=AuditSeverity.ERROR,
            description=f"AI request failed during {operation}",
            error_type=type(error).__name__,
            error_message=str(error),
            details={"operation": operation},
        )
