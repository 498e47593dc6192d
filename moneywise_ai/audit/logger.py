"""
Audit Logger

DESIGN DECISION: Every business operation that goes through the AI
gateway is logged. This provides:
1. Traceability of what was extracted, answered and persisted
2. Debugging capability when the remote model misbehaves
3. A usage history the user can inspect

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (never crashes the app if logging fails)
- Always logs locally through structlog; persists only if a store is given
"""

import logging
import sys
from typing import TYPE_CHECKING, Optional
from uuid import UUID

import structlog

from moneywise_ai.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity

if TYPE_CHECKING:
    from moneywise_ai.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def setup_logging(level: str = "INFO") -> None:
    """Route stdlib (and therefore structlog) output to stdout at `level`."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The record store's audit log, if one is configured
    """

    def __init__(
        self,
        storage: Optional["AuditStorageInterface"] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("moneywise_ai.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                stored = await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False
            if not stored:
                self._logger.warning(
                    "audit_storage_rejected",
                    event_id=str(event.event_id),
                )
            return stored

        return True

    async def log_transaction_extracted(
        self,
        transaction_id: UUID,
        category: str,
        confidence: float,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_extracted(
            transaction_id=transaction_id,
            category=category,
            confidence=confidence,
        ))

    async def log_transaction_saved(self, transaction_id: UUID, amount: str) -> None:
        await self.log(AuditEventBuilder.transaction_saved(transaction_id, amount))

    async def log_conversation_created(self, conversation_id: UUID, title: str) -> None:
        await self.log(AuditEventBuilder.conversation_created(conversation_id, title))

    async def log_message_exchanged(
        self,
        conversation_id: UUID,
        history_size: int,
        input_tokens: int,
        output_tokens: int,
    ) -> None:
        await self.log(AuditEventBuilder.message_exchanged(
            conversation_id=conversation_id,
            history_size=history_size,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        ))

    async def log_conversation_archived(self, conversation_id: UUID) -> None:
        await self.log(AuditEventBuilder.conversation_archived(conversation_id))

    async def log_conversation_deleted(
        self,
        conversation_id: UUID,
        message_count: int,
    ) -> None:
        await self.log(AuditEventBuilder.conversation_deleted(conversation_id, message_count))

    async def log_analysis_answered(self, record_count: int) -> None:
        await self.log(AuditEventBuilder.analysis_answered(record_count))

    async def log_insight_generated(self, period_label: str, record_count: int) -> None:
        await self.log(AuditEventBuilder.insight_generated(period_label, record_count))

    async def log_insight_replaced(self, insight_id: UUID, replaced: int) -> None:
        await self.log(AuditEventBuilder.insight_replaced(insight_id, replaced))

    async def log_save_failed(
        self,
        entity_type: str,
        entity_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.save_failed(entity_type, entity_id))

    async def log_request_failed(self, operation: str, error: Exception) -> None:
        await self.log(AuditEventBuilder.ai_request_failed(operation, error))
