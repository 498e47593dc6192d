"""
Transaction Parsing Service

Turns free text ("spent $30 on lunch yesterday") into a Transaction.

FLOW:
1. Build the extraction prompt (relative dates resolved against `now`)
2. Send through the GeminiClient (retried, cancellable)
3. Pull the embedded JSON out of the reply
4. Apply defaults for everything the model left out
5. Resolve the category in the record store (lookup-or-create)

BOUNDARIES:
- NEVER persists the transaction; the caller decides (see save())
- NEVER re-classifies gateway errors; they propagate unchanged
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from moneywise_ai.audit import AuditLogger
from moneywise_ai.gateway import (
    AIServiceError,
    CancellationToken,
    GeminiClient,
    PromptBuilder,
    ResponseExtractor,
)
from moneywise_ai.models.finance import Transaction, TransactionType, utcnow
from moneywise_ai.models.gemini import ExtractedTransaction
from moneywise_ai.services.storage import TransactionStorageInterface
from moneywise_ai.services.usage import UsageTracker

# Defaults for fields the model did not supply
DEFAULT_CATEGORY = "Uncategorized"
DEFAULT_ACCOUNT = "Cash"
DEFAULT_CONFIDENCE = 0.5


class TransactionParsingService:
    """Free text -> unsaved Transaction."""

    def __init__(
        self,
        client: GeminiClient,
        storage: TransactionStorageInterface,
        api_key_provider: Callable[[], Optional[str]],
        prompts: Optional[PromptBuilder] = None,
        usage: Optional[UsageTracker] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._client = client
        self._storage = storage
        self._api_key_provider = api_key_provider
        self._prompts = prompts or PromptBuilder()
        self._usage = usage
        self._audit_logger = audit_logger
        self._clock = clock

    async def extract(
        self,
        text: str,
        now: Optional[datetime] = None,
        token: Optional[CancellationToken] = None,
    ) -> Transaction:
        """
        Parse `text` into a Transaction with defaults applied.

        Args:
            text: Natural language description of one transaction
            now: Reference time for relative dates; defaults to the clock
                and is taken as UTC when naive
            token: Optional cancellation token

        Returns:
            An unsaved Transaction

        Raises:
            AIServiceError: any gateway failure, tagged with the
                operation and otherwise unchanged
        """
        now = now or self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        payload = self._prompts.extraction(text, now)

        try:
            data = await self._client.send(payload, self._api_key_provider(), token)
            envelope = ResponseExtractor.parse_envelope(data)
            if self._usage:
                await self._usage.record_response(envelope)
            parsed = ResponseExtractor.decode(envelope.text, ExtractedTransaction)
        except AIServiceError as e:
            e.details.setdefault("operation", "transaction_extraction")
            if self._audit_logger:
                await self._audit_logger.log_request_failed("transaction_extraction", e)
            raise

        transaction = await self.to_transaction(parsed, now)

        if self._audit_logger:
            await self._audit_logger.log_transaction_extracted(
                transaction_id=transaction.id,
                category=transaction.category_name,
                confidence=transaction.confidence,
            )

        return transaction

    async def to_transaction(
        self,
        parsed: ExtractedTransaction,
        now: datetime,
    ) -> Transaction:
        """Apply defaults and resolve the category."""
        transaction_type = parsed.type or TransactionType.EXPENSE
        category = await self._storage.category_named(
            parsed.category or DEFAULT_CATEGORY,
            transaction_type,
        )
        account = parsed.account or DEFAULT_ACCOUNT
        amount = Decimal(str(parsed.amount)) if parsed.amount is not None else Decimal("0")

        return Transaction(
            amount=amount,
            type=transaction_type,
            category=category,
            account=account,
            date=parsed.date or now,
            note=parsed.note or "",
            payment_method=parsed.payment_method or account,
            is_ai_generated=True,
            confidence=(
                parsed.confidence
                if parsed.confidence is not None
                else DEFAULT_CONFIDENCE
            ),
        )

    async def save(self, transaction: Transaction) -> bool:
        """
        Persist a transaction the user accepted.

        Store failures are logged, not raised.
        """
        saved = await self._storage.save_transaction(transaction)
        if self._audit_logger:
            if saved:
                await self._audit_logger.log_transaction_saved(
                    transaction.id, str(transaction.amount)
                )
            else:
                await self._audit_logger.log_save_failed("transaction", transaction.id)
        return saved
