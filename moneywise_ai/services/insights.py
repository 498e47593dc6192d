"""
Insight Service

Two read-only uses of the user's transactions:
- summarize(): a structured {summary, insights[]} for one period
- analyze(): a free-text answer to an ad-hoc question

Plus the insight cache: store_insight() keeps ONE insight per period
type ("latest wins").
"""

from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence

from moneywise_ai.audit import AuditLogger
from moneywise_ai.gateway import (
    AIServiceError,
    CancellationToken,
    GeminiClient,
    PromptBuilder,
    ResponseExtractor,
)
from moneywise_ai.models.finance import Insight, InsightPeriod, Transaction, utcnow
from moneywise_ai.models.gemini import InsightResult
from moneywise_ai.services.storage import RecordStoreInterface
from moneywise_ai.services.usage import UsageTracker

DEFAULT_LOOKBACK_DAYS = 365


def insight_dataset(transactions: Sequence[Transaction]) -> str:
    """One line per record: `YYYY-MM-DD: category - amount (note)`."""
    return "\n".join(
        f"{t.date.strftime('%Y-%m-%d')}: {t.category_name} - {t.amount} ({t.note})"
        for t in transactions
    )


def analysis_dataset(transactions: Sequence[Transaction]) -> str:
    """One line per record: `YYYY-MM-DD: note - amount`."""
    return "\n".join(
        f"{t.date.strftime('%Y-%m-%d')}: {t.note} - {t.amount}"
        for t in transactions
    )


class InsightService:
    """Period summaries, free-form analysis and the insight cache."""

    def __init__(
        self,
        client: GeminiClient,
        storage: RecordStoreInterface,
        api_key_provider: Callable[[], Optional[str]],
        prompts: Optional[PromptBuilder] = None,
        usage: Optional[UsageTracker] = None,
        audit_logger: Optional[AuditLogger] = None,
        lookback_days: int = DEFAULT_LOOKBACK_DAYS,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._client = client
        self._storage = storage
        self._api_key_provider = api_key_provider
        self._prompts = prompts or PromptBuilder()
        self._usage = usage
        self._audit_logger = audit_logger
        self._lookback_days = lookback_days
        self._clock = clock

    async def summarize(
        self,
        transactions: Sequence[Transaction],
        period_label: str,
        token: Optional[CancellationToken] = None,
    ) -> InsightResult:
        """
        Ask for a structured summary of `transactions`.

        The caller pre-filters the records to the period; `period_label`
        is only a human-readable description ("January 2025").

        Raises:
            DecodingFailureError: the reply held no decodable object
            AIServiceError: any other gateway failure, tagged with the
                operation and otherwise unchanged
        """
        payload = self._prompts.insight(period_label, insight_dataset(transactions))

        try:
            data = await self._client.send(payload, self._api_key_provider(), token)
            envelope = ResponseExtractor.parse_envelope(data)
            if self._usage:
                await self._usage.record_response(envelope)
            result = ResponseExtractor.decode(envelope.text, InsightResult)
        except AIServiceError as e:
            e.details.setdefault("operation", "insight_generation")
            if self._audit_logger:
                await self._audit_logger.log_request_failed("insight_generation", e)
            raise

        if self._audit_logger:
            await self._audit_logger.log_insight_generated(period_label, len(transactions))

        return result

    async def analyze(
        self,
        question: str,
        token: Optional[CancellationToken] = None,
    ) -> str:
        """Answer `question` from the last `lookback_days` of transactions."""
        since = self._clock() - timedelta(days=self._lookback_days)
        transactions = await self._storage.list_transactions(since=since)

        payload = self._prompts.analysis(question, analysis_dataset(transactions))
        try:
            data = await self._client.send(payload, self._api_key_provider(), token)
            envelope = ResponseExtractor.parse_envelope(data)
        except AIServiceError as e:
            e.details.setdefault("operation", "analysis")
            if self._audit_logger:
                await self._audit_logger.log_request_failed("analysis", e)
            raise

        if self._usage:
            await self._usage.record_response(envelope)

        if self._audit_logger:
            await self._audit_logger.log_analysis_answered(len(transactions))

        return envelope.text

    async def store_insight(
        self,
        result: InsightResult,
        period: InsightPeriod,
        start_date: date,
        end_date: date,
    ) -> Insight:
        """
        Cache `result` as the insight for `period`.

        Any previously cached insight of the same period type is removed
        first. A failed save is logged and the unsaved Insight returned.
        """
        existing = await self._storage.list_insights(period=period)
        for old in existing:
            await self._storage.delete_insight(old.id)

        insight = Insight(
            period=period,
            start_date=start_date,
            end_date=end_date,
            summary=result.summary,
            consumption_insights=list(result.insights),
            generated_at=self._clock(),
        )

        saved = await self._storage.save_insight(insight)
        if self._audit_logger:
            if saved:
                await self._audit_logger.log_insight_replaced(insight.id, len(existing))
            else:
                await self._audit_logger.log_save_failed("insight", insight.id)

        return insight
