"""
Token usage tracking.

Every successful gateway call reports the prompt/candidate token counts
from the response's usageMetadata. They are accumulated into a single
UsageStats record so the user can see what the assistant is costing them.
"""

import structlog

from moneywise_ai.models.finance import UsageStats, utcnow
from moneywise_ai.models.gemini import GeminiTextResponse
from moneywise_ai.services.storage import UsageStorageInterface

logger = structlog.get_logger(__name__)


class UsageTracker:
    """Accumulates token counts in the record store."""

    def __init__(self, storage: UsageStorageInterface):
        self._storage = storage

    async def current(self) -> UsageStats:
        return await self._storage.usage_stats()

    async def record(self, input_tokens: int, output_tokens: int) -> UsageStats:
        """Add one call's token counts to the running totals."""
        stats = await self._storage.usage_stats()
        stats.input_tokens += max(input_tokens, 0)
        stats.output_tokens += max(output_tokens, 0)
        stats.total_calls += 1
        stats.date = utcnow()
        if not await self._storage.save_usage_stats(stats):
            logger.warning("usage_save_failed", total_calls=stats.total_calls)
        return stats

    async def record_response(self, response: GeminiTextResponse) -> UsageStats:
        return await self.record(response.input_tokens, response.output_tokens)

    async def reset(self) -> UsageStats:
        """Zero all counters."""
        stats = await self._storage.usage_stats()
        stats.input_tokens = 0
        stats.output_tokens = 0
        stats.total_calls = 0
        stats.date = utcnow()
        if not await self._storage.save_usage_stats(stats):
            logger.warning("usage_reset_failed")
        return stats
