from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from tokencasino.config import settings
from tokencasino.core.ledger import LedgerService
from tokencasino.core.logger import get_logger
from tokencasino.core.registry import RoundRegistry

logger = get_logger("scheduler")


class SettlementScheduler:
    """Background jobs: retry failed settlements and clear out stale rounds."""

    def __init__(self, ledger: LedgerService, registry: RoundRegistry, retry_seconds: int = None):
        self.ledger = ledger
        self.registry = registry
        self.retry_seconds = retry_seconds or settings.economy.settlement_retry_seconds
        self.scheduler = AsyncIOScheduler()

    def start(self):
        # 1. Retry credits that failed after their round settled
        self.scheduler.add_job(
            self.retry_settlements,
            IntervalTrigger(seconds=self.retry_seconds),
            id="retry_settlements",
            replace_existing=True,
        )

        # 2. Drop abandoned rounds every minute
        self.scheduler.add_job(
            self.sweep_rounds,
            IntervalTrigger(minutes=1),
            id="sweep_rounds",
            replace_existing=True,
        )

        self.scheduler.start()
        logger.info("Settlement scheduler started")

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Settlement scheduler shutdown")

    async def retry_settlements(self) -> int:
        """Retry queued settlement credits."""
        pending = len(self.ledger.pending_settlements)
        if not pending:
            return 0
        settled = await self.ledger.retry_pending_settlements()
        logger.info(f"Settlement retry: {settled}/{pending} credited")
        return settled

    def sweep_rounds(self) -> int:
        removed = self.registry.sweep()
        if removed:
            logger.info(f"Swept {len(removed)} stale rounds")
        return len(removed)
