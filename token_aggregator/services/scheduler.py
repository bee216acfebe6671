"""
Background jobs: periodic cache refresh and WebSocket token pushes.
"""

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .aggregation_service import AggregationService
from .websocket_service import TokenStreamManager

logger = logging.getLogger(__name__)

REFRESH_JOB_ID = "token_cache_refresh"
BROADCAST_JOB_ID = "token_broadcast"


class TokenUpdateScheduler:
    """Owns the AsyncIOScheduler running the refresh and push jobs."""

    def __init__(
        self,
        aggregation: AggregationService,
        stream: Optional[TokenStreamManager] = None,
        refresh_interval: float = 30.0,
        broadcast_interval: float = 5.0,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self.aggregation = aggregation
        self.stream = stream
        self.refresh_interval = refresh_interval
        self.broadcast_interval = broadcast_interval
        self.scheduler = scheduler or AsyncIOScheduler()

    async def refresh_job(self) -> None:
        try:
            tokens = await self.aggregation.refresh_cache()
            logger.info(f"Cache refreshed with {len(tokens)} tokens")
        except Exception as e:
            logger.error(f"Cache refresh error: {str(e)}")
            logger.exception(e)

    async def broadcast_job(self) -> None:
        if self.stream is None:
            return
        try:
            await self.stream.broadcast_tokens()
        except Exception as e:
            logger.error(f"Token broadcast error: {str(e)}")
            logger.exception(e)

    def start(self) -> None:
        """Register both jobs and start the scheduler. Must run inside an event loop."""
        self.scheduler.add_job(
            self.refresh_job,
            trigger=IntervalTrigger(seconds=self.refresh_interval),
            id=REFRESH_JOB_ID,
            name="Token cache refresh",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if self.stream is not None:
            self.scheduler.add_job(
                self.broadcast_job,
                trigger=IntervalTrigger(seconds=self.broadcast_interval),
                id=BROADCAST_JOB_ID,
                name="WebSocket token broadcast",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
        self.scheduler.start()
        logger.info(
            f"Scheduler started: refresh every {self.refresh_interval}s, "
            f"broadcast every {self.broadcast_interval}s"
        )

    def shutdown(self) -> None:
        try:
            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)
                logger.info("Background task scheduler shutdown")
        except Exception as e:
            logger.error(f"Error shutting down scheduler: {str(e)}")

    @property
    def running(self) -> bool:
        return self.scheduler.running
