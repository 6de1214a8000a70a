from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from src.application.use_cases.generate_thumbnail import GenerateThumbnailUseCase
from src.domain.entities.content import ContentRecord
from src.infrastructure.database.repositories.content_repository import ContentRepository

logger = logging.getLogger(__name__)

DEFAULT_BATCH_LIMIT = 10
DEFAULT_CONCURRENCY = 3


@dataclass(frozen=True)
class BackfillReport:
    processed: int
    succeeded: int
    failed: int
    remaining: int


@dataclass
class BackfillThumbnailsUseCase:
    """Crop thumbnails for one bounded batch of the backlog.

    Runs exactly one batch per call and never loops; the remaining backlog
    size is logged so an operator can decide whether to schedule another.
    """

    thumbnails: GenerateThumbnailUseCase
    contents: ContentRepository
    concurrency: int = DEFAULT_CONCURRENCY

    async def _process(self, record: ContentRecord, limiter: asyncio.Semaphore) -> bool:
        async with limiter:
            if not record.image_url:
                return False
            try:
                await self.thumbnails.execute(record.id, record.image_url)
            except Exception as exc:
                logger.error("Failed for content %s: %s", record.id, exc)
                return False
            logger.info("Generated thumbnail for content: %s", record.id)
            return True

    async def execute(self, limit: int = DEFAULT_BATCH_LIMIT) -> BackfillReport:
        records = await asyncio.to_thread(self.contents.list_backlog, limit)
        logger.info("Processing batch of %d articles needing thumbnails", len(records))

        limiter = asyncio.Semaphore(self.concurrency)
        results = await asyncio.gather(*(self._process(record, limiter) for record in records))
        succeeded = sum(1 for ok in results if ok)
        logger.info("Batch thumbnail generation completed: %d ok, %d failed", succeeded, len(results) - succeeded)

        remaining = await asyncio.to_thread(self.contents.count_backlog)
        if remaining > 0:
            logger.info("%d articles still need thumbnails", remaining)
        return BackfillReport(
            processed=len(records),
            succeeded=succeeded,
            failed=len(records) - succeeded,
            remaining=remaining,
        )

    async def run_safely(self, limit: int = DEFAULT_BATCH_LIMIT) -> BackfillReport | None:
        """Background-task entry point: failures are logged, never raised to the caller."""
        try:
            return await self.execute(limit)
        except Exception:
            logger.exception("Batch generation failed")
            return None
