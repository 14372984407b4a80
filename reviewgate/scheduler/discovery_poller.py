import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from reviewgate.config.settings import (
    DISCOVERY_ENABLED,
    DISCOVERY_INTERVAL_SECONDS,
    DISCOVERY_LOOKBACK_MINUTES,
    DISCOVERY_PER_PROJECT_LIMIT,
    REVIEW_PROJECT_IDS,
)
from reviewgate.core.exceptions import BackpressureError
from reviewgate.core.orchestrator import EnqueueResult, ReviewOrchestrator
from reviewgate.integrations.provider_adapter import SourceControlClient
from reviewgate.utils.logger import logger


class DiscoveryPoller:
    """Periodically looks for recently updated open MRs and enqueues them.

    Each tick only considers MRs updated inside the look-back window, so a
    missed webhook is caught up within one interval. Dedup is left entirely
    to the orchestrator.
    """

    def __init__(
        self,
        orchestrator: ReviewOrchestrator,
        source: SourceControlClient,
        project_ids: Optional[List[int]] = None,
        enabled: bool = DISCOVERY_ENABLED,
        interval_seconds: float = DISCOVERY_INTERVAL_SECONDS,
        look_back_minutes: int = DISCOVERY_LOOKBACK_MINUTES,
        per_project_limit: int = DISCOVERY_PER_PROJECT_LIMIT,
    ):
        self.orchestrator = orchestrator
        self.source = source
        self.project_ids = list(REVIEW_PROJECT_IDS if project_ids is None else project_ids)
        self.enabled = enabled
        self.interval_seconds = interval_seconds
        self.look_back_minutes = look_back_minutes
        self.per_project_limit = per_project_limit
        self._running = False
        self._task: Optional[asyncio.Task] = None

    def tick(self, now: Optional[datetime] = None) -> int:
        """Runs one discovery pass and returns how many reviews were queued."""
        if not self.enabled or not self.orchestrator.enabled:
            logger.debug("Discovery is disabled; skipping tick.")
            return 0
        if not self.project_ids:
            logger.warning("Discovery is enabled but REVIEW_PROJECT_IDS is empty.")
            return 0

        now = now or datetime.now(timezone.utc)
        updated_after = now - timedelta(minutes=self.look_back_minutes)
        queued = 0

        for project_id in self.project_ids:
            try:
                queued += self._poll_project(project_id, updated_after)
            except BackpressureError as e:
                logger.warning(f"Stopping discovery tick early: {e.message}")
                break
            except Exception as e:
                logger.error(f"Discovery failed for project {project_id}: {e}")

        logger.info(f"Discovery tick finished: {queued} review(s) queued.")
        return queued

    def _poll_project(self, project_id: int, updated_after: datetime) -> int:
        merge_requests = self.source.list_open_mrs_updated_after(
            project_id, updated_after, self.per_project_limit
        )
        queued = 0
        for merge_request in merge_requests:
            if not merge_request.is_reviewable():
                logger.debug(
                    f"Skipping {project_id}!{merge_request.mr_id}: "
                    f"draft={merge_request.draft}, wip={merge_request.work_in_progress}, "
                    f"sha={merge_request.head_sha}"
                )
                self.orchestrator.metrics.increment("skipped")
                continue
            result = self.orchestrator.enqueue_review(
                project_id, merge_request.mr_id, merge_request.head_sha
            )
            if result == EnqueueResult.QUEUED:
                queued += 1
        return queued

    async def start(self):
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Discovery poller started (every {self.interval_seconds}s).")

    async def stop(self):
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Discovery poller stopped.")

    async def _loop(self):
        while self._running:
            try:
                await asyncio.to_thread(self.tick)
            except Exception as e:
                logger.exception(f"Discovery tick crashed: {e}")
            await asyncio.sleep(self.interval_seconds)
