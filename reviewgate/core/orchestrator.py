"""Review job orchestration.

``ReviewOrchestrator.enqueue_review`` is the single entry point for both the
discovery poller and the webhook. It deduplicates against the review record
store, claims the record with a version-checked RUNNING transition and hands
the job to the dispatcher. ``run_review`` is the worker side: it runs the
pipeline and writes the terminal (or retry) state back through the same
compare-and-swap primitive. No step holds a lock across the pipeline.
"""

import enum
from functools import lru_cache
from typing import Optional

from reviewgate.config.settings import REVIEW_ENABLED, REVIEW_MAX_ATTEMPTS
from reviewgate.core.circuit_breaker import get_circuit_breaker
from reviewgate.core.exceptions import (
    BackpressureError,
    OptimisticConflict,
    ReviewGateError,
)
from reviewgate.core.metrics import ReviewMetrics, get_metrics
from reviewgate.core.review_pipeline import ReviewOutcome, ReviewPipeline, new_run_id
from reviewgate.events.dispatcher import ReviewDispatcher, get_dispatcher
from reviewgate.events.notifier import ReviewNotifier, get_notifier
from reviewgate.events.review_finished_event import (
    ReviewFinished,
    ReviewFinishedEvent,
)
from reviewgate.integrations.context_provider import context_provider
from reviewgate.integrations.gitlab.gitlab import GitLab
from reviewgate.integrations.provider_adapter import SourceControlClient
from reviewgate.llms.llm_factory import llm
from reviewgate.models.review_record import ReviewRecord, ReviewStatus
from reviewgate.utils.logger import logger
from reviewgate.utils.review_record_service import ReviewRecordStore


class EnqueueResult(str, enum.Enum):
    DISABLED = "DISABLED"
    SKIPPED = "SKIPPED"
    IN_FLIGHT = "IN_FLIGHT"
    ALREADY_REVIEWED = "ALREADY_REVIEWED"
    CONFLICT = "CONFLICT"
    QUEUED = "QUEUED"


class ReviewOrchestrator:
    def __init__(
        self,
        store: ReviewRecordStore,
        pipeline: ReviewPipeline,
        dispatcher: ReviewDispatcher,
        source: SourceControlClient,
        notifier: ReviewNotifier,
        metrics: ReviewMetrics,
        max_attempts: int = REVIEW_MAX_ATTEMPTS,
        enabled: bool = REVIEW_ENABLED,
    ):
        self.store = store
        self.pipeline = pipeline
        self.dispatcher = dispatcher
        self.source = source
        self.notifier = notifier
        self.metrics = metrics
        self.max_attempts = max_attempts
        self.enabled = enabled

    def enqueue_review(
        self, project_id: int, mr_id: int, head_sha: Optional[str] = None
    ) -> EnqueueResult:
        """Schedules a review of ``project_id!mr_id`` unless one is redundant.

        Raises ``BackpressureError`` when the dispatcher has no room; the
        record is left (or put back) in PENDING so a later trigger picks it up.
        """
        if not self.enabled:
            logger.info(f"Reviews are disabled; ignoring {project_id}!{mr_id}.")
            return EnqueueResult.DISABLED

        if not head_sha:
            merge_request = self.source.get_merge_request(project_id, mr_id)
            if not merge_request.is_reviewable():
                logger.info(
                    f"Skipping {project_id}!{mr_id}: state={merge_request.state}, "
                    f"draft={merge_request.draft}, sha={merge_request.head_sha}"
                )
                self.metrics.increment("skipped")
                return EnqueueResult.SKIPPED
            head_sha = merge_request.head_sha

        record = self.store.upsert_pending(project_id, mr_id, head_sha)

        if record.status == ReviewStatus.RUNNING:
            logger.info(f"Review of {project_id}!{mr_id} already running ({record.head_sha}).")
            return EnqueueResult.IN_FLIGHT
        if record.status.is_terminal and record.head_sha == head_sha:
            logger.info(
                f"{project_id}!{mr_id} at {head_sha} already reviewed ({record.status.value})."
            )
            return EnqueueResult.ALREADY_REVIEWED

        try:
            self.dispatcher.ensure_capacity()
        except BackpressureError:
            self.metrics.increment("rejected")
            raise

        claimed = self.store.try_transition(
            record,
            record.version,
            ReviewStatus.RUNNING,
            attempts=record.attempts + 1,
            last_error=None,
        )
        if not claimed:
            return EnqueueResult.CONFLICT

        try:
            self.dispatcher.submit(process_review_job, project_id, mr_id, record.version)
        except BackpressureError:
            self.metrics.increment("rejected")
            self._release_claim(record)
            raise

        self.metrics.increment("queued")
        logger.info(
            f"Queued review of {project_id}!{mr_id} at {record.head_sha} "
            f"(attempt {record.attempts}/{self.max_attempts})"
        )
        return EnqueueResult.QUEUED

    def run_review(
        self, project_id: int, mr_id: int, expected_version: int
    ) -> Optional[ReviewOutcome]:
        record = self.store.get(project_id, mr_id)
        if (
            record is None
            or record.status != ReviewStatus.RUNNING
            or record.version != expected_version
        ):
            logger.info(
                f"Abandoning job for {project_id}!{mr_id} v{expected_version}: "
                f"record is now {record!r}"
            )
            return None

        run_id = new_run_id()
        try:
            outcome = self.pipeline.run(record, run_id)
        except Exception as e:
            self._record_failure(record, run_id, e)
            return None

        if not self.store.try_transition(
            record, record.version, ReviewStatus.SUCCEEDED, last_error=None
        ):
            logger.warning(f"[{run_id}] Lost the record before marking it SUCCEEDED.")
            return outcome

        self.metrics.increment("succeeded")
        if outcome.publish_errors:
            self.metrics.increment("publish_failed")
        logger.info(f"[{run_id}] {project_id}!{mr_id} reviewed: {outcome.score}/10")
        self._publish(
            ReviewFinished(
                project_id=project_id,
                mr_id=mr_id,
                head_sha=record.head_sha,
                run_id=run_id,
                succeeded=True,
                title=outcome.title,
                url=outcome.url,
                score=outcome.score,
                summary=outcome.summary,
                files_changed=outcome.files_changed,
                suggestions=[s.model_dump(mode="json") for s in outcome.suggestions],
                reviewed_sha=outcome.head_sha,
                published=outcome.published,
            )
        )
        return outcome

    def reset_review(self, project_id: int, mr_id: int) -> Optional[ReviewRecord]:
        """Puts a record back to PENDING with a fresh attempt budget."""
        for _ in range(2):
            record = self.store.get(project_id, mr_id)
            if record is None:
                return None
            if self.store.try_transition(
                record,
                record.version,
                ReviewStatus.PENDING,
                attempts=0,
                last_error=None,
                started_at=None,
                finished_at=None,
            ):
                logger.info(f"Reset review of {project_id}!{mr_id} to PENDING.")
                return record
        raise OptimisticConflict(
            f"Review of {project_id}!{mr_id} is changing too fast to reset"
        )

    def _record_failure(self, record: ReviewRecord, run_id: str, error: Exception):
        if isinstance(error, ReviewGateError):
            retryable = error.retryable
            message = error.describe()
            logger.warning(f"[{run_id}] Review failed: {message}")
        else:
            retryable = False
            message = f"{type(error).__name__}: {error}"
            logger.exception(f"[{run_id}] Unexpected error while reviewing: {error}")

        if retryable and record.attempts < self.max_attempts:
            if self.store.try_transition(
                record, record.version, ReviewStatus.PENDING, last_error=message
            ):
                self.metrics.increment("retried")
                logger.info(
                    f"[{run_id}] {record.project_id}!{record.mr_id} back to PENDING "
                    f"after attempt {record.attempts}/{self.max_attempts}."
                )
            else:
                logger.warning(f"[{run_id}] Lost the record before scheduling a retry.")
            return

        if not self.store.try_transition(
            record, record.version, ReviewStatus.FAILED, last_error=message
        ):
            logger.warning(f"[{run_id}] Lost the record before marking it FAILED.")
            return

        self.metrics.increment("failed")
        logger.error(
            f"[{run_id}] {record.project_id}!{record.mr_id} FAILED after "
            f"{record.attempts} attempt(s): {message}"
        )
        self._publish(
            ReviewFinished(
                project_id=record.project_id,
                mr_id=record.mr_id,
                head_sha=record.head_sha,
                run_id=run_id,
                succeeded=False,
                error=record.last_error,
            )
        )

    def _release_claim(self, record: ReviewRecord) -> None:
        refunded = self.store.try_transition(
            record,
            record.version,
            ReviewStatus.PENDING,
            attempts=max(0, record.attempts - 1),
            started_at=None,
        )
        if not refunded:
            logger.warning(
                f"Could not release claim on {record.project_id}!{record.mr_id} "
                "after the dispatcher rejected it."
            )

    def _publish(self, finished: ReviewFinished) -> None:
        self.notifier.publish(ReviewFinishedEvent(finished))


@lru_cache(maxsize=None)
def get_orchestrator() -> ReviewOrchestrator:
    source = GitLab()
    pipeline = ReviewPipeline(
        source=source,
        reviewer=llm(),
        breaker=get_circuit_breaker(),
        context=context_provider(),
    )
    return ReviewOrchestrator(
        store=ReviewRecordStore(),
        pipeline=pipeline,
        dispatcher=get_dispatcher(),
        source=source,
        notifier=get_notifier(),
        metrics=get_metrics(),
    )


def process_review_job(project_id: int, mr_id: int, expected_version: int):
    """Worker entry point, importable by ``rq`` workers."""
    return get_orchestrator().run_review(project_id, mr_id, expected_version)
