from datetime import timedelta
from typing import Optional

from reviewgate.config.settings import STALE_RUNNING_MINUTES
from reviewgate.controllers.base_controller import BaseController
from reviewgate.core.exceptions import ReviewGateError
from reviewgate.core.orchestrator import EnqueueResult, ReviewOrchestrator
from reviewgate.models.review_record import ReviewStatus


class ReviewController(BaseController):
    """Operator views over review records."""

    def __init__(self, orchestrator: ReviewOrchestrator):
        self.orchestrator = orchestrator

    @property
    def store(self):
        return self.orchestrator.store

    def index(self, status: Optional[ReviewStatus] = None, limit: int = 100):
        records = self.store.list_records(status=status, limit=limit)
        return self.success(records)

    def stale(self, older_than_minutes: int = STALE_RUNNING_MINUTES):
        records = self.store.find_stale_running(timedelta(minutes=older_than_minutes))
        return self.success(
            records,
            message=f"{len(records)} review(s) RUNNING for over {older_than_minutes} minutes",
        )

    def show(self, project_id: int, mr_id: int):
        record = self.store.get(project_id, mr_id)
        if record is None:
            return self.failure("Review not found", status_code=404)
        return self.success(record)

    def enqueue(self, project_id: int, mr_id: int, head_sha: Optional[str] = None):
        try:
            result = self.orchestrator.enqueue_review(project_id, mr_id, head_sha)
        except ReviewGateError as e:
            return self.handle_error(e)
        status_code = 202 if result == EnqueueResult.QUEUED else 200
        return self.success(
            {"project_id": project_id, "mr_id": mr_id, "result": result.value},
            message=f"Review {result.value.lower().replace('_', ' ')}",
            status_code=status_code,
        )

    def reset(self, project_id: int, mr_id: int):
        try:
            record = self.orchestrator.reset_review(project_id, mr_id)
        except ReviewGateError as e:
            return self.handle_error(e)
        if record is None:
            return self.failure("Review not found", status_code=404)
        return self.success(record, message="Review reset to PENDING")
