from typing import Optional

from fastapi import APIRouter, Depends, Query

from reviewgate.api.security import get_api_key
from reviewgate.config.settings import STALE_RUNNING_MINUTES
from reviewgate.controllers.review_controller import ReviewController
from reviewgate.core.orchestrator import ReviewOrchestrator, get_orchestrator
from reviewgate.models.review_record import ReviewStatus

router = APIRouter(dependencies=[Depends(get_api_key)])


def get_review_controller(
    orchestrator: ReviewOrchestrator = Depends(get_orchestrator),
) -> ReviewController:
    return ReviewController(orchestrator)


@router.get("")
def list_reviews(
    status: Optional[ReviewStatus] = None,
    limit: int = Query(100, ge=1, le=1000),
    controller: ReviewController = Depends(get_review_controller),
):
    return controller.index(status=status, limit=limit)


@router.get("/stale")
def list_stale_reviews(
    older_than_minutes: int = Query(STALE_RUNNING_MINUTES, ge=1),
    controller: ReviewController = Depends(get_review_controller),
):
    return controller.stale(older_than_minutes)


@router.get("/{project_id}/{mr_id}")
def show_review(
    project_id: int,
    mr_id: int,
    controller: ReviewController = Depends(get_review_controller),
):
    return controller.show(project_id, mr_id)


@router.post("/{project_id}/{mr_id}")
def enqueue_review(
    project_id: int,
    mr_id: int,
    head_sha: Optional[str] = None,
    controller: ReviewController = Depends(get_review_controller),
):
    """Manually trigger a review; the MR is fetched when no head_sha is given."""
    return controller.enqueue(project_id, mr_id, head_sha)


@router.post("/{project_id}/{mr_id}/reset")
def reset_review(
    project_id: int,
    mr_id: int,
    controller: ReviewController = Depends(get_review_controller),
):
    return controller.reset(project_id, mr_id)
