from typing import Optional

from fastapi import APIRouter, Body, Depends, Header

from reviewgate.config import settings
from reviewgate.controllers.merge_request_webhook_controller import (
    MergeRequestWebhookController,
    verify_gitlab_token,
)
from reviewgate.core.orchestrator import ReviewOrchestrator, get_orchestrator

router = APIRouter()


@router.post("/gitlab/merge-request")
def gitlab_merge_request_webhook(
    payload: dict = Body(...),
    token: Optional[str] = Header(None, alias="X-Gitlab-Token"),
    event: Optional[str] = Header(None, alias="X-Gitlab-Event"),
    orchestrator: ReviewOrchestrator = Depends(get_orchestrator),
):
    verify_gitlab_token(token, settings.GITLAB_WEBHOOK_SECRET, settings.APP_ENV)
    return MergeRequestWebhookController(orchestrator).handle(event, payload)
