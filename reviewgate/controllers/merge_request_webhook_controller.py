import hmac
from typing import Optional

from reviewgate.core.exceptions import WebhookValidationError
from reviewgate.core.orchestrator import EnqueueResult, ReviewOrchestrator
from reviewgate.utils.logger import logger

HANDLED_ACTIONS = ("open", "reopen", "update")


def verify_gitlab_token(
    token: Optional[str], secret: Optional[str], app_env: str
) -> None:
    """Raises a 403 ``WebhookValidationError`` unless ``token`` matches ``secret``.

    Without a configured secret the check is skipped, except in production
    where an unconfigured secret rejects every delivery.
    """
    if not secret:
        if app_env == "production":
            raise WebhookValidationError(
                "GITLAB_WEBHOOK_SECRET is not configured", status_code=403
            )
        logger.warning("GITLAB_WEBHOOK_SECRET is not set; accepting unsigned webhook.")
        return
    if not token or not hmac.compare_digest(token.encode(), secret.encode()):
        raise WebhookValidationError("Invalid or missing X-Gitlab-Token", status_code=403)


def _as_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class MergeRequestWebhookController:
    """Turns GitLab merge request hook deliveries into ``enqueue_review`` calls."""

    def __init__(self, orchestrator: ReviewOrchestrator):
        self.orchestrator = orchestrator

    def handle(self, event: Optional[str], payload: dict) -> dict:
        if not event or "merge request" not in event.lower():
            logger.info(f"Ignoring GitLab event '{event}'.")
            return {"status": "ignored", "reason": "not a merge request event"}

        attributes = payload.get("object_attributes") or {}
        project_id = self.extract_project_id(payload)
        mr_id = _as_int(attributes.get("iid"))
        if project_id is None or mr_id is None:
            raise WebhookValidationError(
                "Payload is missing the project id or merge request iid"
            )

        action = (attributes.get("action") or "").lower()
        if action not in HANDLED_ACTIONS:
            logger.info(f"Ignoring action '{action}' for {project_id}!{mr_id}.")
            return {
                "status": "ignored",
                "reason": f"action '{action}' is not reviewed",
                "project_id": project_id,
                "mr_id": mr_id,
            }

        if attributes.get("draft") or attributes.get("work_in_progress"):
            logger.info(f"Skipping draft merge request {project_id}!{mr_id}.")
            self.orchestrator.metrics.increment("skipped")
            return {
                "status": "skipped",
                "result": EnqueueResult.SKIPPED.value,
                "project_id": project_id,
                "mr_id": mr_id,
            }

        head_sha = (attributes.get("last_commit") or {}).get("id")
        result = self.orchestrator.enqueue_review(project_id, mr_id, head_sha)
        logger.info(f"Webhook {action} for {project_id}!{mr_id}: {result.value}")
        return {
            "status": "queued",
            "result": result.value,
            "project_id": project_id,
            "mr_id": mr_id,
        }

    @staticmethod
    def extract_project_id(payload: dict) -> Optional[int]:
        attributes = payload.get("object_attributes") or {}
        for candidate in (
            attributes.get("target_project_id"),
            attributes.get("source_project_id"),
            (payload.get("project") or {}).get("id"),
        ):
            project_id = _as_int(candidate)
            if project_id is not None:
                return project_id
        return None
