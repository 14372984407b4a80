from datetime import datetime, timezone
from typing import Any, List, Optional

import requests

from reviewgate.config.settings import (
    GITLAB_API_URL,
    GITLAB_TIMEOUT_SECONDS,
    GITLAB_TOKEN,
)
from reviewgate.core.exceptions import SourceControlError, is_retryable_status
from reviewgate.integrations.provider_adapter import SourceControlClient
from reviewgate.models.code_review import CodeReview
from reviewgate.models.merge_request import (
    MergeRequest,
    MergeRequestDiff,
    MergeRequestDiffRefs,
)
from reviewgate.utils.inline_comment_planner import InlineComment
from reviewgate.utils.logger import logger

COMMENT_MARKER = "<!-- REVIEWGATE_REVIEW -->"


class GitLab(SourceControlClient):
    """GitLab REST v4 client authenticated with a ``PRIVATE-TOKEN``."""

    def __init__(
        self,
        base_url: str = GITLAB_API_URL,
        token: Optional[str] = GITLAB_TOKEN,
        timeout: float = GITLAB_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        if not token:
            logger.warning("GITLAB_TOKEN is not set; GitLab calls will be anonymous.")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if token:
            self.session.headers.update({"PRIVATE-TOKEN": token})

    def list_open_mrs_updated_after(
        self, project_id: int, updated_after: datetime, limit: int
    ) -> List[MergeRequest]:
        if updated_after.tzinfo is None:
            updated_after = updated_after.replace(tzinfo=timezone.utc)
        params = {
            "state": "opened",
            "order_by": "updated_at",
            "sort": "desc",
            "per_page": limit,
            "updated_after": updated_after.isoformat(),
        }
        payload = self._request(
            "GET", f"/projects/{project_id}/merge_requests", params=params
        )
        merge_requests = [
            MergeRequest.model_validate({**item, "project_id": project_id})
            for item in payload or []
        ]
        logger.info(
            f"GitLab project {project_id}: {len(merge_requests)} open MR(s) "
            f"updated after {params['updated_after']}"
        )
        return merge_requests[:limit]

    def get_merge_request(self, project_id: int, mr_id: int) -> MergeRequest:
        payload = self._request("GET", f"/projects/{project_id}/merge_requests/{mr_id}")
        return MergeRequest.model_validate({**payload, "project_id": project_id})

    def get_diff(self, project_id: int, mr_id: int) -> List[MergeRequestDiff]:
        payload = self._request(
            "GET", f"/projects/{project_id}/merge_requests/{mr_id}/changes"
        )
        changes = (payload or {}).get("changes") or []
        return [MergeRequestDiff.model_validate(change) for change in changes]

    def post_review(
        self, project_id: int, mr_id: int, code_review: CodeReview, run_id: str
    ) -> None:
        self.post_note(project_id, mr_id, self.format_review_note(code_review, run_id))
        logger.info(f"[{run_id}] Posted review note to {project_id}!{mr_id}")

    def post_note(self, project_id: int, mr_id: int, body: str) -> None:
        self._request(
            "POST",
            f"/projects/{project_id}/merge_requests/{mr_id}/notes",
            json={"body": body},
        )

    def post_inline_comment(
        self,
        project_id: int,
        mr_id: int,
        diff_refs: MergeRequestDiffRefs,
        comment: InlineComment,
    ) -> None:
        if diff_refs is None or not diff_refs.is_complete():
            raise SourceControlError(
                f"{project_id}!{mr_id} has no diff refs; cannot anchor an inline comment.",
                retryable=False,
            )
        position = {
            "position_type": "text",
            "base_sha": diff_refs.base_sha,
            "start_sha": diff_refs.start_sha,
            "head_sha": diff_refs.head_sha,
            "old_path": comment.old_path,
            "new_path": comment.new_path,
            "new_line": comment.new_line,
        }
        self._request(
            "POST",
            f"/projects/{project_id}/merge_requests/{mr_id}/discussions",
            json={"body": comment.body, "position": position},
        )

    @staticmethod
    def format_review_note(code_review: CodeReview, run_id: str) -> str:
        lines = [
            COMMENT_MARKER,
            f"### Automated review: {code_review.score}/10",
            "",
            code_review.summary or "_No summary provided._",
        ]
        if code_review.suggestions:
            lines += ["", "| Severity | Category | Location | Finding |", "|---|---|---|---|"]
            for s in code_review.suggestions:
                location = s.file_name or "-"
                if s.file_name and s.line_number:
                    location = f"{s.file_name}:{s.line_number}"
                message = s.message.replace("\n", " ").replace("|", "\\|")
                lines.append(
                    f"| {s.severity.value} | {s.category.value} | `{location}` | {message} |"
                )
        lines += ["", f"<sub>run {run_id}</sub>"]
        return "\n".join(lines)

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            error_msg = f"GitLab {method} {path} failed with HTTP {status}"
            if e.response is not None and e.response.text:
                error_msg += f" - Response: {e.response.text[:500]}"
            logger.error(error_msg)
            raise SourceControlError(error_msg, retryable=is_retryable_status(status))
        except requests.exceptions.RequestException as e:
            error_msg = f"GitLab {method} {path} failed: {e}"
            logger.error(error_msg)
            raise SourceControlError(error_msg)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise SourceControlError(f"GitLab {method} {path} returned invalid JSON: {e}")
