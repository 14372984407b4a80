import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from reviewgate.config.settings import CONTEXT_ENABLED
from reviewgate.core.circuit_breaker import CircuitBreaker
from reviewgate.core.exceptions import ContextUnavailableError, ReviewGateError
from reviewgate.core.review_publisher import ReviewPublisher
from reviewgate.integrations.context_provider import ContextProvider
from reviewgate.integrations.provider_adapter import SourceControlClient
from reviewgate.llms.llm_interface import AiReviewer
from reviewgate.models.code_review import CodeReview, CodeSuggestion
from reviewgate.models.review_record import ReviewRecord
from reviewgate.prompts.prompts import build_review_prompt
from reviewgate.utils.logger import logger

EMPTY_DIFF_SUMMARY = "No changed files to review."


def new_run_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass
class ReviewOutcome:
    run_id: str
    title: Optional[str]
    url: Optional[str]
    score: int
    summary: str
    suggestions: List[CodeSuggestion] = field(default_factory=list)
    files_changed: int = 0
    head_sha: Optional[str] = None
    published: bool = False
    publish_errors: List[str] = field(default_factory=list)


class ReviewPipeline:
    """Fetches an MR, asks the AI reviewer about it and publishes the result.

    Every failure leaves as a ``ReviewGateError`` carrying its retryability;
    the orchestrator owns what happens to the record afterwards. Writing the
    review back to GitLab never fails a run; see ``ReviewPublisher``.
    """

    def __init__(
        self,
        source: SourceControlClient,
        reviewer: AiReviewer,
        breaker: CircuitBreaker,
        context: ContextProvider,
        context_enabled: bool = CONTEXT_ENABLED,
        publisher: Optional[ReviewPublisher] = None,
    ):
        self.source = source
        self.reviewer = reviewer
        self.breaker = breaker
        self.context = context
        self.context_enabled = context_enabled
        self.publisher = publisher or ReviewPublisher(source)

    def run(self, record: ReviewRecord, run_id: Optional[str] = None) -> ReviewOutcome:
        run_id = run_id or new_run_id()
        project_id, mr_id = record.project_id, record.mr_id
        logger.info(
            f"[{run_id}] Reviewing {project_id}!{mr_id} at {record.head_sha} "
            f"(attempt {record.attempts})"
        )

        merge_request = self.source.get_merge_request(project_id, mr_id)
        reviewed_sha = merge_request.head_sha or record.head_sha
        if record.head_sha and reviewed_sha != record.head_sha:
            logger.warning(
                f"[{run_id}] {project_id}!{mr_id} moved from {record.head_sha} to "
                f"{reviewed_sha} since it was queued; reviewing {reviewed_sha}."
            )
        diffs = self.source.get_diff(project_id, mr_id)

        if not diffs:
            logger.warning(f"[{run_id}] {project_id}!{mr_id} has no changed files.")
            return ReviewOutcome(
                run_id=run_id,
                title=merge_request.title,
                url=merge_request.url,
                score=10,
                summary=EMPTY_DIFF_SUMMARY,
                head_sha=reviewed_sha,
            )

        self.publisher.status(
            project_id,
            mr_id,
            f"Review started for `{(reviewed_sha or '')[:8]}` "
            f"({len(diffs)} file(s), run {run_id}).",
        )
        try:
            review = self._review(run_id, project_id, mr_id, merge_request, diffs)
        except Exception:
            self.publisher.status(
                project_id, mr_id, f"Review attempt {record.attempts} failed (run {run_id})."
            )
            raise

        published = self.publisher.publish(
            project_id, mr_id, review, diffs, merge_request.diff_refs, run_id
        )

        return ReviewOutcome(
            run_id=run_id,
            title=merge_request.title,
            url=merge_request.url,
            score=review.score,
            summary=review.summary,
            suggestions=list(review.suggestions),
            files_changed=len(diffs),
            head_sha=reviewed_sha,
            published=published.note_posted,
            publish_errors=published.errors,
        )

    def _review(self, run_id, project_id, mr_id, merge_request, diffs) -> CodeReview:
        context = ""
        if self.context_enabled:
            context = self._fetch_context(run_id, project_id, mr_id, diffs)

        prompt = build_review_prompt(merge_request, diffs, context)
        logger.debug(f"[{run_id}] Prompt prepared, {len(prompt)} characters.")

        review: CodeReview = self.breaker.call(self.reviewer.review, prompt)
        logger.info(f"[{run_id}] AI review finished with score {review.score}/10.")
        return review

    def _fetch_context(self, run_id, project_id, mr_id, diffs) -> str:
        try:
            context = self.context.get_context(project_id, mr_id, diffs)
        except ReviewGateError:
            raise
        except Exception as e:
            raise ContextUnavailableError(f"Context provider failed: {e}")
        logger.info(f"[{run_id}] Context received, {len(context)} characters.")
        return context
