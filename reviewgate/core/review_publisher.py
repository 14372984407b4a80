from dataclasses import dataclass, field
from typing import List, Optional

from reviewgate.config.settings import (
    REVIEW_DRY_RUN,
    REVIEW_INLINE_COMMENTS,
    REVIEW_PUBLISH_COMMENTS,
    REVIEW_STATUS_COMMENTS,
)
from reviewgate.core.exceptions import SourceControlError
from reviewgate.integrations.provider_adapter import SourceControlClient
from reviewgate.models.code_review import CodeReview
from reviewgate.models.merge_request import MergeRequestDiff, MergeRequestDiffRefs
from reviewgate.utils.inline_comment_planner import InlineCommentPlanner
from reviewgate.utils.logger import logger


@dataclass
class PublishResult:
    note_posted: bool = False
    inline_posted: int = 0
    errors: List[str] = field(default_factory=list)


class ReviewPublisher:
    """Writes review output back to the merge request.

    Nothing here raises for GitLab failures. A review has already been paid
    for by the time it is published, so a rejected note is logged and
    reported in the ``PublishResult`` instead of failing the run.
    """

    def __init__(
        self,
        source: SourceControlClient,
        enabled: bool = REVIEW_PUBLISH_COMMENTS,
        dry_run: bool = REVIEW_DRY_RUN,
        status_comments: bool = REVIEW_STATUS_COMMENTS,
        inline_enabled: bool = REVIEW_INLINE_COMMENTS,
        planner: Optional[InlineCommentPlanner] = None,
    ):
        self.source = source
        self.enabled = enabled
        self.dry_run = dry_run
        self.status_comments = status_comments
        self.inline_enabled = inline_enabled
        self.planner = planner or InlineCommentPlanner()

    def status(self, project_id: int, mr_id: int, message: str) -> bool:
        if not (self.enabled and self.status_comments):
            return False
        if self.dry_run:
            logger.info(f"[dry-run] Status for {project_id}!{mr_id}: {message}")
            return False
        try:
            self.source.post_note(project_id, mr_id, message)
            return True
        except SourceControlError as e:
            logger.warning(f"Could not post status to {project_id}!{mr_id}: {e}")
            return False

    def publish(
        self,
        project_id: int,
        mr_id: int,
        review: CodeReview,
        diffs: List[MergeRequestDiff],
        diff_refs: Optional[MergeRequestDiffRefs],
        run_id: str,
    ) -> PublishResult:
        result = PublishResult()
        if not self.enabled:
            return result

        comments = []
        if self.inline_enabled:
            comments = self.planner.plan(review, diffs)
            if comments and (diff_refs is None or not diff_refs.is_complete()):
                logger.warning(
                    f"[{run_id}] {project_id}!{mr_id} has no diff refs; "
                    f"skipping {len(comments)} inline comment(s)."
                )
                comments = []

        if self.dry_run:
            logger.info(
                f"[{run_id}] [dry-run] Would post the review note and "
                f"{len(comments)} inline comment(s) to {project_id}!{mr_id}."
            )
            return result

        try:
            self.source.post_review(project_id, mr_id, review, run_id)
            result.note_posted = True
        except SourceControlError as e:
            logger.error(f"[{run_id}] Review note for {project_id}!{mr_id} was not posted: {e}")
            result.errors.append(f"note: {e}")

        for comment in comments:
            try:
                self.source.post_inline_comment(project_id, mr_id, diff_refs, comment)
                result.inline_posted += 1
            except SourceControlError as e:
                logger.warning(
                    f"[{run_id}] Inline comment on {comment.new_path}:{comment.new_line} "
                    f"was not posted: {e}"
                )
                result.errors.append(f"{comment.new_path}:{comment.new_line}: {e}")

        logger.info(
            f"[{run_id}] Published to {project_id}!{mr_id}: note={result.note_posted}, "
            f"inline={result.inline_posted}/{len(comments)}."
        )
        return result
