from abc import ABC, abstractmethod
from datetime import datetime
from typing import List

from reviewgate.models.code_review import CodeReview
from reviewgate.models.merge_request import (
    MergeRequest,
    MergeRequestDiff,
    MergeRequestDiffRefs,
)
from reviewgate.utils.inline_comment_planner import InlineComment


class SourceControlClient(ABC):
    """The operations the review engine needs from a source-control host.

    Implementations raise ``SourceControlError`` for every transport or API
    failure, flagging it non-retryable when repeating the call cannot help.
    """

    @abstractmethod
    def list_open_mrs_updated_after(
        self, project_id: int, updated_after: datetime, limit: int
    ) -> List[MergeRequest]:
        pass

    @abstractmethod
    def get_merge_request(self, project_id: int, mr_id: int) -> MergeRequest:
        pass

    @abstractmethod
    def get_diff(self, project_id: int, mr_id: int) -> List[MergeRequestDiff]:
        pass

    @abstractmethod
    def post_review(
        self, project_id: int, mr_id: int, code_review: CodeReview, run_id: str
    ) -> None:
        """Publish a finished review on the merge request."""
        pass

    @abstractmethod
    def post_note(self, project_id: int, mr_id: int, body: str) -> None:
        """Add a plain note (status line) to the merge request."""
        pass

    @abstractmethod
    def post_inline_comment(
        self,
        project_id: int,
        mr_id: int,
        diff_refs: MergeRequestDiffRefs,
        comment: InlineComment,
    ) -> None:
        """Open a discussion anchored to a line of the merge request diff."""
        pass
