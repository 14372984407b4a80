from dataclasses import dataclass, field
from typing import List, Optional

from reviewgate.events.event import Event


@dataclass
class ReviewFinished:
    """Outcome of one review run, as handed to notification sinks."""

    project_id: int
    mr_id: int
    head_sha: str
    run_id: str
    succeeded: bool
    title: Optional[str] = None
    url: Optional[str] = None
    score: Optional[int] = None
    summary: Optional[str] = None
    files_changed: int = 0
    suggestions: List[dict] = field(default_factory=list)
    error: Optional[str] = None
    reviewed_sha: Optional[str] = None
    published: bool = False


class ReviewFinishedEvent(Event):
    name = "review_finished"

    def __init__(self, review_finished: ReviewFinished):
        super().__init__(review_finished)

    def __str__(self):
        state = "succeeded" if self.data.succeeded else "failed"
        return (
            f"ReviewFinishedEvent: {self.data.project_id}!{self.data.mr_id} "
            f"{state} (run {self.data.run_id})"
        )
