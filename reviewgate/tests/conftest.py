from datetime import datetime
from typing import Dict, List, Optional, Tuple

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

from reviewgate.config.db import create_db_and_tables
from reviewgate.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from reviewgate.core.exceptions import BackpressureError
from reviewgate.core.metrics import ReviewMetrics
from reviewgate.core.orchestrator import ReviewOrchestrator
from reviewgate.core.review_pipeline import ReviewPipeline
from reviewgate.core.review_publisher import ReviewPublisher
from reviewgate.events.notifier import ReviewNotifier
from reviewgate.integrations.context_provider import NoopContextProvider
from reviewgate.integrations.provider_adapter import SourceControlClient
from reviewgate.llms.llm_interface import AiReviewer
from reviewgate.models.code_review import CodeReview
from reviewgate.models.merge_request import (
    MergeRequest,
    MergeRequestDiff,
    MergeRequestDiffRefs,
)
from reviewgate.utils.inline_comment_planner import InlineComment
from reviewgate.utils.review_record_service import ReviewRecordStore


class FakeSource(SourceControlClient):
    def __init__(self):
        self.merge_requests: Dict[Tuple[int, int], MergeRequest] = {}
        self.diffs: Dict[Tuple[int, int], List[MergeRequestDiff]] = {}
        self.posted: List[Tuple[int, int, CodeReview, str]] = []
        self.open_mrs: Dict[int, List[MergeRequest]] = {}
        self.notes: List[Tuple[int, int, str]] = []
        self.inline: List[Tuple[int, int, InlineComment]] = []
        self.post_error: Optional[Exception] = None

    def add_merge_request(self, project_id, mr_id, sha="abc", files=1, **fields):
        self.merge_requests[(project_id, mr_id)] = MergeRequest(
            iid=mr_id,
            project_id=project_id,
            sha=sha,
            title=fields.pop("title", f"MR {mr_id}"),
            web_url=f"https://gitlab.example.com/p/{project_id}/-/merge_requests/{mr_id}",
            diff_refs=MergeRequestDiffRefs(base_sha="base", start_sha="start", head_sha=sha),
            **fields,
        )
        self.diffs[(project_id, mr_id)] = [
            MergeRequestDiff(
                old_path=f"src/file_{i}.py",
                new_path=f"src/file_{i}.py",
                diff=f"@@ -1 +1 @@\n-old_{i}\n+new_{i}\n",
            )
            for i in range(files)
        ]

    def list_open_mrs_updated_after(
        self, project_id: int, updated_after: datetime, limit: int
    ) -> List[MergeRequest]:
        return self.open_mrs.get(project_id, [])[:limit]

    def get_merge_request(self, project_id: int, mr_id: int) -> MergeRequest:
        return self.merge_requests[(project_id, mr_id)]

    def get_diff(self, project_id: int, mr_id: int) -> List[MergeRequestDiff]:
        return self.diffs.get((project_id, mr_id), [])

    def post_review(self, project_id, mr_id, code_review, run_id) -> None:
        if self.post_error:
            raise self.post_error
        self.posted.append((project_id, mr_id, code_review, run_id))

    def post_note(self, project_id, mr_id, body) -> None:
        if self.post_error:
            raise self.post_error
        self.notes.append((project_id, mr_id, body))

    def post_inline_comment(self, project_id, mr_id, diff_refs, comment) -> None:
        if self.post_error:
            raise self.post_error
        self.inline.append((project_id, mr_id, comment))


class FakeReviewer(AiReviewer):
    """Returns ``result`` or raises it when it is an exception."""

    def __init__(self, result=None):
        self.result = result or CodeReview(score=8, summary="Looks good.")
        self.prompts: List[str] = []

    @property
    def model(self) -> str:
        return "fake/model"

    def review(self, prompt: str) -> CodeReview:
        self.prompts.append(prompt)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class FakeDispatcher:
    """Collects submitted jobs so tests decide when workers run."""

    def __init__(self, capacity: int = 100):
        self.capacity = capacity
        self.jobs: List[tuple] = []
        self.reject_submit = False

    def ensure_capacity(self) -> None:
        if len(self.jobs) >= self.capacity:
            raise BackpressureError("Review queue is full")

    def submit(self, fn, *args) -> None:
        if self.reject_submit:
            raise BackpressureError("Review queue is full")
        self.jobs.append(args)

    def run_all(self, orchestrator):
        jobs, self.jobs = self.jobs, []
        return [orchestrator.run_review(*args) for args in jobs]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """A file-backed database for tests that hit it from several threads."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'reviews.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine):
    return ReviewRecordStore(engine)


@pytest.fixture
def source():
    return FakeSource()


@pytest.fixture
def reviewer():
    return FakeReviewer()


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def notifier():
    return ReviewNotifier()


@pytest.fixture
def metrics():
    return ReviewMetrics()


@pytest.fixture
def breaker():
    return CircuitBreaker(
        name="test",
        config=CircuitBreakerConfig(
            window_size=10,
            minimum_calls=10,
            failure_rate_threshold=100,
            open_cooldown_seconds=60,
            half_open_max_calls=1,
        ),
    )


@pytest.fixture
def pipeline(source, reviewer, breaker):
    return ReviewPipeline(
        source=source,
        reviewer=reviewer,
        breaker=breaker,
        context=NoopContextProvider(),
        context_enabled=False,
        publisher=ReviewPublisher(
            source,
            enabled=True,
            dry_run=False,
            status_comments=False,
            inline_enabled=True,
        ),
    )


@pytest.fixture
def orchestrator(store, pipeline, dispatcher, source, notifier, metrics):
    return ReviewOrchestrator(
        store=store,
        pipeline=pipeline,
        dispatcher=dispatcher,
        source=source,
        notifier=notifier,
        metrics=metrics,
        max_attempts=3,
        enabled=True,
    )
