import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, Enum, String, UniqueConstraint
from sqlmodel import Field

from reviewgate.models.base_model import BaseModel, utcnow


class ReviewStatus(str, enum.Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (ReviewStatus.SUCCEEDED, ReviewStatus.FAILED)


LAST_ERROR_MAX_CHARS = 2000


class ReviewRecord(BaseModel, table=True):
    """Review progress for one merge request, keyed by (project_id, mr_id)."""

    __tablename__ = "review_records"
    __table_args__ = (
        UniqueConstraint("project_id", "mr_id", name="uq_review_records_project_mr"),
    )

    id: Optional[int] = Field(default=None, primary_key=True, index=True)
    project_id: int = Field(index=True)
    mr_id: int = Field(index=True)
    head_sha: str = Field(sa_column=Column(String(64), nullable=False))
    status: ReviewStatus = Field(
        default=ReviewStatus.PENDING,
        sa_column=Column(
            Enum(ReviewStatus, native_enum=False, length=16, name="review_status"),
            nullable=False,
        ),
    )
    attempts: int = Field(default=0)
    last_error: Optional[str] = Field(
        default=None, sa_column=Column(String(LAST_ERROR_MAX_CHARS))
    )
    created_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    started_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )
    finished_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )
    version: int = Field(default=0)

    def __repr__(self):
        return (
            f"<ReviewRecord(project_id={self.project_id}, mr_id={self.mr_id}, "
            f"status={self.status}, attempts={self.attempts}, version={self.version})>"
        )
