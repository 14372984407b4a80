from datetime import timedelta
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from reviewgate.config.db import get_engine
from reviewgate.core.exceptions import OptimisticConflict
from reviewgate.models.base_model import utcnow
from reviewgate.models.review_record import (
    LAST_ERROR_MAX_CHARS,
    ReviewRecord,
    ReviewStatus,
)
from reviewgate.utils.logger import logger


def truncate(text: Optional[str], max_chars: int) -> Optional[str]:
    if text is None:
        return None
    return text if len(text) <= max_chars else text[: max_chars - 1] + "…"


class ReviewRecordStore:
    """Durable per-(project, MR) review state with version-checked writes.

    Every mutation goes through a compare-and-swap on ``version`` so that
    producers running in separate threads or processes never need a lock.
    """

    def __init__(self, engine=None):
        self._engine = engine

    @property
    def engine(self):
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    def get(self, project_id: int, mr_id: int) -> Optional[ReviewRecord]:
        with Session(self.engine, expire_on_commit=False) as session:
            statement = (
                select(ReviewRecord)
                .where(ReviewRecord.project_id == project_id)
                .where(ReviewRecord.mr_id == mr_id)
            )
            return session.exec(statement).first()

    def upsert_pending(self, project_id: int, mr_id: int, head_sha: str) -> ReviewRecord:
        """Return the record for (project_id, mr_id), creating or resetting it.

        Same ``head_sha``: the record is returned untouched, whatever its
        status. New ``head_sha``: attempts and timestamps are reset and the
        record goes back to PENDING, unless it is RUNNING, in which case the
        in-flight run keeps it and the new sha is picked up on a later trigger.
        """
        record = self.get(project_id, mr_id)
        if record is None:
            record = self._insert_pending(project_id, mr_id, head_sha)

        if record.head_sha == head_sha or record.status == ReviewStatus.RUNNING:
            return record

        logger.info(
            f"Head moved for {project_id}!{mr_id}: {record.head_sha} -> {head_sha}. "
            "Resetting attempts."
        )
        reset = self.try_transition(
            record,
            record.version,
            ReviewStatus.PENDING,
            head_sha=head_sha,
            attempts=0,
            last_error=None,
            started_at=None,
            finished_at=None,
        )
        if reset:
            return record

        # Someone else moved it first; hand back whatever won.
        return self.get(project_id, mr_id)

    def try_transition(
        self,
        record: ReviewRecord,
        expected_version: int,
        new_status: ReviewStatus,
        **fields,
    ) -> bool:
        """Compare-and-swap ``record`` to ``new_status``.

        Returns False when the stored version no longer matches
        ``expected_version``; the caller has to re-read and decide again.
        On success ``record`` is updated in place with the written values.
        """
        try:
            values = self._cas_update(record, expected_version, new_status, fields)
        except OptimisticConflict:
            logger.info(
                f"Version conflict on {record.project_id}!{record.mr_id} "
                f"(expected v{expected_version}, wanted {new_status.value})"
            )
            return False

        for key, value in values.items():
            setattr(record, key, value)
        return True

    def _cas_update(
        self,
        record: ReviewRecord,
        expected_version: int,
        new_status: ReviewStatus,
        fields: dict,
    ) -> dict:
        now = utcnow()
        values = dict(fields)
        values["status"] = new_status
        values["version"] = expected_version + 1
        values["updated_at"] = now

        if new_status == ReviewStatus.RUNNING:
            values.setdefault("started_at", now)
            values["finished_at"] = None
        elif new_status.is_terminal:
            values.setdefault("finished_at", now)
        if values.get("last_error") is not None:
            values["last_error"] = truncate(values["last_error"], LAST_ERROR_MAX_CHARS)

        statement = (
            update(ReviewRecord)
            .where(col(ReviewRecord.id) == record.id)
            .where(col(ReviewRecord.version) == expected_version)
            .values(**values)
        )
        with self.engine.begin() as connection:
            result = connection.execute(statement)
            if result.rowcount != 1:
                raise OptimisticConflict(
                    f"review record {record.id} is no longer at version {expected_version}"
                )
        return values

    def _insert_pending(self, project_id: int, mr_id: int, head_sha: str) -> ReviewRecord:
        record = ReviewRecord(
            project_id=project_id,
            mr_id=mr_id,
            head_sha=head_sha,
            status=ReviewStatus.PENDING,
            attempts=0,
        )
        try:
            with Session(self.engine, expire_on_commit=False) as session:
                session.add(record)
                session.commit()
                session.refresh(record)
            logger.info(f"Created review record for {project_id}!{mr_id} at {head_sha}")
            return record
        except IntegrityError:
            # A concurrent producer inserted the row between our read and write.
            existing = self.get(project_id, mr_id)
            if existing is None:
                raise
            return existing

    def list_records(
        self, status: Optional[ReviewStatus] = None, limit: int = 100
    ) -> List[ReviewRecord]:
        with Session(self.engine, expire_on_commit=False) as session:
            statement = select(ReviewRecord)
            if status is not None:
                statement = statement.where(ReviewRecord.status == status)
            statement = statement.order_by(col(ReviewRecord.updated_at).desc()).limit(
                limit
            )
            return list(session.exec(statement).all())

    def find_stale_running(self, older_than: timedelta) -> List[ReviewRecord]:
        """RUNNING records whose run started before ``now - older_than``."""
        cutoff = utcnow() - older_than
        with Session(self.engine, expire_on_commit=False) as session:
            statement = (
                select(ReviewRecord)
                .where(ReviewRecord.status == ReviewStatus.RUNNING)
                .where(col(ReviewRecord.started_at) < cutoff)
                .order_by(col(ReviewRecord.started_at))
            )
            return list(session.exec(statement).all())
