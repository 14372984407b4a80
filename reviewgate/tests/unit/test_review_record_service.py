from datetime import timedelta

from sqlmodel import Session

from reviewgate.models.review_record import LAST_ERROR_MAX_CHARS, ReviewStatus
from reviewgate.utils.review_record_service import ReviewRecordStore, truncate


class TestUpsertPending:
    def test_creates_pending_record(self, store):
        record = store.upsert_pending(24, 1, "abc")

        assert record.id is not None
        assert record.status == ReviewStatus.PENDING
        assert record.attempts == 0
        assert record.version == 0
        assert store.get(24, 1).head_sha == "abc"

    def test_same_sha_returns_record_unchanged(self, store):
        first = store.upsert_pending(24, 1, "abc")
        store.try_transition(first, first.version, ReviewStatus.SUCCEEDED)

        again = store.upsert_pending(24, 1, "abc")

        assert again.status == ReviewStatus.SUCCEEDED
        assert again.version == 1

    def test_new_sha_resets_terminal_record(self, store):
        record = store.upsert_pending(24, 1, "abc")
        store.try_transition(record, 0, ReviewStatus.RUNNING, attempts=3)
        store.try_transition(record, 1, ReviewStatus.FAILED, last_error="boom")

        reset = store.upsert_pending(24, 1, "def")

        assert reset.head_sha == "def"
        assert reset.status == ReviewStatus.PENDING
        assert reset.attempts == 0
        assert reset.last_error is None
        assert reset.started_at is None
        assert reset.finished_at is None
        assert store.get(24, 1).head_sha == "def"

    def test_running_record_keeps_its_sha(self, store):
        record = store.upsert_pending(24, 1, "abc")
        store.try_transition(record, 0, ReviewStatus.RUNNING, attempts=1)

        again = store.upsert_pending(24, 1, "def")

        assert again.status == ReviewStatus.RUNNING
        assert again.head_sha == "abc"

    def test_one_record_per_merge_request(self, store):
        store.upsert_pending(24, 1, "abc")
        store.upsert_pending(24, 1, "def")
        store.upsert_pending(24, 2, "abc")

        assert len(store.list_records()) == 2


class TestTryTransition:
    def test_stale_version_is_rejected(self, store):
        record = store.upsert_pending(24, 1, "abc")
        stale = store.get(24, 1)
        assert store.try_transition(record, 0, ReviewStatus.RUNNING, attempts=1)

        assert store.try_transition(stale, 0, ReviewStatus.RUNNING, attempts=1) is False
        assert store.get(24, 1).version == 1

    def test_every_write_bumps_version(self, store):
        record = store.upsert_pending(24, 1, "abc")
        store.try_transition(record, 0, ReviewStatus.RUNNING)
        store.try_transition(record, 1, ReviewStatus.PENDING)
        store.try_transition(record, 2, ReviewStatus.RUNNING)

        assert store.get(24, 1).version == 3
        assert record.version == 3

    def test_running_sets_started_and_clears_finished(self, store):
        record = store.upsert_pending(24, 1, "abc")
        store.try_transition(record, 0, ReviewStatus.RUNNING)
        store.try_transition(record, 1, ReviewStatus.SUCCEEDED)
        store.try_transition(record, 2, ReviewStatus.RUNNING)

        loaded = store.get(24, 1)
        assert loaded.started_at is not None
        assert loaded.finished_at is None

    def test_terminal_sets_finished_at(self, store):
        record = store.upsert_pending(24, 1, "abc")
        store.try_transition(record, 0, ReviewStatus.RUNNING)
        store.try_transition(record, 1, ReviewStatus.FAILED, last_error="nope")

        loaded = store.get(24, 1)
        assert loaded.status == ReviewStatus.FAILED
        assert loaded.finished_at is not None
        assert loaded.last_error == "nope"

    def test_last_error_is_truncated(self, store):
        record = store.upsert_pending(24, 1, "abc")
        store.try_transition(record, 0, ReviewStatus.FAILED, last_error="x" * 5000)

        last_error = store.get(24, 1).last_error
        assert len(last_error) == LAST_ERROR_MAX_CHARS
        assert last_error.endswith("…")


class TestQueries:
    def test_list_records_filters_by_status(self, store):
        first = store.upsert_pending(24, 1, "abc")
        store.upsert_pending(24, 2, "abc")
        store.try_transition(first, 0, ReviewStatus.RUNNING)

        running = store.list_records(status=ReviewStatus.RUNNING)

        assert [r.mr_id for r in running] == [1]

    def test_find_stale_running(self, store, engine):
        record = store.upsert_pending(24, 1, "abc")
        store.try_transition(record, 0, ReviewStatus.RUNNING)
        fresh = store.upsert_pending(24, 2, "abc")
        store.try_transition(fresh, 0, ReviewStatus.RUNNING)

        with Session(engine) as session:
            stale = session.get(type(record), record.id)
            stale.started_at = stale.started_at - timedelta(hours=2)
            session.add(stale)
            session.commit()

        found = store.find_stale_running(timedelta(minutes=30))

        assert [r.mr_id for r in found] == [1]

    def test_store_uses_default_engine_lazily(self):
        assert ReviewRecordStore()._engine is None


def test_truncate():
    assert truncate(None, 10) is None
    assert truncate("short", 10) == "short"
    assert truncate("abcdefghijkl", 5) == "abcd…"
