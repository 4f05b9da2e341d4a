"""Tests for the postedAt backfill job."""

from kerjait.backfill import backfill_posted_at
from kerjait.pipeline import Pipeline, Sort


def _legacy(key, created_at, date_posted=None, posted_at=None):
    """Document as stored before postedAt was derived at ingestion."""
    doc = {"identityKey": key, "createdAt": created_at, "keywords": ["react"], "schema": {}}
    if date_posted:
        doc["schema"]["datePosted"] = date_posted
    if posted_at:
        doc["postedAt"] = posted_at
    return doc


class TestBackfillPostedAt:
    def test_recomputes_missing_and_wrong_values(self, store):
        store.insert_many([
            _legacy("missing", "2024-03-01T00:00:00.000Z", date_posted="2024-02-01"),
            _legacy("wrong", "2024-03-02T00:00:00.000Z", posted_at="2024-01-01"),
            _legacy("ok", "2024-03-03T00:00:00.000Z", date_posted="2024-02-20", posted_at="2024-02-20"),
        ])

        result = backfill_posted_at(store)

        assert result.scanned == 3
        assert result.updated == 2
        assert result.unchanged == 1
        stored = {d["identityKey"]: d["postedAt"] for d in store.iter_documents()}
        assert stored == {
            "missing": "2024-02-01",
            "wrong": "2024-03-02T00:00:00.000Z",
            "ok": "2024-02-20",
        }

    def test_sort_uses_corrected_value(self, store):
        store.insert_many([
            _legacy("a", "2024-03-01T00:00:00.000Z", posted_at="2024-01-01"),
            _legacy("b", "2024-02-01T00:00:00.000Z"),
        ])
        backfill_posted_at(store)
        keys = [d["identityKey"] for d in store.query(Pipeline([Sort()]))]
        assert keys == ["a", "b"]

    def test_dry_run_writes_nothing(self, store):
        store.insert_many([_legacy("a", "2024-03-01T00:00:00.000Z", date_posted="2024-02-01")])

        result = backfill_posted_at(store, dry_run=True)

        assert result.updated == 0
        assert len(result.changes) == 1
        doc_id, old, new = result.changes[0]
        assert (old, new) == (None, "2024-02-01")
        assert "postedAt" not in next(store.iter_documents())

    def test_second_run_is_a_no_op(self, store):
        store.insert_many([_legacy("a", "2024-03-01T00:00:00.000Z", date_posted="2024-02-01")])
        backfill_posted_at(store)
        assert backfill_posted_at(store).changes == []

    def test_ingested_postings_need_no_correction(self, store, make_document):
        store.insert_many([make_document("a", date_posted="2024-02-01"), make_document("b")])
        assert backfill_posted_at(store).changes == []
