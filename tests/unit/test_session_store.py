"""
Unit Tests for the In-Memory Session Store

Tests for versioned creates, conditional saves and copy isolation.
"""
import threading
from dataclasses import replace

import pytest

from msk_cdss.services import DiagnosisSessionRecord, InMemorySessionStore
from msk_cdss.utils.exceptions import ConcurrentUpdateError, SessionNotFoundError


@pytest.fixture
def record():
    return DiagnosisSessionRecord(
        session_id="s-1",
        region="ankle",
        responses={"ankle_q1": "Heel"},
        ai_analysis={"temporalDiagnosis": "Plantar Fasciitis"},
    )


class TestCreate:
    """Tests for creating records."""

    def test_create_sets_version_and_timestamps(self, store, record):
        stored = store.create(record)
        assert stored.version == 1
        assert stored.created_at == stored.updated_at
        assert stored.created_at.startswith("2026-01-01T10:")
        assert len(store) == 1

    def test_duplicate_id(self, store, record):
        store.create(record)
        with pytest.raises(ConcurrentUpdateError):
            store.create(record)

    def test_get_unknown(self, store):
        with pytest.raises(SessionNotFoundError) as exc_info:
            store.get("missing")
        assert exc_info.value.code == "SESSION_NOT_FOUND"


class TestConditionalSave:
    """Tests for optimistic concurrency."""

    def test_save_increments_version(self, store, record):
        stored = store.create(record)
        saved = store.save(replace(stored, red_flags=["fracture"]), expected_version=1)
        assert saved.version == 2
        assert saved.created_at == stored.created_at
        assert saved.updated_at != stored.updated_at
        assert store.get("s-1").red_flags == ["fracture"]

    def test_stale_version_is_rejected(self, store, record):
        stored = store.create(record)
        store.save(stored, expected_version=1)
        with pytest.raises(ConcurrentUpdateError) as exc_info:
            store.save(stored, expected_version=1)
        assert exc_info.value.details["actual_version"] == 2

    def test_save_unknown(self, store, record):
        with pytest.raises(SessionNotFoundError):
            store.save(record, expected_version=0)

    def test_only_one_concurrent_writer_wins(self, record):
        store = InMemorySessionStore()
        store.create(record)
        barrier = threading.Barrier(8)
        outcomes = []

        def writer(i):
            current = store.get("s-1")
            barrier.wait()
            try:
                store.save(replace(current, patient_id=f"p-{i}"), expected_version=current.version)
                outcomes.append("ok")
            except ConcurrentUpdateError:
                outcomes.append("conflict")

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("conflict") == 7
        assert store.get("s-1").version == 2


class TestIsolation:
    """Tests that stored records cannot be mutated by callers."""

    def test_returned_records_are_copies(self, store, record):
        stored = store.create(record)
        stored.responses["ankle_q2"] = "Morning"
        stored.ai_analysis["temporalDiagnosis"] = "Changed"
        fresh = store.get("s-1")
        assert fresh.responses == {"ankle_q1": "Heel"}
        assert fresh.ai_analysis == {"temporalDiagnosis": "Plantar Fasciitis"}

    def test_input_record_is_not_aliased(self, store, record):
        store.create(record)
        record.responses["ankle_q2"] = "Morning"
        assert "ankle_q2" not in store.get("s-1").responses

    def test_to_dict(self, store, record):
        data = store.create(record).to_dict()
        assert data["sessionId"] == "s-1"
        assert data["version"] == 1
        assert data["guidedTestResults"] is None
