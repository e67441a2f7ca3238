"""
Diagnosis Session Store

Persistence boundary for diagnosis sessions.  Every write is conditional on
the record version the writer read (optimistic concurrency), so two
concurrent requests against one session can never silently overwrite each
other: the loser gets ConcurrentUpdateError and re-reads.

`InMemorySessionStore` is the shipped adapter.  A database-backed store only
has to honour the same three calls.
"""
from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol

from msk_cdss.utils import get_logger
from msk_cdss.utils.exceptions import ConcurrentUpdateError, SessionNotFoundError

logger = get_logger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class DiagnosisSessionRecord:
    """One patient's diagnosis session as persisted."""
    session_id: str
    region: str
    responses: Dict[str, str] = field(default_factory=dict)
    red_flags: List[str] = field(default_factory=list)
    ai_analysis: Dict[str, Any] = field(default_factory=dict)      # serialised DiagnosisCandidate
    ml_analysis: Dict[str, Any] = field(default_factory=dict)      # ML bridge response
    guided_test_results: Optional[Dict[str, Any]] = None           # GuidedTestState + therapistId
    patient_id: Optional[str] = None
    version: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "region": self.region,
            "patientId": self.patient_id,
            "responses": dict(self.responses),
            "redFlags": list(self.red_flags),
            "aiAnalysis": copy.deepcopy(self.ai_analysis),
            "mlAnalysis": copy.deepcopy(self.ml_analysis),
            "guidedTestResults": copy.deepcopy(self.guided_test_results),
            "version": self.version,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


class SessionStore(Protocol):
    """What the diagnosis service needs from a persistence adapter."""

    def create(self, record: DiagnosisSessionRecord) -> DiagnosisSessionRecord:
        ...

    def get(self, session_id: str) -> DiagnosisSessionRecord:
        ...

    def save(self, record: DiagnosisSessionRecord, expected_version: int) -> DiagnosisSessionRecord:
        ...


class InMemorySessionStore:
    """
    Thread-safe in-process store.

    Records are deep-copied on the way in and out, so callers can never
    mutate stored state except through `save`.
    """

    def __init__(self, clock: Callable[[], str] = utc_now):
        self._records: Dict[str, DiagnosisSessionRecord] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def create(self, record: DiagnosisSessionRecord) -> DiagnosisSessionRecord:
        """
        Store a new record at version 1.

        Raises:
            ConcurrentUpdateError: a record with this id already exists.
        """
        with self._lock:
            existing = self._records.get(record.session_id)
            if existing is not None:
                raise ConcurrentUpdateError(record.session_id, 0, existing.version)
            now = self._clock()
            stored = replace(copy.deepcopy(record), version=1, created_at=now, updated_at=now)
            self._records[record.session_id] = stored
            logger.debug(f"SessionStore: created {record.session_id}")
            return copy.deepcopy(stored)

    def get(self, session_id: str) -> DiagnosisSessionRecord:
        """
        Raises:
            SessionNotFoundError: unknown id.
        """
        with self._lock:
            record = self._records.get(session_id)
            if record is None:
                raise SessionNotFoundError(session_id)
            return copy.deepcopy(record)

    def save(self, record: DiagnosisSessionRecord, expected_version: int) -> DiagnosisSessionRecord:
        """
        Conditional write: succeeds only if the stored version still equals
        `expected_version`; the stored version is then incremented.

        Raises:
            SessionNotFoundError: unknown id.
            ConcurrentUpdateError: another writer saved first.
        """
        with self._lock:
            current = self._records.get(record.session_id)
            if current is None:
                raise SessionNotFoundError(record.session_id)
            if current.version != expected_version:
                raise ConcurrentUpdateError(record.session_id, expected_version, current.version)
            stored = replace(
                copy.deepcopy(record),
                version=current.version + 1,
                created_at=current.created_at,
                updated_at=self._clock(),
            )
            self._records[record.session_id] = stored
            logger.debug(f"SessionStore: saved {record.session_id} v{stored.version}")
            return copy.deepcopy(stored)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
