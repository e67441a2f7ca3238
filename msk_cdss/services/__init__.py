"""Persistence boundary and session-level services."""
from .diagnosis_service import DiagnosisService
from .session_store import DiagnosisSessionRecord, InMemorySessionStore, SessionStore

__all__ = ["DiagnosisService", "DiagnosisSessionRecord", "InMemorySessionStore", "SessionStore"]
