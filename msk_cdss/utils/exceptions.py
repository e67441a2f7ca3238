"""
Custom Exception Hierarchy

Every failure the decision engine can report is a deterministic validation
failure with its own error code, so the clinician UI can show the specific
problem (reload graph, reload state, refresh session) instead of a generic
error.
"""
from typing import Optional, Dict, Any


class CDSSError(Exception):
    """Base exception for all decision engine errors."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class UnknownRegionError(CDSSError):
    """No rule graph is defined for the requested body region."""

    def __init__(
        self,
        region: Any,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=f"Unknown body region: {region!r}",
            code="UNKNOWN_REGION",
            details={"region": region, **(details or {})}
        )
        self.region = region


class InvalidAnswerError(CDSSError):
    """Answer (or test outcome) is not offered by the current node."""

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        label: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="INVALID_ANSWER",
            details={"node_id": node_id, "label": label, **(details or {})}
        )
        self.node_id = node_id
        self.label = label


class GraphDesyncError(CDSSError):
    """Persisted test history cannot be replayed against the current graph."""

    def __init__(
        self,
        message: str,
        step: int = -1,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="GRAPH_DESYNC",
            details={"step": step, **(details or {})}
        )
        self.step = step


class StaleTestError(CDSSError):
    """Submitted test id does not match the engine's current position."""

    def __init__(
        self,
        submitted_test_id: str,
        expected_test_id: Optional[str],
        details: Optional[Dict[str, Any]] = None
    ):
        expected = expected_test_id or "<none: flow already complete>"
        super().__init__(
            message=(
                f"Test {submitted_test_id!r} is not the current test "
                f"(expected {expected})"
            ),
            code="STALE_TEST",
            details={
                "submitted_test_id": submitted_test_id,
                "expected_test_id": expected_test_id,
                **(details or {})
            }
        )
        self.submitted_test_id = submitted_test_id
        self.expected_test_id = expected_test_id


class SessionLockedError(CDSSError):
    """Mutation attempted on a guided-test session that is already locked."""

    def __init__(
        self,
        message: str = "This case has already been finalized",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="SESSION_LOCKED",
            details=details
        )


class RuleGraphError(CDSSError):
    """A rule graph definition is malformed (dangling edge, cycle, ...)."""

    def __init__(
        self,
        message: str,
        region: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="RULE_GRAPH_ERROR",
            details={"region": region, **(details or {})}
        )
        self.region = region


class RuleRegistryError(CDSSError):
    """A diagnosis pattern references nodes, labels or tags that do not exist."""

    def __init__(
        self,
        message: str,
        pattern_id: str = "unknown",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="RULE_REGISTRY_ERROR",
            details={"pattern_id": pattern_id, **(details or {})}
        )
        self.pattern_id = pattern_id


class IncompleteSessionError(CDSSError):
    """Finalization requested before the flow reached a terminal node."""

    def __init__(
        self,
        message: str = "Guided test flow has not reached a terminal node",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            code="SESSION_INCOMPLETE",
            details=details
        )


class SessionNotFoundError(CDSSError):
    """No diagnosis session stored under the given id."""

    def __init__(
        self,
        session_id: str,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=f"Diagnosis session {session_id} not found",
            code="SESSION_NOT_FOUND",
            details={"session_id": session_id, **(details or {})}
        )
        self.session_id = session_id


class ConcurrentUpdateError(CDSSError):
    """Conditional write lost against a concurrent writer."""

    def __init__(
        self,
        session_id: str,
        expected_version: int,
        actual_version: int,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=(
                f"Session {session_id} was modified concurrently "
                f"(expected version {expected_version}, found {actual_version})"
            ),
            code="CONCURRENT_UPDATE",
            details={
                "session_id": session_id,
                "expected_version": expected_version,
                "actual_version": actual_version,
                **(details or {})
            }
        )
        self.session_id = session_id
        self.expected_version = expected_version
        self.actual_version = actual_version
