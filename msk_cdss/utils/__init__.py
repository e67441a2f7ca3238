"""
Utilities Package - Logging and Exception Handling
"""
from .logging import get_logger, setup_logging
from .exceptions import (
    CDSSError,
    UnknownRegionError,
    InvalidAnswerError,
    GraphDesyncError,
    StaleTestError,
    SessionLockedError,
    RuleGraphError,
    RuleRegistryError,
    IncompleteSessionError,
    SessionNotFoundError,
    ConcurrentUpdateError,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "CDSSError",
    "UnknownRegionError",
    "InvalidAnswerError",
    "GraphDesyncError",
    "StaleTestError",
    "SessionLockedError",
    "RuleGraphError",
    "RuleRegistryError",
    "IncompleteSessionError",
    "SessionNotFoundError",
    "ConcurrentUpdateError",
]
