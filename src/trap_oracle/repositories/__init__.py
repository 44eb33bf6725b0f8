"""Durable stores backing the oracle."""

from .base import (
    CursorStore,
    ProcessedLedger,
    ProcessedRecord,
    Submission,
    SubmissionStore,
    UserRecord,
    UserStore,
)
from .cursor_repo import CursorRepository
from .processed_repo import ProcessedRepository
from .submission_repo import SubmissionRepository
from .user_repo import UserRepository

__all__ = [
    "CursorRepository",
    "CursorStore",
    "ProcessedLedger",
    "ProcessedRecord",
    "ProcessedRepository",
    "Submission",
    "SubmissionRepository",
    "SubmissionStore",
    "UserRecord",
    "UserRepository",
    "UserStore",
]
