"""SQLAlchemy models for the Trap Oracle stores."""

from .listener_cursor import ListenerCursor
from .processed import ProcessedRequest
from .submission import CodeSubmission
from .user import OracleUser

__all__ = [
    "CodeSubmission",
    "ListenerCursor",
    "OracleUser",
    "ProcessedRequest",
]
