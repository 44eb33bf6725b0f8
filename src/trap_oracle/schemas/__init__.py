"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .common import OkResponse
from .ledger import RequestStatusResponse, UnresolvedRequest, UnresolvedResponse
from .submission import SubmitCodeRequest
from .user import RegisterUserRequest

__all__ = [
    "OkResponse",
    "RegisterUserRequest",
    "RequestStatusResponse",
    "SubmitCodeRequest",
    "UnresolvedRequest",
    "UnresolvedResponse",
]
