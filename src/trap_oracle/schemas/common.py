"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict

REQUEST_ID_PATTERN = re.compile(r"^0x[0-9a-fA-F]{64}$")


class CamelModel(BaseModel):
    """Base model accepting the camelCase field names used on the wire."""

    model_config = ConfigDict(populate_by_name=True)


class OkResponse(BaseModel):
    """Acknowledgement returned by write endpoints."""

    ok: bool = True


def normalize_request_id(value: str) -> str:
    """Validate a ``0x``-prefixed 32-byte hex request id and lower-case it."""
    if not REQUEST_ID_PATTERN.match(value):
        raise ValueError("requestId must be 0x followed by 64 hex characters")
    return value.lower()
