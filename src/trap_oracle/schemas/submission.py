"""Code submission schemas."""

from pydantic import Field, field_validator

from .common import CamelModel, normalize_request_id
from .user import validate_user_id


class SubmitCodeRequest(CamelModel):
    """Schema for a code submitted against an on-chain verification request."""

    request_id: str = Field(..., alias="requestId")
    user_id: str = Field(..., alias="userId")
    code: str = Field(..., pattern=r"^[0-9]{1,16}$", description="Decimal one-time code")

    @field_validator("request_id")
    @classmethod
    def _request_id(cls, value: str) -> str:
        return normalize_request_id(value)

    @field_validator("user_id")
    @classmethod
    def _user_id(cls, value: str) -> str:
        return validate_user_id(value)
