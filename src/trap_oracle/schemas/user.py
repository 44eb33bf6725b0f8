"""User registration schemas."""

from pydantic import Field, field_validator
from web3 import Web3

from .common import CamelModel

# A bytes32 string keeps its last byte for the NUL terminator.
MAX_USER_ID_BYTES = 31


def validate_user_id(value: str) -> str:
    """Ensure a user id fits in an on-chain bytes32 string."""
    if not value:
        raise ValueError("userId must not be empty")
    if len(value.encode("utf-8")) > MAX_USER_ID_BYTES:
        raise ValueError(f"userId must be at most {MAX_USER_ID_BYTES} bytes")
    return value


class RegisterUserRequest(CamelModel):
    """Schema for registering a user's secret and trap contract."""

    user_id: str = Field(..., alias="userId")
    secret: str = Field(..., min_length=1, max_length=256)
    trap_id: str = Field(..., alias="trapId", description="Trap contract address")
    chain_id: int = Field(..., alias="chainId", gt=0)

    @field_validator("user_id")
    @classmethod
    def _user_id(cls, value: str) -> str:
        return validate_user_id(value)

    @field_validator("trap_id")
    @classmethod
    def _trap_id(cls, value: str) -> str:
        if not Web3.is_address(value):
            raise ValueError("trapId must be an EVM address")
        return Web3.to_checksum_address(value)
