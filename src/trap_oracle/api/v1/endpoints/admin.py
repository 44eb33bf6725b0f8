"""Operator endpoints for registering users."""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from trap_oracle.db.time import unix_now
from trap_oracle.repositories import UserRecord
from trap_oracle.schemas.common import OkResponse
from trap_oracle.schemas.user import RegisterUserRequest

from ..dependencies import CipherDep, HmacKeyDep, UserRepoDep, error_response, read_signed_body

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/users", response_model=OkResponse)
async def register_user(
    request: Request,
    key: HmacKeyDep,
    cipher: CipherDep,
    users: UserRepoDep,
) -> OkResponse | JSONResponse:
    """Register (or re-register) a user's secret and trap contract.

    Args:
        request: Incoming request; its raw body is what the signature covers.
        key: Shared HMAC key.
        cipher: Cipher sealing the secret before it is stored.
        users: User store.

    Returns:
        ``{"ok": true}``; the secret is never echoed back.
    """
    body = await read_signed_body(request, key)
    if body is None:
        return error_response(status.HTTP_401_UNAUTHORIZED, "auth_failed")

    try:
        payload = RegisterUserRequest.model_validate_json(body)
    except ValidationError as e:
        logger.info("Rejected registration payload: %d errors", e.error_count())
        return error_response(status.HTTP_400_BAD_REQUEST, "bad_payload")

    await users.put(
        UserRecord(
            user_id=payload.user_id,
            secret_encrypted=cipher.encrypt(payload.secret),
            trap_id=payload.trap_id,
            chain_id=payload.chain_id,
            created_at=unix_now(),
        )
    )
    logger.info("Registered user %s with trap %s on chain %d", payload.user_id, payload.trap_id, payload.chain_id)
    return OkResponse()
