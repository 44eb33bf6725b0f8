"""Shared API dependencies for request signatures and data access."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from trap_oracle.core.security import SIGNATURE_HEADER, decode_hmac_key, verify_body_signature
from trap_oracle.core.settings import ConfigurationError, settings
from trap_oracle.db.session import SessionLocal
from trap_oracle.repositories import ProcessedRepository, SubmissionRepository, UserRepository
from trap_oracle.services.crypto import SecretCipher, get_secret_cipher

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


def get_session_factory() -> SessionFactory:
    """Return the session factory repositories open their sessions from."""
    return SessionLocal


SessionFactoryDep = Annotated[SessionFactory, Depends(get_session_factory)]


def get_user_repository(session_factory: SessionFactoryDep) -> UserRepository:
    return UserRepository(session_factory)


def get_submission_repository(session_factory: SessionFactoryDep) -> SubmissionRepository:
    return SubmissionRepository(session_factory)


def get_processed_repository(session_factory: SessionFactoryDep) -> ProcessedRepository:
    return ProcessedRepository(session_factory)


def get_hmac_key() -> bytes:
    """Return the shared request-signing key.

    Raises:
        HTTPException: 503 if the key is not configured or not valid hex.
    """
    if not settings.api_hmac_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Request signing key is not configured",
        )
    try:
        return decode_hmac_key(settings.api_hmac_key)
    except ValueError as err:
        logger.error("API_HMAC_KEY is invalid: %s", err)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Request signing key is not configured",
        ) from err


def get_cipher() -> SecretCipher:
    """Return the secret cipher, or 503 when the master key is missing."""
    try:
        return get_secret_cipher()
    except (ConfigurationError, ValueError) as err:
        logger.error("Secret cipher unavailable: %s", err)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Secret encryption key is not configured",
        ) from err


UserRepoDep = Annotated[UserRepository, Depends(get_user_repository)]
SubmissionRepoDep = Annotated[SubmissionRepository, Depends(get_submission_repository)]
ProcessedRepoDep = Annotated[ProcessedRepository, Depends(get_processed_repository)]
HmacKeyDep = Annotated[bytes, Depends(get_hmac_key)]
CipherDep = Annotated[SecretCipher, Depends(get_cipher)]


def error_response(status_code: int, error: str) -> JSONResponse:
    """Build the ``{"ok": false, "error": ...}`` body used by ingestion endpoints."""
    return JSONResponse(status_code=status_code, content={"ok": False, "error": error})


async def read_signed_body(request: Request, key: bytes) -> bytes | None:
    """Return the raw body if its signature header is valid, else ``None``."""
    body = await request.body()
    if not verify_body_signature(key, body, request.headers.get(SIGNATURE_HEADER)):
        logger.warning("HMAC auth failed for %s", request.url.path)
        return None
    return body
