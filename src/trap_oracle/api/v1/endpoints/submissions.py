"""Code submission endpoint."""

import logging

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from trap_oracle.db.time import unix_now
from trap_oracle.repositories import Submission
from trap_oracle.schemas.common import OkResponse
from trap_oracle.schemas.submission import SubmitCodeRequest

from ..dependencies import HmacKeyDep, SubmissionRepoDep, error_response, read_signed_body

logger = logging.getLogger(__name__)

router = APIRouter(tags=["submissions"])


@router.post(
    "/submit-code",
    response_model=OkResponse,
    responses={401: {"description": "Bad signature"}, 400: {"description": "Bad payload"}},
)
async def submit_code(
    request: Request,
    key: HmacKeyDep,
    submissions: SubmissionRepoDep,
) -> OkResponse | JSONResponse:
    """Store the code a user entered for a pending verification request.

    The body must be signed with the shared HMAC key. A later submission for
    the same request replaces an earlier one until the oracle consumes it.
    """
    body = await read_signed_body(request, key)
    if body is None:
        return error_response(status.HTTP_401_UNAUTHORIZED, "auth_failed")

    try:
        payload = SubmitCodeRequest.model_validate_json(body)
    except ValidationError as e:
        logger.info("Rejected submit-code payload: %d errors", e.error_count())
        return error_response(status.HTTP_400_BAD_REQUEST, "bad_payload")

    await submissions.put(
        Submission(
            request_id=payload.request_id,
            user_id=payload.user_id,
            code=payload.code,
            created_at=unix_now(),
        )
    )
    logger.info("Stored code for request %s user %s", payload.request_id, payload.user_id)
    return OkResponse()
