"""Request processing: from a decoded chain event to an on-chain fulfillment.

Each verification request moves through these steps, re-entered from the top
every time the request is (re)queued:

1. Idempotency gate: a ledger entry means the request is finished.
2. Expiry check: expired requests are recorded as failed without a chain write.
3. Submission correlation: the submission store is polled a fixed number of
   times; if nothing arrives, the whole request is requeued with a linear
   backoff, and recorded as failed once the requeue budget is spent.
4. Secret resolution and decryption: unknown users and undecryptable secrets
   are terminal failures.
5. Chain-state gathering: latest block and trap state, with fallbacks.
6. Verification and fulfillment: the verdict, right or wrong, is written
   on-chain and then to the ledger. If the write cannot be committed the
   request is left unresolved for an operator.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from trap_oracle.core.settings import Settings, settings
from trap_oracle.models.processed import STATUS_FAILED, STATUS_SUCCESS
from trap_oracle.repositories.base import (
    ProcessedLedger,
    ProcessedRecord,
    Submission,
    SubmissionStore,
    UserStore,
)
from trap_oracle.services import otp
from trap_oracle.services.chain import ZERO_HASH, BlockInfo, ChainClient, ChainWriteError, ChainWriter
from trap_oracle.services.crypto import SecretCipher, SecretDecryptionError
from trap_oracle.services.listener import VerificationRequest
from trap_oracle.services.queue import WorkQueue

logger = logging.getLogger(__name__)


class ProcessOutcome(Enum):
    """How a single pass over a request ended."""

    SKIPPED = "skipped"                    # already in the ledger
    EXPIRED = "expired"                    # past expiryAt, recorded failed
    INVALID_WINDOW = "invalid_window"      # expiryAt <= createdAt, recorded failed
    REQUEUED = "requeued"                  # no submission yet, scheduled again
    NO_SUBMISSION = "no_submission"        # requeue budget spent, recorded failed
    UNKNOWN_USER = "unknown_user"          # no registration, recorded failed
    DECRYPTION_FAILED = "decryption_failed"  # secret unusable, recorded failed
    VERIFIED = "verified"                  # correct code, fulfilled true
    REJECTED = "rejected"                  # wrong code, fulfilled false
    UNRESOLVED = "unresolved"              # chain write exhausted, operator needed


@dataclass(frozen=True)
class ProcessorConfig:
    """Retry and rotation policy for :class:`RequestProcessor`."""

    submission_poll_attempts: int = 10
    submission_poll_delay: float = 2.0
    requeue_max_attempts: int = 3
    requeue_base_delay: float = 5.0
    requeue_step_delay: float = 2.0
    rotation_mode: str = "block"
    rotation_interval_blocks: int = otp.ROTATION_INTERVAL
    time_step_seconds: int = otp.TIME_STEP_SECONDS

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> ProcessorConfig:
        config = config or settings
        return cls(
            submission_poll_attempts=config.submission_poll_attempts,
            submission_poll_delay=config.submission_poll_delay_seconds,
            requeue_max_attempts=config.requeue_max_attempts,
            requeue_base_delay=config.requeue_base_delay_seconds,
            requeue_step_delay=config.requeue_step_delay_seconds,
            rotation_mode=config.rotation_mode,
            rotation_interval_blocks=config.rotation_interval_blocks,
            time_step_seconds=config.time_step_seconds,
        )

    def requeue_delay(self, requeues_left: int) -> float:
        """Linear backoff: the delay grows as the remaining budget shrinks."""
        used = self.requeue_max_attempts - requeues_left
        return self.requeue_base_delay + self.requeue_step_delay * max(used, 0)


@dataclass(frozen=True)
class ChainSnapshot:
    """Chain state a verification was computed against."""

    block: BlockInfo
    trap_triggered: bool


class RequestProcessor:
    """Drives verification requests to a terminal or unresolved outcome."""

    def __init__(
        self,
        *,
        users: UserStore,
        submissions: SubmissionStore,
        ledger: ProcessedLedger,
        cipher: SecretCipher,
        chain: ChainClient,
        writer: ChainWriter,
        queue: WorkQueue,
        config: ProcessorConfig | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.users = users
        self.submissions = submissions
        self.ledger = ledger
        self.cipher = cipher
        self.chain = chain
        self.writer = writer
        self.queue = queue
        self.config = config or ProcessorConfig()
        self._clock = clock
        self._sleep = sleep

    def submit(self, request: VerificationRequest) -> None:
        """Queue a freshly observed request with a full requeue budget."""
        self._enqueue(request, self.config.requeue_max_attempts)

    def _enqueue(self, request: VerificationRequest, requeues_left: int, delay: float = 0.0) -> None:
        async def unit() -> ProcessOutcome:
            return await self.process(request, requeues_left=requeues_left)

        if delay > 0:
            self.queue.add_later(unit, delay)
        else:
            self.queue.add(unit)

    def _now(self) -> int:
        return int(self._clock())

    async def process(
        self,
        request: VerificationRequest,
        *,
        requeues_left: int | None = None,
    ) -> ProcessOutcome:
        """Run one pass over ``request``.

        Args:
            request: Decoded verification request.
            requeues_left: Remaining requeue budget; defaults to the full budget.
        """
        if requeues_left is None:
            requeues_left = self.config.requeue_max_attempts
        request_id = request.request_id
        logger.info("Processing request %s", request_id)

        processed = await self.ledger.get(request_id)
        if processed is not None:
            logger.info("Request %s already processed: %s", request_id, processed.status)
            return ProcessOutcome.SKIPPED

        if request.expiry_at <= request.created_at:
            logger.error(
                "Request %s has invalid window created=%d expiry=%d",
                request_id,
                request.created_at,
                request.expiry_at,
            )
            await self._record(request_id, STATUS_FAILED, None)
            return ProcessOutcome.INVALID_WINDOW

        now = self._now()
        if now > request.expiry_at:
            logger.warning("Request %s expired at %d (now %d)", request_id, request.expiry_at, now)
            await self._record(request_id, STATUS_FAILED, None)
            return ProcessOutcome.EXPIRED

        submission = await self._await_submission(request_id)
        if submission is None:
            return await self._requeue_or_fail(request, requeues_left)

        user = await self.users.get(submission.user_id)
        if user is None:
            logger.error("No secret for user %s, failing request %s", submission.user_id, request_id)
            await self._record(request_id, STATUS_FAILED, None)
            await self.submissions.delete(request_id)
            return ProcessOutcome.UNKNOWN_USER

        try:
            secret = self.cipher.decrypt(user.secret_encrypted)
        except SecretDecryptionError as e:
            logger.error("Failed to decrypt secret for request %s: %s", request_id, e)
            await self._record(request_id, STATUS_FAILED, None)
            await self.submissions.delete(request_id)
            return ProcessOutcome.DECRYPTION_FAILED

        snapshot = await self._gather_chain_state(request, user.trap_id, user.user_id, user.chain_id)
        key = self._rotation_key(snapshot.block)
        expected = otp.compute_code(secret, key, snapshot.trap_triggered)
        success = otp.codes_match(submission.code, expected)
        logger.info(
            "Request %s verified=%s block=%d hash=%s trap=%s",
            request_id,
            success,
            snapshot.block.number,
            snapshot.block.hash,
            otp.TrapState.from_flag(snapshot.trap_triggered).value,
        )

        try:
            tx_hash = await self.writer.fulfill(request_id, success)
        except ChainWriteError as e:
            logger.error(
                "Request %s unresolved: fulfillment failed after retries, "
                "submission kept for reconciliation: %s",
                request_id,
                e.last_error,
            )
            return ProcessOutcome.UNRESOLVED

        await self._record(request_id, STATUS_SUCCESS if success else STATUS_FAILED, tx_hash)
        await self.submissions.delete(request_id)
        logger.info("Request %s processed: success=%s tx=%s", request_id, success, tx_hash)
        return ProcessOutcome.VERIFIED if success else ProcessOutcome.REJECTED

    async def _await_submission(self, request_id: str) -> Submission | None:
        attempts = self.config.submission_poll_attempts
        for attempt in range(1, attempts + 1):
            submission = await self.submissions.get(request_id)
            if submission is not None:
                return submission
            if attempt < attempts:
                logger.warning(
                    "Submission for request %s not found yet (attempt %d/%d)",
                    request_id,
                    attempt,
                    attempts,
                )
                await self._sleep(self.config.submission_poll_delay)
        return None

    async def _requeue_or_fail(self, request: VerificationRequest, requeues_left: int) -> ProcessOutcome:
        request_id = request.request_id
        if requeues_left <= 0:
            logger.error("Retries exhausted for request %s with no submission, marking failed", request_id)
            await self._record(request_id, STATUS_FAILED, None)
            return ProcessOutcome.NO_SUBMISSION

        delay = self.config.requeue_delay(requeues_left)
        logger.info(
            "No submission for request %s; requeueing in %.1fs (%d left)",
            request_id,
            delay,
            requeues_left,
        )
        self._enqueue(request, requeues_left - 1, delay)
        return ProcessOutcome.REQUEUED

    async def _gather_chain_state(
        self,
        request: VerificationRequest,
        trap_id: str,
        user_id: str,
        chain_id: int,
    ) -> ChainSnapshot:
        try:
            block = await self.chain.latest_block()
        except Exception as e:
            fallback_number = request.block_number or 0
            logger.warning(
                "Latest block unavailable for request %s, using block %d and zero hash: %s",
                request.request_id,
                fallback_number,
                e,
            )
            block = BlockInfo(number=fallback_number, hash=ZERO_HASH)

        try:
            triggered = await self.chain.is_trap_triggered(trap_id, user_id, chain_id)
        except Exception as e:
            logger.warning(
                "Trap state unavailable for %s (request %s), assuming safe: %s",
                trap_id,
                request.request_id,
                e,
            )
            triggered = False

        return ChainSnapshot(block=block, trap_triggered=triggered)

    def _rotation_key(self, block: BlockInfo) -> int:
        if self.config.rotation_mode == "time":
            return otp.time_step_key(self._clock(), self.config.time_step_seconds)
        return otp.rotation_key(block.number, self.config.rotation_interval_blocks)

    async def _record(self, request_id: str, status: str, tx_hash: str | None) -> None:
        await self.ledger.put(
            ProcessedRecord(
                request_id=request_id,
                status=status,
                oracle_tx_hash=tx_hash,
                fulfilled_at=self._now(),
            )
        )
