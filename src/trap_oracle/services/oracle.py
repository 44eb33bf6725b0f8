"""Background oracle worker.

This module provides the OracleWorker class that ties the event listener to
the request processor: every ``VerificationRequested`` event observed on the
verifier contract is queued for processing on a bounded worker pool.
"""

from __future__ import annotations

import asyncio
import logging

from trap_oracle.core.settings import Settings, settings
from trap_oracle.db.session import SessionLocal
from trap_oracle.repositories import (
    CursorRepository,
    ProcessedRepository,
    SubmissionRepository,
    UserRepository,
)
from trap_oracle.services.chain import ChainClient, ChainWriter
from trap_oracle.services.crypto import get_secret_cipher
from trap_oracle.services.listener import EventListener
from trap_oracle.services.processor import ProcessorConfig, RequestProcessor
from trap_oracle.services.queue import WorkQueue

logger = logging.getLogger(__name__)

RESTART_DELAY_SECONDS = 5.0


class OracleWorker:
    """Consumes verification requests and feeds them to the processor.

    The worker owns a :class:`WorkQueue`; stopping it cancels the event
    subscription first, then waits up to ``drain_timeout`` seconds for
    in-flight requests before abandoning them.
    """

    def __init__(
        self,
        listener: EventListener,
        processor: RequestProcessor,
        *,
        drain_timeout: float = 300.0,
    ) -> None:
        self.listener = listener
        self.processor = processor
        self.drain_timeout = drain_timeout
        self._task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> OracleWorker:
        """Wire a worker against the configured database and chain."""
        config = config or settings
        client = ChainClient.from_settings(config)
        queue = WorkQueue(config.worker_concurrency)
        processor = RequestProcessor(
            users=UserRepository(SessionLocal),
            submissions=SubmissionRepository(SessionLocal),
            ledger=ProcessedRepository(SessionLocal),
            cipher=get_secret_cipher(),
            chain=client,
            writer=ChainWriter(
                client,
                max_attempts=config.fulfill_max_attempts,
                backoff_base=config.fulfill_backoff_base_seconds,
            ),
            queue=queue,
            config=ProcessorConfig.from_settings(config),
        )
        listener = EventListener(
            client,
            cursor_store=CursorRepository(SessionLocal),
            poll_interval=config.event_poll_interval_seconds,
            batch_size=config.event_block_batch_size,
            start_block=config.start_block,
        )
        logger.info("Oracle address %s", client.oracle_address)
        return cls(listener, processor, drain_timeout=config.shutdown_drain_timeout_seconds)

    @property
    def queue(self) -> WorkQueue:
        return self.processor.queue

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start listening for verification requests."""
        if self.is_running:
            return
        self.queue.start()
        self._task = asyncio.create_task(self._run(), name="oracle-listener")
        logger.info("Oracle worker started")

    async def stop(self) -> bool:
        """Stop listening and drain in-flight requests.

        Returns:
            True if every queued request finished before the drain timeout.
        """
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        drained = await self.queue.close(self.drain_timeout)
        logger.info("Oracle worker stopped (drained=%s)", drained)
        return drained

    async def _run(self) -> None:
        while True:
            try:
                async for request in self.listener.stream():
                    self.processor.submit(request)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Event subscription failed, restarting in %.0fs",
                    RESTART_DELAY_SECONDS,
                )
                await asyncio.sleep(RESTART_DELAY_SECONDS)
