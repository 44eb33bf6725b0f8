"""Verification-request event stream.

The listener polls the verifier contract for ``VerificationRequested`` logs
and yields them as :class:`VerificationRequest` records. It does not
deduplicate: a redelivered event is turned away by the processed-request
ledger, not here.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from typing import Any

from web3 import Web3

from trap_oracle.repositories.base import CursorStore
from trap_oracle.services.chain import ChainClient, ChainError, EventDecodeError

logger = logging.getLogger(__name__)

BYTES32_LENGTH = 32
MAX_ERROR_BACKOFF_SECONDS = 30.0


@dataclass(frozen=True)
class VerificationRequest:
    """Normalized on-chain verification request."""

    request_id: str
    requester: str
    user_id: str
    created_at: int
    expiry_at: int
    block_number: int | None = None


def decode_bytes32_string(value: bytes) -> str:
    """Decode a NUL-terminated UTF-8 string packed into 32 bytes."""
    if not isinstance(value, (bytes, bytearray)) or len(value) != BYTES32_LENGTH:
        raise EventDecodeError("bytes32 string must be exactly 32 bytes")
    if value[-1] != 0:
        raise EventDecodeError("bytes32 string is missing its null terminator")
    try:
        return bytes(value).rstrip(b"\x00").decode("utf-8")
    except UnicodeDecodeError as err:
        raise EventDecodeError(f"bytes32 string is not valid UTF-8: {err}") from err


def encode_bytes32_string(text: str) -> bytes:
    """Pack a short UTF-8 string into 32 bytes, leaving room for the terminator."""
    raw = text.encode("utf-8")
    if len(raw) > BYTES32_LENGTH - 1:
        raise ValueError("string too long for bytes32")
    return raw.ljust(BYTES32_LENGTH, b"\x00")


def decode_request(event: Mapping[str, Any]) -> VerificationRequest:
    """Turn a decoded ``VerificationRequested`` log into a request record.

    Raises:
        EventDecodeError: If a field is missing or has the wrong shape.
    """
    try:
        args = event["args"]
        request_id_raw = args["requestId"]
        if not isinstance(request_id_raw, (bytes, bytearray)) or len(request_id_raw) != BYTES32_LENGTH:
            raise EventDecodeError("requestId must be 32 bytes")
        block_number = event.get("blockNumber")
        return VerificationRequest(
            request_id=Web3.to_hex(bytes(request_id_raw)),
            requester=str(args["requester"]),
            user_id=decode_bytes32_string(args["userId"]),
            created_at=int(args["createdAt"]),
            expiry_at=int(args["expiryAt"]),
            block_number=int(block_number) if block_number is not None else None,
        )
    except EventDecodeError:
        raise
    except (KeyError, TypeError, ValueError, AttributeError) as err:
        raise EventDecodeError(f"Malformed VerificationRequested event: {err}") from err


class EventListener:
    """Polls block ranges for verification requests and yields them in order."""

    def __init__(
        self,
        client: ChainClient,
        *,
        cursor_store: CursorStore | None = None,
        poll_interval: float = 2.0,
        batch_size: int = 500,
        start_block: int | None = None,
    ) -> None:
        """Initialize the listener.

        Args:
            client: Chain client used to read block numbers and logs.
            cursor_store: Optional store persisting the last scanned block.
            poll_interval: Seconds between polls once caught up.
            batch_size: Maximum number of blocks per log query.
            start_block: First block to scan when no cursor is stored. Defaults
                to the latest block at start-up.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.client = client
        self.cursor_store = cursor_store
        self.poll_interval = poll_interval
        self.batch_size = batch_size
        self.start_block = start_block
        self.last_block: int | None = None

    async def _initial_cursor(self) -> int:
        if self.cursor_store is not None:
            stored = await self.cursor_store.get()
            if stored is not None:
                return stored
        if self.start_block is not None:
            return self.start_block - 1
        return await self.client.latest_block_number()

    async def _advance(self, block: int) -> None:
        self.last_block = block
        if self.cursor_store is not None:
            await self.cursor_store.put(block)

    async def _scan(self) -> tuple[list[VerificationRequest], int, bool]:
        """Read the next block range without moving the cursor.

        Returns:
            The decoded requests, the last block covered, and whether that
            block is the chain head.
        """
        if self.last_block is None:
            self.last_block = await self._initial_cursor()

        latest = await self.client.latest_block_number()
        from_block = self.last_block + 1
        if latest < from_block:
            return [], self.last_block, True
        to_block = min(latest, from_block + self.batch_size - 1)

        logs = await self.client.get_request_logs(from_block, to_block)
        requests: list[VerificationRequest] = []
        for log in logs:
            try:
                request = decode_request(self.client.decode_request_log(log))
            except EventDecodeError as e:
                logger.error("Dropping undecodable VerificationRequested event: %s", e)
                continue
            logger.info(
                "Event: VerificationRequested %s user=%s block=%s",
                request.request_id,
                request.user_id,
                request.block_number,
            )
            requests.append(request)

        return requests, to_block, to_block >= latest

    async def poll_once(self) -> list[VerificationRequest]:
        """Scan the next block range, advance the cursor and return its requests."""
        requests, to_block, _ = await self._scan()
        await self._advance(to_block)
        return requests

    async def stream(self) -> AsyncIterator[VerificationRequest]:
        """Yield verification requests for as long as the caller keeps iterating.

        The cursor only moves once every request of a range has been handed to
        the consumer. RPC failures are logged and retried with a growing pause;
        they never end the stream. Cancelling the consuming task stops the
        subscription.
        """
        failures = 0
        while True:
            try:
                requests, to_block, caught_up = await self._scan()
            except (ChainError, OSError, ConnectionError, TimeoutError) as e:
                failures += 1
                delay = min(self.poll_interval * 2**failures, MAX_ERROR_BACKOFF_SECONDS)
                logger.warning("Event listener poll failed, retrying in %.1fs: %s", delay, e)
                await asyncio.sleep(delay)
                continue

            failures = 0
            for request in requests:
                yield request
            await self._advance(to_block)

            if caught_up:
                await asyncio.sleep(self.poll_interval)
