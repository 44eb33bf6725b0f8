"""Blockchain access for the oracle.

This module provides the single chain interface the oracle core relies on:

- Reading the latest block and a user's trap-contract state
- Fetching ``VerificationRequested`` logs from the verifier contract
- Signing and submitting ``fulfillVerification`` transactions

All web3 calls are blocking, so each one runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from eth_abi.exceptions import DecodingError
from eth_account import Account
from web3 import Web3
from web3.exceptions import Web3Exception

from trap_oracle.core.settings import ConfigurationError, Settings, settings

logger = logging.getLogger(__name__)

ZERO_HASH = "0x" + "00" * 32

VERIFICATION_REQUESTED_SIGNATURE = "VerificationRequested(bytes32,address,bytes32,uint64,uint64)"
VERIFICATION_REQUESTED_TOPIC = Web3.to_hex(Web3.keccak(text=VERIFICATION_REQUESTED_SIGNATURE))

VERIFIER_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "fulfillVerification",
        "inputs": [
            {"name": "requestId", "type": "bytes32", "internalType": "bytes32"},
            {"name": "success", "type": "bool", "internalType": "bool"},
        ],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
    {
        "type": "event",
        "name": "VerificationRequested",
        "anonymous": False,
        "inputs": [
            {"name": "requestId", "type": "bytes32", "indexed": True, "internalType": "bytes32"},
            {"name": "requester", "type": "address", "indexed": True, "internalType": "address"},
            {"name": "userId", "type": "bytes32", "indexed": True, "internalType": "bytes32"},
            {"name": "createdAt", "type": "uint64", "indexed": False, "internalType": "uint64"},
            {"name": "expiryAt", "type": "uint64", "indexed": False, "internalType": "uint64"},
        ],
    },
]

TRAP_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "shouldRespond",
        "inputs": [
            {"name": "userId", "type": "bytes32", "internalType": "bytes32"},
            {"name": "chainId", "type": "uint256", "internalType": "uint256"},
            {"name": "verifierAddress", "type": "address", "internalType": "address"},
        ],
        "outputs": [{"name": "", "type": "bool", "internalType": "bool"}],
        "stateMutability": "view",
    },
]

# Failures raised by web3 and its HTTP transport for a single RPC round trip.
_RPC_ERRORS = (Web3Exception, OSError, TimeoutError, ValueError)

# Failures raised while decoding one log against the event ABI.
_DECODE_ERRORS = (Web3Exception, DecodingError, KeyError, TypeError, ValueError)


class ChainError(RuntimeError):
    """Raised when a blockchain read or write fails."""


class EventDecodeError(ValueError):
    """Raised when a log cannot be decoded into a verification request."""


class ChainWriteError(ChainError):
    """Raised when a fulfillment could not be committed after all retries.

    Attributes:
        request_id: Request whose fulfillment failed.
        attempts: Number of submissions tried.
        last_error: Underlying error from the final attempt.
    """

    def __init__(self, request_id: str, attempts: int, last_error: BaseException | None) -> None:
        super().__init__(
            f"Fulfillment of {request_id} failed after {attempts} attempts: {last_error}"
        )
        self.request_id = request_id
        self.attempts = attempts
        self.last_error = last_error


@dataclass(frozen=True)
class BlockInfo:
    """Number and hash of a block."""

    number: int
    hash: str


class ChainClient:
    """web3-backed implementation of the oracle's chain operations."""

    def __init__(
        self,
        w3: Web3,
        *,
        verifier_address: str,
        private_key: str,
        gas_limit: int = 300_000,
        receipt_timeout: float = 120.0,
    ) -> None:
        """Initialize the client.

        Args:
            w3: Connected Web3 instance.
            verifier_address: Address of the verifier contract.
            private_key: Oracle signing key (hex).
            gas_limit: Fixed gas limit for fulfillment transactions.
            receipt_timeout: Seconds to wait for a fulfillment receipt.
        """
        self.w3 = w3
        self.account = Account.from_key(private_key)
        self.verifier = w3.eth.contract(
            address=Web3.to_checksum_address(verifier_address),
            abi=VERIFIER_ABI,
        )
        self.gas_limit = gas_limit
        self.receipt_timeout = receipt_timeout

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> ChainClient:
        """Build a client from application settings."""
        config = config or settings
        if not config.chain_configured:
            raise ConfigurationError(
                "PROVIDER_URL, ORACLE_PRIVATE_KEY and VERIFIER_CONTRACT_ADDRESS are required"
            )
        w3 = Web3(
            Web3.HTTPProvider(
                config.provider_url,
                request_kwargs={"timeout": config.rpc_timeout_seconds},
            )
        )
        return cls(
            w3,
            verifier_address=str(config.verifier_contract_address),
            private_key=str(config.oracle_private_key),
            gas_limit=config.gas_limit,
            receipt_timeout=config.receipt_timeout_seconds,
        )

    @property
    def oracle_address(self) -> str:
        """Address the oracle signs fulfillments with."""
        return str(self.account.address)

    async def latest_block(self) -> BlockInfo:
        """Return the number and hash of the latest block."""
        return await self._call("latest_block", self._latest_block_sync)

    async def latest_block_number(self) -> int:
        """Return the latest block number."""
        return await self._call("block_number", lambda: int(self.w3.eth.block_number))

    async def is_trap_triggered(self, trap_id: str, user_id: str, chain_id: int) -> bool:
        """Query ``shouldRespond`` on a user's trap contract."""
        return await self._call(
            "trap_state",
            lambda: self._is_trap_triggered_sync(trap_id, user_id, chain_id),
        )

    async def get_request_logs(self, from_block: int, to_block: int) -> Sequence[Mapping[str, Any]]:
        """Return raw ``VerificationRequested`` logs in an inclusive block range.

        Logs are not decoded here so that one malformed log cannot fail the
        whole range; see :meth:`decode_request_log`.
        """
        return await self._call(
            "get_logs",
            lambda: list(
                self.w3.eth.get_logs(
                    {
                        "address": self.verifier.address,
                        "topics": [VERIFICATION_REQUESTED_TOPIC],
                        "fromBlock": from_block,
                        "toBlock": to_block,
                    }
                )
            ),
        )

    def decode_request_log(self, log: Mapping[str, Any]) -> Mapping[str, Any]:
        """Decode one raw log against the ``VerificationRequested`` ABI.

        Raises:
            EventDecodeError: If the log does not match the event ABI.
        """
        try:
            return self.verifier.events.VerificationRequested().process_log(log)
        except _DECODE_ERRORS as err:
            raise EventDecodeError(f"Undecodable VerificationRequested log: {err}") from err

    async def send_fulfillment(self, request_id: str, success: bool) -> str:
        """Submit one ``fulfillVerification`` transaction and wait for its receipt.

        Returns:
            The ``0x``-prefixed transaction hash.
        """
        return await self._call(
            "fulfill",
            lambda: self._send_fulfillment_sync(request_id, success),
        )

    async def _call(self, operation: str, func: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(func)
        except ChainError:
            raise
        except _RPC_ERRORS as err:
            raise ChainError(f"{operation} failed: {err}") from err

    def _latest_block_sync(self) -> BlockInfo:
        block = self.w3.eth.get_block("latest")
        block_hash = block.get("hash")
        return BlockInfo(
            number=int(block["number"]),
            hash=Web3.to_hex(block_hash) if block_hash else ZERO_HASH,
        )

    def _is_trap_triggered_sync(self, trap_id: str, user_id: str, chain_id: int) -> bool:
        trap = self.w3.eth.contract(address=Web3.to_checksum_address(trap_id), abi=TRAP_ABI)
        result = trap.functions.shouldRespond(
            Web3.keccak(text=user_id),
            int(chain_id),
            self.verifier.address,
        ).call()
        return bool(result)

    def _send_fulfillment_sync(self, request_id: str, success: bool) -> str:
        call = self.verifier.functions.fulfillVerification(
            Web3.to_bytes(hexstr=request_id),
            bool(success),
        )
        tx = call.build_transaction(
            {
                "from": self.account.address,
                "nonce": self.w3.eth.get_transaction_count(self.account.address, "pending"),
                "gas": self.gas_limit,
            }
        )
        signed = self.account.sign_transaction(tx)
        tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        logger.debug("Sent fulfillment %s for %s", Web3.to_hex(tx_hash), request_id)

        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        if receipt.get("status") != 1:
            raise ChainError(f"Fulfillment transaction {Web3.to_hex(tx_hash)} reverted")
        return Web3.to_hex(receipt["transactionHash"])


class ChainWriter:
    """Commits fulfillments with capped exponential backoff.

    Every failure, whether raised while sending or while waiting for the
    receipt, takes the same retry path. When the attempts run out a single
    :class:`ChainWriteError` carrying the last underlying error is raised.
    """

    def __init__(
        self,
        client: ChainClient,
        *,
        max_attempts: int = 4,
        backoff_base: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """Delay after the ``attempt``-th failure (1-based): base * 2**attempt."""
        return self.backoff_base * (2**attempt)

    async def fulfill(self, request_id: str, success: bool) -> str:
        """Submit the fulfillment and return its transaction hash.

        Raises:
            ChainWriteError: If every attempt failed.
        """
        last_error: BaseException | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self.client.send_fulfillment(request_id, success)
            except Exception as err:
                last_error = err
                if attempt == self.max_attempts:
                    break
                delay = self.backoff_delay(attempt)
                logger.warning(
                    "Fulfillment attempt %d/%d for %s failed, retrying in %.1fs: %s",
                    attempt,
                    self.max_attempts,
                    request_id,
                    delay,
                    err,
                )
                await self._sleep(delay)

        raise ChainWriteError(request_id, self.max_attempts, last_error)
