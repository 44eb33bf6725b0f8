"""Deterministic rotating codes mixed with trap-contract state.

Two rotation keys are supported and they are not interchangeable: a
deployment must use the one its verifier contract and clients use.

- Block rotation: ``rotation_key = block_number // ROTATION_INTERVAL``.
- Time step: ``rotation_key = unix_time // TIME_STEP_SECONDS``.

Given a rotation key, :func:`compute_code` digests
``"{rotation_key}:{TRIGGERED|SAFE}:{secret}"`` with HMAC-SHA256 keyed by the
secret and applies dynamic truncation to produce a six-digit code.
"""

from __future__ import annotations

import hashlib
import hmac
from enum import Enum

from trap_oracle.core.security import constant_time_equals

ROTATION_INTERVAL = 5
TIME_STEP_SECONDS = 30
CODE_DIGITS = 6
MAX_CODE = 10**CODE_DIGITS


class TrapState(str, Enum):
    """Trap-contract status tag mixed into the digest."""

    TRIGGERED = "TRIGGERED"
    SAFE = "SAFE"

    @classmethod
    def from_flag(cls, triggered: bool) -> TrapState:
        return cls.TRIGGERED if triggered else cls.SAFE


def rotation_key(block_number: int, interval: int = ROTATION_INTERVAL) -> int:
    """Return the rotation window index containing ``block_number``."""
    _check_block(block_number)
    return block_number // interval


def next_rotation_boundary(block_number: int, interval: int = ROTATION_INTERVAL) -> int:
    """Return the first block of the window after the one containing ``block_number``."""
    return (rotation_key(block_number, interval) + 1) * interval


def is_rotation_boundary(block_number: int, interval: int = ROTATION_INTERVAL) -> bool:
    """Return True if ``block_number`` opens a rotation window."""
    _check_block(block_number)
    return block_number % interval == 0


def time_step_key(unix_time: float, step: int = TIME_STEP_SECONDS) -> int:
    """Return the time-step index for a Unix timestamp."""
    if unix_time < 0:
        raise ValueError("unix_time must be non-negative")
    return int(unix_time // step)


def compute_code(
    secret: str,
    rotation_key: int,
    trap_state: TrapState | bool = TrapState.SAFE,
) -> int:
    """Return the code in ``[0, 10**6)`` for a secret, rotation key and trap state.

    Args:
        secret: Plaintext user secret; also the HMAC key.
        rotation_key: Block-window or time-step index.
        trap_state: :class:`TrapState` or a boolean "triggered" flag.
    """
    if not secret:
        raise ValueError("secret must not be empty")
    if isinstance(trap_state, bool):
        trap_state = TrapState.from_flag(trap_state)

    material = f"{rotation_key}:{trap_state.value}:{secret}".encode()
    digest = hmac.new(secret.encode(), material, hashlib.sha256).digest()

    offset = digest[-1] & 0x0F
    truncated = int.from_bytes(digest[offset : offset + 4], "big")
    return truncated % MAX_CODE


def format_code(code: int) -> str:
    """Render a code left-padded with zeros to six digits."""
    return f"{code:0{CODE_DIGITS}d}"


def codes_match(submitted: str, expected: int) -> bool:
    """Length-checked constant-time comparison of a submitted code."""
    return constant_time_equals(submitted, format_code(expected))


def _check_block(block_number: int) -> None:
    if block_number < 0:
        raise ValueError("block_number must be non-negative")
