import hashlib
import hmac

import pytest

from trap_oracle.services import otp
from trap_oracle.services.otp import TrapState


def _reference_code(secret: str, key: int, state: str) -> int:
    digest = hmac.new(secret.encode(), f"{key}:{state}:{secret}".encode(), hashlib.sha256).digest()
    offset = digest[-1] & 0x0F
    return int.from_bytes(digest[offset:offset + 4], "big") % 1_000_000


@pytest.mark.parametrize(
    ("block", "boundary"),
    [(100, 105), (104, 105), (105, 110), (0, 5)],
)
def test_next_rotation_boundary(block, boundary):
    assert otp.next_rotation_boundary(block) == boundary


@pytest.mark.parametrize(("block", "key"), [(100, 20), (104, 20), (105, 21), (4, 0)])
def test_rotation_key(block, key):
    assert otp.rotation_key(block) == key


def test_is_rotation_boundary_only_on_multiples_of_interval():
    assert [n for n in range(0, 16) if otp.is_rotation_boundary(n)] == [0, 5, 10, 15]


def test_negative_block_rejected():
    with pytest.raises(ValueError):
        otp.rotation_key(-1)


def test_time_step_key():
    assert otp.time_step_key(59.9) == 1
    assert otp.time_step_key(60) == 2
    assert otp.time_step_key(125, step=60) == 2


def test_compute_code_matches_truncated_hmac():
    assert otp.compute_code("seed-one", 20, TrapState.SAFE) == _reference_code("seed-one", 20, "SAFE")
    assert otp.compute_code("seed-one", 20, True) == _reference_code("seed-one", 20, "TRIGGERED")


def test_code_is_stable_within_a_rotation_window():
    codes = {otp.compute_code("s3cret", otp.rotation_key(block)) for block in range(100, 105)}
    assert len(codes) == 1


def test_trap_state_changes_the_code():
    safe = [otp.compute_code("s3cret", key, False) for key in range(50)]
    triggered = [otp.compute_code("s3cret", key, True) for key in range(50)]
    # Two independent six-digit values collide rarely; across 50 windows they never all do.
    assert safe != triggered


def test_code_range_and_format():
    for key in range(200):
        code = otp.compute_code("range-check", key)
        assert 0 <= code < otp.MAX_CODE
        rendered = otp.format_code(code)
        assert len(rendered) == 6 and rendered.isdigit()
    assert otp.format_code(42) == "000042"


def test_empty_secret_rejected():
    with pytest.raises(ValueError):
        otp.compute_code("", 1)


def test_codes_match_requires_zero_padded_code():
    assert otp.codes_match("000042", 42)
    assert not otp.codes_match("42", 42)
    assert not otp.codes_match("000043", 42)
    assert not otp.codes_match("", 42)


def test_code_changes_across_a_rotation_boundary():
    secrets_ = [f"secret-{n}" for n in range(200)]
    assert otp.rotation_key(104) != otp.rotation_key(105)

    same = sum(
        otp.compute_code(secret, otp.rotation_key(104)) == otp.compute_code(secret, otp.rotation_key(105))
        for secret in secrets_
    )
    # A collision between independent six-digit codes has probability 1e-6.
    assert same <= 1
