import pytest

from trap_oracle.core.security import (
    constant_time_equals,
    decode_hmac_key,
    sign_body,
    verify_body_signature,
)


KEY = bytes.fromhex("22" * 32)
BODY = b'{"requestId":"0x01","userId":"alice","code":"123456"}'


def test_signature_round_trip():
    header = sign_body(KEY, BODY)
    assert header.startswith("sha256=")
    assert verify_body_signature(KEY, BODY, header)


def test_signature_accepts_upper_case_hex():
    scheme, digest = sign_body(KEY, BODY).split("=", 1)
    assert verify_body_signature(KEY, BODY, f"{scheme}={digest.upper()}")


@pytest.mark.parametrize(
    "header",
    [None, "", "sha256=", "sha1=" + "00" * 20, "sha256=" + "00" * 32, "garbage"],
)
def test_signature_rejects_bad_headers(header):
    assert not verify_body_signature(KEY, BODY, header)


def test_signature_bound_to_body_and_key():
    header = sign_body(KEY, BODY)
    assert not verify_body_signature(KEY, BODY + b" ", header)
    assert not verify_body_signature(b"other-key", BODY, header)


def test_constant_time_equals_length_check():
    assert constant_time_equals("abc", "abc")
    assert not constant_time_equals("abc", "abcd")
    assert not constant_time_equals("abc", "abd")


def test_decode_hmac_key_rejects_bad_values():
    with pytest.raises(ValueError):
        decode_hmac_key("xyz")
    with pytest.raises(ValueError):
        decode_hmac_key("")
