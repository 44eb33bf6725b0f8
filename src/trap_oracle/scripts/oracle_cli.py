# src/trap_oracle/scripts/oracle_cli.py
"""Operator command line for a running Trap Oracle.

Sub-commands:

- ``register``: sign and POST a user registration to ``/api/v1/admin/users``
- ``submit``: sign and POST a code to ``/api/v1/submit-code``
- ``code``: print the code the oracle would expect for a secret
"""

from __future__ import annotations

import argparse
import json
import os
import sys
import time

import httpx

from trap_oracle.core.security import SIGNATURE_HEADER, decode_hmac_key, sign_body
from trap_oracle.services import otp


def signed_post(base_url: str, path: str, payload: dict[str, object], key_hex: str, timeout: float) -> httpx.Response:
    """POST ``payload`` as compact JSON with a body signature header."""
    body = json.dumps(payload, separators=(",", ":")).encode()
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: sign_body(decode_hmac_key(key_hex), body),
    }
    with httpx.Client(base_url=base_url, timeout=timeout) as client:
        return client.post(path, content=body, headers=headers)


def expected_code(secret: str, *, block: int | None, unix_time: float | None, triggered: bool) -> str:
    """Return the zero-padded code for a block number or, without one, a time step."""
    if block is not None:
        key = otp.rotation_key(block)
    else:
        key = otp.time_step_key(time.time() if unix_time is None else unix_time)
    return otp.format_code(otp.compute_code(secret, key, triggered))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Trap Oracle operator tool")
    p.add_argument(
        "--url",
        default=os.environ.get("ORACLE_URL", "http://127.0.0.1:8000"),
        help="Oracle base URL (default: %(default)s or $ORACLE_URL)",
    )
    p.add_argument(
        "--key",
        default=os.environ.get("API_HMAC_KEY"),
        help="Hex HMAC key used to sign requests (default: $API_HMAC_KEY)",
    )
    p.add_argument("--timeout", type=float, default=10.0, help="HTTP timeout seconds")
    sub = p.add_subparsers(dest="command", required=True)

    reg = sub.add_parser("register", help="Register a user's secret and trap contract")
    reg.add_argument("--user-id", required=True)
    reg.add_argument("--secret", required=True)
    reg.add_argument("--trap-id", required=True, help="Trap contract address")
    reg.add_argument("--chain-id", type=int, required=True)

    submit = sub.add_parser("submit", help="Submit a code for a verification request")
    submit.add_argument("--request-id", required=True)
    submit.add_argument("--user-id", required=True)
    submit.add_argument("--code", required=True)

    code = sub.add_parser("code", help="Print the expected code for a secret")
    code.add_argument("--secret", required=True)
    code.add_argument("--block", type=int, default=None, help="Block number (block rotation)")
    code.add_argument("--time", type=float, default=None, help="Unix time (time rotation)")
    code.add_argument("--triggered", action="store_true", help="Compute the trap-triggered code")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    if args.command == "code":
        print(expected_code(args.secret, block=args.block, unix_time=args.time, triggered=args.triggered))
        return 0

    if not args.key:
        print("error: --key or $API_HMAC_KEY is required", file=sys.stderr)
        return 2

    if args.command == "register":
        path = "/api/v1/admin/users"
        payload: dict[str, object] = {
            "userId": args.user_id,
            "secret": args.secret,
            "trapId": args.trap_id,
            "chainId": args.chain_id,
        }
    else:
        path = "/api/v1/submit-code"
        payload = {"requestId": args.request_id, "userId": args.user_id, "code": args.code}

    try:
        resp = signed_post(args.url, path, payload, args.key, args.timeout)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except httpx.HTTPError as e:
        print(f"error: request failed: {e}", file=sys.stderr)
        return 1

    print(resp.text)
    return 0 if resp.is_success else 1


if __name__ == "__main__":
    sys.exit(main())
