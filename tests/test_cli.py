import json

import httpx

from trap_oracle.core.security import SIGNATURE_HEADER, sign_body, verify_body_signature
from trap_oracle.scripts import oracle_cli
from trap_oracle.services import otp

KEY_HEX = "22" * 32


def test_code_command_prints_expected_code(capsys):
    assert oracle_cli.main(["code", "--secret", "s3cret", "--block", "104"]) == 0

    expected = otp.format_code(otp.compute_code("s3cret", otp.rotation_key(104), False))
    assert capsys.readouterr().out.strip() == expected


def test_code_command_time_mode_and_triggered(capsys):
    oracle_cli.main(["code", "--secret", "s3cret", "--time", "1100", "--triggered"])

    expected = otp.format_code(otp.compute_code("s3cret", 36, True))
    assert capsys.readouterr().out.strip() == expected


def test_submit_signs_body(mocker, capsys):
    post = mocker.patch.object(httpx.Client, "post", return_value=httpx.Response(200, json={"ok": True}))

    rc = oracle_cli.main(
        [
            "--url", "http://oracle.test",
            "--key", KEY_HEX,
            "submit", "--request-id", "0x" + "01" * 32, "--user-id", "alice", "--code", "123456",
        ]
    )

    assert rc == 0
    path = post.call_args.args[0]
    body = post.call_args.kwargs["content"]
    header = post.call_args.kwargs["headers"][SIGNATURE_HEADER]
    assert path == "/api/v1/submit-code"
    assert json.loads(body)["code"] == "123456"
    assert verify_body_signature(bytes.fromhex(KEY_HEX), body, header)
    assert header == sign_body(bytes.fromhex(KEY_HEX), body)


def test_register_reports_http_failure(mocker):
    mocker.patch.object(httpx.Client, "post", return_value=httpx.Response(401, json={"ok": False}))

    rc = oracle_cli.main(
        [
            "--key", KEY_HEX,
            "register", "--user-id", "alice", "--secret", "s", "--trap-id", "0x" + "ee" * 20, "--chain-id", "1",
        ]
    )
    assert rc == 1


def test_key_required_for_http_commands(monkeypatch, capsys):
    monkeypatch.delenv("API_HMAC_KEY", raising=False)
    rc = oracle_cli.main(["--key", "", "submit", "--request-id", "0x01", "--user-id", "a", "--code", "1"])
    assert rc == 2
