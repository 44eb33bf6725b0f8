import json

import pytest

from trap_oracle.core.settings import ConfigurationError, settings
from trap_oracle.services.crypto import SecretCipher, SecretDecryptionError, get_secret_cipher


def test_envelope_shape(cipher):
    envelope = json.loads(cipher.encrypt("my seed"))
    assert set(envelope) == {"iv", "content", "tag"}
    assert len(bytes.fromhex(envelope["iv"])) == 12
    assert len(bytes.fromhex(envelope["tag"])) == 16
    assert "my seed" not in json.dumps(envelope)


def test_decrypt_recovers_secret(cipher):
    assert cipher.decrypt(cipher.encrypt("seed with ünïcode")) == "seed with ünïcode"


def test_fresh_iv_per_encryption(cipher):
    assert cipher.encrypt("same") != cipher.encrypt("same")


def test_wrong_key_fails_authentication(cipher):
    other = SecretCipher(b"\x33" * 32)
    with pytest.raises(SecretDecryptionError):
        other.decrypt(cipher.encrypt("seed"))


def test_tampered_tag_fails(cipher):
    envelope = json.loads(cipher.encrypt("seed"))
    envelope["tag"] = "00" * 16
    with pytest.raises(SecretDecryptionError):
        cipher.decrypt(json.dumps(envelope))


@pytest.mark.parametrize(
    "envelope",
    ["not json", "{}", json.dumps({"iv": "zz", "content": "", "tag": ""}), json.dumps({"iv": "00", "content": "00", "tag": "00"})],
)
def test_malformed_envelope(cipher, envelope):
    with pytest.raises(SecretDecryptionError):
        cipher.decrypt(envelope)


def test_master_key_length_enforced():
    with pytest.raises(ValueError):
        SecretCipher(b"short")
    with pytest.raises(ValueError):
        SecretCipher.from_hex("not-hex")


def test_get_secret_cipher_requires_master_key(monkeypatch):
    monkeypatch.setattr(settings, "master_enc_key", None)
    with pytest.raises(ConfigurationError):
        get_secret_cipher()
