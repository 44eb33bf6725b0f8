"""Encryption of user secrets at rest."""

from __future__ import annotations

import json
import secrets

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from trap_oracle.core.settings import ConfigurationError, settings

MASTER_KEY_LENGTH_BYTES = 32
IV_LENGTH_BYTES = 12
TAG_LENGTH_BYTES = 16


class SecretDecryptionError(ValueError):
    """Raised when a stored secret cannot be authenticated or decoded."""


class SecretCipher:
    """AES-256-GCM envelope for user secrets.

    Envelopes are JSON objects with hex-encoded ``iv``, ``content`` and ``tag``
    fields, so stored rows stay readable by other tooling.
    """

    def __init__(self, master_key: bytes) -> None:
        if len(master_key) != MASTER_KEY_LENGTH_BYTES:
            raise ValueError("Master encryption key must be 32 bytes")
        self._aead = AESGCM(master_key)

    @classmethod
    def from_hex(cls, master_key_hex: str) -> SecretCipher:
        """Build a cipher from a 64-character hex key."""
        try:
            key = bytes.fromhex(master_key_hex)
        except ValueError as err:
            raise ValueError(f"Invalid hex encoding for master key: {err}") from err
        return cls(key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a secret and return its JSON envelope."""
        iv = secrets.token_bytes(IV_LENGTH_BYTES)
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        content, tag = sealed[:-TAG_LENGTH_BYTES], sealed[-TAG_LENGTH_BYTES:]
        return json.dumps({"iv": iv.hex(), "content": content.hex(), "tag": tag.hex()})

    def decrypt(self, envelope: str) -> str:
        """Decrypt a JSON envelope produced by :meth:`encrypt`.

        Raises:
            SecretDecryptionError: If the envelope is malformed, was sealed under a
                different key, or fails authentication.
        """
        try:
            fields = json.loads(envelope)
            iv = bytes.fromhex(fields["iv"])
            content = bytes.fromhex(fields["content"])
            tag = bytes.fromhex(fields["tag"])
        except (TypeError, KeyError, ValueError) as err:
            raise SecretDecryptionError(f"Malformed secret envelope: {err}") from err

        if len(iv) != IV_LENGTH_BYTES or len(tag) != TAG_LENGTH_BYTES:
            raise SecretDecryptionError("Secret envelope has invalid iv or tag length")

        try:
            plaintext = self._aead.decrypt(iv, content + tag, None)
        except InvalidTag as err:
            raise SecretDecryptionError("Secret envelope failed authentication") from err

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as err:
            raise SecretDecryptionError("Decrypted secret is not valid UTF-8") from err


def get_secret_cipher() -> SecretCipher:
    """Return a cipher for the configured master key."""
    if not settings.master_enc_key:
        raise ConfigurationError("MASTER_ENC_KEY is not configured")
    return SecretCipher.from_hex(settings.master_enc_key)
