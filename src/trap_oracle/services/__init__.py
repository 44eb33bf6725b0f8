# src/trap_oracle/services/__init__.py
"""Oracle services: code engine, secret cipher, chain access and request processing."""

from .chain import ChainClient, ChainError, ChainWriteError, ChainWriter
from .crypto import SecretCipher, SecretDecryptionError
from .listener import EventListener, VerificationRequest
from .processor import ProcessOutcome, RequestProcessor
from .queue import WorkQueue

__all__ = [
    "ChainClient",
    "ChainError",
    "ChainWriteError",
    "ChainWriter",
    "EventListener",
    "ProcessOutcome",
    "RequestProcessor",
    "SecretCipher",
    "SecretDecryptionError",
    "VerificationRequest",
    "WorkQueue",
]
