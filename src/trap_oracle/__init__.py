"""Off-chain oracle for trap-aware one-time-password verification."""

__version__ = "0.1.0"
