"""Process-wide logging setup."""
from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a root handler at ``level`` unless one is already configured."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    logging.getLogger("trap_oracle").setLevel(level.upper())
