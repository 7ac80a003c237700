"""
Session defaults.

Every value can be overridden through the environment, e.g.
``SIMPLEFTP_TIMEOUT=15``.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


DEFAULT_PORT = 21
DEFAULT_TIMEOUT = 90.0
DEFAULT_ENCODING = "utf-8"
BLOCK_SIZE = 8192


@dataclass
class SessionConfig:
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_TIMEOUT
    max_depth: Optional[int] = None
    encoding: str = DEFAULT_ENCODING

    @staticmethod
    def from_env() -> "SessionConfig":
        """Build a config from SIMPLEFTP_* variables, falling back to the defaults."""
        return SessionConfig(
            port=_env_int("SIMPLEFTP_PORT", DEFAULT_PORT),
            timeout=_env_float("SIMPLEFTP_TIMEOUT", DEFAULT_TIMEOUT),
            max_depth=_env_int("SIMPLEFTP_MAX_DEPTH", None),
            encoding=os.getenv("SIMPLEFTP_ENCODING", DEFAULT_ENCODING),
        )
