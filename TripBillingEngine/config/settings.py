"""
Settings Module

Environment-driven configuration for the trip billing engine.

Values are read from the process environment after loading an optional
.env file. Every value has a default so the engine runs unconfigured.

Variables:
    LOG_LEVEL: Root logging level for the API (default: INFO).
    SETTLED_TOLERANCE_MARGIN: Cents below which every balance must fall for
        a trip to count as settled (default: 2).
    MAX_LEAVE_BALANCE_MARGIN: Largest absolute balance, in cents, a
        participant may carry when leaving a trip (default: 1).
    CURRENCY_SYMBOL: Symbol used by format_currency (default: €).
    API_HOST / API_PORT: Bind address for uvicorn (default: 127.0.0.1:8000).

Functions:
    get_settings: Return the cached Settings instance.
"""

import logging
import os
from functools import lru_cache

from dotenv import load_dotenv


def _get_int(name: str, default: int) -> int:
    """
    Read an integer environment variable.

    Raises:
        ValueError: If the variable is set but not an integer.
    """
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got: {raw}")


def _get_log_level(name: str, default: str) -> str:
    """
    Read a logging level name such as DEBUG or info.

    Raises:
        ValueError: If the variable is set but not a known level name.
    """
    level = (os.getenv(name) or "").strip().upper() or default
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"{name} must be a logging level name, got: {os.getenv(name)}")
    return level


class Settings:
    """
    Runtime configuration values.

    Attributes:
        log_level (str): Logging level name.
        settled_tolerance_margin (int): Settled-trip tolerance in cents.
        max_leave_balance_margin (int): Leave-trip balance margin in cents.
        currency_symbol (str): Currency symbol for display.
        api_host (str): API bind host.
        api_port (int): API bind port.
    """

    def __init__(self):
        self.log_level = _get_log_level("LOG_LEVEL", "INFO")
        self.settled_tolerance_margin = _get_int("SETTLED_TOLERANCE_MARGIN", 2)
        self.max_leave_balance_margin = _get_int("MAX_LEAVE_BALANCE_MARGIN", 1)
        self.currency_symbol = os.getenv("CURRENCY_SYMBOL") or "€"
        self.api_host = os.getenv("API_HOST") or "127.0.0.1"
        self.api_port = _get_int("API_PORT", 8000)

    def __repr__(self) -> str:
        return (
            f"Settings(log_level='{self.log_level}', "
            f"settled_tolerance_margin={self.settled_tolerance_margin}, "
            f"max_leave_balance_margin={self.max_leave_balance_margin})"
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load the .env file (if any) and build the Settings once per process.

    Returns:
        Settings: Shared configuration instance.
    """
    load_dotenv()
    return Settings()
