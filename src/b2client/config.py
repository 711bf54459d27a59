"""
Configuration management for b2client.
Loads environment variables (and a .env file, if present) and validates them.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from b2client.session import DEFAULT_API_URL

REQUIRED_VARIABLES = ("B2_ACCOUNT_ID", "B2_APPLICATION_KEY")


@dataclass(frozen=True)
class Config:
    account_id: str
    application_key: str = field(repr=False)
    api_url: str = DEFAULT_API_URL
    timeout: float = 60.0


def get_log_level() -> int:
    """Log level named by B2_LOG_LEVEL, WARNING if unset or unknown."""
    level = logging.getLevelName(os.getenv("B2_LOG_LEVEL", "WARNING").upper())
    return level if isinstance(level, int) else logging.WARNING


def get_config(*, load_env_file: bool = True) -> Config:
    """
    Load and validate configuration from environment variables.
    Raises ValueError if required variables are missing or malformed.
    """
    if load_env_file:
        load_dotenv()

    missing = [key for key in REQUIRED_VARIABLES if not os.getenv(key)]
    if missing:
        raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

    timeout = os.getenv("B2_TIMEOUT", "60")
    try:
        timeout_seconds = float(timeout)
    except ValueError as e:
        raise ValueError(f"B2_TIMEOUT must be a number of seconds, got {timeout!r}") from e

    return Config(
        account_id=os.environ["B2_ACCOUNT_ID"],
        application_key=os.environ["B2_APPLICATION_KEY"],
        api_url=os.getenv("B2_API_URL", DEFAULT_API_URL),
        timeout=timeout_seconds,
    )

