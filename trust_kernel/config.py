"""Configuration and logging setup for the Trust Kernel."""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from TRUST_KERNEL_* environment variables or .env."""

    model_config = ConfigDict(
        env_prefix="TRUST_KERNEL_",
        env_file=".env",
        extra="ignore",
    )

    # Storage
    database_path: str = ":memory:"

    # API
    api_key: Optional[str] = None           # When set, X-Api-Key must match
    default_page_size: int = 100

    # Logging
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the package logger."""
    logger = logging.getLogger("trust_kernel")
    logger.setLevel(level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(handler)
