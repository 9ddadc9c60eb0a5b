"""Memogram configuration management."""

import logging
import os
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

logger = logging.getLogger("memogram.config")


class MemogramSettings(BaseSettings):
    """Settings loaded from environment variables or .env file."""

    # Memos
    server_addr: str = Field(description="Memos server URL, e.g. http://localhost:5230")

    # Telegram
    bot_token: str = Field(description="Telegram bot token")
    bot_proxy_addr: Optional[str] = Field(default=None, description="Telegram Bot API base URL override")

    # Credential file
    data: str = Field(default="data.txt", description="Path of the user access token file")

    # Comma separated Telegram usernames; empty allows everyone
    allowed_usernames: str = Field(default="", description="Allowed Telegram usernames")

    # Media groups
    media_group_ttl: float = Field(default=24 * 60 * 60, description="Seconds an album keeps its memo")
    cache_sweep_interval: float = Field(default=5 * 60, description="Seconds between cache sweeps")

    model_config = {"env_file": ".env", "extra": "ignore"}


def load_settings(**overrides) -> MemogramSettings:
    """Load settings from environment and prepare the data file.

    Raises:
        ValueError: DATA points at a directory.
    """
    settings = MemogramSettings(**overrides)

    data = os.path.abspath(settings.data)
    if os.path.isdir(data):
        raise ValueError(f"data file cannot be a directory: {data}")
    if not os.path.exists(data):
        os.makedirs(os.path.dirname(data), exist_ok=True)
        open(data, "a", encoding="utf-8").close()
        logger.info(f"Created data file {data}")
    settings.data = data

    if not settings.server_addr.startswith(("http://", "https://")):
        logger.warning(
            f"SERVER_ADDR {settings.server_addr!r} has no scheme; assuming http://"
        )
        settings.server_addr = f"http://{settings.server_addr}"

    return settings
