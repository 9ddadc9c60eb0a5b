"""Memogram — Main entry point."""

import asyncio
import logging

from .bot import MemogramBot
from .cache import GroupCache
from .client import MemosClient
from .config import load_settings
from .store import CredentialStore

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("memogram")


def setup_logging(debug: bool = False):
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    # python-telegram-bot logs every poll through httpx at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    if debug:
        logger.setLevel(logging.DEBUG)


async def run():
    """Main run loop."""
    settings = load_settings()

    store = CredentialStore(settings.data)
    store.load()

    cache = GroupCache(ttl=settings.media_group_ttl, sweep_interval=settings.cache_sweep_interval)
    client = MemosClient(settings.server_addr)
    bot = MemogramBot(settings, client, store, cache)

    try:
        await bot.start()
        logger.info("Memogram is running. Press Ctrl+C to stop.")
        while True:
            await asyncio.sleep(1)
    finally:
        await bot.stop()
        await client.close()


def main():
    """Entry point."""
    setup_logging()
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
