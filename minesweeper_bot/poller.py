"""Long-polling worker for the Minesweeper bot."""
import logging
from typing import Optional

from telegram import Update
from telegram.ext import Application

from minesweeper_bot.bot_provider import BotConfig, build_application, load_bot_config
from minesweeper_bot.orchestrator import GameOrchestrator
from minesweeper_bot.telegram_handlers import TelegramGameHandler

logger = logging.getLogger(__name__)


async def announce(application: Application) -> None:
    logger.info(f"Worker started as @{application.bot.username}, polling for updates")


def run(config: BotConfig, orchestrator: Optional[GameOrchestrator] = None) -> None:
    """
    Poll Telegram until interrupted.

    The Updater behind run_polling retries failed getUpdates calls with
    backoff, so network trouble pauses the worker instead of ending it.
    """
    handler = TelegramGameHandler(orchestrator or GameOrchestrator())
    application = build_application(config, handler, post_init=announce)
    application.run_polling(
        poll_interval=config.delay,
        timeout=config.poll_timeout,
        allowed_updates=Update.ALL_TYPES,
    )


def main():
    """Start the polling worker."""
    logging.basicConfig(level=logging.INFO)
    config = load_bot_config()
    run(config)


if __name__ == "__main__":
    main()
