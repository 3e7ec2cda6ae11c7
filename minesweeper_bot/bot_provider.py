import json
import os
import pathlib
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from telegram.ext import Application

from minesweeper_bot.telegram_handlers import TelegramGameHandler, configure_telegram_handlers, schedule_idle_sweep

DEFAULT_CONFIG_FILE = "config.json"


@dataclass
class BotConfig:
    """Settings for talking to the Telegram Bot API."""
    token: str
    delay: int = 0
    poll_timeout: int = 30
    webhook_secret: Optional[str] = None
    session_idle_timeout: float = 24 * 60 * 60


# Loads the bot configuration. Environment variables win; anything they
# leave unset is taken from the JSON config file, if one exists.
def load_bot_config(config_file_path: Optional[pathlib.Path] = None) -> BotConfig:
    config_file_path = config_file_path or get_config_file_path()
    file_values = {}
    if config_file_path.is_file():
        file_values = json.loads(config_file_path.read_text(encoding="utf-8"))

    token = os.getenv("TELEGRAM_BOT_TOKEN") or file_values.get("token")
    if not token:
        raise RuntimeError(
            f"Telegram bot token not set: export TELEGRAM_BOT_TOKEN or add it to {config_file_path}"
        )

    return BotConfig(
        token=token,
        delay=int(os.getenv("TELEGRAM_POLL_DELAY", file_values.get("delay", 0))),
        poll_timeout=int(os.getenv("TELEGRAM_POLL_TIMEOUT", file_values.get("poll_timeout", 30))),
        webhook_secret=os.getenv("TELEGRAM_WEBHOOK_SECRET", file_values.get("webhook_secret")),
        session_idle_timeout=float(
            os.getenv("SESSION_IDLE_TIMEOUT", file_values.get("session_idle_timeout", 24 * 60 * 60))
        ),
    )


# Returns the path of the JSON config file: MINESWEEPER_BOT_CONFIG if set,
# otherwise config.json in the working directory.
def get_config_file_path() -> pathlib.Path:
    configured = os.getenv("MINESWEEPER_BOT_CONFIG")
    if configured:
        return pathlib.Path(configured)
    return pathlib.Path.cwd() / DEFAULT_CONFIG_FILE


# Builds the one Telegram Application a process uses, with the game
# handlers and the idle sweep registered. The webhook server feeds updates
# to it itself, so it gets no Updater; the poller keeps the default one.
def build_application(
    config: BotConfig,
    handler: TelegramGameHandler,
    polling: bool = True,
    post_init: Optional[Callable[[Application], Awaitable[None]]] = None,
) -> Application:
    builder = Application.builder().token(config.token)
    if not polling:
        builder = builder.updater(None)
    if post_init is not None:
        builder = builder.post_init(post_init)
    application = builder.build()

    configure_telegram_handlers(application, handler)
    schedule_idle_sweep(application, handler, config.session_idle_timeout)
    return application
