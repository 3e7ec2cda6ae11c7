"""Telegram transport: commands, prompt replies and cell taps."""
import json
import logging
from typing import List, Optional, Tuple

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes, MessageHandler, filters

from minesweeper_bot.orchestrator import GameOrchestrator
from minesweeper_bot.prompts import PendingPrompts, parse_inline_parameters
from minesweeper_bot.rendering import Token
from minesweeper_bot.types import CellTag, GameConfig, OutcomeKind, RenderedView
from minesweeper_bot.validation import ValidationError

logger = logging.getLogger(__name__)

# Seconds between idle sweeps
SWEEP_INTERVAL = 60

HELP_TEXT = "\n".join([
    "Available commands:",
    "/help - Get this message",
    "/play - Play new game",
    "/play `width` `height` `mines` - Play without questions",
])

NEW_GAME_TEXT = "New game"
RUNNING_TEXT = "Minesweeper"
NOTICES = {
    OutcomeKind.WON: "You won!",
    OutcomeKind.LOST: "Game over!",
}

CELL_SYMBOLS = {
    Token.CLOSED: "⬜️",
    Token.FLAG: "ℹ️",
    Token.MINE: "⚫️",
    # Telegram rejects empty button labels
    Token.BLANK: "⠀",
    Token.DIGIT_1: "1️⃣",
    Token.DIGIT_2: "2️⃣",
    Token.DIGIT_3: "3️⃣",
    Token.DIGIT_4: "4️⃣",
    Token.DIGIT_5: "5️⃣",
    Token.DIGIT_6: "6️⃣",
    Token.DIGIT_7: "7️⃣",
    Token.DIGIT_8: "8️⃣",
}


def session_key(chat_id: int, message_id: int) -> str:
    """Message ids are only unique within a chat, so the key carries both."""
    return f"{chat_id}:{message_id}"


def encode_callback_data(tag: CellTag) -> str:
    return json.dumps({"row": tag.row, "col": tag.col}, separators=(",", ":"))


def decode_callback_data(data: Optional[str]) -> Optional[CellTag]:
    """Parse a tap's callback data, or None if it is not a cell tap."""
    try:
        payload = json.loads(data)
        row, col = payload["row"], payload["col"]
    except (TypeError, ValueError, KeyError):
        return None
    if not isinstance(row, int) or not isinstance(col, int):
        return None
    return CellTag(row=row, col=col)


def build_markup(view: RenderedView) -> InlineKeyboardMarkup:
    """Render a view as an inline keyboard, one button per cell."""
    buttons: List[List[InlineKeyboardButton]] = []
    for row in view.rows:
        buttons.append([
            InlineKeyboardButton(CELL_SYMBOLS[cell.token], callback_data=encode_callback_data(cell.tag))
            for cell in row
        ])
    return InlineKeyboardMarkup(buttons)


class TelegramGameHandler:
    """Turns Telegram updates into orchestrator calls and back into messages."""

    def __init__(self, orchestrator: GameOrchestrator, prompts: Optional[PendingPrompts] = None):
        self.orchestrator = orchestrator
        self.prompts = prompts if prompts is not None else PendingPrompts()

    async def show_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._send(context.bot, update.effective_chat.id, HELP_TEXT, markdown=True)

    async def play(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat_id, user_id = conversation_key(update)
        await self.begin_game(context.bot, chat_id, user_id, " ".join(context.args or []))

    async def reply(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat_id, user_id = conversation_key(update)
        await self.answer_prompt(context.bot, chat_id, user_id, update.effective_message.text)

    async def tap(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        query = update.callback_query
        if query.message is None:
            await self._answer(context.bot, query.id)
            return
        await self.handle_callback(
            context.bot, query.id, query.message.chat.id, query.message.message_id, query.data
        )

    async def sweep(self, context: ContextTypes.DEFAULT_TYPE) -> None:
        self.sweep_idle(context.job.data)

    def sweep_idle(self, max_idle: float) -> int:
        """Drop games and unanswered prompts idle for more than max_idle seconds."""
        self.prompts.sweep_idle(max_idle)
        return self.orchestrator.sweep_idle(max_idle)

    async def begin_game(self, bot: Bot, chat_id: int, user_id: int, argument: str) -> None:
        config = parse_inline_parameters(argument)
        if config is not None:
            self.prompts.discard((chat_id, user_id))
            await self.start_game(bot, chat_id, config)
            return

        prompt = self.prompts.begin((chat_id, user_id))
        await self._send(bot, chat_id, prompt.question)

    async def answer_prompt(self, bot: Bot, chat_id: int, user_id: int, text: str) -> None:
        try:
            prompt = self.prompts.advance((chat_id, user_id), text)
        except ValidationError as error:
            await self._send(bot, chat_id, error.reason, markdown=True)
            return

        if prompt is None:
            logger.debug(f"Ignoring message from {user_id} in chat {chat_id}: no game questions pending")
            return

        if not prompt.is_complete:
            await self._send(bot, chat_id, prompt.question)
            return

        await self.start_game(bot, chat_id, prompt.to_config())

    async def start_game(self, bot: Bot, chat_id: int, config: GameConfig) -> None:
        try:
            new_game = self.orchestrator.start_game(config)
        except ValidationError as error:
            await self._send(bot, chat_id, error.reason, markdown=True)
            return

        try:
            message = await bot.send_message(
                chat_id=chat_id,
                text=NEW_GAME_TEXT,
                reply_markup=build_markup(new_game.view),
            )
        except TelegramError as error:
            logger.error(f"Error delivering new game to chat {chat_id}: {error}")
            return

        self.orchestrator.register_session(session_key(chat_id, message.message_id), new_game.minefield)

    async def handle_callback(
        self, bot: Bot, query_id: str, chat_id: int, message_id: int, data: Optional[str]
    ) -> None:
        tag = decode_callback_data(data)
        if tag is None:
            await self._answer(bot, query_id)
            return

        outcome = self.orchestrator.apply_tap(session_key(chat_id, message_id), tag.row, tag.col)

        if outcome.kind == OutcomeKind.STALE:
            await self._answer(bot, query_id)
            return

        if outcome.kind == OutcomeKind.CONTINUE:
            await self._answer(bot, query_id)
            await self._edit(bot, chat_id, message_id, RUNNING_TEXT, outcome.view)
            return

        notice = NOTICES[outcome.kind]
        await self._answer(bot, query_id, text=notice, show_alert=True)
        await self._edit(bot, chat_id, message_id, notice, outcome.view)

    async def _send(self, bot: Bot, chat_id: int, text: str, markdown: bool = False) -> None:
        try:
            await bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=ParseMode.MARKDOWN if markdown else None,
            )
        except TelegramError as error:
            logger.error(f"Error sending message to chat {chat_id}: {error}")

    async def _answer(self, bot: Bot, query_id: str, text: Optional[str] = None, show_alert: bool = False) -> None:
        try:
            await bot.answer_callback_query(query_id, text=text, show_alert=show_alert)
        except TelegramError as error:
            # Queries expire after a short while; the edit below still matters
            logger.warning(f"Error answering callback query {query_id}: {error}")

    async def _edit(self, bot: Bot, chat_id: int, message_id: int, text: str, view: RenderedView) -> None:
        try:
            await bot.edit_message_text(
                text=text,
                chat_id=chat_id,
                message_id=message_id,
                reply_markup=build_markup(view),
            )
        except BadRequest as error:
            if "not modified" in str(error).lower():
                logger.debug(f"Message {chat_id}:{message_id} unchanged")
                return
            logger.error(f"Error editing message {chat_id}:{message_id}: {error}")
        except TelegramError as error:
            logger.error(f"Error editing message {chat_id}:{message_id}: {error}")


def conversation_key(update: Update) -> Tuple[int, int]:
    """Prompts are tracked per user within a chat."""
    chat_id = update.effective_chat.id
    user = update.effective_user
    return chat_id, user.id if user else chat_id


async def log_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    update_id = update.update_id if isinstance(update, Update) else None
    logger.error(f"Error processing update {update_id}: {context.error}")


def configure_telegram_handlers(application: Application, handler: TelegramGameHandler) -> None:
    application.add_handler(CommandHandler(["start", "help"], handler.show_help))
    application.add_handler(CommandHandler("play", handler.play))
    # edits to earlier replies must not advance the questions
    replies = filters.UpdateType.MESSAGE & filters.TEXT & ~filters.COMMAND
    application.add_handler(MessageHandler(replies, handler.reply))
    application.add_handler(CallbackQueryHandler(handler.tap))
    application.add_error_handler(log_error)


def schedule_idle_sweep(application: Application, handler: TelegramGameHandler, max_idle: float) -> None:
    """Run the idle sweep every SWEEP_INTERVAL seconds while the application is running."""
    application.job_queue.run_repeating(
        handler.sweep, interval=SWEEP_INTERVAL, first=SWEEP_INTERVAL, data=max_idle, name="idle-sweep"
    )
