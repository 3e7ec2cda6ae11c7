"""Flask server for the Minesweeper bot: Telegram webhook plus a JSON API."""
import asyncio
import hmac
import logging
import os
import threading
import uuid
from datetime import datetime

from flask import Flask, jsonify, request
from flask_cors import CORS
from telegram import Update
from telegram.ext import Application

from minesweeper_bot.bot_provider import BotConfig, build_application, load_bot_config
from minesweeper_bot.orchestrator import GameOrchestrator
from minesweeper_bot.prompts import PendingPrompts
from minesweeper_bot.telegram_handlers import TelegramGameHandler
from minesweeper_bot.types import GameConfig, OutcomeKind, RenderedView
from minesweeper_bot.validation import ValidationError

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

# Global game state, shared by the webhook and the JSON API
orchestrator = GameOrchestrator()
handler = TelegramGameHandler(orchestrator, PendingPrompts())
bot_config: BotConfig | None = None

# The Telegram application lives on its own event loop thread for the life
# of the process; Flask request threads hand updates over to it.
telegram_application: Application | None = None
telegram_loop: asyncio.AbstractEventLoop | None = None

MOVE_ACTIONS = ['reveal', 'flag']


def is_int(value) -> bool:
    """JSON booleans arrive as bool, which is an int subclass."""
    return isinstance(value, int) and not isinstance(value, bool)


def serialize_view(view: RenderedView):
    """Convert a rendered view to JSON-serializable format."""
    return {
        'width': view.width,
        'height': view.height,
        'status': view.status.value,
        'cells': [
            [
                {'token': cell.token.value, 'row': cell.tag.row, 'col': cell.tag.col}
                for cell in row
            ]
            for row in view.rows
        ],
    }


def start_telegram_application(application: Application) -> None:
    """Initialize and start application on a background event loop."""
    global telegram_application, telegram_loop

    async def start():
        await application.initialize()
        await application.start()

    loop = asyncio.new_event_loop()
    threading.Thread(target=loop.run_forever, name="telegram-application", daemon=True).start()
    asyncio.run_coroutine_threadsafe(start(), loop).result()
    telegram_application, telegram_loop = application, loop
    logger.info("Telegram application started")


def stop_telegram_application() -> None:
    global telegram_application, telegram_loop
    if telegram_application is None:
        return
    application, loop = telegram_application, telegram_loop
    telegram_application, telegram_loop = None, None

    async def stop():
        if application.running:
            await application.stop()
        await application.shutdown()

    asyncio.run_coroutine_threadsafe(stop(), loop).result()
    loop.call_soon_threadsafe(loop.stop)
    logger.info("Telegram application shut down")


@app.route('/telegram/webhook', methods=['POST'])
def telegram_webhook():
    """Receive an update pushed by Telegram."""
    if bot_config is None or telegram_application is None:
        return jsonify({'error': 'Bot is not configured'}), 503

    if bot_config.webhook_secret:
        received = request.headers.get('X-Telegram-Bot-Api-Secret-Token', '')
        if not hmac.compare_digest(received, bot_config.webhook_secret):
            logger.warning("Rejected webhook call with a bad secret token")
            return jsonify({'error': 'Forbidden'}), 403

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Invalid update'}), 400

    try:
        update = Update.de_json(data, telegram_application.bot)
        future = asyncio.run_coroutine_threadsafe(telegram_application.process_update(update), telegram_loop)
        future.result()
    except Exception as error:
        logger.error(f"Error processing update {data.get('update_id')}: {error}")
        return jsonify({'error': 'Failed to process update'}), 500

    return jsonify({'ok': True})


@app.route('/api/games', methods=['POST'])
def create_game():
    """Create a new game."""
    try:
        data = request.get_json(silent=True) or {}
        config_data = data.get('config')

        # Validate config shape; bounds are checked by the orchestrator
        if not isinstance(config_data, dict) or \
           not all(is_int(config_data.get(key)) for key in ('width', 'height', 'mineCount')):
            return jsonify({'error': 'Invalid game configuration'}), 400

        config = GameConfig(
            width=config_data['width'],
            height=config_data['height'],
            mine_count=config_data['mineCount']
        )

        try:
            new_game = orchestrator.start_game(config)
        except ValidationError as error:
            return jsonify({'error': error.reason, 'field': error.field}), 400

        game_id = str(uuid.uuid4())
        orchestrator.register_session(game_id, new_game.minefield)
        return jsonify({'gameId': game_id, 'view': serialize_view(new_game.view)})

    except Exception as error:
        logger.error(f"Error creating game: {error}")
        return jsonify({'error': 'Failed to create game'}), 500


@app.route('/api/games/<game_id>', methods=['GET'])
def get_game(game_id):
    """Get the current view of a game."""
    view = orchestrator.current_view(game_id)
    if view is None:
        return jsonify({'error': 'Game not found'}), 404
    return jsonify({'gameId': game_id, 'view': serialize_view(view)})


@app.route('/api/games/<game_id>/moves', methods=['POST'])
def make_move(game_id):
    """Make a move."""
    try:
        data = request.get_json(silent=True) or {}

        # Validate move request
        if not is_int(data.get('row')) or \
           not is_int(data.get('col')) or \
           data.get('action', 'reveal') not in MOVE_ACTIONS:
            return jsonify({'error': 'Invalid move request'}), 400

        if data.get('action', 'reveal') == 'flag':
            outcome = orchestrator.apply_flag(game_id, data['row'], data['col'])
        else:
            outcome = orchestrator.apply_tap(game_id, data['row'], data['col'])

        if outcome.kind == OutcomeKind.STALE:
            return jsonify({'error': 'Game not found', 'outcome': outcome.kind.value}), 404

        return jsonify({'outcome': outcome.kind.value, 'view': serialize_view(outcome.view)})

    except Exception as error:
        logger.error(f"Error making move: {error}")
        return jsonify({'error': 'Failed to make move'}), 500


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'OK',
        'timestamp': datetime.now().isoformat(),
        'sessions': len(orchestrator.store),
    })


def main():
    """Start the Flask server."""
    global bot_config
    logging.basicConfig(level=logging.INFO)

    try:
        bot_config = load_bot_config()
    except RuntimeError as error:
        logger.warning(f"Telegram webhook disabled: {error}")

    if bot_config is not None:
        start_telegram_application(build_application(bot_config, handler, polling=False))

    port = int(os.getenv("PORT", 3000))
    logger.info(f"Minesweeper server running on http://localhost:{port}")
    logger.info("Point the Telegram webhook at /telegram/webhook, or run python -m minesweeper_bot.poller")

    try:
        app.run(host='0.0.0.0', port=port, debug=False, threaded=True)
    finally:
        stop_telegram_application()


if __name__ == "__main__":
    main()
