"""
Pytest configuration and shared fixtures.
"""
import random
from itertools import count
from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram.ext import Application

from minesweeper_bot.engine import Minefield, create_minefield
from minesweeper_bot.orchestrator import GameOrchestrator
from minesweeper_bot.prompts import PendingPrompts
from minesweeper_bot.store import SessionStore
from minesweeper_bot.telegram_handlers import TelegramGameHandler, configure_telegram_handlers
from minesweeper_bot.types import GameConfig


# ============================================================================
# Minefield Fixtures
# ============================================================================

@pytest.fixture
def corner_mine_field() -> Minefield:
    """4x4 minefield with a single mine at (0, 0)."""
    return create_minefield(GameConfig(4, 4, 1), mine_positions=[(0, 0)])


@pytest.fixture
def split_field() -> Minefield:
    """
    8x4 minefield with a wall of mines down column 3, except row 3.

    Columns 0-2 and 4-7 are joined only through (3, 3).
    """
    mines = [(0, 3), (1, 3), (2, 3)]
    return create_minefield(GameConfig(8, 4, 3), mine_positions=mines)


@pytest.fixture
def random_field() -> Minefield:
    """8x8 minefield with 10 mines from a seeded generator."""
    return create_minefield(GameConfig(8, 8, 10), rng=random.Random(1234))


# ============================================================================
# Orchestration Fixtures
# ============================================================================

@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def orchestrator(store: SessionStore) -> GameOrchestrator:
    return GameOrchestrator(store=store, rng=random.Random(42))


@pytest.fixture
def handler(orchestrator: GameOrchestrator) -> TelegramGameHandler:
    return TelegramGameHandler(orchestrator, PendingPrompts())


@pytest.fixture
def bot() -> AsyncMock:
    """Bot API double whose sent messages get increasing message ids."""
    message_ids = count(100)
    fake = AsyncMock()
    fake.username = "MinesweeperBot"
    fake.defaults = None
    fake.send_message.side_effect = lambda **kwargs: MagicMock(message_id=next(message_ids))
    return fake


@pytest.fixture
def application(bot: AsyncMock, handler: TelegramGameHandler) -> Application:
    """Application wired to the game handlers, talking to the Bot API double."""
    application = Application.builder().bot(bot).updater(None).build()
    configure_telegram_handlers(application, handler)
    return application
