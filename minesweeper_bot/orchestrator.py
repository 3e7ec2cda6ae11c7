"""Game session orchestration: start games, apply taps, close finished games."""
import logging
import random
from dataclasses import dataclass
from typing import Optional

from minesweeper_bot.engine import Minefield, create_minefield
from minesweeper_bot.rendering import render_grid
from minesweeper_bot.store import SessionNotFound, SessionStore
from minesweeper_bot.types import GameConfig, GameStatus, Outcome, OutcomeKind, RenderedView
from minesweeper_bot.validation import validate

logger = logging.getLogger(__name__)

TERMINAL_OUTCOMES = {
    GameStatus.WON: OutcomeKind.WON,
    GameStatus.LOST: OutcomeKind.LOST,
}


@dataclass
class NewGame:
    """A minefield that has been rendered but not yet registered."""
    minefield: Minefield
    view: RenderedView


def render_minefield(minefield: Minefield) -> RenderedView:
    status = minefield.state()
    return render_grid(minefield.snapshot(), status, expose_mines=status == GameStatus.LOST)


class GameOrchestrator:
    """Runs every game in progress for one transport."""

    def __init__(self, store: Optional[SessionStore] = None, rng: Optional[random.Random] = None):
        self.store = store if store is not None else SessionStore()
        self.rng = rng

    def start_game(self, config: GameConfig) -> NewGame:
        """
        Create a minefield and its initial view.

        The caller delivers the view and then calls register_session with
        the key the delivery produced.

        Raises:
            ValidationError: If the parameters are outside policy bounds.
        """
        validate(config.width, config.height, config.mine_count)
        minefield = create_minefield(config, rng=self.rng)
        return NewGame(minefield=minefield, view=render_minefield(minefield))

    def register_session(self, key: str, minefield: Minefield) -> None:
        self.store.put(key, minefield)
        logger.info(
            f"Session {key} started: {minefield.width}x{minefield.height}, {minefield.mine_count} mines"
        )

    def apply_tap(self, key: str, row: int, col: int) -> Outcome:
        """Reveal (row, col) in the game registered under key."""
        try:
            session = self.store.get(key)
        except SessionNotFound:
            logger.info(f"Tap on stale session {key}")
            return Outcome(OutcomeKind.STALE)

        with session.lock:
            # Another tap may have finished this game while we waited
            if session.minefield.state() != GameStatus.RUNNING:
                return Outcome(OutcomeKind.STALE)

            session.touch()
            session.minefield.reveal(row, col)
            status = session.minefield.state()
            view = render_minefield(session.minefield)

            if status == GameStatus.RUNNING:
                return Outcome(OutcomeKind.CONTINUE, view)

            self.store.remove(key)

        logger.info(f"Session {key} finished: {status.value}")
        return Outcome(TERMINAL_OUTCOMES[status], view)

    def apply_flag(self, key: str, row: int, col: int) -> Outcome:
        """Toggle a flag on (row, col) in the game registered under key."""
        try:
            session = self.store.get(key)
        except SessionNotFound:
            return Outcome(OutcomeKind.STALE)

        with session.lock:
            if session.minefield.state() != GameStatus.RUNNING:
                return Outcome(OutcomeKind.STALE)

            session.touch()
            session.minefield.toggle_flag(row, col)
            return Outcome(OutcomeKind.CONTINUE, render_minefield(session.minefield))

    def current_view(self, key: str) -> Optional[RenderedView]:
        try:
            session = self.store.get(key)
        except SessionNotFound:
            return None

        with session.lock:
            return render_minefield(session.minefield)

    def sweep_idle(self, max_idle: float) -> int:
        """Drop games nobody has touched for max_idle seconds."""
        return len(self.store.sweep_idle(max_idle))
