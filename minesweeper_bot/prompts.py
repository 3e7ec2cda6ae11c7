"""Conversation state machine collecting width, height and mine count."""
import logging
import re
import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Hashable, List, Optional, Tuple

from minesweeper_bot.types import GameConfig
from minesweeper_bot.validation import ValidationError, parse_number, validate, validate_size

logger = logging.getLogger(__name__)

INLINE_PARAMETERS = re.compile(r'^\s*([0-9]+)\s+([0-9]+)\s+([0-9]+)\s*$')


class PromptStage(str, Enum):
    AWAITING_WIDTH = 'AWAITING_WIDTH'
    AWAITING_HEIGHT = 'AWAITING_HEIGHT'
    AWAITING_MINE_COUNT = 'AWAITING_MINE_COUNT'
    VALIDATED = 'VALIDATED'


QUESTIONS = {
    PromptStage.AWAITING_WIDTH: "Enter minefield width:",
    PromptStage.AWAITING_HEIGHT: "Enter minefield height:",
    PromptStage.AWAITING_MINE_COUNT: "Enter mines count:",
}


@dataclass(frozen=True)
class ParameterPrompt:
    """Where a user is in answering the new game questions."""
    stage: PromptStage = PromptStage.AWAITING_WIDTH
    width: Optional[int] = None
    height: Optional[int] = None
    mine_count: Optional[int] = None

    @property
    def question(self) -> Optional[str]:
        """Text to send for the current stage, None once validated."""
        return QUESTIONS.get(self.stage)

    @property
    def is_complete(self) -> bool:
        return self.stage == PromptStage.VALIDATED

    def advance(self, reply: str) -> "ParameterPrompt":
        """
        Consume the user's reply and return the next prompt.

        Raises:
            ValidationError: If the reply is not acceptable for this stage.
        """
        if self.stage == PromptStage.AWAITING_WIDTH:
            width = parse_number('width', reply)
            validate_size('width', width)
            return replace(self, stage=PromptStage.AWAITING_HEIGHT, width=width)

        if self.stage == PromptStage.AWAITING_HEIGHT:
            height = parse_number('height', reply)
            validate_size('height', height)
            return replace(self, stage=PromptStage.AWAITING_MINE_COUNT, height=height)

        if self.stage == PromptStage.AWAITING_MINE_COUNT:
            mine_count = parse_number('mine_count', reply)
            validate(self.width, self.height, mine_count)
            return replace(self, stage=PromptStage.VALIDATED, mine_count=mine_count)

        raise ValueError("Prompt is already complete")

    def to_config(self) -> GameConfig:
        if not self.is_complete:
            raise ValueError(f"Prompt is still at stage {self.stage.value}")
        return GameConfig(width=self.width, height=self.height, mine_count=self.mine_count)


def parse_inline_parameters(text: str) -> Optional[GameConfig]:
    """
    Parse "width height mines" given directly after /play.

    Returns None when the text does not have that shape. Bounds are not
    checked here.
    """
    match = INLINE_PARAMETERS.match(text or '')
    if not match:
        return None
    width, height, mine_count = (int(group) for group in match.groups())
    return GameConfig(width=width, height=height, mine_count=mine_count)


class PendingPrompts:
    """Prompts in progress, keyed by (chat id, user id)."""

    def __init__(self):
        # key -> (prompt, monotonic time of the last reply)
        self._prompts: Dict[Hashable, Tuple[ParameterPrompt, float]] = {}
        self._lock = threading.Lock()

    def begin(self, key: Hashable) -> ParameterPrompt:
        """Start (or restart) the questions for key."""
        prompt = ParameterPrompt()
        with self._lock:
            self._prompts[key] = (prompt, time.monotonic())
        return prompt

    def get(self, key: Hashable) -> Optional[ParameterPrompt]:
        with self._lock:
            entry = self._prompts.get(key)
        return entry[0] if entry else None

    def advance(self, key: Hashable, reply: str) -> Optional[ParameterPrompt]:
        """
        Feed a reply to the prompt for key.

        A rejected reply abandons the prompt and re-raises the ValidationError.
        A completed prompt is removed and returned. Returns None when no
        prompt is pending for key.
        """
        with self._lock:
            entry = self._prompts.get(key)
            if entry is None:
                return None
            try:
                prompt = entry[0].advance(reply)
            except ValidationError:
                del self._prompts[key]
                raise

            if prompt.is_complete:
                del self._prompts[key]
            else:
                self._prompts[key] = (prompt, time.monotonic())
            return prompt

    def discard(self, key: Hashable) -> None:
        with self._lock:
            self._prompts.pop(key, None)

    def sweep_idle(self, max_idle: float, now: Optional[float] = None) -> List[Hashable]:
        """Drop prompts nobody has answered for more than max_idle seconds."""
        now = time.monotonic() if now is None else now
        with self._lock:
            expired = [
                key for key, (_, last_activity_time) in self._prompts.items()
                if now - last_activity_time > max_idle
            ]
            for key in expired:
                del self._prompts[key]

        if expired:
            logger.info(f"Dropped {len(expired)} unanswered game prompts after {max_idle:.0f}s")
        return expired

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._prompts

    def __len__(self) -> int:
        with self._lock:
            return len(self._prompts)
