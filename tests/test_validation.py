"""
Unit tests for parameter validation and the new game questions.
"""
from types import SimpleNamespace

import pytest

from minesweeper_bot import prompts as prompts_module
from minesweeper_bot.prompts import ParameterPrompt, PendingPrompts, PromptStage, parse_inline_parameters
from minesweeper_bot.types import GameConfig
from minesweeper_bot.validation import ValidationError, max_mines, parse_number, validate


# ============================================================================
# Validator Tests
# ============================================================================

class TestValidate:
    """Test policy bounds."""

    @pytest.mark.parametrize("width,height,mines", [(4, 4, 1), (8, 8, 51), (4, 8, 25), (6, 5, 1)])
    def test_accepts_legal_parameters(self, width: int, height: int, mines: int) -> None:
        assert validate(width, height, mines) is None

    def test_rejects_narrow_width(self) -> None:
        with pytest.raises(ValidationError) as excinfo:
            validate(3, 4, 1)
        assert excinfo.value.field == 'width'
        assert excinfo.value.reason == "Width should be in between `4` and `8`"

    def test_rejects_wide_width(self) -> None:
        with pytest.raises(ValidationError) as excinfo:
            validate(9, 4, 1)
        assert excinfo.value.field == 'width'

    def test_rejects_height(self) -> None:
        with pytest.raises(ValidationError) as excinfo:
            validate(4, 9, 1)
        assert excinfo.value.field == 'height'
        assert "Height" in excinfo.value.reason

    def test_rejects_zero_mines(self) -> None:
        with pytest.raises(ValidationError) as excinfo:
            validate(4, 4, 0)
        assert excinfo.value.field == 'mine_count'
        assert "`1`" in excinfo.value.reason

    def test_rejects_too_many_mines(self) -> None:
        with pytest.raises(ValidationError) as excinfo:
            validate(8, 8, 52)
        assert excinfo.value.field == 'mine_count'
        assert excinfo.value.reason == (
            "Max mines count for `8` by `8` minefield is `51`, you entered `52`"
        )

    def test_first_violation_wins(self) -> None:
        """Width is reported before mine count."""
        with pytest.raises(ValidationError) as excinfo:
            validate(3, 4, 0)
        assert excinfo.value.field == 'width'

    def test_reason_is_the_message(self) -> None:
        with pytest.raises(ValidationError, match="should be in between"):
            validate(4, 3, 1)

    @pytest.mark.parametrize("width,height,expected", [(4, 4, 12), (8, 8, 51), (5, 7, 28), (4, 5, 16)])
    def test_max_mines_floors_eighty_percent(self, width: int, height: int, expected: int) -> None:
        assert max_mines(width, height) == expected


class TestParseNumber:
    """Test parsing of typed replies."""

    def test_parses_with_whitespace(self) -> None:
        assert parse_number('width', " 6\n") == 6

    def test_size_reply_not_a_number(self) -> None:
        with pytest.raises(ValidationError, match="Width should be in between"):
            parse_number('width', "six")

    def test_mine_reply_not_a_number(self) -> None:
        with pytest.raises(ValidationError, match="Invalid mines count"):
            parse_number('mine_count', "lots")


# ============================================================================
# Prompt State Machine Tests
# ============================================================================

class TestParameterPrompt:
    """Test the width, height, mines question sequence."""

    def test_happy_path(self) -> None:
        prompt = ParameterPrompt()
        assert prompt.question == "Enter minefield width:"

        prompt = prompt.advance("5")
        assert prompt.stage == PromptStage.AWAITING_HEIGHT
        assert prompt.question == "Enter minefield height:"

        prompt = prompt.advance("6")
        assert prompt.stage == PromptStage.AWAITING_MINE_COUNT
        assert prompt.question == "Enter mines count:"

        prompt = prompt.advance("7")
        assert prompt.is_complete
        assert prompt.question is None
        assert prompt.to_config() == GameConfig(width=5, height=6, mine_count=7)

    def test_advance_does_not_mutate(self) -> None:
        prompt = ParameterPrompt()
        prompt.advance("5")
        assert prompt.stage == PromptStage.AWAITING_WIDTH
        assert prompt.width is None

    def test_bad_width_rejected(self) -> None:
        with pytest.raises(ValidationError) as excinfo:
            ParameterPrompt().advance("12")
        assert excinfo.value.field == 'width'

    def test_bad_height_rejected(self) -> None:
        prompt = ParameterPrompt().advance("4")
        with pytest.raises(ValidationError) as excinfo:
            prompt.advance("2")
        assert excinfo.value.field == 'height'

    def test_mine_count_checked_against_area(self) -> None:
        prompt = ParameterPrompt().advance("4").advance("4")
        with pytest.raises(ValidationError, match="is `12`, you entered `13`"):
            prompt.advance("13")

    def test_incomplete_prompt_has_no_config(self) -> None:
        with pytest.raises(ValueError):
            ParameterPrompt().to_config()

    def test_complete_prompt_cannot_advance(self) -> None:
        prompt = ParameterPrompt().advance("4").advance("4").advance("1")
        with pytest.raises(ValueError):
            prompt.advance("1")


class TestInlineParameters:
    """Test /play W H M shorthand parsing."""

    def test_parses_three_numbers(self) -> None:
        assert parse_inline_parameters(" 8  6 10 ") == GameConfig(8, 6, 10)

    @pytest.mark.parametrize("text", ["", "8 8", "8 8 x", "a b c", "8 8 10 2"])
    def test_other_text_is_none(self, text: str) -> None:
        assert parse_inline_parameters(text) is None


class TestPendingPrompts:
    """Test the per-user prompt registry."""

    def test_advance_without_prompt(self) -> None:
        assert PendingPrompts().advance((1, 1), "5") is None

    def test_complete_prompt_is_removed(self) -> None:
        prompts = PendingPrompts()
        prompts.begin((1, 2))
        prompts.advance((1, 2), "4")
        prompts.advance((1, 2), "4")
        prompt = prompts.advance((1, 2), "3")

        assert prompt.is_complete
        assert prompts.get((1, 2)) is None
        assert len(prompts) == 0

    def test_rejected_reply_abandons_prompt(self) -> None:
        prompts = PendingPrompts()
        prompts.begin((1, 2))
        with pytest.raises(ValidationError):
            prompts.advance((1, 2), "100")
        assert prompts.get((1, 2)) is None

    def test_users_are_independent(self) -> None:
        prompts = PendingPrompts()
        prompts.begin((1, 2))
        prompts.begin((1, 3))
        prompts.advance((1, 2), "5")

        assert prompts.get((1, 2)).stage == PromptStage.AWAITING_HEIGHT
        assert prompts.get((1, 3)).stage == PromptStage.AWAITING_WIDTH

    def test_begin_restarts(self) -> None:
        prompts = PendingPrompts()
        prompts.begin((1, 2))
        prompts.advance((1, 2), "5")
        prompts.begin((1, 2))
        assert prompts.get((1, 2)).stage == PromptStage.AWAITING_WIDTH

    def test_discard(self) -> None:
        prompts = PendingPrompts()
        prompts.begin((1, 2))
        prompts.discard((1, 2))
        prompts.discard((1, 2))
        assert prompts.get((1, 2)) is None

    def test_sweep_idle_drops_only_abandoned_prompts(self, monkeypatch) -> None:
        clock = SimpleNamespace(now=0.0)
        monkeypatch.setattr(prompts_module, "time", SimpleNamespace(monotonic=lambda: clock.now))
        prompts = PendingPrompts()
        prompts.begin((1, 2))
        prompts.begin((1, 3))
        clock.now = 900.0
        # a reply counts as activity
        prompts.advance((1, 3), "5")

        expired = prompts.sweep_idle(600, now=1000.0)

        assert expired == [(1, 2)]
        assert prompts.get((1, 2)) is None
        assert prompts.get((1, 3)).stage == PromptStage.AWAITING_HEIGHT

    def test_reply_after_sweep_is_ignored(self) -> None:
        prompts = PendingPrompts()
        prompts.begin((1, 2))
        prompts.sweep_idle(-1)
        assert prompts.advance((1, 2), "5") is None
