"""Policy bounds for new games and the checks that enforce them."""

MIN_SIZE = 4
MAX_SIZE = 8
MIN_MINES = 1


class ValidationError(Exception):
    """User-correctable problem with game parameters."""

    def __init__(self, field: str, reason: str):
        super().__init__(reason)
        self.field = field
        self.reason = reason


def max_mines(width: int, height: int) -> int:
    """Largest mine count allowed on a width x height field (80% of the area)."""
    return width * height * 4 // 5


def parse_number(field: str, text: str) -> int:
    """Parse a user's reply as an integer for the given field."""
    try:
        return int(text.strip())
    except (AttributeError, ValueError):
        if field == 'mine_count':
            raise ValidationError(field, "Invalid mines count") from None
        raise ValidationError(field, _size_reason(field)) from None


def _size_reason(field: str) -> str:
    return f"{field.capitalize()} should be in between `{MIN_SIZE}` and `{MAX_SIZE}`"


def validate_size(field: str, value: int) -> None:
    if not MIN_SIZE <= value <= MAX_SIZE:
        raise ValidationError(field, _size_reason(field))


def validate_mine_count(width: int, height: int, mine_count: int) -> None:
    if mine_count < MIN_MINES:
        raise ValidationError(
            'mine_count', f"Mines count should be at least `{MIN_MINES}`, you entered `{mine_count}`"
        )

    limit = max_mines(width, height)
    if mine_count > limit:
        raise ValidationError(
            'mine_count',
            f"Max mines count for `{width}` by `{height}` minefield is `{limit}`, "
            f"you entered `{mine_count}`",
        )


def validate(width: int, height: int, mine_count: int) -> None:
    """
    Check game parameters against the policy bounds.

    Raises ValidationError for the first violated constraint, in the order
    width, height, minimum mines, maximum mines.
    """
    validate_size('width', width)
    validate_size('height', height)
    validate_mine_count(width, height, mine_count)
