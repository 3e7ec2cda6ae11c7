"""Minefield generation and the reveal algorithm."""
import logging
import random
from collections import deque
from typing import Iterable, Iterator, List, Optional, Set, Tuple

from minesweeper_bot.types import Cell, CellKind, CellView, GameConfig, GameStatus, Visibility
from minesweeper_bot.validation import ValidationError, validate

logger = logging.getLogger(__name__)

Position = Tuple[int, int]


class InvalidParameters(ValueError):
    """Raised when a minefield is requested with parameters outside policy."""


def neighbors(row: int, col: int, width: int, height: int) -> Iterator[Position]:
    """Yield the positions around (row, col) that lie on the board."""
    for dr in [-1, 0, 1]:
        for dc in [-1, 0, 1]:
            if dr == 0 and dc == 0:
                continue
            new_row = row + dr
            new_col = col + dc
            if 0 <= new_row < height and 0 <= new_col < width:
                yield new_row, new_col


def count_neighbor_mines(mines: Set[Position], row: int, col: int, width: int, height: int) -> int:
    """Count the number of mines in neighboring cells."""
    return sum(1 for position in neighbors(row, col, width, height) if position in mines)


class Minefield:
    """A single game board. Only reveal and toggle_flag mutate it."""

    def __init__(self, cells: List[List[Cell]], width: int, height: int, mine_count: int):
        self.cells = cells
        self.width = width
        self.height = height
        self.mine_count = mine_count
        self.status = GameStatus.RUNNING

    def state(self) -> GameStatus:
        return self.status

    def snapshot(self) -> Tuple[Tuple[CellView, ...], ...]:
        """Return an immutable copy of every cell, row by row."""
        return tuple(
            tuple(
                CellView(
                    kind=cell.kind,
                    neighbor_mines=cell.neighbor_mines,
                    row=cell.row,
                    col=cell.col,
                    visibility=cell.visibility,
                )
                for cell in row
            )
            for row in self.cells
        )

    def in_bounds(self, row: int, col: int) -> bool:
        return 0 <= row < self.height and 0 <= col < self.width

    def reveal(self, row: int, col: int) -> bool:
        """
        Open the cell at (row, col).

        Opening an empty cell floods outward through every connected empty
        cell and opens the numbered cells bordering that region. Nothing
        happens once the game is over, or when the target is already open,
        flagged, or off the board.

        Returns:
            True if at least one cell was opened.
        """
        if self.status != GameStatus.RUNNING or not self.in_bounds(row, col):
            return False

        target = self.cells[row][col]
        if target.visibility != Visibility.CLOSED:
            return False

        target.visibility = Visibility.OPEN
        if target.kind == CellKind.EMPTY:
            self._cascade(row, col)

        self.status = self._evaluate_status()
        return True

    def _cascade(self, row: int, col: int) -> None:
        # Only empty cells are queued; each one is expanded exactly once
        pending = deque([(row, col)])
        visited = {(row, col)}

        while pending:
            current_row, current_col = pending.popleft()
            for position in neighbors(current_row, current_col, self.width, self.height):
                if position in visited:
                    continue
                visited.add(position)

                cell = self.cells[position[0]][position[1]]
                if cell.visibility != Visibility.CLOSED or cell.is_mine:
                    continue

                cell.visibility = Visibility.OPEN
                if cell.kind == CellKind.EMPTY:
                    pending.append(position)

    def toggle_flag(self, row: int, col: int) -> bool:
        """Flag a closed cell or unflag a flagged one. Open cells are left alone."""
        if self.status != GameStatus.RUNNING or not self.in_bounds(row, col):
            return False

        cell = self.cells[row][col]
        if cell.visibility == Visibility.CLOSED:
            cell.visibility = Visibility.FLAGGED
        elif cell.visibility == Visibility.FLAGGED:
            cell.visibility = Visibility.CLOSED
        else:
            return False
        return True

    def _evaluate_status(self) -> GameStatus:
        all_safe_open = True
        for row in self.cells:
            for cell in row:
                if cell.is_mine and cell.is_open:
                    return GameStatus.LOST
                if not cell.is_mine and not cell.is_open:
                    all_safe_open = False
        return GameStatus.WON if all_safe_open else GameStatus.RUNNING


def _check_parameters(config: GameConfig) -> None:
    try:
        validate(config.width, config.height, config.mine_count)
    except ValidationError as error:
        raise InvalidParameters(error.reason) from error

    if config.width * config.height - config.mine_count < 1:
        raise InvalidParameters(
            f"{config.width}x{config.height} minefield with {config.mine_count} mines has no safe cell"
        )


def _check_positions(config: GameConfig, positions: Iterable[Position]) -> Set[Position]:
    mines = set(positions)
    if len(mines) != config.mine_count:
        raise InvalidParameters(
            f"Expected {config.mine_count} distinct mine positions, got {len(mines)}"
        )
    for row, col in mines:
        if not (0 <= row < config.height and 0 <= col < config.width):
            raise InvalidParameters(f"Mine position ({row}, {col}) is off the board")
    return mines


def create_minefield(
    config: GameConfig,
    rng: Optional[random.Random] = None,
    mine_positions: Optional[Iterable[Position]] = None,
) -> Minefield:
    """
    Create a new minefield with randomly placed mines.

    Args:
        config: Board dimensions and mine count.
        rng: Random source for mine placement (module-level random if omitted).
        mine_positions: Exact (row, col) mine positions, bypassing placement.

    Raises:
        InvalidParameters: If the configuration is outside policy bounds.
    """
    _check_parameters(config)
    width, height, mine_count = config.width, config.height, config.mine_count

    if mine_positions is not None:
        mines = _check_positions(config, mine_positions)
    else:
        positions = [(row, col) for row in range(height) for col in range(width)]
        mines = set((rng or random).sample(positions, mine_count))

    cells: List[List[Cell]] = []
    for row in range(height):
        cells.append([])
        for col in range(width):
            if (row, col) in mines:
                cells[row].append(Cell(kind=CellKind.MINE, neighbor_mines=0, row=row, col=col))
                continue

            count = count_neighbor_mines(mines, row, col, width, height)
            kind = CellKind.NUMBERED if count else CellKind.EMPTY
            cells[row].append(Cell(kind=kind, neighbor_mines=count, row=row, col=col))

    logger.debug(f"Created {width}x{height} minefield with {mine_count} mines")
    return Minefield(cells=cells, width=width, height=height, mine_count=mine_count)
