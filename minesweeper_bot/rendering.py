"""Maps cells to symbolic tokens, independent of any transport."""
from enum import Enum
from typing import Sequence

from minesweeper_bot.types import (
    CellKind,
    CellTag,
    CellView,
    GameStatus,
    RenderedCell,
    RenderedView,
    Visibility,
)


class Token(str, Enum):
    CLOSED = 'closed'
    FLAG = 'flag'
    MINE = 'mine'
    BLANK = 'blank'
    DIGIT_1 = 'digit-1'
    DIGIT_2 = 'digit-2'
    DIGIT_3 = 'digit-3'
    DIGIT_4 = 'digit-4'
    DIGIT_5 = 'digit-5'
    DIGIT_6 = 'digit-6'
    DIGIT_7 = 'digit-7'
    DIGIT_8 = 'digit-8'


def digit_token(count: int) -> Token:
    if not 1 <= count <= 8:
        raise ValueError(f"Numbered cell cannot have {count} neighboring mines")
    return Token(f"digit-{count}")


def render_cell(cell: CellView, expose_mines: bool = False) -> Token:
    """
    Token for a single cell.

    With expose_mines, unopened mines render as mines (end of a lost game).
    """
    if expose_mines and cell.kind == CellKind.MINE:
        return Token.MINE

    if cell.visibility == Visibility.FLAGGED:
        return Token.FLAG
    if cell.visibility == Visibility.CLOSED:
        return Token.CLOSED
    if cell.visibility != Visibility.OPEN:
        raise ValueError(f"Unknown visibility: {cell.visibility!r}")

    if cell.kind == CellKind.MINE:
        return Token.MINE
    if cell.kind == CellKind.EMPTY:
        return Token.BLANK
    if cell.kind == CellKind.NUMBERED:
        return digit_token(cell.neighbor_mines)
    raise ValueError(f"Unknown cell kind: {cell.kind!r}")


def render_grid(
    snapshot: Sequence[Sequence[CellView]],
    status: GameStatus,
    expose_mines: bool = False,
) -> RenderedView:
    """Render a minefield snapshot into rows of tokens with coordinate tags."""
    rows = [
        [
            RenderedCell(token=render_cell(cell, expose_mines), tag=CellTag(row=cell.row, col=cell.col))
            for cell in row
        ]
        for row in snapshot
    ]
    return RenderedView(
        rows=rows,
        width=len(rows[0]) if rows else 0,
        height=len(rows),
        status=status,
    )
