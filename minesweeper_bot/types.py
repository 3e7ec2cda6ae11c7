"""Type definitions for the Minesweeper bot."""
from dataclasses import dataclass
from typing import List, Optional
from enum import Enum


class CellKind(str, Enum):
    """What a cell holds. Fixed when the minefield is created."""
    EMPTY = 'EMPTY'
    MINE = 'MINE'
    NUMBERED = 'NUMBERED'


class Visibility(str, Enum):
    """What the player currently sees of a cell."""
    CLOSED = 'CLOSED'
    FLAGGED = 'FLAGGED'
    OPEN = 'OPEN'


class GameStatus(str, Enum):
    """Possible game states."""
    RUNNING = 'RUNNING'
    WON = 'WON'
    LOST = 'LOST'


@dataclass
class Cell:
    """Represents a single cell on the minesweeper board."""
    kind: CellKind
    neighbor_mines: int
    row: int
    col: int
    visibility: Visibility = Visibility.CLOSED

    @property
    def is_mine(self) -> bool:
        return self.kind == CellKind.MINE

    @property
    def is_open(self) -> bool:
        return self.visibility == Visibility.OPEN


@dataclass(frozen=True)
class CellView:
    """Read-only copy of a cell handed out for rendering."""
    kind: CellKind
    neighbor_mines: int
    row: int
    col: int
    visibility: Visibility


@dataclass
class GameConfig:
    """Parameters for creating a new game."""
    width: int
    height: int
    mine_count: int


@dataclass(frozen=True)
class CellTag:
    """Coordinates a transport attaches to a tappable cell."""
    row: int
    col: int


@dataclass
class RenderedCell:
    """A rendered cell: its symbolic token plus its coordinate tag."""
    token: str
    tag: CellTag


@dataclass
class RenderedView:
    """Transport-neutral picture of a minefield."""
    rows: List[List[RenderedCell]]
    width: int
    height: int
    status: GameStatus


class OutcomeKind(str, Enum):
    """Result of applying a tap to a session."""
    CONTINUE = 'CONTINUE'
    WON = 'WON'
    LOST = 'LOST'
    STALE = 'STALE'


@dataclass
class Outcome:
    """What the transport should do after a tap."""
    kind: OutcomeKind
    view: Optional[RenderedView] = None

    @property
    def is_terminal(self) -> bool:
        return self.kind in (OutcomeKind.WON, OutcomeKind.LOST)

