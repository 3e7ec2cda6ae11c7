"""In-memory registry of games in progress."""
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from minesweeper_bot.engine import Minefield

logger = logging.getLogger(__name__)


class SessionNotFound(KeyError):
    """No game is registered under the requested key."""


@dataclass
class Session:
    """A minefield together with the lock that serializes moves on it."""
    key: str
    minefield: Minefield
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    last_activity_time: float = field(default_factory=time.monotonic)

    def touch(self) -> None:
        self.last_activity_time = time.monotonic()


class SessionStore:
    """
    Maps session keys to live games.

    The store lock only guards the mapping itself. Callers that mutate a
    minefield take the session's own lock, so moves on one game never wait
    for another game.
    """

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def put(self, key: str, minefield: Minefield) -> Session:
        session = Session(key=key, minefield=minefield)
        with self._lock:
            if key in self._sessions:
                logger.warning(f"Replacing live session {key}")
            self._sessions[key] = session
        return session

    def get(self, key: str) -> Session:
        with self._lock:
            try:
                return self._sessions[key]
            except KeyError:
                raise SessionNotFound(key) from None

    def remove(self, key: str) -> None:
        with self._lock:
            self._sessions.pop(key, None)

    def sweep_idle(self, max_idle: float, now: Optional[float] = None) -> List[str]:
        """Evict sessions untouched for more than max_idle seconds."""
        now = time.monotonic() if now is None else now
        with self._lock:
            expired = [
                key for key, session in self._sessions.items()
                if now - session.last_activity_time > max_idle
            ]
            for key in expired:
                del self._sessions[key]

        for key in expired:
            logger.info(f"Session {key} evicted after {max_idle:.0f}s of inactivity")
        return expired

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
