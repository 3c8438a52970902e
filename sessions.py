"""In-process registry of server-hosted quiz sessions.

Each entry is an independent ``QuizSession`` with its own lock; request
handlers take the lock for the whole operation, including the tick delivered
before it. Nothing is shared between entries.

The store never drops a live attempt. When it is full, every entry is ticked
first so attempts whose time ran out are recorded, then finished entries make
room. If every entry is still live the new session is refused.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from errors import SessionLimitError
from progress import DatabaseProgressRecorder
from quiz_session import QuizSession, SessionState

logger = logging.getLogger("studyhall.sessions")

MAX_SESSIONS = 1000
MAX_SESSIONS_PER_USER = 20


@dataclass
class SessionEntry:
    user_id: str
    session: QuizSession
    lock: threading.Lock = field(default_factory=threading.Lock)


class SessionStore:
    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_sessions: int = MAX_SESSIONS,
        max_per_user: int = MAX_SESSIONS_PER_USER,
    ):
        self.clock = clock
        self.max_sessions = max_sessions
        self.max_per_user = max_per_user
        self._entries: "OrderedDict[str, SessionEntry]" = OrderedDict()
        self._lock = threading.Lock()

    def new_session(self, user_id: str) -> QuizSession:
        return QuizSession(DatabaseProgressRecorder(user_id), clock=self.clock)

    def add(self, user_id: str, session: QuizSession) -> str:
        if len(self) >= self.max_sessions:
            self._make_room(self._snapshot())
        if self._live_count(user_id) >= self.max_per_user:
            # the user's own expired attempts may still be waiting for a tick
            self._tick_all(self._snapshot(user_id))

        sid = session.session_id
        with self._lock:
            if len(self._entries) >= self.max_sessions:
                raise SessionLimitError("too many quiz sessions in progress; try again later")
            if self._live_count_locked(user_id) >= self.max_per_user:
                raise SessionLimitError(
                    f"at most {self.max_per_user} quiz sessions may be open at once"
                )
            self._entries[sid] = SessionEntry(user_id=user_id, session=session)
        return sid

    def get(self, sid: str, user_id: str) -> Optional[SessionEntry]:
        with self._lock:
            entry = self._entries.get(sid)
        # other users' sessions look the same as missing ones
        if entry is None or entry.user_id != user_id:
            return None
        return entry

    def discard(self, sid: str) -> None:
        with self._lock:
            self._entries.pop(sid, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _snapshot(self, user_id: Optional[str] = None) -> List[tuple]:
        with self._lock:
            return [
                (sid, e)
                for sid, e in self._entries.items()
                if user_id is None or e.user_id == user_id
            ]

    def _live_count(self, user_id: str) -> int:
        with self._lock:
            return self._live_count_locked(user_id)

    def _live_count_locked(self, user_id: str) -> int:
        return sum(
            1
            for e in self._entries.values()
            if e.user_id == user_id and e.session.state is SessionState.IN_PROGRESS
        )

    def _tick_all(self, entries: List[tuple]) -> List[str]:
        # entry locks are taken without the store lock held, same order as request handlers
        finished = []
        for sid, entry in entries:
            with entry.lock:
                entry.session.tick()
                if entry.session.state is not SessionState.IN_PROGRESS:
                    finished.append(sid)
        return finished

    def _make_room(self, entries: List[tuple]) -> None:
        finished = self._tick_all(entries)
        with self._lock:
            for sid in finished:
                self._entries.pop(sid, None)
        if finished:
            logger.info("dropped %d finished quiz sessions", len(finished))


store = SessionStore()
