"""SessionArchive service: append-only, in-memory store of sealed sessions."""

from typing import Iterator, List, Tuple

import structlog

from ..models import Session, SessionSummary


logger = structlog.get_logger(__name__)


class SessionArchive:
    """
    Ordered collection of sealed sessions.

    Sessions are kept in the order they were sealed and are never modified or
    removed. The archive lives only for the lifetime of the process.
    """

    def __init__(self):
        self._sessions: List[Session] = []

    def append(self, session: Session) -> None:
        """Add a sealed session at the end of the archive."""
        if self._sessions and session.id <= self._sessions[-1].id:
            raise ValueError(
                f"Session id {session.id} is not greater than last archived id {self._sessions[-1].id}"
            )
        self._sessions.append(session)
        logger.info("Session archived",
                   session_id=session.id,
                   activity=session.activity,
                   entries=session.event_count,
                   archived_sessions=len(self._sessions))

    def all(self) -> Tuple[Session, ...]:
        """Every archived session, oldest first."""
        return tuple(self._sessions)

    def count(self) -> int:
        return len(self._sessions)

    def total_entries(self) -> int:
        return sum(session.event_count for session in self._sessions)

    def summaries(self) -> List[SessionSummary]:
        return [session.summary() for session in self._sessions]

    def is_empty(self) -> bool:
        return not self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def __iter__(self) -> Iterator[Session]:
        return iter(tuple(self._sessions))
