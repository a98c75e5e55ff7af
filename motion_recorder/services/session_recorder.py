"""SessionRecorder service: the Idle/Recording state machine owning the open session."""

from enum import Enum
from typing import Callable, List, Optional, Tuple, Union

import structlog

from ..lib.clock import Clock, epoch_millis
from ..lib.sensors import activity_switch_marker
from ..models import ActivitySwitchMarker, CanonicalEvent, Session
from .session_archive import SessionArchive


logger = structlog.get_logger(__name__)


OpenEntry = Union[CanonicalEvent, ActivitySwitchMarker]


class RecorderState(str, Enum):
    """States of the session recorder. There is no paused state."""

    IDLE = "idle"
    RECORDING = "recording"


class RecorderError(Exception):
    """Base class for errors reported by the recording pipeline."""


class PreconditionError(RecorderError):
    """A recorder transition was requested in a state that does not allow it."""


class SessionIdAllocator:
    """
    Hands out unique, strictly increasing, time-based session ids.

    Ids are the stop instant in milliseconds, bumped past the previous id when
    two sessions end within the same millisecond or the clock steps back.
    """

    def __init__(self, last_id: int = 0):
        self.last_id = last_id

    def next_id(self, now: int) -> int:
        self.last_id = max(int(now), self.last_id + 1)
        return self.last_id


class SessionRecorder:
    """
    Owns "is recording" and the single open session.

    Transitions:
        start(activity): Idle -> Recording, fails with PreconditionError otherwise
        on_event(event): appends while Recording, no-op while Idle
        switch_activity(name): label update; adds a marker while Recording
        stop(): Recording -> Idle, sealing non-empty sessions into the archive

    Every transition other than ``start`` is a no-op in the wrong state, since
    sensor readings may legitimately arrive in any state.
    """

    def __init__(self,
                 archive: Optional[SessionArchive] = None,
                 clock: Clock = epoch_millis,
                 sampling_rate: int = 50,
                 id_allocator: Optional[SessionIdAllocator] = None):
        self.archive = archive if archive is not None else SessionArchive()
        self.clock = clock
        self.sampling_rate = sampling_rate
        self.id_allocator = id_allocator or SessionIdAllocator()

        self._state = RecorderState.IDLE
        self._current_activity = ""

        # Open session buffers; only valid while recording
        self._entries: List[OpenEntry] = []
        self._session_activity = ""
        self._session_rate = sampling_rate
        self._started_at: Optional[int] = None

        self.dropped_events = 0

        # Called on every stop of an open session, sealed or discarded
        self._stop_hooks: List[Callable[[], None]] = []

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is RecorderState.RECORDING

    @property
    def current_activity(self) -> str:
        return self._current_activity

    @property
    def open_entry_count(self) -> int:
        return len(self._entries) if self.is_recording else 0

    @property
    def started_at(self) -> Optional[int]:
        return self._started_at if self.is_recording else None

    @property
    def session_sampling_rate(self) -> Optional[int]:
        return self._session_rate if self.is_recording else None

    def add_stop_hook(self, hook: Callable[[], None]) -> None:
        """Register a collaborator to signal whenever recording stops."""
        self._stop_hooks.append(hook)

    def validate_start(self, activity: Optional[str] = None,
                       sampling_rate: Optional[int] = None) -> Tuple[str, int]:
        """Check the start preconditions without changing state; returns (label, rate)."""
        if self.is_recording:
            raise PreconditionError("Already recording")

        label = (activity if activity is not None else self._current_activity) or ""
        label = label.strip()
        if not label:
            raise PreconditionError("Please select an activity before recording")

        rate = sampling_rate if sampling_rate is not None else self.sampling_rate
        if not 1 <= rate <= 100:
            raise PreconditionError(f"Sampling rate must be between 1 and 100 Hz, got {rate}")
        return label, rate

    def start(self, activity: Optional[str] = None, sampling_rate: Optional[int] = None) -> None:
        """
        Open a new, empty session.

        Args:
            activity: Activity label; defaults to the current label
            sampling_rate: Requested frequency for the whole session

        Raises:
            PreconditionError: If already recording or no activity is chosen
        """
        label, rate = self.validate_start(activity, sampling_rate)

        self._entries = []
        self._current_activity = label
        self._session_activity = label
        self._session_rate = rate
        self._started_at = self.clock()
        self._state = RecorderState.RECORDING

        logger.info("Recording started",
                   activity=label,
                   sampling_rate=rate,
                   started_at=self._started_at)

    def on_event(self, event: CanonicalEvent) -> bool:
        """
        Offer a canonical event to the open session.

        Returns:
            bool: True if the event was appended, False if the recorder is idle
        """
        if not self.is_recording:
            self.dropped_events += 1
            return False
        self._entries.append(event)
        return True

    def switch_activity(self, activity: str) -> Optional[ActivitySwitchMarker]:
        """
        Change the current activity label.

        While recording, a change of label appends an activity switch marker
        to the open session before the label is updated.

        Returns:
            The marker that was recorded, or None
        """
        label = (activity or "").strip()
        previous = self._current_activity
        if label == previous:
            return None
        if self.is_recording and not label:
            logger.warning("Ignoring blank activity while recording", activity=previous)
            return None

        marker = None
        if self.is_recording:
            marker = activity_switch_marker(previous, label, self.clock())
            self._entries.append(marker)
            logger.info("Activity switched while recording",
                       previous_activity=previous,
                       activity=label,
                       entries=len(self._entries))
        else:
            logger.debug("Activity selected", previous_activity=previous, activity=label)

        self._current_activity = label
        return marker

    def stop(self) -> Optional[Session]:
        """
        Close the open session.

        Non-empty sessions are sealed with a fresh id and appended to the
        archive; empty ones are discarded. Stop hooks run either way.

        Returns:
            Session: the sealed session, or None if idle or nothing was recorded
        """
        if not self.is_recording:
            return None

        ended_at = max(self.clock(), self._started_at)
        entries, self._entries = self._entries, []
        started_at, self._started_at = self._started_at, None
        self._state = RecorderState.IDLE

        session = None
        if entries:
            session = Session(
                id=self.id_allocator.next_id(ended_at),
                activity=self._session_activity,
                start_time=started_at,
                end_time=ended_at,
                sampling_rate=self._session_rate,
                events=tuple(entries),
            )
            self.archive.append(session)
            logger.info("Recording stopped", session_id=session.id, entries=session.event_count)
        else:
            logger.info("Recording stopped with no data, session discarded",
                       activity=self._session_activity)

        for hook in list(self._stop_hooks):
            try:
                hook()
            except Exception as e:
                logger.error("Stop hook failed", error=str(e))

        return session
