"""Session data model for sealed recording runs."""

from datetime import datetime, timezone
from typing import List, Tuple

from pydantic import BaseModel, Field, model_validator

from .canonical_event import EVENT_MODEL_CONFIG, SessionEntry


def to_iso(timestamp_ms: int) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string (``...T12:00:00.000Z``)."""
    moment = datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{timestamp_ms % 1000:03d}Z"


class SessionSummary(BaseModel):
    """Lightweight description of a sealed session for listings."""

    model_config = EVENT_MODEL_CONFIG

    id: int
    activity: str
    start_time: int
    end_time: int
    duration_seconds: float
    sampling_rate: int
    event_count: int
    activities: List[str]


class Session(BaseModel):
    """One recording run, sealed and immutable once it reaches the archive."""

    model_config = EVENT_MODEL_CONFIG

    id: int = Field(ge=0, description="Unique, monotonically increasing session id")
    activity: str = Field(min_length=1, description="Activity active when recording started")
    start_time: int = Field(ge=0, description="Recording start, epoch milliseconds")
    end_time: int = Field(ge=0, description="Recording end, epoch milliseconds")
    sampling_rate: int = Field(ge=1, le=100, description="Requested sampling frequency in Hz")
    events: Tuple[SessionEntry, ...] = Field(default=(), description="Entries in capture order")

    @model_validator(mode="after")
    def check_time_order(self) -> "Session":
        """A session cannot end before it started."""
        if self.end_time < self.start_time:
            raise ValueError("end_time must not be earlier than start_time")
        return self

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time) / 1000.0

    @property
    def event_count(self) -> int:
        return len(self.events)

    @property
    def activities(self) -> List[str]:
        """Starting activity followed by every switched-to activity, in order."""
        labels = [self.activity]
        for entry in self.events:
            if entry.is_activity_switch:
                labels.append(entry.activity)
        return labels

    def summary(self) -> SessionSummary:
        return SessionSummary(
            id=self.id,
            activity=self.activity,
            start_time=self.start_time,
            end_time=self.end_time,
            duration_seconds=round(self.duration_seconds, 2),
            sampling_rate=self.sampling_rate,
            event_count=self.event_count,
            activities=self.activities,
        )

    def to_record(self) -> dict:
        """JSON-compatible dict with every field of the session and its events."""
        return self.model_dump(mode="json", by_alias=True)

    def __str__(self) -> str:
        return (
            f"Session {self.id}: {self.activity} "
            f"({self.event_count} entries, {self.duration_seconds:.2f}s @ {self.sampling_rate}Hz)"
        )
