"""PipelineStatus data model: the status indicators exposed to the UI layer."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from .sensor_type import SensorType


class RelayConnectionState(str, Enum):
    """Connection state of the stream relay, as observed from transport events."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class PipelineStatus(BaseModel):
    """Snapshot of the acquisition pipeline for status badges and indicators."""

    model_config = {
        "json_encoders": {datetime: lambda v: v.isoformat()},
        "extra": "forbid"
    }

    timestamp: datetime = Field(default_factory=datetime.now)
    is_recording: bool = Field(default=False)
    current_activity: str = Field(default="")
    sampling_rate: int = Field(ge=1, le=100)
    capabilities: Dict[SensorType, bool] = Field(default_factory=dict)
    active_sensors: List[str] = Field(default_factory=list, description="Delivery kinds of running sources")
    open_session_entries: int = Field(default=0, ge=0, description="Entries in the open session")
    session_started_at: Optional[int] = Field(default=None, description="Open session start, epoch ms")
    live_window_size: int = Field(default=0, ge=0)
    archived_sessions: int = Field(default=0, ge=0)
    relay_state: RelayConnectionState = Field(default=RelayConnectionState.DISCONNECTED)
    dropped_events: int = Field(default=0, ge=0, description="Readings that arrived while idle")

    @computed_field
    @property
    def supported_sensor_count(self) -> int:
        return sum(1 for supported in self.capabilities.values() if supported)

    @computed_field
    @property
    def relay_connected(self) -> bool:
        return self.relay_state == RelayConnectionState.CONNECTED
