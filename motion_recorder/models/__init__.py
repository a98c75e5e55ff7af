"""Data models for the motion sensor recorder."""

from .sensor_type import PayloadKind, SensorType, SELECTABLE_SENSORS
from .canonical_event import (
    ActivitySwitchMarker,
    CanonicalEvent,
    EulerEvent,
    IDENTITY_QUATERNION,
    LightEvent,
    QuaternionEvent,
    SessionEntry,
    VectorEvent,
    event_class_for,
)
from .session import Session, SessionSummary, to_iso
from .recorder_configuration import ExportFormat, RecorderConfiguration, RelaySettings
from .pipeline_status import PipelineStatus, RelayConnectionState

__all__ = [
    "PayloadKind",
    "SensorType",
    "SELECTABLE_SENSORS",
    "ActivitySwitchMarker",
    "CanonicalEvent",
    "EulerEvent",
    "IDENTITY_QUATERNION",
    "LightEvent",
    "QuaternionEvent",
    "SessionEntry",
    "VectorEvent",
    "event_class_for",
    "Session",
    "SessionSummary",
    "to_iso",
    "ExportFormat",
    "RecorderConfiguration",
    "RelaySettings",
    "PipelineStatus",
    "RelayConnectionState",
]
