"""
Sensor platform library.

Hardware/runtime abstraction for motion and environment sensors:

Classes:
    SensorPlatform: runtime providing features, permissions and readings
    SimulatedPlatform: synthetic runtime driven by the asyncio event loop
    SensorCapabilityRegistry: capability map per sensor type
    SensorSource: native and legacy-fallback sensor streams
    SensorHub: starts the selected sensors with fallback, stops them as a group

Functions:
    normalize / normalize_delivery: raw readings to canonical events
"""

from .platform import (
    LEGACY_FEATURES,
    MOTION_EVENT,
    MOTION_FEATURE,
    NATIVE_FEATURES,
    ORIENTATION_EVENT,
    ORIENTATION_FEATURE,
    SensorHandle,
    SensorPlatform,
    SensorUnavailableError,
    SimulatedPlatform,
)
from .capability import SensorCapabilityRegistry
from .normalizer import (
    DeliveryKind,
    LegacyStream,
    activity_switch_marker,
    normalize,
    normalize_delivery,
    orientation_event,
    split_motion_event,
)
from .sources import (
    LegacyMotionSource,
    LegacyOrientationSource,
    NativeSensorSource,
    SensorSource,
    SourceState,
)
from .hub import SensorHub

__all__ = [
    "LEGACY_FEATURES",
    "MOTION_EVENT",
    "MOTION_FEATURE",
    "NATIVE_FEATURES",
    "ORIENTATION_EVENT",
    "ORIENTATION_FEATURE",
    "SensorHandle",
    "SensorPlatform",
    "SensorUnavailableError",
    "SimulatedPlatform",
    "SensorCapabilityRegistry",
    "DeliveryKind",
    "LegacyStream",
    "activity_switch_marker",
    "normalize",
    "normalize_delivery",
    "orientation_event",
    "split_motion_event",
    "LegacyMotionSource",
    "LegacyOrientationSource",
    "NativeSensorSource",
    "SensorSource",
    "SourceState",
    "SensorHub",
]
