"""
Reading normalizer.

Converts each platform's native reading shape into canonical events. All
functions here are pure and total: malformed or partial raw readings are
repaired by defaulting (``0`` for vector/scalar payloads, the identity
rotation for a missing quaternion) and never raise.
"""

import math
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple, Union

from ...models import (
    ActivitySwitchMarker,
    EulerEvent,
    IDENTITY_QUATERNION,
    LightEvent,
    PayloadKind,
    QuaternionEvent,
    SensorType,
    VectorEvent,
)
from .platform import MOTION_EVENT, ORIENTATION_EVENT


class LegacyStream(str, Enum):
    """Coarse event streams whose events are split into canonical events."""

    MOTION = MOTION_EVENT
    ORIENTATION = ORIENTATION_EVENT


DeliveryKind = Union[SensorType, LegacyStream]


def _field(raw: Any, name: str) -> Any:
    """Read ``name`` from a mapping or an attribute-style reading."""
    if raw is None:
        return None
    try:
        if isinstance(raw, dict) or hasattr(raw, "get"):
            return raw.get(name)
        return getattr(raw, name, None)
    except Exception:
        return None


def _number(value: Any) -> float:
    """Coerce to a finite float, substituting 0 for anything else."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _quaternion(value: Any) -> Tuple[float, float, float, float]:
    """Four finite components, or the identity rotation when absent/malformed."""
    if value is None or isinstance(value, (str, bytes)):
        return IDENTITY_QUATERNION
    try:
        components: Sequence[Any] = list(value)
    except Exception:
        return IDENTITY_QUATERNION
    if len(components) != 4:
        return IDENTITY_QUATERNION
    return tuple(_number(c) for c in components)


def _activity(activity: Optional[str]) -> str:
    return activity if isinstance(activity, str) else ""


def normalize(sensor_type: SensorType, raw: Any, activity: Optional[str], now: int):
    """
    Build the canonical event for one fine-grained reading.

    Args:
        sensor_type: Sensor the reading came from
        raw: Reading as delivered by the platform (mapping or attribute object)
        activity: Activity label current at normalization time
        now: Normalization instant, epoch milliseconds

    Returns:
        A well-formed canonical event carrying exactly the payload of ``sensor_type``
    """
    sensor_type = SensorType(sensor_type)
    kind = sensor_type.payload_kind
    common = {"timestamp": max(int(now), 0), "activity": _activity(activity), "sensor_type": sensor_type}

    if kind is PayloadKind.VECTOR:
        return VectorEvent(
            x=_number(_field(raw, "x")),
            y=_number(_field(raw, "y")),
            z=_number(_field(raw, "z")),
            **common
        )
    if kind is PayloadKind.QUATERNION:
        return QuaternionEvent(quaternion=_quaternion(_field(raw, "quaternion")), **common)
    if kind is PayloadKind.ILLUMINANCE:
        return LightEvent(illuminance=_number(_field(raw, "illuminance")), **common)
    return EulerEvent(
        alpha=_number(_field(raw, "alpha")),
        beta=_number(_field(raw, "beta")),
        gamma=_number(_field(raw, "gamma")),
        **common
    )


def split_motion_event(raw: Any, activity: Optional[str], now: int) -> List[VectorEvent]:
    """
    Split one coarse motion event into up to three canonical events.

    ``acceleration`` becomes an accelerometer event, ``accelerationIncludingGravity``
    an accelerometerWithGravity event and ``rotationRate`` (alpha/beta/gamma) a
    gyroscope event on x/y/z. Parts missing from the raw event are skipped.
    """
    events: List[VectorEvent] = []

    acceleration = _field(raw, "acceleration")
    if acceleration is not None:
        events.append(normalize(SensorType.ACCELEROMETER, acceleration, activity, now))

    with_gravity = _field(raw, "accelerationIncludingGravity")
    if with_gravity is not None:
        events.append(normalize(SensorType.ACCELEROMETER_WITH_GRAVITY, with_gravity, activity, now))

    rotation = _field(raw, "rotationRate")
    if rotation is not None:
        events.append(normalize(
            SensorType.GYROSCOPE,
            {
                "x": _field(rotation, "alpha"),
                "y": _field(rotation, "beta"),
                "z": _field(rotation, "gamma"),
            },
            activity,
            now
        ))

    return events


def orientation_event(raw: Any, activity: Optional[str], now: int) -> EulerEvent:
    """Canonical event for one coarse orientation event."""
    return normalize(SensorType.ORIENTATION, raw, activity, now)


def normalize_delivery(kind: DeliveryKind, raw: Any, activity: Optional[str], now: int) -> list:
    """Canonical events for anything a sensor source delivered."""
    if kind == LegacyStream.MOTION:
        return split_motion_event(raw, activity, now)
    if kind == LegacyStream.ORIENTATION:
        return [orientation_event(raw, activity, now)]
    return [normalize(kind, raw, activity, now)]


def activity_switch_marker(previous: str, activity: str, now: int) -> ActivitySwitchMarker:
    """Marker recorded when the label changes during a session."""
    return ActivitySwitchMarker(timestamp=max(int(now), 0), activity=activity, previous_activity=previous)


__all__ = [
    "LegacyStream",
    "DeliveryKind",
    "normalize",
    "split_motion_event",
    "orientation_event",
    "normalize_delivery",
    "activity_switch_marker",
]
