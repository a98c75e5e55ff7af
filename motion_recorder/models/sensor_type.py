"""Sensor type tags and the payload shape each one carries."""

from enum import Enum
from typing import Dict, FrozenSet


class SensorType(str, Enum):
    """Sensor types a canonical event can be tagged with."""

    ACCELEROMETER = "accelerometer"
    GYROSCOPE = "gyroscope"
    MAGNETOMETER = "magnetometer"
    LINEAR_ACCELERATION = "linearAcceleration"
    ABSOLUTE_ORIENTATION = "absoluteOrientation"
    RELATIVE_ORIENTATION = "relativeOrientation"
    AMBIENT_LIGHT = "ambientLight"
    GRAVITY = "gravity"
    ACCELEROMETER_WITH_GRAVITY = "accelerometerWithGravity"
    ORIENTATION = "orientation"

    @property
    def payload_kind(self) -> "PayloadKind":
        """Payload shape carried by readings of this sensor type."""
        return PAYLOAD_KINDS[self]

    @property
    def label(self) -> str:
        """Human readable name, e.g. ``Linear Acceleration``."""
        words = []
        current = ""
        for char in self.value:
            if char.isupper() and current:
                words.append(current)
                current = char
            else:
                current += char
        words.append(current)
        return " ".join(word[:1].upper() + word[1:] for word in words)


class PayloadKind(str, Enum):
    """Payload shapes of canonical events."""

    VECTOR = "vector"            # x, y, z
    QUATERNION = "quaternion"    # 4-tuple rotation
    ILLUMINANCE = "illuminance"  # scalar lux
    EULER = "euler"              # alpha, beta, gamma


PAYLOAD_KINDS: Dict[SensorType, PayloadKind] = {
    SensorType.ACCELEROMETER: PayloadKind.VECTOR,
    SensorType.GYROSCOPE: PayloadKind.VECTOR,
    SensorType.MAGNETOMETER: PayloadKind.VECTOR,
    SensorType.LINEAR_ACCELERATION: PayloadKind.VECTOR,
    SensorType.GRAVITY: PayloadKind.VECTOR,
    SensorType.ACCELEROMETER_WITH_GRAVITY: PayloadKind.VECTOR,
    SensorType.ABSOLUTE_ORIENTATION: PayloadKind.QUATERNION,
    SensorType.RELATIVE_ORIENTATION: PayloadKind.QUATERNION,
    SensorType.AMBIENT_LIGHT: PayloadKind.ILLUMINANCE,
    SensorType.ORIENTATION: PayloadKind.EULER,
}


def sensor_types_of(kind: PayloadKind) -> FrozenSet[SensorType]:
    """All sensor types whose readings carry the given payload shape."""
    return frozenset(t for t, k in PAYLOAD_KINDS.items() if k is kind)


# Sensor types a user can select; the remaining two only appear through
# the legacy motion/orientation streams.
SELECTABLE_SENSORS = (
    SensorType.ACCELEROMETER,
    SensorType.GYROSCOPE,
    SensorType.MAGNETOMETER,
    SensorType.LINEAR_ACCELERATION,
    SensorType.ABSOLUTE_ORIENTATION,
    SensorType.RELATIVE_ORIENTATION,
    SensorType.AMBIENT_LIGHT,
    SensorType.GRAVITY,
)
