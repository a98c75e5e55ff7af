"""Canonical event models: one normalized reading, or an activity switch marker.

Each payload shape has its own immutable model so an event can only ever carry
the fields of its sensor type. Unused payload fields do not exist on the model,
which keeps "no value" distinguishable from a real ``0`` reading downstream.
"""

from typing import Annotated, Any, ClassVar, Dict, Literal, Optional, Tuple, Union

from pydantic import BaseModel, Discriminator, Field, Tag, field_validator
from pydantic.alias_generators import to_camel

from .sensor_type import PayloadKind, SensorType, sensor_types_of


ACTIVITY_SWITCH_TAG = "activity_switch"

IDENTITY_QUATERNION: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0)

EVENT_MODEL_CONFIG = {
    "frozen": True,
    "extra": "forbid",
    "alias_generator": to_camel,
    "populate_by_name": True,
}


class _ReadingEvent(BaseModel):
    """Envelope shared by all sensor readings."""

    model_config = EVENT_MODEL_CONFIG

    kind: ClassVar[PayloadKind]

    timestamp: int = Field(ge=0, description="Milliseconds since the Unix epoch, stamped at normalization")
    activity: str = Field(default="", description="Activity label active at capture time")
    sensor_type: SensorType = Field(description="Sensor the reading came from")

    @field_validator("sensor_type")
    @classmethod
    def validate_sensor_type(cls, v: SensorType) -> SensorType:
        """Only sensor types carrying this payload shape are accepted."""
        if v.payload_kind is not cls.kind:
            raise ValueError(f"{v.value} readings do not carry a {cls.kind.value} payload")
        return v

    @property
    def is_activity_switch(self) -> bool:
        return False

    @property
    def payload(self) -> Dict[str, Any]:
        """Payload fields of this event, by their wire names."""
        record = self.to_record()
        for key in ("timestamp", "activity", "sensorType"):
            record.pop(key)
        return record

    def to_record(self) -> Dict[str, Any]:
        """JSON-compatible dict using the wire field names."""
        return self.model_dump(mode="json", by_alias=True)


class VectorEvent(_ReadingEvent):
    """Triplet reading from accelerometer-like sensors."""

    kind: ClassVar[PayloadKind] = PayloadKind.VECTOR

    x: float
    y: float
    z: float


class QuaternionEvent(_ReadingEvent):
    """Orientation reading as a rotation quaternion."""

    kind: ClassVar[PayloadKind] = PayloadKind.QUATERNION

    quaternion: Tuple[float, float, float, float] = IDENTITY_QUATERNION


class LightEvent(_ReadingEvent):
    """Ambient light reading."""

    kind: ClassVar[PayloadKind] = PayloadKind.ILLUMINANCE

    illuminance: float = Field(description="Illuminance in lux")


class EulerEvent(_ReadingEvent):
    """Legacy device orientation reading."""

    kind: ClassVar[PayloadKind] = PayloadKind.EULER

    alpha: float
    beta: float
    gamma: float


class ActivitySwitchMarker(BaseModel):
    """In-band boundary recorded when the activity label changes mid-session."""

    model_config = EVENT_MODEL_CONFIG

    timestamp: int = Field(ge=0)
    activity: str = Field(description="Newly selected activity")
    previous_activity: str = Field(default="", description="Activity active before the switch")
    activity_switch: Literal[True] = True

    @property
    def is_activity_switch(self) -> bool:
        return True

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _entry_tag(value: Any) -> Optional[str]:
    """Discriminate raw dicts and model instances by payload shape."""
    if isinstance(value, dict):
        if value.get("activitySwitch", value.get("activity_switch")):
            return ACTIVITY_SWITCH_TAG
        sensor_type = value.get("sensorType", value.get("sensor_type"))
    else:
        if getattr(value, "is_activity_switch", False):
            return ACTIVITY_SWITCH_TAG
        sensor_type = getattr(value, "sensor_type", None)

    try:
        return SensorType(sensor_type).payload_kind.value
    except ValueError:
        return None


CanonicalEvent = Annotated[
    Union[
        Annotated[VectorEvent, Tag(PayloadKind.VECTOR.value)],
        Annotated[QuaternionEvent, Tag(PayloadKind.QUATERNION.value)],
        Annotated[LightEvent, Tag(PayloadKind.ILLUMINANCE.value)],
        Annotated[EulerEvent, Tag(PayloadKind.EULER.value)],
    ],
    Discriminator(_entry_tag),
]

SessionEntry = Annotated[
    Union[
        Annotated[VectorEvent, Tag(PayloadKind.VECTOR.value)],
        Annotated[QuaternionEvent, Tag(PayloadKind.QUATERNION.value)],
        Annotated[LightEvent, Tag(PayloadKind.ILLUMINANCE.value)],
        Annotated[EulerEvent, Tag(PayloadKind.EULER.value)],
        Annotated[ActivitySwitchMarker, Tag(ACTIVITY_SWITCH_TAG)],
    ],
    Discriminator(_entry_tag),
]

EVENT_CLASSES = {
    PayloadKind.VECTOR: VectorEvent,
    PayloadKind.QUATERNION: QuaternionEvent,
    PayloadKind.ILLUMINANCE: LightEvent,
    PayloadKind.EULER: EulerEvent,
}


def event_class_for(sensor_type: SensorType):
    """Model class that holds readings of ``sensor_type``."""
    return EVENT_CLASSES[sensor_type.payload_kind]


__all__ = [
    "ACTIVITY_SWITCH_TAG",
    "IDENTITY_QUATERNION",
    "VectorEvent",
    "QuaternionEvent",
    "LightEvent",
    "EulerEvent",
    "ActivitySwitchMarker",
    "CanonicalEvent",
    "SessionEntry",
    "event_class_for",
    "sensor_types_of",
]
