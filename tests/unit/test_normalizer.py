"""Unit tests for the reading normalizer."""

import math
from types import SimpleNamespace

from motion_recorder.lib.sensors import (
    LegacyStream,
    activity_switch_marker,
    normalize,
    normalize_delivery,
    orientation_event,
    split_motion_event,
)
from motion_recorder.models import (
    EulerEvent,
    IDENTITY_QUATERNION,
    LightEvent,
    QuaternionEvent,
    SensorType,
    VectorEvent,
)


NOW = 1_700_000_000_000


class TestNormalize:
    """Test normalization of fine-grained readings."""

    def test_vector_reading(self):
        """Test a complete vector reading keeps its values."""
        event = normalize(SensorType.ACCELEROMETER, {"x": 1, "y": 0, "z": 9.8}, "Running", NOW)

        assert isinstance(event, VectorEvent)
        assert (event.x, event.y, event.z) == (1.0, 0.0, 9.8)
        assert event.activity == "Running"
        assert event.timestamp == NOW
        assert event.sensor_type is SensorType.ACCELEROMETER

    def test_attribute_style_reading(self):
        """Test readings exposed as attributes are supported."""
        reading = SimpleNamespace(x=0.5, y=-0.5, z=0.25)

        event = normalize(SensorType.MAGNETOMETER, reading, "Walking", NOW)

        assert (event.x, event.y, event.z) == (0.5, -0.5, 0.25)

    def test_missing_fields_default_to_zero(self):
        """Test partial readings are repaired with 0."""
        event = normalize(SensorType.GYROSCOPE, {"x": 2.0}, "Walking", NOW)

        assert (event.x, event.y, event.z) == (2.0, 0.0, 0.0)

    def test_malformed_values_default_to_zero(self):
        """Test non-numeric, non-finite and boolean values become 0."""
        raw = {"x": "abc", "y": float("nan"), "z": True}

        event = normalize(SensorType.GRAVITY, raw, "Walking", NOW)

        assert (event.x, event.y, event.z) == (0.0, 0.0, 0.0)

    def test_numeric_strings_are_parsed(self):
        """Test numeric strings are accepted."""
        event = normalize(SensorType.LINEAR_ACCELERATION, {"x": "1.5", "y": "2", "z": "-3"}, "Walking", NOW)

        assert (event.x, event.y, event.z) == (1.5, 2.0, -3.0)

    def test_none_reading(self):
        """Test a missing reading still yields a well-formed event."""
        event = normalize(SensorType.AMBIENT_LIGHT, None, "Sitting", NOW)

        assert isinstance(event, LightEvent)
        assert event.illuminance == 0.0

    def test_quaternion_reading(self):
        """Test quaternion readings keep their four components."""
        event = normalize(SensorType.ABSOLUTE_ORIENTATION, {"quaternion": [0, 0, 0.7071, 0.7071]}, "Walking", NOW)

        assert isinstance(event, QuaternionEvent)
        assert event.quaternion == (0.0, 0.0, 0.7071, 0.7071)

    def test_missing_quaternion_is_identity(self):
        """Test absent or malformed quaternions become the identity rotation."""
        assert normalize(SensorType.RELATIVE_ORIENTATION, {}, "Walking", NOW).quaternion == IDENTITY_QUATERNION
        assert normalize(SensorType.RELATIVE_ORIENTATION, {"quaternion": [1, 2]}, "Walking", NOW).quaternion == IDENTITY_QUATERNION
        assert normalize(SensorType.RELATIVE_ORIENTATION, {"quaternion": "1234"}, "Walking", NOW).quaternion == IDENTITY_QUATERNION

    def test_quaternion_components_are_repaired(self):
        """Test non-finite components become 0 without dropping the quaternion."""
        event = normalize(SensorType.ABSOLUTE_ORIENTATION, {"quaternion": [math.inf, None, 0.5, 1]}, "Walking", NOW)

        assert event.quaternion == (0.0, 0.0, 0.5, 1.0)

    def test_payload_matches_sensor_type(self):
        """Test only the sensor type's own payload fields are present."""
        event = normalize(SensorType.AMBIENT_LIGHT, {"illuminance": 250, "x": 3}, "Walking", NOW)

        assert event.payload == {"illuminance": 250.0}
        assert not hasattr(event, "x")

    def test_non_string_activity(self):
        """Test a missing activity label becomes empty."""
        event = normalize(SensorType.ACCELEROMETER, {"x": 1, "y": 1, "z": 1}, None, NOW)

        assert event.activity == ""


class TestLegacyEvents:
    """Test splitting of coarse motion and orientation events."""

    def test_motion_event_splits_into_three(self):
        """Test a full motion event yields accelerometer, gravity and gyroscope events."""
        raw = {
            "acceleration": {"x": 0.1, "y": 0.2, "z": 0.3},
            "accelerationIncludingGravity": {"x": 0.1, "y": 0.2, "z": 10.1},
            "rotationRate": {"alpha": 5, "beta": 6, "gamma": 7},
            "interval": 16,
        }

        events = split_motion_event(raw, "Walking", NOW)

        assert [e.sensor_type for e in events] == [
            SensorType.ACCELEROMETER,
            SensorType.ACCELEROMETER_WITH_GRAVITY,
            SensorType.GYROSCOPE,
        ]
        assert all(e.timestamp == NOW and e.activity == "Walking" for e in events)
        assert (events[1].x, events[1].y, events[1].z) == (0.1, 0.2, 10.1)

    def test_rotation_rate_maps_to_xyz(self):
        """Test alpha/beta/gamma of the rotation rate become x/y/z."""
        events = split_motion_event({"rotationRate": {"alpha": 1, "beta": 2, "gamma": 3}}, "Walking", NOW)

        assert len(events) == 1
        gyro = events[0]
        assert gyro.sensor_type is SensorType.GYROSCOPE
        assert (gyro.x, gyro.y, gyro.z) == (1.0, 2.0, 3.0)

    def test_missing_parts_are_skipped(self):
        """Test absent parts produce no events."""
        events = split_motion_event({"acceleration": {"x": 1, "y": 2, "z": 3}}, "Walking", NOW)

        assert len(events) == 1
        assert events[0].sensor_type is SensorType.ACCELEROMETER

        assert split_motion_event({}, "Walking", NOW) == []
        assert split_motion_event(None, "Walking", NOW) == []

    def test_orientation_event(self):
        """Test coarse orientation events become orientation events."""
        event = orientation_event({"alpha": 90, "beta": None, "gamma": -45}, "Sitting", NOW)

        assert isinstance(event, EulerEvent)
        assert event.sensor_type is SensorType.ORIENTATION
        assert (event.alpha, event.beta, event.gamma) == (90.0, 0.0, -45.0)


class TestNormalizeDelivery:
    """Test dispatch by delivery kind."""

    def test_native_delivery(self):
        """Test a sensor type delivery yields one event."""
        events = normalize_delivery(SensorType.AMBIENT_LIGHT, {"illuminance": 12}, "Walking", NOW)

        assert len(events) == 1
        assert events[0].illuminance == 12.0

    def test_legacy_deliveries(self):
        """Test legacy stream deliveries are split or converted."""
        motion = normalize_delivery(
            LegacyStream.MOTION,
            {"acceleration": {"x": 1}, "rotationRate": {"alpha": 1}},
            "Walking",
            NOW
        )
        orientation = normalize_delivery(LegacyStream.ORIENTATION, {"alpha": 1}, "Walking", NOW)

        assert len(motion) == 2
        assert len(orientation) == 1
        assert orientation[0].sensor_type is SensorType.ORIENTATION

    def test_activity_switch_marker(self):
        """Test marker construction."""
        marker = activity_switch_marker("Walking", "Running", NOW)

        assert marker.previous_activity == "Walking"
        assert marker.activity == "Running"
        assert marker.timestamp == NOW
