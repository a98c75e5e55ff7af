"""Unit tests for capability detection, sensor sources and the sensor hub."""

from unittest.mock import Mock

import pytest

from motion_recorder.lib.sensors import (
    LegacyMotionSource,
    LegacyStream,
    MOTION_EVENT,
    MOTION_FEATURE,
    NATIVE_FEATURES,
    NativeSensorSource,
    ORIENTATION_EVENT,
    ORIENTATION_FEATURE,
    SensorCapabilityRegistry,
    SensorHub,
    SimulatedPlatform,
    SourceState,
)
from motion_recorder.models import SELECTABLE_SENSORS, SensorType


ACCEL = NATIVE_FEATURES[SensorType.ACCELEROMETER]
GYRO = NATIVE_FEATURES[SensorType.GYROSCOPE]
LIGHT = NATIVE_FEATURES[SensorType.AMBIENT_LIGHT]


class TestCapabilityRegistry:
    """Test SensorCapabilityRegistry."""

    def test_all_features_available(self, platform):
        """Test every selectable sensor is reported when all features exist."""
        capabilities = SensorCapabilityRegistry(platform).detect()

        assert set(capabilities) == set(SELECTABLE_SENSORS)
        assert all(capabilities.values())

    def test_no_features(self, platform_factory):
        """Test an empty platform reports nothing."""
        capabilities = SensorCapabilityRegistry(platform_factory(features=[])).detect()

        assert not any(capabilities.values())

    def test_legacy_only_platform(self, platform_factory):
        """Test coarse streams stand in for accelerometer and gyroscope only."""
        platform = platform_factory(features=[MOTION_FEATURE, ORIENTATION_FEATURE])

        capabilities = SensorCapabilityRegistry(platform).detect()

        assert capabilities[SensorType.ACCELEROMETER] is True
        assert capabilities[SensorType.GYROSCOPE] is True
        assert capabilities[SensorType.MAGNETOMETER] is False
        assert capabilities[SensorType.AMBIENT_LIGHT] is False

    def test_detection_is_repeatable(self, platform_factory):
        """Test detection has no side effects and follows the platform."""
        platform = platform_factory(features=[ACCEL])
        registry = SensorCapabilityRegistry(platform)

        first = registry.detect()
        assert registry.detect() == first

        platform.features.discard(ACCEL)
        assert registry.detect()[SensorType.ACCELEROMETER] is False

    def test_failing_feature_query(self):
        """Test a platform whose feature query raises reports nothing."""
        platform = Mock()
        platform.feature_flags.side_effect = RuntimeError("probe crashed")

        registry = SensorCapabilityRegistry(platform)

        assert not any(registry.detect().values())
        assert registry.native_available(SensorType.ACCELEROMETER) is False

    def test_native_and_legacy_availability(self, platform_factory):
        """Test the per-path availability queries."""
        registry = SensorCapabilityRegistry(platform_factory(features=[GYRO, MOTION_FEATURE]))

        assert registry.native_available(SensorType.GYROSCOPE) is True
        assert registry.native_available(SensorType.ACCELEROMETER) is False
        assert registry.legacy_available(SensorType.ACCELEROMETER) is True
        assert registry.legacy_available(SensorType.GYROSCOPE) is False
        assert registry.legacy_available(SensorType.MAGNETOMETER) is False


class TestSensorSources:
    """Test sensor source lifecycle."""

    def test_native_source_delivers(self, platform):
        """Test a started source hands readings to its callback."""
        deliver = Mock()
        source = NativeSensorSource(SensorType.ACCELEROMETER, platform, 50, deliver)

        assert source.start() is True
        platform.emit(ACCEL, {"x": 1})

        deliver.assert_called_once_with(SensorType.ACCELEROMETER, {"x": 1})
        assert source.state is SourceState.ACTIVE

    def test_unavailable_source_fails_without_raising(self, platform_factory):
        """Test a missing sensor marks the source failed."""
        source = NativeSensorSource(SensorType.ACCELEROMETER, platform_factory(features=[]), 50, Mock())

        assert source.start() is False
        assert source.state is SourceState.FAILED

    def test_start_failure_releases_handle(self, platform_factory):
        """Test a sensor that disappears after detection is released."""
        platform = platform_factory(fail_start=[ACCEL])
        source = NativeSensorSource(SensorType.ACCELEROMETER, platform, 50, Mock())

        assert source.start() is False
        assert platform.handles[ACCEL].stop_calls == 1

    def test_stop_is_idempotent(self, platform):
        """Test stopping twice releases the sensor once."""
        source = NativeSensorSource(SensorType.GYROSCOPE, platform, 50, Mock())
        source.start()

        source.stop()
        source.stop()

        assert source.state is SourceState.STOPPED
        assert platform.handles[GYRO].stop_calls == 1

    def test_stopped_source_cannot_restart(self, platform):
        """Test sources are single-use."""
        source = NativeSensorSource(SensorType.GYROSCOPE, platform, 50, Mock())
        source.start()
        source.stop()

        assert source.start() is False
        assert source.state is SourceState.STOPPED

    def test_readings_after_stop_are_ignored(self, platform):
        """Test late readings are not delivered."""
        deliver = Mock()
        source = NativeSensorSource(SensorType.ACCELEROMETER, platform, 50, deliver)
        source.start()
        source.stop()

        source._emit({"x": 1})

        deliver.assert_not_called()

    def test_legacy_source_listener(self, platform):
        """Test a legacy source registers and removes its listener."""
        deliver = Mock()
        source = LegacyMotionSource(platform, 50, deliver)

        assert source.start() is True
        platform.emit_event(MOTION_EVENT, {"acceleration": {"x": 1}})
        deliver.assert_called_once_with(LegacyStream.MOTION, {"acceleration": {"x": 1}})

        source.stop()
        assert platform.listeners[MOTION_EVENT] == []

    def test_sensor_without_native_feature(self, platform):
        """Test legacy-only sensor types cannot be opened natively."""
        with pytest.raises(ValueError):
            NativeSensorSource(SensorType.ORIENTATION, platform, 50, Mock())


class TestSensorHub:
    """Test SensorHub start/stop with fallback."""

    def test_native_sensors_started(self, platform):
        """Test available fine-grained sensors are used."""
        hub = SensorHub(platform)

        sources = hub.start([SensorType.ACCELEROMETER, SensorType.AMBIENT_LIGHT], 50, Mock())

        assert [s.kind for s in sources] == [SensorType.ACCELEROMETER, SensorType.AMBIENT_LIGHT]
        assert hub.active_sensors == ["accelerometer", "ambientLight"]
        assert platform.listeners[MOTION_EVENT] == []

    def test_fallback_to_legacy_streams(self, platform_factory):
        """Test coarse streams replace missing accelerometer and gyroscope."""
        platform = platform_factory(features=[MOTION_FEATURE, ORIENTATION_FEATURE])
        hub = SensorHub(platform)

        hub.start([SensorType.ACCELEROMETER, SensorType.GYROSCOPE], 50, Mock())

        assert hub.active_sensors == ["devicemotion", "deviceorientation"]
        assert len(platform.listeners[MOTION_EVENT]) == 1
        assert len(platform.listeners[ORIENTATION_EVENT]) == 1

    def test_fallback_after_start_failure(self, platform_factory):
        """Test a detected sensor that fails to start falls back."""
        platform = platform_factory(fail_start=[ACCEL])
        hub = SensorHub(platform)

        hub.start([SensorType.ACCELEROMETER, SensorType.GYROSCOPE], 50, Mock())

        assert hub.active_sensors == ["devicemotion", "gyroscope"]

    def test_shared_legacy_listener(self, platform_factory):
        """Test one motion listener serves every sensor falling back to it."""
        platform = platform_factory(features=[MOTION_FEATURE])
        hub = SensorHub(platform)

        hub.start([SensorType.ACCELEROMETER, SensorType.ACCELEROMETER], 50, Mock())

        assert len(platform.listeners[MOTION_EVENT]) == 1
        assert hub.active_sensors == ["devicemotion"]

    def test_unavailable_sensor_skipped(self, platform_factory):
        """Test sensors with no usable stream are simply not started."""
        platform = platform_factory(features=[ACCEL])
        hub = SensorHub(platform)

        sources = hub.start([SensorType.MAGNETOMETER, SensorType.ACCELEROMETER], 50, Mock())

        assert [s.kind for s in sources] == [SensorType.ACCELEROMETER]

    def test_stop_releases_everything(self, platform_factory):
        """Test stop releases native handles and legacy listeners."""
        platform = platform_factory(features=[ACCEL, ORIENTATION_FEATURE])
        hub = SensorHub(platform)
        hub.start([SensorType.ACCELEROMETER, SensorType.GYROSCOPE], 50, Mock())

        hub.stop()
        hub.stop()

        assert hub.active_sensors == []
        assert platform.handles[ACCEL].stop_calls == 1
        assert platform.listeners[ORIENTATION_EVENT] == []

    def test_restart_replaces_sources(self, platform):
        """Test starting again stops the previous sources first."""
        hub = SensorHub(platform)
        hub.start([SensorType.ACCELEROMETER], 50, Mock())
        first = platform.handles[ACCEL]

        hub.start([SensorType.ACCELEROMETER], 20, Mock())

        assert first.stop_calls == 1
        assert len(hub.sources) == 1

    @pytest.mark.asyncio
    async def test_permissions(self, platform_factory):
        """Test permission results are collected per coarse stream."""
        platform = platform_factory(permissions={ORIENTATION_EVENT: False})

        results = await SensorHub(platform).request_permissions()

        assert results == {MOTION_EVENT: True, ORIENTATION_EVENT: False}
        assert platform.permission_requests == [MOTION_EVENT, ORIENTATION_EVENT]

    @pytest.mark.asyncio
    async def test_permission_failure_is_denial(self, platform_factory):
        """Test a permission request that raises counts as denied."""
        platform = platform_factory(permissions={MOTION_EVENT: RuntimeError("user dismissed")})

        results = await SensorHub(platform).request_permissions()

        assert results[MOTION_EVENT] is False
        assert results[ORIENTATION_EVENT] is True


class TestSimulatedPlatform:
    """Test the simulated runtime."""

    def test_feature_flags(self):
        """Test features can be restricted and revoked."""
        platform = SimulatedPlatform(features=[ACCEL, LIGHT], seed=1)

        assert platform.feature_flags()[ACCEL] is True
        assert platform.feature_flags()[GYRO] is False

        platform.revoke(ACCEL)
        assert platform.feature_flags()[ACCEL] is False

    def test_start_without_loop_fails(self):
        """Test simulated sensors need a running event loop."""
        source = NativeSensorSource(SensorType.ACCELEROMETER, SimulatedPlatform(seed=1), 50, Mock())

        assert source.start() is False

    @pytest.mark.asyncio
    async def test_revoked_sensor_falls_back(self):
        """Test a sensor revoked after detection falls back to the motion stream."""
        platform = SimulatedPlatform(seed=3)
        hub = SensorHub(platform)
        native = hub.registry.native_available
        hub.registry.native_available = lambda sensor: native(sensor) or sensor is SensorType.ACCELEROMETER
        platform.revoke(ACCEL)

        hub.start([SensorType.ACCELEROMETER], 50, Mock())

        assert hub.active_sensors == ["devicemotion"]
        assert platform.listener_count(MOTION_EVENT) == 1
        hub.stop()
        assert platform.listener_count(MOTION_EVENT) == 0
