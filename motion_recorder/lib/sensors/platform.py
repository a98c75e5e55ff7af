"""
Sensor platform abstraction.

A platform is the runtime the recorder runs on: it reports which sensor
features exist, grants (or refuses) motion/orientation permission and
delivers readings on its own schedule. Two delivery styles exist:

- fine-grained sensors, opened per feature at a requested frequency
- legacy coarse event streams (``devicemotion``/``deviceorientation``) that
  combine several measurements in a single event

``SimulatedPlatform`` produces synthetic signals on the asyncio event loop and
is what the CLI runs against when no hardware-backed platform is plugged in.
"""

import asyncio
import logging
import math
import random
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from ...models import SensorType

logger = logging.getLogger(__name__)


ReadingCallback = Callable[[Any], None]

# Runtime feature names of the fine-grained sensors.
NATIVE_FEATURES: Dict[SensorType, str] = {
    SensorType.ACCELEROMETER: "Accelerometer",
    SensorType.GYROSCOPE: "Gyroscope",
    SensorType.MAGNETOMETER: "Magnetometer",
    SensorType.LINEAR_ACCELERATION: "LinearAccelerationSensor",
    SensorType.ABSOLUTE_ORIENTATION: "AbsoluteOrientationSensor",
    SensorType.RELATIVE_ORIENTATION: "RelativeOrientationSensor",
    SensorType.AMBIENT_LIGHT: "AmbientLightSensor",
    SensorType.GRAVITY: "GravitySensor",
}

# Legacy coarse streams: feature flag and event name.
MOTION_FEATURE = "DeviceMotionEvent"
ORIENTATION_FEATURE = "DeviceOrientationEvent"
MOTION_EVENT = "devicemotion"
ORIENTATION_EVENT = "deviceorientation"

LEGACY_FEATURES = {
    MOTION_EVENT: MOTION_FEATURE,
    ORIENTATION_EVENT: ORIENTATION_FEATURE,
}

ALL_FEATURES = frozenset(NATIVE_FEATURES.values()) | {MOTION_FEATURE, ORIENTATION_FEATURE}


class SensorUnavailableError(RuntimeError):
    """Raised when a sensor feature cannot be opened on the platform."""


class SensorHandle(ABC):
    """Started/stopped handle for one opened sensor."""

    @abstractmethod
    def start(self) -> None:
        """Begin delivering readings."""

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering readings."""


class SensorPlatform(ABC):
    """Runtime providing sensor features, permissions and reading delivery."""

    @abstractmethod
    def feature_flags(self) -> Dict[str, bool]:
        """Map of runtime feature name to availability."""

    async def request_permission(self, event_name: str) -> bool:
        """Ask the runtime for permission to receive ``event_name`` events."""
        return True

    @abstractmethod
    def open_sensor(self, feature: str, frequency: float, on_reading: ReadingCallback) -> SensorHandle:
        """Create a handle for a fine-grained sensor feature."""

    @abstractmethod
    def add_event_listener(self, event_name: str, callback: ReadingCallback) -> None:
        """Subscribe to a legacy coarse event stream."""

    @abstractmethod
    def remove_event_listener(self, event_name: str, callback: ReadingCallback) -> None:
        """Unsubscribe from a legacy coarse event stream; unknown callbacks are ignored."""


class _Waveform:
    """Smooth synthetic signal with a little noise."""

    def __init__(self, rng: random.Random, amplitude: float = 1.0, offset: float = 0.0):
        self.rng = rng
        self.amplitude = amplitude
        self.offset = offset
        self.phase = rng.uniform(0.0, 2 * math.pi)
        self.period_s = rng.uniform(0.8, 2.5)

    def sample(self, t: float) -> float:
        value = self.offset + self.amplitude * math.sin(2 * math.pi * t / self.period_s + self.phase)
        return round(value + self.rng.gauss(0.0, self.amplitude * 0.02), 4)


class _SimulatedStream:
    """Periodic asyncio task calling a producer and handing its result to a callback."""

    def __init__(self, name: str, frequency: float, produce: Callable[[float], Any], deliver: ReadingCallback):
        self.name = name
        self.interval = 1.0 / max(frequency, 0.1)
        self.produce = produce
        self.deliver = deliver
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise SensorUnavailableError(f"{self.name}: no running event loop") from e
        self._task = loop.create_task(self._run())

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.deliver(self.produce(loop.time() - started))
            except Exception as e:
                logger.error(f"Simulated {self.name} delivery failed: {e}")


class SimulatedSensorHandle(SensorHandle):
    """Handle for one simulated fine-grained sensor."""

    def __init__(self, platform: "SimulatedPlatform", feature: str, stream: _SimulatedStream):
        self.platform = platform
        self.feature = feature
        self.stream = stream

    def start(self) -> None:
        # Availability is re-checked here: it may have changed since detection.
        if not self.platform.feature_flags().get(self.feature, False):
            raise SensorUnavailableError(f"{self.feature} is no longer available")
        self.stream.start()

    def stop(self) -> None:
        self.stream.stop()


class SimulatedPlatform(SensorPlatform):
    """
    Synthetic sensor runtime driven by the asyncio event loop.

    Args:
        features: Feature names to report as available (default: all)
        permissions: Result of permission requests per event name (default: granted)
        legacy_rate_hz: Delivery rate of the coarse motion/orientation streams
        seed: Random seed for reproducible signals
    """

    def __init__(
        self,
        features: Optional[Iterable[str]] = None,
        permissions: Optional[Mapping[str, bool]] = None,
        legacy_rate_hz: float = 60.0,
        seed: Optional[int] = None
    ):
        self._features: Set[str] = set(ALL_FEATURES if features is None else features)
        self._permissions = dict(permissions or {})
        self.legacy_rate_hz = legacy_rate_hz
        self._rng = random.Random(seed)
        self._listeners: Dict[str, List[tuple]] = {MOTION_EVENT: [], ORIENTATION_EVENT: []}
        self._motion_axes = tuple(_Waveform(self._rng, amplitude=0.5) for _ in range(3))

        logger.info(f"SimulatedPlatform initialized with {len(self._features)} features")

    def feature_flags(self) -> Dict[str, bool]:
        return {feature: feature in self._features for feature in sorted(ALL_FEATURES)}

    def revoke(self, feature: str) -> None:
        """Make a feature disappear, e.g. to model a sensor lost after detection."""
        self._features.discard(feature)

    async def request_permission(self, event_name: str) -> bool:
        granted = self._permissions.get(event_name, True)
        logger.info(f"Permission for {event_name}: {'granted' if granted else 'denied'}")
        return granted

    def open_sensor(self, feature: str, frequency: float, on_reading: ReadingCallback) -> SensorHandle:
        if not self.feature_flags().get(feature, False):
            raise SensorUnavailableError(f"{feature} not available on this platform")

        produce = self._producer_for(feature)
        stream = _SimulatedStream(feature, frequency, produce, on_reading)
        return SimulatedSensorHandle(self, feature, stream)

    def add_event_listener(self, event_name: str, callback: ReadingCallback) -> None:
        if event_name not in self._listeners:
            raise ValueError(f"Unknown event stream: {event_name}")

        feature = LEGACY_FEATURES[event_name]
        if feature not in self._features:
            raise SensorUnavailableError(f"{feature} not available on this platform")

        produce = self._motion_event if event_name == MOTION_EVENT else self._orientation_event
        stream = _SimulatedStream(event_name, self.legacy_rate_hz, produce, callback)
        stream.start()
        self._listeners[event_name].append((callback, stream))

    def remove_event_listener(self, event_name: str, callback: ReadingCallback) -> None:
        remaining = []
        for registered, stream in self._listeners.get(event_name, []):
            if registered == callback:
                stream.stop()
            else:
                remaining.append((registered, stream))
        if event_name in self._listeners:
            self._listeners[event_name] = remaining

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    def _producer_for(self, feature: str) -> Callable[[float], Any]:
        if feature in ("AbsoluteOrientationSensor", "RelativeOrientationSensor"):
            yaw = _Waveform(self._rng, amplitude=math.pi)

            def quaternion(t: float) -> Dict[str, Any]:
                half = yaw.sample(t) / 2.0
                return {"quaternion": [0.0, 0.0, round(math.sin(half), 6), round(math.cos(half), 6)]}
            return quaternion

        if feature == "AmbientLightSensor":
            lux = _Waveform(self._rng, amplitude=40.0, offset=300.0)
            return lambda t: {"illuminance": lux.sample(t)}

        offset_z = 9.81 if feature in ("Accelerometer", "GravitySensor") else 0.0
        axes = (
            _Waveform(self._rng),
            _Waveform(self._rng),
            _Waveform(self._rng, offset=offset_z),
        )
        return lambda t: {"x": axes[0].sample(t), "y": axes[1].sample(t), "z": axes[2].sample(t)}

    def _motion_event(self, t: float) -> Dict[str, Any]:
        ax, ay, az = (axis.sample(t) for axis in self._motion_axes)
        return {
            "acceleration": {"x": ax, "y": ay, "z": az},
            "accelerationIncludingGravity": {"x": ax, "y": ay, "z": round(az + 9.81, 4)},
            "rotationRate": {
                "alpha": round(self._rng.gauss(0.0, 5.0), 4),
                "beta": round(self._rng.gauss(0.0, 5.0), 4),
                "gamma": round(self._rng.gauss(0.0, 5.0), 4),
            },
            "interval": round(1000.0 / self.legacy_rate_hz, 3),
        }

    def _orientation_event(self, t: float) -> Dict[str, Any]:
        return {
            "alpha": round((t * 10.0) % 360.0, 4),
            "beta": round(self._rng.uniform(-5.0, 5.0), 4),
            "gamma": round(self._rng.uniform(-5.0, 5.0), 4),
        }


__all__ = [
    "SensorPlatform",
    "SensorHandle",
    "SimulatedPlatform",
    "SimulatedSensorHandle",
    "SensorUnavailableError",
    "NATIVE_FEATURES",
    "LEGACY_FEATURES",
    "MOTION_FEATURE",
    "ORIENTATION_FEATURE",
    "MOTION_EVENT",
    "ORIENTATION_EVENT",
]
