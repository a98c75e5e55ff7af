"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytest

# Add the project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from motion_recorder.lib.sensors import (  # noqa: E402
    LEGACY_FEATURES,
    MOTION_EVENT,
    ORIENTATION_EVENT,
    SensorHandle,
    SensorPlatform,
    SensorUnavailableError,
)
from motion_recorder.lib.sensors.platform import ALL_FEATURES  # noqa: E402


START_MS = 1_700_000_000_000


class FakeClock:
    """Deterministic epoch-millisecond clock; every reading advances by ``step``."""

    def __init__(self, start: int = START_MS, step: int = 10):
        self.now = start
        self.step = step

    def __call__(self) -> int:
        value = self.now
        self.now += self.step
        return value

    def advance(self, ms: int) -> None:
        self.now += ms


class ManualHandle(SensorHandle):
    """Sensor handle whose readings are pushed by the test."""

    def __init__(self, platform: "ManualPlatform", feature: str, on_reading: Callable[[Any], None]):
        self.platform = platform
        self.feature = feature
        self.on_reading = on_reading
        self.started = False
        self.stop_calls = 0

    def start(self) -> None:
        if self.feature in self.platform.fail_start:
            raise SensorUnavailableError(f"{self.feature} vanished after detection")
        self.started = True

    def stop(self) -> None:
        self.stop_calls += 1
        self.started = False


class ManualPlatform(SensorPlatform):
    """Sensor platform driven entirely by the test: nothing is delivered unless emitted."""

    def __init__(self,
                 features: Optional[Iterable[str]] = None,
                 permissions: Optional[Dict[str, Any]] = None,
                 fail_start: Optional[Iterable[str]] = None):
        self.features = set(ALL_FEATURES if features is None else features)
        self.permissions = dict(permissions or {})
        self.fail_start = set(fail_start or ())
        self.handles: Dict[str, ManualHandle] = {}
        self.listeners: Dict[str, List[Callable[[Any], None]]] = {MOTION_EVENT: [], ORIENTATION_EVENT: []}
        self.permission_requests: List[str] = []

    def feature_flags(self) -> Dict[str, bool]:
        return {feature: feature in self.features for feature in ALL_FEATURES}

    async def request_permission(self, event_name: str) -> bool:
        self.permission_requests.append(event_name)
        result = self.permissions.get(event_name, True)
        if isinstance(result, Exception):
            raise result
        return result

    def open_sensor(self, feature, frequency, on_reading):
        if feature not in self.features:
            raise SensorUnavailableError(feature)
        handle = ManualHandle(self, feature, on_reading)
        self.handles[feature] = handle
        return handle

    def add_event_listener(self, event_name, callback):
        if LEGACY_FEATURES[event_name] not in self.features:
            raise SensorUnavailableError(event_name)
        self.listeners[event_name].append(callback)

    def remove_event_listener(self, event_name, callback):
        self.listeners[event_name] = [cb for cb in self.listeners[event_name] if cb != callback]

    def emit(self, feature: str, raw: Any) -> None:
        """Deliver a fine-grained reading if the sensor is running."""
        handle = self.handles.get(feature)
        if handle is not None and handle.started:
            handle.on_reading(raw)

    def emit_event(self, event_name: str, raw: Any) -> None:
        """Deliver a coarse event to every registered listener."""
        for callback in list(self.listeners[event_name]):
            callback(raw)


@pytest.fixture
def clock():
    """Deterministic clock starting at a fixed epoch instant."""
    return FakeClock()


@pytest.fixture
def platform():
    """Manual platform reporting every feature as available."""
    return ManualPlatform()


@pytest.fixture
def platform_factory():
    """Build manual platforms with custom features, permissions or start failures."""
    return ManualPlatform
