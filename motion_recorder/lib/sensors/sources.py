"""
Sensor sources.

A source wraps one sensor stream and hands every raw reading to a delivery
callback together with its delivery kind. Sources are single-use: once
stopped they cannot be restarted, a new instance has to be created.

Variants:
    NativeSensorSource: one fine-grained sensor at a requested frequency
    LegacyMotionSource: coarse motion events (acceleration, gravity, rotation rate)
    LegacyOrientationSource: coarse orientation events (alpha, beta, gamma)

Callers never branch on the variant: all of them produce raw readings that
``normalize_delivery`` turns into canonical events.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Optional

from ...models import SensorType
from .normalizer import DeliveryKind, LegacyStream
from .platform import (
    MOTION_EVENT,
    NATIVE_FEATURES,
    ORIENTATION_EVENT,
    SensorHandle,
    SensorPlatform,
)

logger = logging.getLogger(__name__)


Deliver = Callable[[DeliveryKind, Any], None]


class SourceState(Enum):
    """Lifecycle of a sensor source."""
    CREATED = "created"
    ACTIVE = "active"
    FAILED = "failed"
    STOPPED = "stopped"


class SensorSource(ABC):
    """Base class for all sensor sources."""

    kind: DeliveryKind

    def __init__(self, platform: SensorPlatform, frequency: float, deliver: Deliver):
        self.platform = platform
        self.frequency = frequency
        self._deliver = deliver
        self._state = SourceState.CREATED

    @property
    def state(self) -> SourceState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state is SourceState.ACTIVE

    def start(self) -> bool:
        """
        Begin producing readings.

        Returns:
            bool: True if the source is producing readings. An unavailable
            sensor is not an error: the source is marked failed and False
            is returned so the caller can fall back.
        """
        if self._state is not SourceState.CREATED:
            logger.warning(f"{self} cannot be restarted (state: {self._state.value})")
            return self.is_active

        try:
            self._open()
        except Exception as e:
            logger.warning(f"{self} unavailable, not started: {e}")
            self._state = SourceState.FAILED
            return False

        self._state = SourceState.ACTIVE
        logger.info(f"{self} started")
        return True

    def stop(self) -> None:
        """Stop producing readings. Safe to call any number of times."""
        was_active = self._state is SourceState.ACTIVE
        if self._state in (SourceState.CREATED, SourceState.ACTIVE):
            self._state = SourceState.STOPPED

        if not was_active:
            return

        try:
            self._close()
        except Exception as e:
            logger.debug(f"Error while stopping {self}: {e}")
        logger.info(f"{self} stopped")

    def _emit(self, raw: Any) -> None:
        # Readings already scheduled by the platform may still arrive after stop().
        if self._state is SourceState.ACTIVE:
            self._deliver(self.kind, raw)

    @abstractmethod
    def _open(self) -> None:
        """Register with the platform; raise if the stream is unavailable."""

    @abstractmethod
    def _close(self) -> None:
        """Release everything registered in ``_open``."""

    def __str__(self) -> str:
        return f"{type(self).__name__}({self.kind.value})"


class NativeSensorSource(SensorSource):
    """Fine-grained sensor sampled at the requested frequency."""

    def __init__(self, sensor_type: SensorType, platform: SensorPlatform, frequency: float, deliver: Deliver):
        if sensor_type not in NATIVE_FEATURES:
            raise ValueError(f"{sensor_type.value} has no fine-grained sensor")
        super().__init__(platform, frequency, deliver)
        self.kind = sensor_type
        self.feature = NATIVE_FEATURES[sensor_type]
        self._handle: Optional[SensorHandle] = None

    def _open(self) -> None:
        handle = self.platform.open_sensor(self.feature, self.frequency, self._emit)
        try:
            handle.start()
        except Exception:
            handle.stop()
            raise
        self._handle = handle

    def _close(self) -> None:
        if self._handle is not None:
            self._handle.stop()
            self._handle = None


class _LegacySource(SensorSource):
    """Listener on one of the coarse platform event streams."""

    event_name: str

    def _open(self) -> None:
        self.platform.add_event_listener(self.event_name, self._emit)

    def _close(self) -> None:
        self.platform.remove_event_listener(self.event_name, self._emit)


class LegacyMotionSource(_LegacySource):
    """Coarse motion events; each may split into up to three canonical events."""

    kind = LegacyStream.MOTION
    event_name = MOTION_EVENT


class LegacyOrientationSource(_LegacySource):
    """Coarse orientation events, one canonical ``orientation`` event each."""

    kind = LegacyStream.ORIENTATION
    event_name = ORIENTATION_EVENT


__all__ = [
    "Deliver",
    "SourceState",
    "SensorSource",
    "NativeSensorSource",
    "LegacyMotionSource",
    "LegacyOrientationSource",
]
