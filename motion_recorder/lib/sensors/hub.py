"""SensorHub: starts the selected sensors with fallback and stops them as a group."""

import logging
from typing import Dict, Iterable, List, Optional

from ...models import SensorType
from .capability import SensorCapabilityRegistry
from .platform import MOTION_EVENT, ORIENTATION_EVENT, SensorPlatform
from .sources import (
    Deliver,
    LegacyMotionSource,
    LegacyOrientationSource,
    NativeSensorSource,
    SensorSource,
)

logger = logging.getLogger(__name__)


LEGACY_SOURCE_CLASSES = {
    SensorType.ACCELEROMETER: LegacyMotionSource,
    SensorType.GYROSCOPE: LegacyOrientationSource,
}


class SensorHub:
    """
    Owns the sensor sources of one recording.

    For every selected sensor the fine-grained source is tried first. If it is
    not available, or fails to start even though it was detected, the coarse
    legacy stream standing in for it is used instead; sensors with neither
    are simply not started.
    """

    def __init__(self, platform: SensorPlatform, registry: Optional[SensorCapabilityRegistry] = None):
        self.platform = platform
        self.registry = registry or SensorCapabilityRegistry(platform)
        self._sources: List[SensorSource] = []

    @property
    def sources(self) -> List[SensorSource]:
        return list(self._sources)

    @property
    def active_sensors(self) -> List[str]:
        """Delivery kinds of the running sources."""
        return [source.kind.value for source in self._sources if source.is_active]

    async def request_permissions(self) -> Dict[str, bool]:
        """Best-effort permission requests; failures are logged and reported as False."""
        results: Dict[str, bool] = {}
        for event_name in (MOTION_EVENT, ORIENTATION_EVENT):
            try:
                results[event_name] = bool(await self.platform.request_permission(event_name))
            except Exception as e:
                logger.warning(f"Permission request for {event_name} failed: {e}")
                results[event_name] = False
        return results

    def start(self, selected: Iterable[SensorType], frequency: float, deliver: Deliver) -> List[SensorSource]:
        """
        Start sources for the selected sensors.

        Args:
            selected: Sensor types chosen by the user
            frequency: Requested sampling frequency in Hz
            deliver: Callback receiving ``(kind, raw)`` for every reading

        Returns:
            List[SensorSource]: the sources that are now running
        """
        self.stop()

        for sensor in selected:
            if self.registry.native_available(sensor):
                source = NativeSensorSource(sensor, self.platform, frequency, deliver)
                if source.start():
                    self._sources.append(source)
                    continue

            fallback = self._start_fallback(sensor, frequency, deliver)
            if fallback is None:
                logger.info(f"Sensor {sensor.value} not started: no usable stream")

        logger.info(f"Sensor hub running {len(self._sources)} sources: {self.active_sensors}")
        return list(self._sources)

    def _start_fallback(self, sensor: SensorType, frequency: float, deliver: Deliver) -> Optional[SensorSource]:
        source_class = LEGACY_SOURCE_CLASSES.get(sensor)
        if source_class is None or not self.registry.legacy_available(sensor):
            return None

        # One listener per coarse stream is enough.
        for running in self._sources:
            if isinstance(running, source_class):
                return running

        source = source_class(self.platform, frequency, deliver)
        if not source.start():
            return None

        logger.info(f"Using {source} in place of {sensor.value}")
        self._sources.append(source)
        return source

    def stop(self) -> None:
        """Stop every source. Safe to call when nothing is running."""
        sources, self._sources = self._sources, []
        for source in sources:
            source.stop()
