"""Sensor capability detection."""

import logging
from typing import Dict

from ...models import SELECTABLE_SENSORS, SensorType
from .platform import (
    MOTION_FEATURE,
    NATIVE_FEATURES,
    ORIENTATION_FEATURE,
    SensorPlatform,
)

logger = logging.getLogger(__name__)


# Legacy streams that can stand in for a missing fine-grained sensor.
LEGACY_FALLBACK_FEATURES: Dict[SensorType, str] = {
    SensorType.ACCELEROMETER: MOTION_FEATURE,
    SensorType.GYROSCOPE: ORIENTATION_FEATURE,
}


class SensorCapabilityRegistry:
    """
    Reports which sensor types the platform can provide.

    Detection is a pure query of the platform's feature flags: it has no side
    effects, can be repeated at any time, and a missing or unreadable feature
    is reported as ``False`` rather than raised.
    """

    def __init__(self, platform: SensorPlatform):
        self.platform = platform

    def _flags(self) -> Dict[str, bool]:
        try:
            return dict(self.platform.feature_flags())
        except Exception as e:
            logger.warning(f"Feature query failed, reporting no sensors: {e}")
            return {}

    def detect(self) -> Dict[SensorType, bool]:
        """Capability map for every selectable sensor type."""
        flags = self._flags()
        support = {
            sensor: bool(flags.get(NATIVE_FEATURES[sensor], False))
            for sensor in SELECTABLE_SENSORS
        }

        # Older runtimes only expose the coarse motion/orientation events.
        for sensor, legacy_feature in LEGACY_FALLBACK_FEATURES.items():
            if not support[sensor]:
                support[sensor] = bool(flags.get(legacy_feature, False))

        return support

    def native_available(self, sensor: SensorType) -> bool:
        """True if the fine-grained sensor for ``sensor`` exists."""
        feature = NATIVE_FEATURES.get(sensor)
        return feature is not None and bool(self._flags().get(feature, False))

    def legacy_available(self, sensor: SensorType) -> bool:
        """True if a coarse event stream can stand in for ``sensor``."""
        feature = LEGACY_FALLBACK_FEATURES.get(sensor)
        return feature is not None and bool(self._flags().get(feature, False))
