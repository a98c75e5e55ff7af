"""LiveWindow service: bounded buffer of the most recent events for live display."""

from collections import deque
from typing import Any, Deque, Dict, List, Optional

import structlog

from ..models import CanonicalEvent


logger = structlog.get_logger(__name__)


# Keys of a chart point; absent payload fields are plotted as 0.
CHART_FIELDS = ("x", "y", "z", "alpha", "beta", "gamma")


class LiveWindow:
    """
    Rolling window of the latest canonical events.

    Holds at most ``capacity`` events; pushing into a full window evicts the
    oldest one. The window never affects what is recorded: it stores its own
    copies and is fed whether or not a session is open.
    """

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("LiveWindow capacity must be at least 1")
        self.capacity = capacity
        self._events: Deque[CanonicalEvent] = deque(maxlen=capacity)
        self.total_pushed = 0

    def push(self, event: CanonicalEvent) -> None:
        """Add an event, evicting the oldest one if the window is full."""
        self._events.append(event.model_copy())
        self.total_pushed += 1

    def snapshot(self, k: Optional[int] = None) -> List[CanonicalEvent]:
        """
        Most recent events, oldest first.

        Args:
            k: Maximum number of events to return; all retained events if None

        Returns:
            List[CanonicalEvent]: the last ``min(k, len(window))`` events
        """
        events = list(self._events)
        if k is None:
            return events
        if k <= 0:
            return []
        return events[-k:]

    def chart_points(self, k: int = 50) -> List[Dict[str, Any]]:
        """
        Latest ``k`` events flattened for plotting.

        Each point is ``{time, x, y, z, alpha, beta, gamma}`` where ``time`` is
        the position in the returned window. Fields an event does not carry are
        plotted as 0; these points are for display only.
        """
        points = []
        for index, event in enumerate(self.snapshot(k)):
            point: Dict[str, Any] = {"time": index}
            for name in CHART_FIELDS:
                point[name] = getattr(event, name, 0)
            points.append(point)
        return points

    def resize(self, capacity: int) -> None:
        """Change the capacity, keeping the newest events that still fit."""
        if capacity < 1:
            raise ValueError("LiveWindow capacity must be at least 1")
        if capacity == self.capacity:
            return
        self._events = deque(self._events, maxlen=capacity)
        logger.debug("Live window resized", old_capacity=self.capacity, new_capacity=capacity)
        self.capacity = capacity

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)
