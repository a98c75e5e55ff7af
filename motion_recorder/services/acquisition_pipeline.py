"""AcquisitionPipeline service: fans sensor deliveries into one ordered consumer."""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Union

import structlog

from ..lib.clock import Clock, epoch_millis
from ..lib.sensors import (
    DeliveryKind,
    SensorCapabilityRegistry,
    SensorHub,
    SensorPlatform,
    SimulatedPlatform,
    normalize_delivery,
)
from ..models import (
    ActivitySwitchMarker,
    CanonicalEvent,
    ExportFormat,
    PipelineStatus,
    RecorderConfiguration,
    Session,
    SensorType,
)
from .exporter import ExportResult, export_archive
from .live_window import LiveWindow
from .session_archive import SessionArchive
from .session_recorder import SessionRecorder
from .stream_relay import HttpStreamRelay, StreamRelay


logger = structlog.get_logger(__name__)


EventListener = Callable[[CanonicalEvent], None]


class AcquisitionPipeline:
    """
    Owns every acquisition component and the single consumer that mutates them.

    Sensor sources only enqueue ``(kind, raw)`` deliveries. The consumer task
    takes them off the queue one at a time, normalizes them with the activity
    current at that moment, pushes a copy to the live window, offers the event
    to the recorder and, once the recorder is updated, hands it to the relay.
    Recorder transitions run on the same event loop, so they are totally
    ordered against consumed readings.
    """

    def __init__(self,
                 configuration: Optional[RecorderConfiguration] = None,
                 platform: Optional[SensorPlatform] = None,
                 clock: Clock = epoch_millis,
                 relay: Optional[StreamRelay] = None):
        self.configuration = configuration or RecorderConfiguration()
        self.platform = platform or SimulatedPlatform()
        self.clock = clock

        self.registry = SensorCapabilityRegistry(self.platform)
        self.hub = SensorHub(self.platform, self.registry)
        self.live_window = LiveWindow(self.configuration.live_window_capacity)
        self.archive = SessionArchive()
        self.recorder = SessionRecorder(self.archive, clock, self.configuration.sampling_rate)
        self.recorder.add_stop_hook(self.hub.stop)
        self.relay = relay or HttpStreamRelay(self.configuration.relay)

        # Consumer state
        self.is_running = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._consumer_task: Optional[asyncio.Task] = None

        # Live feed subscribers (e.g. WebSocket clients)
        self._event_listeners: List[EventListener] = []

        # Performance tracking
        self.processed_count = 0
        self.error_count = 0
        self.permissions: Dict[str, bool] = {}

    # Lifecycle

    async def start(self) -> None:
        """Start the consumer task on the running loop."""
        if self.is_running:
            logger.warning("Acquisition pipeline already running")
            return

        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._consumer_task = self._loop.create_task(self._consume_loop())
        self.is_running = True

        logger.info("Acquisition pipeline started",
                   sampling_rate=self.configuration.sampling_rate,
                   selected_sensors=[s.value for s in self.configuration.selected_sensors])

        if self.configuration.relay.auto_connect:
            await self.connect_relay()

    async def shutdown(self) -> None:
        """Stop recording, sensors, the consumer and the relay."""
        if not self.is_running:
            return

        logger.info("Stopping acquisition pipeline")
        self.stop_recording()
        self.hub.stop()
        await self.flush()

        self.is_running = False
        if self._consumer_task:
            self._consumer_task.cancel()
            try:
                await self._consumer_task
            except asyncio.CancelledError:
                pass
            self._consumer_task = None

        await self.relay.drain()
        await self.relay.disconnect()
        logger.info("Acquisition pipeline stopped", processed=self.processed_count)

    # Delivery

    def deliver(self, kind: DeliveryKind, raw: Any) -> None:
        """
        Hand one raw reading to the consumer. Safe to call from any thread.

        Readings delivered before ``start()`` or after ``shutdown()`` are ignored.
        """
        if not self.is_running or self._queue is None or self._loop is None:
            return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._queue.put_nowait((kind, raw))
        elif not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._queue.put_nowait, (kind, raw))

    async def flush(self) -> None:
        """Wait until every queued delivery has been consumed."""
        if self._queue is not None and self._consumer_task is not None and not self._consumer_task.done():
            await self._queue.join()

    async def _consume_loop(self) -> None:
        """Single consumer: the only code path that mutates window, session and archive."""
        while True:
            kind, raw = await self._queue.get()
            try:
                self._process(kind, raw)
            except Exception as e:
                self.error_count += 1
                logger.error("Error processing sensor reading", kind=str(kind), error=str(e))
            finally:
                self._queue.task_done()

    def _process(self, kind: DeliveryKind, raw: Any) -> List[CanonicalEvent]:
        events = normalize_delivery(kind, raw, self.recorder.current_activity, self.clock())
        for event in events:
            self.live_window.push(event)
            recorded = self.recorder.on_event(event)
            self.processed_count += 1

            # Relay and listeners run only after the authoritative mutation.
            if recorded and self.relay.is_connected:
                self.relay.send_nowait(event.to_record())
            self._notify_listeners(event)
        return events

    def add_event_listener(self, listener: EventListener) -> None:
        """Subscribe to every consumed canonical event."""
        self._event_listeners.append(listener)

    def remove_event_listener(self, listener: EventListener) -> None:
        if listener in self._event_listeners:
            self._event_listeners.remove(listener)

    def _notify_listeners(self, event: CanonicalEvent) -> None:
        for listener in list(self._event_listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error("Event listener failed", error=str(e))

    # Capabilities

    def detect_capabilities(self) -> Dict[SensorType, bool]:
        return self.registry.detect()

    # Recording

    async def start_recording(self, activity: Optional[str] = None) -> None:
        """
        Request permissions, open a session and start the selected sensors.

        Raises:
            PreconditionError: If already recording or no activity is chosen
        """
        label, rate = self.recorder.validate_start(activity, self.configuration.sampling_rate)

        self.permissions = await self.hub.request_permissions()

        # Readings queued before this point belong to no session; consume them while idle.
        await asyncio.sleep(0)
        await self.flush()

        self.recorder.start(label, rate)
        sources = self.hub.start(self.configuration.selected_sensors, rate, self.deliver)
        if not sources:
            logger.warning("Recording without any running sensor",
                           selected_sensors=[s.value for s in self.configuration.selected_sensors])

    def stop_recording(self) -> Optional[Session]:
        """Seal the open session (if any); sensors are stopped by the recorder."""
        return self.recorder.stop()

    def switch_activity(self, activity: str) -> Optional[ActivitySwitchMarker]:
        """Change the current label; returns the marker recorded, if any."""
        return self.recorder.switch_activity(activity)

    @property
    def activities(self) -> List[str]:
        return list(self.configuration.activities)

    def add_activity(self, name: str) -> bool:
        """Add a label to the activity catalog; blanks and duplicates are ignored."""
        label = (name or "").strip()
        if not label or label in self.configuration.activities:
            return False
        self.configuration.activities = self.configuration.activities + [label]
        logger.info("Activity added", activity=label)
        return True

    # Export and relay

    def export_data(self, export_format: Optional[Union[str, ExportFormat]] = None) -> ExportResult:
        """
        Export the archive.

        Raises:
            EmptyArchiveError: If no session has been recorded
            UnsupportedExportFormatError: If the format is unknown
        """
        return export_archive(self.archive, export_format or self.configuration.export_format)

    async def connect_relay(self) -> bool:
        return await self.relay.connect()

    async def disconnect_relay(self) -> None:
        await self.relay.disconnect()

    # Configuration and status

    async def apply_configuration(self, configuration: RecorderConfiguration) -> None:
        """
        Switch to a new configuration.

        The open session keeps the sampling rate and sensors it started with;
        the new values apply from the next recording.
        """
        old_rate = self.configuration.sampling_rate
        self.configuration = configuration
        self.recorder.sampling_rate = configuration.sampling_rate
        self.live_window.resize(configuration.live_window_capacity)
        if isinstance(self.relay, HttpStreamRelay):
            await self.relay.reconfigure(configuration.relay)

        logger.info("Pipeline configuration updated",
                   old_sampling_rate=old_rate,
                   new_sampling_rate=configuration.sampling_rate,
                   recording=self.recorder.is_recording)

    def live_snapshot(self, k: Optional[int] = None) -> List[CanonicalEvent]:
        return self.live_window.snapshot(k)

    def chart_points(self, k: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.live_window.chart_points(k if k is not None else self.configuration.chart_window)

    def session_summaries(self):
        return self.archive.summaries()

    def status(self) -> PipelineStatus:
        recording = self.recorder.is_recording
        return PipelineStatus(
            is_recording=recording,
            current_activity=self.recorder.current_activity,
            sampling_rate=self.recorder.session_sampling_rate or self.configuration.sampling_rate,
            capabilities=self.detect_capabilities(),
            active_sensors=self.hub.active_sensors,
            open_session_entries=self.recorder.open_entry_count,
            session_started_at=self.recorder.started_at,
            live_window_size=len(self.live_window),
            archived_sessions=self.archive.count(),
            relay_state=self.relay.state,
            dropped_events=self.recorder.dropped_events,
        )

    def get_stats(self) -> Dict[str, Any]:
        """Pipeline performance statistics."""
        return {
            "is_running": self.is_running,
            "processed_count": self.processed_count,
            "error_count": self.error_count,
            "queued": self._queue.qsize() if self._queue is not None else 0,
            "relay_sent": self.relay.sent_count,
            "relay_failed": self.relay.failed_count,
        }
