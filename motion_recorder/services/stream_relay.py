"""Stream relay: forwards recorded events to an external server while recording."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Set

import httpx
import structlog

from ..models import RelayConnectionState, RelaySettings


logger = structlog.get_logger(__name__)


StateListener = Callable[[RelayConnectionState], None]


class StreamRelay(ABC):
    """
    Connect/disconnect/send interface of the relay transport.

    The pipeline only observes the connection state: a failed send moves the
    relay to ``error`` and nothing is retried until the user reconnects.
    """

    def __init__(self):
        self._state = RelayConnectionState.DISCONNECTED
        self._listeners: List[StateListener] = []
        self._pending: Set[asyncio.Task] = set()
        self.sent_count = 0
        self.failed_count = 0
        self.last_error: Optional[str] = None

    @property
    def state(self) -> RelayConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is RelayConnectionState.CONNECTED

    def add_state_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def remove_state_listener(self, listener: StateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _set_state(self, state: RelayConnectionState, error: Optional[str] = None) -> None:
        if error is not None:
            self.last_error = error
        if state is self._state:
            return
        previous, self._state = self._state, state
        logger.info("Relay state changed", previous=previous.value, state=state.value, error=error)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error("Relay state listener failed", error=str(e))

    @abstractmethod
    async def connect(self) -> bool:
        """Open the connection; returns True when connected."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection. Safe to call when not connected."""

    @abstractmethod
    async def send(self, record: Dict[str, Any]) -> bool:
        """Send one event record; returns False if it was not delivered."""

    def send_nowait(self, record: Dict[str, Any]) -> Optional[asyncio.Task]:
        """Fire-and-forget send scheduled on the running loop."""
        if not self.is_connected:
            return None
        task = asyncio.get_running_loop().create_task(self.send(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for scheduled sends to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


class HttpStreamRelay(StreamRelay):
    """
    Relay over a persistent HTTP client.

    Each event is POSTed as ``{"event": <event_name>, "data": <record>}`` to
    ``http://<host>:<port>/<event_name>``.
    """

    def __init__(self, settings: Optional[RelaySettings] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        super().__init__()
        self.settings = settings or RelaySettings()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def url(self) -> str:
        return self.settings.base_url

    def _create_client(self) -> httpx.AsyncClient:
        kwargs: Dict[str, Any] = {
            "base_url": self.settings.base_url,
            "timeout": self.settings.timeout_seconds,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    async def connect(self) -> bool:
        if self.is_connected:
            return True

        self._set_state(RelayConnectionState.CONNECTING)
        await self._close_client()
        client = self._create_client()

        try:
            # Any HTTP answer means the server is reachable.
            await client.get("/")
        except httpx.HTTPError as e:
            await client.aclose()
            logger.warning("Relay connection failed", url=self.url, error=str(e))
            self._set_state(RelayConnectionState.ERROR, error=str(e))
            return False

        self._client = client
        self._set_state(RelayConnectionState.CONNECTED)
        return True

    async def disconnect(self) -> None:
        await self._close_client()
        self._set_state(RelayConnectionState.DISCONNECTED)

    async def _close_client(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            try:
                await client.aclose()
            except Exception as e:
                logger.debug("Error closing relay client", error=str(e))

    async def send(self, record: Dict[str, Any]) -> bool:
        client = self._client
        if not self.is_connected or client is None:
            return False

        event_name = self.settings.event_name
        try:
            response = await client.post(f"/{event_name}", json={"event": event_name, "data": record})
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.failed_count += 1
            logger.warning("Relay send failed", url=self.url, error=str(e))
            await self._close_client()
            self._set_state(RelayConnectionState.ERROR, error=str(e))
            return False

        self.sent_count += 1
        return True

    async def reconfigure(self, settings: RelaySettings) -> None:
        """Apply new settings; an open connection is closed first."""
        if settings == self.settings:
            return
        if self._client is not None or self.is_connected:
            await self.disconnect()
        self.settings = settings
