"""Unit tests for the HTTP stream relay."""

import json

import httpx
import pytest

from motion_recorder.models import RelayConnectionState, RelaySettings
from motion_recorder.services import HttpStreamRelay


class RecordingServer:
    """httpx handler that records requests and can be switched to failing."""

    def __init__(self):
        self.requests = []
        self.fail_posts = False
        self.refuse = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.refuse:
            raise httpx.ConnectError("connection refused", request=request)
        self.requests.append(request)
        if request.method == "POST" and self.fail_posts:
            return httpx.Response(503)
        return httpx.Response(200, json={"ok": True})


@pytest.fixture
def server():
    return RecordingServer()


@pytest.fixture
def relay(server):
    settings = RelaySettings(host="relay.test", port=9000, event_name="sensor_data")
    return HttpStreamRelay(settings, transport=httpx.MockTransport(server))


class TestHttpStreamRelay:
    """Test relay connection state and sending."""

    @pytest.mark.asyncio
    async def test_connect(self, relay, server):
        """Test a reachable server connects the relay."""
        states = []
        relay.add_state_listener(states.append)

        assert await relay.connect() is True

        assert relay.state is RelayConnectionState.CONNECTED
        assert states == [RelayConnectionState.CONNECTING, RelayConnectionState.CONNECTED]
        assert str(server.requests[0].url) == "http://relay.test:9000/"
        await relay.disconnect()

    @pytest.mark.asyncio
    async def test_connect_failure(self, relay, server):
        """Test an unreachable server leaves the relay in error."""
        server.refuse = True

        assert await relay.connect() is False

        assert relay.state is RelayConnectionState.ERROR
        assert "refused" in relay.last_error

    @pytest.mark.asyncio
    async def test_send_payload(self, relay, server):
        """Test events are posted under the configured event name."""
        await relay.connect()
        record = {"timestamp": 1, "sensorType": "gyroscope", "x": 1.0, "y": 2.0, "z": 3.0}

        assert await relay.send(record) is True

        post = server.requests[-1]
        assert post.method == "POST"
        assert post.url.path == "/sensor_data"
        assert json.loads(post.content) == {"event": "sensor_data", "data": record}
        assert relay.sent_count == 1
        await relay.disconnect()

    @pytest.mark.asyncio
    async def test_send_failure_is_not_retried(self, relay, server):
        """Test a failed send moves the relay to error and stops sending."""
        await relay.connect()
        server.fail_posts = True

        assert await relay.send({"timestamp": 1}) is False
        posts_after_failure = len([r for r in server.requests if r.method == "POST"])
        assert await relay.send({"timestamp": 2}) is False

        assert relay.state is RelayConnectionState.ERROR
        assert relay.failed_count == 1
        assert len([r for r in server.requests if r.method == "POST"]) == posts_after_failure == 1

    @pytest.mark.asyncio
    async def test_send_when_disconnected(self, relay, server):
        """Test nothing is sent before connecting."""
        assert await relay.send({"timestamp": 1}) is False
        assert relay.send_nowait({"timestamp": 1}) is None
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_send_nowait_and_drain(self, relay, server):
        """Test fire-and-forget sends complete on drain."""
        await relay.connect()

        relay.send_nowait({"timestamp": 1})
        relay.send_nowait({"timestamp": 2})
        await relay.drain()

        assert relay.sent_count == 2
        await relay.disconnect()

    @pytest.mark.asyncio
    async def test_reconnect_after_error(self, relay, server):
        """Test the user can reconnect after a failure."""
        await relay.connect()
        server.fail_posts = True
        await relay.send({"timestamp": 1})
        server.fail_posts = False

        assert await relay.connect() is True
        assert await relay.send({"timestamp": 2}) is True
        await relay.disconnect()

    @pytest.mark.asyncio
    async def test_disconnect(self, relay):
        """Test disconnecting is idempotent."""
        await relay.connect()

        await relay.disconnect()
        await relay.disconnect()

        assert relay.state is RelayConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_reconfigure_closes_connection(self, relay):
        """Test new settings drop the current connection."""
        await relay.connect()

        await relay.reconfigure(RelaySettings(host="other.test", port=9001))

        assert relay.state is RelayConnectionState.DISCONNECTED
        assert relay.url == "http://other.test:9001"

    @pytest.mark.asyncio
    async def test_listener_failure_is_contained(self, relay):
        """Test a failing state listener does not break the relay."""
        def broken(state):
            raise RuntimeError("ui gone")

        relay.add_state_listener(broken)

        assert await relay.connect() is True
        relay.remove_state_listener(broken)
        await relay.disconnect()
