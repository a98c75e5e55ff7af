"""
Contract tests for the Motion Sensor Recorder HTTP API.

The application is served in-process through ``httpx.ASGITransport`` against
a manual sensor platform, so requests and sensor readings interleave
deterministically.

Test Categories:
- Status endpoints: status, capabilities, live window, sessions
- Recording endpoints: start/stop, activity switching, activity catalog
- Export endpoint: csv/txt/json downloads and error cases
- Configuration endpoint: retrieval, partial updates, validation
- Live feed: WebSocket initial data and ping

Usage:
    pytest tests/contract/ -m contract
"""
