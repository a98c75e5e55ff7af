"""Fixtures serving the API in-process."""

import httpx
import pytest_asyncio

from motion_recorder.lib.api_server import create_app
from motion_recorder.models import RecorderConfiguration
from motion_recorder.services import AcquisitionPipeline


@pytest_asyncio.fixture
async def pipeline(clock, platform):
    """Started pipeline recording the accelerometer from the manual platform."""
    pipeline = AcquisitionPipeline(
        RecorderConfiguration(selected_sensors=["accelerometer"]),
        platform,
        clock=clock
    )
    # ASGITransport does not run the lifespan
    await pipeline.start()
    yield pipeline
    await pipeline.shutdown()


@pytest_asyncio.fixture
async def client(pipeline):
    """HTTP client bound to the application."""
    app = create_app(pipeline)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
