"""FastAPI server: HTTP control surface and live feed for the motion recorder."""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from fastapi import FastAPI, HTTPException, Query, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field

from ...models import ExportFormat, RecorderConfiguration, SensorType
from ...services import (
    AcquisitionPipeline,
    EmptyArchiveError,
    PreconditionError,
    UnsupportedExportFormatError,
)
from ..config import ConfigManager, ConfigurationError
from .websocket import ConnectionManager, websocket_endpoint

logger = structlog.get_logger(__name__)


class StartRecordingRequest(BaseModel):
    """Request model for starting a recording."""

    activity: Optional[str] = Field(None, description="Activity label; the current label if omitted")


class ActivityRequest(BaseModel):
    """Request model for switching the current activity."""

    activity: str = Field(min_length=1)


class AddActivityRequest(BaseModel):
    """Request model for adding an activity to the catalog."""

    name: str = Field(min_length=1, max_length=100)


class ConfigurationUpdateRequest(BaseModel):
    """Request model for configuration updates; omitted fields are unchanged."""

    model_config = {"extra": "forbid"}

    sampling_rate: Optional[int] = Field(None, ge=1, le=100)
    selected_sensors: Optional[List[SensorType]] = None
    export_format: Optional[ExportFormat] = None
    live_window_capacity: Optional[int] = Field(None, ge=1, le=10000)
    chart_window: Optional[int] = Field(None, ge=1, le=10000)
    relay_host: Optional[str] = Field(None, min_length=1)
    relay_port: Optional[int] = Field(None, ge=1, le=65535)
    relay_event_name: Optional[str] = None
    enable_debug_logging: Optional[bool] = None


class RecordingResponse(BaseModel):
    """Response model for recording transitions."""

    is_recording: bool
    current_activity: str
    archived_sessions: int
    session: Optional[Dict[str, Any]] = None


# Global pipeline reference used by the uvicorn factory
_pipeline: Optional[AcquisitionPipeline] = None
_config_manager: Optional[ConfigManager] = None


def set_pipeline(pipeline: AcquisitionPipeline, config_manager: Optional[ConfigManager] = None) -> None:
    """Set the pipeline served by ``create_app()``."""
    global _pipeline, _config_manager
    _pipeline = pipeline
    _config_manager = config_manager


def get_pipeline() -> AcquisitionPipeline:
    """Get the served pipeline, creating a default one if none was set."""
    global _pipeline
    if _pipeline is None:
        _pipeline = AcquisitionPipeline()
    return _pipeline


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("API server starting up")

    pipeline: AcquisitionPipeline = app.state.pipeline
    await pipeline.start()
    app.state.connection_manager.start_background_tasks()

    yield

    await app.state.connection_manager.stop_background_tasks()
    await pipeline.shutdown()
    logger.info("API server shutting down")


def apply_update(config: RecorderConfiguration, update: ConfigurationUpdateRequest) -> RecorderConfiguration:
    """Build the configuration resulting from a partial update."""
    data = config.export_dict()
    changes = update.model_dump(exclude_none=True, mode="json")

    relay_fields = {"relay_host": "host", "relay_port": "port", "relay_event_name": "event_name"}
    for field_name, relay_key in relay_fields.items():
        if field_name in changes:
            data["relay"][relay_key] = changes.pop(field_name)

    data.update(changes)
    return RecorderConfiguration(**data)


def create_app(pipeline: Optional[AcquisitionPipeline] = None,
               config_manager: Optional[ConfigManager] = None) -> FastAPI:
    """Create FastAPI application with all routes."""
    pipeline = pipeline or get_pipeline()
    config_manager = config_manager or _config_manager

    app = FastAPI(
        title="Motion Sensor Recorder API",
        description="HTTP API for recording, labelling and exporting motion sensor sessions",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.pipeline = pipeline
    app.state.config_manager = config_manager
    app.state.connection_manager = ConnectionManager(pipeline)
    pipeline.add_event_listener(app.state.connection_manager.on_event)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT"],
        allow_headers=["*"],
    )

    @app.get("/status")
    async def get_status():
        """Recording state, capabilities, relay state and counters."""
        return pipeline.status().model_dump(mode="json")

    @app.get("/capabilities")
    async def get_capabilities():
        """Capability map of the selectable sensor types."""
        capabilities = pipeline.detect_capabilities()
        return {
            "capabilities": {sensor.value: supported for sensor, supported in capabilities.items()},
            "supported": [sensor.value for sensor, supported in capabilities.items() if supported],
            "selected": [sensor.value for sensor in pipeline.configuration.selected_sensors],
        }

    @app.get("/live")
    async def get_live(limit: Optional[int] = Query(None, ge=1, le=10000)):
        """Most recent events of the live window, oldest first."""
        events = pipeline.live_snapshot(limit)
        return {
            "count": len(events),
            "capacity": pipeline.live_window.capacity,
            "events": [event.to_record() for event in events],
        }

    @app.get("/live/chart")
    async def get_live_chart(limit: Optional[int] = Query(None, ge=1, le=10000)):
        """Live window flattened into chart points."""
        return {"points": pipeline.chart_points(limit)}

    @app.get("/sessions")
    async def get_sessions():
        """Summaries of every archived session."""
        summaries = pipeline.session_summaries()
        return {
            "count": len(summaries),
            "total_entries": pipeline.archive.total_entries(),
            "sessions": [summary.model_dump(mode="json", by_alias=True) for summary in summaries],
        }

    @app.get("/activities")
    async def get_activities():
        return {
            "activities": pipeline.activities,
            "current_activity": pipeline.recorder.current_activity,
        }

    @app.post("/activities")
    async def add_activity(request: AddActivityRequest):
        """Add a label to the activity catalog."""
        added = pipeline.add_activity(request.name)
        return {"added": added, "activities": pipeline.activities}

    @app.post("/recording/start", response_model=RecordingResponse)
    async def start_recording(request: Optional[StartRecordingRequest] = None):
        """Open a session and start the selected sensors."""
        activity = request.activity if request else None
        try:
            await pipeline.start_recording(activity)
        except PreconditionError as e:
            status_code = 409 if pipeline.recorder.is_recording else 422
            logger.warning("Recording start rejected", reason=str(e))
            raise HTTPException(status_code=status_code, detail=str(e))

        return RecordingResponse(
            is_recording=True,
            current_activity=pipeline.recorder.current_activity,
            archived_sessions=pipeline.archive.count(),
        )

    @app.post("/recording/stop", response_model=RecordingResponse)
    async def stop_recording():
        """Seal the open session; a no-op when idle."""
        session = pipeline.stop_recording()
        return RecordingResponse(
            is_recording=False,
            current_activity=pipeline.recorder.current_activity,
            archived_sessions=pipeline.archive.count(),
            session=session.summary().model_dump(mode="json", by_alias=True) if session else None,
        )

    @app.post("/activity")
    async def switch_activity(request: ActivityRequest):
        """Change the current activity; marks the switch in an open session."""
        marker = pipeline.switch_activity(request.activity)
        return {
            "current_activity": pipeline.recorder.current_activity,
            "is_recording": pipeline.recorder.is_recording,
            "marker": marker.to_record() if marker else None,
        }

    @app.get("/export")
    async def export_data(export_format: Optional[str] = Query(None, alias="format")):
        """Download the archive as csv, txt or json."""
        try:
            result = pipeline.export_data(export_format)
        except EmptyArchiveError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except UnsupportedExportFormatError as e:
            raise HTTPException(status_code=400, detail=str(e))

        return Response(
            content=result.content,
            media_type=result.media_type,
            headers={"Content-Disposition": f"attachment; filename={result.filename}"}
        )

    @app.post("/relay/connect")
    async def connect_relay():
        """Connect the stream relay; failures are reported in the state."""
        connected = await pipeline.connect_relay()
        return {
            "connected": connected,
            "state": pipeline.relay.state.value,
            "error": pipeline.relay.last_error if not connected else None,
        }

    @app.post("/relay/disconnect")
    async def disconnect_relay():
        await pipeline.disconnect_relay()
        return {"connected": False, "state": pipeline.relay.state.value}

    @app.get("/config")
    async def get_config():
        """Current recorder configuration."""
        return pipeline.configuration.model_dump(mode="json")

    @app.put("/config")
    async def update_config(update_request: ConfigurationUpdateRequest, request: Request):
        """Update the configuration; applies from the next recording."""
        try:
            updated_config = apply_update(pipeline.configuration, update_request)
        except ValueError as e:
            logger.error("Configuration validation error", error=str(e))
            raise HTTPException(status_code=400, detail=f"Invalid configuration: {e}")

        await pipeline.apply_configuration(updated_config)

        manager: Optional[ConfigManager] = request.app.state.config_manager
        if manager is not None:
            try:
                manager.save_config(updated_config)
            except ConfigurationError as e:
                logger.error("Error saving configuration", error=str(e))
                raise HTTPException(status_code=500, detail=f"Configuration applied but not saved: {e}")

        logger.info("Configuration updated successfully")
        return {
            "message": "Configuration updated successfully",
            "configuration": updated_config.model_dump(mode="json"),
        }

    @app.websocket("/ws")
    async def websocket_route(websocket: WebSocket, client_id: Optional[str] = None):
        """WebSocket endpoint for the live event feed."""
        await websocket_endpoint(websocket, app.state.connection_manager, client_id)

    @app.get("/health")
    async def health_check():
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "pipeline_running": pipeline.is_running,
        }

    @app.get("/connections")
    async def get_connections():
        """Information about active WebSocket connections."""
        manager = app.state.connection_manager
        return {
            "active_connections": len(manager.active_connections),
            "connections": manager.get_connection_info()
        }

    return app


def run_server(pipeline: Optional[AcquisitionPipeline] = None,
               host: str = "localhost",
               port: int = 5002,
               debug: bool = False,
               config_manager: Optional[ConfigManager] = None) -> None:
    """Run the FastAPI server."""
    import uvicorn

    if pipeline is not None:
        set_pipeline(pipeline, config_manager)

    log_level = "debug" if debug else "info"
    logger.info("Starting API server", host=host, port=port, debug=debug)

    uvicorn.run(
        "motion_recorder.lib.api_server:create_app",
        host=host,
        port=port,
        log_level=log_level,
        factory=True
    )


__all__ = [
    "create_app",
    "run_server",
    "set_pipeline",
    "get_pipeline",
    "apply_update",
    "StartRecordingRequest",
    "ActivityRequest",
    "AddActivityRequest",
    "ConfigurationUpdateRequest",
    "RecordingResponse",
]
