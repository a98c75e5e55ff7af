"""RecorderConfiguration data model for acquisition, export and relay settings."""

from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, Field, computed_field, field_validator

from .sensor_type import SensorType


DEFAULT_ACTIVITIES = ["Walking", "Running", "Biking", "Standing", "Sitting"]

DEFAULT_SELECTED_SENSORS = [SensorType.ACCELEROMETER, SensorType.GYROSCOPE]


class ExportFormat(str, Enum):
    """Export formats and the file extension they are written with."""

    CSV = "csv"
    TXT = "txt"
    JSON = "json"

    @property
    def filename(self) -> str:
        return f"motion_sensor_data.{self.value}"

    @property
    def media_type(self) -> str:
        return {
            ExportFormat.CSV: "text/csv",
            ExportFormat.TXT: "text/plain",
            ExportFormat.JSON: "application/json",
        }[self]


class RelaySettings(BaseModel):
    """Where and how recorded events are relayed while recording."""

    model_config = {
        "validate_assignment": True,
        "extra": "forbid"
    }

    host: str = Field(default="localhost", min_length=1, description="Relay server host")
    port: int = Field(default=8080, ge=1, le=65535, description="Relay server port")
    event_name: str = Field(
        default="sensor_data",
        pattern=r"^[A-Za-z0-9_\-]+$",
        description="Channel name events are sent under"
    )
    timeout_seconds: float = Field(default=2.0, gt=0.0, le=60.0, description="Per-request timeout")
    auto_connect: bool = Field(default=False, description="Connect the relay at startup")

    @computed_field
    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class RecorderConfiguration(BaseModel):
    """Complete recorder configuration."""

    model_config = {
        "validate_assignment": True,
        "extra": "forbid",
        "json_schema_extra": {
            "example": {
                "sampling_rate": 50,
                "selected_sensors": ["accelerometer", "gyroscope"],
                "export_format": "csv",
                "relay": {"host": "localhost", "port": 8080}
            }
        }
    }

    sampling_rate: int = Field(default=50, ge=1, le=100, description="Sampling frequency in Hz")
    selected_sensors: List[SensorType] = Field(
        default_factory=lambda: list(DEFAULT_SELECTED_SENSORS),
        description="Sensors to start when recording"
    )
    export_format: ExportFormat = Field(default=ExportFormat.CSV, description="Default export format")

    live_window_capacity: int = Field(default=100, ge=1, le=10000, description="Live window size")
    chart_window: int = Field(default=50, ge=1, le=10000, description="Points fed to live charts")

    activities: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ACTIVITIES),
        description="Selectable activity labels"
    )

    relay: RelaySettings = Field(default_factory=RelaySettings, description="Stream relay settings")

    api_port: int = Field(default=5002, ge=1024, le=65535, description="HTTP API server port")
    enable_debug_logging: bool = Field(default=False, description="Enable debug level logging")

    @field_validator("selected_sensors")
    @classmethod
    def deduplicate_sensors(cls, v: List[SensorType]) -> List[SensorType]:
        """Drop repeated sensors while keeping the first-seen order."""
        seen: List[SensorType] = []
        for sensor in v:
            if sensor not in seen:
                seen.append(sensor)
        return seen

    @field_validator("activities")
    @classmethod
    def clean_activities(cls, v: List[str]) -> List[str]:
        """Trim labels, drop blanks and duplicates."""
        cleaned: List[str] = []
        for name in v:
            name = name.strip()
            if name and name not in cleaned:
                cleaned.append(name)
        return cleaned

    def model_post_init(self, __context: Any) -> None:
        """Chart window must fit in the live window."""
        if self.chart_window > self.live_window_capacity:
            raise ValueError("chart_window cannot exceed live_window_capacity")

    @computed_field
    @property
    def sampling_interval_ms(self) -> float:
        """Interval between samples at the configured rate."""
        return round(1000.0 / self.sampling_rate, 1)

    def export_dict(self) -> Dict[str, Any]:
        """Export configuration as dictionary for YAML/JSON serialization."""
        data = self.model_dump(mode="json")
        data.pop("sampling_interval_ms", None)
        data["relay"].pop("base_url", None)
        return data
