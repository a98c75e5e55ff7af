"""
Exporter: pure transforms of the session archive into downloadable formats.

Formats:
    csv: one header row plus one row per recorded entry
    txt: human-readable report, one block per session
    json: the whole archive, lossless and pretty-printed

Every transform is deterministic: sessions in archive order, entries in
capture order within each session.
"""

import csv
import io
import json
import math
from pathlib import Path
from typing import Any, Iterable, List, Sequence, Union

import structlog
from pydantic import BaseModel, Field, TypeAdapter

from ..models import ExportFormat, Session, to_iso
from .session_archive import SessionArchive
from .session_recorder import RecorderError


logger = structlog.get_logger(__name__)


CSV_COLUMNS = [
    "Timestamp", "Activity", "SensorType",
    "X", "Y", "Z",
    "Alpha", "Beta", "Gamma",
    "Quaternion", "Illuminance",
    "SessionID", "SamplingRate",
]

ACTIVITY_SWITCH_TOKEN = "ACTIVITY_SWITCH"

TXT_TITLE = "Motion Sensor Recording Data"

SESSION_DELIMITER = "---"

_SESSIONS = TypeAdapter(List[Session])


class EmptyArchiveError(RecorderError):
    """Export requested while the archive holds no sessions."""

    def __init__(self, message: str = "No data to export"):
        super().__init__(message)


class UnsupportedExportFormatError(ValueError):
    """Requested export format is not one of csv, txt or json."""


class ExportResult(BaseModel):
    """Export bytes together with the name they should be stored under."""

    model_config = {"frozen": True}

    format: ExportFormat
    filename: str
    media_type: str
    content: bytes = Field(description="UTF-8 encoded export")
    session_count: int = Field(ge=0)
    entry_count: int = Field(ge=0)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


def format_number(value: Any) -> str:
    """Render a number the way it appears in the exported files (``1``, ``9.8``)."""
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    number = float(value)
    if not math.isfinite(number):
        return ""
    if number.is_integer():
        return str(int(number))
    return repr(number)


def _quaternion_text(quaternion: Sequence[float]) -> str:
    return "[" + ",".join(format_number(c) for c in quaternion) + "]"


def _optional(entry: Any, name: str) -> str:
    # Absent payload fields stay empty; a recorded 0 is written as "0".
    value = getattr(entry, name, None)
    return "" if value is None else format_number(value)


def _sessions(archive: Union[SessionArchive, Iterable[Session]]) -> List[Session]:
    if isinstance(archive, SessionArchive):
        return list(archive.all())
    return list(archive)


def csv_rows(archive: Union[SessionArchive, Iterable[Session]]) -> List[List[str]]:
    """Header row followed by one row per entry of every session."""
    rows = [list(CSV_COLUMNS)]
    for session in _sessions(archive):
        for entry in session.events:
            timestamp = to_iso(entry.timestamp)
            if entry.is_activity_switch:
                rows.append([timestamp, entry.activity, ACTIVITY_SWITCH_TOKEN]
                            + [""] * 8
                            + [str(session.id), str(session.sampling_rate)])
                continue

            quaternion = getattr(entry, "quaternion", None)
            rows.append([
                timestamp,
                entry.activity,
                entry.sensor_type.value,
                _optional(entry, "x"),
                _optional(entry, "y"),
                _optional(entry, "z"),
                _optional(entry, "alpha"),
                _optional(entry, "beta"),
                _optional(entry, "gamma"),
                _quaternion_text(quaternion) if quaternion is not None else "",
                _optional(entry, "illuminance"),
                str(session.id),
                str(session.sampling_rate),
            ])
    return rows


def export_csv(archive: Union[SessionArchive, Iterable[Session]]) -> str:
    """Delimited export with the fixed column set."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(csv_rows(archive))
    return buffer.getvalue()


def export_txt(archive: Union[SessionArchive, Iterable[Session]]) -> str:
    """Human-readable report with a header block per session."""
    lines = [TXT_TITLE, "=" * 32, ""]

    for session in _sessions(archive):
        lines.extend([
            f"Session ID: {session.id}",
            f"Activity: {session.activity}",
            f"Start Time: {to_iso(session.start_time)}",
            f"End Time: {to_iso(session.end_time)}",
            f"Duration: {session.duration_seconds:.2f} seconds",
            f"Sampling Rate: {session.sampling_rate} Hz",
            f"Data Points: {session.event_count}",
            "",
        ])

        for entry in session.events:
            stamp = f"[{to_iso(entry.timestamp)}]"
            if entry.is_activity_switch:
                lines.append(f"{stamp} ACTIVITY SWITCH: {entry.previous_activity} -> {entry.activity}")
            else:
                dump = json.dumps(entry.to_record(), separators=(",", ":"))
                lines.append(f"{stamp} {entry.sensor_type.value}: {dump}")

        lines.extend(["", SESSION_DELIMITER, ""])

    return "\n".join(lines) + "\n"


def export_json(archive: Union[SessionArchive, Iterable[Session]]) -> str:
    """Every field of every session and entry, pretty-printed."""
    return json.dumps([session.to_record() for session in _sessions(archive)], indent=2)


def load_archive_json(text: Union[str, bytes]) -> List[Session]:
    """Parse a structured export back into sessions."""
    return _SESSIONS.validate_json(text)


EXPORTERS = {
    ExportFormat.CSV: export_csv,
    ExportFormat.TXT: export_txt,
    ExportFormat.JSON: export_json,
}


def parse_export_format(value: Union[str, ExportFormat]) -> ExportFormat:
    """
    Resolve a format name.

    Raises:
        UnsupportedExportFormatError: If the name is not csv, txt or json
    """
    if isinstance(value, ExportFormat):
        return value
    try:
        return ExportFormat(str(value).strip().lower())
    except ValueError:
        raise UnsupportedExportFormatError(
            f"Unsupported export format '{value}', expected one of: "
            + ", ".join(f.value for f in ExportFormat)
        )


def export_archive(archive: Union[SessionArchive, Iterable[Session]],
                   export_format: Union[str, ExportFormat] = ExportFormat.CSV) -> ExportResult:
    """
    Export the archive in the requested format.

    Raises:
        EmptyArchiveError: If there is nothing to export
        UnsupportedExportFormatError: If the format is unknown
    """
    fmt = parse_export_format(export_format)
    sessions = _sessions(archive)
    if not sessions:
        raise EmptyArchiveError()

    content = EXPORTERS[fmt](sessions)
    result = ExportResult(
        format=fmt,
        filename=fmt.filename,
        media_type=fmt.media_type,
        content=content.encode("utf-8"),
        session_count=len(sessions),
        entry_count=sum(session.event_count for session in sessions),
    )

    logger.info("Archive exported",
               format=fmt.value,
               sessions=result.session_count,
               entries=result.entry_count,
               size_bytes=len(result.content))
    return result


def write_export(result: ExportResult, directory: Union[str, Path] = ".") -> Path:
    """Write export bytes to ``<directory>/motion_sensor_data.<format>``."""
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / result.filename
    path.write_bytes(result.content)
    logger.info("Export written", path=str(path), size_bytes=len(result.content))
    return path
