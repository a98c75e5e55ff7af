"""Core services for the motion sensor recorder."""

from .live_window import LiveWindow
from .session_archive import SessionArchive
from .session_recorder import (
    PreconditionError,
    RecorderError,
    RecorderState,
    SessionIdAllocator,
    SessionRecorder,
)
from .exporter import (
    CSV_COLUMNS,
    EmptyArchiveError,
    ExportResult,
    UnsupportedExportFormatError,
    export_archive,
    export_csv,
    export_json,
    export_txt,
    load_archive_json,
    write_export,
)
from .stream_relay import HttpStreamRelay, StreamRelay
from .acquisition_pipeline import AcquisitionPipeline

__all__ = [
    "LiveWindow",
    "SessionArchive",
    "PreconditionError",
    "RecorderError",
    "RecorderState",
    "SessionIdAllocator",
    "SessionRecorder",
    "CSV_COLUMNS",
    "EmptyArchiveError",
    "ExportResult",
    "UnsupportedExportFormatError",
    "export_archive",
    "export_csv",
    "export_json",
    "export_txt",
    "load_archive_json",
    "write_export",
    "HttpStreamRelay",
    "StreamRelay",
    "AcquisitionPipeline",
]
