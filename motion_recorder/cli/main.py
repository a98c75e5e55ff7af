"""Main CLI application orchestrating all components."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from ..lib.config import (
    ConfigManager,
    ConfigurationError,
    ValidationResult,
    create_default_config_file,
    validate_config_file,
)
from ..lib.sensors import SimulatedPlatform
from ..models import RecorderConfiguration
from ..services import AcquisitionPipeline, EmptyArchiveError, PreconditionError, write_export


logger = structlog.get_logger(__name__)


def configure_logging(debug: bool = False) -> None:
    """Configure structlog for the services and stdlib logging for the sensor layer."""
    log_level = "DEBUG" if debug else "INFO"
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.dev.ConsoleRenderer(colors=True)
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        level=getattr(logging, log_level),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


class MotionRecorderApplication:
    """Main application orchestrating configuration, pipeline and API server."""

    def __init__(self):
        self.config_manager: Optional[ConfigManager] = None
        self.configuration: Optional[RecorderConfiguration] = None
        self.pipeline: Optional[AcquisitionPipeline] = None

        # Runtime state
        self.is_running = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_event: Optional[asyncio.Event] = None

    def initialize(self,
                   config_path: Optional[str] = None,
                   hot_reload: bool = False,
                   seed: Optional[int] = None) -> None:
        """Load the configuration and build the pipeline."""
        logger.info("Initializing motion recorder")

        if config_path and Path(config_path).exists():
            self.config_manager = ConfigManager(config_path, hot_reload=hot_reload)
            self.config_manager.on_config_changed = self._on_config_changed
            self.config_manager.on_validation_warning = self._on_validation_warning
            self.configuration = self.config_manager.load_config()
            logger.info("Loaded configuration from file", config_path=config_path)
        else:
            if config_path:
                logger.warning("Configuration file not found, using defaults", config_path=config_path)
            self.configuration = RecorderConfiguration()
            logger.info("Using default configuration")

        self.pipeline = AcquisitionPipeline(self.configuration, SimulatedPlatform(seed=seed))

        logger.info("Application initialization completed",
                   sampling_rate=self.configuration.sampling_rate,
                   selected_sensors=[s.value for s in self.configuration.selected_sensors])

    async def serve(self, host: str, port: Optional[int] = None, debug: bool = False) -> None:
        """Run the API server until interrupted; the app lifespan runs the pipeline."""
        import uvicorn
        from ..lib.api_server import create_app

        self._loop = asyncio.get_running_loop()
        self.is_running = True

        app = create_app(self.pipeline, self.config_manager)
        config = uvicorn.Config(
            app=app,
            host=host,
            port=port or self.configuration.api_port,
            log_level="debug" if debug else "info"
        )

        server = uvicorn.Server(config)
        try:
            await server.serve()
        finally:
            self.is_running = False

    async def record(self,
                     activity: str,
                     duration: float,
                     export_format: Optional[str] = None,
                     output_dir: str = ".") -> int:
        """Headless recording: record for ``duration`` seconds, then export."""
        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self._setup_signal_handlers()

        pipeline = self.pipeline
        await pipeline.start()
        self.is_running = True

        try:
            capabilities = pipeline.detect_capabilities()
            logger.info("Sensor capabilities",
                       supported=[s.value for s, ok in capabilities.items() if ok])

            try:
                await pipeline.start_recording(activity)
            except PreconditionError as e:
                logger.error("Cannot start recording", error=str(e))
                return 1

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=duration)
                logger.info("Recording interrupted")
            except asyncio.TimeoutError:
                pass

            session = pipeline.stop_recording()
            await pipeline.flush()
            if session is not None:
                logger.info("Session recorded", session=str(session))

            try:
                result = pipeline.export_data(export_format)
            except EmptyArchiveError:
                logger.warning("No data to export, no file written")
                return 1

            path = write_export(result, output_dir)
            logger.info("Recording exported", path=str(path), entries=result.entry_count)
            return 0

        finally:
            self._remove_signal_handlers()
            await self.stop()

    async def stop(self) -> None:
        """Stop all components gracefully."""
        if not self.is_running:
            return

        logger.info("Stopping motion recorder")
        self.is_running = False

        try:
            if self.pipeline:
                await self.pipeline.shutdown()
            if self.config_manager:
                self.config_manager.shutdown()
            logger.info("Application stopped successfully")

        except Exception as e:
            logger.error("Error during application shutdown", error=str(e))

    def get_status(self) -> Dict[str, Any]:
        status: Dict[str, Any] = {"is_running": self.is_running}
        if self.pipeline:
            status["pipeline"] = self.pipeline.status().model_dump(mode="json")
            status["performance"] = self.pipeline.get_stats()
        return status

    def _setup_signal_handlers(self) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.add_signal_handler(sig, self._stop_event.set)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform; Ctrl+C raises KeyboardInterrupt instead
                pass

    def _remove_signal_handlers(self) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                pass

    def _on_config_changed(self, configuration: RecorderConfiguration) -> None:
        """Hot-reload callback, invoked from the file watcher thread."""
        self.configuration = configuration
        if self.pipeline and self._loop and self.is_running:
            asyncio.run_coroutine_threadsafe(self.pipeline.apply_configuration(configuration), self._loop)
        logger.info("Configuration reloaded", sampling_rate=configuration.sampling_rate)

    def _on_validation_warning(self, result: ValidationResult) -> None:
        for warning in result.warnings:
            logger.warning("Configuration warning", detail=warning)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="motion-recorder",
        description="Motion Sensor Recorder - multi-sensor acquisition with activity-labelled sessions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  motion-recorder serve                                  # Start the API server on port 5002
  motion-recorder --config config.yaml serve --port 8000
  motion-recorder record --activity Walking --duration 10
  motion-recorder record --activity Running --duration 5 --format json --output exports/
  motion-recorder --export-config config.yaml            # Write default config and exit
  motion-recorder --validate-config config.yaml          # Validate a config file and exit
        """
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration file"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging and verbose output"
    )

    parser.add_argument(
        "--export-config",
        type=str,
        metavar="PATH",
        help="Export default configuration to specified path and exit"
    )

    parser.add_argument(
        "--validate-config",
        type=str,
        metavar="PATH",
        help="Validate a configuration file and exit"
    )

    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the simulated sensor platform"
    )

    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP API server")
    serve.add_argument("--host", default="localhost", help="Host to bind the server to (default: localhost)")
    serve.add_argument("--port", type=int, help="Port to run the server on (default: from configuration)")
    serve.add_argument("--hot-reload", action="store_true", help="Reload the configuration file on change")

    record = subparsers.add_parser("record", help="Record one session and export it")
    record.add_argument("--activity", required=True, help="Activity label for the session")
    record.add_argument("--duration", type=float, default=10.0, help="Recording length in seconds (default: 10)")
    record.add_argument("--format", choices=["csv", "txt", "json"], help="Export format (default: from configuration)")
    record.add_argument("--output", default=".", help="Directory to write the export to (default: .)")

    return parser


async def main_async(argv: Optional[list] = None) -> int:
    """Async main function."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.debug)

    if args.export_config:
        try:
            create_default_config_file(args.export_config)
            logger.info("Configuration exported successfully", path=args.export_config)
            return 0
        except ConfigurationError as e:
            logger.error("Failed to export configuration", error=str(e))
            return 1

    if args.validate_config:
        result = validate_config_file(args.validate_config)
        print("\n".join(result.report_lines(verbose=True)))
        return 0 if result.is_valid else 1

    if args.command is None:
        parser.print_help()
        return 1

    app = MotionRecorderApplication()

    try:
        app.initialize(
            config_path=args.config,
            hot_reload=getattr(args, "hot_reload", False),
            seed=args.seed
        )
        if app.configuration.enable_debug_logging and not args.debug:
            configure_logging(True)

        if args.command == "serve":
            await app.serve(host=args.host, port=args.port, debug=args.debug)
            return 0

        return await app.record(
            activity=args.activity,
            duration=args.duration,
            export_format=args.format,
            output_dir=args.output
        )

    except ConfigurationError as e:
        logger.error("Configuration error", error=str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        return 0
    finally:
        await app.stop()
        if app.config_manager:
            app.config_manager.shutdown()


def main() -> int:
    """Main entry point."""
    try:
        return asyncio.run(main_async())
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
