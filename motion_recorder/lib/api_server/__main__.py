"""CLI interface for the API server."""

import argparse
import asyncio
import sys

import httpx
import structlog

from ...cli.main import configure_logging
from ...lib.sensors import SimulatedPlatform
from ...services import AcquisitionPipeline
from . import run_server


logger = structlog.get_logger(__name__)


ENDPOINTS = [
    "/health",
    "/status",
    "/capabilities",
    "/live",
    "/live/chart",
    "/sessions",
    "/activities",
    "/config",
    "/connections",
]


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Motion Sensor Recorder API Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m motion_recorder.lib.api_server                    # Start server on default port 5002
  python -m motion_recorder.lib.api_server --port 8080        # Start server on port 8080
  python -m motion_recorder.lib.api_server --test-endpoints   # Probe a running server
        """
    )

    parser.add_argument("--host", default="localhost", help="Host to bind the server to (default: localhost)")
    parser.add_argument("--port", type=int, default=5002, help="Port to run the server on (default: 5002)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--seed", type=int, help="Seed for the simulated sensor platform")
    parser.add_argument("--test-endpoints", action="store_true", help="Test all API endpoints and exit")

    args = parser.parse_args()
    configure_logging(args.debug)

    if args.test_endpoints:
        failures = asyncio.run(test_endpoints(args.host, args.port))
        sys.exit(1 if failures else 0)

    try:
        run_server(AcquisitionPipeline(platform=SimulatedPlatform(seed=args.seed)),
                   host=args.host, port=args.port, debug=args.debug)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")


async def test_endpoints(host: str, port: int) -> int:
    """Probe every GET endpoint of a running server; returns the failure count."""
    base_url = f"http://{host}:{port}"
    failures = 0

    logger.info("Testing API endpoints", base_url=base_url)

    async with httpx.AsyncClient(base_url=base_url, timeout=5.0) as client:
        for endpoint in ENDPOINTS:
            try:
                response = await client.get(endpoint)
            except httpx.ConnectError:
                logger.error("✗ Connection failed", endpoint=endpoint, message="Server not running?")
                failures += 1
                continue
            except httpx.TimeoutException:
                logger.error("✗ Timeout", endpoint=endpoint)
                failures += 1
                continue

            if response.status_code == 200:
                logger.info("✓ Endpoint OK", endpoint=endpoint, status=response.status_code)
            else:
                logger.warning("✗ Endpoint error", endpoint=endpoint, status=response.status_code)
                failures += 1

    logger.info("Endpoint testing completed", failures=failures)
    return failures


if __name__ == "__main__":
    main()
