"""Unit tests for the command line interface."""

import json

import pytest
import yaml

from motion_recorder.cli.main import MotionRecorderApplication, build_parser, main_async
from motion_recorder.services import load_archive_json


class TestParser:
    """Test argument parsing."""

    def test_record_arguments(self):
        """Test the record subcommand options."""
        args = build_parser().parse_args(
            ["--seed", "3", "record", "--activity", "Walking", "--duration", "2.5", "--format", "txt"]
        )

        assert args.command == "record"
        assert args.activity == "Walking"
        assert args.duration == 2.5
        assert args.format == "txt"
        assert args.output == "."
        assert args.seed == 3

    def test_serve_defaults(self):
        """Test the serve subcommand defaults."""
        args = build_parser().parse_args(["serve"])

        assert args.host == "localhost"
        assert args.port is None
        assert args.hot_reload is False

    def test_unknown_format_rejected(self):
        """Test export formats are restricted."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["record", "--activity", "Walking", "--format", "xml"])


class TestCommands:
    """Test the one-shot commands."""

    @pytest.mark.asyncio
    async def test_no_command(self):
        """Test running without a command prints help and fails."""
        assert await main_async([]) == 1

    @pytest.mark.asyncio
    async def test_export_config(self, tmp_path):
        """Test the default configuration can be exported."""
        path = tmp_path / "config.yaml"

        assert await main_async(["--export-config", str(path)]) == 0

        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert data["sampling_rate"] == 50

    @pytest.mark.asyncio
    async def test_validate_config(self, tmp_path):
        """Test validation exit codes."""
        good = tmp_path / "good.yaml"
        bad = tmp_path / "bad.yaml"
        good.write_text("sampling_rate: 25\n", encoding="utf-8")
        bad.write_text("sampling_rate: 0\n", encoding="utf-8")

        assert await main_async(["--validate-config", str(good)]) == 0
        assert await main_async(["--validate-config", str(bad)]) == 1

    @pytest.mark.asyncio
    async def test_record_and_export(self, tmp_path):
        """Test a short headless recording against the simulated platform."""
        code = await main_async([
            "--seed", "7",
            "record",
            "--activity", "Walking",
            "--duration", "0.3",
            "--format", "json",
            "--output", str(tmp_path),
        ])

        assert code == 0
        sessions = load_archive_json((tmp_path / "motion_sensor_data.json").read_text(encoding="utf-8"))
        assert len(sessions) == 1
        assert sessions[0].activity == "Walking"
        assert sessions[0].event_count > 0
        assert {e.activity for e in sessions[0].events} == {"Walking"}

    @pytest.mark.asyncio
    async def test_record_with_config(self, tmp_path):
        """Test the recording uses the configured sensors and rate."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text(
            "sampling_rate: 40\nselected_sensors: [ambientLight]\nexport_format: json\n",
            encoding="utf-8"
        )

        code = await main_async([
            "--config", str(config_path),
            "record", "--activity", "Sitting", "--duration", "0.3", "--output", str(tmp_path),
        ])

        assert code == 0
        data = json.loads((tmp_path / "motion_sensor_data.json").read_text(encoding="utf-8"))
        assert data[0]["samplingRate"] == 40
        assert {e["sensorType"] for e in data[0]["events"]} == {"ambientLight"}


class TestApplication:
    """Test the application object."""

    def test_initialize_defaults(self):
        """Test initialization without a config file."""
        app = MotionRecorderApplication()

        app.initialize(seed=1)

        assert app.pipeline is not None
        assert app.configuration.sampling_rate == 50
        assert app.get_status()["is_running"] is False

    @pytest.mark.asyncio
    async def test_record_rejects_blank_activity(self, tmp_path):
        """Test recording without an activity fails cleanly."""
        app = MotionRecorderApplication()
        app.initialize(seed=1)

        assert await app.record(activity=" ", duration=0.1, output_dir=str(tmp_path)) == 1
        assert not (tmp_path / "motion_sensor_data.csv").exists()
