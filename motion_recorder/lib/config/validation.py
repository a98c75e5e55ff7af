"""Configuration validation utilities for YAML config files.

Checks recorder configuration files in three passes: known keys, the pydantic
model itself, and softer consistency checks that only produce warnings
(sampling load, unavailable sensors, relay and window settings).
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from pydantic import ValidationError

from ...models import SensorType
from ...models.recorder_configuration import (
    DEFAULT_ACTIVITIES,
    DEFAULT_SELECTED_SENSORS,
    RecorderConfiguration,
)


# Above this rate, selecting many sensors at once tends to overload slow devices.
HIGH_SAMPLING_RATE_HZ = 60
HIGH_LOAD_SENSOR_COUNT = 4


class ConfigValidationError(Exception):
    """Custom exception for configuration validation errors."""

    def __init__(self, message: str, path: str = "", details: Optional[Dict] = None):
        self.message = message
        self.path = path
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.path:
            return f"Config validation error at '{self.path}': {self.message}"
        return f"Config validation error: {self.message}"


class ValidationResult:
    """Result of configuration validation."""

    def __init__(self):
        self.is_valid = True
        self.errors: List[ConfigValidationError] = []
        self.warnings: List[str] = []
        self.info: List[str] = []

    def add_error(self, error: ConfigValidationError) -> None:
        self.errors.append(error)
        self.is_valid = False

    def add_warning(self, message: str, path: str = "") -> None:
        warning_msg = f"Warning at '{path}': {message}" if path else f"Warning: {message}"
        self.warnings.append(warning_msg)

    def add_info(self, message: str) -> None:
        self.info.append(message)

    def get_summary(self) -> Dict[str, Any]:
        """Get validation summary."""
        return {
            "valid": self.is_valid,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "info_count": len(self.info),
            "errors": [str(error) for error in self.errors],
            "warnings": self.warnings,
            "info": self.info
        }

    def report_lines(self, verbose: bool = True) -> List[str]:
        """Human-readable report; warnings and info only when ``verbose``."""
        lines = ["✓ Configuration validation passed" if self.is_valid else "✗ Configuration validation failed"]
        sections = [("Errors", [str(error) for error in self.errors])]
        if verbose:
            sections += [("Warnings", self.warnings), ("Info", self.info)]

        for title, messages in sections:
            if messages:
                lines.append(f"\n{title} ({len(messages)}):")
                lines.extend(f"  • {message}" for message in messages)
        return lines


class ConfigValidator:
    """
    Recorder configuration validator.

    Args:
        strict_mode: Treat unknown keys as errors instead of warnings
        capabilities: Optional capability map; selected sensors reported as
            unavailable produce a warning
    """

    KNOWN_KEYS = set(RecorderConfiguration.model_fields)

    def __init__(self, strict_mode: bool = False,
                 capabilities: Optional[Mapping[SensorType, bool]] = None):
        self.strict_mode = strict_mode
        self.capabilities = dict(capabilities) if capabilities is not None else None
        self.result = ValidationResult()

    def validate_config(self, config_data: Dict[str, Any]) -> ValidationResult:
        """Validate complete configuration dictionary."""
        self.result = ValidationResult()

        if not isinstance(config_data, dict):
            self.result.add_error(ConfigValidationError(
                f"Configuration must be a mapping, got {type(config_data).__name__}"
            ))
            return self.result

        try:
            config_data = self._validate_structure(config_data)

            config_obj = self._validate_pydantic_model(config_data)

            if config_obj:
                self._validate_performance_settings(config_obj)
                self._validate_sensor_availability(config_obj)
                self._validate_relay_settings(config_obj)

        except Exception as e:
            self.result.add_error(ConfigValidationError(
                f"Unexpected validation error: {str(e)}"
            ))

        return self.result

    def validate_yaml_file(self, file_path: Union[str, Path]) -> ValidationResult:
        """Validate YAML configuration file."""
        self.result = ValidationResult()
        file_path = Path(file_path)

        if not file_path.exists():
            self.result.add_error(ConfigValidationError(
                f"Configuration file does not exist: {file_path}"
            ))
            return self.result

        if not file_path.is_file():
            self.result.add_error(ConfigValidationError(
                f"Path is not a file: {file_path}"
            ))
            return self.result

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            self.result.add_error(ConfigValidationError(
                f"YAML parsing error: {str(e)}"
            ))
            return self.result
        except OSError as e:
            self.result.add_error(ConfigValidationError(
                f"File validation error: {str(e)}"
            ))
            return self.result

        return self.validate_config(config_data or {})

    def _validate_structure(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Check for unknown top-level keys; returns the data the model should see."""
        unknown_keys = sorted(set(config.keys()) - self.KNOWN_KEYS)
        if not unknown_keys:
            return config

        if self.strict_mode:
            for key in unknown_keys:
                self.result.add_error(ConfigValidationError(
                    f"Unknown configuration key: {key}",
                    path=key
                ))
        else:
            self.result.add_warning(
                f"Unknown configuration keys (will be ignored): {', '.join(unknown_keys)}"
            )
        return {k: v for k, v in config.items() if k in self.KNOWN_KEYS}

    def _validate_pydantic_model(self, config: Dict[str, Any]) -> Optional[RecorderConfiguration]:
        """Validate using Pydantic model."""
        try:
            config_obj = RecorderConfiguration(**config)
            self.result.add_info("Pydantic model validation passed")
            return config_obj

        except ValidationError as e:
            for error in e.errors():
                field_path = ".".join(str(x) for x in error['loc'])
                self.result.add_error(ConfigValidationError(
                    error['msg'],
                    path=field_path,
                    details={"type": error['type'], "input": error.get('input')}
                ))
            return None
        except ValueError as e:
            # Cross-field checks run after field validation
            self.result.add_error(ConfigValidationError(str(e)))
            return None

    def _validate_performance_settings(self, config: RecorderConfiguration) -> None:
        """Warn about settings that are valid but heavy or unusual."""
        sensor_count = len(config.selected_sensors)

        if config.sampling_rate > HIGH_SAMPLING_RATE_HZ and sensor_count > HIGH_LOAD_SENSOR_COUNT:
            self.result.add_warning(
                f"High sampling rate ({config.sampling_rate} Hz) with {sensor_count} sensors "
                "may overload the device",
                path="sampling_rate"
            )

        if sensor_count == 0:
            self.result.add_warning(
                "No sensors selected - recordings will contain only activity switches",
                path="selected_sensors"
            )

        if not config.activities:
            self.result.add_warning(
                "Activity catalog is empty - activities must be added before recording",
                path="activities"
            )

        if config.live_window_capacity > 1000:
            self.result.add_warning(
                f"Large live window ({config.live_window_capacity} events) may slow live display",
                path="live_window_capacity"
            )

    def _validate_sensor_availability(self, config: RecorderConfiguration) -> None:
        """Warn about selected sensors the platform reports as unavailable."""
        if self.capabilities is None:
            return

        missing = [
            sensor.value for sensor in config.selected_sensors
            if not self.capabilities.get(sensor, False)
        ]
        if missing:
            self.result.add_warning(
                f"Selected sensors not available on this device: {', '.join(missing)}",
                path="selected_sensors"
            )

    def _validate_relay_settings(self, config: RecorderConfiguration) -> None:
        if config.relay.auto_connect:
            self.result.add_info(f"Stream relay will connect to {config.relay.base_url} at startup")

        if config.relay.port == config.api_port and config.relay.host in ("localhost", "127.0.0.1"):
            self.result.add_warning(
                f"Relay port {config.relay.port} is the API server's own port",
                path="relay.port"
            )


def validate_config_dict(config_data: Dict[str, Any], strict: bool = False) -> ValidationResult:
    """Validate configuration dictionary (convenience function)."""
    validator = ConfigValidator(strict_mode=strict)
    return validator.validate_config(config_data)


def validate_config_file(file_path: Union[str, Path], strict: bool = False) -> ValidationResult:
    """Validate configuration YAML file (convenience function)."""
    validator = ConfigValidator(strict_mode=strict)
    return validator.validate_yaml_file(file_path)


def generate_example_config() -> Dict[str, Any]:
    """Generate example configuration dictionary."""
    return {
        "sampling_rate": 50,
        "selected_sensors": [sensor.value for sensor in DEFAULT_SELECTED_SENSORS],
        "export_format": "csv",
        "live_window_capacity": 100,
        "chart_window": 50,
        "activities": list(DEFAULT_ACTIVITIES),
        "relay": {
            "host": "localhost",
            "port": 8080,
            "event_name": "sensor_data",
            "timeout_seconds": 2.0,
            "auto_connect": False
        },
        "api_port": 5002,
        "enable_debug_logging": False
    }
