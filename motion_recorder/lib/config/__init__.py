"""YAML configuration for the motion sensor recorder.

`ConfigManager` reads a YAML file into a validated `RecorderConfiguration`,
layers `MOTION_RECORDER_*` environment variables on top, writes it back with a
commented header and can watch the file so edits reach a running recorder:

    manager = ConfigManager("recorder.yaml", hot_reload=True)
    manager.on_config_changed = pipeline_update
    configuration = manager.load_config()

A reloaded configuration applies from the next recording session; an open
session keeps the sampling rate and sensors it was started with.
"""

import os
import time
from datetime import datetime
from pathlib import Path
from threading import Event, Thread
from typing import Any, Callable, Dict, List, Optional, Union

import yaml
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from ...models import RecorderConfiguration
from .validation import (
    ConfigValidationError,
    ConfigValidator,
    ValidationResult,
    generate_example_config,
    validate_config_dict,
    validate_config_file,
)


class ConfigurationError(Exception):
    """Exception raised for configuration-related errors."""
    pass


class ConfigChangeHandler(FileSystemEventHandler):
    """Forwards writes to the watched YAML file, including editor rename-saves."""

    def __init__(self, config_manager: 'ConfigManager'):
        super().__init__()
        self.config_manager = config_manager
        self._target = config_manager.config_path.resolve()

    def _matches(self, path) -> bool:
        return bool(path) and Path(path).resolve() == self._target

    def on_modified(self, event):
        if not event.is_directory and self._matches(event.src_path):
            self.config_manager._trigger_reload()

    def on_created(self, event):
        self.on_modified(event)

    def on_moved(self, event):
        if not event.is_directory and self._matches(getattr(event, "dest_path", None)):
            self.config_manager._trigger_reload()


class ConfigManager:
    """YAML-backed configuration manager with validation and env overrides."""

    # Editors often write a file in several steps
    RELOAD_SETTLE_SECONDS = 0.1

    # Environment variable suffix -> (config path, converter)
    ENV_OVERRIDES = {
        "SAMPLING_RATE": (["sampling_rate"], int),
        "EXPORT_FORMAT": (["export_format"], str),
        "SELECTED_SENSORS": (["selected_sensors"], "list"),
        "RELAY_HOST": (["relay", "host"], str),
        "RELAY_PORT": (["relay", "port"], int),
        "API_PORT": (["api_port"], int),
        "DEBUG": (["enable_debug_logging"], bool),
    }

    def __init__(
        self,
        config_path: Union[str, Path],
        validate: bool = True,
        strict_validation: bool = False,
        hot_reload: bool = False,
        create_if_missing: bool = False
    ):
        self.config_path = Path(config_path)
        self.validate = validate
        self.strict_validation = strict_validation
        self.hot_reload = hot_reload
        self.create_if_missing = create_if_missing

        # State
        self._current_config: Optional[RecorderConfiguration] = None

        # Hot-reload components
        self._observer: Optional[Observer] = None
        self._reload_event = Event()
        self._reload_thread: Optional[Thread] = None
        self._shutdown_event = Event()

        # Callbacks
        self.on_config_changed: Optional[Callable[[RecorderConfiguration], None]] = None
        self.on_config_error: Optional[Callable[[Exception], None]] = None
        self.on_validation_warning: Optional[Callable[[ValidationResult], None]] = None

        self.env_prefix = "MOTION_RECORDER_"

        self._initialize()

    def _initialize(self) -> None:
        if self.create_if_missing and not self.config_path.exists():
            self._create_default_config()

        if self.hot_reload:
            self._start_hot_reload()

    def load_config(self) -> RecorderConfiguration:
        """Load, override, validate and return the configuration."""
        try:
            config_data = self._load_yaml_file()
            config_data = self._apply_env_overrides(config_data)

            if self.validate:
                validation_result = self._validate_config(config_data)

                if not validation_result.is_valid:
                    raise ConfigurationError(
                        f"Configuration validation failed: {validation_result.errors[0]}"
                    )

                if validation_result.warnings and self.on_validation_warning:
                    self.on_validation_warning(validation_result)

            self._current_config = self._build(config_data)
            return self._current_config

        except Exception as e:
            if self.on_config_error:
                self.on_config_error(e)
            raise

    def save_config(self, config: RecorderConfiguration) -> None:
        """Save configuration to YAML file."""
        try:
            self._save_yaml_file(config.export_dict())
            self._current_config = config

        except Exception as e:
            if self.on_config_error:
                self.on_config_error(e)
            raise

    def export_config_yaml(self, output_path: Optional[Path] = None) -> str:
        """Export current configuration to YAML string or file."""
        if not self._current_config:
            raise ConfigurationError("No configuration loaded")

        yaml_content = self._dict_to_yaml(self._current_config.export_dict())

        if output_path:
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(yaml_content)

        return yaml_content

    def merge_config(self, override_data: Dict[str, Any]) -> RecorderConfiguration:
        """Merge override data with the current configuration."""
        if not self._current_config:
            base_data = generate_example_config()
        else:
            base_data = self._current_config.export_dict()

        merged_data = self._deep_merge(base_data, override_data)

        if self.validate:
            validation_result = self._validate_config(merged_data)
            if not validation_result.is_valid:
                raise ConfigurationError(
                    f"Merged configuration validation failed: {validation_result.errors[0]}"
                )

        return self._build(merged_data)

    def _build(self, config_data: Dict[str, Any]) -> RecorderConfiguration:
        known = {k: v for k, v in config_data.items() if k in ConfigValidator.KNOWN_KEYS}
        try:
            return RecorderConfiguration(**known)
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    def _load_yaml_file(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"YAML parsing error: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error reading config file: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file must contain a mapping: {self.config_path}")
        return data

    def _save_yaml_file(self, config_data: Dict[str, Any]) -> None:
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, 'w', encoding='utf-8') as f:
                f.write(self._dict_to_yaml(config_data))

        except OSError as e:
            raise ConfigurationError(f"Error writing config file: {e}")

    def _dict_to_yaml(self, data: Dict[str, Any]) -> str:
        header = f"""# Motion Sensor Recorder Configuration
# Generated: {datetime.now().isoformat()}
#
# sampling_rate: 1-100 Hz, applied from the next recording
# selected_sensors: accelerometer, gyroscope, magnetometer, linearAcceleration,
#   absoluteOrientation, relativeOrientation, ambientLight, gravity
# export_format: csv, txt or json

"""
        yaml_content = yaml.dump(
            data,
            default_flow_style=False,
            indent=2,
            sort_keys=False,
            allow_unicode=True
        )

        return header + yaml_content

    def _validate_config(self, config_data: Dict[str, Any]) -> ValidationResult:
        validator = ConfigValidator(strict_mode=self.strict_validation)
        return validator.validate_config(config_data)

    def _apply_env_overrides(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """Apply ``MOTION_RECORDER_*`` environment variable overrides."""
        modified_data = self._deep_merge({}, config_data)

        for suffix, (path, converter) in self.ENV_OVERRIDES.items():
            env_value = os.getenv(f"{self.env_prefix}{suffix}")
            if env_value is None:
                continue
            try:
                converted_value = self._convert_env_value(env_value, converter)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {self.env_prefix}{suffix}: {e}")
            self._set_nested_value(modified_data, path, converted_value)

        return modified_data

    def _convert_env_value(self, value: str, converter: Any) -> Any:
        if converter is bool:
            return value.strip().lower() in ('true', '1', 'yes', 'on')
        if converter == "list":
            return [item.strip() for item in value.split(",") if item.strip()]
        return converter(value.strip())

    def _set_nested_value(self, data: Dict[str, Any], path: List[str], value: Any) -> None:
        current = data
        for key in path[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[path[-1]] = value

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            elif isinstance(value, dict):
                result[key] = self._deep_merge({}, value)
            else:
                result[key] = value

        return result

    def _create_default_config(self) -> None:
        self._save_yaml_file(generate_example_config())

    def _start_hot_reload(self) -> None:
        """Watch the config file's directory and reload on modification."""
        if not self.config_path.exists():
            return

        try:
            self._observer = Observer()
            handler = ConfigChangeHandler(self)
            self._observer.schedule(handler, str(self.config_path.parent), recursive=False)
            self._observer.start()

            self._reload_thread = Thread(target=self._reload_worker, daemon=True)
            self._reload_thread.start()

        except Exception as e:
            if self.on_config_error:
                self.on_config_error(e)

    def _reload_worker(self) -> None:
        """Coalesce bursts of file events into one reload per settle period."""
        while not self._shutdown_event.is_set():
            if not self._reload_event.wait(timeout=1.0):
                continue
            time.sleep(self.RELOAD_SETTLE_SECONDS)
            self._reload_event.clear()

            try:
                configuration = self.load_config()
            except Exception:
                # load_config already reported through on_config_error
                continue

            if self.on_config_changed:
                try:
                    self.on_config_changed(configuration)
                except Exception as e:
                    if self.on_config_error:
                        self.on_config_error(e)

    def _trigger_reload(self) -> None:
        self._reload_event.set()

    def shutdown(self) -> None:
        """Stop file watching and the reload worker."""
        self._shutdown_event.set()

        if self._observer:
            self._observer.stop()
            self._observer.join()
            self._observer = None

        if self._reload_thread:
            self._reload_thread.join(timeout=5.0)
            self._reload_thread = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()


def load_config_from_file(
    config_path: Union[str, Path],
    validate: bool = True
) -> RecorderConfiguration:
    """Load configuration from YAML file (convenience function)."""
    manager = ConfigManager(config_path, validate=validate)
    return manager.load_config()


def save_config_to_file(
    config: RecorderConfiguration,
    config_path: Union[str, Path]
) -> None:
    """Save configuration to YAML file (convenience function)."""
    manager = ConfigManager(config_path, validate=False)
    manager.save_config(config)


def create_default_config_file(config_path: Union[str, Path]) -> None:
    """Create default configuration file (convenience function)."""
    ConfigManager(config_path, create_if_missing=True, validate=False)


__all__ = [
    "ConfigChangeHandler",
    "ConfigManager",
    "ConfigurationError",
    "ConfigValidationError",
    "ConfigValidator",
    "ValidationResult",
    "generate_example_config",
    "validate_config_dict",
    "validate_config_file",
    "load_config_from_file",
    "save_config_to_file",
    "create_default_config_file",
]
