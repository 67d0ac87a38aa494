"""Settings loading and validation."""

from .config_validator import (
    ConfigurationError,
    Settings,
    SettingsValidator,
    build_reporter_config,
    load_settings,
    validate_config_file,
)

__all__ = [
    "ConfigurationError",
    "Settings",
    "SettingsValidator",
    "build_reporter_config",
    "load_settings",
    "validate_config_file",
]
