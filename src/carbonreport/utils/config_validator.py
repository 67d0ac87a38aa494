"""
Settings file loading and validation.

This module provides validation for:
- Collector connection settings
- Reporter settings (prefix, units, period, excluded fields)
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.clock import DEFAULT_CLOCK, Clock
from ..reporting import filters
from ..reporting.fields import HISTOGRAM_FIELDS, METERED_FIELDS
from ..reporting.reporter import ReporterConfig
from ..reporting.units import TimeUnit

logger = logging.getLogger(__name__)

KNOWN_FIELDS = set(HISTOGRAM_FIELDS) | set(METERED_FIELDS)


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""
    pass


class CollectorSettings(BaseModel):
    """Where the Carbon collector listens."""

    model_config = ConfigDict(extra="forbid")

    host: str = "localhost"
    port: int = Field(2003, ge=1, le=65535)
    timeout_s: Optional[float] = Field(5.0, gt=0)


class ReporterSettings(BaseModel):
    """How and how often metrics are reported."""

    model_config = ConfigDict(extra="forbid")

    prefix: Optional[str] = None
    rate_unit: str = "seconds"
    duration_unit: str = "milliseconds"
    period_s: float = Field(60.0, gt=0)
    exclude_fields: List[str] = Field(default_factory=list)
    include_runtime_metrics: bool = True

    @field_validator("rate_unit", "duration_unit")
    @classmethod
    def _known_unit(cls, value: str) -> str:
        TimeUnit.parse(value)
        return value

    @field_validator("prefix")
    @classmethod
    def _no_whitespace(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and any(c.isspace() for c in value):
            raise ValueError("prefix must not contain whitespace")
        return value


class Settings(BaseModel):
    """Complete settings file."""

    model_config = ConfigDict(extra="forbid")

    collector: CollectorSettings = Field(default_factory=CollectorSettings)
    reporter: ReporterSettings = Field(default_factory=ReporterSettings)


class SettingsValidator:
    """Validates a raw settings mapping."""

    @classmethod
    def validate(cls, config: Any) -> Tuple[bool, List[str], Optional[Settings]]:
        """Validate a settings mapping.

        Returns:
            (is_valid, errors, settings)
        """
        if not isinstance(config, dict):
            return False, [f"Settings must be a mapping, got {type(config).__name__}"], None

        try:
            settings = Settings.model_validate(config)
        except ValidationError as e:
            errors = [cls._describe(error) for error in e.errors()]
            return False, errors, None

        unknown = set(settings.reporter.exclude_fields) - KNOWN_FIELDS
        if unknown:
            # Harmless, the filter will simply never match them
            logger.warning(f"exclude_fields names fields no metric reports: {sorted(unknown)}")

        return True, [], settings

    @staticmethod
    def _describe(error: Dict[str, Any]) -> str:
        location = ".".join(str(part) for part in error.get("loc", ())) or "<root>"
        return f"{location}: {error.get('msg', 'invalid value')}"


def load_config_file(config_path: str) -> Any:
    """Read a YAML or JSON settings file, chosen by suffix."""
    config_file = Path(config_path)

    with open(config_file) as f:
        if config_file.suffix in [".yaml", ".yml"]:
            config = yaml.safe_load(f)
        else:
            config = json.load(f)

    return config if config is not None else {}


def validate_config_file(config_path: str) -> Tuple[bool, List[str], Optional[Settings]]:
    """
    Load and validate a settings file.

    Returns:
        (is_valid, errors, settings)
    """
    config = load_config_file(config_path)
    is_valid, errors, settings = SettingsValidator.validate(config)

    if not is_valid:
        logger.warning(f"Configuration has {len(errors)} validation errors")
        for error in errors[:10]:
            logger.warning(f"  - {error}")
        if len(errors) > 10:
            logger.warning(f"  ... and {len(errors) - 10} more errors")

    return is_valid, errors, settings


def load_settings(config_path: str) -> Settings:
    """Load a settings file, raising ConfigurationError when it is invalid."""
    is_valid, errors, settings = validate_config_file(config_path)
    if not is_valid:
        raise ConfigurationError(f"Invalid settings in {config_path}: " + "; ".join(errors))
    return settings


def build_reporter_config(settings: ReporterSettings, clock: Clock = DEFAULT_CLOCK) -> ReporterConfig:
    """Turn validated reporter settings into an immutable ReporterConfig."""
    metric_filter = filters.ALL
    if settings.exclude_fields:
        metric_filter = filters.excluding_fields(*settings.exclude_fields)

    return ReporterConfig(
        clock=clock,
        prefix=settings.prefix or None,
        rate_unit=TimeUnit.parse(settings.rate_unit),
        duration_unit=TimeUnit.parse(settings.duration_unit),
        filter=metric_filter,
    )
