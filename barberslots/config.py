"""
Configuration management using Pydantic and YAML.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.availability import (
    DEFAULT_BUFFER_MINUTES,
    DEFAULT_SLOT_GRANULARITY_MINUTES,
    AvailabilityEngine,
)
from .domain.models import WEEKDAY_NAMES, BusinessHours, DayHours
from .domain.time_utils import parse_time, time_to_minutes

logger = logging.getLogger(__name__)


class DayHoursConfig(BaseModel):
    """Opening hours for a single weekday."""
    enabled: bool = True
    open: str = "09:00"
    close: str = "18:00"
    overtime_buffer_minutes: int = Field(default=0, ge=0)

    @field_validator("open", "close", mode="before")
    @classmethod
    def validate_time(cls, value: str) -> str:
        """Normalise to HH:MM."""
        return parse_time(value)

    @model_validator(mode="after")
    def validate_hours_order(self) -> "DayHoursConfig":
        """Ensure the shop opens before it closes."""
        if time_to_minutes(self.close) <= time_to_minutes(self.open):
            raise ValueError(f"close ({self.close}) must be later than open ({self.open})")
        return self

    def to_day_hours(self) -> DayHours:
        return DayHours(
            enabled=self.enabled,
            open=self.open,
            close=self.close,
            overtime_buffer_minutes=self.overtime_buffer_minutes,
        )


def _default_business_hours() -> Dict[str, DayHoursConfig]:
    return {
        name: DayHoursConfig(
            enabled=hours.enabled,
            open=hours.open,
            close=hours.close,
            overtime_buffer_minutes=hours.overtime_buffer_minutes,
        )
        for name, hours in BusinessHours.default().days.items()
    }


class BookingRulesConfig(BaseModel):
    """Conflict rules shared by every availability check."""
    buffer_minutes: int = Field(default=DEFAULT_BUFFER_MINUTES, ge=0)
    slot_granularity_minutes: int = Field(default=DEFAULT_SLOT_GRANULARITY_MINUTES, gt=0)


class ServiceConfig(BaseModel):
    """A bookable service from the shop menu."""
    key: str
    name: str
    duration: int = Field(gt=0)
    price: int = Field(default=0, ge=0)


class DataConfig(BaseModel):
    """Where bookings are read from."""
    bookings_file: Optional[Path] = None
    api_base_url: Optional[str] = None


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: Optional[str] = None
    booking: BookingRulesConfig = Field(default_factory=BookingRulesConfig)
    business_hours: Dict[str, DayHoursConfig] = Field(default_factory=_default_business_hours)
    services: List[ServiceConfig] = Field(default_factory=list)
    data: DataConfig = Field(default_factory=DataConfig)

    @field_validator("business_hours")
    @classmethod
    def validate_weekdays(cls, value: Dict[str, DayHoursConfig]) -> Dict[str, DayHoursConfig]:
        """Ensure keys are weekday names; normalise them to lowercase."""
        normalized: Dict[str, DayHoursConfig] = {}
        for name, hours in value.items():
            key = name.lower()
            if key not in WEEKDAY_NAMES:
                raise ValueError(f"Unknown weekday '{name}' in business_hours")
            normalized[key] = hours
        return normalized

    @field_validator("services")
    @classmethod
    def validate_services(cls, value: List[ServiceConfig]) -> List[ServiceConfig]:
        """Ensure service keys are unique."""
        seen: set[str] = set()
        for service in value:
            key = service.key.lower()
            if key in seen:
                raise ValueError(f"Duplicate service key detected: {service.key}")
            seen.add(key)
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        logger.debug("Loaded configuration from %s", config_path)
        return cls(**data)

    def get_business_hours(self) -> BusinessHours:
        return BusinessHours(days={
            name: hours.to_day_hours() for name, hours in self.business_hours.items()
        })

    def build_engine(self, business_hours: Optional[BusinessHours] = None) -> AvailabilityEngine:
        """Create an engine from these rules, optionally with fresher business hours."""
        return AvailabilityEngine(
            business_hours=business_hours or self.get_business_hours(),
            buffer_minutes=self.booking.buffer_minutes,
            slot_granularity_minutes=self.booking.slot_granularity_minutes,
            timezone=self.timezone,
        )

    def find_service(self, key: str) -> ServiceConfig | None:
        """Find a service by key or display name."""
        for service in self.services:
            if service.key.lower() == key.lower() or service.name.lower() == key.lower():
                return service
        return None

    def resolve_services(self, keys: Sequence[str]) -> List[ServiceConfig]:
        """
        Resolve service identifiers to catalogue entries.

        Raises:
            ValueError: If no keys are given or any key is unknown
        """
        if not keys:
            raise ValueError("No services provided.")

        resolved: List[ServiceConfig] = []
        unknown: List[str] = []
        for key in keys:
            service = self.find_service(key)
            if service is None:
                unknown.append(key)
            else:
                resolved.append(service)

        if unknown:
            missing = ", ".join(sorted(set(unknown)))
            raise ValueError(
                f"Unknown service(s): {missing}. "
                "Ensure they exist in the services section of the configuration."
            )

        return resolved


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """
    Load the given config file, or the default one when present.

    An explicit path must exist; without one the built-in defaults are used
    when no ``config.yaml`` is found.
    """
    if config_path is not None:
        return AppConfig.load_from_yaml(config_path)

    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)

    logger.info("No config.yaml found, using built-in defaults")
    return AppConfig()
