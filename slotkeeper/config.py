"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import ServiceSpec, StaffMember, TimeOfDay, WorkingInterval
from .domain.slot_calculator import DEFAULT_GRANULARITY_MINUTES
from .domain.time_arithmetic import parse_time_of_day


class ScheduleEntry(BaseModel):
    """Working hours of a staff member for one weekday (0=Monday)."""
    weekday: int
    start: str
    end: str
    active: bool = True

    @field_validator("weekday")
    @classmethod
    def validate_weekday(cls, v: int) -> int:
        """Validate weekday is between 0 and 6."""
        if v not in range(7):
            raise ValueError(f"Weekday must be between 0 and 6, got {v}")
        return v

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Ensure times are HH:MM and normalise them."""
        return str(parse_time_of_day(v))

    @model_validator(mode="after")
    def validate_order(self) -> "ScheduleEntry":
        """Ensure an active window opens before it closes."""
        if self.active and self.start_time() >= self.end_time():
            raise ValueError(f"Schedule start {self.start} must be before end {self.end}")
        return self

    def start_time(self) -> TimeOfDay:
        return parse_time_of_day(self.start)

    def end_time(self) -> TimeOfDay:
        return parse_time_of_day(self.end)


class ServiceConfig(BaseModel):
    """Bookable service offered by the business."""
    id: str
    name: str
    duration_minutes: int

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure service duration is positive."""
        if value <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        return value

    def to_spec(self) -> ServiceSpec:
        return ServiceSpec(id=self.id, name=self.name, duration_minutes=self.duration_minutes)


class StaffConfig(BaseModel):
    """Staff member with the services they perform and their weekly hours."""
    id: str
    name: str
    active: bool = True
    services: List[str] = Field(default_factory=list)
    schedule: List[ScheduleEntry] = Field(default_factory=list)

    @field_validator("schedule")
    @classmethod
    def validate_schedule(cls, value: List[ScheduleEntry]) -> List[ScheduleEntry]:
        """Allow one entry per weekday."""
        weekdays = [entry.weekday for entry in value]
        duplicates = sorted({day for day in weekdays if weekdays.count(day) > 1})
        if duplicates:
            raise ValueError(f"Duplicate schedule entries for weekday(s): {duplicates}")
        return value

    def to_member(self) -> StaffMember:
        return StaffMember(id=self.id, name=self.name, active=self.active)

    def working_intervals(self) -> List[WorkingInterval]:
        return [
            WorkingInterval(
                staff_id=self.id,
                weekday=entry.weekday,
                start_time=entry.start_time(),
                end_time=entry.end_time(),
                active=entry.active,
            )
            for entry in self.schedule
        ]


class BusinessConfig(BaseModel):
    """Booking rules and catalog of one business."""
    id: str
    name: str = ""
    booking_buffer_minutes: int = 0
    max_advance_booking_days: int = 30
    slot_granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES
    cancellation_window_hours: int = 2
    services: List[ServiceConfig] = Field(default_factory=list)
    staff: List[StaffConfig] = Field(default_factory=list)

    @field_validator("booking_buffer_minutes", "max_advance_booking_days", "cancellation_window_hours")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        """Ensure limits are not negative."""
        if value < 0:
            raise ValueError(f"Value must not be negative, got {value}")
        return value

    @field_validator("slot_granularity_minutes")
    @classmethod
    def validate_granularity(cls, value: int) -> int:
        """Keep the slot grid between one minute and four hours."""
        if not 1 <= value <= 240:
            raise ValueError(f"slot_granularity_minutes must be between 1 and 240, got {value}")
        return value

    @model_validator(mode="after")
    def validate_catalog(self) -> "BusinessConfig":
        """Ensure ids are unique and staff only reference known services."""
        service_ids = [service.id for service in self.services]
        if len(set(service_ids)) != len(service_ids):
            raise ValueError(f"Duplicate service id in business {self.id}")

        staff_ids = [member.id for member in self.staff]
        if len(set(staff_ids)) != len(staff_ids):
            raise ValueError(f"Duplicate staff id in business {self.id}")

        known = set(service_ids)
        for member in self.staff:
            unknown = [sid for sid in member.services if sid not in known]
            if unknown:
                raise ValueError(
                    f"Staff member {member.id} references unknown service(s): {', '.join(unknown)}"
                )
        return self

    def display_name(self) -> str:
        return self.name or self.id

    def find_service(self, service_id: str) -> ServiceConfig | None:
        for service in self.services:
            if service.id == service_id:
                return service
        return None

    def find_staff(self, staff_id: str) -> StaffConfig | None:
        for member in self.staff:
            if member.id == staff_id:
                return member
        return None


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Berlin"
    reservations_file: Optional[Path] = None
    businesses: List[BusinessConfig] = Field(default_factory=list)

    @field_validator("businesses")
    @classmethod
    def validate_businesses(cls, value: List[BusinessConfig]) -> List[BusinessConfig]:
        """Ensure business ids and staff ids are unique across the file."""
        seen_businesses: set[str] = set()
        seen_staff: set[str] = set()
        for business in value:
            if business.id in seen_businesses:
                raise ValueError(f"Duplicate business id detected: {business.id}")
            seen_businesses.add(business.id)
            for member in business.staff:
                if member.id in seen_staff:
                    raise ValueError(f"Staff id used by more than one business: {member.id}")
                seen_staff.add(member.id)
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        A relative ``reservations_file`` is resolved against the config
        file's directory.

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

        config = cls(**data)
        if config.reservations_file is not None and not config.reservations_file.is_absolute():
            config = config.model_copy(
                update={"reservations_file": config_path.parent / config.reservations_file}
            )
        return config

    def find_business(self, business_id: str) -> BusinessConfig | None:
        """Find a business by its id."""
        for business in self.businesses:
            if business.id == business_id:
                return business
        return None


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
