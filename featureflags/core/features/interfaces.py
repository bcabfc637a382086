"""
Feature Flag Interfaces - Core abstractions.

These define the stored flag shape, the evaluation-ready definition
consumed by filter runtimes, and the contracts for flag stores and
definition providers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, ClassVar, Union


# ============================================================
# ENUMS
# ============================================================

class FilterType(str, Enum):
    """Storage discriminator for filter variants."""

    TARGETING = "Targeting"
    TIME_WINDOW = "TimeWindow"
    PERCENTAGE = "Percentage"
    JSON = "JSON"


class RequirementType(str, Enum):
    """Whether any or all filters must pass for a flag to be enabled."""

    ANY = "Any"
    ALL = "All"


class FeatureStatus(str, Enum):
    """Runtime status of a definition."""

    CONDITIONAL = "Conditional"
    DISABLED = "Disabled"


class RecurrencePatternType(str, Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"


class RecurrenceRangeType(str, Enum):
    END_DATE = "EndDate"
    NUMBERED = "Numbered"


class DayOfWeek(str, Enum):
    """Days of the week, numbered from Sunday = 0."""

    SUNDAY = "Sunday"
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"

    @property
    def number(self) -> int:
        return _DAY_NUMBERS[self]

    @classmethod
    def from_datetime(cls, dt: datetime) -> "DayOfWeek":
        # datetime.weekday() is Monday = 0
        return _DAYS[(dt.weekday() + 1) % 7]

    @classmethod
    def parse(cls, value: str | None) -> "DayOfWeek | None":
        """Case-insensitive lookup by name. Returns None when unknown."""
        if not value:
            return None
        return _DAYS_BY_NAME.get(value.strip().lower())


_DAYS = list(DayOfWeek)
_DAY_NUMBERS = {day: number for number, day in enumerate(_DAYS)}
_DAYS_BY_NAME = {day.value.lower(): day for day in _DAYS}


# ============================================================
# EXCEPTIONS
# ============================================================

class FeatureFlagError(Exception):
    """Base error for the feature flag engine."""


class UnsupportedFilterTypeError(FeatureFlagError):
    """
    A filter outside the known variant set reached the engine.

    Points at corrupt storage rather than bad user input, so it is never
    converted into a validation result.
    """

    def __init__(self, filter_type: Any):
        self.filter_type = filter_type
        super().__init__(f"Unsupported filter type: {filter_type!r}")


class ConfigurationError(FeatureFlagError):
    """Invalid engine configuration (missing endpoint, key, ...)."""


# ============================================================
# FILTER VARIANTS
# ============================================================

@dataclass(frozen=True)
class TargetingFilter:
    """Enable for listed users, never for excluded ones."""
    id: int | None = None
    included_users: tuple[str, ...] = ()
    excluded_users: tuple[str, ...] = ()

    filter_type: ClassVar[FilterType] = FilterType.TARGETING


@dataclass(frozen=True)
class TimeWindowFilter:
    """
    Enable between start and end, optionally recurring.

    Attributes:
        start / end: Window bounds (UTC). Either may be open.
        recurrence_type: Daily or Weekly repetition of the window
        recurrence_interval: Days/weeks between occurrences
        days_of_week: Weekly only - days the window opens on
        first_day_of_week: Weekly only - start of the week
        recurrence_range_type: How the recurrence ends
        recurrence_end_date: For EndDate ranges
        recurrence_occurrences: For Numbered ranges
    """
    id: int | None = None
    start: datetime | None = None
    end: datetime | None = None
    recurrence_type: RecurrencePatternType | None = None
    recurrence_interval: int | None = None
    days_of_week: tuple[DayOfWeek, ...] = ()
    first_day_of_week: DayOfWeek | None = None
    recurrence_range_type: RecurrenceRangeType | None = None
    recurrence_end_date: datetime | None = None
    recurrence_occurrences: int | None = None

    filter_type: ClassVar[FilterType] = FilterType.TIME_WINDOW


@dataclass(frozen=True)
class PercentageFilter:
    """Enable for a percentage (0-100) of subjects."""
    id: int | None = None
    value: int | None = None

    filter_type: ClassVar[FilterType] = FilterType.PERCENTAGE


@dataclass(frozen=True)
class JsonFilter:
    """
    Free-form filter: {"name": "...", "parameters": {...}}.

    Lets flags use custom filters registered with the runtime.
    """
    id: int | None = None
    json: str | None = None

    filter_type: ClassVar[FilterType] = FilterType.JSON


Filter = Union[TargetingFilter, TimeWindowFilter, PercentageFilter, JsonFilter]


# ============================================================
# STORED FLAG
# ============================================================

@dataclass(frozen=True)
class FeatureFlag:
    """
    Feature flag as stored.

    Attributes:
        id: Store identifier (None for a flag not yet saved)
        name: Unique name (max 100 chars)
        status: Master on/off switch
        requirement_type: How multiple filters combine
        updated_date: Optimistic concurrency token
        filters: Ordered filters; position is the filter index
    """
    name: str
    id: int | None = None
    status: bool = False
    requirement_type: RequirementType = RequirementType.ANY
    updated_date: datetime | None = None
    filters: tuple[Filter, ...] = ()


MESSAGE_SAVED = "Feature flag saved."
MESSAGE_INVALID_ID = "Invalid feature flag id."
MESSAGE_CONCURRENCY = "The feature flag was changed by another user. Reload it and try again."
MESSAGE_DUPLICATE_NAME = "A feature flag with this name already exists."
MESSAGE_VALIDATION_FAILED = "The feature flag has validation errors."


@dataclass(frozen=True)
class SaveResult:
    """Outcome of a save. Errors are set when validation rejected the flag."""
    success: bool
    message: str
    flag: FeatureFlag | None = None
    errors: tuple[Any, ...] = ()

    @classmethod
    def ok(cls, message: str, flag: FeatureFlag | None = None) -> "SaveResult":
        return cls(success=True, message=message, flag=flag)

    @classmethod
    def fail(cls, message: str, errors: tuple[Any, ...] = ()) -> "SaveResult":
        return cls(success=False, message=message, errors=errors)


# ============================================================
# EVALUATION-READY DEFINITION (WIRE FORMAT)
# ============================================================

# Integer codes used by runtimes that serialize enums as numbers
_REQUIREMENT_CODES = {0: RequirementType.ANY, 1: RequirementType.ALL}
_STATUS_CODES = {0: FeatureStatus.CONDITIONAL, 1: FeatureStatus.DISABLED}


@dataclass(frozen=True)
class FilterConfiguration:
    """A named, parameterized filter entry of a definition."""
    name: str
    parameters: dict[str, str] = field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        return {"name": self.name, "parameters": dict(self.parameters)}

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "FilterConfiguration":
        raw = data.get("parameters") or {}
        if isinstance(raw, list):
            # [{"key": "Value", "value": "42"}, ...]
            pairs = ((item.get("key"), item.get("value")) for item in raw)
            parameters = {k: str(v) for k, v in pairs if k and v is not None}
        else:
            parameters = {str(k): "" if v is None else str(v) for k, v in raw.items()}
        return cls(name=str(data.get("name") or ""), parameters=parameters)


@dataclass(frozen=True)
class FeatureDefinition:
    """
    Evaluation-ready flag consumed by a filter runtime.

    A definition with no filters (the default) never evaluates to
    enabled, which is what callers get for unknown flag names.
    """
    name: str
    status: FeatureStatus = FeatureStatus.CONDITIONAL
    requirement_type: RequirementType = RequirementType.ANY
    enabled_for: tuple[FilterConfiguration, ...] = ()
    allocation: dict[str, Any] | None = None
    variants: tuple[dict[str, Any], ...] = ()
    telemetry: dict[str, Any] | None = None

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the JSON shape served by GET /features."""
        return {
            "name": self.name,
            "enabledFor": [f.to_wire() for f in self.enabled_for],
            "requirementType": self.requirement_type.value,
            "status": self.status.value,
            "allocation": self.allocation,
            "variants": list(self.variants),
            "telemetry": self.telemetry,
        }

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "FeatureDefinition":
        """
        Parse one flag object of the wire format.

        Enum fields may be names ("All") or integer codes (1).
        """
        return cls(
            name=str(data["name"]),
            status=_parse_wire_enum(FeatureStatus, _STATUS_CODES, data.get("status"), FeatureStatus.CONDITIONAL),
            requirement_type=_parse_wire_enum(
                RequirementType, _REQUIREMENT_CODES, data.get("requirementType"), RequirementType.ANY
            ),
            enabled_for=tuple(FilterConfiguration.from_wire(f) for f in data.get("enabledFor") or []),
            allocation=data.get("allocation"),
            variants=tuple(data.get("variants") or ()),
            telemetry=data.get("telemetry"),
        )


def _parse_wire_enum(enum_cls: type[Enum], codes: dict[int, Any], value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, int) and not isinstance(value, bool):
        return codes.get(value, default)
    for member in enum_cls:
        if member.value.lower() == str(value).lower():
            return member
    return default


# ============================================================
# CONTRACTS
# ============================================================

class FlagStore(ABC):
    """
    Abstract storage for feature flags and their filters.

    Implementations:
    - MemoryFlagStore: In-memory (dev/testing)
    - DatabaseFlagStore: SQLAlchemy (PostgreSQL, SQLite)
    """

    @abstractmethod
    async def get_all_flags(self) -> list[FeatureFlag]:
        """List all flags with their filters."""
        pass

    @abstractmethod
    async def get_flag_by_name(self, name: str) -> FeatureFlag | None:
        """Get a flag by its unique name."""
        pass

    @abstractmethod
    async def get_flag_by_id(self, flag_id: int) -> FeatureFlag | None:
        """Get a flag by id."""
        pass

    @abstractmethod
    async def save_flag(self, flag: FeatureFlag) -> SaveResult:
        """
        Create (id is None) or update a flag together with its filters.

        Fails without raising on unknown id, stale updated_date or a
        duplicate name.
        """
        pass

    @abstractmethod
    async def delete_flag(self, flag_id: int) -> bool:
        """Delete a flag and its filters."""
        pass


class FeatureDefinitionProvider(ABC):
    """
    Source of definitions for a filter runtime.

    Implementations never raise for backend failures or unknown names.
    """

    @abstractmethod
    def get_all_feature_definitions(self) -> AsyncIterator[FeatureDefinition]:
        """Stream one definition per flag. Each call starts a new stream."""
        pass

    @abstractmethod
    async def get_feature_definition(self, name: str) -> FeatureDefinition:
        """Get a definition by name, or an empty one when unknown."""
        pass
