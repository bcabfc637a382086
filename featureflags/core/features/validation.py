"""
Flag filter validation.

Runs before a flag is saved and reports every problem with its filters,
each tied to the filter's position so an editor can highlight the right
field:

    errors = validate_flag(flag)
    for error in errors:
        print(error.path, error.message)   # filters[1].value ...

Validation never raises for bad input and never mutates it. JSON filters
are checked strictly here even though the mapper silently skips broken
ones at read time.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .interfaces import (
    FeatureFlag,
    Filter,
    JsonFilter,
    PercentageFilter,
    TargetingFilter,
    TimeWindowFilter,
    UnsupportedFilterTypeError,
)
from .mapper import parse_json_filter
from .recurrence import TimeWindowError, validate_recurrence


NAME_MAX_LENGTH = 100
PERCENTAGE_MIN = 0
PERCENTAGE_MAX = 100


class ValidationErrorCode(str, Enum):
    NAME_REQUIRED = "name_required"
    NAME_TOO_LONG = "name_too_long"
    TARGETING_NO_USERS = "targeting_no_users"
    PERCENTAGE_OUT_OF_RANGE = "percentage_out_of_range"
    JSON_REQUIRED = "json_required"
    JSON_INVALID_FORMAT = "json_invalid_format"

    # Time window codes mirror TimeWindowError
    TIME_START_OR_END_REQUIRED = TimeWindowError.START_OR_END_REQUIRED.value
    TIME_END_BEFORE_START = TimeWindowError.END_BEFORE_START.value
    TIME_END_EQUALS_START = TimeWindowError.END_EQUALS_START.value
    RECURRENCE_INTERVAL_REQUIRED = TimeWindowError.INTERVAL_REQUIRED.value
    RECURRENCE_DAYS_OF_WEEK_REQUIRED = TimeWindowError.DAYS_OF_WEEK_REQUIRED.value
    RECURRENCE_FIRST_DAY_OF_WEEK_REQUIRED = TimeWindowError.FIRST_DAY_OF_WEEK_REQUIRED.value
    RECURRENCE_END_DATE_REQUIRED = TimeWindowError.END_DATE_REQUIRED.value
    RECURRENCE_END_DATE_BEFORE_START = TimeWindowError.END_DATE_BEFORE_START.value
    RECURRENCE_OCCURRENCES_REQUIRED = TimeWindowError.OCCURRENCES_REQUIRED.value
    TIME_WINDOW_DURATION_TOO_LONG = TimeWindowError.DURATION_TOO_LONG.value
    TIME_WINDOW_DURATION_EXCEEDS_FREQUENCY = TimeWindowError.DURATION_EXCEEDS_FREQUENCY.value
    RECURRENCE_START_NOT_MATCHED = TimeWindowError.START_NOT_MATCHED.value


MESSAGES: dict[ValidationErrorCode, str] = {
    ValidationErrorCode.NAME_REQUIRED: "The feature flag name is required.",
    ValidationErrorCode.NAME_TOO_LONG: f"The feature flag name cannot be longer than {NAME_MAX_LENGTH} characters.",
    ValidationErrorCode.TARGETING_NO_USERS: "Add at least one included or excluded user.",
    ValidationErrorCode.PERCENTAGE_OUT_OF_RANGE: (
        f"The percentage must be between {PERCENTAGE_MIN} and {PERCENTAGE_MAX}."
    ),
    ValidationErrorCode.JSON_REQUIRED: "The JSON filter body is required.",
    ValidationErrorCode.JSON_INVALID_FORMAT: 'The JSON filter must be an object with a "name" property.',
}


@dataclass(frozen=True)
class FilterValidationError:
    """
    One validation failure.

    Attributes:
        index: Position of the filter in the flag, None for flag-level errors
        field: Offending field of the filter (or flag)
        code: Machine-readable error code
        message: Human-readable description
    """
    index: int | None
    field: str
    code: ValidationErrorCode
    message: str

    @property
    def path(self) -> str:
        if self.index is None:
            return self.field
        return f"filters[{self.index}].{self.field}"


def _error(index: int | None, field: str, code: ValidationErrorCode) -> FilterValidationError:
    return FilterValidationError(index=index, field=field, code=code, message=MESSAGES[code])


def validate_flag(flag: FeatureFlag) -> list[FilterValidationError]:
    """Validate a flag's own fields and all of its filters."""
    errors = []

    if not flag.name or not flag.name.strip():
        errors.append(_error(None, "name", ValidationErrorCode.NAME_REQUIRED))
    elif len(flag.name) > NAME_MAX_LENGTH:
        errors.append(_error(None, "name", ValidationErrorCode.NAME_TOO_LONG))

    errors.extend(validate_filters(flag.filters))
    return errors


def validate_filters(filters: Iterable[Filter]) -> list[FilterValidationError]:
    """
    Validate a list of filters.

    Returns:
        Every failure found, in filter order; empty when all are valid

    Raises:
        UnsupportedFilterTypeError: a filter is not one of the known variants
    """
    errors = []
    for index, flag_filter in enumerate(filters):
        errors.extend(validate_filter(index, flag_filter))
    return errors


def validate_filter(index: int, flag_filter: Filter) -> list[FilterValidationError]:
    if isinstance(flag_filter, TargetingFilter):
        return _validate_targeting(index, flag_filter)
    if isinstance(flag_filter, TimeWindowFilter):
        return _validate_time_window(index, flag_filter)
    if isinstance(flag_filter, PercentageFilter):
        return _validate_percentage(index, flag_filter)
    if isinstance(flag_filter, JsonFilter):
        return _validate_json(index, flag_filter)

    raise UnsupportedFilterTypeError(getattr(flag_filter, "filter_type", type(flag_filter).__name__))


def _has_user(users: tuple[str, ...]) -> bool:
    return any(user and user.strip() for user in users)


def _validate_targeting(index: int, flag_filter: TargetingFilter) -> list[FilterValidationError]:
    if _has_user(flag_filter.included_users) or _has_user(flag_filter.excluded_users):
        return []
    return [_error(index, "included_users", ValidationErrorCode.TARGETING_NO_USERS)]


def _validate_time_window(index: int, flag_filter: TimeWindowFilter) -> list[FilterValidationError]:
    return [
        FilterValidationError(
            index=index,
            field=violation.field,
            code=ValidationErrorCode(violation.error.value),
            message=violation.message,
        )
        for violation in validate_recurrence(flag_filter)
    ]


def _validate_percentage(index: int, flag_filter: PercentageFilter) -> list[FilterValidationError]:
    value = flag_filter.value
    if value is None or value < PERCENTAGE_MIN or value > PERCENTAGE_MAX:
        return [_error(index, "value", ValidationErrorCode.PERCENTAGE_OUT_OF_RANGE)]
    return []


def _validate_json(index: int, flag_filter: JsonFilter) -> list[FilterValidationError]:
    if not flag_filter.json or not flag_filter.json.strip():
        return [_error(index, "json", ValidationErrorCode.JSON_REQUIRED)]
    if parse_json_filter(flag_filter.json) is None:
        return [_error(index, "json", ValidationErrorCode.JSON_INVALID_FORMAT)]
    return []
