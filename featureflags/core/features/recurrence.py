"""
Time window recurrence validation.

Checks that a TimeWindow filter describes a schedule a runtime can
actually follow:

Structural checks (missing or contradictory fields):
- start and/or end present, end after start
- positive interval for any recurrence pattern
- days of week and first day of week for weekly patterns
- end date / occurrence count for the matching range type

Compliance checks (pattern set, start and end both present):
- the window is shorter than ten years
- the window fits inside one recurrence period
- for weekly patterns, the window fits between two consecutive
  occurrences and the start date falls on one of the listed days

Every check runs when its own inputs are available, so a single call
reports all problems at once.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from featureflags.utils.timezone import ensure_utc

from .interfaces import (
    DayOfWeek,
    RecurrencePatternType,
    RecurrenceRangeType,
    TimeWindowFilter,
)


MAX_WINDOW_DURATION = timedelta(days=3650)
DAYS_PER_WEEK = 7


class TimeWindowError(str, Enum):
    START_OR_END_REQUIRED = "time_start_or_end_required"
    END_BEFORE_START = "time_end_before_start"
    END_EQUALS_START = "time_end_equals_start"
    INTERVAL_REQUIRED = "recurrence_interval_required"
    DAYS_OF_WEEK_REQUIRED = "recurrence_days_of_week_required"
    FIRST_DAY_OF_WEEK_REQUIRED = "recurrence_first_day_of_week_required"
    END_DATE_REQUIRED = "recurrence_end_date_required"
    END_DATE_BEFORE_START = "recurrence_end_date_before_start"
    OCCURRENCES_REQUIRED = "recurrence_occurrences_required"
    DURATION_TOO_LONG = "time_window_duration_too_long"
    DURATION_EXCEEDS_FREQUENCY = "time_window_duration_exceeds_frequency"
    START_NOT_MATCHED = "recurrence_start_not_matched"


MESSAGES: dict[TimeWindowError, str] = {
    TimeWindowError.START_OR_END_REQUIRED: "A start or an end time is required.",
    TimeWindowError.END_BEFORE_START: "The end time must be after the start time.",
    TimeWindowError.END_EQUALS_START: "The end time cannot be the same as the start time.",
    TimeWindowError.INTERVAL_REQUIRED: "The recurrence interval must be a positive number.",
    TimeWindowError.DAYS_OF_WEEK_REQUIRED: "Select at least one day of the week for a weekly recurrence.",
    TimeWindowError.FIRST_DAY_OF_WEEK_REQUIRED: "The first day of the week is required for a weekly recurrence.",
    TimeWindowError.END_DATE_REQUIRED: "The recurrence end date is required.",
    TimeWindowError.END_DATE_BEFORE_START: "The recurrence end date cannot be before the start time.",
    TimeWindowError.OCCURRENCES_REQUIRED: "The number of occurrences must be a positive number.",
    TimeWindowError.DURATION_TOO_LONG: "The time window must be shorter than ten years.",
    TimeWindowError.DURATION_EXCEEDS_FREQUENCY: "The time window is longer than the time between two occurrences.",
    TimeWindowError.START_NOT_MATCHED: "The start time does not fall on one of the selected days of the week.",
}


@dataclass(frozen=True)
class RecurrenceViolation:
    """A single problem with a time window, tied to the offending field."""
    error: TimeWindowError
    field: str

    @property
    def message(self) -> str:
        return MESSAGES[self.error]


def validate_recurrence(window: TimeWindowFilter) -> list[RecurrenceViolation]:
    """
    Validate a time window filter.

    Returns all violations found; an empty list means the window is
    consistent.
    """
    start = ensure_utc(window.start)
    end = ensure_utc(window.end)

    violations = _check_structure(window, start, end)

    if window.recurrence_type is not None and start is not None and end is not None:
        violations.extend(_check_compliance(window, start, end))

    return violations


# ============================================================
# STRUCTURAL CHECKS
# ============================================================

def _check_structure(
    window: TimeWindowFilter,
    start: datetime | None,
    end: datetime | None,
) -> list[RecurrenceViolation]:
    violations = []

    if start is None and end is None:
        violations.append(RecurrenceViolation(TimeWindowError.START_OR_END_REQUIRED, "start"))

    if start is not None and end is not None:
        if end < start:
            violations.append(RecurrenceViolation(TimeWindowError.END_BEFORE_START, "end"))
        elif end == start:
            violations.append(RecurrenceViolation(TimeWindowError.END_EQUALS_START, "end"))

    if window.recurrence_type is not None and not _has_valid_interval(window):
        violations.append(RecurrenceViolation(TimeWindowError.INTERVAL_REQUIRED, "recurrence_interval"))

    if window.recurrence_type == RecurrencePatternType.WEEKLY:
        if not window.days_of_week:
            violations.append(RecurrenceViolation(TimeWindowError.DAYS_OF_WEEK_REQUIRED, "days_of_week"))
        if window.first_day_of_week is None:
            violations.append(RecurrenceViolation(TimeWindowError.FIRST_DAY_OF_WEEK_REQUIRED, "first_day_of_week"))

    if window.recurrence_range_type == RecurrenceRangeType.END_DATE:
        end_date = ensure_utc(window.recurrence_end_date)
        if end_date is None:
            violations.append(RecurrenceViolation(TimeWindowError.END_DATE_REQUIRED, "recurrence_end_date"))
        elif start is not None and end_date < start:
            violations.append(RecurrenceViolation(TimeWindowError.END_DATE_BEFORE_START, "recurrence_end_date"))

    if window.recurrence_range_type == RecurrenceRangeType.NUMBERED:
        if window.recurrence_occurrences is None or window.recurrence_occurrences <= 0:
            violations.append(RecurrenceViolation(TimeWindowError.OCCURRENCES_REQUIRED, "recurrence_occurrences"))

    return violations


def _has_valid_interval(window: TimeWindowFilter) -> bool:
    return window.recurrence_interval is not None and window.recurrence_interval > 0


# ============================================================
# COMPLIANCE CHECKS
# ============================================================

def _check_compliance(
    window: TimeWindowFilter,
    start: datetime,
    end: datetime,
) -> list[RecurrenceViolation]:
    violations = []
    duration = end - start

    if duration >= MAX_WINDOW_DURATION:
        violations.append(RecurrenceViolation(TimeWindowError.DURATION_TOO_LONG, "end"))

    if _has_valid_interval(window):
        if window.recurrence_type == RecurrencePatternType.DAILY:
            exceeds = duration > timedelta(days=window.recurrence_interval)
        else:
            exceeds = _exceeds_weekly_frequency(window, duration)
        if exceeds:
            violations.append(RecurrenceViolation(TimeWindowError.DURATION_EXCEEDS_FREQUENCY, "end"))

    if window.recurrence_type == RecurrencePatternType.WEEKLY and window.days_of_week:
        # The window would never open on its own start date otherwise
        if DayOfWeek.from_datetime(start) not in window.days_of_week:
            violations.append(RecurrenceViolation(TimeWindowError.START_NOT_MATCHED, "start"))

    return violations


def _exceeds_weekly_frequency(window: TimeWindowFilter, duration: timedelta) -> bool:
    if duration > timedelta(weeks=window.recurrence_interval):
        return True

    if not window.days_of_week or window.first_day_of_week is None:
        return False

    gap = minimum_occurrence_gap(
        window.days_of_week,
        window.first_day_of_week,
        window.recurrence_interval,
    )
    return gap is not None and duration > gap


def minimum_occurrence_gap(
    days_of_week: tuple[DayOfWeek, ...],
    first_day_of_week: DayOfWeek,
    interval: int,
) -> timedelta | None:
    """
    Shortest time between two consecutive weekly occurrences.

    Days are ordered relative to the first day of the week. The gap from
    the last day back to the first one only counts when the pattern
    repeats every week; with a longer interval the next cycle is further
    away than any in-week gap.

    Returns None when a single day repeats every few weeks (no in-week
    gap exists).

    Example:
        minimum_occurrence_gap((MONDAY, TUESDAY), MONDAY, 1)
        # timedelta(days=1)
    """
    offsets = sorted({(day.number - first_day_of_week.number) % DAYS_PER_WEEK for day in days_of_week})

    gaps = [later - earlier for earlier, later in zip(offsets, offsets[1:])]
    if interval == 1:
        gaps.append(offsets[0] + DAYS_PER_WEEK - offsets[-1])

    if not gaps:
        return None
    return timedelta(days=min(gaps))
