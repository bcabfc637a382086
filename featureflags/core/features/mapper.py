"""
Feature definition mapping.

Turns a stored FeatureFlag into the FeatureDefinition a filter runtime
evaluates:

- status off      -> Disabled, no filters
- status on       -> Conditional, one configuration per filter
- no usable filter -> a single "AlwaysOn" configuration

Parameter keys are flattened configuration paths, e.g.:

    Percentage: Value
    TimeWindow: Start, End, Recurrence:Pattern:Type, Recurrence:Range:EndDate
    Targeting:  Audience:Users:0, Audience:Exclusion:Users:0
    JSON:       parameters:<path>

Mapping is pure: the same flag always produces the same output.
"""

import json
from typing import Any

import structlog

from featureflags.utils.timezone import format_http_date

from .interfaces import (
    FeatureDefinition,
    FeatureFlag,
    FeatureStatus,
    Filter,
    FilterConfiguration,
    JsonFilter,
    PercentageFilter,
    RecurrencePatternType,
    RecurrenceRangeType,
    RequirementType,
    TargetingFilter,
    TimeWindowFilter,
    DayOfWeek,
    UnsupportedFilterTypeError,
)

logger = structlog.get_logger()

ALWAYS_ON = "AlwaysOn"
TARGETING = "Targeting"
TIME_WINDOW = "TimeWindow"
PERCENTAGE = "Percentage"


def map_flag(flag: FeatureFlag) -> FeatureDefinition:
    """
    Map a stored flag to its evaluation-ready definition.

    Raises:
        UnsupportedFilterTypeError: a filter is not one of the known variants
    """
    if not flag.status:
        return FeatureDefinition(
            name=flag.name,
            status=FeatureStatus.DISABLED,
            requirement_type=_map_requirement_type(flag.requirement_type),
        )

    enabled_for = []
    for flag_filter in flag.filters:
        configuration = map_filter(flag_filter)
        if configuration is not None:
            enabled_for.append(configuration)

    if not enabled_for:
        enabled_for.append(FilterConfiguration(name=ALWAYS_ON))

    return FeatureDefinition(
        name=flag.name,
        status=FeatureStatus.CONDITIONAL,
        requirement_type=_map_requirement_type(flag.requirement_type),
        enabled_for=tuple(enabled_for),
    )


def map_status_only(flag: FeatureFlag) -> FeatureDefinition:
    """Map a flag by its status alone, ignoring filters."""
    if not flag.status:
        return FeatureDefinition(name=flag.name, status=FeatureStatus.DISABLED)
    return FeatureDefinition(name=flag.name, enabled_for=(FilterConfiguration(name=ALWAYS_ON),))


def map_filter(flag_filter: Filter) -> FilterConfiguration | None:
    """
    Map one filter. Returns None for JSON filters that cannot be used.
    """
    if isinstance(flag_filter, TargetingFilter):
        return FilterConfiguration(name=TARGETING, parameters=_targeting_parameters(flag_filter))
    if isinstance(flag_filter, TimeWindowFilter):
        return FilterConfiguration(name=TIME_WINDOW, parameters=_time_window_parameters(flag_filter))
    if isinstance(flag_filter, PercentageFilter):
        value = flag_filter.value if flag_filter.value is not None else 0
        return FilterConfiguration(name=PERCENTAGE, parameters={"Value": str(value)})
    if isinstance(flag_filter, JsonFilter):
        return _map_json_filter(flag_filter)

    raise UnsupportedFilterTypeError(getattr(flag_filter, "filter_type", type(flag_filter).__name__))


def _map_requirement_type(requirement_type: RequirementType) -> RequirementType:
    return RequirementType.ALL if requirement_type == RequirementType.ALL else RequirementType.ANY


# ============================================================
# TARGETING
# ============================================================

def _targeting_parameters(flag_filter: TargetingFilter) -> dict[str, str]:
    parameters = {}

    included = [u for u in flag_filter.included_users if u and u.strip()]
    for i, user in enumerate(included):
        parameters[f"Audience:Users:{i}"] = user

    excluded = [u for u in flag_filter.excluded_users if u and u.strip()]
    for i, user in enumerate(excluded):
        parameters[f"Audience:Exclusion:Users:{i}"] = user

    return parameters


# ============================================================
# TIME WINDOW
# ============================================================

def _time_window_parameters(flag_filter: TimeWindowFilter) -> dict[str, str]:
    parameters = {}

    if flag_filter.start is not None:
        parameters["Start"] = format_http_date(flag_filter.start)
    if flag_filter.end is not None:
        parameters["End"] = format_http_date(flag_filter.end)

    if flag_filter.recurrence_type is not None:
        parameters.update(_pattern_parameters(flag_filter))
    if flag_filter.recurrence_range_type is not None:
        parameters.update(_range_parameters(flag_filter))

    return parameters


def _pattern_parameters(flag_filter: TimeWindowFilter) -> dict[str, str]:
    is_weekly = flag_filter.recurrence_type == RecurrencePatternType.WEEKLY
    interval = flag_filter.recurrence_interval if flag_filter.recurrence_interval is not None else 1

    parameters = {
        "Recurrence:Pattern:Type": flag_filter.recurrence_type.value,
        "Recurrence:Pattern:Interval": str(interval),
    }

    if is_weekly:
        for i, day in enumerate(flag_filter.days_of_week):
            parameters[f"Recurrence:Pattern:DaysOfWeek:{i}"] = day.value

    first_day = flag_filter.first_day_of_week if is_weekly and flag_filter.first_day_of_week else DayOfWeek.SUNDAY
    parameters["Recurrence:Pattern:FirstDayOfWeek"] = first_day.value

    return parameters


def _range_parameters(flag_filter: TimeWindowFilter) -> dict[str, str]:
    range_type = flag_filter.recurrence_range_type
    parameters = {"Recurrence:Range:Type": range_type.value}

    if range_type == RecurrenceRangeType.END_DATE and flag_filter.recurrence_end_date is not None:
        parameters["Recurrence:Range:EndDate"] = format_http_date(flag_filter.recurrence_end_date)

    if range_type == RecurrenceRangeType.NUMBERED and flag_filter.recurrence_occurrences is not None:
        parameters["Recurrence:Range:NumberOfOccurrences"] = str(flag_filter.recurrence_occurrences)

    return parameters


# ============================================================
# JSON
# ============================================================

def parse_json_filter(raw: str | None) -> dict[str, Any] | None:
    """
    Parse a JSON filter body.

    Returns the object when it parses and has a non-blank string name,
    otherwise None.
    """
    if not raw or not raw.strip():
        return None
    try:
        body = json.loads(raw)
    except (ValueError, RecursionError):
        return None
    if not isinstance(body, dict):
        return None

    name = _get_ignore_case(body, "name")
    if not isinstance(name, str) or not name.strip():
        return None
    return body


def _map_json_filter(flag_filter: JsonFilter) -> FilterConfiguration | None:
    body = parse_json_filter(flag_filter.json)
    if body is None:
        # Validation rejects these on save; reads must still evaluate
        logger.debug("Skipping unusable JSON filter", filter_id=flag_filter.id)
        return None

    parameters: dict[str, str] = {}
    raw_parameters = _get_ignore_case(body, "parameters")
    if raw_parameters is not None:
        _flatten("parameters", raw_parameters, parameters)

    return FilterConfiguration(name=_get_ignore_case(body, "name"), parameters=parameters)


def _get_ignore_case(body: dict[str, Any], key: str) -> Any:
    if key in body:
        return body[key]
    for k, v in body.items():
        if k.lower() == key:
            return v
    return None


def _flatten(prefix: str, value: Any, out: dict[str, str]) -> None:
    # Explicit stack: parsed bodies can nest deeper than the recursion limit
    stack = [(prefix, value)]
    while stack:
        path, node = stack.pop()
        if isinstance(node, dict):
            children = [(f"{path}:{key}", child) for key, child in node.items()]
        elif isinstance(node, list):
            children = [(f"{path}:{i}", child) for i, child in enumerate(node)]
        else:
            out[path] = _scalar(node)
            continue
        stack.extend(reversed(children))


def _scalar(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, str):
        return value
    return json.dumps(value)
