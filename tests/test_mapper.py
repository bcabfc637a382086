"""
Tests for feature definition mapping.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import ClassVar

import pytest
from structlog.testing import capture_logs

from featureflags.core.features import (
    DayOfWeek,
    FeatureFlag,
    FeatureStatus,
    FilterConfiguration,
    JsonFilter,
    PercentageFilter,
    RecurrencePatternType,
    RecurrenceRangeType,
    RequirementType,
    TargetingFilter,
    TimeWindowFilter,
    UnsupportedFilterTypeError,
    map_flag,
    map_status_only,
    validate_filters,
)
from featureflags.core.features.mapper import _flatten


def enabled(*filters, **kwargs) -> FeatureFlag:
    return FeatureFlag(name="beta", status=True, filters=tuple(filters), **kwargs)


# ============ Status ============


def test_disabled_flag_maps_to_disabled_without_filters():
    """A disabled flag ignores its filters."""
    flag = FeatureFlag(
        name="beta",
        status=False,
        filters=(PercentageFilter(value=50), TargetingFilter(included_users=("alice",))),
    )

    definition = map_flag(flag)

    assert definition.name == "beta"
    assert definition.status == FeatureStatus.DISABLED
    assert definition.enabled_for == ()


def test_enabled_flag_without_filters_is_always_on():
    """An enabled flag without filters gets a single AlwaysOn filter."""
    definition = map_flag(enabled())

    assert definition.status == FeatureStatus.CONDITIONAL
    assert definition.enabled_for == (FilterConfiguration(name="AlwaysOn"),)


def test_only_invalid_json_filters_fall_back_to_always_on():
    """Unusable JSON filters are dropped, leaving AlwaysOn."""
    flag = enabled(JsonFilter(json=""), JsonFilter(json="{not json"), JsonFilter(json='{"parameters": {}}'))

    definition = map_flag(flag)

    assert [f.name for f in definition.enabled_for] == ["AlwaysOn"]
    assert definition.enabled_for[0].parameters == {}


def test_requirement_type_is_carried():
    """Any and All map to themselves."""
    assert map_flag(enabled(requirement_type=RequirementType.ALL)).requirement_type == RequirementType.ALL
    assert map_flag(enabled(requirement_type=RequirementType.ANY)).requirement_type == RequirementType.ANY


def test_filters_keep_their_order():
    """Filters map in index order."""
    flag = enabled(
        PercentageFilter(value=10),
        TargetingFilter(included_users=("alice",)),
        TimeWindowFilter(start=datetime(2025, 1, 1, tzinfo=timezone.utc)),
    )

    assert [f.name for f in map_flag(flag).enabled_for] == ["Percentage", "Targeting", "TimeWindow"]


def test_mapping_is_deterministic():
    """The same flag always produces the same definition."""
    flag = enabled(
        TargetingFilter(included_users=("a", "b")),
        JsonFilter(json='{"name": "Custom", "parameters": {"x": [1, 2]}}'),
    )

    assert map_flag(flag) == map_flag(flag)
    assert map_flag(flag).to_wire() == map_flag(flag).to_wire()


# ============ Targeting ============


def test_targeting_parameters():
    """Blank users are skipped and indices stay contiguous."""
    flag = enabled(TargetingFilter(included_users=("alice", " ", "bob"), excluded_users=("", "mallory")))

    configuration = map_flag(flag).enabled_for[0]

    assert configuration.name == "Targeting"
    assert configuration.parameters == {
        "Audience:Users:0": "alice",
        "Audience:Users:1": "bob",
        "Audience:Exclusion:Users:0": "mallory",
    }
    assert list(configuration.parameters) == [
        "Audience:Users:0",
        "Audience:Users:1",
        "Audience:Exclusion:Users:0",
    ]


# ============ Time window ============


def test_time_window_bounds_only():
    """Only present bounds are emitted, as RFC 1123 strings."""
    flag = enabled(TimeWindowFilter(start=datetime(2025, 1, 1, tzinfo=timezone.utc)))

    configuration = map_flag(flag).enabled_for[0]

    assert configuration.name == "TimeWindow"
    assert configuration.parameters == {"Start": "Wed, 01 Jan 2025 00:00:00 GMT"}


def test_time_window_naive_datetime_is_utc():
    """Naive datetimes are formatted as UTC."""
    flag = enabled(TimeWindowFilter(end=datetime(2025, 3, 15, 18, 30)))

    assert map_flag(flag).enabled_for[0].parameters == {"End": "Sat, 15 Mar 2025 18:30:00 GMT"}


def test_time_window_weekly_recurrence():
    """Weekly recurrence emits days, first day and the range."""
    flag = enabled(
        TimeWindowFilter(
            start=datetime(2025, 1, 6, 9, tzinfo=timezone.utc),
            end=datetime(2025, 1, 6, 17, tzinfo=timezone.utc),
            recurrence_type=RecurrencePatternType.WEEKLY,
            recurrence_interval=2,
            days_of_week=(DayOfWeek.MONDAY, DayOfWeek.THURSDAY),
            first_day_of_week=DayOfWeek.MONDAY,
            recurrence_range_type=RecurrenceRangeType.END_DATE,
            recurrence_end_date=datetime(2025, 6, 30, tzinfo=timezone.utc),
        )
    )

    assert map_flag(flag).enabled_for[0].parameters == {
        "Start": "Mon, 06 Jan 2025 09:00:00 GMT",
        "End": "Mon, 06 Jan 2025 17:00:00 GMT",
        "Recurrence:Pattern:Type": "Weekly",
        "Recurrence:Pattern:Interval": "2",
        "Recurrence:Pattern:DaysOfWeek:0": "Monday",
        "Recurrence:Pattern:DaysOfWeek:1": "Thursday",
        "Recurrence:Pattern:FirstDayOfWeek": "Monday",
        "Recurrence:Range:Type": "EndDate",
        "Recurrence:Range:EndDate": "Mon, 30 Jun 2025 00:00:00 GMT",
    }


def test_time_window_daily_defaults():
    """Daily patterns default the interval to 1 and the first day to Sunday."""
    flag = enabled(
        TimeWindowFilter(
            start=datetime(2025, 1, 1, tzinfo=timezone.utc),
            recurrence_type=RecurrencePatternType.DAILY,
            days_of_week=(DayOfWeek.FRIDAY,),
            first_day_of_week=DayOfWeek.MONDAY,
            recurrence_range_type=RecurrenceRangeType.NUMBERED,
            recurrence_occurrences=5,
        )
    )

    assert map_flag(flag).enabled_for[0].parameters == {
        "Start": "Wed, 01 Jan 2025 00:00:00 GMT",
        "Recurrence:Pattern:Type": "Daily",
        "Recurrence:Pattern:Interval": "1",
        "Recurrence:Pattern:FirstDayOfWeek": "Sunday",
        "Recurrence:Range:Type": "Numbered",
        "Recurrence:Range:NumberOfOccurrences": "5",
    }


def test_time_window_weekly_without_first_day_uses_sunday():
    """A weekly pattern without a first day emits Sunday."""
    flag = enabled(
        TimeWindowFilter(
            start=datetime(2025, 1, 5, tzinfo=timezone.utc),
            recurrence_type=RecurrencePatternType.WEEKLY,
            recurrence_interval=1,
            days_of_week=(DayOfWeek.SUNDAY,),
        )
    )

    parameters = map_flag(flag).enabled_for[0].parameters

    assert parameters["Recurrence:Pattern:FirstDayOfWeek"] == "Sunday"
    assert "Recurrence:Range:Type" not in parameters


# ============ Percentage ============


def test_percentage_value():
    """The value is emitted as text, missing values as 0."""
    flag = enabled(PercentageFilter(value=35), PercentageFilter(value=None))

    first, second = map_flag(flag).enabled_for

    assert first == FilterConfiguration(name="Percentage", parameters={"Value": "35"})
    assert second == FilterConfiguration(name="Percentage", parameters={"Value": "0"})


# ============ JSON ============


def test_json_filter_custom_filter():
    """A JSON filter becomes a named filter with parameters:* keys."""
    flag = enabled(JsonFilter(json='{"name":"CustomFilter","parameters":{"foo":"bar"}}'))

    configuration = map_flag(flag).enabled_for[0]

    assert configuration.name == "CustomFilter"
    assert configuration.parameters == {"parameters:foo": "bar"}


def test_json_filter_flattening():
    """Nested objects and arrays flatten into configuration paths."""
    flag = enabled(
        JsonFilter(
            json="""
            {
                "name": "Microsoft.Targeting",
                "parameters": {
                    "Audience": {"Users": ["a", "b"], "DefaultRolloutPercentage": 50},
                    "Strict": true,
                    "Note": null
                }
            }
            """
        )
    )

    configuration = map_flag(flag).enabled_for[0]

    assert configuration.name == "Microsoft.Targeting"
    assert configuration.parameters == {
        "parameters:Audience:Users:0": "a",
        "parameters:Audience:Users:1": "b",
        "parameters:Audience:DefaultRolloutPercentage": "50",
        "parameters:Strict": "True",
        "parameters:Note": "",
    }


def test_json_filter_without_parameters():
    """A JSON filter may omit parameters."""
    flag = enabled(JsonFilter(json='{"name": "Custom"}'))

    assert map_flag(flag).enabled_for == (FilterConfiguration(name="Custom"),)


def test_invalid_json_filter_skipped_next_to_valid_ones():
    """A broken JSON filter does not affect the other filters."""
    flag = enabled(JsonFilter(json="[1, 2]"), PercentageFilter(value=5))

    with capture_logs() as logs:
        definition = map_flag(flag)

    assert [f.name for f in definition.enabled_for] == ["Percentage"]
    assert any(log["event"] == "Skipping unusable JSON filter" for log in logs)


# ============ Unsupported ============


@dataclass(frozen=True)
class RegexFilter:
    id: int | None = None
    pattern: str = ""

    filter_type: ClassVar[str] = "Regex"


def test_unknown_filter_is_fatal():
    """Filters outside the known set raise."""
    with pytest.raises(UnsupportedFilterTypeError) as exc_info:
        map_flag(enabled(RegexFilter(pattern=".*")))

    assert exc_info.value.filter_type == "Regex"


def test_validated_filters_always_map():
    """Filters that pass validation never hit the unsupported path."""
    filters = (
        TargetingFilter(included_users=("alice",)),
        PercentageFilter(value=100),
        JsonFilter(json='{"name": "Custom", "parameters": {"a": 1}}'),
        TimeWindowFilter(
            start=datetime(2025, 1, 6, tzinfo=timezone.utc),
            end=datetime(2025, 1, 7, tzinfo=timezone.utc),
            recurrence_type=RecurrencePatternType.DAILY,
            recurrence_interval=1,
        ),
    )

    assert validate_filters(filters) == []
    assert len(map_flag(enabled(*filters)).enabled_for) == 4


# ============ Status only ============


def test_status_only_mapping():
    """Status-only mapping ignores filters."""
    on = FeatureFlag(name="a", status=True, filters=(PercentageFilter(value=1),))
    off = FeatureFlag(name="b", status=False)

    assert map_status_only(on).enabled_for == (FilterConfiguration(name="AlwaysOn"),)
    assert map_status_only(off).status == FeatureStatus.DISABLED
    assert map_status_only(off).enabled_for == ()


# ============ Deep nesting ============


DEEP_JSON = '{"name": "Custom", "parameters": {"a": ' + "[" * 5000 + "]" * 5000 + "}}"


def test_json_filter_too_deep_to_parse_is_skipped():
    """A body nested past the parser's limit is dropped like any broken body."""
    with capture_logs() as logs:
        definition = map_flag(enabled(JsonFilter(json=DEEP_JSON)))

    assert definition.enabled_for == (FilterConfiguration(name="AlwaysOn"),)
    assert logs[0]["event"] == "Skipping unusable JSON filter"


def test_flatten_handles_nesting_beyond_recursion_limit():
    """Flattening does not recurse per level."""
    value = "leaf"
    for _ in range(5000):
        value = [value]

    out: dict[str, str] = {}
    _flatten("parameters", {"a": value}, out)

    assert out == {"parameters:a" + ":0" * 5000: "leaf"}


def test_flatten_keeps_document_order():
    """Keys come out in the order they appear in the body."""
    out: dict[str, str] = {}
    _flatten("parameters", {"b": [1, {"c": 2}], "a": 3}, out)

    assert list(out) == ["parameters:b:0", "parameters:b:1:c", "parameters:a"]
