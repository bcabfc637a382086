"""
Database flag store.

Uses SQLAlchemy async sessions (PostgreSQL in production, SQLite in tests).
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from featureflags.utils.timezone import ensure_utc, utc_now

from ..interfaces import (
    DayOfWeek,
    FeatureFlag,
    Filter,
    FilterType,
    FlagStore,
    JsonFilter,
    PercentageFilter,
    RecurrencePatternType,
    RecurrenceRangeType,
    RequirementType,
    SaveResult,
    TargetingFilter,
    TimeWindowFilter,
    UnsupportedFilterTypeError,
    MESSAGE_CONCURRENCY,
    MESSAGE_DUPLICATE_NAME,
    MESSAGE_INVALID_ID,
    MESSAGE_SAVED,
)
from ..models import FeatureFlagModel, FeatureFlagFilterModel, FeatureFlagFilterUserModel


class DatabaseFlagStore(FlagStore):
    """
    SQL-backed flag storage.

    The session is owned by the caller; the store flushes but never commits.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ============================================================
    # READS
    # ============================================================

    async def get_all_flags(self) -> list[FeatureFlag]:
        """List all flags ordered by name."""
        query = select(FeatureFlagModel).order_by(FeatureFlagModel.name)
        result = await self.db.execute(query)
        models = result.scalars().all()

        return [self._model_to_flag(m) for m in models]

    async def get_flag_by_name(self, name: str) -> FeatureFlag | None:
        """Get a flag by name."""
        model = await self._get_model_by_name(name)
        if not model:
            return None
        return self._model_to_flag(model)

    async def get_flag_by_id(self, flag_id: int) -> FeatureFlag | None:
        """Get a flag by id."""
        model = await self._get_model(flag_id)
        if not model:
            return None
        return self._model_to_flag(model)

    # ============================================================
    # WRITES
    # ============================================================

    async def save_flag(self, flag: FeatureFlag) -> SaveResult:
        """Create or update a flag, replacing its filters."""
        if flag.id is not None:
            model = await self._get_model(flag.id)
            if not model:
                return SaveResult.fail(MESSAGE_INVALID_ID)

            # prevent concurrent changes
            if flag.updated_date is not None and ensure_utc(model.updated_at) > ensure_utc(flag.updated_date):
                return SaveResult.fail(MESSAGE_CONCURRENCY)
        else:
            model = None

        named = await self._get_model_by_name(flag.name)
        if named is not None and named.id != flag.id:
            return SaveResult.fail(MESSAGE_DUPLICATE_NAME)

        now = utc_now()
        if model is None:
            model = FeatureFlagModel(created_at=now)
            self.db.add(model)

        model.name = flag.name
        model.status = flag.status
        model.requirement_type = flag.requirement_type.value
        model.updated_at = now
        model.filters = [self._filter_to_model(position, f) for position, f in enumerate(flag.filters)]

        await self.db.flush()

        return SaveResult.ok(MESSAGE_SAVED, self._model_to_flag(model))

    async def delete_flag(self, flag_id: int) -> bool:
        """Delete a flag and its filters."""
        model = await self._get_model(flag_id)
        if not model:
            return False

        await self.db.delete(model)
        await self.db.flush()
        return True

    # ============================================================
    # HELPERS
    # ============================================================

    async def _get_model(self, flag_id: int) -> FeatureFlagModel | None:
        query = select(FeatureFlagModel).where(FeatureFlagModel.id == flag_id)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _get_model_by_name(self, name: str) -> FeatureFlagModel | None:
        query = select(FeatureFlagModel).where(FeatureFlagModel.name == name)
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    def _model_to_flag(self, model: FeatureFlagModel) -> FeatureFlag:
        """Convert SQLAlchemy model to dataclass."""
        return FeatureFlag(
            id=model.id,
            name=model.name,
            status=model.status,
            requirement_type=RequirementType.ALL if model.requirement_type == "All" else RequirementType.ANY,
            updated_date=ensure_utc(model.updated_at),
            filters=tuple(self._model_to_filter(f) for f in model.filters),
        )

    def _model_to_filter(self, model: FeatureFlagFilterModel) -> Filter:
        """
        Convert a filter row into its typed variant.

        Raises:
            UnsupportedFilterTypeError: the row's filter_type is unknown
        """
        if model.filter_type == FilterType.TARGETING.value:
            return TargetingFilter(
                id=model.id,
                included_users=tuple(u.user for u in model.users if u.include),
                excluded_users=tuple(u.user for u in model.users if not u.include),
            )

        if model.filter_type == FilterType.TIME_WINDOW.value:
            return TimeWindowFilter(
                id=model.id,
                start=ensure_utc(model.time_start),
                end=ensure_utc(model.time_end),
                recurrence_type=_parse_enum(RecurrencePatternType, model.recurrence_type),
                recurrence_interval=model.recurrence_interval,
                days_of_week=_parse_days(model.recurrence_days_of_week),
                first_day_of_week=DayOfWeek.parse(model.recurrence_first_day_of_week),
                recurrence_range_type=_parse_enum(RecurrenceRangeType, model.recurrence_range_type),
                recurrence_end_date=ensure_utc(model.recurrence_end_date),
                recurrence_occurrences=model.recurrence_occurrences,
            )

        if model.filter_type == FilterType.PERCENTAGE.value:
            return PercentageFilter(id=model.id, value=model.percentage_value)

        if model.filter_type == FilterType.JSON.value:
            return JsonFilter(id=model.id, json=model.json)

        raise UnsupportedFilterTypeError(model.filter_type)

    def _filter_to_model(self, position: int, flag_filter: Filter) -> FeatureFlagFilterModel:
        model = FeatureFlagFilterModel(position=position, filter_type=flag_filter.filter_type.value)

        if isinstance(flag_filter, TargetingFilter):
            model.users = [
                FeatureFlagFilterUserModel(user=user, include=True) for user in flag_filter.included_users
            ] + [
                FeatureFlagFilterUserModel(user=user, include=False) for user in flag_filter.excluded_users
            ]
        elif isinstance(flag_filter, TimeWindowFilter):
            model.time_start = ensure_utc(flag_filter.start)
            model.time_end = ensure_utc(flag_filter.end)
            model.recurrence_type = flag_filter.recurrence_type.value if flag_filter.recurrence_type else None
            model.recurrence_interval = flag_filter.recurrence_interval
            model.recurrence_days_of_week = ",".join(d.value for d in flag_filter.days_of_week) or None
            model.recurrence_first_day_of_week = (
                flag_filter.first_day_of_week.value if flag_filter.first_day_of_week else None
            )
            model.recurrence_range_type = (
                flag_filter.recurrence_range_type.value if flag_filter.recurrence_range_type else None
            )
            model.recurrence_end_date = ensure_utc(flag_filter.recurrence_end_date)
            model.recurrence_occurrences = flag_filter.recurrence_occurrences
        elif isinstance(flag_filter, PercentageFilter):
            model.percentage_value = flag_filter.value
        elif isinstance(flag_filter, JsonFilter):
            model.json = flag_filter.json
        else:
            raise UnsupportedFilterTypeError(flag_filter.filter_type)

        return model


def _parse_enum(enum_cls, value: str | None):
    if not value:
        return None
    for member in enum_cls:
        if member.value.lower() == value.lower():
            return member
    return None


def _parse_days(value: str | None) -> tuple[DayOfWeek, ...]:
    """Parse "Monday,Friday"; unknown names are ignored."""
    if not value:
        return ()
    days = (DayOfWeek.parse(name) for name in value.split(","))
    return tuple(day for day in days if day is not None)
