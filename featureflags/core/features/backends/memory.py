"""
In-memory flag store.

For development and testing. Data is lost on restart.
"""

from dataclasses import replace
from itertools import count

from featureflags.utils.timezone import ensure_utc, utc_now

from ..interfaces import (
    FeatureFlag,
    FlagStore,
    SaveResult,
    MESSAGE_CONCURRENCY,
    MESSAGE_DUPLICATE_NAME,
    MESSAGE_INVALID_ID,
    MESSAGE_SAVED,
)


class MemoryFlagStore(FlagStore):
    """
    In-memory flag storage.

    Useful for:
    - Development without database
    - Unit testing
    - Quick prototyping
    """

    def __init__(self):
        self._flags: dict[int, FeatureFlag] = {}
        self._filter_ids = count(1)

    # ============================================================
    # READS
    # ============================================================

    async def get_all_flags(self) -> list[FeatureFlag]:
        """List all flags in insertion order."""
        return list(self._flags.values())

    async def get_flag_by_name(self, name: str) -> FeatureFlag | None:
        """Get a flag by name."""
        for flag in self._flags.values():
            if flag.name == name:
                return flag
        return None

    async def get_flag_by_id(self, flag_id: int) -> FeatureFlag | None:
        """Get a flag by id."""
        return self._flags.get(flag_id)

    # ============================================================
    # WRITES
    # ============================================================

    async def save_flag(self, flag: FeatureFlag) -> SaveResult:
        """Create or update a flag, replacing its filters."""
        if flag.id is not None:
            existing = self._flags.get(flag.id)
            if existing is None:
                return SaveResult.fail(MESSAGE_INVALID_ID)

            # prevent concurrent changes
            if flag.updated_date is not None and ensure_utc(existing.updated_date) > ensure_utc(flag.updated_date):
                return SaveResult.fail(MESSAGE_CONCURRENCY)

        other = await self.get_flag_by_name(flag.name)
        if other is not None and other.id != flag.id:
            return SaveResult.fail(MESSAGE_DUPLICATE_NAME)

        flag_id = flag.id if flag.id is not None else self._next_flag_id()
        saved = replace(
            flag,
            id=flag_id,
            updated_date=utc_now(),
            filters=tuple(self._with_id(f) for f in flag.filters),
        )
        self._flags[flag_id] = saved
        return SaveResult.ok(MESSAGE_SAVED, saved)

    async def delete_flag(self, flag_id: int) -> bool:
        """Delete a flag."""
        if flag_id in self._flags:
            del self._flags[flag_id]
            return True
        return False

    def _next_flag_id(self) -> int:
        return max(self._flags, default=0) + 1

    def _with_id(self, flag_filter):
        if flag_filter.id is not None:
            return flag_filter
        return replace(flag_filter, id=next(self._filter_ids))

    # ============================================================
    # TEST HELPERS
    # ============================================================

    def clear(self) -> None:
        """Clear all data. Useful for testing."""
        self._flags.clear()

    def seed(self, flags: list[FeatureFlag]) -> list[FeatureFlag]:
        """
        Seed with initial flags, bypassing save checks. Useful for testing.

        Flags without an id get one. Returns the stored flags.
        """
        stored = []
        for flag in flags:
            flag_id = flag.id if flag.id is not None else self._next_flag_id()
            saved = replace(
                flag,
                id=flag_id,
                updated_date=flag.updated_date or utc_now(),
                filters=tuple(self._with_id(f) for f in flag.filters),
            )
            self._flags[flag_id] = saved
            stored.append(saved)
        return stored
