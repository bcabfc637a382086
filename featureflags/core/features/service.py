"""
Feature Flag Service - Flag management on top of a flag store.

Adds to the raw store:
- Validation before every save (nothing invalid reaches storage)
- Registration of the flags an application declares in code
"""

from typing import Mapping

import structlog

from .interfaces import (
    FeatureFlag,
    FlagStore,
    SaveResult,
    MESSAGE_VALIDATION_FAILED,
)
from .validation import validate_flag

logger = structlog.get_logger()


def normalize_name(name: str | None) -> str:
    """Key used to match declared flags against stored ones."""
    return (name or "").strip().lower()


class FeatureFlagService:
    """
    Feature flag management service.

    Usage:
        service = FeatureFlagService(MemoryFlagStore())
        result = await service.save_flag(FeatureFlag(name="new_checkout", status=True))
        if not result.success:
            for error in result.errors:
                print(error.path, error.message)
    """

    def __init__(self, store: FlagStore):
        self.store = store

    # ============================================================
    # CRUD
    # ============================================================

    async def list_flags(self) -> list[FeatureFlag]:
        """List all stored flags."""
        return await self.store.get_all_flags()

    async def get_flag(self, name: str) -> FeatureFlag | None:
        """Get a flag by name."""
        return await self.store.get_flag_by_name(name)

    async def get_flag_by_id(self, flag_id: int) -> FeatureFlag | None:
        """Get a flag by id."""
        return await self.store.get_flag_by_id(flag_id)

    async def save_flag(self, flag: FeatureFlag) -> SaveResult:
        """
        Validate and save a flag.

        Returns:
            A failed result carrying the validation errors when the flag is
            invalid (the store is not touched), otherwise the store's result
        """
        errors = validate_flag(flag)
        if errors:
            logger.info(
                "Feature flag rejected",
                feature=flag.name,
                errors=[error.path for error in errors],
            )
            return SaveResult.fail(MESSAGE_VALIDATION_FAILED, tuple(errors))

        result = await self.store.save_flag(flag)
        if result.success:
            logger.info("Feature flag saved", feature=flag.name, flag_id=result.flag.id if result.flag else None)
        else:
            logger.warning("Feature flag save failed", feature=flag.name, reason=result.message)
        return result

    async def delete_flag(self, flag_id: int) -> bool:
        """Delete a flag with its filters."""
        deleted = await self.store.delete_flag(flag_id)
        if deleted:
            logger.info("Feature flag deleted", flag_id=flag_id)
        return deleted

    # ============================================================
    # REGISTRATION
    # ============================================================

    async def register_flags(self, declared: Mapping[str, str]) -> bool:
        """
        Reconcile the store with the flags an application declares.

        Args:
            declared: Normalized name -> display name, e.g.
                {"new_checkout": "New Checkout"}

        Missing flags are created disabled; stored flags that are no
        longer declared are deleted. Stops at the first failure.

        Returns:
            True if every create and delete succeeded
        """
        wanted = {normalize_name(key): display for key, display in declared.items()}
        stored = {normalize_name(flag.name): flag for flag in await self.store.get_all_flags()}

        for key, display_name in wanted.items():
            if key in stored:
                continue
            result = await self.save_flag(FeatureFlag(name=display_name, status=False))
            if not result.success:
                logger.error("Feature flag registration failed", feature=display_name, reason=result.message)
                return False

        for key, flag in stored.items():
            if key in wanted:
                continue
            if not await self.delete_flag(flag.id):
                logger.error("Feature flag removal failed", feature=flag.name, flag_id=flag.id)
                return False

        return True
