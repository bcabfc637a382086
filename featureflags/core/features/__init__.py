"""
Feature Flag Filter Engine.

Turns stored flags into evaluation-ready definitions and validates
filters before they are saved:
- Targeting (included / excluded users)
- Time windows with daily or weekly recurrence
- Consistent percentage rollouts
- Custom JSON filters

Usage Levels:

Level 1 - Map a stored flag:
    from featureflags.core.features import map_flag

    definition = map_flag(flag)
    definition.to_wire()

Level 2 - Validate before saving:
    from featureflags.core.features import validate_flag

    for error in validate_flag(flag):
        print(error.path, error.message)

Level 3 - Serve definitions to a filter runtime:
    from featureflags.core.features import DefinitionProviderDep

    @router.get("/flags")
    async def flags(provider: DefinitionProviderDep):
        return [d.to_wire() async for d in provider.get_all_feature_definitions()]

Level 4 - Read definitions from another deployment:
    client = HttpFeatureFlagClient.from_settings(settings.features)
    provider = ClientFeatureDefinitionProvider(client, timeout=5)
    definition = await provider.get_feature_definition("new_checkout")

Level 5 - Management:
    @router.post("/admin/flags/sync")
    async def sync_flags(service: FeatureFlagServiceDep):
        await service.register_flags({"new_checkout": "New Checkout"})
"""

from .interfaces import (
    DayOfWeek,
    FeatureDefinition,
    FeatureDefinitionProvider,
    FeatureFlag,
    FeatureFlagError,
    FeatureStatus,
    Filter,
    FilterConfiguration,
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
    ConfigurationError,
)

from .mapper import map_flag, map_status_only
from .recurrence import RecurrenceViolation, TimeWindowError, validate_recurrence
from .validation import (
    FilterValidationError,
    ValidationErrorCode,
    validate_filters,
    validate_flag,
)
from .percentage import (
    ConsistentPercentageFilter,
    FilterEvaluationContext,
    compute_bucket,
    is_in_percentage,
)

from .client import HttpFeatureFlagClient
from .providers import (
    ClientFeatureDefinitionProvider,
    StatusFeatureDefinitionProvider,
    StoreFeatureDefinitionProvider,
)
from .service import FeatureFlagService

from .dependencies import (
    FlagStoreDep,
    DefinitionProviderDep,
    FeatureFlagServiceDep,
    get_flag_store,
    get_definition_provider,
    get_feature_flag_service,
)

from .backends import (
    DatabaseFlagStore,
    MemoryFlagStore,
)

__all__ = [
    # Interfaces
    "DayOfWeek",
    "FeatureDefinition",
    "FeatureDefinitionProvider",
    "FeatureFlag",
    "FeatureFlagError",
    "FeatureStatus",
    "Filter",
    "FilterConfiguration",
    "FilterType",
    "FlagStore",
    "JsonFilter",
    "PercentageFilter",
    "RecurrencePatternType",
    "RecurrenceRangeType",
    "RequirementType",
    "SaveResult",
    "TargetingFilter",
    "TimeWindowFilter",
    "UnsupportedFilterTypeError",
    "ConfigurationError",
    # Mapping
    "map_flag",
    "map_status_only",
    # Validation
    "RecurrenceViolation",
    "TimeWindowError",
    "validate_recurrence",
    "FilterValidationError",
    "ValidationErrorCode",
    "validate_filters",
    "validate_flag",
    # Percentage
    "ConsistentPercentageFilter",
    "FilterEvaluationContext",
    "compute_bucket",
    "is_in_percentage",
    # Providers
    "HttpFeatureFlagClient",
    "ClientFeatureDefinitionProvider",
    "StatusFeatureDefinitionProvider",
    "StoreFeatureDefinitionProvider",
    # Service
    "FeatureFlagService",
    # Dependencies
    "FlagStoreDep",
    "DefinitionProviderDep",
    "FeatureFlagServiceDep",
    "get_flag_store",
    "get_definition_provider",
    "get_feature_flag_service",
    # Backends
    "DatabaseFlagStore",
    "MemoryFlagStore",
]
