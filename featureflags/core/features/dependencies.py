"""
FastAPI dependencies for feature flags.

Usage:
    from featureflags.core.features import DefinitionProviderDep

    @router.get("/features")
    async def features(provider: DefinitionProviderDep):
        return [d.to_wire() async for d in provider.get_all_feature_definitions()]
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from featureflags.core.config import settings
from featureflags.api.dependencies.database import get_db

from .client import HttpFeatureFlagClient
from .interfaces import FeatureDefinitionProvider, FlagStore
from .providers import (
    ClientFeatureDefinitionProvider,
    StatusFeatureDefinitionProvider,
    StoreFeatureDefinitionProvider,
)
from .service import FeatureFlagService
from .backends.database import DatabaseFlagStore
from .backends.memory import MemoryFlagStore


# ============================================================
# STORE FACTORY
# ============================================================

# In-memory store singleton (for development)
_memory_store: MemoryFlagStore | None = None


def get_memory_store() -> MemoryFlagStore:
    """Get or create memory store singleton."""
    global _memory_store
    if _memory_store is None:
        _memory_store = MemoryFlagStore()
    return _memory_store


async def get_flag_store(
    db: AsyncSession = Depends(get_db),
) -> FlagStore:
    """
    Get flag store based on configuration.

    Uses FEATURE_BACKEND setting:
    - "database": SQL database (default, production)
    - "memory": In-memory (development/testing)
    """
    if settings.features.backend == "memory":
        return get_memory_store()
    return DatabaseFlagStore(db)


FlagStoreDep = Annotated[FlagStore, Depends(get_flag_store)]


# ============================================================
# REMOTE CLIENT
# ============================================================

_http_client: HttpFeatureFlagClient | None = None


def get_http_client() -> HttpFeatureFlagClient:
    """
    Get or create the remote flag service client.

    Raises:
        ConfigurationError: endpoint or API key missing
    """
    global _http_client
    if _http_client is None:
        _http_client = HttpFeatureFlagClient.from_settings(settings.features)
    return _http_client


async def close_http_client() -> None:
    """Close the remote client, if one was created."""
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


# ============================================================
# DEFINITION PROVIDER
# ============================================================

async def get_definition_provider(store: FlagStoreDep) -> FeatureDefinitionProvider:
    """
    Get the definition provider based on configuration.

    Uses FEATURE_PROVIDER setting:
    - "store": flag store with full filter mapping (default)
    - "status": flag store, on/off status only
    - "http": remote flag service
    """
    provider_type = settings.features.provider
    timeout = settings.features.request_timeout

    if provider_type == "http":
        return ClientFeatureDefinitionProvider(get_http_client(), timeout=timeout)
    if provider_type == "status":
        return StatusFeatureDefinitionProvider(store, timeout=timeout)
    return StoreFeatureDefinitionProvider(store, timeout=timeout)


DefinitionProviderDep = Annotated[FeatureDefinitionProvider, Depends(get_definition_provider)]


# ============================================================
# SERVICE
# ============================================================

async def get_feature_flag_service(store: FlagStoreDep) -> FeatureFlagService:
    """Get feature flag service instance."""
    return FeatureFlagService(store)


FeatureFlagServiceDep = Annotated[FeatureFlagService, Depends(get_feature_flag_service)]
