"""
Feature definition providers.

A filter runtime asks a provider for definitions:

    provider = StoreFeatureDefinitionProvider(store)
    async for definition in provider.get_all_feature_definitions():
        ...
    definition = await provider.get_feature_definition("new_checkout")

Backends:
- StoreFeatureDefinitionProvider: local flag store, full filter mapping
- StatusFeatureDefinitionProvider: local flag store, on/off status only
- ClientFeatureDefinitionProvider: remote flag service over HTTP

Providers never raise for backend failures or unknown names. A failed
call is logged and yields no definitions (or the empty definition).
Cancellation of the calling task is never swallowed.
"""

import asyncio
from typing import AsyncIterator, Awaitable, Callable, TypeVar

import structlog

from .client import HttpFeatureFlagClient
from .interfaces import (
    FeatureDefinition,
    FeatureDefinitionProvider,
    FeatureFlag,
    FlagStore,
    UnsupportedFilterTypeError,
)
from .mapper import map_flag, map_status_only

logger = structlog.get_logger()

T = TypeVar("T")


async def _load(call: Awaitable[T], timeout: float | None, fallback: T, operation: str, **context) -> T:
    """Await a backend call, logging and returning fallback on failure."""
    try:
        if timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout)
    except UnsupportedFilterTypeError:
        raise
    except asyncio.TimeoutError:
        logger.warning("Backend call timed out", operation=operation, timeout=timeout, **context)
        return fallback
    except Exception as e:
        logger.error("Backend call failed", operation=operation, error=str(e), **context)
        return fallback


class StoreFeatureDefinitionProvider(FeatureDefinitionProvider):
    """
    Definitions mapped from the local flag store.

    Args:
        store: Flag store to read from
        timeout: Upper bound (seconds) for each store query, None for no limit
    """

    mapper: Callable[[FeatureFlag], FeatureDefinition] = staticmethod(map_flag)

    def __init__(self, store: FlagStore, timeout: float | None = None):
        self.store = store
        self.timeout = timeout

    async def get_all_feature_definitions(self) -> AsyncIterator[FeatureDefinition]:
        flags = await _load(
            self.store.get_all_flags(),
            self.timeout,
            [],
            "Feature flags load",
            provider=type(self).__name__,
        )
        for flag in flags:
            yield self.mapper(flag)

    async def get_feature_definition(self, name: str) -> FeatureDefinition:
        flag = await _load(
            self.store.get_flag_by_name(name),
            self.timeout,
            None,
            "Feature flag load",
            provider=type(self).__name__,
            feature=name,
        )
        if flag is None:
            return FeatureDefinition(name=name)
        return self.mapper(flag)


class StatusFeatureDefinitionProvider(StoreFeatureDefinitionProvider):
    """
    Definitions from the local flag store by status alone.

    Enabled flags are always on, disabled flags are off; filters are ignored.
    """

    mapper = staticmethod(map_status_only)


class ClientFeatureDefinitionProvider(FeatureDefinitionProvider):
    """
    Definitions fetched from a remote flag service.

    Args:
        client: HTTP client for the remote service
        timeout: Upper bound (seconds) for each round trip, None for no limit
    """

    def __init__(self, client: HttpFeatureFlagClient, timeout: float | None = None):
        self.client = client
        self.timeout = timeout

    async def get_all_feature_definitions(self) -> AsyncIterator[FeatureDefinition]:
        definitions = await _load(
            self.client.get_all_feature_definitions(),
            self.timeout,
            [],
            "Feature definitions fetch",
            base_url=self.client.base_url,
        )
        for definition in definitions:
            yield definition

    async def get_feature_definition(self, name: str) -> FeatureDefinition:
        definition = await _load(
            self.client.get_feature_definition(name),
            self.timeout,
            None,
            "Feature definition fetch",
            base_url=self.client.base_url,
            feature=name,
        )
        return definition or FeatureDefinition(name=name)
