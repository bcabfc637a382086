"""
Feature definition API routes.

Serves the wire format consumed by HttpFeatureFlagClient in other
deployments.
"""

from typing import Any

from fastapi import APIRouter, HTTPException, status

from featureflags.core.features import FeatureFlagServiceDep, map_flag

router = APIRouter()


@router.get("/features")
async def get_feature_definitions(service: FeatureFlagServiceDep) -> list[dict[str, Any]]:
    """Get the definitions of all flags."""
    flags = await service.list_flags()
    return [map_flag(flag).to_wire() for flag in flags]


@router.get("/feature/{name:path}")
async def get_feature_definition(name: str, service: FeatureFlagServiceDep) -> dict[str, Any]:
    """Get one flag definition by name."""
    flag = await service.get_flag(name)
    if flag is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Feature flag '{name}' not found",
        )
    return map_flag(flag).to_wire()
