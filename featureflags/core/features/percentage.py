"""
Consistent percentage rollout.

Known subjects always land in the same bucket:

    bucket = sum(ord(ch) for ch in name) % 100
    enabled = bucket < threshold

Anonymous subjects get a fresh random draw on every evaluation.

Usage:
    percentage = ConsistentPercentageFilter()
    context = FilterEvaluationContext(
        feature_name="new_checkout",
        parameters={"Value": "25"},
        subject="alice@example.com",
    )
    percentage.evaluate(context)
"""

from dataclasses import dataclass, field
from typing import Mapping

import structlog

from featureflags.utils.random_generator import RandomGenerator

logger = structlog.get_logger()

BUCKET_COUNT = 100


@dataclass(frozen=True)
class PercentageSettings:
    """Bound parameters of a percentage filter."""
    value: float = 0.0


@dataclass(frozen=True)
class FilterEvaluationContext:
    """
    What a runtime hands to a filter for one evaluation.

    Attributes:
        feature_name: Flag being evaluated
        parameters: Raw filter parameters from the definition
        settings: Parameters already bound by the runtime, if any
        subject: Identity of the current user ("" or None if anonymous)
    """
    feature_name: str
    parameters: Mapping[str, str] = field(default_factory=dict)
    settings: PercentageSettings | None = None
    subject: str | None = None


def compute_bucket(identity: str) -> int:
    """Deterministic 0-99 bucket for a subject name."""
    return sum(ord(ch) for ch in identity) % BUCKET_COUNT


def is_in_percentage(identity: str | None, threshold: float, rng: RandomGenerator) -> bool:
    """
    Decide whether a subject falls inside a percentage rollout.

    Args:
        identity: Subject name; empty or None for anonymous traffic
        threshold: Rollout percentage; negative means misconfigured
        rng: Random source for anonymous subjects
    """
    if threshold < 0:
        return False

    if not identity:
        return rng.next_double() * BUCKET_COUNT < threshold

    return compute_bucket(identity) < threshold


class ConsistentPercentageFilter:
    """
    Percentage filter that gives a named subject a stable answer.

    Register with the filter runtime under `alias`.
    """

    alias = "FeatureFlags.ConsistentPercentage"

    def __init__(self, rng: RandomGenerator | None = None):
        self.rng = rng or RandomGenerator()

    def bind_parameters(self, parameters: Mapping[str, str]) -> PercentageSettings:
        """Bind raw filter parameters. An unreadable value binds as -1 (disabled)."""
        raw = parameters.get("Value")
        if raw is None or str(raw).strip() == "":
            return PercentageSettings()
        try:
            return PercentageSettings(value=float(raw))
        except (TypeError, ValueError):
            return PercentageSettings(value=-1.0)

    def evaluate(self, context: FilterEvaluationContext) -> bool:
        settings = context.settings or self.bind_parameters(context.parameters)

        if settings.value < 0:
            logger.warning(
                "Percentage filter has no valid value",
                filter=self.alias,
                feature=context.feature_name,
                value=settings.value,
            )
            return False

        return is_in_percentage(context.subject, settings.value, self.rng)
