"""Metric definitions used across the application."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class MetricDefinition:
    """Describe a metric that should exist in the registry."""

    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()


TRANSITIONS_TOTAL = "ticket_transitions_total"
ASSIGNMENTS_TOTAL = "ticket_assignments_total"
SIDE_EFFECT_FAILURES_TOTAL = "side_effect_failures_total"
BULK_ITEMS_TOTAL = "bulk_operation_items_total"
OPERATION_DURATION_SECONDS = "lifecycle_operation_duration_seconds"


DEFAULT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name=TRANSITIONS_TOTAL,
        metric_type="counter",
        description="Single ticket state transitions by outcome.",
        label_names=("outcome",),
    ),
    MetricDefinition(
        name=ASSIGNMENTS_TOTAL,
        metric_type="counter",
        description="Single ticket assignments by outcome.",
        label_names=("outcome",),
    ),
    MetricDefinition(
        name=SIDE_EFFECT_FAILURES_TOTAL,
        metric_type="counter",
        description="Timeline or notification writes that failed after a committed mutation.",
        label_names=("kind",),
    ),
    MetricDefinition(
        name=BULK_ITEMS_TOTAL,
        metric_type="counter",
        description="Items processed by bulk operations.",
        label_names=("operation", "outcome"),
    ),
    MetricDefinition(
        name=OPERATION_DURATION_SECONDS,
        metric_type="distribution",
        description="Wall-clock duration of lifecycle operations in seconds.",
        label_names=("operation",),
    ),
)
