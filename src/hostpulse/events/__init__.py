"""Closed telemetry event taxonomy generated from event_package.json."""

from .generated import DEFAULT_FREQUENCIES, DISCRIMINANT, PAYLOAD_TYPES, SCHEMA_VERSION, EventKind
from .taxonomy import (
    EventBatch,
    TelemetryEvent,
    batch_from_wire,
    batch_to_wire,
    iter_kinds,
    payload_type,
)

__all__ = [
    "DEFAULT_FREQUENCIES",
    "DISCRIMINANT",
    "PAYLOAD_TYPES",
    "SCHEMA_VERSION",
    "EventKind",
    "EventBatch",
    "TelemetryEvent",
    "batch_from_wire",
    "batch_to_wire",
    "iter_kinds",
    "payload_type",
]
