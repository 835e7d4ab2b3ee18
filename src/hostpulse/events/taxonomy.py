from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Type

from pydantic import BaseModel, ValidationError

from ..errors import DecodeFailure, UnknownEventKind
from .generated import DISCRIMINANT, PAYLOAD_TYPES, EventKind

KIND_BY_PAYLOAD: Dict[Type[BaseModel], EventKind] = {
    payload_cls: kind for kind, payload_cls in PAYLOAD_TYPES.items()
}


def _check_bijection() -> None:
    missing = [kind.value for kind in EventKind if kind not in PAYLOAD_TYPES]
    if missing:
        raise RuntimeError(f"event kinds without payload type: {missing}")
    if len(KIND_BY_PAYLOAD) != len(PAYLOAD_TYPES):
        raise RuntimeError("payload type shared by several event kinds")


_check_bijection()


@dataclass(frozen=True)
class TelemetryEvent:
    """One telemetry payload tagged with its event kind."""

    kind: EventKind
    payload: BaseModel

    def __post_init__(self) -> None:
        expected = PAYLOAD_TYPES[self.kind]
        if type(self.payload) is not expected:
            raise TypeError(
                f"{self.kind.value} expects {expected.__name__}, got {type(self.payload).__name__}"
            )

    @classmethod
    def from_payload(cls, payload: BaseModel) -> "TelemetryEvent":
        kind = KIND_BY_PAYLOAD.get(type(payload))
        if kind is None:
            raise TypeError(f"{type(payload).__name__} is not a telemetry payload type")
        return cls(kind=kind, payload=payload)

    def to_wire(self) -> Dict[str, Any]:
        wire: Dict[str, Any] = {DISCRIMINANT: self.kind.value}
        wire.update(self.payload.model_dump(mode="json"))
        return wire

    @classmethod
    def from_wire(cls, obj: Mapping[str, Any]) -> "TelemetryEvent":
        if not isinstance(obj, Mapping):
            raise DecodeFailure(f"event must be an object, got {type(obj).__name__}")

        tag = obj.get(DISCRIMINANT)
        try:
            kind = EventKind(tag)
        except (TypeError, ValueError):
            raise UnknownEventKind(f"unknown event kind {tag!r}") from None

        fields = {key: value for key, value in obj.items() if key != DISCRIMINANT}
        try:
            payload = PAYLOAD_TYPES[kind].model_validate(fields)
        except ValidationError as exc:
            raise DecodeFailure(f"invalid {kind.value} payload: {exc}") from exc
        return cls(kind=kind, payload=payload)


EventBatch = List[TelemetryEvent]


def iter_kinds() -> Iterator[EventKind]:
    """Every event kind once, in schema declaration order."""
    return iter(EventKind)


def payload_type(kind: EventKind) -> Type[BaseModel]:
    return PAYLOAD_TYPES[kind]


def batch_to_wire(batch: Iterable[TelemetryEvent]) -> List[Dict[str, Any]]:
    return [event.to_wire() for event in batch]


def batch_from_wire(items: Iterable[Mapping[str, Any]]) -> EventBatch:
    return [TelemetryEvent.from_wire(item) for item in items]
