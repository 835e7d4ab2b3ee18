from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from .constants import WEEKLY_PERIOD


class SamplingFrequency(str, Enum):
    """Collection cadences, in the order the scheduler runs them."""

    DAILY = "daily"
    WEEKLY = "weekly"

    @property
    def period(self) -> Optional[timedelta]:
        """Minimum time between runs; None for the immediate cadence."""
        return _PERIODS[self]

    @property
    def is_immediate(self) -> bool:
        return self.period is None


_PERIODS = {
    SamplingFrequency.DAILY: None,
    SamplingFrequency.WEEKLY: WEEKLY_PERIOD,
}


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


@dataclass(frozen=True)
class DeviceIdentity:
    """Stable host identifiers, read once per process."""

    device_id: str
    os_install_id: str

    def to_wire(self) -> dict:
        return {"deviceID": self.device_id, "osInstallID": self.os_install_id}


@dataclass(frozen=True)
class Endpoint:
    method: str
    url_template: str


@dataclass(frozen=True)
class Session:
    """Authenticated channel returned by the bootstrap exchange."""

    token: str = field(repr=False)
    device_id: str
    endpoints: Mapping[str, Endpoint]

    def __post_init__(self) -> None:
        object.__setattr__(self, "endpoints", MappingProxyType(dict(self.endpoints)))
