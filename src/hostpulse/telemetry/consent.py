from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from ..errors import OptOut
from ..logging import AgentLogger

if TYPE_CHECKING:
    from ..store import AgentStore


def is_opted_in(store: "AgentStore") -> bool:
    return bool(store.get_consent())


def ensure_opted_in(store: "AgentStore", logger: Optional[AgentLogger] = None) -> None:
    """
    Stop the invocation unless the host has opted in.

    Consent defaults to off: nothing is collected or uploaded until an
    administrator runs ``hostpulse consent on``.
    """
    if is_opted_in(store):
        return
    if logger:
        logger.info("Telemetry not opted in, exiting")
    raise OptOut("host has not opted in to telemetry")


def set_consent(store: "AgentStore", opted_in: bool, logger: Optional[AgentLogger] = None) -> None:
    store.set_consent(opted_in)
    if logger:
        logger.info("Telemetry consent updated", opted_in=opted_in)
