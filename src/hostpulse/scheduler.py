from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .collectors.base import Collector, Unavailable
from .errors import CollectionFailure
from .events import EventBatch, EventKind, TelemetryEvent
from .lock import acquire_exclusive
from .logging import AgentLogger
from .models import SamplingFrequency
from .store import AgentStore
from .telemetry.client import ApiClient
from .telemetry.consent import ensure_opted_in
from .utils import utcnow


@dataclass
class CadenceResult:
    cadence: SamplingFrequency
    due: bool
    kinds: List[EventKind] = field(default_factory=list)
    unavailable: Dict[EventKind, str] = field(default_factory=dict)
    events: int = 0


@dataclass
class RunReport:
    started_at: datetime
    cadences: List[CadenceResult] = field(default_factory=list)
    uploaded_events: int = 0
    ack: Any = None

    def result_for(self, cadence: SamplingFrequency) -> Optional[CadenceResult]:
        for result in self.cadences:
            if result.cadence == cadence:
                return result
        return None

    @property
    def uploaded(self) -> bool:
        return self.uploaded_events > 0


class CadenceScheduler:
    """
    One collect-and-upload pass per external trigger.

    Cadences are visited in declaration order: the daily cadence every time,
    each longer cadence only when its period has elapsed since its last
    recorded success. Everything collected goes up in a single upload call,
    and longer-cadence timestamps are written only after that call succeeded,
    so a failed or missed cycle is simply due again on the next invocation.
    """

    def __init__(
        self,
        store: AgentStore,
        collectors: Mapping[EventKind, Collector],
        client_factory: Callable[[], ApiClient],
        *,
        lock_path: Path,
        logger: Optional[AgentLogger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.collectors = collectors
        self.client_factory = client_factory
        self.lock_path = Path(lock_path)
        self.logger = logger
        self.clock = clock
        self._client: Optional[ApiClient] = None

    def is_due(self, cadence: SamplingFrequency, now: datetime) -> bool:
        if cadence.is_immediate:
            return True
        last = self.store.get_cadence_timestamp(cadence)
        if last is None:
            return True
        if last > now:
            # Clock went backwards; the stored time cannot be trusted.
            return True
        return now - last >= cadence.period

    def run(self) -> RunReport:
        with acquire_exclusive(self.lock_path):
            ensure_opted_in(self.store, self.logger)
            try:
                return self._run_locked()
            finally:
                self._close_client()

    def _run_locked(self) -> RunReport:
        frequencies = self.store.get_frequency_map()
        report = RunReport(started_at=self.clock())
        batch: EventBatch = []
        advanced: List[CadenceResult] = []

        for cadence in SamplingFrequency:
            if not self.is_due(cadence, report.started_at):
                if self.logger:
                    self.logger.info("Cadence not due", cadence=cadence.value)
                report.cadences.append(CadenceResult(cadence=cadence, due=False))
                continue

            kinds = [kind for kind in EventKind if frequencies.get(kind) == cadence]
            events, unavailable = self.collect(kinds)
            report.cadences.append(
                CadenceResult(
                    cadence=cadence,
                    due=True,
                    kinds=[kind for kind in kinds if kind not in unavailable],
                    unavailable=unavailable,
                    events=len(events),
                )
            )
            batch.extend(events)
            if not cadence.is_immediate:
                advanced.append(report.cadences[-1])

        if batch:
            report.ack = self._upload(batch)
            report.uploaded_events = len(batch)
        elif self.logger:
            self.logger.info("Nothing to upload")

        for result in advanced:
            completed_at = self.clock()
            self.store.set_cadence_timestamp(result.cadence, completed_at)
            if not self.logger:
                continue
            self.logger.info("Cadence completed", cadence=result.cadence.value, events=result.events)
            if result.unavailable:
                # These kinds are not collected again until the period elapses.
                self.logger.warning(
                    "Cadence advanced without some kinds",
                    cadence=result.cadence.value,
                    unavailable={k.value: reason for k, reason in result.unavailable.items()},
                    next_due=completed_at + result.cadence.period,
                )
        return report

    def _upload(self, batch: EventBatch) -> Any:
        if self.logger:
            with self.logger.stage("upload", events=len(batch)):
                return self._api().upload(batch)
        return self._api().upload(batch)

    def collect(self, kinds: List[EventKind]) -> Tuple[EventBatch, Dict[EventKind, str]]:
        """Build the events for ``kinds``; kinds the host cannot provide are reported, not fatal."""
        batch: EventBatch = []
        unavailable: Dict[EventKind, str] = {}
        for kind in kinds:
            collector = self.collectors.get(kind)
            if collector is None:
                unavailable[kind] = "no collector registered"
                continue

            try:
                outcome = collector.collect()
            except Exception as exc:
                raise CollectionFailure(f"{kind.value} collector failed: {exc}") from exc

            if isinstance(outcome, Unavailable):
                unavailable[kind] = outcome.reason
                if self.logger:
                    self.logger.info("Event kind unavailable", kind=kind.value, reason=outcome.reason)
                continue

            try:
                events = [TelemetryEvent.from_payload(payload) for payload in outcome]
            except TypeError as exc:
                raise CollectionFailure(f"{kind.value} collector returned {exc}") from exc
            wrong = sorted({event.kind.value for event in events if event.kind != kind})
            if wrong:
                raise CollectionFailure(f"{kind.value} collector produced {', '.join(wrong)} events")
            batch.extend(events)
        return batch, unavailable

    def _api(self) -> ApiClient:
        if self._client is None:
            self._client = self.client_factory()
        return self._client

    def _close_client(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
