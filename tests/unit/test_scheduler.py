from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from hostpulse.collectors.base import Collector, Unavailable
from hostpulse.collectors.nvme import NvmeStorageCollector
from hostpulse.collectors.system import DriverCollector
from hostpulse.errors import CollectionFailure, LockContention, OptOut, RequestFailure
from hostpulse.events import DEFAULT_FREQUENCIES, EventKind
from hostpulse.events.generated import OSSysInfo, SwDriver
from hostpulse.lock import acquire_exclusive
from hostpulse.logging import AgentLogger
from hostpulse.models import SamplingFrequency
from hostpulse.scheduler import CadenceScheduler

NOW = datetime(2024, 5, 20, 3, 0, tzinfo=timezone.utc)
DAILY = SamplingFrequency.DAILY
WEEKLY = SamplingFrequency.WEEKLY


class MemoryStore:
    def __init__(self, consent: bool = True, frequencies=None, timestamps=None) -> None:
        self.consent = consent
        self.frequencies = dict(frequencies or DEFAULT_FREQUENCIES)
        self.timestamps = dict(timestamps or {})

    def get_consent(self) -> bool:
        return self.consent

    def set_consent(self, opted_in: bool) -> None:
        self.consent = opted_in

    def get_frequency_map(self):
        return dict(self.frequencies)

    def set_frequency(self, kind, frequency) -> None:
        self.frequencies[kind] = frequency

    def get_cadence_timestamp(self, cadence):
        return self.timestamps.get(cadence)

    def set_cadence_timestamp(self, cadence, timestamp) -> None:
        self.timestamps[cadence] = timestamp


class StaticCollector(Collector):
    def __init__(self, kind: EventKind, outcome) -> None:
        self._kind = kind
        self.outcome = outcome
        self.calls = 0

    @property
    def kind(self) -> EventKind:
        return self._kind

    def collect(self):
        self.calls += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class FakeClient:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.uploads = []
        self.closed = False

    def upload(self, batch):
        self.uploads.append(list(batch))
        if self.error is not None:
            raise self.error
        return {"accepted": len(batch)}

    def close(self) -> None:
        self.closed = True


class ClientFactory:
    def __init__(self, client: FakeClient) -> None:
        self.client = client
        self.calls = 0

    def __call__(self) -> FakeClient:
        self.calls += 1
        return self.client


OS_INFO = OSSysInfo(name="Debian GNU/Linux", kernel_release="6.1.0-18-amd64", architecture="x86_64")
DRIVER = SwDriver(name="i915")


def two_kind_setup(timestamps=None, client: FakeClient | None = None):
    """OS info sampled daily, drivers weekly; nothing else."""
    store = MemoryStore(
        frequencies={EventKind.OS_SYS_INFO: DAILY, EventKind.SW_DRIVER: WEEKLY},
        timestamps=timestamps,
    )
    collectors = {
        EventKind.OS_SYS_INFO: StaticCollector(EventKind.OS_SYS_INFO, [OS_INFO]),
        EventKind.SW_DRIVER: StaticCollector(EventKind.SW_DRIVER, [DRIVER]),
    }
    factory = ClientFactory(client or FakeClient())
    return store, collectors, factory


def make_scheduler(tmp_path, store, collectors, factory, clock=lambda: NOW) -> CadenceScheduler:
    return CadenceScheduler(
        store,
        collectors,
        factory,
        lock_path=tmp_path / "daily.lock",
        clock=clock,
    )


def test_due_cadences_share_one_upload(tmp_path) -> None:
    """Daily and an elapsed weekly cadence go up together in a single call."""
    store, collectors, factory = two_kind_setup(timestamps={WEEKLY: NOW - timedelta(days=8)})

    report = make_scheduler(tmp_path, store, collectors, factory).run()

    assert len(factory.client.uploads) == 1
    assert [event.kind for event in factory.client.uploads[0]] == [
        EventKind.OS_SYS_INFO,
        EventKind.SW_DRIVER,
    ]
    assert report.uploaded_events == 2
    assert report.ack == {"accepted": 2}
    assert store.timestamps[WEEKLY] == NOW
    assert DAILY not in store.timestamps
    assert factory.client.closed is True


def test_weekly_not_due_only_daily_uploaded(tmp_path) -> None:
    store, collectors, factory = two_kind_setup(timestamps={WEEKLY: NOW - timedelta(days=1)})

    report = make_scheduler(tmp_path, store, collectors, factory).run()

    assert [event.kind for event in factory.client.uploads[0]] == [EventKind.OS_SYS_INFO]
    assert collectors[EventKind.SW_DRIVER].calls == 0
    assert report.result_for(WEEKLY).due is False
    assert store.timestamps[WEEKLY] == NOW - timedelta(days=1)


def test_failed_upload_leaves_weekly_due(tmp_path) -> None:
    """A failed upload never advances the timestamp."""
    last = NOW - timedelta(days=9)
    store, collectors, factory = two_kind_setup(
        timestamps={WEEKLY: last},
        client=FakeClient(error=RequestFailure("503 Service Unavailable", status_code=503)),
    )
    scheduler = make_scheduler(tmp_path, store, collectors, factory)

    with pytest.raises(RequestFailure):
        scheduler.run()

    assert store.timestamps[WEEKLY] == last
    assert scheduler.is_due(WEEKLY, NOW) is True
    assert factory.client.closed is True


def test_successful_weekly_is_not_due_until_period_elapses(tmp_path) -> None:
    store, collectors, factory = two_kind_setup()
    scheduler = make_scheduler(tmp_path, store, collectors, factory)

    scheduler.run()

    assert store.timestamps[WEEKLY] == NOW
    assert scheduler.is_due(WEEKLY, NOW + timedelta(days=1)) is False
    assert scheduler.is_due(WEEKLY, NOW + timedelta(days=6, hours=23)) is False
    assert scheduler.is_due(WEEKLY, NOW + timedelta(days=7)) is True


def test_daily_cadence_always_due(tmp_path) -> None:
    store, collectors, factory = two_kind_setup()
    scheduler = make_scheduler(tmp_path, store, collectors, factory)

    assert scheduler.is_due(DAILY, NOW) is True
    assert DAILY not in store.timestamps


def test_timestamp_in_future_is_due(tmp_path) -> None:
    store, collectors, factory = two_kind_setup(timestamps={WEEKLY: NOW + timedelta(days=30)})
    scheduler = make_scheduler(tmp_path, store, collectors, factory)

    assert scheduler.is_due(WEEKLY, NOW) is True


def test_opt_out_skips_everything(tmp_path) -> None:
    store, collectors, factory = two_kind_setup()
    store.consent = False

    with pytest.raises(OptOut):
        make_scheduler(tmp_path, store, collectors, factory).run()

    assert factory.calls == 0
    assert collectors[EventKind.OS_SYS_INFO].calls == 0
    assert store.timestamps == {}


def test_lock_contention(tmp_path) -> None:
    store, collectors, factory = two_kind_setup()
    scheduler = make_scheduler(tmp_path, store, collectors, factory)

    with acquire_exclusive(tmp_path / "daily.lock"):
        with pytest.raises(LockContention):
            scheduler.run()

    assert factory.calls == 0
    assert store.timestamps == {}


def test_unavailable_kind_is_skipped(tmp_path) -> None:
    store, collectors, factory = two_kind_setup()
    collectors[EventKind.SW_DRIVER] = StaticCollector(EventKind.SW_DRIVER, Unavailable("no /proc/modules"))

    report = make_scheduler(tmp_path, store, collectors, factory).run()

    weekly = report.result_for(WEEKLY)
    assert weekly.unavailable == {EventKind.SW_DRIVER: "no /proc/modules"}
    assert weekly.kinds == []
    assert [event.kind for event in factory.client.uploads[0]] == [EventKind.OS_SYS_INFO]
    assert store.timestamps[WEEKLY] == NOW


def test_missing_collector_is_reported(tmp_path) -> None:
    store, collectors, factory = two_kind_setup()
    del collectors[EventKind.OS_SYS_INFO]

    report = make_scheduler(tmp_path, store, collectors, factory).run()

    assert report.result_for(DAILY).unavailable == {EventKind.OS_SYS_INFO: "no collector registered"}


def test_collector_exception_aborts_run(tmp_path) -> None:
    store, collectors, factory = two_kind_setup()
    collectors[EventKind.SW_DRIVER] = StaticCollector(EventKind.SW_DRIVER, OSError("boom"))

    with pytest.raises(CollectionFailure, match="sw_driver"):
        make_scheduler(tmp_path, store, collectors, factory).run()

    assert factory.client.uploads == []
    assert store.timestamps == {}


def test_collector_returning_wrong_kind_fails(tmp_path) -> None:
    store, collectors, factory = two_kind_setup()
    collectors[EventKind.OS_SYS_INFO] = StaticCollector(EventKind.OS_SYS_INFO, [DRIVER])

    with pytest.raises(CollectionFailure, match="sw_driver"):
        make_scheduler(tmp_path, store, collectors, factory).run()


def test_empty_batch_skips_upload_but_advances(tmp_path) -> None:
    store, collectors, factory = two_kind_setup()
    collectors[EventKind.OS_SYS_INFO] = StaticCollector(EventKind.OS_SYS_INFO, [])
    collectors[EventKind.SW_DRIVER] = StaticCollector(EventKind.SW_DRIVER, [])

    report = make_scheduler(tmp_path, store, collectors, factory).run()

    assert factory.calls == 0
    assert report.uploaded is False
    assert store.timestamps[WEEKLY] == NOW


def test_frequency_override_moves_kind(tmp_path) -> None:
    store, collectors, factory = two_kind_setup(timestamps={WEEKLY: NOW})
    store.set_frequency(EventKind.SW_DRIVER, DAILY)

    make_scheduler(tmp_path, store, collectors, factory).run()

    assert [event.kind for event in factory.client.uploads[0]] == [
        EventKind.OS_SYS_INFO,
        EventKind.SW_DRIVER,
    ]


def test_timestamp_written_after_upload(tmp_path) -> None:
    """The recorded time comes from the clock after the upload returned."""
    ticks = iter([NOW, NOW + timedelta(minutes=2)])
    store, collectors, factory = two_kind_setup()

    make_scheduler(tmp_path, store, collectors, factory, clock=lambda: next(ticks)).run()

    assert store.timestamps[WEEKLY] == NOW + timedelta(minutes=2)


def test_unusable_nvme_tool_does_not_block_other_kinds(tmp_path: Path) -> None:
    """A broken nvme binary drops only the nvme kind from the upload."""
    dev_root = tmp_path / "dev"
    dev_root.mkdir()
    (dev_root / "nvme0").touch()
    tool = tmp_path / "nvme"
    tool.write_text("#!/bin/sh\n")
    tool.chmod(0o644)
    (tmp_path / "proc").mkdir()
    (tmp_path / "proc" / "modules").write_text("nvme 49152 3 - Live 0x0\n")

    store = MemoryStore(frequencies={EventKind.SW_DRIVER: DAILY, EventKind.HW_NVME_STORAGE: DAILY})
    collectors = {
        EventKind.SW_DRIVER: DriverCollector(tmp_path / "proc"),
        EventKind.HW_NVME_STORAGE: NvmeStorageCollector(nvme_command=str(tool), dev_root=dev_root),
    }
    factory = ClientFactory(FakeClient())

    report = make_scheduler(tmp_path, store, collectors, factory).run()

    assert len(factory.client.uploads) == 1
    assert [event.kind for event in factory.client.uploads[0]] == [EventKind.SW_DRIVER]
    assert EventKind.HW_NVME_STORAGE in report.result_for(DAILY).unavailable


def test_weekly_advances_even_when_every_kind_unavailable(tmp_path: Path, capsys) -> None:
    """The skipped kinds wait a full period; the advance is logged with them."""
    store, collectors, factory = two_kind_setup()
    collectors[EventKind.SW_DRIVER] = StaticCollector(EventKind.SW_DRIVER, Unavailable("nvme timed out"))
    scheduler = CadenceScheduler(
        store,
        collectors,
        factory,
        lock_path=tmp_path / "daily.lock",
        logger=AgentLogger("run-1"),
        clock=lambda: NOW,
    )

    scheduler.run()

    assert store.timestamps[WEEKLY] == NOW
    assert scheduler.is_due(WEEKLY, NOW + timedelta(days=6)) is False
    lines = [json.loads(line) for line in capsys.readouterr().err.strip().splitlines()]
    warning = next(line for line in lines if line["message"] == "Cadence advanced without some kinds")
    assert warning["level"] == "warning"
    assert warning["cadence"] == "weekly"
    assert warning["unavailable"] == {"sw_driver": "nvme timed out"}
    assert warning["next_due"] == str(NOW + timedelta(days=7))
