"""Host collectors, one per event kind."""

from __future__ import annotations

from typing import Dict, Optional

from ..config import AgentConfig
from ..events import EventKind
from ..logging import AgentLogger
from .base import Collector, CollectorOutcome, CommandResult, Unavailable, run_command
from .nvme import NvmeSmartCollector, NvmeStorageCollector
from .sysfs import BaseboardCollector, BatteryCollector
from .system import DriverCollector, OsInfoCollector


def default_collectors(
    config: AgentConfig,
    logger: Optional[AgentLogger] = None,
) -> Dict[EventKind, Collector]:
    collectors = [
        BaseboardCollector(config.sysfs_root),
        BatteryCollector(config.sysfs_root),
        NvmeStorageCollector(
            nvme_command=config.nvme_command,
            timeout_s=config.collector_timeout_seconds,
            logger=logger,
        ),
        NvmeSmartCollector(
            nvme_command=config.nvme_command,
            timeout_s=config.collector_timeout_seconds,
            logger=logger,
        ),
        OsInfoCollector(),
        DriverCollector(),
    ]
    return {collector.kind: collector for collector in collectors}


__all__ = [
    "Collector",
    "CollectorOutcome",
    "CommandResult",
    "Unavailable",
    "run_command",
    "default_collectors",
    "BaseboardCollector",
    "BatteryCollector",
    "DriverCollector",
    "NvmeSmartCollector",
    "NvmeStorageCollector",
    "OsInfoCollector",
]
