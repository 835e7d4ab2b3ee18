from __future__ import annotations

import json
import re
from abc import abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ValidationError

from ..events import EventKind
from ..events.generated import HwNVMeSmart, HwNVMeStorage
from ..logging import AgentLogger
from .base import Collector, CollectorOutcome, CommandResult, Unavailable, run_command

_CONTROLLER_NAME = re.compile(r"^nvme(\d+)$")
TEMPERATURE_SENSOR_COUNT = 8

Runner = Callable[[List[str], int], CommandResult]


def list_controllers(dev_root: Path = Path("/dev")) -> List[str]:
    """Character devices of NVMe controllers (``/dev/nvme0``, not namespaces)."""
    try:
        entries = list(dev_root.iterdir())
    except OSError:
        return []
    numbered = []
    for path in entries:
        match = _CONTROLLER_NAME.match(path.name)
        if match:
            numbered.append((int(match.group(1)), path))
    # nvme2 before nvme10
    return [str(path) for _, path in sorted(numbered)]


def format_spec_version(ver: int) -> str:
    """Render the packed VER field (major in bits 31:16, minor in 15:8)."""
    major = ver >> 16
    minor = (ver >> 8) & 0xFF
    return f"{major}.{minor}"


def parse_controller(device: str, data: Dict[str, Any]) -> HwNVMeStorage:
    """Map ``nvme id-ctrl --output-format=json`` output to a payload."""
    return HwNVMeStorage(
        device=device,
        serial_number=str(data["sn"]).strip(),
        model_number=(str(data["mn"]).strip() if data.get("mn") is not None else None),
        firmware_version=(str(data["fr"]).strip() if data.get("fr") is not None else None),
        spec_version=format_spec_version(int(data["ver"])),
        warning_temp_kelvin=data.get("wctemp"),
        critical_temp_kelvin=data.get("cctemp"),
    )


def temperature_sensors(data: Dict[str, Any]) -> List[int]:
    """Values of the populated temperature_sensor_N fields, in sensor order."""
    readings = []
    for index in range(1, TEMPERATURE_SENSOR_COUNT + 1):
        value = data.get(f"temperature_sensor_{index}")
        if value is not None:
            readings.append(int(value))
    return readings


def parse_smart_log(device: str, data: Dict[str, Any]) -> HwNVMeSmart:
    """Map ``nvme smart-log --output-format=json`` output to a payload."""
    # nvme-cli 2.x renamed percent_used
    percent_used = data.get("percent_used", data.get("percentage_used"))
    return HwNVMeSmart(
        device=device,
        critical_warning=data["critical_warning"],
        avail_spare=data["avail_spare"],
        spare_thresh=data.get("spare_thresh"),
        percent_used=percent_used,
        data_units_read=data.get("data_units_read"),
        data_units_written=data.get("data_units_written"),
        power_cycles=data.get("power_cycles"),
        power_on_hours=data["power_on_hours"],
        unsafe_shutdowns=data.get("unsafe_shutdowns"),
        media_errors=data.get("media_errors"),
        num_err_log_entries=data.get("num_err_log_entries"),
        temperature_sensors=temperature_sensors(data),
    )


class _NvmeCollector(Collector):
    subcommand = ""

    def __init__(
        self,
        nvme_command: str = "nvme",
        timeout_s: int = 10,
        dev_root: Path = Path("/dev"),
        runner: Runner = run_command,
        logger: Optional[AgentLogger] = None,
    ):
        self.nvme_command = nvme_command
        self.timeout_s = timeout_s
        self.dev_root = dev_root
        self.runner = runner
        self.logger = logger

    def _query(self, device: str) -> Optional[Dict[str, Any]]:
        result = self.runner(
            [self.nvme_command, self.subcommand, device, "--output-format=json"],
            self.timeout_s,
        )
        if result.returncode != 0 or result.timed_out:
            if self.logger:
                self.logger.warning(
                    "nvme command failed",
                    subcommand=self.subcommand,
                    device=device,
                    returncode=result.returncode,
                    timed_out=result.timed_out,
                )
            return None
        try:
            data = json.loads(result.stdout)
        except ValueError:
            return None
        return data if isinstance(data, dict) else None

    @abstractmethod
    def _parse(self, device: str, data: Dict[str, Any]) -> BaseModel:
        raise NotImplementedError

    def collect(self) -> CollectorOutcome:
        devices = list_controllers(self.dev_root)
        if not devices:
            return Unavailable("no NVMe controllers")

        payloads: List[BaseModel] = []
        for device in devices:
            data = self._query(device)
            if data is None:
                continue
            try:
                payloads.append(self._parse(device, data))
            except (KeyError, TypeError, ValueError, ValidationError) as exc:
                if self.logger:
                    self.logger.warning(
                        "Unexpected nvme output", subcommand=self.subcommand, device=device, error=str(exc)
                    )
        if not payloads:
            return Unavailable(f"nvme {self.subcommand} returned no usable data")
        return payloads


class NvmeStorageCollector(_NvmeCollector):
    kind = EventKind.HW_NVME_STORAGE
    subcommand = "id-ctrl"

    def _parse(self, device: str, data: Dict[str, Any]) -> BaseModel:
        return parse_controller(device, data)


class NvmeSmartCollector(_NvmeCollector):
    kind = EventKind.HW_NVME_SMART
    subcommand = "smart-log"

    def _parse(self, device: str, data: Dict[str, Any]) -> BaseModel:
        return parse_smart_log(device, data)
