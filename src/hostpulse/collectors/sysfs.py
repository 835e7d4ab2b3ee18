from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel

from ..events import EventKind
from ..events.generated import HwBaseboard, HwBatteryLife
from ..utils import read_text_or_none
from .base import Collector, CollectorOutcome, Unavailable

MICRO = 1_000_000


def _read_int(path: Path) -> Optional[int]:
    value = read_text_or_none(path)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class BaseboardCollector(Collector):
    kind = EventKind.HW_BASEBOARD

    def __init__(self, sysfs_root: Path = Path("/sys")):
        self.dmi_dir = Path(sysfs_root) / "class" / "dmi" / "id"

    def _read(self, name: str) -> Optional[str]:
        return read_text_or_none(self.dmi_dir / name) or None

    def collect(self) -> CollectorOutcome:
        manufacturer = self._read("board_vendor")
        product = self._read("board_name")
        if not manufacturer or not product:
            return Unavailable("DMI board identification not readable")
        return [
            HwBaseboard(
                manufacturer=manufacturer,
                product=product,
                version=self._read("board_version"),
                bios_vendor=self._read("bios_vendor"),
                bios_version=self._read("bios_version"),
                bios_date=self._read("bios_date"),
            )
        ]


class BatteryCollector(Collector):
    kind = EventKind.HW_BATTERY_LIFE

    def __init__(self, sysfs_root: Path = Path("/sys")):
        self.supply_dir = Path(sysfs_root) / "class" / "power_supply"

    def _batteries(self) -> List[Path]:
        try:
            supplies = sorted(self.supply_dir.iterdir())
        except OSError:
            return []
        return [p for p in supplies if read_text_or_none(p / "type") == "Battery"]

    def collect(self) -> CollectorOutcome:
        batteries = self._batteries()
        if not batteries:
            return Unavailable("no battery present")

        payloads: List[BaseModel] = []
        for supply in batteries:
            energy_full = _read_int(supply / "energy_full")
            energy_design = _read_int(supply / "energy_full_design")
            health = None
            if energy_full is not None and energy_design:
                health = round(energy_full / energy_design * 100, 1)
            payloads.append(
                HwBatteryLife(
                    name=supply.name,
                    status=read_text_or_none(supply / "status") or "Unknown",
                    manufacturer=read_text_or_none(supply / "manufacturer"),
                    model_name=read_text_or_none(supply / "model_name"),
                    technology=read_text_or_none(supply / "technology"),
                    cycle_count=_read_int(supply / "cycle_count"),
                    capacity_percent=_read_int(supply / "capacity"),
                    # sysfs reports energy in microwatt-hours
                    energy_full_wh=(energy_full / MICRO if energy_full is not None else None),
                    energy_full_design_wh=(energy_design / MICRO if energy_design is not None else None),
                    health_percent=health,
                )
            )
        return payloads
