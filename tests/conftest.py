from __future__ import annotations

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from hostpulse.events import EventKind
from hostpulse.events.generated import (
    HwBaseboard,
    HwBatteryLife,
    HwNVMeSmart,
    HwNVMeStorage,
    OSSysInfo,
    SwDriver,
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep agent state out of /var/lib during tests."""
    monkeypatch.setenv("HOSTPULSE_STATE_DB_PATH", str(tmp_path / "state" / "state.db"))
    monkeypatch.setenv("HOSTPULSE_LOCK_PATH", str(tmp_path / "state" / "daily.lock"))


@pytest.fixture
def sample_payloads() -> dict:
    return {
        EventKind.HW_BASEBOARD: HwBaseboard(
            manufacturer="HP",
            product="8A3D",
            version="KBC Version 05.2B.00",
            bios_vendor="HP",
            bios_version="T70 Ver. 01.12.00",
            bios_date="03/14/2023",
        ),
        EventKind.HW_BATTERY_LIFE: HwBatteryLife(
            name="BAT0",
            status="Discharging",
            manufacturer="Hewlett-Packard",
            cycle_count=112,
            capacity_percent=87,
            energy_full_wh=48.2,
            energy_full_design_wh=53.2,
            health_percent=90.6,
        ),
        EventKind.HW_NVME_STORAGE: HwNVMeStorage(
            device="/dev/nvme0",
            serial_number="S5H7NS0N123456",
            model_number="SAMSUNG MZVL2512HCJQ",
            firmware_version="GXA7801Q",
            spec_version="1.4",
            warning_temp_kelvin=355,
            critical_temp_kelvin=358,
        ),
        EventKind.HW_NVME_SMART: HwNVMeSmart(
            device="/dev/nvme0",
            critical_warning=0,
            avail_spare=100,
            spare_thresh=10,
            percent_used=2,
            power_on_hours=1234,
            temperature_sensors=[310, 305],
        ),
        EventKind.OS_SYS_INFO: OSSysInfo(
            name="Ubuntu",
            version_id="22.04",
            kernel_release="6.5.0-35-generic",
            architecture="x86_64",
        ),
        EventKind.SW_DRIVER: SwDriver(
            name="nvme",
            size_bytes=49152,
            instances=3,
            state="Live",
            dependencies=["nvme_core"],
        ),
    }
