# Generated by hostpulse.events.codegen from event_package.json. Do not edit.
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from hostpulse.models import SamplingFrequency

SCHEMA_VERSION = "1.2"
DISCRIMINANT = "event_type"


class EventKind(str, Enum):
    HW_BASEBOARD = "hw_baseboard"
    HW_BATTERY_LIFE = "hw_battery_life"
    HW_NVME_STORAGE = "hw_nvme_storage"
    HW_NVME_SMART = "hw_nvme_smart"
    OS_SYS_INFO = "os_sys_info"
    SW_DRIVER = "sw_driver"


class HwBaseboard(BaseModel):
    """DMI baseboard and system firmware identification."""

    model_config = ConfigDict(frozen=True, extra="forbid", protected_namespaces=())

    manufacturer: str
    product: str
    version: Optional[str] = None
    bios_vendor: Optional[str] = None
    bios_version: Optional[str] = None
    bios_date: Optional[str] = None


class HwBatteryLife(BaseModel):
    """Charge state and wear of one battery."""

    model_config = ConfigDict(frozen=True, extra="forbid", protected_namespaces=())

    name: str
    status: str
    manufacturer: Optional[str] = None
    model_name: Optional[str] = None
    technology: Optional[str] = None
    cycle_count: Optional[int] = None
    capacity_percent: Optional[int] = None
    energy_full_wh: Optional[float] = None
    energy_full_design_wh: Optional[float] = None
    health_percent: Optional[float] = None


class HwNVMeStorage(BaseModel):
    """Identify Controller data of one NVMe controller."""

    model_config = ConfigDict(frozen=True, extra="forbid", protected_namespaces=())

    device: str
    serial_number: str
    model_number: Optional[str] = None
    firmware_version: Optional[str] = None
    spec_version: str
    warning_temp_kelvin: Optional[int] = None
    critical_temp_kelvin: Optional[int] = None


class HwNVMeSmart(BaseModel):
    """SMART / health information log of one NVMe controller."""

    model_config = ConfigDict(frozen=True, extra="forbid", protected_namespaces=())

    device: str
    critical_warning: int
    avail_spare: int
    spare_thresh: Optional[int] = None
    percent_used: int
    data_units_read: Optional[int] = None
    data_units_written: Optional[int] = None
    power_cycles: Optional[int] = None
    power_on_hours: int
    unsafe_shutdowns: Optional[int] = None
    media_errors: Optional[int] = None
    num_err_log_entries: Optional[int] = None
    temperature_sensors: Optional[List[int]] = None


class OSSysInfo(BaseModel):
    """Operating system release and kernel."""

    model_config = ConfigDict(frozen=True, extra="forbid", protected_namespaces=())

    name: str
    version_id: Optional[str] = None
    kernel_release: str
    architecture: str


class SwDriver(BaseModel):
    """One loaded kernel module."""

    model_config = ConfigDict(frozen=True, extra="forbid", protected_namespaces=())

    name: str
    size_bytes: Optional[int] = None
    instances: Optional[int] = None
    state: Optional[str] = None
    dependencies: Optional[List[str]] = None


PAYLOAD_TYPES = {
    EventKind.HW_BASEBOARD: HwBaseboard,
    EventKind.HW_BATTERY_LIFE: HwBatteryLife,
    EventKind.HW_NVME_STORAGE: HwNVMeStorage,
    EventKind.HW_NVME_SMART: HwNVMeSmart,
    EventKind.OS_SYS_INFO: OSSysInfo,
    EventKind.SW_DRIVER: SwDriver,
}

DEFAULT_FREQUENCIES = {
    EventKind.HW_BASEBOARD: SamplingFrequency.WEEKLY,
    EventKind.HW_BATTERY_LIFE: SamplingFrequency.DAILY,
    EventKind.HW_NVME_STORAGE: SamplingFrequency.WEEKLY,
    EventKind.HW_NVME_SMART: SamplingFrequency.DAILY,
    EventKind.OS_SYS_INFO: SamplingFrequency.WEEKLY,
    EventKind.SW_DRIVER: SamplingFrequency.WEEKLY,
}
