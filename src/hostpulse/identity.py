from __future__ import annotations

import uuid
from pathlib import Path
from typing import Iterable, Optional

from .config import AgentConfig
from .errors import ConfigError
from .models import DeviceIdentity
from .utils import read_text_or_none

DMI_PRODUCT_UUID = Path("class/dmi/id/product_uuid")
MACHINE_ID_PATHS = (Path("/etc/machine-id"), Path("/var/lib/dbus/machine-id"))


def _normalize_uuid(value: str) -> str:
    """Canonical lowercase UUID form; non-UUID values are kept as-is."""
    try:
        return str(uuid.UUID(value.strip()))
    except ValueError:
        return value.strip()


def _first_readable(paths: Iterable[Path]) -> Optional[str]:
    for path in paths:
        value = read_text_or_none(path)
        if value:
            return value
    return None


def read_identity(
    config: AgentConfig,
    machine_id_paths: Iterable[Path] = MACHINE_ID_PATHS,
) -> DeviceIdentity:
    """
    Device and OS-install identifiers for this host.

    Configuration overrides win; otherwise the DMI product UUID identifies the
    device and the systemd machine ID identifies the OS installation.
    """
    device_id = config.device_id or read_text_or_none(config.sysfs_root / DMI_PRODUCT_UUID)
    if not device_id:
        raise ConfigError("cannot determine device ID; set HOSTPULSE_DEVICE_ID")

    os_install_id = config.os_install_id or _first_readable(machine_id_paths)
    if not os_install_id:
        raise ConfigError("cannot determine OS install ID; set HOSTPULSE_OS_INSTALL_ID")

    return DeviceIdentity(
        device_id=_normalize_uuid(device_id),
        os_install_id=_normalize_uuid(os_install_id),
    )
