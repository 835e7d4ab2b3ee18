from __future__ import annotations

import platform
import shlex
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel

from ..events import EventKind
from ..events.generated import OSSysInfo, SwDriver
from .base import Collector, CollectorOutcome, Unavailable


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse os-release(5) KEY=value lines; values may be shell-quoted."""
    fields: Dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, raw = line.partition("=")
        try:
            parts = shlex.split(raw)
        except ValueError:
            continue
        fields[key.strip()] = parts[0] if parts else ""
    return fields


def parse_proc_modules(text: str) -> List[SwDriver]:
    """
    Parse /proc/modules.

    Line format: ``name size instances deps state offset``, where deps is
    ``-`` or a comma-terminated list.
    """
    drivers: List[SwDriver] = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 5:
            continue
        name, size, instances, deps, state = parts[:5]
        drivers.append(
            SwDriver(
                name=name,
                size_bytes=int(size) if size.isdigit() else None,
                instances=int(instances) if instances.isdigit() else None,
                state=state,
                dependencies=[d for d in deps.split(",") if d and d != "-"],
            )
        )
    return drivers


class OsInfoCollector(Collector):
    kind = EventKind.OS_SYS_INFO

    def __init__(self, os_release_path: Path = Path("/etc/os-release")):
        self.os_release_path = Path(os_release_path)

    def _os_release(self) -> Dict[str, str]:
        try:
            return parse_os_release(self.os_release_path.read_text(encoding="utf-8", errors="replace"))
        except OSError:
            return {}

    def collect(self) -> CollectorOutcome:
        release = self._os_release()
        version_id: Optional[str] = release.get("VERSION_ID") or None
        return [
            OSSysInfo(
                name=release.get("NAME") or platform.system(),
                version_id=version_id,
                kernel_release=platform.release(),
                architecture=platform.machine(),
            )
        ]


class DriverCollector(Collector):
    kind = EventKind.SW_DRIVER

    def __init__(self, proc_root: Path = Path("/proc")):
        self.modules_path = Path(proc_root) / "modules"

    def collect(self) -> CollectorOutcome:
        try:
            text = self.modules_path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            return Unavailable(f"cannot read {self.modules_path}: {exc.strerror or exc}")
        drivers: List[BaseModel] = list(parse_proc_modules(text))
        if not drivers:
            return Unavailable("no loaded kernel modules")
        return drivers
