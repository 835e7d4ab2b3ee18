from __future__ import annotations

from datetime import timedelta
from enum import Enum


class ExitCode(int, Enum):
    """Process exit codes."""

    SUCCESS = 0
    ERROR = 2
    LOCKED = 3


class Defaults:
    """Shared defaults for the agent."""

    API_URL = "https://telemetry.example.invalid"
    REQUEST_TIMEOUT_SECONDS = 30.0
    COLLECTOR_TIMEOUT_SECONDS = 10
    LOCK_PATH = "/var/lib/hostpulse/daily.lock"
    STATE_DB_PATH = "/var/lib/hostpulse/state.db"
    SYSFS_ROOT = "/sys"
    NVME_COMMAND = "nvme"


WEEKLY_PERIOD = timedelta(days=7)

# Header carrying the session token on authenticated requests.
AUTH_HEADER = "authorizationToken"

# Logical operation names published by the server in the endpoint map.
OP_UPLOAD = "DataUpload"
OP_DOWNLOAD = "DataDownload"
OP_DELETE = "DataDelete"
