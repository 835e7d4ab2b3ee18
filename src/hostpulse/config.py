from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, confloat, conint, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import Defaults


class AgentConfig(BaseSettings):
    """Agent configuration loaded from HOSTPULSE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HOSTPULSE_",
        frozen=True,
        extra="ignore",
    )

    # Telemetry API
    api_url: str = Field(default=Defaults.API_URL, description="Base URL of the ingestion service")
    request_timeout_seconds: confloat(gt=0) = Field(
        default=Defaults.REQUEST_TIMEOUT_SECONDS,
        description="Connect/read timeout applied to every API request",
    )

    # Local state
    lock_path: Path = Field(default=Path(Defaults.LOCK_PATH))
    state_db_path: Path = Field(default=Path(Defaults.STATE_DB_PATH))

    # Identity overrides (read from the host when unset)
    device_id: Optional[str] = Field(default=None, description="Overrides the DMI product UUID")
    os_install_id: Optional[str] = Field(default=None, description="Overrides /etc/machine-id")

    # Collectors
    nvme_command: str = Field(default=Defaults.NVME_COMMAND)
    collector_timeout_seconds: conint(ge=1) = Field(default=Defaults.COLLECTOR_TIMEOUT_SECONDS)
    sysfs_root: Path = Field(default=Path(Defaults.SYSFS_ROOT))

    verbose: bool = Field(default=False, description="Emit debug log lines")

    @field_validator("api_url", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        if isinstance(value, str):
            return value.strip().rstrip("/")
        return value

    @field_validator("api_url")
    @classmethod
    def _require_http_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("api_url must start with http:// or https://")
        return value

    @field_validator("device_id", "os_install_id", mode="before")
    @classmethod
    def _blank_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value
