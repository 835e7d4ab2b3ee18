from __future__ import annotations

from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..models import Endpoint, Session


class TokenResponse(BaseModel):
    """Body of a successful ``POST /data/token``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    detail: str = ""
    token: str = Field(min_length=1)
    assigned_device_id: str = Field(alias="assignedDeviceID", min_length=1)
    endpoint_map: Dict[str, Tuple[str, str]] = Field(alias="endpointMap")

    def to_session(self) -> Session:
        return Session(
            token=self.token,
            device_id=self.assigned_device_id,
            endpoints={
                name: Endpoint(method=method, url_template=template)
                for name, (method, template) in self.endpoint_map.items()
            },
        )


class ErrorResponse(BaseModel):
    """Structured error body returned with non-success statuses."""

    message: str
