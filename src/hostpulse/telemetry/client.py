from __future__ import annotations

import base64
import binascii
import re
from typing import Any, Dict, Iterable, Optional, Tuple, Type

import requests
from pydantic import ValidationError

from .. import __version__
from ..config import AgentConfig
from ..constants import AUTH_HEADER, OP_DELETE, OP_DOWNLOAD, OP_UPLOAD, Defaults
from ..errors import (
    AuthenticationFailure,
    DecodeFailure,
    EndpointNotConfigured,
    InvalidMethod,
    RequestFailure,
)
from ..events import TelemetryEvent, batch_to_wire
from ..logging import AgentLogger
from ..models import DeviceIdentity, HttpMethod, Session
from .schemas import ErrorResponse, TokenResponse

TOKEN_PATH = "/data/token"

_PLACEHOLDER = re.compile(r"\{(dID|osID)\}")


def parse_method(raw: str) -> HttpMethod:
    try:
        return HttpMethod(str(raw).strip().upper())
    except ValueError:
        raise InvalidMethod(f"unsupported HTTP method {raw!r}") from None


def substitute_ids(template: str, device_id: str, os_install_id: str) -> str:
    """
    Fill ``{dID}`` and ``{osID}`` in one pass.

    Substituted values are never rescanned, so an ID that happens to contain
    a placeholder cannot leak into the other one.
    """
    values = {"dID": device_id, "osID": os_install_id}
    return _PLACEHOLDER.sub(lambda match: values[match.group(1)], template)


def resolve_endpoint(
    session: Session,
    name: str,
    os_install_id: str,
    base_url: str,
) -> Tuple[HttpMethod, str]:
    endpoint = session.endpoints.get(name)
    if endpoint is None:
        raise EndpointNotConfigured(f"no endpoint configured for {name!r}")

    method = parse_method(endpoint.method)
    path = substitute_ids(endpoint.url_template, session.device_id, os_install_id)
    if path.startswith(("http://", "https://")):
        return method, path
    return method, f"{base_url.rstrip('/')}{path}"


def _status_text(response: requests.Response) -> str:
    return f"{response.status_code} {response.reason or ''}".strip()


def _is_success(response: requests.Response) -> bool:
    return 200 <= response.status_code < 300


def error_from_response(
    response: requests.Response,
    error_cls: Type[RequestFailure] = RequestFailure,
) -> RequestFailure:
    """Build an error from a non-success response, preferring the server's message."""
    status = _status_text(response)
    try:
        message = ErrorResponse.model_validate(response.json()).message
    except (ValueError, ValidationError):
        return error_cls(status, status_code=response.status_code)
    return error_cls(f"{status}: {message}", status_code=response.status_code, server_message=message)


class ApiClient:
    """
    Synchronous client for the telemetry ingestion API.

    One instance owns one session: ``initiate`` exchanges the device identity
    for a token and an endpoint map, which are then used unchanged for the
    lifetime of the instance. Nothing is retried here.
    """

    def __init__(
        self,
        identity: DeviceIdentity,
        *,
        base_url: str = Defaults.API_URL,
        timeout: float = Defaults.REQUEST_TIMEOUT_SECONDS,
        http: Optional[requests.Session] = None,
        logger: Optional[AgentLogger] = None,
    ):
        self.identity = identity
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()
        self.http.headers.update({
            "Accept": "application/json",
            "User-Agent": f"hostpulse/{__version__}",
        })
        self.logger = logger
        self._session: Optional[Session] = None

    @classmethod
    def connect(
        cls,
        identity: DeviceIdentity,
        config: AgentConfig,
        *,
        http: Optional[requests.Session] = None,
        logger: Optional[AgentLogger] = None,
    ) -> "ApiClient":
        client = cls(
            identity,
            base_url=config.api_url,
            timeout=config.request_timeout_seconds,
            http=http,
            logger=logger,
        )
        client.initiate()
        return client

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.http.close()

    @property
    def session(self) -> Session:
        if self._session is None:
            raise AuthenticationFailure("no session: initiate() has not succeeded")
        return self._session

    def initiate(self) -> Session:
        """Exchange the device identity for a session (once per instance)."""
        if self._session is not None:
            return self._session

        url = f"{self.base_url}{TOKEN_PATH}"
        try:
            response = self.http.post(url, json=self.identity.to_wire(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise AuthenticationFailure(f"token request failed: {exc}") from exc

        if not _is_success(response):
            raise error_from_response(response, AuthenticationFailure)

        try:
            token = TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise AuthenticationFailure(
                f"malformed token response: {exc}", status_code=response.status_code
            ) from exc

        self._session = token.to_session()
        if self.logger:
            self.logger.info(
                "Session initiated",
                device_id=self._session.device_id,
                endpoints=sorted(self._session.endpoints),
            )
        return self._session

    def resolve(self, name: str) -> Tuple[HttpMethod, str]:
        return resolve_endpoint(self.session, name, self.identity.os_install_id, self.base_url)

    def execute(
        self,
        name: str,
        query: Optional[Dict[str, str]] = None,
        body: Any = None,
    ) -> requests.Response:
        method, url = self.resolve(name)
        kwargs: Dict[str, Any] = {
            "headers": {AUTH_HEADER: self.session.token},
            "params": query or None,
            "timeout": self.timeout,
        }
        if body is not None:
            kwargs["json"] = body

        try:
            response = self.http.request(method.value, url, **kwargs)
        except requests.Timeout as exc:
            raise RequestFailure(f"{name} timed out after {self.timeout}s") from exc
        except requests.RequestException as exc:
            raise RequestFailure(f"{name} failed: {exc}") from exc

        if self.logger:
            self.logger.debug("API request", operation=name, method=method.value, status=response.status_code)

        if not _is_success(response):
            raise error_from_response(response)
        return response

    def upload(self, batch: Iterable[TelemetryEvent]) -> Any:
        """Send one batch; returns the server's acknowledgement as parsed JSON."""
        events = batch_to_wire(batch)
        response = self.execute(OP_UPLOAD, body=events)
        if self.logger:
            self.logger.info("Events uploaded", count=len(events), status=response.status_code)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeFailure(f"upload acknowledgement is not JSON: {exc}") from exc

    def download(self, compressed: bool) -> bytes:
        """Fetch the device's stored data, as a ZIP archive or raw JSON bytes."""
        file_format = "ZIP" if compressed else "JSON"
        response = self.execute(OP_DOWNLOAD, query={"fileFormat": file_format})
        if not compressed:
            return response.content
        # ZIP bodies travel as base64 text.
        encoded = b"".join(response.content.split())
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecodeFailure(f"download body is not valid base64: {exc}") from exc

    def delete(self) -> None:
        self.execute(OP_DELETE)
        if self.logger:
            self.logger.info("Server-side data deletion requested")
