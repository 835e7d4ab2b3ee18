from __future__ import annotations

from typing import Optional

from .constants import ExitCode


class HostPulseError(Exception):
    """Base exception for all agent errors."""

    exit_code: ExitCode = ExitCode.ERROR


class ConfigError(HostPulseError):
    """Configuration validation failed."""


class RequestFailure(HostPulseError):
    """Transport failure or non-success response from the telemetry API."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        server_message: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.server_message = server_message


class AuthenticationFailure(RequestFailure):
    """Bootstrap token exchange failed."""


class EndpointNotConfigured(HostPulseError):
    """Session endpoint map has no entry for the requested operation."""


class InvalidMethod(HostPulseError):
    """Endpoint map names an HTTP method we cannot send."""


class DecodeFailure(HostPulseError):
    """Response or wire object could not be decoded."""


class UnknownEventKind(DecodeFailure):
    """Wire object carries a discriminant outside the event taxonomy."""


class CollectionFailure(HostPulseError):
    """A collector raised instead of returning payloads or Unavailable."""


class LockContention(HostPulseError):
    """Another invocation holds the agent lock."""

    exit_code = ExitCode.LOCKED


class OptOut(HostPulseError):
    """Host has not opted in (not an error, clean exit)."""

    exit_code = ExitCode.SUCCESS
