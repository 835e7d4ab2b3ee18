"""Telemetry API session client and consent gate."""

from .client import (
    ApiClient,
    error_from_response,
    parse_method,
    resolve_endpoint,
    substitute_ids,
)
from .consent import ensure_opted_in, is_opted_in, set_consent
from .schemas import ErrorResponse, TokenResponse

__all__ = [
    "ApiClient",
    "error_from_response",
    "parse_method",
    "resolve_endpoint",
    "substitute_ids",
    "ensure_opted_in",
    "is_opted_in",
    "set_consent",
    "ErrorResponse",
    "TokenResponse",
]
