"""Host telemetry agent: event taxonomy, API session client and cadence scheduler."""

__version__ = "0.4.0"
