from __future__ import annotations

import argparse
import sys
import uuid
from pathlib import Path
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from . import __version__
from .collectors import default_collectors
from .config import AgentConfig
from .constants import ExitCode
from .errors import ConfigError, HostPulseError, OptOut
from .events import PAYLOAD_TYPES, EventKind
from .identity import read_identity
from .logging import AgentLogger
from .models import SamplingFrequency
from .scheduler import CadenceScheduler, RunReport
from .store import SqliteAgentStore
from .telemetry import ApiClient, is_opted_in, set_consent
from .utils import json_dumps

Handler = Callable[[argparse.Namespace, AgentConfig, AgentLogger], int]


def _store(config: AgentConfig, logger: AgentLogger) -> SqliteAgentStore:
    return SqliteAgentStore(config.state_db_path, logger=logger)


def _connect(config: AgentConfig, logger: AgentLogger) -> ApiClient:
    return ApiClient.connect(read_identity(config), config, logger=logger)


def build_scheduler(config: AgentConfig, logger: AgentLogger) -> CadenceScheduler:
    return CadenceScheduler(
        store=_store(config, logger),
        collectors=default_collectors(config, logger),
        client_factory=lambda: _connect(config, logger),
        lock_path=config.lock_path,
        logger=logger,
    )


def _summarize(report: RunReport) -> Dict[str, object]:
    return {
        "uploaded_events": report.uploaded_events,
        "cadences": {
            result.cadence.value: {
                "due": result.due,
                "events": result.events,
                "unavailable": {k.value: reason for k, reason in result.unavailable.items()},
            }
            for result in report.cadences
        },
    }


def cmd_daily(args: argparse.Namespace, config: AgentConfig, logger: AgentLogger) -> int:
    with logger.stage("daily"):
        report = build_scheduler(config, logger).run()
    logger.info("Run complete", **_summarize(report))
    return ExitCode.SUCCESS


def cmd_consent(args: argparse.Namespace, config: AgentConfig, logger: AgentLogger) -> int:
    store = _store(config, logger)
    if args.action == "status":
        print("opted-in" if is_opted_in(store) else "opted-out")
    else:
        set_consent(store, args.action == "on", logger)
    return ExitCode.SUCCESS


def cmd_frequency(args: argparse.Namespace, config: AgentConfig, logger: AgentLogger) -> int:
    store = _store(config, logger)
    if args.list or args.kind is None:
        frequencies = store.get_frequency_map()
        print(json_dumps({kind.value: freq.value for kind, freq in frequencies.items()}))
        return ExitCode.SUCCESS

    if args.frequency is None:
        raise ConfigError("frequency requires KIND and FREQUENCY (or --list)")
    kind = EventKind(args.kind)
    if args.frequency == "default":
        store.reset_frequency(kind)
    else:
        store.set_frequency(kind, SamplingFrequency(args.frequency))
    logger.info("Event frequency updated", kind=kind.value, frequency=args.frequency)
    return ExitCode.SUCCESS


def cmd_download(args: argparse.Namespace, config: AgentConfig, logger: AgentLogger) -> int:
    with _connect(config, logger) as client:
        data = client.download(compressed=args.zip)
    if args.output:
        Path(args.output).write_bytes(data)
        logger.info("Download written", path=str(args.output), bytes=len(data))
    else:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    return ExitCode.SUCCESS


def cmd_delete(args: argparse.Namespace, config: AgentConfig, logger: AgentLogger) -> int:
    with _connect(config, logger) as client:
        client.delete()
    return ExitCode.SUCCESS


def cmd_kinds(args: argparse.Namespace, config: AgentConfig, logger: AgentLogger) -> int:
    frequencies = _store(config, logger).get_frequency_map()
    for kind in EventKind:
        print(f"{kind.value}\t{frequencies[kind].value}\t{PAYLOAD_TYPES[kind].__name__}")
    return ExitCode.SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hostpulse", description="Host telemetry agent")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Emit debug log lines")
    sub = parser.add_subparsers(dest="command", required=True)

    daily = sub.add_parser("daily", help="Collect due events and upload them")
    daily.set_defaults(handler=cmd_daily)

    consent = sub.add_parser("consent", help="Manage the telemetry opt-in flag")
    consent.add_argument("action", choices=["on", "off", "status"])
    consent.set_defaults(handler=cmd_consent)

    frequency = sub.add_parser("frequency", help="Show or override event cadences")
    frequency.add_argument("kind", nargs="?", choices=[k.value for k in EventKind])
    frequency.add_argument(
        "frequency",
        nargs="?",
        choices=[f.value for f in SamplingFrequency] + ["default"],
    )
    frequency.add_argument("--list", action="store_true", help="Print the effective cadence map")
    frequency.set_defaults(handler=cmd_frequency)

    download = sub.add_parser("download", help="Download this device's data from the server")
    download.add_argument("--zip", action="store_true", help="Request a ZIP archive instead of JSON")
    download.add_argument("-o", "--output", help="Write to FILE instead of stdout")
    download.set_defaults(handler=cmd_download)

    delete = sub.add_parser("delete", help="Ask the server to delete this device's data")
    delete.set_defaults(handler=cmd_delete)

    kinds = sub.add_parser("kinds", help="List telemetry event kinds")
    kinds.set_defaults(handler=cmd_kinds)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    logger = AgentLogger(str(uuid.uuid4()), verbose=args.verbose)

    try:
        config = AgentConfig()
    except ValidationError as exc:
        logger.error("Invalid configuration", error=str(exc))
        return int(ConfigError.exit_code)

    logger.verbose = logger.verbose or config.verbose

    handler: Handler = args.handler
    try:
        return int(handler(args, config, logger))
    except OptOut as exc:
        logger.info("Skipped", reason=str(exc))
        return int(exc.exit_code)
    except HostPulseError as exc:
        logger.error(str(exc), error_type=type(exc).__name__)
        return int(exc.exit_code)


if __name__ == "__main__":
    raise SystemExit(main())
