from __future__ import annotations

import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Union

from pydantic import BaseModel

from ..events import EventKind


@dataclass(frozen=True)
class Unavailable:
    """Collector outcome for a host that cannot produce this event kind."""

    reason: str


CollectorOutcome = Union[List[BaseModel], Unavailable]


class Collector(ABC):
    """
    Produces the payloads of one event kind.

    Expected failures (hardware absent, tool missing, unparsable output) are
    reported as ``Unavailable``; an exception escaping ``collect`` is treated
    as a bug and aborts the run.
    """

    @property
    @abstractmethod
    def kind(self) -> EventKind:
        raise NotImplementedError

    @abstractmethod
    def collect(self) -> CollectorOutcome:
        raise NotImplementedError


@dataclass(frozen=True)
class CommandResult:
    args: list[str]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False


def run_command(args: list[str], timeout_s: int) -> CommandResult:
    try:
        proc = subprocess.run(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=timeout_s,
            check=False,
        )
    except FileNotFoundError:
        return CommandResult(args=args, returncode=127, stdout="", stderr="command not found")
    except OSError as exc:
        return CommandResult(args=args, returncode=126, stdout="", stderr=str(exc))
    except subprocess.TimeoutExpired as exc:
        return CommandResult(
            args=args,
            returncode=-1,
            stdout=(exc.stdout or b"").decode("utf-8", errors="ignore"),
            stderr=(exc.stderr or b"").decode("utf-8", errors="ignore"),
            timed_out=True,
        )

    return CommandResult(
        args=args,
        returncode=int(proc.returncode or 0),
        stdout=(proc.stdout or b"").decode("utf-8", errors="ignore"),
        stderr=(proc.stderr or b"").decode("utf-8", errors="ignore"),
        timed_out=False,
    )
