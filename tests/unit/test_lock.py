from __future__ import annotations

from pathlib import Path

import pytest

from hostpulse.errors import LockContention
from hostpulse.lock import acquire_exclusive


def test_lock_creates_file_and_records_pid(tmp_path: Path) -> None:
    path = tmp_path / "run" / "daily.lock"

    with acquire_exclusive(path) as held:
        assert held.path == path
        assert path.read_text().strip().isdigit()


def test_second_holder_fails_immediately(tmp_path: Path) -> None:
    path = tmp_path / "daily.lock"

    with acquire_exclusive(path):
        with pytest.raises(LockContention):
            with acquire_exclusive(path):
                pass


def test_lock_released_on_exit(tmp_path: Path) -> None:
    path = tmp_path / "daily.lock"

    with acquire_exclusive(path):
        pass
    with acquire_exclusive(path):
        pass


def test_lock_released_after_exception(tmp_path: Path) -> None:
    path = tmp_path / "daily.lock"

    with pytest.raises(RuntimeError):
        with acquire_exclusive(path):
            raise RuntimeError("crash")

    with acquire_exclusive(path):
        pass
