from __future__ import annotations

import os
from pathlib import Path

import pytest

from runnables.util.paths import TextPath


def test_write_read_and_remove(tmp_path: Path) -> None:
    target = TextPath(tmp_path).join("out.txt")

    assert target.exists() is False
    target.write("hello\n")
    assert target.exists() is True
    assert target.read() == "hello\n"
    assert target.basename() == "out.txt"
    assert str(target) == str(tmp_path / "out.txt")

    target.rm()
    assert target.exists() is False


def test_exists_below_a_file_is_false(tmp_path: Path) -> None:
    parent = TextPath(tmp_path / "file.txt")
    parent.write("x")

    assert parent.join("child").exists() is False


@pytest.mark.skipif(os.geteuid() == 0, reason="root ignores directory permissions")
def test_exists_propagates_permission_errors(tmp_path: Path) -> None:
    locked = tmp_path / "locked"
    locked.mkdir()
    locked.chmod(0)
    try:
        with pytest.raises(PermissionError):
            TextPath(locked / "inner").exists()
    finally:
        locked.chmod(0o755)


def test_file_produced_by_command(prog: list[str], tmp_path: Path) -> None:
    from runnables import run_quietly

    target = TextPath(tmp_path / "made.txt")
    code = f"open({str(target)!r}, 'w', encoding='utf-8').write('made')"

    run_quietly([prog[0], "-c", code])

    assert target.read() == "made"
