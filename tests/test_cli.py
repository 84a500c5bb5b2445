from __future__ import annotations

import json
import signal
from pathlib import Path

import pytest
from typer.testing import CliRunner

from runnables.cli import main as cli_main
from runnables.cli.main import app


def test_cli_run_prints_json_result(prog: list[str]) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["run", "--preset", "quiet", "--json", *prog, "echo", "hi"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["stdout"] == "hi\n"
    assert data["err_code"] == 0
    assert data["signal"] is None
    assert data["command"] == [*prog, "echo", "hi"]


def test_cli_run_tees_output(prog: list[str]) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["run", *prog, "echo", "mirrored"])

    assert result.exit_code == 0
    assert "mirrored" in result.stdout


def test_cli_run_stream_override(prog: list[str]) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["run", "--stdout", "capture", *prog, "echo", "hidden"])

    assert result.exit_code == 0
    assert "hidden" not in result.stdout


def test_cli_run_propagates_exit_code(prog: list[str]) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["run", "-p", "quiet", *prog, "exit", "12"])

    assert result.exit_code == 12


def test_cli_run_maps_signal_to_exit_code(prog: list[str]) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["run", "-p", "quiet", *prog, "signal-self", "SIGTERM"])

    assert result.exit_code == 128 + int(signal.SIGTERM)


def test_cli_run_spawn_failure(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["run", str(tmp_path / "missing-binary")])

    assert result.exit_code == 127


def test_cli_run_rejects_unknown_preset(prog: list[str]) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["run", "--preset", "loud", *prog, "echo", "hi"])

    assert result.exit_code == 2
    assert "unknown preset" in result.stdout


def test_cli_run_uses_config_defaults(prog: list[str], tmp_path: Path) -> None:
    config_path = tmp_path / "runnables.yaml"
    config_path.write_text('{"defaults": {"success_codes": [0, 5]}}', encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(
        app, ["run", "-p", "quiet", "--config", str(config_path), *prog, "exit", "5"]
    )

    assert result.exit_code == 0


def test_cli_show_config(tmp_path: Path) -> None:
    (tmp_path / "runnables.yaml").write_text(
        '{"defaults": {"stdout": "capture"}}', encoding="utf-8"
    )
    runner = CliRunner()

    result = runner.invoke(app, ["show-config", "--config", str(tmp_path)])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["defaults"]["stdout"] == "capture"
    assert data["defaults"]["stderr"] == "tee"


def _record_log_levels(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    levels: list[str] = []
    monkeypatch.setattr(cli_main, "configure_logging", lambda level: levels.append(level))
    return levels


def test_cli_run_applies_configured_log_level(
    prog: list[str], tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    levels = _record_log_levels(monkeypatch)
    config_path = tmp_path / "runnables.yaml"
    config_path.write_text('{"log_level": "DEBUG"}', encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(
        app, ["run", "-p", "quiet", "--config", str(config_path), *prog, "echo", "hi"]
    )

    assert result.exit_code == 0
    assert levels == ["DEBUG"]


def test_cli_log_level_option_overrides_config(
    prog: list[str], tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    levels = _record_log_levels(monkeypatch)
    config_path = tmp_path / "runnables.yaml"
    config_path.write_text('{"log_level": "DEBUG"}', encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(
        app,
        [
            "--log-level",
            "INFO",
            "run",
            "-p",
            "quiet",
            "--config",
            str(config_path),
            *prog,
            "echo",
            "hi",
        ],
    )

    assert result.exit_code == 0
    assert levels == ["INFO"]


def test_cli_show_config_applies_log_level(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    levels = _record_log_levels(monkeypatch)
    (tmp_path / "runnables.yaml").write_text('{"log_level": "ERROR"}', encoding="utf-8")
    runner = CliRunner()

    result = runner.invoke(app, ["show-config", "--config", str(tmp_path)])

    assert result.exit_code == 0
    assert levels == ["ERROR"]
    assert json.loads(result.stdout)["log_level"] == "ERROR"


def test_cli_stream_flags_layer_over_config_defaults(
    prog: list[str], tmp_path: Path
) -> None:
    config_path = tmp_path / "runnables.yaml"
    config_path.write_text(
        '{"defaults": {"stdout": "capture", "stderr": "capture"}}', encoding="utf-8"
    )
    runner = CliRunner()

    result = runner.invoke(
        app,
        ["run", "--stdout", "tee", "--config", str(config_path), *prog, "echo", "shown"],
    )

    assert result.exit_code == 0
    assert "shown" in result.stdout
