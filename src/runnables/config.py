"""Configuration models and loaders for runnables."""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from runnables.execution.base import RunOptions, StreamMode, resolve_run_options

CONFIG_FILE_NAMES: tuple[str, ...] = ("runnables.yaml", "runnables.yml", "pyproject.toml")


@dataclass(frozen=True)
class RunnablesConfig:
    """Top-level configuration.

    Attributes:
        defaults: Run options applied before per-call options.
        log_level: Logging level used by the CLI.
        merge_env: Whether an ``env`` spawn option extends ``os.environ``
            rather than replacing it.
    """

    defaults: RunOptions = field(default_factory=lambda: resolve_run_options())
    log_level: str = "WARNING"
    merge_env: bool = True


def load_config(path: Path | None = None) -> RunnablesConfig:
    """Load configuration from disk.

    Args:
        path: Optional path to a configuration file or a directory to search.

    Returns:
        Parsed RunnablesConfig with defaults applied when no config exists.
    """

    config_path = _resolve_config_path(path)
    if config_path is None:
        return RunnablesConfig()

    if config_path.suffix in {".yaml", ".yml"}:
        raw_data = _load_yaml(config_path)
    elif config_path.suffix == ".toml":
        raw_data = _load_toml(config_path)
    else:
        raise ValueError(f"Unsupported config file type: {config_path}")

    return _parse_config(raw_data)


def config_to_dict(config: RunnablesConfig) -> dict[str, Any]:
    """Serialize a RunnablesConfig into a JSON-compatible dictionary."""

    defaults = config.defaults
    return {
        "log_level": config.log_level,
        "merge_env": config.merge_env,
        "defaults": {
            "stdout": defaults.stdout.value if defaults.stdout else None,
            "stderr": defaults.stderr.value if defaults.stderr else None,
            "success_codes": sorted(defaults.success_codes or ()),
            "allowed_signals": sorted(defaults.allowed_signals or ()),
        },
    }


def update_defaults(config: RunnablesConfig, overrides: RunOptions) -> RunnablesConfig:
    """Return a config copy with run option overrides applied."""

    return replace(config, defaults=config.defaults.merged(overrides))


def _resolve_config_path(path: Path | None) -> Path | None:
    if path is None:
        candidate_paths = [Path(name) for name in CONFIG_FILE_NAMES]
    elif path.is_dir():
        candidate_paths = [path / name for name in CONFIG_FILE_NAMES]
    else:
        candidate_paths = [path]

    for candidate in candidate_paths:
        if candidate.exists():
            return candidate
    if path is not None and not path.is_dir():
        raise FileNotFoundError(f"Config file not found: {path}")
    return None


def _load_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    if path.name == "pyproject.toml":
        tool_config = data.get("tool", {}).get("runnables", {})
        if not isinstance(tool_config, dict):
            raise ValueError("tool.runnables must be a mapping.")
        return tool_config
    return data


def _load_yaml(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None
    if data is not None:
        if not isinstance(data, dict):
            raise ValueError("YAML configuration must be a mapping.")
        return data
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as exc:
        raise RuntimeError(
            "PyYAML is required to parse non-JSON YAML configuration files."
        ) from exc
    parsed = yaml.safe_load(text)
    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValueError("YAML configuration must be a mapping.")
    return parsed


def _parse_config(raw_data: dict[str, Any]) -> RunnablesConfig:
    return RunnablesConfig(
        defaults=_parse_run_options(raw_data.get("defaults", {})),
        log_level=str(raw_data.get("log_level", "WARNING")),
        merge_env=bool(raw_data.get("merge_env", True)),
    )


def _parse_run_options(raw: Any) -> RunOptions:
    if not isinstance(raw, dict):
        raise ValueError("defaults must be a mapping of run options.")
    success_codes = raw.get("success_codes")
    if success_codes is not None and not isinstance(success_codes, list):
        raise ValueError("success_codes must be a list of integers.")
    allowed_signals = raw.get("allowed_signals")
    if allowed_signals is not None and not isinstance(allowed_signals, list):
        raise ValueError("allowed_signals must be a list of signal names.")
    return resolve_run_options(
        RunOptions(
            stdout=_optional_mode(raw.get("stdout")),
            stderr=_optional_mode(raw.get("stderr")),
            success_codes=frozenset(int(code) for code in success_codes)
            if success_codes is not None
            else None,
            allowed_signals=frozenset(str(name) for name in allowed_signals)
            if allowed_signals is not None
            else None,
        )
    )


def _optional_mode(value: Any) -> StreamMode | None:
    if value is None:
        return None
    return StreamMode(str(value).strip().lower())
