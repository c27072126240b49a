"""Find, read and validate kitbridge.yaml."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from kitbridge.config.models import KitbridgeConfig

DEFAULT_CONFIG_NAME = "kitbridge.yaml"

#: Environment variable naming a config file to use instead of ./kitbridge.yaml.
CONFIG_ENV_VAR = "KITBRIDGE_CONFIG"


class ConfigError(Exception):
    """User-facing configuration error."""


def load_config(path: Path | None = None) -> KitbridgeConfig:
    """Load kitbridge configuration.

    Lookup order is *path*, then ``$KITBRIDGE_CONFIG``, then
    ``./kitbridge.yaml``.  Only the last one may be absent, in which case
    the built-in defaults are returned.

    A ``.env`` beside the config file is loaded into the environment before
    runtime commands are expanded, so ``runtimes`` may refer to ``$VARS``
    defined there.  A relative ``state_dir`` is taken relative to the
    config file.

    Raises:
        ConfigError: On a missing explicit file, bad YAML, or validation
            failure.
    """
    config_path = _find_config(path)
    if config_path is None:
        return KitbridgeConfig()

    base_dir = config_path.parent
    raw = _read_mapping(config_path)
    env_path = base_dir / ".env"
    if env_path.is_file():
        load_dotenv(env_path)

    _expand_runtimes(raw)
    _anchor_state_dir(raw, base_dir)
    return _validate(raw, config_path)


def _find_config(path: Path | None) -> Path | None:
    explicit = path if path is not None else os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidate = Path(explicit)
        if not candidate.is_file():
            msg = f"Config file not found: {candidate}"
            raise ConfigError(msg)
        return candidate

    candidate = Path.cwd() / DEFAULT_CONFIG_NAME
    return candidate if candidate.is_file() else None


def _read_mapping(path: Path) -> dict[str, Any]:
    try:
        with path.open(encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except OSError as exc:
        msg = f"Cannot read config file: {exc}"
        raise ConfigError(msg) from exc
    except yaml.MarkedYAMLError as exc:
        where = ""
        mark = exc.problem_mark
        if mark is not None:
            where = f" at line {mark.line + 1}, column {mark.column + 1}"
        msg = f"Invalid YAML in {path.name}{where}: {exc.problem or exc}"
        raise ConfigError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in {path.name}: {exc}"
        raise ConfigError(msg) from exc

    match data:
        case None:
            return {}
        case dict():
            return data
        case _:
            msg = f"Expected a YAML mapping in {path.name}, got {type(data).__name__}"
            raise ConfigError(msg)


def _expand_runtimes(raw: dict[str, Any]) -> None:
    """Expand ``~`` and ``$VARS`` in every runtime argv element in place."""
    runtimes = raw.get("runtimes")
    if not isinstance(runtimes, dict):
        return
    for suffix, argv in runtimes.items():
        if isinstance(argv, list):
            runtimes[suffix] = [
                os.path.expanduser(os.path.expandvars(part))
                if isinstance(part, str)
                else part
                for part in argv
            ]


def _anchor_state_dir(raw: dict[str, Any], base_dir: Path) -> None:
    state_dir = raw.get("state_dir")
    if isinstance(state_dir, str):
        expanded = Path(state_dir).expanduser()
        raw["state_dir"] = expanded if expanded.is_absolute() else base_dir / expanded
    elif "state_dir" not in raw:
        raw["state_dir"] = base_dir / ".kitbridge"


def _validate(raw: dict[str, Any], source: Path) -> KitbridgeConfig:
    try:
        return KitbridgeConfig.model_validate(raw)
    except ValidationError as exc:
        lines = [f"Config validation failed in {source.name}:"]
        for err in exc.errors():
            where = ".".join(str(part) for part in err["loc"]) or "(root)"
            match err["type"]:
                case "extra_forbidden":
                    reason = "Unknown setting"
                case "missing":
                    reason = "This field is required"
                case _:
                    reason = err["msg"]
            lines.append(f"  {where}: {reason}")
        raise ConfigError("\n".join(lines)) from exc
