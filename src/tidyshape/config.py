# -------------------------------------
# tidyshape options
# -------------------------------------
"""
Package options, with optional YAML overrides.

Options are addressed by dot-separated key paths:

    display.max_rows        rows shown by format_table/print_table
    display.float_digits    significant digits for floats
    summarise.groups        residual grouping after summarise:
                            "drop_last", "drop" or "keep"

An options file is YAML with the settings either at the top level or under
a `tidyshape:` key:

    tidyshape:
      display:
        max_rows: 50
      summarise:
        groups: drop
"""
from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULTS: dict[str, Any] = {
    "display": {
        "max_rows": 20,
        "float_digits": 3,
    },
    "summarise": {
        "groups": "drop_last",
    },
}

SUMMARISE_GROUPS = ("drop_last", "drop", "keep")

_OPTIONS: dict[str, Any] = copy.deepcopy(DEFAULTS)

# Parsed options files keyed by resolved path
_FILE_CACHE: dict[str, dict[str, Any]] = {}


def _check(key_path: str, value: Any) -> Any:
    if key_path == "summarise.groups":
        if value not in SUMMARISE_GROUPS:
            raise ConfigError(
                f"summarise.groups must be one of {SUMMARISE_GROUPS}, got {value!r}"
            )
    elif key_path in ("display.max_rows", "display.float_digits"):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ConfigError(f"{key_path} must be a positive integer, got {value!r}")
    return value


def _flatten(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    out = {}
    for key, value in data.items():
        path = f"{prefix}{key}"
        if isinstance(value, dict):
            out.update(_flatten(value, prefix=path + "."))
        else:
            out[path] = value
    return out


def get_option(key_path: str) -> Any:
    """Get an option value by its dot-separated key path."""
    current: Any = _OPTIONS
    for key in key_path.split("."):
        if not isinstance(current, dict) or key not in current:
            raise ConfigError(f"Unknown option '{key_path}'")
        current = current[key]
    return current


def set_option(key_path: str, value: Any) -> None:
    """Set an option value by its dot-separated key path."""
    keys = key_path.split(".")
    current = _OPTIONS
    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            raise ConfigError(f"Unknown option '{key_path}'")
        current = current[key]
    if keys[-1] not in current or isinstance(current[keys[-1]], dict):
        raise ConfigError(f"Unknown option '{key_path}'")
    current[keys[-1]] = _check(key_path, value)


def reset_options() -> None:
    """Restore every option to its default."""
    _OPTIONS.clear()
    _OPTIONS.update(copy.deepcopy(DEFAULTS))


def read_options_file(path: str | Path) -> dict[str, Any]:
    """
    Read an options YAML file and return its flattened settings.

    Args:
        path: Path to the YAML file

    Returns:
        Dict of dot-separated key path -> value

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If the file is not valid YAML
        ConfigError: If the file does not hold a mapping
    """
    path = Path(path)
    path_str = str(path.resolve())

    if path_str in _FILE_CACHE:
        return _FILE_CACHE[path_str]

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Options file '{path}' does not contain a mapping")
    if "tidyshape" in data:
        data = data["tidyshape"] or {}
        if not isinstance(data, dict):
            raise ConfigError(f"'tidyshape' section of '{path}' is not a mapping")

    flat = _flatten(data)
    _FILE_CACHE[path_str] = flat
    return flat


def load_options(path: str | Path) -> dict[str, Any]:
    """
    Apply the settings of an options file on top of the current options.

    Returns:
        The applied settings (dot-separated key path -> value)
    """
    settings = read_options_file(path)
    # validate everything before applying anything
    for key_path, value in settings.items():
        get_option(key_path)
        _check(key_path, value)
    for key_path, value in settings.items():
        set_option(key_path, value)
    logger.debug("loaded %d option(s) from %s", len(settings), path)
    return dict(settings)


def clear_cache() -> None:
    """Clear the options file cache."""
    _FILE_CACHE.clear()
