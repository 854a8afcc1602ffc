"""
YAML loading and persistence helpers for rulekeeper.

Provides config file discovery, env var interpolation and atomic YAML
writes.  Both the global config and the per-project manifest go through
``load_yaml_file()`` / ``dump_yaml_file()``.

Usage:
    from rulekeeper.config_loader import config_file_path, load_raw_config

    raw = load_raw_config(config_file_path())
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "RULEKEEPER_CONFIG"
CONFIG_FILENAME = "config.yaml"

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` patterns with env values.

    * ``${VAR}`` is replaced with ``os.environ.get(VAR, "")``.
    * ``${VAR:-default}`` uses *default* when VAR is unset or empty.
    * Literal ``${`` with no closing ``}`` is left untouched.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        default = match.group(2)  # None when no :- clause
        env_val = os.environ.get(var_name)
        if env_val is not None and env_val != "":
            return env_val
        if default is not None:
            return default
        return ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    """Walk a nested dict/list and interpolate env vars in all strings."""
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. Config file discovery
# ---------------------------------------------------------------------------


def config_dir() -> Path:
    """Return the directory holding the global config.

    ``$XDG_CONFIG_HOME/rulekeeper`` when set, otherwise
    ``~/.config/rulekeeper``.
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / "rulekeeper"


def config_file_path() -> Path:
    """Return the global config file path.

    ``RULEKEEPER_CONFIG`` (explicit single path) wins over the default
    location under ``config_dir()``.  The file need not exist.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser().resolve()
    return config_dir() / CONFIG_FILENAME


# ---------------------------------------------------------------------------
# 3. YAML read / write
# ---------------------------------------------------------------------------


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from *path*.

    Returns an empty dict for an empty file.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file is not valid YAML or its root is not a
            mapping.
    """
    with open(path, "r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"{path} has non-mapping root ({type(data).__name__})"
        )
    return data


def dump_yaml_file(path: Path, data: dict[str, Any]) -> None:
    """Write *data* to *path* as YAML atomically.

    Writes to a temporary file in the same directory then replaces the
    target, so readers never see a partial file.  Creates the parent
    directory if needed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            yaml.safe_dump(
                data,
                fh,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
                indent=2,
            )
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up temp file on any failure.
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def load_raw_config(path: Path, interpolate: bool = True) -> dict[str, Any]:
    """Load the global config file as a plain dict.

    When *interpolate* is true, ``${VAR}`` references in string values are
    expanded.  Callers that intend to write the config back must pass
    ``interpolate=False`` so references survive the round trip.
    """
    logger.debug("Loading config: %s", path)
    data = load_yaml_file(path)
    if interpolate:
        data = _interpolate_recursive(data)
    return data
