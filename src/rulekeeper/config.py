"""Global configuration access for rulekeeper.

Reads the YAML config file located by ``config_loader.config_file_path()``
and layers environment overrides on top.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    RULEKEEPER_CONFIG: Explicit config file path.
    RULEKEEPER_AUTO_PULL: Enable/disable source refresh (true/false).
    RULEKEEPER_PULL_FREQUENCY: always, daily, weekly or never.
"""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from .config_loader import config_file_path, dump_yaml_file, load_raw_config
from .config_schema import (
    PULL_FREQUENCIES,
    GlobalConfig,
    SettingsConfig,
    SourceConfig,
    build_config,
)
from .errors import ConfigMissingError

logger = logging.getLogger(__name__)


def expand_tilde(path: str) -> str:
    """Expand a leading ``~`` to the user's home directory."""
    if path.startswith("~"):
        return str(Path.home() / path[1:].lstrip("/\\"))
    return path


def config_exists() -> bool:
    return config_file_path().exists()


def get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _apply_env_overrides(config: GlobalConfig) -> GlobalConfig:
    updates: dict = {}

    env_auto_pull = get_bool_env("RULEKEEPER_AUTO_PULL")
    if env_auto_pull is not None:
        updates["auto_pull"] = env_auto_pull

    env_frequency = os.getenv("RULEKEEPER_PULL_FREQUENCY")
    if env_frequency is not None:
        frequency = env_frequency.strip().lower()
        if frequency not in PULL_FREQUENCIES:
            raise ValueError(
                f"Invalid RULEKEEPER_PULL_FREQUENCY '{env_frequency}': "
                f"must be one of {', '.join(PULL_FREQUENCIES)}"
            )
        updates["pull_frequency"] = frequency

    if not updates:
        return config

    settings = config.settings.model_copy(update=updates)
    return config.model_copy(update={"settings": settings})


def load_config(apply_env: bool = True) -> GlobalConfig:
    """Load the global configuration.

    Args:
        apply_env: Apply ``${VAR}`` interpolation and environment overrides.
            Pass ``False`` when the config will be modified and saved back.

    Returns:
        Validated ``GlobalConfig``.

    Raises:
        ConfigMissingError: If no config file exists.
        ValueError: If the file is unreadable YAML or fails validation.
    """
    path = config_file_path()
    if not path.exists():
        raise ConfigMissingError(str(path))

    raw = load_raw_config(path, interpolate=apply_env)
    try:
        config = build_config(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid config file {path}: {exc}") from exc

    if apply_env:
        config = _apply_env_overrides(config)
    return config


def save_config(config: GlobalConfig) -> Path:
    """Persist *config* to the global config path and return that path."""
    path = config_file_path()
    dump_yaml_file(path, config.to_dict())
    logger.debug("Saved config: %s", path)
    return path


def create_config(
    source_type: str,
    source_path: str,
    remote: str | None = None,
    auto_pull: bool = True,
    pull_frequency: str = "daily",
) -> GlobalConfig:
    """Build a fresh ``GlobalConfig`` for ``init``."""
    return GlobalConfig(
        source=SourceConfig(
            type=source_type, path=source_path, remote=remote
        ),
        settings=SettingsConfig(
            auto_pull=auto_pull, pull_frequency=pull_frequency
        ),
    )


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def update_last_pull() -> None:
    """Stamp ``settings.lastPull`` with the current time.

    Re-reads the file without env overrides so that only the timestamp
    changes on disk.  No-op when no config exists.
    """
    try:
        config = load_config(apply_env=False)
    except ConfigMissingError:
        return
    settings = config.settings.model_copy(update={"last_pull": now_iso()})
    save_config(config.model_copy(update={"settings": settings}))
