"""Global configuration schema for rulekeeper.

Defines Pydantic models for the global config file: where the shared rules
live (``source``), how often the source is refreshed (``settings``) and how
the CLI logs (``logging``).  Keys are persisted in camelCase (``autoPull``,
``pullFrequency``, ``lastPull``) and exposed as snake_case attributes.

Usage:
    from rulekeeper.config_schema import build_config

    raw = load_raw_config(path)
    config = build_config(raw)
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

SourceType = Literal["local", "git"]
PullFrequency = Literal["always", "daily", "weekly", "never"]

PULL_FREQUENCIES: tuple[str, ...] = ("always", "daily", "weekly", "never")


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class SourceConfig(BaseModel):
    """Location of the shared rules.

    Attributes:
        type: ``local`` for a plain directory, ``git`` for a clone.
        path: Absolute path to the directory holding ``*.md`` rules.
        remote: Git remote URL the clone was made from, if any.
    """

    type: SourceType = Field(default="local", description="Source type")
    path: str = Field(default="", description="Source directory")
    remote: str | None = Field(
        default=None, description="Git remote URL"
    )


class SettingsConfig(BaseModel):
    """Source refresh settings."""

    auto_pull: bool = Field(
        default=True,
        alias="autoPull",
        description="Refresh a git source before commands",
    )
    pull_frequency: PullFrequency = Field(
        default="daily",
        alias="pullFrequency",
        description="How often the source is refreshed",
    )
    last_pull: str | None = Field(
        default=None,
        alias="lastPull",
        description="ISO 8601 timestamp of the last successful refresh",
    )

    model_config = {"populate_by_name": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="WARNING", description="Log level")
    file: str | None = Field(default=None, description="Log file path")


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


class GlobalConfig(BaseModel):
    """Top-level global configuration.

    Every section has defaults, so ``GlobalConfig()`` is always valid; an
    empty ``source.path`` simply means ``init`` has not been completed.
    """

    version: int = 1
    source: SourceConfig = Field(default_factory=SourceConfig)
    settings: SettingsConfig = Field(default_factory=SettingsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def to_dict(self) -> dict:
        """Dump to the persisted (camelCase, no ``None``) representation."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict | None) -> GlobalConfig:
    """Construct a ``GlobalConfig`` from the raw dict loaded from YAML.

    Handles missing sections gracefully: anything absent gets defaults.

    Args:
        raw_data: Parsed configuration dictionary.

    Returns:
        Validated ``GlobalConfig`` instance.
    """
    if not raw_data:
        return GlobalConfig()

    return GlobalConfig.model_validate(raw_data)
