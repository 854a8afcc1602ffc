"""Git helpers for git-backed rule sources.

Thin wrappers around the ``git`` executable plus the refresh gate that
decides whether a source should be pulled before a command runs.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from .config_schema import GlobalConfig
from .errors import GitError

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 120

_GIT_HOSTS = (
    "https://github.com",
    "https://gitlab.com",
    "https://bitbucket.org",
)

_FREQUENCY_HOURS = {
    "daily": 24,
    "weekly": 168,
}


@dataclass
class RefreshResult:
    """Outcome of ``pull_source_if_needed``."""

    pulled: bool = False
    error: str | None = None


def _run_git(args: list[str], cwd: Path | None = None) -> str:
    """Run ``git <args>`` and return stdout.

    Raises:
        GitError: If git is missing, times out or exits non-zero.
    """
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT,
        )
    except FileNotFoundError as exc:
        raise GitError("git executable not found") from exc
    except subprocess.TimeoutExpired as exc:
        raise GitError(f"git {args[0]} timed out") from exc

    if result.returncode != 0:
        message = result.stderr.strip() or result.stdout.strip()
        raise GitError(f"git {args[0]} failed: {message}")
    return result.stdout


def is_git_repo(path: str | Path) -> bool:
    return (Path(path) / ".git").exists()


def is_git_url(value: str) -> bool:
    """Heuristic check for a git remote URL (as opposed to a local path)."""
    return (
        value.startswith("git@")
        or value.startswith(_GIT_HOSTS)
        or value.endswith(".git")
    )


def repo_name_from_url(url: str) -> str:
    """Return the repository name of *url* without a ``.git`` suffix.

    ``git@github.com:acme/rules.git`` and ``https://github.com/acme/rules``
    both give ``rules``.
    """
    name = url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name


def clone_repo(url: str, target: str | Path) -> None:
    target = Path(target)
    target.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Cloning %s into %s", url, target)
    _run_git(["clone", url, str(target)])


def pull_repo(path: str | Path) -> None:
    logger.info("Pulling %s", path)
    _run_git(["pull"], cwd=Path(path))


def has_remote(path: str | Path) -> bool:
    if not is_git_repo(path):
        return False
    try:
        return bool(_run_git(["remote"], cwd=Path(path)).strip())
    except GitError as exc:
        logger.debug("Could not list remotes for %s: %s", path, exc)
        return False


def get_remote_url(path: str | Path) -> str | None:
    """Return the fetch URL of ``origin``, or ``None``."""
    if not is_git_repo(path):
        return None
    try:
        url = _run_git(
            ["remote", "get-url", "origin"], cwd=Path(path)
        ).strip()
    except GitError as exc:
        logger.debug("No origin remote for %s: %s", path, exc)
        return None
    return url or None


def should_pull_from_remote(
    config: GlobalConfig, now: datetime | None = None
) -> bool:
    """Decide whether the source is due for a refresh.

    ``never`` (or ``autoPull`` off) disables refreshing, ``always`` is
    unconditional, ``daily`` / ``weekly`` compare the hours elapsed since
    ``lastPull`` against 24 / 168.  A source never pulled is always due.
    """
    settings = config.settings
    if not settings.auto_pull:
        return False
    if settings.pull_frequency == "never":
        return False
    if not settings.last_pull:
        return True
    if settings.pull_frequency == "always":
        return True

    try:
        last_pull = datetime.fromisoformat(
            settings.last_pull.replace("Z", "+00:00")
        )
    except ValueError:
        logger.warning(
            "Unparseable lastPull '%s'; treating source as stale",
            settings.last_pull,
        )
        return True
    if last_pull.tzinfo is None:
        last_pull = last_pull.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    hours = (now - last_pull).total_seconds() / 3600
    threshold = _FREQUENCY_HOURS.get(settings.pull_frequency)
    if threshold is None:
        return False
    return hours >= threshold


def pull_source_if_needed(config: GlobalConfig) -> RefreshResult:
    """Refresh a git source when the schedule says so.

    Never raises: a failed pull is returned in ``RefreshResult.error`` so
    the caller can warn and carry on with the on-disk copy.
    """
    source_path = config.source.path

    if not is_git_repo(source_path):
        return RefreshResult()
    if not should_pull_from_remote(config):
        return RefreshResult()
    if not has_remote(source_path):
        return RefreshResult()

    try:
        pull_repo(source_path)
    except GitError as exc:
        logger.debug("Source refresh failed: %s", exc)
        return RefreshResult(pulled=False, error=str(exc))
    return RefreshResult(pulled=True)
