"""Exception hierarchy for rulekeeper.

Commands translate these into a logged message and exit code 1.  Errors
scoped to a single rule inside a batch (``FileSystemError`` or a plain
``OSError``) are recorded on that rule's result instead of propagating.
"""

from __future__ import annotations


class RuleKeeperError(Exception):
    """Base class for all rulekeeper errors."""


class ConfigMissingError(RuleKeeperError):
    """No global config file exists yet."""

    def __init__(self, path: str | None = None) -> None:
        self.path = path
        super().__init__(
            "rulekeeper is not configured. Run `rk init` first."
        )


class ManifestMissingError(RuleKeeperError):
    """The current project has no manifest."""

    def __init__(self, path: str | None = None) -> None:
        self.path = path
        super().__init__(
            "No rulekeeper manifest found. Run `rk add` first."
        )


class RuleNotFoundError(RuleKeeperError):
    """One or more requested rule names could not be resolved."""

    def __init__(self, names: list[str], where: str = "source") -> None:
        self.names = list(names)
        self.where = where
        quoted = ", ".join(f"'{n}'" for n in self.names)
        noun = "Rule" if len(self.names) == 1 else "Rules"
        super().__init__(f"{noun} {quoted} not found in {where}.")


class SourceUnreachableError(RuleKeeperError):
    """Refreshing the source failed; the on-disk copy is still usable."""


class GitError(SourceUnreachableError):
    """A git subprocess failed."""


class FileSystemError(RuleKeeperError):
    """A copy, delete or read failed for a specific rule."""

    def __init__(self, rule: str, message: str) -> None:
        self.rule = rule
        super().__init__(message)


class UserCancelledError(RuleKeeperError):
    """The operator cancelled at a prompt."""
