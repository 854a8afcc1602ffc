"""Pydantic models for the rule sync engine.

Defines the core data contracts used across all sync modules:

- ``RuleStatus``: Synchronisation state of a tracked rule.
- ``RuleEntry``: Manifest record for one rule in one project.
- ``ProjectManifest``: All tracked rules of a project.
- ``Resolution`` / ``ConflictKind`` / ``ConflictInfo``: Conflict decisions.
- ``RuleAction`` / ``RuleResult`` / ``SyncReport``: Outcome of an operation.
- ``StatusCheck``: Freshly computed status of one rule.
- ``AvailableRule``: A rule present in the source.

Result models are frozen (immutable).  ``RuleEntry`` is frozen too; state
transitions replace the entry with ``RuleEntry.transition()``.  The manifest
itself is mutable so a command can update it during a run and persist once.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def utc_now() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


class RuleStatus(str, Enum):
    """Synchronisation state of a tracked rule."""

    SYNCED = "synced"
    OUTDATED = "outdated"
    DIVERGED = "diverged"
    DETACHED = "detached"


class RuleEntry(BaseModel):
    """State of a single rule in the project manifest.

    Attributes:
        file: File name of the rule inside the rules directory.
        source_hash: Hash of the source file at last sync.
        local_hash: Hash of the local file at last sync.
        status: Last computed status (sticky when ``detached``).
        installed_at: ISO 8601 timestamp of the first ``add``.
        updated_at: ISO 8601 timestamp of the last transition.
        detached_at: ISO 8601 timestamp of the last detach, if detached.
    """

    file: str
    source_hash: str = Field(alias="sourceHash")
    local_hash: str = Field(alias="localHash")
    status: RuleStatus = RuleStatus.SYNCED
    installed_at: str = Field(alias="installedAt", default_factory=utc_now)
    updated_at: str = Field(alias="updatedAt", default_factory=utc_now)
    detached_at: str | None = Field(alias="detachedAt", default=None)

    model_config = {"frozen": True, "populate_by_name": True}

    @classmethod
    def create(
        cls,
        file: str,
        source_hash: str,
        local_hash: str,
        status: RuleStatus = RuleStatus.SYNCED,
    ) -> RuleEntry:
        """Build a fresh entry with both timestamps set to now."""
        now = utc_now()
        return cls(
            file=file,
            source_hash=source_hash,
            local_hash=local_hash,
            status=status,
            installed_at=now,
            updated_at=now,
        )

    def transition(self, **changes: Any) -> RuleEntry:
        """Return a copy with *changes* applied and ``updated_at`` refreshed."""
        changes.setdefault("updated_at", utc_now())
        return self.model_copy(update=changes)

    @property
    def is_detached(self) -> bool:
        return self.status == RuleStatus.DETACHED


class ProjectManifest(BaseModel):
    """Per-project record of tracked rules.

    Keys of ``rules`` keep the casing they were added with; use
    ``rulekeeper.sync.rules.find_rule_match`` for case-insensitive lookup.
    """

    version: int = 1
    rules: dict[str, RuleEntry] = Field(default_factory=dict)

    def to_dict(self) -> dict:
        """Dump to the persisted (camelCase, no ``None``) representation."""
        return self.model_dump(
            mode="json", by_alias=True, exclude_none=True
        )


# ---------------------------------------------------------------------------
# Conflict resolution contracts
# ---------------------------------------------------------------------------


class Resolution(str, Enum):
    """Decisions a conflict resolver can return."""

    OVERWRITE = "overwrite"
    DETACH = "detach"
    SKIP = "skip"
    CANCEL = "cancel"
    VIEW_DIFF = "view-diff"
    KEEP = "keep"
    REMOVE = "remove"
    RESTORE = "restore"


class ConflictKind(str, Enum):
    """Decision points that need a resolver."""

    DIVERGED = "diverged"
    MISSING_SOURCE = "missing_source"
    MISSING_LOCAL = "missing_local"
    ATTACH_DIFFERS = "attach_differs"
    ADD_EXISTING = "add_existing"


class ConflictInfo(BaseModel):
    """Context handed to a resolver for one decision.

    Attributes:
        rule: Rule name as tracked (or as listed in the source for ``add``).
        kind: Which decision point raised the conflict.
        choices: Resolutions the resolver may return, in display order.
        source_changed: For ``DIVERGED``, whether the source changed too.
        single_rule: ``True`` when the command targets exactly one rule.
    """

    rule: str
    kind: ConflictKind
    choices: tuple[Resolution, ...]
    source_changed: bool = False
    single_rule: bool = False

    model_config = {"frozen": True}

    @property
    def message(self) -> str:
        """Human-readable description of the conflict."""
        name = f"{self.rule}.md"
        if self.kind == ConflictKind.DIVERGED:
            if self.source_changed:
                return f"{name} has local changes AND source has been updated"
            return f"{name} has local changes"
        if self.kind == ConflictKind.MISSING_SOURCE:
            return f"{name} - source file no longer exists"
        if self.kind == ConflictKind.MISSING_LOCAL:
            return f"{name} - local file missing"
        if self.kind == ConflictKind.ATTACH_DIFFERS:
            return f"{name} differs from source version"
        return f"{name} already exists locally with different content"


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class RuleAction(str, Enum):
    """What happened to a rule during an operation."""

    ADDED = "added"
    UPDATED = "updated"
    RESTORED = "restored"
    SKIPPED = "skipped"
    DETACHED = "detached"
    ATTACHED = "attached"
    REMOVED = "removed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class RuleResult(BaseModel):
    """Result of processing one rule.

    Attributes:
        rule: Rule name.
        action: Action that was performed.
        success: Whether the operation succeeded.
        message: Extra detail (reason for a skip, error text, ...).
    """

    rule: str
    action: RuleAction
    success: bool = True
    message: str | None = None

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for one command invocation.

    Attributes:
        operation: Command name (``add``, ``pull``, ...).
        results: Per-rule results in processing order.
        cancelled: ``True`` if the operator aborted the command.
        started_at: ISO 8601 timestamp when processing started.
        completed_at: ISO 8601 timestamp when processing finished.
    """

    operation: str
    results: list[RuleResult] = []
    cancelled: bool = False
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    def _with_action(self, *actions: RuleAction) -> list[RuleResult]:
        return [r for r in self.results if r.action in actions]

    @property
    def added(self) -> list[RuleResult]:
        """Results where action is ADDED."""
        return self._with_action(RuleAction.ADDED)

    @property
    def updated(self) -> list[RuleResult]:
        """Results where the local file was rewritten from source."""
        return self._with_action(
            RuleAction.UPDATED, RuleAction.RESTORED
        )

    @property
    def skipped(self) -> list[RuleResult]:
        return self._with_action(RuleAction.SKIPPED)

    @property
    def detached(self) -> list[RuleResult]:
        return self._with_action(RuleAction.DETACHED)

    @property
    def attached(self) -> list[RuleResult]:
        return self._with_action(RuleAction.ATTACHED)

    @property
    def removed(self) -> list[RuleResult]:
        return self._with_action(RuleAction.REMOVED)

    @property
    def failed(self) -> list[RuleResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    def summary(self) -> str:
        """Format a human-readable summary of the run.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            f"{self.operation} report"
            + (" (cancelled)" if self.cancelled else ""),
            f"  Added:    {len(self.added)}",
            f"  Updated:  {len(self.updated)}",
            f"  Detached: {len(self.detached)}",
            f"  Removed:  {len(self.removed)}",
            f"  Skipped:  {len(self.skipped)}",
            f"  Failed:   {len(self.failed)}",
            f"  Total:    {len(self.results)}",
        ]
        return "\n".join(lines)


class StatusCheck(BaseModel):
    """Freshly computed status of one tracked rule."""

    rule: str
    status: RuleStatus
    local_changed: bool = False
    source_changed: bool = False
    local_exists: bool = True
    source_exists: bool = True
    current_local_hash: str | None = None
    current_source_hash: str | None = None

    model_config = {"frozen": True}

    @property
    def details(self) -> str | None:
        """Short explanation shown next to the status, if any."""
        if self.status == RuleStatus.DETACHED:
            return None
        if not self.local_exists:
            return "local file missing"
        if not self.source_exists:
            return "source file missing"
        if self.status == RuleStatus.OUTDATED:
            return "source updated"
        if self.status == RuleStatus.DIVERGED:
            return "local changes detected"
        return None

    @property
    def needs_attention(self) -> bool:
        return self.status in (RuleStatus.OUTDATED, RuleStatus.DIVERGED)


class AvailableRule(BaseModel):
    """A rule file found in the source directory."""

    name: str
    file: str
    path: str

    model_config = {"frozen": True}
