"""Reconciliation engine: per-rule decisions for add, pull, attach and detach.

The ``ReconciliationEngine`` compares each rule's recorded hashes with the
current hashes of its local and source files and decides what to do:

1. Nothing changed -> no-op.
2. Only the source changed -> overwrite the local copy, no questions asked.
3. The local copy changed -> conflict; ``force`` or the injected
   ``ConflictResolver`` decides between overwrite, detach and skip.
4. A file vanished -> the resolver decides (keep/remove, restore/remove).

Operations receive the ``ProjectManifest`` explicitly, mutate it in place
and return a ``SyncReport``; loading and saving the manifest is the
caller's job.  Error handling is per-rule: an ``OSError`` on one rule is
recorded as a failed result and the batch continues.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from pathlib import Path

from rulekeeper.errors import FileSystemError, RuleNotFoundError
from rulekeeper.file_handler import copy_file, delete_file
from rulekeeper.sync.diff import RuleDiff, diff_rule
from rulekeeper.sync.hashing import file_hash
from rulekeeper.sync.models import (
    ConflictInfo,
    ConflictKind,
    ProjectManifest,
    Resolution,
    RuleAction,
    RuleEntry,
    RuleResult,
    RuleStatus,
    StatusCheck,
    SyncReport,
    utc_now,
)
from rulekeeper.sync.resolver import ConflictResolver
from rulekeeper.sync.rules import (
    find_rule_match,
    is_ignored_rule,
    list_available_rules,
    resolve_rule_names,
    rule_filename,
)
from rulekeeper.sync.status import check_rule_status

logger = logging.getLogger(__name__)

DiffViewer = Callable[[RuleDiff], None]


class ReconciliationEngine:
    """Reconcile tracked rules between a source directory and a project.

    Args:
        source_dir: Directory holding the canonical ``*.md`` rules.
        rules_dir: The project's rules directory (``<project>/.claude``).
        resolver: Decides conflicts the engine cannot settle by itself.
        diff_viewer: Called with a ``RuleDiff`` when the resolver asks to
            see the differences before deciding.
    """

    def __init__(
        self,
        source_dir: Path,
        rules_dir: Path,
        resolver: ConflictResolver,
        diff_viewer: DiffViewer | None = None,
    ) -> None:
        self.source_dir = source_dir
        self.rules_dir = rules_dir
        self.resolver = resolver
        self.diff_viewer = diff_viewer

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def pull(
        self,
        manifest: ProjectManifest,
        rules: list[str] | None = None,
        force: bool = False,
        include_detached: bool = False,
    ) -> SyncReport:
        """Update tracked rules from the source.

        Args:
            manifest: The project manifest (mutated in place).
            rules: Rule names to pull; all tracked rules when empty.
            force: Overwrite local edits without asking.
            include_detached: Also process detached rules.

        Returns:
            A ``SyncReport``.  ``cancelled`` is set when the operator
            aborted a single-rule pull; processing stops there.
        """
        started_at = utc_now()
        results: list[RuleResult] = []

        if rules:
            to_process, missing = resolve_rule_names(rules, manifest.rules)
            for name in missing:
                logger.warning("Rule '%s' not found in manifest", name)
                results.append(
                    RuleResult(
                        rule=name,
                        action=RuleAction.FAILED,
                        success=False,
                        message="not found in manifest",
                    )
                )
        else:
            to_process = list(manifest.rules)

        single_rule = bool(rules) and len(rules) == 1
        cancelled = False

        for rule in to_process:
            try:
                result = self._pull_rule(
                    manifest, rule, force, include_detached, single_rule
                )
            except OSError as exc:
                logger.error("Error pulling %s: %s", rule, exc)
                result = RuleResult(
                    rule=rule,
                    action=RuleAction.FAILED,
                    success=False,
                    message=str(exc),
                )
            results.append(result)
            if result.action == RuleAction.CANCELLED:
                cancelled = True
                break

        return self._report("pull", results, started_at, cancelled)

    def _pull_rule(
        self,
        manifest: ProjectManifest,
        rule: str,
        force: bool,
        include_detached: bool,
        single_rule: bool,
    ) -> RuleResult:
        """Pull a single tracked rule.  Mutates *manifest* on change."""
        entry = manifest.rules[rule]

        if entry.is_detached and not include_detached:
            logger.info("Skipping detached rule: %s", rule)
            return RuleResult(
                rule=rule, action=RuleAction.SKIPPED, message="detached"
            )

        source_path, local_path = self._paths(rule)

        if not source_path.is_file():
            return self._handle_missing_source(
                manifest, rule, entry, local_path, single_rule
            )
        if not local_path.is_file():
            return self._handle_missing_local(
                manifest, rule, entry, source_path, local_path, single_rule
            )

        current_local_hash = file_hash(local_path)
        current_source_hash = file_hash(source_path)
        local_changed = current_local_hash != entry.local_hash
        source_changed = current_source_hash != entry.source_hash

        if not local_changed and not source_changed:
            return RuleResult(
                rule=rule, action=RuleAction.SKIPPED, message="up to date"
            )

        if not local_changed:
            # Only the source moved on: nothing local can be lost.
            copy_file(source_path, local_path)
            manifest.rules[rule] = entry.transition(
                source_hash=current_source_hash,
                local_hash=current_source_hash,
                status=RuleStatus.SYNCED,
                detached_at=None,
            )
            logger.info("Updated %s from source", rule)
            return RuleResult(rule=rule, action=RuleAction.UPDATED)

        if force:
            return self._overwrite(
                manifest, rule, entry, source_path, local_path,
                current_source_hash,
            )

        cancel_choice = Resolution.CANCEL if single_rule else Resolution.SKIP
        other_choice = Resolution.SKIP if single_rule else Resolution.CANCEL
        answer = self._ask(
            ConflictInfo(
                rule=rule,
                kind=ConflictKind.DIVERGED,
                choices=(
                    Resolution.OVERWRITE,
                    Resolution.DETACH,
                    Resolution.VIEW_DIFF,
                    cancel_choice,
                ),
                source_changed=source_changed,
                single_rule=single_rule,
            ),
            also_accept=(other_choice,),
        )

        if answer == Resolution.OVERWRITE:
            return self._overwrite(
                manifest, rule, entry, source_path, local_path,
                current_source_hash,
            )
        if answer == Resolution.DETACH:
            manifest.rules[rule] = entry.transition(
                status=RuleStatus.DETACHED, detached_at=utc_now()
            )
            logger.info("Detached %s", rule)
            return RuleResult(rule=rule, action=RuleAction.DETACHED)
        if answer in (Resolution.SKIP, Resolution.CANCEL) and not single_rule:
            return RuleResult(
                rule=rule, action=RuleAction.SKIPPED, message="local changes"
            )

        # Skip, cancel or an aborted prompt
        if single_rule:
            return RuleResult(rule=rule, action=RuleAction.CANCELLED)
        return RuleResult(
            rule=rule, action=RuleAction.SKIPPED, message="cancelled"
        )

    def _handle_missing_source(
        self,
        manifest: ProjectManifest,
        rule: str,
        entry: RuleEntry,
        local_path: Path,
        single_rule: bool,
    ) -> RuleResult:
        answer = self._ask(
            ConflictInfo(
                rule=rule,
                kind=ConflictKind.MISSING_SOURCE,
                choices=(Resolution.KEEP, Resolution.REMOVE),
                single_rule=single_rule,
            )
        )
        if answer == Resolution.KEEP:
            manifest.rules[rule] = entry.transition(
                status=RuleStatus.DETACHED, detached_at=utc_now()
            )
            return RuleResult(
                rule=rule,
                action=RuleAction.DETACHED,
                message="source file no longer exists",
            )
        if answer == Resolution.REMOVE:
            delete_file(local_path)
            del manifest.rules[rule]
            logger.info("Removed %s (source file gone)", rule)
            return RuleResult(rule=rule, action=RuleAction.REMOVED)
        return RuleResult(
            rule=rule,
            action=RuleAction.SKIPPED,
            message="source file missing",
        )

    def _handle_missing_local(
        self,
        manifest: ProjectManifest,
        rule: str,
        entry: RuleEntry,
        source_path: Path,
        local_path: Path,
        single_rule: bool,
    ) -> RuleResult:
        answer = self._ask(
            ConflictInfo(
                rule=rule,
                kind=ConflictKind.MISSING_LOCAL,
                choices=(Resolution.RESTORE, Resolution.REMOVE),
                single_rule=single_rule,
            )
        )
        if answer == Resolution.RESTORE:
            copy_file(source_path, local_path)
            new_hash = file_hash(local_path)
            manifest.rules[rule] = entry.transition(
                source_hash=new_hash,
                local_hash=new_hash,
                status=RuleStatus.SYNCED,
                detached_at=None,
            )
            logger.info("Restored %s", rule)
            return RuleResult(rule=rule, action=RuleAction.RESTORED)
        if answer == Resolution.REMOVE:
            del manifest.rules[rule]
            logger.info("Removed %s from manifest (local file gone)", rule)
            return RuleResult(
                rule=rule,
                action=RuleAction.REMOVED,
                message="removed from manifest",
            )
        return RuleResult(
            rule=rule,
            action=RuleAction.SKIPPED,
            message="local file missing",
        )

    def _overwrite(
        self,
        manifest: ProjectManifest,
        rule: str,
        entry: RuleEntry,
        source_path: Path,
        local_path: Path,
        source_hash: str,
    ) -> RuleResult:
        """Replace local edits with the source version."""
        copy_file(source_path, local_path)
        manifest.rules[rule] = entry.transition(
            source_hash=source_hash,
            local_hash=file_hash(local_path),
            status=RuleStatus.SYNCED,
            detached_at=None,
        )
        logger.info("Overwrote local changes in %s", rule)
        return RuleResult(rule=rule, action=RuleAction.UPDATED)

    # ------------------------------------------------------------------
    # Add
    # ------------------------------------------------------------------

    def add(
        self,
        manifest: ProjectManifest,
        rules: Iterable[str] = (),
        all_rules: bool = False,
    ) -> SyncReport:
        """Copy rules from the source into the project and track them.

        Every requested name is validated against the source first; if any
        is unknown, nothing is copied.

        Raises:
            RuleNotFoundError: If a requested name is not in the source.
        """
        started_at = utc_now()
        available = [r.name for r in list_available_rules(self.source_dir)]

        if all_rules:
            to_add = available
        else:
            to_add, missing = resolve_rule_names(rules, available)
            if missing:
                raise RuleNotFoundError(missing, where="source")

        results: list[RuleResult] = []
        for rule in to_add:
            key = find_rule_match(rule, manifest.rules) or rule
            try:
                result = self._add_rule(manifest, key, rule)
            except OSError as exc:
                logger.error("Failed to add %s: %s", rule, exc)
                result = RuleResult(
                    rule=key,
                    action=RuleAction.FAILED,
                    success=False,
                    message=str(exc),
                )
            results.append(result)

        return self._report("add", results, started_at)

    def _add_rule(
        self, manifest: ProjectManifest, key: str, source_name: str
    ) -> RuleResult:
        """Add or refresh one rule stored under manifest key *key*."""
        source_path = self.source_dir / rule_filename(source_name)
        local_path = self.rules_dir / rule_filename(key)
        entry = manifest.rules.get(key)

        if not local_path.is_file():
            copy_file(source_path, local_path)
            action = RuleAction.ADDED if entry is None else RuleAction.RESTORED
            self._track_synced(manifest, key, entry, local_path)
            return RuleResult(rule=key, action=action)

        current_local_hash = file_hash(local_path)
        current_source_hash = file_hash(source_path)
        detached = entry is not None and entry.is_detached
        unchanged = (
            entry is not None and current_local_hash == entry.local_hash
        )

        # A detached rule stays detached unless the operator says otherwise
        if not detached and (
            unchanged or current_local_hash == current_source_hash
        ):
            # Refresh: either our own untouched copy or identical content
            copy_file(source_path, local_path)
            self._track_synced(manifest, key, entry, local_path)
            action = RuleAction.ADDED if entry is None else RuleAction.UPDATED
            return RuleResult(rule=key, action=action)

        answer = self._ask(
            ConflictInfo(
                rule=key,
                kind=ConflictKind.ADD_EXISTING,
                choices=(
                    Resolution.OVERWRITE,
                    Resolution.DETACH,
                    Resolution.SKIP,
                ),
            )
        )

        if answer == Resolution.OVERWRITE:
            copy_file(source_path, local_path)
            self._track_synced(manifest, key, entry, local_path)
            action = RuleAction.ADDED if entry is None else RuleAction.UPDATED
            return RuleResult(rule=key, action=action)

        if answer == Resolution.DETACH:
            if entry is None:
                new_entry = RuleEntry.create(
                    file=local_path.name,
                    source_hash=current_source_hash,
                    local_hash=current_local_hash,
                    status=RuleStatus.DETACHED,
                ).transition(detached_at=utc_now())
            else:
                new_entry = entry.transition(
                    status=RuleStatus.DETACHED, detached_at=utc_now()
                )
            manifest.rules[key] = new_entry
            return RuleResult(
                rule=key,
                action=RuleAction.DETACHED,
                message="kept existing file",
            )

        return RuleResult(
            rule=key,
            action=RuleAction.SKIPPED,
            message="existing file left untouched",
        )

    def _track_synced(
        self,
        manifest: ProjectManifest,
        key: str,
        entry: RuleEntry | None,
        local_path: Path,
    ) -> None:
        """Record *key* as synced with the hash of the freshly copied file."""
        new_hash = file_hash(local_path)
        if entry is None:
            manifest.rules[key] = RuleEntry.create(
                file=local_path.name,
                source_hash=new_hash,
                local_hash=new_hash,
            )
        else:
            manifest.rules[key] = entry.transition(
                source_hash=new_hash,
                local_hash=new_hash,
                status=RuleStatus.SYNCED,
                detached_at=None,
            )
        logger.info("Tracked %s", key)

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------

    def remove(
        self,
        manifest: ProjectManifest,
        rules: Iterable[str],
        keep_file: bool = False,
    ) -> SyncReport:
        """Stop tracking rules and (unless *keep_file*) delete their files."""
        started_at = utc_now()
        results: list[RuleResult] = []

        to_remove, missing = resolve_rule_names(rules, manifest.rules)
        for name in missing:
            logger.warning("Rule '%s' is not installed", name)
            results.append(
                RuleResult(
                    rule=name,
                    action=RuleAction.FAILED,
                    success=False,
                    message="not installed",
                )
            )

        for rule in to_remove:
            message = None
            if not keep_file:
                _, local_path = self._paths(rule)
                try:
                    delete_file(local_path)
                except OSError as exc:
                    logger.warning(
                        "Could not delete %s: %s", local_path.name, exc
                    )
                    message = f"could not delete file: {exc}"
            del manifest.rules[rule]
            results.append(
                RuleResult(
                    rule=rule, action=RuleAction.REMOVED, message=message
                )
            )

        return self._report("remove", results, started_at)

    # ------------------------------------------------------------------
    # Detach / attach
    # ------------------------------------------------------------------

    def detach(self, manifest: ProjectManifest, rule: str) -> SyncReport:
        """Freeze *rule*: it is skipped by pull until re-attached.

        Raises:
            RuleNotFoundError: If *rule* is not tracked.
        """
        started_at = utc_now()
        key = self._tracked_key(manifest, rule)
        entry = manifest.rules[key]

        if entry.is_detached:
            logger.warning("Rule '%s' is already detached.", key)
            result = RuleResult(
                rule=key,
                action=RuleAction.SKIPPED,
                message="already detached",
            )
        else:
            manifest.rules[key] = entry.transition(
                status=RuleStatus.DETACHED, detached_at=utc_now()
            )
            result = RuleResult(rule=key, action=RuleAction.DETACHED)

        return self._report("detach", [result], started_at)

    def attach(self, manifest: ProjectManifest, rule: str) -> SyncReport:
        """Resume tracking a detached rule.

        Raises:
            RuleNotFoundError: If *rule* is not tracked.
            FileSystemError: If the source or local file is missing, or the
                overwrite copy fails.
        """
        started_at = utc_now()
        key = self._tracked_key(manifest, rule)
        entry = manifest.rules[key]

        if not entry.is_detached:
            logger.warning("Rule '%s' is already attached.", key)
            result = RuleResult(
                rule=key,
                action=RuleAction.SKIPPED,
                message="already attached",
            )
            return self._report("attach", [result], started_at)

        source_path, local_path = self._paths(key)
        if not source_path.is_file():
            raise FileSystemError(
                key, f"Source file for '{key}' no longer exists."
            )
        if not local_path.is_file():
            raise FileSystemError(key, f"Local file for '{key}' is missing.")

        local_hash = file_hash(local_path)
        source_hash = file_hash(source_path)

        if local_hash == source_hash:
            manifest.rules[key] = entry.transition(
                status=RuleStatus.SYNCED,
                source_hash=source_hash,
                local_hash=local_hash,
                detached_at=None,
            )
            result = RuleResult(rule=key, action=RuleAction.ATTACHED)
            return self._report("attach", [result], started_at)

        answer = self._ask(
            ConflictInfo(
                rule=key,
                kind=ConflictKind.ATTACH_DIFFERS,
                choices=(
                    Resolution.OVERWRITE,
                    Resolution.KEEP,
                    Resolution.CANCEL,
                ),
                single_rule=True,
            )
        )

        if answer == Resolution.OVERWRITE:
            try:
                copy_file(source_path, local_path)
                new_local_hash = file_hash(local_path)
            except OSError as exc:
                raise FileSystemError(
                    key, f"Failed to overwrite {local_path.name}: {exc}"
                ) from exc
            manifest.rules[key] = entry.transition(
                status=RuleStatus.SYNCED,
                source_hash=source_hash,
                local_hash=new_local_hash,
                detached_at=None,
            )
            result = RuleResult(rule=key, action=RuleAction.ATTACHED)
        elif answer == Resolution.KEEP:
            # Baseline is the source content, so the local edits keep
            # classifying as diverged until resolved by a pull.
            manifest.rules[key] = entry.transition(
                status=RuleStatus.DIVERGED,
                source_hash=source_hash,
                local_hash=source_hash,
                detached_at=None,
            )
            result = RuleResult(
                rule=key,
                action=RuleAction.ATTACHED,
                message="will show as diverged",
            )
        else:
            return self._report(
                "attach",
                [RuleResult(rule=key, action=RuleAction.CANCELLED)],
                started_at,
                cancelled=True,
            )

        return self._report("attach", [result], started_at)

    # ------------------------------------------------------------------
    # Status / diff
    # ------------------------------------------------------------------

    def status(self, manifest: ProjectManifest) -> list[StatusCheck]:
        """Classify every tracked rule, sorted by name.

        The cached ``status`` of non-detached entries is refreshed in
        *manifest* (``updated_at`` is left alone).
        """
        checks: list[StatusCheck] = []
        for rule in sorted(manifest.rules, key=str.lower):
            if is_ignored_rule(rule):
                continue
            entry = manifest.rules[rule]
            source_path, local_path = self._paths(rule)
            check = check_rule_status(rule, entry, local_path, source_path)
            if not entry.is_detached and entry.status != check.status:
                manifest.rules[rule] = entry.model_copy(
                    update={"status": check.status}
                )
            checks.append(check)
        return checks

    def diff(
        self,
        manifest: ProjectManifest,
        rules: Iterable[str] = (),
        all_rules: bool = False,
    ) -> list[RuleDiff]:
        """Compare source and local copies of rules.

        With *all_rules*, every attached rule whose local file changed
        since the last sync is compared.  Unknown names are skipped with a
        warning.
        """
        if all_rules:
            targets = []
            for rule, entry in manifest.rules.items():
                if entry.is_detached:
                    continue
                _, local_path = self._paths(rule)
                if not local_path.is_file():
                    continue
                if file_hash(local_path) != entry.local_hash:
                    targets.append(rule)
        else:
            targets, missing = resolve_rule_names(rules, manifest.rules)
            for name in missing:
                logger.warning("Rule '%s' not found in manifest", name)

        diffs = []
        for rule in targets:
            source_path, local_path = self._paths(rule)
            diffs.append(diff_rule(rule, source_path, local_path))
        return diffs

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _paths(self, rule: str) -> tuple[Path, Path]:
        """Return ``(source_path, local_path)`` for *rule*."""
        filename = rule_filename(rule)
        return self.source_dir / filename, self.rules_dir / filename

    @staticmethod
    def _tracked_key(manifest: ProjectManifest, rule: str) -> str:
        key = find_rule_match(rule, manifest.rules)
        if key is None:
            raise RuleNotFoundError([rule], where="manifest")
        return key

    def _ask(
        self,
        conflict: ConflictInfo,
        also_accept: tuple[Resolution, ...] = (),
    ) -> Resolution | None:
        """Ask the resolver, serving ``view-diff`` requests until it decides.

        *also_accept* lists answers taken although the prompt does not
        offer them.

        Raises:
            ValueError: If the resolver returns a choice not offered.
        """
        while True:
            answer = self.resolver.resolve(conflict)
            if answer is None:
                return None
            if answer not in conflict.choices and answer not in also_accept:
                raise ValueError(
                    f"Resolution '{answer.value}' is not valid for "
                    f"{conflict.kind.value} conflict on '{conflict.rule}'"
                )
            if answer != Resolution.VIEW_DIFF:
                return answer
            self._show_diff(conflict.rule)

    def _show_diff(self, rule: str) -> None:
        source_path, local_path = self._paths(rule)
        rule_diff = diff_rule(rule, source_path, local_path)
        if self.diff_viewer is not None:
            self.diff_viewer(rule_diff)
        else:
            logger.info(
                "Diff for %s: %d lines", rule, len(rule_diff.lines)
            )

    @staticmethod
    def _report(
        operation: str,
        results: list[RuleResult],
        started_at: str,
        cancelled: bool = False,
    ) -> SyncReport:
        return SyncReport(
            operation=operation,
            results=results,
            cancelled=cancelled,
            started_at=started_at,
            completed_at=utc_now(),
        )
