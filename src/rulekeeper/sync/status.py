"""Rule status classification.

``classify()`` is a pure function of the recorded entry, the current hashes
and two existence flags.  The order of the checks matters: a rule whose
local copy changed is ``diverged`` even when the source changed too, so an
automatic update can never silently discard local edits.
"""

from __future__ import annotations

from pathlib import Path

from .hashing import file_hash
from .models import RuleEntry, RuleStatus, StatusCheck


def classify(
    entry: RuleEntry,
    current_local_hash: str | None,
    current_source_hash: str | None,
    local_exists: bool,
    source_exists: bool,
) -> RuleStatus:
    """Map recorded and current hashes to a ``RuleStatus``.

    Args:
        entry: The manifest entry as last recorded.
        current_local_hash: Hash of the local file now (``None`` if missing).
        current_source_hash: Hash of the source file now (``None`` if
            missing).
        local_exists: Whether the local file exists.
        source_exists: Whether the source file exists.

    Returns:
        ``detached`` for detached entries regardless of hashes; otherwise
        ``diverged`` if either file is missing or the local file changed,
        ``outdated`` if only the source changed, else ``synced``.
    """
    if entry.status == RuleStatus.DETACHED:
        return RuleStatus.DETACHED

    if not local_exists or not source_exists:
        return RuleStatus.DIVERGED

    local_changed = current_local_hash != entry.local_hash
    source_changed = current_source_hash != entry.source_hash

    if local_changed:
        return RuleStatus.DIVERGED
    if source_changed:
        return RuleStatus.OUTDATED
    return RuleStatus.SYNCED


def check_rule_status(
    rule: str,
    entry: RuleEntry,
    local_path: Path,
    source_path: Path,
) -> StatusCheck:
    """Gather current on-disk state for *rule* and classify it.

    Detached entries and missing files are not hashed.
    """
    local_exists = local_path.is_file()
    source_exists = source_path.is_file()

    if entry.status == RuleStatus.DETACHED:
        return StatusCheck(
            rule=rule,
            status=RuleStatus.DETACHED,
            local_exists=local_exists,
            source_exists=source_exists,
        )

    if not local_exists or not source_exists:
        return StatusCheck(
            rule=rule,
            status=classify(entry, None, None, local_exists, source_exists),
            local_changed=not local_exists,
            source_changed=not source_exists,
            local_exists=local_exists,
            source_exists=source_exists,
        )

    current_local_hash = file_hash(local_path)
    current_source_hash = file_hash(source_path)

    return StatusCheck(
        rule=rule,
        status=classify(
            entry,
            current_local_hash,
            current_source_hash,
            local_exists,
            source_exists,
        ),
        local_changed=current_local_hash != entry.local_hash,
        source_changed=current_source_hash != entry.source_hash,
        local_exists=local_exists,
        source_exists=source_exists,
        current_local_hash=current_local_hash,
        current_source_hash=current_source_hash,
    )
