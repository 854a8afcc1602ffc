"""Report formatting functions.

Provides human-readable and machine-readable output for rule operations:

- ``format_sync_report`` -- post-operation summary.
- ``format_status`` -- status table of tracked rules.
- ``format_rule_diff`` -- diff of one rule for display.
- ``report_to_json`` / ``status_to_json`` -- structured dicts for ``--json``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .diff import DiffState, DiffTag, unified_diff
from .models import RuleStatus

if TYPE_CHECKING:
    from .diff import RuleDiff
    from .models import RuleResult, StatusCheck, SyncReport

_STATUS_ICONS = {
    RuleStatus.SYNCED: "✓",
    RuleStatus.OUTDATED: "↓",
    RuleStatus.DIVERGED: "⚠",
    RuleStatus.DETACHED: "○",
}

_DIFF_PREFIX = {
    DiffTag.ADD: "+ ",
    DiffTag.REMOVE: "- ",
    DiffTag.CONTEXT: "  ",
}

# ------------------------------------------------------------------
# Operation report
# ------------------------------------------------------------------


def _result_line(result: RuleResult) -> str:
    if result.message:
        return f"  {result.rule} ({result.message})"
    return f"  {result.rule}"


def format_sync_report(report: SyncReport) -> str:
    """Format an operation report as human-readable text.

    Sections are only included when they contain at least one result.
    Skipped rules are listed with their reason.

    Args:
        report: The completed report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    if report.cancelled:
        lines.append("Operation cancelled.")
        lines.append("")

    sections = [
        ("Added:", report.added),
        ("Updated:", report.updated),
        ("Attached:", report.attached),
        ("Detached:", report.detached),
        ("Removed:", report.removed),
        ("Skipped:", report.skipped),
    ]
    for title, results in sections:
        if not results:
            continue
        lines.append(title)
        for r in results:
            lines.append(_result_line(r))
        lines.append("")

    if report.failed:
        lines.append("Failed:")
        for r in report.failed:
            lines.append(f"  {r.rule}: {r.message or 'unknown error'}")
        lines.append("")

    if not report.results:
        lines.append("Nothing to do.")
    elif not report.cancelled:
        changed = (
            len(report.added)
            + len(report.updated)
            + len(report.attached)
            + len(report.detached)
            + len(report.removed)
        )
        if changed == 0 and not report.failed:
            lines.append("All rules up to date.")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Status
# ------------------------------------------------------------------


def format_status_line(check: StatusCheck) -> str:
    """Format one status row: ``✓ laravel  synced``."""
    icon = _STATUS_ICONS[check.status]
    line = f"{icon} {check.rule:<24} {check.status.value}"
    if check.details:
        line += f" ({check.details})"
    return line


def format_status(checks: list[StatusCheck], project: str = "") -> str:
    """Format the status of all tracked rules.

    Args:
        checks: Status checks, already sorted.
        project: Project path shown in the header.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    if project:
        lines.append(f"Rules in {project}:")
        lines.append("")

    if not checks:
        lines.append("No rules installed. Run `rk add <rule>` to add one.")
        return "\n".join(lines)

    for check in checks:
        lines.append(format_status_line(check))

    pending = [c for c in checks if c.needs_attention]
    lines.append("")
    if pending:
        lines.append(
            f"{len(pending)} rule(s) need attention. "
            "Run `rk pull` to update."
        )
    else:
        lines.append("All rules up to date.")
    return "\n".join(lines)


# ------------------------------------------------------------------
# Diff
# ------------------------------------------------------------------


def format_rule_diff(rule_diff: RuleDiff, unified: bool = False) -> str:
    """Format a rule diff for display.

    Args:
        rule_diff: Result of ``diff_rule``.
        unified: Use a ``difflib`` unified diff instead of the per-line
            listing.

    Returns:
        Multi-line formatted string.
    """
    name = f"{rule_diff.rule}.md"
    if rule_diff.state == DiffState.BOTH_MISSING:
        return f"{name}: source and local files are both missing"
    if rule_diff.state == DiffState.SOURCE_MISSING:
        return f"{name}: source file is missing"
    if rule_diff.state == DiffState.LOCAL_MISSING:
        return f"{name}: local file is missing"
    if rule_diff.state == DiffState.IDENTICAL:
        return f"{name}: no differences"

    if unified:
        text = unified_diff(
            rule_diff.source_content or "",
            rule_diff.local_content or "",
            label_source=f"source ({rule_diff.source_path})",
            label_local=f"local ({rule_diff.local_path})",
        )
        return text.rstrip()

    lines = [
        f"--- source ({rule_diff.source_path})",
        f"+++ local ({rule_diff.local_path})",
        "",
    ]
    for line in rule_diff.lines:
        lines.append(f"{_DIFF_PREFIX[line.tag]}{line.content}")
    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a report to a structured dict for JSON serialisation.

    Args:
        report: The operation report.

    Returns:
        Dict with operation info, counts, and per-result details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "rule": r.rule,
            "action": r.action.value,
            "success": r.success,
        }
        if r.message:
            entry["message"] = r.message
        results_list.append(entry)

    return {
        "operation": report.operation,
        "cancelled": report.cancelled,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "total": len(report.results),
            "added": len(report.added),
            "updated": len(report.updated),
            "attached": len(report.attached),
            "detached": len(report.detached),
            "removed": len(report.removed),
            "skipped": len(report.skipped),
            "failed": len(report.failed),
        },
        "results": results_list,
    }


def status_to_json(checks: list[StatusCheck]) -> list[dict]:
    """Convert status checks to a list of dicts."""
    return [
        {
            "rule": c.rule,
            "status": c.status.value,
            "details": c.details,
            "local_changed": c.local_changed,
            "source_changed": c.source_changed,
        }
        for c in checks
    ]
