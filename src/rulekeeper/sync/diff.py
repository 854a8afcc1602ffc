"""Line diffs between a rule's source and local copies, for display only.

``compute_diff`` is a two-pointer heuristic rather than a minimal edit
script: lines equal at both cursors are context; a line missing from the
other side entirely is a removal or an addition; a line that exists on both
sides but out of order is shown as a removal followed by an addition.
Reordered blocks therefore produce noisy output.  ``unified_diff`` offers a
``difflib`` alternative.
"""

from __future__ import annotations

import difflib
from enum import Enum
from pathlib import Path

from pydantic import BaseModel

from rulekeeper.file_handler import read_text


class DiffTag(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    CONTEXT = "context"


class DiffLine(BaseModel):
    """One displayed diff line."""

    tag: DiffTag
    content: str

    model_config = {"frozen": True}


class DiffState(str, Enum):
    BOTH_MISSING = "both_missing"
    SOURCE_MISSING = "source_missing"
    LOCAL_MISSING = "local_missing"
    IDENTICAL = "identical"
    DIFFERENT = "different"


class RuleDiff(BaseModel):
    """Comparison of one rule's source and local files.

    Attributes:
        rule: Rule name.
        source_path: Source file path.
        local_path: Local file path.
        state: Outcome of the comparison.
        lines: Tagged lines when ``state`` is ``DIFFERENT``.
        source_content: Source text when both files exist.
        local_content: Local text when both files exist.
    """

    rule: str
    source_path: str
    local_path: str
    state: DiffState
    lines: list[DiffLine] = []
    source_content: str | None = None
    local_content: str | None = None

    model_config = {"frozen": True}


def compute_diff(source: list[str], local: list[str]) -> list[DiffLine]:
    """Compare *source* lines to *local* lines.

    ``remove`` marks a line only in source, ``add`` a line only in local.
    """
    result: list[DiffLine] = []
    source_set = set(source)
    local_set = set(local)

    si = 0
    li = 0
    while si < len(source) or li < len(local):
        if si >= len(source):
            result.append(DiffLine(tag=DiffTag.ADD, content=local[li]))
            li += 1
        elif li >= len(local):
            result.append(DiffLine(tag=DiffTag.REMOVE, content=source[si]))
            si += 1
        elif source[si] == local[li]:
            result.append(DiffLine(tag=DiffTag.CONTEXT, content=source[si]))
            si += 1
            li += 1
        elif source[si] not in local_set:
            result.append(DiffLine(tag=DiffTag.REMOVE, content=source[si]))
            si += 1
        elif local[li] not in source_set:
            result.append(DiffLine(tag=DiffTag.ADD, content=local[li]))
            li += 1
        else:
            # Both lines appear elsewhere on the other side
            result.append(DiffLine(tag=DiffTag.REMOVE, content=source[si]))
            result.append(DiffLine(tag=DiffTag.ADD, content=local[li]))
            si += 1
            li += 1

    return result


def unified_diff(
    source_content: str,
    local_content: str,
    label_source: str = "source",
    label_local: str = "local",
) -> str:
    """Generate a unified diff from source to local.

    Returns:
        A unified diff string.  Empty string if the contents are identical.
    """
    diff_lines = difflib.unified_diff(
        source_content.splitlines(True),
        local_content.splitlines(True),
        fromfile=label_source,
        tofile=label_local,
    )
    return "".join(diff_lines)


def diff_rule(rule: str, source_path: Path, local_path: Path) -> RuleDiff:
    """Read both copies of *rule* and compare them."""
    source_exists = source_path.is_file()
    local_exists = local_path.is_file()
    common = {
        "rule": rule,
        "source_path": str(source_path),
        "local_path": str(local_path),
    }

    if not source_exists and not local_exists:
        return RuleDiff(state=DiffState.BOTH_MISSING, **common)
    if not source_exists:
        return RuleDiff(state=DiffState.SOURCE_MISSING, **common)
    if not local_exists:
        return RuleDiff(state=DiffState.LOCAL_MISSING, **common)

    source_content = read_text(source_path)
    local_content = read_text(local_path)

    if source_content == local_content:
        return RuleDiff(
            state=DiffState.IDENTICAL,
            source_content=source_content,
            local_content=local_content,
            **common,
        )

    return RuleDiff(
        state=DiffState.DIFFERENT,
        lines=compute_diff(
            source_content.split("\n"), local_content.split("\n")
        ),
        source_content=source_content,
        local_content=local_content,
        **common,
    )
