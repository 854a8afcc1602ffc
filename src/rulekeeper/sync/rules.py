"""Rule naming and discovery.

A rule ``laravel`` lives in the file ``laravel.md``, both in the source
directory and in the project's rules directory.  Names are matched
case-insensitively and with or without the ``.md`` suffix, but manifest
keys keep the casing they were stored with; the case-insensitive view is
computed on demand here rather than by normalising keys.

Name resolution:

1. **Normalise** -- strip a trailing ``.md`` (any case) and lowercase.
2. **Match** -- the first available name with the same normal form wins.
   Two available names differing only by case are not disambiguated.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from rulekeeper.file_handler import list_files
from rulekeeper.sync.models import AvailableRule

RULE_EXTENSION = ".md"

# Files never treated as rules (compared case-insensitively)
IGNORED_FILES = frozenset({"readme.md"})


# ------------------------------------------------------------------
# Names
# ------------------------------------------------------------------


def _strip_extension(name: str) -> str:
    if name.lower().endswith(RULE_EXTENSION):
        return name[: -len(RULE_EXTENSION)]
    return name


def normalize_rule_name(name: str) -> str:
    """Return the comparison form of *name* (no ``.md``, lowercase)."""
    return _strip_extension(name).lower()


def rule_filename(name: str) -> str:
    """Return the file name for rule *name* (``laravel`` -> ``laravel.md``)."""
    return f"{_strip_extension(name)}{RULE_EXTENSION}"


def rule_name_from_filename(filename: str) -> str:
    """Return the rule name for *filename* (``laravel.md`` -> ``laravel``)."""
    if filename.endswith(RULE_EXTENSION):
        return filename[: -len(RULE_EXTENSION)]
    return filename


def is_ignored_rule(name: str) -> bool:
    return rule_filename(name).lower() in IGNORED_FILES


def find_rule_match(requested: str, available: Iterable[str]) -> str | None:
    """Find *requested* among *available* names, case-insensitively.

    Args:
        requested: Name typed by the operator (``Laravel``, ``laravel.md``).
        available: Candidate names (manifest keys or source rule names).

    Returns:
        The first matching candidate as spelled in *available*, or
        ``None``.
    """
    wanted = normalize_rule_name(requested)
    for candidate in available:
        if normalize_rule_name(candidate) == wanted:
            return candidate
    return None


def resolve_rule_names(
    requested: Iterable[str], available: Iterable[str]
) -> tuple[list[str], list[str]]:
    """Resolve several names at once.

    Returns:
        ``(matched, missing)``: matched names as spelled in *available*,
        in request order without duplicates, and the requested names that
        matched nothing.
    """
    candidates = list(available)
    matched: list[str] = []
    missing: list[str] = []
    for name in requested:
        match = find_rule_match(name, candidates)
        if match is None:
            missing.append(name)
        elif match not in matched:
            matched.append(match)
    return matched, missing


# ------------------------------------------------------------------
# Source discovery
# ------------------------------------------------------------------


def list_available_rules(source_dir: Path) -> list[AvailableRule]:
    """Return the rules present in *source_dir*, sorted by name.

    Only top-level ``*.md`` files count; ``README.md`` is excluded.
    """
    rules = []
    for filename in list_files(source_dir, RULE_EXTENSION):
        if filename.lower() in IGNORED_FILES:
            continue
        rules.append(
            AvailableRule(
                name=rule_name_from_filename(filename),
                file=filename,
                path=str(source_dir / filename),
            )
        )
    return sorted(rules, key=lambda r: r.name.lower())


def source_rule_path(name: str, source_dir: Path) -> Path | None:
    """Return the source file for rule *name*, or ``None`` if absent."""
    path = source_dir / rule_filename(name)
    if not path.is_file():
        return None
    return path
