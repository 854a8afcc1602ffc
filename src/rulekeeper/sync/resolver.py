"""Conflict resolution strategies for the sync engine.

Every decision the engine cannot make on its own (local edits vs. a source
update, a vanished source or local file, attaching a rule whose copies
differ, adding over an existing file) is handed to a ``ConflictResolver``
as a ``ConflictInfo``.  A resolver returns one of ``conflict.choices`` or
``None`` to signal cancellation.

- ``InteractiveResolver``: Asks the operator on stdin.
- ``ScriptedResolver``: Replays queued answers (tests, automation).
- ``SkipResolver``: Never decides; every conflict is left for later.
- ``SourceWinsResolver``: Source content replaces local edits.
- ``LocalWinsResolver``: Local content is kept (rules get detached).

The ``create_resolver()`` factory maps strategy strings to resolver
instances.
"""

from __future__ import annotations

import logging
import sys
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from typing import Protocol, TextIO

from rulekeeper.sync.models import ConflictInfo, ConflictKind, Resolution

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictResolver(Protocol):
    """Protocol that all conflict resolvers must satisfy."""

    def resolve(self, conflict: ConflictInfo) -> Resolution | None:
        """Decide how to handle a conflict.

        Args:
            conflict: The decision point and its allowed choices.

        Returns:
            One of ``conflict.choices``, or ``None`` if the operator
            cancelled.
        """
        ...  # pragma: no cover


def _pick(
    conflict: ConflictInfo, preferred: Resolution | None
) -> Resolution | None:
    if preferred is not None and preferred in conflict.choices:
        return preferred
    return None


# ---------------------------------------------------------------------------
# Interactive resolver
# ---------------------------------------------------------------------------

_HINTS: dict[tuple[ConflictKind, Resolution], str] = {
    (ConflictKind.DIVERGED, Resolution.OVERWRITE): (
        "Replace with source version (local changes will be lost)"
    ),
    (ConflictKind.DIVERGED, Resolution.DETACH): (
        "Keep local version, stop tracking this rule"
    ),
    (ConflictKind.DIVERGED, Resolution.VIEW_DIFF): (
        "See differences before deciding"
    ),
    (ConflictKind.DIVERGED, Resolution.SKIP): "Do nothing for now",
    (ConflictKind.DIVERGED, Resolution.CANCEL): "Abort this operation",
    (ConflictKind.MISSING_SOURCE, Resolution.KEEP): (
        "Detach and keep the local file"
    ),
    (ConflictKind.MISSING_SOURCE, Resolution.REMOVE): (
        "Delete from project and manifest"
    ),
    (ConflictKind.MISSING_LOCAL, Resolution.RESTORE): "Copy from source",
    (ConflictKind.MISSING_LOCAL, Resolution.REMOVE): "Remove from manifest",
    (ConflictKind.ATTACH_DIFFERS, Resolution.OVERWRITE): (
        "Replace with source version"
    ),
    (ConflictKind.ATTACH_DIFFERS, Resolution.KEEP): (
        "Attach but keep local version (will show as diverged)"
    ),
    (ConflictKind.ATTACH_DIFFERS, Resolution.CANCEL): "Keep detached",
    (ConflictKind.ADD_EXISTING, Resolution.OVERWRITE): (
        "Replace the existing file with the source version"
    ),
    (ConflictKind.ADD_EXISTING, Resolution.DETACH): (
        "Keep the existing file and track it as detached"
    ),
    (ConflictKind.ADD_EXISTING, Resolution.SKIP): "Leave this rule alone",
}


class InteractiveResolver:
    """Ask the operator to choose on stdin.

    Choices can be entered by number or by name.  End of input or Ctrl-C at
    the prompt is treated as cancellation.

    Args:
        input_fn: Function used to read an answer (defaults to ``input``).
        output: Stream the question is written to (defaults to stdout).
    """

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        output: TextIO | None = None,
    ) -> None:
        self._input = input_fn
        self._output = output

    def _write(self, text: str) -> None:
        print(text, file=self._output or sys.stdout)

    def resolve(self, conflict: ConflictInfo) -> Resolution | None:
        """Print the conflict and its choices, then read an answer."""
        self._write(f"! {conflict.message}")
        for index, choice in enumerate(conflict.choices, start=1):
            hint = _HINTS.get((conflict.kind, choice))
            suffix = f" - {hint}" if hint else ""
            self._write(f"  {index}) {choice.value}{suffix}")

        while True:
            try:
                answer = self._input("What would you like to do? ")
            except (EOFError, KeyboardInterrupt):
                self._write("")
                return None

            choice = self._parse(answer, conflict.choices)
            if choice is not None:
                return choice
            self._write(
                "Please enter a number between 1 and "
                f"{len(conflict.choices)}."
            )

    @staticmethod
    def _parse(
        answer: str, choices: tuple[Resolution, ...]
    ) -> Resolution | None:
        text = answer.strip().lower()
        if not text:
            return None
        if text.isdigit():
            index = int(text) - 1
            if 0 <= index < len(choices):
                return choices[index]
            return None
        for choice in choices:
            if choice.value == text:
                return choice
        return None


# ---------------------------------------------------------------------------
# Scripted resolver
# ---------------------------------------------------------------------------


class ScriptedResolver:
    """Answer conflicts from a pre-recorded script.

    Answers for a specific rule (``per_rule``) take precedence over the
    shared queue (``answers``).  When both are exhausted, ``default`` is
    returned.  Every conflict seen is recorded in ``asked``.

    Args:
        answers: Queue of answers, consumed in order.
        per_rule: Queue of answers per rule name.
        default: Answer used once the queues are empty (``None`` cancels).
    """

    def __init__(
        self,
        answers: Iterable[Resolution | str | None] = (),
        per_rule: Mapping[str, Iterable[Resolution | str | None]]
        | None = None,
        default: Resolution | str | None = None,
    ) -> None:
        self._answers = deque(answers)
        self._per_rule = {
            rule: deque(queue) for rule, queue in (per_rule or {}).items()
        }
        self._default = default
        self.asked: list[ConflictInfo] = []

    def resolve(self, conflict: ConflictInfo) -> Resolution | None:
        self.asked.append(conflict)
        queue = self._per_rule.get(conflict.rule)
        if queue:
            answer = queue.popleft()
        elif self._answers:
            answer = self._answers.popleft()
        else:
            answer = self._default
        if answer is None:
            return None
        return Resolution(answer)


# ---------------------------------------------------------------------------
# Policy resolvers
# ---------------------------------------------------------------------------


class SkipResolver:
    """Leave every conflict unresolved (treated as cancellation)."""

    def resolve(self, conflict: ConflictInfo) -> Resolution | None:
        """Always return ``None``."""
        logger.info("Leaving conflict unresolved: %s", conflict.message)
        return None


class SourceWinsResolver:
    """Resolve conflicts in favour of the source.

    Vanished source files are left for the operator: deleting local work
    is never automatic.
    """

    _PREFERRED = {
        ConflictKind.DIVERGED: Resolution.OVERWRITE,
        ConflictKind.ADD_EXISTING: Resolution.OVERWRITE,
        ConflictKind.ATTACH_DIFFERS: Resolution.OVERWRITE,
        ConflictKind.MISSING_LOCAL: Resolution.RESTORE,
    }

    def resolve(self, conflict: ConflictInfo) -> Resolution | None:
        return _pick(conflict, self._PREFERRED.get(conflict.kind))


class LocalWinsResolver:
    """Resolve conflicts in favour of the local copy."""

    _PREFERRED = {
        ConflictKind.DIVERGED: Resolution.DETACH,
        ConflictKind.ADD_EXISTING: Resolution.DETACH,
        ConflictKind.ATTACH_DIFFERS: Resolution.KEEP,
        ConflictKind.MISSING_SOURCE: Resolution.KEEP,
        ConflictKind.MISSING_LOCAL: Resolution.REMOVE,
    }

    def resolve(self, conflict: ConflictInfo) -> Resolution | None:
        return _pick(conflict, self._PREFERRED.get(conflict.kind))


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGY_MAP: dict[str, type] = {
    "interactive": InteractiveResolver,
    "skip": SkipResolver,
    "source-wins": SourceWinsResolver,
    "local-wins": LocalWinsResolver,
}

STRATEGIES: tuple[str, ...] = tuple(_STRATEGY_MAP)


def create_resolver(strategy: str) -> ConflictResolver:
    """Create a conflict resolver for the given strategy string.

    Args:
        strategy: One of ``"interactive"``, ``"skip"``,
            ``"source-wins"``, ``"local-wins"``.

    Returns:
        A ``ConflictResolver`` implementation instance.

    Raises:
        ValueError: If the strategy string is not recognised.
    """
    cls = _STRATEGY_MAP.get(strategy)
    if cls is None:
        raise ValueError(
            f"Unknown conflict strategy: '{strategy}'. Valid strategies: {sorted(_STRATEGY_MAP.keys())}"
        )
    return cls()  # type: ignore[return-value]
