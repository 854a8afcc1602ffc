"""Rule reconciliation engine.

Public API for keeping a project's copies of shared rules in sync with the
rules source.

Architecture
------------
Each tracked rule records two hashes in the project manifest: the source
file's and the local file's at the last sync.  Comparing each side against
its own recorded hash tells whether the source moved on, the local copy
was edited, or both.  Only an edited local copy ever needs a decision;
everything else is applied automatically.

Modules:

- ``engine``    -- ``ReconciliationEngine``: add, pull, remove, attach,
  detach, status and diff.
- ``state``     -- ``ManifestStore``: load/save the YAML manifest.
- ``status``    -- ``classify``: pure status classification.
- ``hashing``   -- SHA-256 content hashes.
- ``rules``     -- Case-insensitive rule names and source discovery.
- ``diff``      -- Display diffs between source and local copies.
- ``models``    -- ``RuleEntry``, ``ProjectManifest``, ``ConflictInfo``,
  ``RuleResult``, ``SyncReport``: core data contracts.
- ``resolver``  -- Conflict resolution strategies (interactive, scripted,
  skip, source-wins, local-wins).
- ``reporter``  -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from rulekeeper.sync import (
        ManifestStore,
        ReconciliationEngine,
        create_resolver,
        format_sync_report,
    )

    store = ManifestStore(Path("."))
    manifest = store.load()
    engine = ReconciliationEngine(
        source_dir=Path("~/Documents/rules").expanduser(),
        rules_dir=store.rules_dir,
        resolver=create_resolver("source-wins"),
    )

    report = engine.pull(manifest)
    store.save(manifest)
    print(format_sync_report(report))
"""

from .engine import ReconciliationEngine
from .models import (
    ConflictInfo,
    ProjectManifest,
    Resolution,
    RuleEntry,
    RuleResult,
    RuleStatus,
    SyncReport,
)
from .reporter import format_sync_report, report_to_json
from .resolver import create_resolver
from .state import ManifestStore

__all__ = [
    "ConflictInfo",
    "ManifestStore",
    "ProjectManifest",
    "ReconciliationEngine",
    "Resolution",
    "RuleEntry",
    "RuleResult",
    "RuleStatus",
    "SyncReport",
    "create_resolver",
    "format_sync_report",
    "report_to_json",
]
