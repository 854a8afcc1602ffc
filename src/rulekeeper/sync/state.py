"""Project manifest persistence layer.

Manages the YAML manifest that tracks which rules a project uses and the
hashes recorded at their last sync, in ``<project>/.rulekeeper/``.  The
rule files themselves live in ``<project>/.claude/``.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file then calls
  ``os.replace()`` so readers never see partial data.
* **Load once, save once** -- commands load the manifest at start, let
  the engine mutate it, and persist it once at the end (or on cancel).
* **Exact keys** -- rule names are stored with their original casing;
  case-insensitive lookup is done by ``rulekeeper.sync.rules``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from rulekeeper.config_loader import dump_yaml_file, load_yaml_file
from rulekeeper.errors import ManifestMissingError
from rulekeeper.sync.models import ProjectManifest

logger = logging.getLogger(__name__)

STATE_DIR_NAME = ".rulekeeper"
MANIFEST_FILENAME = "manifest.yaml"
RULES_DIR_NAME = ".claude"


class ManifestStore:
    """Load, save, and query the manifest of one project.

    Args:
        project_root: Path to the project directory.
    """

    def __init__(self, project_root: Path) -> None:
        self._project_root = project_root

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def project_root(self) -> Path:
        return self._project_root

    @property
    def state_dir(self) -> Path:
        return self._project_root / STATE_DIR_NAME

    @property
    def manifest_path(self) -> Path:
        return self.state_dir / MANIFEST_FILENAME

    @property
    def rules_dir(self) -> Path:
        """Directory the project's rule files are copied into."""
        return self._project_root / RULES_DIR_NAME

    def exists(self) -> bool:
        return self.manifest_path.exists()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> ProjectManifest:
        """Load the manifest from disk.

        Raises:
            ManifestMissingError: If the project has no manifest.
            ValueError: If the file is not a valid manifest.
        """
        path = self.manifest_path
        if not path.exists():
            raise ManifestMissingError(str(path))

        raw = load_yaml_file(path)
        try:
            manifest = ProjectManifest.model_validate(raw)
        except ValidationError as exc:
            raise ValueError(f"Invalid manifest {path}: {exc}") from exc
        logger.debug(
            "Loaded manifest %s (%d rules)", path, len(manifest.rules)
        )
        return manifest

    def load_or_create(self) -> ProjectManifest:
        """Load the manifest, or return an empty one if none exists yet."""
        if not self.exists():
            return ProjectManifest()
        return self.load()

    def save(self, manifest: ProjectManifest) -> None:
        """Persist *manifest* to disk atomically.

        Creates ``.rulekeeper/`` if it does not exist.
        """
        dump_yaml_file(self.manifest_path, manifest.to_dict())
        logger.debug(
            "Saved manifest %s (%d rules)",
            self.manifest_path,
            len(manifest.rules),
        )
