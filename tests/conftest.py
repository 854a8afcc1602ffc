"""Shared pytest fixtures for rulekeeper tests."""

from pathlib import Path

import pytest
from dotenv import load_dotenv

from rulekeeper.config import create_config, save_config
from rulekeeper.sync.engine import ReconciliationEngine
from rulekeeper.sync.resolver import ScriptedResolver
from rulekeeper.sync.state import ManifestStore

load_dotenv()


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point the global config at a temp file and clear override env vars."""
    monkeypatch.setenv("RULEKEEPER_CONFIG", str(tmp_path / "config" / "config.yaml"))
    for var in (
        "RULEKEEPER_AUTO_PULL",
        "RULEKEEPER_PULL_FREQUENCY",
        "LOG_LEVEL",
        "LOG_FILE",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def source_dir(tmp_path) -> Path:
    """A rules source with three rules and a README."""
    path = tmp_path / "source"
    path.mkdir()
    (path / "laravel.md").write_text("# Laravel\n\nUse Eloquent.\n")
    (path / "testing.md").write_text("# Testing\n\nWrite tests.\n")
    (path / "style.md").write_text("# Style\n\nFour spaces.\n")
    (path / "README.md").write_text("Shared rules\n")
    return path


@pytest.fixture
def project_dir(tmp_path) -> Path:
    path = tmp_path / "project"
    path.mkdir()
    return path


@pytest.fixture
def store(project_dir) -> ManifestStore:
    return ManifestStore(project_dir)


@pytest.fixture
def resolver() -> ScriptedResolver:
    """A resolver that cancels unless answers are queued on it."""
    return ScriptedResolver()


@pytest.fixture
def engine(source_dir, store, resolver) -> ReconciliationEngine:
    return ReconciliationEngine(source_dir, store.rules_dir, resolver)


@pytest.fixture
def configured(source_dir):
    """Write a global config pointing at ``source_dir``."""
    config = create_config("local", str(source_dir), pull_frequency="never")
    save_config(config)
    return config
