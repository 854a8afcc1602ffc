"""End-to-end tests for the ``rk`` command line."""

import json
from unittest.mock import patch

import pytest
import yaml

from rulekeeper.cli import main, run
from rulekeeper.config import load_config
from rulekeeper.sync.hashing import file_hash
from rulekeeper.sync.resolver import ScriptedResolver

# setup_logging reconfigures the root logger, which fights pytest's capture
pytestmark = pytest.mark.usefixtures("no_logging_setup")


@pytest.fixture
def no_logging_setup():
    with patch("rulekeeper.cli.setup_logging") as mock_setup:
        yield mock_setup


def _rk(project_dir, *args) -> int:
    return main(["--project", str(project_dir), "--strategy", "skip", *args])


def _manifest(project_dir) -> dict:
    path = project_dir / ".rulekeeper" / "manifest.yaml"
    return yaml.safe_load(path.read_text())


class TestInit:
    """Tests for ``rk init``."""

    def test_local_source(self, source_dir, capsys):
        code = main(["init", "--source", str(source_dir), "--frequency", "weekly"])

        assert code == 0
        config = load_config()
        assert config.source.type == "local"
        assert config.source.path == str(source_dir.resolve())
        assert config.settings.pull_frequency == "weekly"
        assert "3 rules available" in capsys.readouterr().out

    def test_refuses_to_overwrite(self, configured, source_dir):
        assert main(["init", "--source", str(source_dir)]) == 1

    def test_force_overwrites(self, configured, source_dir):
        code = main(["init", "--source", str(source_dir), "--force", "--frequency", "always"])
        assert code == 0
        assert load_config().settings.pull_frequency == "always"

    def test_missing_path(self, tmp_path):
        assert main(["init", "--source", str(tmp_path / "nowhere")]) == 1

    def test_invalid_frequency(self, source_dir):
        assert main(["init", "--source", str(source_dir), "--frequency", "hourly"]) == 1

    def test_interactive_prompts(self, source_dir):
        answers = iter([str(source_dir), ""])
        with patch("builtins.input", lambda _: next(answers)):
            assert main(["init"]) == 0
        assert load_config().settings.pull_frequency == "daily"

    def test_end_of_input_cancels(self):
        def eof(_):
            raise EOFError

        with patch("builtins.input", eof):
            assert main(["init"]) == 1

    @patch("rulekeeper.commands.clone_repo")
    def test_git_url_clones(self, mock_clone, tmp_path):
        target = tmp_path / "clones" / "rules"
        url = "git@github.com:acme/rules.git"

        code = main(["init", "--source", url, "--clone-to", str(target)])

        assert code == 0
        mock_clone.assert_called_once_with(url, target)
        config = load_config()
        assert config.source.type == "git"
        assert config.source.remote == url


class TestRuleCommands:
    """add / status / pull / remove through the CLI."""

    def test_add_status_pull(self, configured, source_dir, project_dir, capsys):
        assert _rk(project_dir, "add", "laravel", "Testing") == 0
        assert set(_manifest(project_dir)["rules"]) == {"laravel", "testing"}
        assert (project_dir / ".claude" / "laravel.md").exists()

        (source_dir / "testing.md").write_text("# Testing v2\n")
        capsys.readouterr()
        assert _rk(project_dir, "status") == 0
        out = capsys.readouterr().out
        assert "outdated (source updated)" in out
        assert _manifest(project_dir)["rules"]["testing"]["status"] == "outdated"

        assert _rk(project_dir, "pull") == 0
        assert "Updated:\n  testing" in capsys.readouterr().out
        assert (project_dir / ".claude" / "testing.md").read_text() == "# Testing v2\n"
        assert _manifest(project_dir)["rules"]["testing"]["status"] == "synced"

    def test_add_unknown_rule(self, configured, project_dir):
        assert _rk(project_dir, "add", "laravel", "vue") == 1
        assert not (project_dir / ".rulekeeper" / "manifest.yaml").exists()
        assert not (project_dir / ".claude" / "laravel.md").exists()

    def test_add_requires_names(self, configured, project_dir):
        assert _rk(project_dir, "add") == 1

    def test_add_json(self, configured, project_dir, capsys):
        assert main(["--json", "--project", str(project_dir), "add", "--all"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["operation"] == "add"
        assert data["counts"]["added"] == 3

    def test_not_configured(self, project_dir):
        assert _rk(project_dir, "status") == 1

    def test_no_manifest(self, configured, project_dir):
        assert _rk(project_dir, "status") == 1

    def test_single_rule_pull_cancelled(self, configured, project_dir, capsys):
        _rk(project_dir, "add", "laravel")
        (project_dir / ".claude" / "laravel.md").write_text("local edit\n")
        capsys.readouterr()

        assert _rk(project_dir, "pull", "laravel") == 0

        assert "Operation cancelled." in capsys.readouterr().out
        assert (project_dir / ".claude" / "laravel.md").read_text() == "local edit\n"

    def test_pull_force(self, configured, project_dir, source_dir):
        _rk(project_dir, "add", "laravel")
        (project_dir / ".claude" / "laravel.md").write_text("local edit\n")

        assert _rk(project_dir, "pull", "--force") == 0

        assert (project_dir / ".claude" / "laravel.md").read_text() == (
            source_dir / "laravel.md"
        ).read_text()

    def test_pull_error_keeps_completed_rules(self, configured, project_dir):
        _rk(project_dir, "add", "laravel", "testing")
        laravel = project_dir / ".claude" / "laravel.md"
        laravel.write_text("local edit\n")
        (project_dir / ".claude" / "testing.md").write_text("local edit\n")
        resolver = ScriptedResolver(["overwrite", "restore"])

        with patch("rulekeeper.commands.create_resolver", return_value=resolver):
            assert _rk(project_dir, "pull") == 1

        entry = _manifest(project_dir)["rules"]["laravel"]
        assert entry["localHash"] == file_hash(laravel)
        assert entry["status"] == "synced"

    def test_pull_unknown_rule_exits_nonzero(self, configured, project_dir):
        _rk(project_dir, "add", "laravel")
        assert _rk(project_dir, "pull", "vue") == 1

    def test_remove(self, configured, project_dir):
        _rk(project_dir, "add", "laravel", "style")

        assert _rk(project_dir, "remove", "style", "--keep-file") == 0

        assert list(_manifest(project_dir)["rules"]) == ["laravel"]
        assert (project_dir / ".claude" / "style.md").exists()

    def test_detach_and_attach(self, configured, project_dir):
        _rk(project_dir, "add", "laravel")

        assert _rk(project_dir, "detach", "laravel") == 0
        entry = _manifest(project_dir)["rules"]["laravel"]
        assert entry["status"] == "detached"
        assert "detachedAt" in entry

        assert _rk(project_dir, "attach", "laravel") == 0
        entry = _manifest(project_dir)["rules"]["laravel"]
        assert entry["status"] == "synced"
        assert "detachedAt" not in entry

    def test_detach_unknown(self, configured, project_dir):
        _rk(project_dir, "add", "laravel")
        assert _rk(project_dir, "detach", "vue") == 1

    def test_diff_all(self, configured, project_dir, capsys):
        _rk(project_dir, "add", "laravel", "style")
        (project_dir / ".claude" / "style.md").write_text("# Style\n\nTabs.\n")
        capsys.readouterr()

        assert _rk(project_dir, "diff", "--all") == 0

        out = capsys.readouterr().out
        assert "- Four spaces." in out
        assert "+ Tabs." in out
        assert "laravel" not in out

    def test_diff_requires_target(self, configured, project_dir):
        assert _rk(project_dir, "diff") == 1


class TestListAndSource:
    def test_list_marks_installed(self, configured, project_dir, capsys):
        _rk(project_dir, "add", "style")
        capsys.readouterr()

        assert _rk(project_dir, "list") == 0

        lines = capsys.readouterr().out.splitlines()
        assert "  ✓ style" in lines
        assert "    laravel" in lines
        assert not any("README" in line for line in lines)

    def test_list_installed(self, configured, project_dir, capsys):
        _rk(project_dir, "add", "style")
        _rk(project_dir, "detach", "style")
        capsys.readouterr()

        assert _rk(project_dir, "list", "--installed") == 0

        assert "  style (detached)" in capsys.readouterr().out

    def test_source_show(self, configured, source_dir, capsys):
        assert main(["source", "show"]) == 0
        out = capsys.readouterr().out
        assert f"Path:      {source_dir}" in out
        assert "Frequency: never" in out

    def test_source_default_action_is_show(self, configured, capsys):
        assert main(["source"]) == 0
        assert "Type:      local" in capsys.readouterr().out

    def test_source_set_local(self, configured, tmp_path):
        other = tmp_path / "other-rules"
        other.mkdir()

        assert main(["source", "set", str(other)]) == 0

        config = load_config()
        assert config.source.path == str(other.resolve())
        assert config.settings.pull_frequency == "never"

    def test_source_pull_requires_git(self, configured):
        assert main(["source", "pull"]) == 1


class TestDoctor:
    def test_healthy(self, configured, project_dir, capsys):
        _rk(project_dir, "add", "laravel")
        capsys.readouterr()

        assert _rk(project_dir, "doctor") == 0

        out = capsys.readouterr().out
        assert "[pass] Source has 3 rules" in out
        assert "[pass] Manifest tracks 1 rules" in out
        assert "[fail]" not in out

    def test_missing_local_file_warns(self, configured, project_dir, capsys):
        _rk(project_dir, "add", "laravel")
        (project_dir / ".claude" / "laravel.md").unlink()
        capsys.readouterr()

        assert _rk(project_dir, "doctor") == 0
        assert "[warn] Missing local files: laravel" in capsys.readouterr().out

    def test_not_configured_fails(self, project_dir, capsys):
        assert _rk(project_dir, "doctor") == 1
        assert "[fail] No config found" in capsys.readouterr().out


class TestEntryPoint:
    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert "rulekeeper version" in capsys.readouterr().out

    def test_keyboard_interrupt_exits_130(self, capsys):
        with patch("rulekeeper.cli.main", side_effect=KeyboardInterrupt):
            with pytest.raises(SystemExit) as exc_info:
                run()
        assert exc_info.value.code == 130
        assert "Interrupted." in capsys.readouterr().err

    def test_exit_code_propagates(self):
        with patch("rulekeeper.cli.main", return_value=1):
            with pytest.raises(SystemExit) as exc_info:
                run()
        assert exc_info.value.code == 1
