"""Tests for config loading, schema and YAML helpers."""

import pytest
import yaml

from rulekeeper.config import (
    config_exists,
    create_config,
    expand_tilde,
    get_bool_env,
    load_config,
    save_config,
    update_last_pull,
)
from rulekeeper.config_loader import (
    config_file_path,
    dump_yaml_file,
    interpolate_env_vars,
    load_raw_config,
    load_yaml_file,
)
from rulekeeper.config_schema import GlobalConfig, build_config
from rulekeeper.errors import ConfigMissingError

# ---------------------------------------------------------------------------
# config_loader
# ---------------------------------------------------------------------------


class TestConfigPath:
    def test_explicit_env_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("RULEKEEPER_CONFIG", str(tmp_path / "rk.yaml"))
        assert config_file_path() == (tmp_path / "rk.yaml").resolve()

    def test_xdg_config_home(self, tmp_path, monkeypatch):
        monkeypatch.delenv("RULEKEEPER_CONFIG")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert config_file_path() == tmp_path / "rulekeeper" / "config.yaml"


class TestInterpolation:
    def test_set_and_default(self, monkeypatch):
        monkeypatch.setenv("RK_RULES", "/srv/rules")
        monkeypatch.delenv("RK_UNSET", raising=False)
        assert interpolate_env_vars("${RK_RULES}/x") == "/srv/rules/x"
        assert interpolate_env_vars("${RK_UNSET:-/tmp}") == "/tmp"
        assert interpolate_env_vars("${RK_UNSET}") == ""

    def test_nested_values(self, tmp_path, monkeypatch):
        monkeypatch.setenv("RK_RULES", "/srv/rules")
        path = tmp_path / "c.yaml"
        path.write_text("source:\n  path: ${RK_RULES}\n")
        assert load_raw_config(path)["source"]["path"] == "/srv/rules"
        assert load_raw_config(path, interpolate=False)["source"]["path"] == "${RK_RULES}"


class TestYamlFiles:
    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_yaml_file(path) == {}

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("a: [unclosed\n")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_yaml_file(path)

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="non-mapping root"):
            load_yaml_file(path)

    def test_dump_preserves_key_order(self, tmp_path):
        path = tmp_path / "nested" / "out.yaml"
        dump_yaml_file(path, {"zeta": 1, "alpha": 2})
        assert path.read_text().splitlines() == ["zeta: 1", "alpha: 2"]


# ---------------------------------------------------------------------------
# config_schema
# ---------------------------------------------------------------------------


class TestSchema:
    def test_defaults(self):
        config = build_config(None)
        assert config == GlobalConfig()
        assert config.settings.auto_pull is True
        assert config.settings.pull_frequency == "daily"
        assert config.logging.level == "WARNING"

    def test_camel_case_keys(self):
        config = build_config(
            {
                "source": {"type": "git", "path": "/r", "remote": "git@x:y.git"},
                "settings": {"autoPull": False, "pullFrequency": "weekly"},
            }
        )
        assert config.settings.auto_pull is False
        assert config.settings.pull_frequency == "weekly"
        assert config.to_dict()["settings"] == {
            "autoPull": False,
            "pullFrequency": "weekly",
        }

    def test_invalid_frequency(self):
        with pytest.raises(ValueError):
            build_config({"settings": {"pullFrequency": "hourly"}})


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config() and friends."""

    def test_missing(self):
        assert not config_exists()
        with pytest.raises(ConfigMissingError):
            load_config()

    def test_save_and_load(self, source_dir):
        path = save_config(create_config("local", str(source_dir)))

        assert config_exists()
        raw = yaml.safe_load(path.read_text())
        assert raw["source"] == {"type": "local", "path": str(source_dir)}
        assert load_config().source.path == str(source_dir)

    def test_env_overrides(self, configured, monkeypatch):
        monkeypatch.setenv("RULEKEEPER_AUTO_PULL", "no")
        monkeypatch.setenv("RULEKEEPER_PULL_FREQUENCY", "Weekly")
        config = load_config()
        assert config.settings.auto_pull is False
        assert config.settings.pull_frequency == "weekly"

    def test_env_overrides_skipped_when_disabled(self, configured, monkeypatch):
        monkeypatch.setenv("RULEKEEPER_PULL_FREQUENCY", "always")
        assert load_config(apply_env=False).settings.pull_frequency == "never"

    def test_invalid_env_frequency(self, configured, monkeypatch):
        monkeypatch.setenv("RULEKEEPER_PULL_FREQUENCY", "hourly")
        with pytest.raises(ValueError, match="RULEKEEPER_PULL_FREQUENCY"):
            load_config()

    def test_invalid_file(self):
        path = config_file_path()
        path.parent.mkdir(parents=True)
        path.write_text("source:\n  type: svn\n")
        with pytest.raises(ValueError, match="Invalid config file"):
            load_config()

    def test_update_last_pull(self, configured, monkeypatch):
        monkeypatch.setenv("RULEKEEPER_PULL_FREQUENCY", "always")
        update_last_pull()
        config = load_config(apply_env=False)
        assert config.settings.last_pull is not None
        # env override was not written back
        assert config.settings.pull_frequency == "never"

    def test_update_last_pull_without_config(self):
        update_last_pull()
        assert not config_exists()


class TestHelpers:
    def test_expand_tilde(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))
        assert expand_tilde("~/rules") == str(tmp_path / "rules")
        assert expand_tilde("/abs/rules") == "/abs/rules"

    @pytest.mark.parametrize(
        "value,expected",
        [("true", True), ("1", True), ("YES", True), ("off", False), ("0", False)],
    )
    def test_get_bool_env(self, monkeypatch, value, expected):
        monkeypatch.setenv("RK_FLAG", value)
        assert get_bool_env("RK_FLAG") is expected

    def test_get_bool_env_unset(self, monkeypatch):
        monkeypatch.delenv("RK_FLAG", raising=False)
        assert get_bool_env("RK_FLAG") is None
