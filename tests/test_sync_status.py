"""Tests for hashing and status classification."""

from rulekeeper.sync.hashing import content_hash, file_hash
from rulekeeper.sync.models import RuleEntry, RuleStatus
from rulekeeper.sync.status import check_rule_status, classify

H_SOURCE = content_hash(b"source")
H_LOCAL = content_hash(b"local")
H_OTHER = content_hash(b"other")


def _make_entry(**overrides) -> RuleEntry:
    defaults = {
        "file": "laravel.md",
        "source_hash": H_SOURCE,
        "local_hash": H_LOCAL,
    }
    defaults.update(overrides)
    return RuleEntry.create(**defaults)


class TestHashing:
    """Tests for content_hash() and file_hash()."""

    def test_tagged_sha256(self):
        assert content_hash(b"") == (
            "sha256:e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_file_hash_matches_content_hash(self, tmp_path):
        path = tmp_path / "rule.md"
        data = b"# Rule\r\nno normalisation\n" * 1000
        path.write_bytes(data)
        assert file_hash(path) == content_hash(data)

    def test_chunk_size_does_not_matter(self, tmp_path):
        path = tmp_path / "rule.md"
        path.write_bytes(b"abcdefghij" * 100)
        assert file_hash(path, chunk_size=3) == file_hash(path, chunk_size=4096)

    def test_different_bytes_differ(self):
        assert content_hash(b"a\n") != content_hash(b"a\r\n")


class TestClassify:
    """Tests for the pure classify() function."""

    def test_synced(self):
        entry = _make_entry()
        assert classify(entry, H_LOCAL, H_SOURCE, True, True) == RuleStatus.SYNCED

    def test_source_changed_is_outdated(self):
        entry = _make_entry()
        assert classify(entry, H_LOCAL, H_OTHER, True, True) == RuleStatus.OUTDATED

    def test_local_changed_is_diverged(self):
        entry = _make_entry()
        assert classify(entry, H_OTHER, H_SOURCE, True, True) == RuleStatus.DIVERGED

    def test_local_change_wins_over_source_change(self):
        """Both sides changed: never reported as a plain update."""
        entry = _make_entry()
        assert classify(entry, H_OTHER, H_OTHER, True, True) == RuleStatus.DIVERGED

    def test_missing_file_is_diverged(self):
        entry = _make_entry()
        assert classify(entry, None, H_SOURCE, False, True) == RuleStatus.DIVERGED
        assert classify(entry, H_LOCAL, None, True, False) == RuleStatus.DIVERGED

    def test_detached_ignores_hashes(self):
        entry = _make_entry(status=RuleStatus.DETACHED)
        for local, source in [(H_LOCAL, H_SOURCE), (H_OTHER, H_OTHER)]:
            assert classify(entry, local, source, True, True) == RuleStatus.DETACHED
        assert classify(entry, None, None, False, False) == RuleStatus.DETACHED

    def test_deterministic(self):
        entry = _make_entry()
        results = {classify(entry, H_OTHER, H_SOURCE, True, True) for _ in range(5)}
        assert results == {RuleStatus.DIVERGED}


class TestCheckRuleStatus:
    """Tests for check_rule_status()."""

    def test_reads_files(self, tmp_path):
        local = tmp_path / "local.md"
        source = tmp_path / "source.md"
        local.write_bytes(b"local")
        source.write_bytes(b"updated source")

        check = check_rule_status("laravel", _make_entry(), local, source)

        assert check.status == RuleStatus.OUTDATED
        assert check.source_changed is True
        assert check.local_changed is False
        assert check.current_local_hash == H_LOCAL
        assert check.details == "source updated"
        assert check.needs_attention is True

    def test_missing_local(self, tmp_path):
        source = tmp_path / "source.md"
        source.write_bytes(b"source")

        check = check_rule_status(
            "laravel", _make_entry(), tmp_path / "gone.md", source
        )

        assert check.status == RuleStatus.DIVERGED
        assert check.local_exists is False
        assert check.details == "local file missing"

    def test_detached_is_not_hashed(self, tmp_path):
        check = check_rule_status(
            "laravel",
            _make_entry(status=RuleStatus.DETACHED),
            tmp_path / "a.md",
            tmp_path / "b.md",
        )
        assert check.status == RuleStatus.DETACHED
        assert check.current_local_hash is None
        assert check.details is None
        assert check.needs_attention is False
