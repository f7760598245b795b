"""Tests for git versioning of child directories."""

import subprocess

import pytest
from structlog.testing import capture_logs

from allowance_tracker.config import VersioningSettings
from allowance_tracker.services.versioning import GitVersioningManager

from conftest import requires_git


def _settings(**overrides) -> VersioningSettings:
    values = {
        "enabled": True,
        "git_executable": "git",
        "author_name": "Test Tracker",
        "author_email": "test@tracker.local",
        "command_timeout_seconds": 10.0,
        "lock_retry_attempts": 2,
    }
    values.update(overrides)
    return VersioningSettings(**values)


class TestVersioningFailuresAreSwallowed:
    """Versioning problems are logged, never raised."""

    def test_missing_git_binary(self, tmp_path):
        """Test an absent git binary is logged as versioning_failed."""
        manager = GitVersioningManager(_settings(git_executable="git-binary-that-does-not-exist"))
        (tmp_path / "transactions.csv").write_text("id\n", encoding="utf-8")

        with capture_logs() as logs:
            assert manager.commit_file(tmp_path, "transactions.csv", "Update transactions.csv: x") is False

        failures = [entry for entry in logs if entry["event"] == "versioning_failed"]
        assert len(failures) == 1
        assert failures[0]["error_type"] == "GitUnavailableError"
        assert failures[0]["log_level"] == "warning"

    def test_disabled_does_nothing(self, tmp_path):
        """Test a disabled manager never touches the directory."""
        manager = GitVersioningManager(_settings(enabled=False))
        assert manager.ensure_initialized(tmp_path) is False
        assert manager.commit_file(tmp_path, "goals.csv", "msg") is False
        assert manager.history(tmp_path) == []
        assert not (tmp_path / ".git").exists()


@requires_git
class TestGitVersioning:
    """Tests against a real git binary."""

    def test_ensure_initialized_is_idempotent(self, tmp_path):
        """Test repeated initialization keeps one repository."""
        manager = GitVersioningManager(_settings())
        assert manager.ensure_initialized(tmp_path) is True
        assert manager.ensure_initialized(tmp_path) is True
        assert (tmp_path / ".git").is_dir()

    def test_commit_file_commits_only_that_file(self, tmp_path):
        """Test one file per commit with the given message."""
        manager = GitVersioningManager(_settings())
        (tmp_path / "transactions.csv").write_text("id\n1\n", encoding="utf-8")
        (tmp_path / "goals.csv").write_text("id\n", encoding="utf-8")

        assert manager.commit_file(tmp_path, "transactions.csv", "Update transactions.csv: added 1") is True

        tracked = subprocess.run(
            ["git", "ls-files"], cwd=tmp_path, capture_output=True, text=True, check=True
        ).stdout.split()
        assert tracked == ["transactions.csv"]
        assert manager.history(tmp_path) == ["Update transactions.csv: added 1"]

    def test_nothing_to_commit_is_success(self, tmp_path):
        """Test committing an unchanged file is not a failure."""
        manager = GitVersioningManager(_settings())
        (tmp_path / "goals.csv").write_text("id\n", encoding="utf-8")
        assert manager.commit_file(tmp_path, "goals.csv", "Update goals.csv: first") is True
        assert manager.commit_file(tmp_path, "goals.csv", "Update goals.csv: again") is True
        assert manager.history(tmp_path, "goals.csv") == ["Update goals.csv: first"]

    def test_held_index_lock_is_logged(self, tmp_path):
        """Test lock contention gives up after retries without raising."""
        manager = GitVersioningManager(_settings(lock_retry_attempts=2))
        manager.ensure_initialized(tmp_path)
        (tmp_path / ".git" / "index.lock").write_text("", encoding="utf-8")
        (tmp_path / "goals.csv").write_text("id\n", encoding="utf-8")

        with capture_logs() as logs:
            assert manager.commit_file(tmp_path, "goals.csv", "Update goals.csv: x") is False

        failures = [entry for entry in logs if entry["event"] == "versioning_failed"]
        assert failures and failures[0]["error_type"] == "GitLockError"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
