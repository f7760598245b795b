"""
Git Versioning Manager

Every child directory is its own git repository. After a repository writes
a data file, the manager commits exactly that file with a message naming
the file and the action, e.g. "Update transactions.csv: deleted 3 entries".

DESIGN DECISION: Versioning is strictly additive.
- The data file is already safely on disk when commit_file runs
- A missing git binary, a held index.lock or a timeout is logged as
  "versioning_failed" and swallowed
- Public methods never raise

Index lock contention is retried with exponential backoff before giving up.
"""

import subprocess
from pathlib import Path
from typing import Optional

import structlog
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from allowance_tracker.config import VersioningSettings, get_settings


logger = structlog.get_logger(__name__)


class VersioningError(Exception):
    """Base exception for versioning operations."""
    pass


class GitUnavailableError(VersioningError):
    """The git executable could not be started."""
    pass


class GitLockError(VersioningError):
    """Another process holds the repository's index.lock."""
    pass


class GitCommandError(VersioningError):
    """A git command failed or timed out."""
    pass


class GitVersioningManager:
    """
    Best-effort git history for child data directories.
    """

    def __init__(self, settings: Optional[VersioningSettings] = None):
        self._settings = settings or get_settings().versioning

    @property
    def enabled(self) -> bool:
        return self._settings.enabled

    def ensure_initialized(self, directory: Path) -> bool:
        """
        Make `directory` a git repository with a local author identity.

        Idempotent. Returns True when the repository is ready.
        """
        if not self.enabled:
            return False
        try:
            self._ensure_repository(Path(directory))
            return True
        except VersioningError as e:
            self._log_failure("init", directory, e)
            return False

    def commit_file(self, directory: Path, filename: str, message: str) -> bool:
        """
        Stage and commit exactly one file.

        Returns True when the file is committed, or when it has no changes
        to commit. Returns False on any versioning failure.
        """
        if not self.enabled:
            return False
        directory = Path(directory)
        try:
            self._ensure_repository(directory)
            status = self._run(directory, "status", "--porcelain", "--", filename)
            if not status.stdout.strip():
                logger.debug("versioning_nothing_to_commit", directory=str(directory), filename=filename)
                return True
            self._run(directory, "add", "--", filename)
            self._run(
                directory,
                *self._identity_args(),
                "commit",
                "--quiet",
                "--no-verify",
                "-m",
                message,
                "--",
                filename,
            )
        except VersioningError as e:
            self._log_failure("commit", directory, e, filename=filename)
            return False

        logger.debug("versioning_committed", directory=str(directory), filename=filename, message=message)
        return True

    def history(
        self,
        directory: Path,
        filename: Optional[str] = None,
        limit: int = 20,
    ) -> list[str]:
        """
        Commit subjects touching `filename` (or any file), newest first.

        Returns an empty list when versioning is disabled or unavailable.
        """
        directory = Path(directory)
        if not self.enabled or not (directory / ".git").is_dir():
            return []
        args = ["log", f"--max-count={limit}", "--format=%s"]
        if filename:
            args += ["--", filename]
        try:
            result = self._run(directory, *args)
        except VersioningError as e:
            self._log_failure("history", directory, e, filename=filename)
            return []
        return [line for line in result.stdout.splitlines() if line]

    def _ensure_repository(self, directory: Path) -> None:
        if (directory / ".git").is_dir():
            return
        directory.mkdir(parents=True, exist_ok=True)
        self._run(directory, "init", "--quiet")
        self._run(directory, "config", "user.name", self._settings.author_name)
        self._run(directory, "config", "user.email", self._settings.author_email)
        logger.info("versioning_initialized", directory=str(directory))

    def _identity_args(self) -> list[str]:
        return [
            "-c", f"user.name={self._settings.author_name}",
            "-c", f"user.email={self._settings.author_email}",
            "-c", "commit.gpgsign=false",
        ]

    def _run(self, directory: Path, *args: str) -> subprocess.CompletedProcess:
        retrying = Retrying(
            retry=retry_if_exception_type(GitLockError),
            stop=stop_after_attempt(self._settings.lock_retry_attempts),
            wait=wait_exponential(multiplier=0.1, max=2),
            reraise=True,
        )
        return retrying(self._run_once, directory, list(args))

    def _run_once(self, directory: Path, args: list[str]) -> subprocess.CompletedProcess:
        cmd = [self._settings.git_executable, *args]
        try:
            result = subprocess.run(
                cmd,
                cwd=directory,
                capture_output=True,
                text=True,
                timeout=self._settings.command_timeout_seconds,
                check=False,
            )
        except FileNotFoundError as e:
            raise GitUnavailableError(
                f"git executable not found: {self._settings.git_executable}"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise GitCommandError(f"git command timed out: {' '.join(args)}") from e
        except OSError as e:
            raise GitCommandError(f"git command could not start: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.strip()
            if "index.lock" in stderr:
                raise GitLockError(stderr)
            raise GitCommandError(f"git exited with {result.returncode}: {stderr}")
        return result

    def _log_failure(
        self,
        operation: str,
        directory: Path,
        error: VersioningError,
        filename: Optional[str] = None,
    ) -> None:
        logger.warning(
            "versioning_failed",
            operation=operation,
            directory=str(directory),
            filename=filename,
            error_type=type(error).__name__,
            error=str(error),
        )
