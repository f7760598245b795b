"""
Versioning Services Package

Keeps a git history of every data file write, per child directory.
"""

from allowance_tracker.services.versioning.git_manager import (
    GitCommandError,
    GitLockError,
    GitUnavailableError,
    GitVersioningManager,
    VersioningError,
)

__all__ = [
    "GitCommandError",
    "GitLockError",
    "GitUnavailableError",
    "GitVersioningManager",
    "VersioningError",
]
