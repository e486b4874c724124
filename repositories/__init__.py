"""
Repository layer for versioned content.

This package contains the git repository protocol and its implementations:
one backed by an on-disk repository and one kept in memory for tests.
"""

from .fake_git_repository import FakeGitRepository
from .git_repository import TIP, GitRepository, RepositoryState
from .local_git_repository import LocalGitRepository

__all__ = [
    "TIP",
    "GitRepository",
    "RepositoryState",
    "FakeGitRepository",
    "LocalGitRepository",
]
