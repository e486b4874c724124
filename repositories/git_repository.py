from enum import Enum
from typing import Protocol

from classes import CommitResult, VersionMetadata

TIP = "HEAD"
"""Revision reference for the current tip of the repository."""


class RepositoryState(Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class GitRepository(Protocol):
    """
    Protocol defining the interface for git repository implementations.

    A git repository stores one file per document in a single working copy
    and exposes each commit as an immutable version. Every call is executed
    under one exclusive lock, reads included.
    """

    state: RepositoryState

    def commit_file(
        self, path: str, message: str, author: str, content: bytes
    ) -> CommitResult:
        """
        Write `content` to `path` in the working copy, stage it and commit it.

        Returns `NoChange` without creating a commit when the staged tree is
        identical to the tip.

        Raises ValueError for an author git cannot record, before anything is
        written. If the commit fails, the working copy and the index are put
        back to the tip so the next commit only carries its own file.
        """
        raise NotImplementedError

    def get_file_content(
        self, path: str, revision: str = TIP
    ) -> tuple[bytes, VersionMetadata]:
        """
        Returns the content of `path` as recorded at `revision`, along with the
        metadata of the commit `revision` resolves to.
        """
        raise NotImplementedError

    def get_file_history(self, path: str) -> list[VersionMetadata]:
        """
        Returns every commit in the tip's ancestry that modified `path`,
        newest first.
        """
        raise NotImplementedError
