import hashlib
import threading
from dataclasses import dataclass
from datetime import datetime, timezone

from classes import CommitResult, Committed, NoChange, VersionMetadata, check_author
from errors import PathNotFoundError, RevisionNotFoundError

from .git_repository import TIP, GitRepository, RepositoryState


@dataclass
class FakeCommit:
    metadata: VersionMetadata
    parent: str | None
    files: dict[str, bytes]


class FakeGitRepository(GitRepository):
    """
    In-memory implementation of GitRepository for testing purposes.

    Commits form a single linear history. Version ids are sha1 digests of the
    commit contents, so they look and compare like real commit ids.
    """

    def __init__(self) -> None:
        # nothing to open or init, so the fake is ready from the start
        self.state = RepositoryState.READY
        self._lock = threading.Lock()
        self.commits: dict[str, FakeCommit] = {}
        self.tip: str | None = None

    def _tip_files(self) -> dict[str, bytes]:
        if self.tip is None:
            return {}
        return self.commits[self.tip].files

    def commit_file(
        self, path: str, message: str, author: str, content: bytes
    ) -> CommitResult:
        check_author(author)
        with self._lock:
            files = self._tip_files()
            if files.get(path) == content:
                return NoChange()

            now = datetime.now(timezone.utc)
            digest = hashlib.sha1()
            for part in (self.tip or "", path, message, author, now.isoformat()):
                digest.update(part.encode())
            digest.update(content)
            version_id = digest.hexdigest()

            self.commits[version_id] = FakeCommit(
                metadata=VersionMetadata(
                    version_id=version_id, title=message, author=author, date=now
                ),
                parent=self.tip,
                files={**files, path: content},
            )
            self.tip = version_id
            return Committed(version_id)

    def get_file_content(
        self, path: str, revision: str = TIP
    ) -> tuple[bytes, VersionMetadata]:
        with self._lock:
            version_id = self.tip if revision == TIP else revision
            if version_id is None or version_id not in self.commits:
                raise RevisionNotFoundError(revision)

            commit = self.commits[version_id]
            if path not in commit.files:
                raise PathNotFoundError(path, revision)
            return commit.files[path], commit.metadata

    def get_file_history(self, path: str) -> list[VersionMetadata]:
        with self._lock:
            history = []
            version_id = self.tip
            while version_id is not None:
                commit = self.commits[version_id]
                before = (
                    self.commits[commit.parent].files.get(path)
                    if commit.parent is not None
                    else None
                )
                if commit.files.get(path) != before:
                    history.append(commit.metadata)
                version_id = commit.parent

        if not history:
            raise PathNotFoundError(path)
        return history
