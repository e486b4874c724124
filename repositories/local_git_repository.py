import logging
import re
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path

from dulwich import porcelain
from dulwich.errors import NotGitRepository
from dulwich.object_store import tree_lookup_path
from dulwich.objects import Blob, Commit
from dulwich.repo import Repo

from classes import CommitResult, Committed, NoChange, VersionMetadata, check_author
from errors import (
    PathNotFoundError,
    RepositoryError,
    RevisionNotFoundError,
    StorageIOError,
)

from .git_repository import TIP, GitRepository, RepositoryState

logger = logging.getLogger(__name__)

COMMIT_ID_RE = re.compile(r"[0-9a-f]{40}")


def format_identity(name: str) -> str:
    # git requires `name <email>`; posts only carry a username
    return f"{name} <>"


def parse_identity(identity: bytes) -> str:
    return identity.decode("utf-8", errors="replace").rsplit(" <", 1)[0]


def to_version_metadata(commit: Commit) -> VersionMetadata:
    tz = timezone(timedelta(seconds=commit.author_timezone))
    return VersionMetadata(
        version_id=commit.id.decode("ascii"),
        title=commit.message.decode("utf-8", errors="replace"),
        author=parse_identity(commit.author),
        date=datetime.fromtimestamp(commit.author_time, tz=tz),
    )


class LocalGitRepository(GitRepository):
    """
    A git repository on the local disk, accessed through dulwich.

    There is exactly one working copy and one tip, so every call (reads
    included) runs while holding `_lock`. Historical content is always read
    from the object store, never from the working copy.
    """

    def __init__(
        self, path: str | Path, committer: str = "gittimeline <gittimeline@localhost>"
    ):
        self.path = Path(path).resolve()
        self.committer = committer
        self.state = RepositoryState.UNINITIALIZED
        self._lock = threading.Lock()
        self._repo = self._open_or_init()
        self.state = RepositoryState.READY

    def _open_or_init(self) -> Repo:
        try:
            repo = Repo(str(self.path))
            logger.info("opened git repository", extra={"path": str(self.path)})
            return repo
        except NotGitRepository:
            pass

        logger.info("initializing empty git repository", extra={"path": str(self.path)})
        try:
            self.path.mkdir(parents=True, exist_ok=True)
            return Repo.init(str(self.path))
        except OSError as e:
            raise StorageIOError(
                f"Failed to init git repository at `{self.path}`: {e}"
            ) from e

    def close(self) -> None:
        with self._lock:
            self._repo.close()

    @contextmanager
    def _checkout(self) -> Iterator[Repo]:
        """Grants exclusive access to the repository for one operation."""
        with self._lock:
            yield self._repo

    def _working_path(self, path: str) -> Path:
        relative = Path(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Path `{path}` must be relative to the repository root")
        return self.path / relative

    def _tip(self, repo: Repo) -> bytes | None:
        """Returns the tip commit id, or None if nothing was committed yet."""
        try:
            return repo.head()
        except KeyError:
            return None

    def _staged_tree_differs(self, repo: Repo) -> bool:
        staged_tree = repo.open_index().commit(repo.object_store)
        tip = self._tip(repo)
        if tip is None:
            return True
        return repo[tip].tree != staged_tree

    def _resolve(self, repo: Repo, revision: str) -> Commit:
        if revision == TIP:
            tip = self._tip(repo)
            if tip is None:
                raise RevisionNotFoundError(revision)
            return repo[tip]

        commit_id = revision.lower()
        if not COMMIT_ID_RE.fullmatch(commit_id):
            raise RevisionNotFoundError(revision)
        try:
            obj = repo[commit_id.encode("ascii")]
        except KeyError:
            raise RevisionNotFoundError(revision) from None
        if not isinstance(obj, Commit):
            raise RevisionNotFoundError(revision)
        return obj

    def _tip_blob(self, repo: Repo, path: str) -> bytes | None:
        tip = self._tip(repo)
        if tip is None:
            return None
        try:
            _, sha = tree_lookup_path(repo.__getitem__, repo[tip].tree, path.encode())
        except KeyError:
            return None
        return repo[sha].data

    def _restore(self, repo: Repo, path: str) -> None:
        """
        Puts the working file of `path` and its index entry back to the tip,
        dropping whatever a failed commit left behind.
        """
        full_path = self._working_path(path)
        tip_content = self._tip_blob(repo, path)
        try:
            if tip_content is None:
                full_path.unlink(missing_ok=True)
                index = repo.open_index()
                name = Path(path).as_posix().encode()
                if name in index:
                    del index[name]
                    index.write()
            else:
                full_path.write_bytes(tip_content)
                porcelain.add(repo, paths=[str(full_path)])
        except Exception as e:
            logger.error(
                "failed to restore working copy", exc_info=e, extra={"filename": path}
            )
            raise RepositoryError(f"Failed to restore `{path}`: {e}") from e
        logger.warning("restored working copy to tip", extra={"filename": path})

    def commit_file(
        self, path: str, message: str, author: str, content: bytes
    ) -> CommitResult:
        full_path = self._working_path(path)
        check_author(author)
        with self._checkout() as repo:
            try:
                full_path.parent.mkdir(parents=True, exist_ok=True)
                full_path.write_bytes(content)
            except OSError as e:
                self._restore(repo, path)
                raise StorageIOError(f"Failed to write `{path}`: {e}") from e

            try:
                porcelain.add(repo, paths=[str(full_path)])
                if not self._staged_tree_differs(repo):
                    logger.info("no changes to commit", extra={"filename": path})
                    return NoChange()
                commit_id = porcelain.commit(
                    repo,
                    message=message,
                    author=format_identity(author),
                    committer=self.committer,
                )
            except Exception as e:
                self._restore(repo, path)
                raise RepositoryError(f"Failed to commit `{path}`: {e}") from e

        version_id = commit_id.decode("ascii")
        logger.info("commit done", extra={"filename": path, "version_id": version_id})
        return Committed(version_id)

    def get_file_content(
        self, path: str, revision: str = TIP
    ) -> tuple[bytes, VersionMetadata]:
        with self._checkout() as repo:
            commit = self._resolve(repo, revision)
            try:
                _, sha = tree_lookup_path(repo.__getitem__, commit.tree, path.encode())
            except KeyError:
                raise PathNotFoundError(path, revision) from None

            blob = repo[sha]
            if not isinstance(blob, Blob):
                raise PathNotFoundError(path, revision)
            return blob.data, to_version_metadata(commit)

    def get_file_history(self, path: str) -> list[VersionMetadata]:
        logger.debug("walking history of file", extra={"filename": path})
        with self._checkout() as repo:
            tip = self._tip(repo)
            if tip is None:
                raise PathNotFoundError(path)
            try:
                walker = repo.get_walker(include=[tip], paths=[path.encode()])
                history = [to_version_metadata(entry.commit) for entry in walker]
            except KeyError as e:
                raise RepositoryError(f"Failed to walk history of `{path}`: {e}") from e

        if not history:
            raise PathNotFoundError(path)
        return history
