import threading
from pathlib import Path

import pytest

from classes import Committed, NoChange
from errors import PathNotFoundError, RepositoryError, RevisionNotFoundError
from repositories import (
    TIP,
    FakeGitRepository,
    GitRepository,
    LocalGitRepository,
    RepositoryState,
    local_git_repository,
)


def check_git_repository(repo: GitRepository):
    assert repo.state == RepositoryState.READY

    # Nothing committed yet: no tip and no history
    with pytest.raises(RevisionNotFoundError):
        repo.get_file_content("a.json", TIP)
    with pytest.raises(PathNotFoundError):
        repo.get_file_history("a.json")

    first = repo.commit_file("a.json", "first title", "alice", b"one")
    assert isinstance(first, Committed)

    content, version = repo.get_file_content("a.json", TIP)
    assert content == b"one"
    assert version.version_id == first.version_id
    assert version.title == "first title"
    assert version.author == "alice"

    # Same content again is not a change
    assert repo.commit_file("a.json", "ignored", "bob", b"one") == NoChange()
    assert len(repo.get_file_history("a.json")) == 1

    second = repo.commit_file("a.json", "second title", "bob", b"two")
    assert isinstance(second, Committed)
    assert second.version_id != first.version_id

    # Committing another file does not add to a.json's history
    other = repo.commit_file("b.json", "other", "carol", b"unrelated")
    assert isinstance(other, Committed)

    history = repo.get_file_history("a.json")
    assert [v.version_id for v in history] == [second.version_id, first.version_id]
    assert [v.title for v in history] == ["second title", "first title"]
    assert [v.author for v in history] == ["bob", "alice"]
    assert history[0].date >= history[1].date

    assert [v.version_id for v in repo.get_file_history("b.json")] == [
        other.version_id
    ]

    # Old versions keep their content
    content, version = repo.get_file_content("a.json", first.version_id)
    assert content == b"one"
    assert version.title == "first title"
    content, _ = repo.get_file_content("a.json", second.version_id)
    assert content == b"two"
    content, _ = repo.get_file_content("a.json", TIP)
    assert content == b"two"

    # b.json did not exist when a.json was first committed
    with pytest.raises(PathNotFoundError):
        repo.get_file_content("b.json", first.version_id)
    with pytest.raises(PathNotFoundError):
        repo.get_file_content("missing.json", TIP)
    with pytest.raises(PathNotFoundError):
        repo.get_file_history("missing.json")

    with pytest.raises(RevisionNotFoundError):
        repo.get_file_content("a.json", "not-a-commit")
    with pytest.raises(RevisionNotFoundError):
        repo.get_file_content("a.json", "0" * 40)


def test_fake_git_repository():
    check_git_repository(FakeGitRepository())


def test_local_git_repository(tmp_path: Path):
    repo = LocalGitRepository(tmp_path / "repo")
    try:
        check_git_repository(repo)
    finally:
        repo.close()


def test_local_git_repository_reopens_existing_history(tmp_path: Path):
    path = tmp_path / "repo"
    repo = LocalGitRepository(path)
    committed = repo.commit_file("a.json", "title", "alice", b"body")
    repo.close()

    assert (path / ".git").is_dir()

    reopened = LocalGitRepository(path)
    try:
        assert reopened.state == RepositoryState.READY
        history = reopened.get_file_history("a.json")
        assert [v.version_id for v in history] == [committed.version_id]
        assert reopened.commit_file("a.json", "title", "alice", b"body") == NoChange()
    finally:
        reopened.close()


def test_local_git_repository_reads_do_not_touch_working_copy(tmp_path: Path):
    repo = LocalGitRepository(tmp_path)
    try:
        first = repo.commit_file("a.json", "v1", "alice", b"v1")
        repo.commit_file("a.json", "v2", "alice", b"v2")

        content, _ = repo.get_file_content("a.json", first.version_id)
        assert content == b"v1"
        assert (tmp_path / "a.json").read_bytes() == b"v2"
    finally:
        repo.close()


def test_local_git_repository_version_ids_are_commit_hashes(tmp_path: Path):
    repo = LocalGitRepository(tmp_path)
    try:
        committed = repo.commit_file("a.json", "v1", "alice", b"v1")
        assert len(committed.version_id) == 40
        int(committed.version_id, 16)

        # Upper case refers to the same commit
        content, version = repo.get_file_content(
            "a.json", committed.version_id.upper()
        )
        assert content == b"v1"
        assert version.version_id == committed.version_id
    finally:
        repo.close()


def test_local_git_repository_rejects_paths_outside_working_copy(tmp_path: Path):
    repo = LocalGitRepository(tmp_path / "repo")
    try:
        with pytest.raises(ValueError):
            repo.commit_file("../escape.json", "title", "alice", b"body")
        assert not (tmp_path / "escape.json").exists()
    finally:
        repo.close()


@pytest.mark.parametrize("author", ["x\ny", "nul\0", "a <b>"])
def test_author_git_cannot_record_is_rejected(tmp_path: Path, author: str):
    for repo in [FakeGitRepository(), LocalGitRepository(tmp_path / "repo")]:
        with pytest.raises(ValueError):
            repo.commit_file("a.json", "title", author, b"body")
        with pytest.raises(PathNotFoundError):
            repo.get_file_history("a.json")

        if isinstance(repo, LocalGitRepository):
            assert not (tmp_path / "repo" / "a.json").exists()
            repo.close()


def test_local_git_repository_failed_commit_leaves_no_trace(
    tmp_path: Path, monkeypatch
):
    repo = LocalGitRepository(tmp_path)
    try:
        first = repo.commit_file("a.json", "tA", "alice", b"A")

        def broken(*args, **kwargs):
            raise OSError("disk full")

        with monkeypatch.context() as m:
            m.setattr(local_git_repository.porcelain, "commit", broken)
            with pytest.raises(RepositoryError):
                repo.commit_file("a.json", "tA-edit", "alice", b"A-edit")
            with pytest.raises(RepositoryError):
                repo.commit_file("c.json", "tC", "carol", b"C")

        assert (tmp_path / "a.json").read_bytes() == b"A"
        assert not (tmp_path / "c.json").exists()

        other = repo.commit_file("b.json", "tB", "bob", b"B")
        assert isinstance(other, Committed)

        # The next commit only carries its own file
        content, _ = repo.get_file_content("a.json", other.version_id)
        assert content == b"A"
        with pytest.raises(PathNotFoundError):
            repo.get_file_content("c.json", other.version_id)
        with pytest.raises(PathNotFoundError):
            repo.get_file_history("c.json")
        assert [v.version_id for v in repo.get_file_history("a.json")] == [
            first.version_id
        ]

        # The failed edit can be retried
        retried = repo.commit_file("a.json", "tA-edit", "alice", b"A-edit")
        assert isinstance(retried, Committed)
        assert [v.title for v in repo.get_file_history("a.json")] == ["tA-edit", "tA"]
    finally:
        repo.close()


@pytest.mark.parametrize("make_repo", ["fake", "local"])
def test_concurrent_commits_are_serialized(tmp_path: Path, make_repo: str):
    if make_repo == "fake":
        repo: GitRepository = FakeGitRepository()
    else:
        repo = LocalGitRepository(tmp_path)

    workers = 8
    edits = 5
    results: list[Committed | NoChange] = []
    errors: list[Exception] = []
    results_lock = threading.Lock()

    def work(n: int):
        try:
            for i in range(edits):
                result = repo.commit_file(f"{n}.json", f"t{i}", f"user{n}", f"{i}".encode())
                repo.get_file_history(f"{n}.json")
                with results_lock:
                    results.append(result)
        except Exception as e:
            with results_lock:
                errors.append(e)

    threads = [threading.Thread(target=work, args=(n,)) for n in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert all(isinstance(r, Committed) for r in results)
    assert len({r.version_id for r in results}) == workers * edits

    for n in range(workers):
        history = repo.get_file_history(f"{n}.json")
        assert [v.title for v in history] == [f"t{i}" for i in reversed(range(edits))]
        content, _ = repo.get_file_content(f"{n}.json", TIP)
        assert content == f"{edits - 1}".encode()

    if isinstance(repo, LocalGitRepository):
        repo.close()
