class TimelineError(Exception):
    """Base class for every error raised by the timeline storage."""


class StorageIOError(TimelineError, OSError):
    """
    The working copy could not be read or written.
    """


class RepositoryError(TimelineError):
    """
    Staging, committing or reading the object store failed for a reason
    not attributable to the caller's input.
    """


class NotFoundError(TimelineError):
    pass


class RevisionNotFoundError(NotFoundError):
    def __init__(self, revision: str):
        super().__init__(f"Revision `{revision}` does not resolve to a commit")
        self.revision = revision


class PathNotFoundError(NotFoundError):
    def __init__(self, path: str, revision: str | None = None):
        if revision is None:
            msg = f"Path `{path}` has no history"
        else:
            msg = f"Path `{path}` does not exist at revision `{revision}`"
        super().__init__(msg)
        self.path = path
        self.revision = revision


class PostNotFoundError(NotFoundError):
    def __init__(self, post_id: str):
        super().__init__(f"Post `{post_id}` not found")
        self.post_id = post_id


class VersionNotFoundError(NotFoundError):
    def __init__(self, post_id: str, version_id: str):
        super().__init__(f"Version `{version_id}` of post `{post_id}` not found")
        self.post_id = post_id
        self.version_id = version_id


class InvariantViolationError(TimelineError):
    """
    Raised when the storage observes a state that correct callers can never
    produce, e.g. creating a post whose file already holds the same content.
    """


class InconsistencyError(TimelineError):
    """
    The post content and its metadata record disagree, e.g. a commit was
    made but the metadata write that follows it failed.
    """

    def __init__(self, post_id: str, msg: str):
        super().__init__(f"Post `{post_id}`: {msg}")
        self.post_id = post_id
