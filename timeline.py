import logging
import uuid

from classes import (
    CommitResult,
    NoChange,
    PostContent,
    PostVersionMetadata,
    VersionMetadata,
)
from errors import (
    InvariantViolationError,
    NotFoundError,
    PathNotFoundError,
    PostNotFoundError,
    VersionNotFoundError,
)
from repositories import TIP, GitRepository

logger = logging.getLogger(__name__)


def post_path(post_id: str) -> str:
    """
    Returns the path of the file tracking a post. Post ids are canonical
    UUIDs, so distinct ids always map to distinct files.
    """
    return f"{post_id}.json"


def is_post_id(post_id: str) -> bool:
    try:
        return str(uuid.UUID(post_id)) == post_id
    except ValueError:
        return False


class GitTimelineStore:
    """
    Stores posts and their full edit history in a git repository.

    Each post is one file in the repository and each commit touching that
    file is one version of the post. The commit message holds the post
    title and the commit author holds the username.
    """

    def __init__(self, repository: GitRepository):
        self.repository = repository

    def _path(self, post_id: str) -> str:
        # ids we could never have minted are reported as missing posts
        # before they are turned into a path
        if not is_post_id(post_id):
            raise PostNotFoundError(post_id)
        return post_path(post_id)

    def _history(self, post_id: str) -> list[VersionMetadata]:
        path = self._path(post_id)
        try:
            return self.repository.get_file_history(path)
        except PathNotFoundError:
            raise PostNotFoundError(post_id) from None

    def create_post(self, post: PostContent) -> str:
        post_id = str(uuid.uuid4())
        result = self.repository.commit_file(
            post_path(post_id), post.title, post.username, post.body.encode()
        )
        if isinstance(result, NoChange):
            raise InvariantViolationError(
                f"Creating post `{post_id}` did not change the repository"
            )

        logger.info(
            "post created",
            extra={"post_id": post_id, "version_id": result.version_id},
        )
        return post_id

    def get_post(self, post_id: str) -> str:
        path = self._path(post_id)
        try:
            content, _ = self.repository.get_file_content(path, TIP)
        except NotFoundError:
            logger.error("failed to get post content", extra={"post_id": post_id})
            raise PostNotFoundError(post_id) from None
        return content.decode()

    def get_post_timeline(self, post_id: str) -> list[PostVersionMetadata]:
        history = self._history(post_id)
        return [
            PostVersionMetadata(
                version_id=version.version_id,
                title=version.title,
                date=version.date,
                user=version.author,
            )
            for version in history
        ]

    def get_post_version(self, post_id: str, version_id: str) -> PostContent:
        """
        Returns the post as it was at `version_id`.

        Only versions from the post's own timeline are served. A commit that
        exists but belongs to another post is a missing version of this one.
        """
        history = self._history(post_id)
        if not any(version.version_id == version_id for version in history):
            logger.error(
                "failed to get post content from past",
                extra={"post_id": post_id, "version_id": version_id},
            )
            raise VersionNotFoundError(post_id, version_id)

        try:
            content, version = self.repository.get_file_content(
                post_path(post_id), version_id
            )
        except NotFoundError:
            raise VersionNotFoundError(post_id, version_id) from None

        return PostContent(
            title=version.title, body=content.decode(), username=version.author
        )

    def edit_post(self, post_id: str, post: PostContent) -> CommitResult:
        """
        Commits new content for an existing post.

        Returns `NoChange` when the content is identical to the latest
        version; the timeline is left as it was.
        """
        self._history(post_id)

        result = self.repository.commit_file(
            post_path(post_id), post.title, post.username, post.body.encode()
        )
        if isinstance(result, NoChange):
            logger.info("nothing changed", extra={"post_id": post_id})
        else:
            logger.info(
                "post edited",
                extra={"post_id": post_id, "version_id": result.version_id},
            )
        return result
