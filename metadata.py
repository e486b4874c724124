from datetime import datetime
from typing import Protocol

from classes import PostMetadata
from errors import PostNotFoundError


class PostMetadataStore(Protocol):
    async def create_post_metadata(self, post: PostMetadata) -> PostMetadata:
        """
        Create the metadata record of a new post.
        """
        raise NotImplementedError

    async def add_post_version(
        self, post_id: str, title: str, username: str, date: datetime
    ) -> PostMetadata:
        """
        Record a new version of an existing post: replace its title, username
        and date, and increment its version counter in one atomic step.

        Raises PostNotFoundError if the post has no record.
        """
        raise NotImplementedError

    async def get_post_metadata(self, post_id: str) -> PostMetadata | None:
        """
        Returns the metadata record of the post with the given id.
        """
        raise NotImplementedError

    async def get_all_posts_metadata(self) -> list[PostMetadata]:
        """
        Returns the metadata records of all the posts, oldest first.
        """
        raise NotImplementedError


class FakeMetadataStore(PostMetadataStore):
    def __init__(self) -> None:
        self.posts: dict[str, PostMetadata] = {}
        """
        Keyed by the post id, then the post metadata.
        """

    async def create_post_metadata(self, post: PostMetadata) -> PostMetadata:
        if post.post_id in self.posts:
            raise ValueError(f"Post `{post.post_id}` already has metadata")
        self.posts[post.post_id] = post.model_copy()
        return post

    async def add_post_version(
        self, post_id: str, title: str, username: str, date: datetime
    ) -> PostMetadata:
        post = self.posts.get(post_id)
        if post is None:
            raise PostNotFoundError(post_id)
        post = post.model_copy(
            update={
                "title": title,
                "username": username,
                "date": date,
                "versions_number": post.versions_number + 1,
            }
        )
        self.posts[post_id] = post
        return post.model_copy()

    async def get_post_metadata(self, post_id: str) -> PostMetadata | None:
        post = self.posts.get(post_id)
        if post is None:
            return None
        return post.model_copy()

    async def get_all_posts_metadata(self) -> list[PostMetadata]:
        return sorted(
            (post.model_copy() for post in self.posts.values()),
            key=lambda post: post.date,
        )
