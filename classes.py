import datetime
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

AUTHOR_FORBIDDEN_CHARS = "\0\n<>"
"""Characters git does not accept in the name part of an identity."""


def check_author(author: str) -> None:
    if any(c in author for c in AUTHOR_FORBIDDEN_CHARS):
        raise ValueError(f"Author {author!r} contains a character git rejects")


class ApiModel(BaseModel):
    """
    Models that cross the HTTP boundary. Fields are snake_case in Python and
    camelCase on the wire.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PostContent(ApiModel):
    body: str
    title: str
    username: str

    @field_validator("username")
    @classmethod
    def username_is_git_author(cls, username: str) -> str:
        check_author(username)
        return username


class PostMetadata(ApiModel):
    post_id: str
    title: str
    date: datetime.datetime
    versions_number: int
    username: str


class PostVersionMetadata(ApiModel):
    """A single entry of a post's timeline."""

    version_id: str
    title: str
    date: datetime.datetime
    user: str


class VersionMetadata(BaseModel):
    """
    What the repository records about one commit.

    The commit message carries the post title and the commit author carries
    the username, so both are kept here as first-class attributes instead of
    as raw git fields.
    """

    model_config = ConfigDict(frozen=True)

    version_id: str
    title: str
    author: str
    date: datetime.datetime


@dataclass(frozen=True)
class Committed:
    version_id: str


@dataclass(frozen=True)
class NoChange:
    """
    The staged content was identical to the tip, so no commit was made.
    """


CommitResult = Committed | NoChange
