import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from classes import PostMetadata


class Base(DeclarativeBase):
    pass


class PostMetadataModel(Base):
    __tablename__ = "post_metadata"

    post_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String, nullable=False)
    date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    versions_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    username: Mapped[str] = mapped_column(String, nullable=False)

    def __repr__(self) -> str:
        return f"PostMetadataModel(post_id={self.post_id}, title={self.title}, versions_number={self.versions_number})"

    @classmethod
    def from_post_metadata(cls, post: PostMetadata) -> "PostMetadataModel":
        return PostMetadataModel(
            post_id=post.post_id,
            title=post.title,
            date=post.date,
            versions_number=post.versions_number,
            username=post.username,
        )

    def to_post_metadata(self) -> PostMetadata:
        date = self.date
        # sqlite drops the timezone; dates are always written in UTC
        if date.tzinfo is None:
            date = date.replace(tzinfo=datetime.timezone.utc)
        return PostMetadata(
            post_id=self.post_id,
            title=self.title,
            date=date,
            versions_number=self.versions_number,
            username=self.username,
        )
