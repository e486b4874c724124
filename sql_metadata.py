import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from classes import PostMetadata
from db import Base, PostMetadataModel
from errors import PostNotFoundError
from metadata import PostMetadataStore

logger = logging.getLogger(__name__)


class SqlMetadata(PostMetadataStore):
    """
    Post metadata stored in a relational database through SQLAlchemy.

    Any async driver works; sqlite (aiosqlite) is the default and MySQL is
    reachable with a `mysql+aiomysql://` url.
    """

    def __init__(self, connection_string: str):
        self.engine = create_async_engine(connection_string)
        self.async_session_maker = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("ensured post_metadata table exists")

    async def close(self) -> None:
        await self.engine.dispose()

    async def create_post_metadata(self, post: PostMetadata) -> PostMetadata:
        async with self.async_session_maker() as session:
            model = PostMetadataModel.from_post_metadata(post)
            session.add(model)
            await session.commit()
            return model.to_post_metadata()

    async def add_post_version(
        self, post_id: str, title: str, username: str, date: datetime
    ) -> PostMetadata:
        async with self.async_session_maker() as session:
            # atomic increment
            stmt = (
                update(PostMetadataModel)
                .where(PostMetadataModel.post_id == post_id)
                .values(
                    title=title,
                    date=date,
                    versions_number=PostMetadataModel.versions_number + 1,
                    username=username,
                )
            )
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise PostNotFoundError(post_id)

            stmt = select(PostMetadataModel).where(PostMetadataModel.post_id == post_id)
            item = (await session.execute(stmt)).scalars().one()
            await session.commit()
            return item.to_post_metadata()

    async def get_post_metadata(self, post_id: str) -> PostMetadata | None:
        async with self.async_session_maker() as session:
            stmt = select(PostMetadataModel).where(PostMetadataModel.post_id == post_id)
            item = (await session.execute(stmt)).scalars().one_or_none()
            if item is None:
                return None
            return item.to_post_metadata()

    async def get_all_posts_metadata(self) -> list[PostMetadata]:
        async with self.async_session_maker() as session:
            stmt = select(PostMetadataModel).order_by(PostMetadataModel.date)
            items = (await session.execute(stmt)).scalars().all()
            return [item.to_post_metadata() for item in items]
