import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from classes import (
    ApiModel,
    NoChange,
    PostContent,
    PostMetadata,
    PostVersionMetadata,
)
from config import Config, load_config
from errors import (
    InconsistencyError,
    PostNotFoundError,
    TimelineError,
    VersionNotFoundError,
)
from logger_config import setup_logging
from metadata import PostMetadataStore
from repositories import LocalGitRepository
from sql_metadata import SqlMetadata
from timeline import GitTimelineStore

logger = logging.getLogger(__name__)


class CreatePostRequest(PostContent):
    pass


class UpdatePostRequest(PostContent):
    pass


class CreatePostResponse(ApiModel):
    post_id: str


class CreateVersionResponse(ApiModel):
    version_id: str


class GetPostResponse(ApiModel):
    body: str
    title: str
    versions_number: int
    username: str
    date: datetime


def get_timeline(request: Request) -> GitTimelineStore:
    return request.app.state.timeline


def get_metadata(request: Request) -> PostMetadataStore:
    return request.app.state.metadata


async def require_post_metadata(
    post_id: str, metadata: PostMetadataStore
) -> PostMetadata:
    post = await metadata.get_post_metadata(post_id)
    if post is None:
        logger.warning("post does not exist", extra={"post_id": post_id})
        raise PostNotFoundError(post_id)
    return post


def inconsistency(post_id: str, msg: str) -> InconsistencyError:
    logger.error(msg, extra={"post_id": post_id, "inconsistency": True})
    return InconsistencyError(post_id, msg)


router = APIRouter(prefix="/api")


@router.get("/posts", response_model=list[PostMetadata])
async def get_posts(metadata: PostMetadataStore = Depends(get_metadata)):
    return await metadata.get_all_posts_metadata()


@router.get("/post/{post_id}", response_model=GetPostResponse)
async def get_post(
    post_id: str,
    timeline: GitTimelineStore = Depends(get_timeline),
    metadata: PostMetadataStore = Depends(get_metadata),
):
    """Gets the latest version of the post."""
    post = await require_post_metadata(post_id, metadata)
    try:
        body = await run_in_threadpool(timeline.get_post, post_id)
    except PostNotFoundError as e:
        raise inconsistency(post_id, "post has metadata but no content") from e

    return GetPostResponse(
        body=body,
        title=post.title,
        versions_number=post.versions_number,
        username=post.username,
        date=post.date,
    )


@router.get("/post/{post_id}/timeline", response_model=list[PostVersionMetadata])
async def get_timeline_route(
    post_id: str,
    timeline: GitTimelineStore = Depends(get_timeline),
    metadata: PostMetadataStore = Depends(get_metadata),
):
    """
    Gets all the versions of the post, newest first. For each version it
    returns the version identifier, the title, the date and the username of
    the user who created it.
    """
    await require_post_metadata(post_id, metadata)
    try:
        return await run_in_threadpool(timeline.get_post_timeline, post_id)
    except PostNotFoundError as e:
        raise inconsistency(post_id, "post has metadata but no history") from e


@router.get("/post/{post_id}/version/{version_id}", response_model=PostContent)
async def get_version(
    post_id: str,
    version_id: str,
    timeline: GitTimelineStore = Depends(get_timeline),
    metadata: PostMetadataStore = Depends(get_metadata),
):
    await require_post_metadata(post_id, metadata)
    try:
        return await run_in_threadpool(timeline.get_post_version, post_id, version_id)
    except PostNotFoundError as e:
        raise inconsistency(post_id, "post has metadata but no history") from e


@router.post("/post", response_model=CreatePostResponse)
async def create_post(
    request: CreatePostRequest,
    timeline: GitTimelineStore = Depends(get_timeline),
    metadata: PostMetadataStore = Depends(get_metadata),
):
    post_id = await run_in_threadpool(timeline.create_post, request)

    try:
        await metadata.create_post_metadata(
            PostMetadata(
                post_id=post_id,
                title=request.title,
                date=datetime.now(timezone.utc),
                versions_number=1,
                username=request.username,
            )
        )
    except SQLAlchemyError as e:
        raise inconsistency(post_id, "post committed but metadata not created") from e

    return CreatePostResponse(post_id=post_id)


@router.put("/post/{post_id}", response_model=CreateVersionResponse)
async def edit_post(
    post_id: str,
    request: UpdatePostRequest,
    timeline: GitTimelineStore = Depends(get_timeline),
    metadata: PostMetadataStore = Depends(get_metadata),
):
    """
    Commits a new version of an existing post. Content identical to the
    latest version is answered with 304 and changes nothing.
    """
    await require_post_metadata(post_id, metadata)
    try:
        result = await run_in_threadpool(timeline.edit_post, post_id, request)
    except PostNotFoundError as e:
        raise inconsistency(post_id, "post has metadata but no history") from e

    if isinstance(result, NoChange):
        return Response(status_code=304)

    try:
        await metadata.add_post_version(
            post_id,
            title=request.title,
            username=request.username,
            date=datetime.now(timezone.utc),
        )
    except (SQLAlchemyError, PostNotFoundError) as e:
        raise inconsistency(post_id, "version committed but metadata not updated") from e

    return CreateVersionResponse(version_id=result.version_id)


async def post_not_found_handler(request: Request, exc: PostNotFoundError):
    return JSONResponse(status_code=404, content={"error": "Post not found"})


async def version_not_found_handler(request: Request, exc: VersionNotFoundError):
    return JSONResponse(status_code=404, content={"error": "Version not found"})


async def internal_error_handler(request: Request, exc: Exception):
    logger.error(
        "request failed",
        exc_info=exc,
        extra={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(status_code=500, content={"error": "Internal error"})


def create_app(
    timeline_store: GitTimelineStore | None = None,
    metadata_store: PostMetadataStore | None = None,
    config: Config | None = None,
) -> FastAPI:
    """
    Builds the application. Stores that are not passed in are built from
    `config` when the application starts, or from the environment if no
    config is given.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.timeline is not None and app.state.metadata is not None:
            yield
            return

        settings = config if config is not None else load_config()
        setup_logging(settings.log_level)

        logger.info("initiating git local repository...")
        repository = LocalGitRepository(
            settings.repository_path, committer=settings.committer
        )
        logger.info("initiating sql metadata storage...")
        sql_metadata = SqlMetadata(settings.database_url)
        await sql_metadata.create_all()

        app.state.timeline = GitTimelineStore(repository)
        app.state.metadata = sql_metadata
        try:
            yield
        finally:
            await sql_metadata.close()
            repository.close()

    app = FastAPI(lifespan=lifespan)
    app.state.timeline = timeline_store
    app.state.metadata = metadata_store

    app.include_router(router)
    app.add_exception_handler(PostNotFoundError, post_not_found_handler)
    app.add_exception_handler(VersionNotFoundError, version_not_found_handler)
    app.add_exception_handler(TimelineError, internal_error_handler)
    app.add_exception_handler(SQLAlchemyError, internal_error_handler)
    app.add_exception_handler(Exception, internal_error_handler)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    config = load_config()
    setup_logging(config.log_level)
    logger.info("running server", extra={"port": config.server_port})
    uvicorn.run(app, host=config.server_host, port=config.server_port)
