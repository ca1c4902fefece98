"""
Feed endpoints: the merged mix feed, single-source listings and comments.

Engine errors (malformed cursor, unknown or failing source, all sources
down) are mapped to HTTP responses by the handlers registered in app.py.
"""

import time

import structlog
from fastapi import APIRouter, Depends, Path, Query
from starlette.requests import Request

from src.api.dependencies import get_feed_service
from src.api.models import ErrorResponse, SourcesFailedResponse
from src.api.rate_limit import limiter
from src.config.settings import get_settings as _get_settings
from src.feed.merge import InterleavePolicy
from src.feed.service import FeedResponse, FeedService
from src.ingestion.schemas import Comment, NormalizedItem, SourceKind

router = APIRouter(prefix="/api")
logger = structlog.get_logger(__name__)


@router.get(
    "/feed",
    response_model=FeedResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Malformed cursor"},
        503: {"model": SourcesFailedResponse, "description": "All sources failed"},
    },
    summary="Merged feed",
    description=(
        "Ranked feed merged across every source. Pass `nextCursor` from the "
        "previous page as `cursor` to continue; a null `nextCursor` means the "
        "feed is exhausted."
    ),
)
@limiter.limit(lambda: _get_settings().rate_limit_default)
async def get_feed(
    request: Request,
    limit: int | None = Query(
        default=None,
        ge=1,
        le=100,
        description="Page size. Values above the service maximum (50 by default) are clamped to it",
    ),
    cursor: str | None = Query(default=None, description="Opaque pagination cursor"),
    policy: InterleavePolicy = Query(
        default=InterleavePolicy.HIGHLIGHT_BANDED,
        description="Interleave policy",
    ),
    service: FeedService = Depends(get_feed_service),
) -> FeedResponse:
    start = time.perf_counter()
    page = await service.get_feed(page_size=limit, cursor=cursor, policy=policy)

    logger.info(
        "feed_page",
        policy=policy.value,
        items=len(page.items),
        has_more=page.next_cursor is not None,
        failed_sources=[s.name for s in page.sources if not s.ok],
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
    )
    return page


@router.get(
    "/news/{source}",
    response_model=list[NormalizedItem],
    responses={
        404: {"model": ErrorResponse, "description": "Unknown source"},
        502: {"model": ErrorResponse, "description": "Source unavailable"},
    },
    summary="Single-source listing",
    description="Every current item of one source, ranked, without pagination.",
)
@limiter.limit(lambda: _get_settings().rate_limit_default)
async def get_source(
    request: Request,
    source: str = Path(..., description="Source name, e.g. tabnews or hackernews"),
    service: FeedService = Depends(get_feed_service),
) -> list[NormalizedItem]:
    items = await service.get_source(source)
    logger.info("source_listing", source=source, items=len(items))
    return items


# Declared before the TabNews route so "hackernews" is not read as a username
@router.get(
    "/comments/hackernews/{story_id}",
    response_model=list[Comment],
    responses={
        404: {"model": ErrorResponse, "description": "Unknown source"},
        502: {"model": ErrorResponse, "description": "Source unavailable"},
    },
    summary="Hacker News comments",
)
@limiter.limit(lambda: _get_settings().rate_limit_default)
async def get_hackernews_comments(
    request: Request,
    story_id: str = Path(..., pattern=r"^\d+$", description="Story id"),
    service: FeedService = Depends(get_feed_service),
) -> list[Comment]:
    return await service.get_comments(SourceKind.HACKERNEWS, story_id)


@router.get(
    "/comments/{username}/{slug}",
    response_model=list[Comment],
    responses={
        404: {"model": ErrorResponse, "description": "Unknown source"},
        502: {"model": ErrorResponse, "description": "Source unavailable"},
    },
    summary="TabNews comments",
)
@limiter.limit(lambda: _get_settings().rate_limit_default)
async def get_tabnews_comments(
    request: Request,
    username: str = Path(..., description="Post owner"),
    slug: str = Path(..., description="Post slug"),
    service: FeedService = Depends(get_feed_service),
) -> list[Comment]:
    return await service.get_comments(SourceKind.TABNEWS, f"{username}/{slug}")
