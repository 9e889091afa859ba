"""Post procedures for the coblog RPC API.

Each procedure is ``POST /rpc/post.<name>`` taking its input as the JSON body.
Mutations carry the caller's owner id and commit once at the end, so a
procedure is a single transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter

from coblog.web.api.dependencies import Context
from coblog.web.api.schemas import (
    CategorySummary,
    OwnerInput,
    PaginationInfo,
    PostCreate,
    PostDelete,
    PostDetailResponse,
    PostIdInput,
    PostListInput,
    PostListResponse,
    PostResponse,
    PostSlugInput,
    PostStatsResponse,
    PostUpdate,
    SuccessResponse,
)
from coblog.web.crud import PostOperations
from coblog.web.models import Category, Post
from coblog.web.post_stats import content_stats, content_text, make_excerpt
from coblog.web.rich_text import DocumentContent, render_html, resolve_content

logger = logging.getLogger(__name__)

router = APIRouter()

# Columns that may be cleared by sending null
_NULLABLE_FIELDS = {"excerpt", "featured_image"}


def _post_data(post: Post, categories: List[Category]) -> dict:
    """Flatten a post and its categories into response fields."""
    content = resolve_content(post.content)
    stats = content_stats(post.content)

    return {
        "id": post.id,
        "title": post.title,
        "slug": post.slug,
        "content": post.content,
        "content_format": "document" if isinstance(content, DocumentContent) else "legacy",
        "excerpt": post.excerpt,
        "summary": post.excerpt or make_excerpt(content_text(post.content)),
        "featured_image": post.featured_image,
        "published": post.published,
        "categories": [CategorySummary.model_validate(c) for c in categories],
        "stats": PostStatsResponse(
            word_count=stats.word_count,
            character_count=stats.character_count,
            reading_time=stats.reading_time,
            reading_time_minutes=stats.reading_time_minutes,
        ),
        "created_at": post.created_at,
        "updated_at": post.updated_at,
    }


async def _post_responses(ctx: Context, posts: List[Post]) -> List[PostResponse]:
    post_ops = PostOperations()
    categories = await post_ops.get_categories_for_posts(ctx.session, [p.id for p in posts])
    return [PostResponse(**_post_data(post, categories[post.id])) for post in posts]


async def _post_detail(ctx: Context, post: Post) -> PostDetailResponse:
    post_ops = PostOperations()
    categories = await post_ops.get_categories_for_posts(ctx.session, [post.id])
    return PostDetailResponse(
        **_post_data(post, categories[post.id]),
        content_html=render_html(post.content),
    )


@router.post("/post.getAll", response_model=PostListResponse)
async def get_all_posts(
    ctx: Context,
    params: Optional[PostListInput] = None,
) -> PostListResponse:
    """List posts with optional category, publish-flag and search filters.

    Results are paginated newest first; an empty page is not an error.
    """
    params = params or PostListInput()
    post_ops = PostOperations()
    page = await post_ops.list_posts(
        ctx.session,
        category_id=params.category_id,
        published=params.published,
        search=params.search,
        page=params.page,
        limit=params.limit,
    )

    return PostListResponse(
        posts=await _post_responses(ctx, page.posts),
        pagination=PaginationInfo(
            page=page.page,
            limit=page.limit,
            total=page.total,
            total_pages=page.total_pages,
        ),
    )


@router.post("/post.getBySlug", response_model=PostDetailResponse)
async def get_post_by_slug(params: PostSlugInput, ctx: Context) -> PostDetailResponse:
    """Get a single post by slug."""
    post = await PostOperations().get_post_by_slug(ctx.session, params.slug)
    return await _post_detail(ctx, post)


@router.post("/post.getById", response_model=PostDetailResponse)
async def get_post_by_id(params: PostIdInput, ctx: Context) -> PostDetailResponse:
    """Get a single post by ID."""
    post = await PostOperations().get_post(ctx.session, params.id)
    return await _post_detail(ctx, post)


@router.post("/post.getByOwner", response_model=List[PostResponse])
async def get_posts_by_owner(params: OwnerInput, ctx: Context) -> List[PostResponse]:
    """Get all posts of an owner, drafts included."""
    posts = await PostOperations().get_owner_posts(ctx.session, params.owner_id)
    return await _post_responses(ctx, posts)


@router.post("/post.create", response_model=PostDetailResponse)
async def create_post(params: PostCreate, ctx: Context) -> PostDetailResponse:
    """Create a post with a generated slug and its categories."""
    post = await PostOperations().create_post(
        ctx.session,
        title=params.title,
        content=params.content,
        owner_id=params.owner_id,
        excerpt=params.excerpt,
        featured_image=params.featured_image,
        published=params.published,
        category_ids=params.category_ids,
    )
    response = await _post_detail(ctx, post)
    await ctx.session.commit()

    logger.info(
        "Post created",
        extra={"request_id": ctx.request_id, "post_id": post.id, "slug": post.slug},
    )
    return response


@router.post("/post.update", response_model=PostDetailResponse)
async def update_post(params: PostUpdate, ctx: Context) -> PostDetailResponse:
    """Update a post; only the owner may do so."""
    data = params.model_dump(exclude_unset=True, exclude={"id", "owner_id", "category_ids"})
    updates = {
        field: value for field, value in data.items()
        if value is not None or field in _NULLABLE_FIELDS
    }

    post = await PostOperations().update_post(
        ctx.session,
        params.id,
        params.owner_id,
        updates,
        category_ids=params.category_ids,
    )
    response = await _post_detail(ctx, post)
    await ctx.session.commit()

    logger.info(
        "Post updated",
        extra={"request_id": ctx.request_id, "post_id": post.id, "fields": sorted(updates)},
    )
    return response


@router.post("/post.delete", response_model=SuccessResponse)
async def delete_post(params: PostDelete, ctx: Context) -> SuccessResponse:
    """Delete a post; only the owner may do so."""
    await PostOperations().delete_post(ctx.session, params.id, params.owner_id)
    await ctx.session.commit()

    logger.info("Post deleted", extra={"request_id": ctx.request_id, "post_id": params.id})
    return SuccessResponse(
        message="Post deleted successfully",
        timestamp=datetime.now(timezone.utc),
    )
