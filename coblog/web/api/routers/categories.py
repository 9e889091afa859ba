"""Category procedures for the coblog RPC API."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter

from coblog.web.api.dependencies import Context
from coblog.web.api.schemas import (
    CategoryCreate,
    CategoryDetailResponse,
    CategoryIdInput,
    CategoryPostSummary,
    CategoryResponse,
    CategorySlugInput,
    CategoryUpdate,
    SuccessResponse,
)
from coblog.web.crud import CategoryOperations
from coblog.web.models import Category

logger = logging.getLogger(__name__)

router = APIRouter()


async def _category_response(ctx: Context, category: Category) -> CategoryResponse:
    counts = await CategoryOperations().get_post_counts(ctx.session, [category.id])
    response = CategoryResponse.model_validate(category)
    response.post_count = counts[category.id]
    return response


async def _category_detail(ctx: Context, category: Category) -> CategoryDetailResponse:
    category_ops = CategoryOperations()
    posts = await category_ops.get_category_posts(ctx.session, category.id)
    return CategoryDetailResponse(
        id=category.id,
        name=category.name,
        slug=category.slug,
        description=category.description,
        post_count=len(posts),
        created_at=category.created_at,
        updated_at=category.updated_at,
        posts=[CategoryPostSummary.model_validate(post) for post in posts],
    )


@router.post("/category.getAll", response_model=List[CategoryResponse])
async def get_all_categories(ctx: Context) -> List[CategoryResponse]:
    """List all categories by name with their post counts."""
    category_ops = CategoryOperations()
    categories = await category_ops.list_categories(ctx.session)
    counts = await category_ops.get_post_counts(ctx.session, [c.id for c in categories])

    return [
        CategoryResponse(
            id=category.id,
            name=category.name,
            slug=category.slug,
            description=category.description,
            post_count=counts[category.id],
            created_at=category.created_at,
            updated_at=category.updated_at,
        )
        for category in categories
    ]


@router.post("/category.getById", response_model=CategoryDetailResponse)
async def get_category_by_id(params: CategoryIdInput, ctx: Context) -> CategoryDetailResponse:
    """Get a category and the posts filed under it."""
    category = await CategoryOperations().get_category(ctx.session, params.id)
    return await _category_detail(ctx, category)


@router.post("/category.getBySlug", response_model=CategoryDetailResponse)
async def get_category_by_slug(params: CategorySlugInput, ctx: Context) -> CategoryDetailResponse:
    """Get a category by slug and the posts filed under it."""
    category = await CategoryOperations().get_category_by_slug(ctx.session, params.slug)
    return await _category_detail(ctx, category)


@router.post("/category.create", response_model=CategoryResponse)
async def create_category(params: CategoryCreate, ctx: Context) -> CategoryResponse:
    """Create a category with a generated slug."""
    category = await CategoryOperations().create_category(
        ctx.session,
        params.name,
        description=params.description,
    )
    response = await _category_response(ctx, category)
    await ctx.session.commit()

    logger.info(
        "Category created",
        extra={"request_id": ctx.request_id, "category_id": category.id, "slug": category.slug},
    )
    return response


@router.post("/category.update", response_model=CategoryResponse)
async def update_category(params: CategoryUpdate, ctx: Context) -> CategoryResponse:
    """Update a category's name or description."""
    updates = params.model_dump(exclude_unset=True, exclude={"id"})
    if updates.get("name") is None:
        updates.pop("name", None)

    category = await CategoryOperations().update_category(ctx.session, params.id, updates)
    response = await _category_response(ctx, category)
    await ctx.session.commit()

    logger.info(
        "Category updated",
        extra={"request_id": ctx.request_id, "category_id": category.id, "fields": sorted(updates)},
    )
    return response


@router.post("/category.delete", response_model=SuccessResponse)
async def delete_category(params: CategoryIdInput, ctx: Context) -> SuccessResponse:
    """Delete a category; posts lose the association."""
    await CategoryOperations().delete_category(ctx.session, params.id)
    await ctx.session.commit()

    logger.info("Category deleted", extra={"request_id": ctx.request_id, "category_id": params.id})
    return SuccessResponse(
        message="Category deleted successfully",
        timestamp=datetime.now(timezone.utc),
    )
