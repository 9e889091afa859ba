"""Pydantic schemas for RPC procedure inputs and results.

This module defines the request and response schemas used by the FastAPI
procedures. Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel


class BaseAPIModel(BaseModel):
    """Base model for all API schemas with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        validate_assignment=True,
        arbitrary_types_allowed=False,
        alias_generator=to_camel,
        populate_by_name=True,
    )


def _validate_owner_id(value: str) -> str:
    """Owner ids must be UUID-shaped; stored in canonical lowercase form."""
    try:
        return str(UUID(value))
    except (TypeError, ValueError):
        raise ValueError("Owner id must be a UUID")


def _utc_isoformat(value: datetime) -> str:
    """ISO-8601 in UTC; naive values (SQLite drops the offset) are taken as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _validate_image_url(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    if not value.startswith(("http://", "https://")):
        raise ValueError("Featured image must be an http(s) URL")
    return value


# ============================================================================
# Category Schemas
# ============================================================================

class CategorySummary(BaseAPIModel):
    """Category as attached to a post."""

    id: int = Field(description="Category ID")
    name: str = Field(description="Category name")
    slug: str = Field(description="Category slug")


class CategoryCreate(BaseAPIModel):
    """Input for category.create."""

    name: str = Field(min_length=1, max_length=100, description="Category name")
    description: Optional[str] = Field(None, description="Optional description")


class CategoryUpdate(BaseAPIModel):
    """Input for category.update."""

    id: int = Field(description="Category ID")
    name: Optional[str] = Field(None, min_length=1, max_length=100, description="New name")
    description: Optional[str] = Field(None, description="New description")


class CategoryIdInput(BaseAPIModel):
    """Input identifying a category by ID."""

    id: int = Field(description="Category ID")


class CategorySlugInput(BaseAPIModel):
    """Input identifying a category by slug."""

    slug: str = Field(min_length=1, description="Category slug")


class CategoryResponse(BaseAPIModel):
    """Category with its live post count."""

    id: int = Field(description="Category ID")
    name: str = Field(description="Category name")
    slug: str = Field(description="Category slug")
    description: Optional[str] = Field(None, description="Category description")
    post_count: int = Field(0, ge=0, description="Number of posts in the category")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")

    @field_serializer('created_at', 'updated_at')
    def serialize_datetime(self, value: datetime) -> str:
        return _utc_isoformat(value)


class CategoryPostSummary(BaseAPIModel):
    """Post as listed under a category."""

    id: int = Field(description="Post ID")
    title: str = Field(description="Post title")
    slug: str = Field(description="Post slug")
    excerpt: Optional[str] = Field(None, description="Post excerpt")
    published: bool = Field(description="Whether the post is published")
    created_at: datetime = Field(description="Creation timestamp")

    @field_serializer('created_at')
    def serialize_created_at(self, value: datetime) -> str:
        return _utc_isoformat(value)


class CategoryDetailResponse(CategoryResponse):
    """Category with the posts filed under it."""

    posts: List[CategoryPostSummary] = Field(default_factory=list, description="Posts in the category")


# ============================================================================
# Post Schemas
# ============================================================================

class PostStatsResponse(BaseAPIModel):
    """Reading statistics derived from post content."""

    word_count: int = Field(ge=0, description="Number of words")
    character_count: int = Field(ge=0, description="Number of characters")
    reading_time: str = Field(description="Human readable reading time")
    reading_time_minutes: int = Field(ge=0, description="Reading time in minutes")


class PostListInput(BaseAPIModel):
    """Input for post.getAll."""

    category_id: Optional[int] = Field(None, description="Only posts in this category")
    published: Optional[bool] = Field(None, description="Filter on publish flag")
    search: Optional[str] = Field(None, max_length=200, description="Free-text search")
    page: int = Field(1, ge=1, description="1-based page number")
    limit: int = Field(10, ge=1, le=100, description="Page size")

    @field_validator('search')
    @classmethod
    def empty_search_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class PostSlugInput(BaseAPIModel):
    """Input identifying a post by slug."""

    slug: str = Field(min_length=1, description="Post slug")


class PostIdInput(BaseAPIModel):
    """Input identifying a post by ID."""

    id: int = Field(description="Post ID")


class OwnerInput(BaseAPIModel):
    """Input for post.getByOwner."""

    owner_id: str = Field(description="Owner identifier (UUID)")

    @field_validator('owner_id')
    @classmethod
    def validate_owner_id(cls, v: str) -> str:
        return _validate_owner_id(v)


class PostCreate(BaseAPIModel):
    """Input for post.create."""

    title: str = Field(min_length=1, max_length=200, description="Post title")
    content: str = Field(min_length=1, description="Document tree JSON or plain text")
    excerpt: Optional[str] = Field(None, description="Optional summary")
    featured_image: Optional[str] = Field(None, max_length=2048, description="Featured image URL")
    published: bool = Field(False, description="Publish immediately")
    category_ids: List[int] = Field(default_factory=list, description="Category IDs")
    owner_id: str = Field(description="Owner identifier (UUID)")

    @field_validator('owner_id')
    @classmethod
    def validate_owner_id(cls, v: str) -> str:
        return _validate_owner_id(v)

    @field_validator('featured_image')
    @classmethod
    def validate_featured_image(cls, v: Optional[str]) -> Optional[str]:
        return _validate_image_url(v)


class PostUpdate(BaseAPIModel):
    """Input for post.update; omitted fields are left unchanged."""

    id: int = Field(description="Post ID")
    owner_id: str = Field(description="Owner identifier (UUID)")
    title: Optional[str] = Field(None, min_length=1, max_length=200, description="New title")
    content: Optional[str] = Field(None, min_length=1, description="New content")
    excerpt: Optional[str] = Field(None, description="New summary")
    featured_image: Optional[str] = Field(None, max_length=2048, description="New featured image URL")
    published: Optional[bool] = Field(None, description="New publish flag")
    category_ids: Optional[List[int]] = Field(None, description="Replacement category IDs")

    @field_validator('owner_id')
    @classmethod
    def validate_owner_id(cls, v: str) -> str:
        return _validate_owner_id(v)

    @field_validator('featured_image')
    @classmethod
    def validate_featured_image(cls, v: Optional[str]) -> Optional[str]:
        return _validate_image_url(v)


class PostDelete(BaseAPIModel):
    """Input for post.delete."""

    id: int = Field(description="Post ID")
    owner_id: str = Field(description="Owner identifier (UUID)")

    @field_validator('owner_id')
    @classmethod
    def validate_owner_id(cls, v: str) -> str:
        return _validate_owner_id(v)


class PostResponse(BaseAPIModel):
    """Post with its categories and reading statistics.

    The owner id is never included: it is the only thing standing between a
    reader and editing the post.
    """

    id: int = Field(description="Post ID")
    title: str = Field(description="Post title")
    slug: str = Field(description="Post slug")
    content: str = Field(description="Stored content")
    content_format: Literal["document", "legacy"] = Field(description="Format of the stored content")
    excerpt: Optional[str] = Field(None, description="Explicit excerpt")
    summary: str = Field(description="Excerpt, or one derived from the content")
    featured_image: Optional[str] = Field(None, description="Featured image URL")
    published: bool = Field(description="Whether the post is published")
    categories: List[CategorySummary] = Field(default_factory=list, description="Post categories")
    stats: PostStatsResponse = Field(description="Reading statistics")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")

    @field_serializer('created_at', 'updated_at')
    def serialize_datetime(self, value: datetime) -> str:
        return _utc_isoformat(value)


class PostDetailResponse(PostResponse):
    """Single post including rendered HTML."""

    content_html: str = Field(description="Content rendered to HTML")


class PaginationInfo(BaseAPIModel):
    """Pagination block of a post listing."""

    page: int = Field(ge=1, description="Current page")
    limit: int = Field(ge=1, description="Page size")
    total: int = Field(ge=0, description="Total matching posts")
    total_pages: int = Field(ge=0, description="Total number of pages")


class PostListResponse(BaseAPIModel):
    """Result of post.getAll."""

    posts: List[PostResponse] = Field(description="Posts on this page")
    pagination: PaginationInfo = Field(description="Pagination information")


# ============================================================================
# Error and Utility Schemas
# ============================================================================

class ErrorDetail(BaseAPIModel):
    """Individual error detail."""

    code: str = Field(description="Error code")
    message: str = Field(description="Human readable error message")
    field: Optional[str] = Field(None, description="Field that caused error")


class ErrorResponse(BaseAPIModel):
    """Standard error response format."""

    detail: str = Field(description="Main error message")
    code: str = Field(description="Machine-readable error code")
    errors: Optional[List[ErrorDetail]] = Field(None, description="Detailed error list")
    timestamp: datetime = Field(description="Error timestamp")
    request_id: Optional[str] = Field(None, description="Request ID for tracking")

    @field_serializer('timestamp')
    def serialize_timestamp(self, value: datetime) -> str:
        return _utc_isoformat(value)


class ValidationErrorResponse(ErrorResponse):
    """Validation error response format."""

    code: str = Field(default="BAD_REQUEST", description="Machine-readable error code")
    errors: List[ErrorDetail] = Field(description="Validation error details")


class SuccessResponse(BaseAPIModel):
    """Generic success response."""

    success: bool = Field(default=True, description="Operation success status")
    message: str = Field(description="Success message")
    timestamp: datetime = Field(description="Response timestamp")

    @field_serializer('timestamp')
    def serialize_timestamp(self, value: datetime) -> str:
        return _utc_isoformat(value)


class HealthResponse(BaseAPIModel):
    """Health check response."""

    ok: bool = Field(description="Overall health")
    up: bool = Field(description="Database answered a query")
    env: Dict[str, Any] = Field(description="Runtime environment summary")
