"""Database models for the coblog application."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean
from sqlalchemy import ForeignKey
from sqlalchemy import Index
from sqlalchemy import Integer
from sqlalchemy import String
from sqlalchemy import Text
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column

from coblog.shared.database import Base


class Post(Base):
    """Blog post written by an anonymous owner.

    Content is stored as text and holds either a serialized rich-text document
    tree or legacy plain text/Markdown; see ``coblog.web.rich_text``.
    """

    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        doc="Unique identifier for the post"
    )

    # Content fields
    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        doc="Post title"
    )
    slug: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        doc="URL-friendly slug derived from the title"
    )
    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        doc="Serialized document tree or legacy plain text"
    )
    excerpt: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Optional short summary"
    )
    featured_image: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="URL of the featured image in object storage"
    )

    # Publishing status
    published: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Whether the post is visible to readers"
    )

    # Client-generated identifier; an ownership claim, not an account
    owner_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        doc="Owner identifier supplied by the client"
    )

    __table_args__ = (
        Index("ix_posts_published_created", "published", "created_at"),
        Index("ix_posts_owner_id", "owner_id"),
    )

    def __init__(self, **kwargs):
        """Initialize Post with defaults."""
        kwargs.setdefault('published', False)
        super().__init__(**kwargs)

    def is_owned_by(self, owner_id: str) -> bool:
        """Plain equality check against the stored owner identifier."""
        return self.owner_id == owner_id

    def __repr__(self) -> str:
        status = "published" if self.published else "draft"
        return f"<Post(id={self.id}, slug='{self.slug}', status='{status}')>"


class Category(Base):
    """Category that posts can be filed under."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        doc="Unique identifier for the category"
    )
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Display name of the category"
    )
    slug: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        doc="URL-friendly slug derived from the name"
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Optional description of the category"
    )

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, slug='{self.slug}')>"


class PostCategory(Base):
    """Many-to-many association between posts and categories.

    Rows have no lifecycle of their own: they are replaced wholesale when a
    post is written and removed with either side.
    """

    __tablename__ = "posts_to_categories"

    post_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("posts.id", ondelete="CASCADE"),
        primary_key=True,
        doc="ID of the post"
    )
    category_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="CASCADE"),
        primary_key=True,
        doc="ID of the category"
    )

    __table_args__ = (
        Index("ix_posts_to_categories_category_id", "category_id"),
    )
