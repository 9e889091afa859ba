"""Database operations for the coblog application.

This module provides the post and category operations behind the RPC
procedures. All operations are async, use SQLAlchemy 2.0 syntax and leave
committing to the caller, so one procedure is one transaction.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import delete, desc, exists, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coblog.shared.database import utcnow
from coblog.web.models import Category, Post, PostCategory
from coblog.web.slugs import generate_unique_slug, slugify

logger = logging.getLogger(__name__)

# Attempts at writing a freshly generated slug before giving up
SLUG_RETRY_ATTEMPTS = 3


class DatabaseOperationError(Exception):
    """Base exception for database operations."""
    pass


class NotFoundError(DatabaseOperationError):
    """Raised when a requested resource is not found."""
    pass


class ConflictError(DatabaseOperationError):
    """Raised when a database constraint is violated."""
    pass


class InvalidReferenceError(DatabaseOperationError):
    """Raised when input references rows that do not exist."""
    pass


class ForbiddenError(Exception):
    """Raised when the caller's owner id does not match the stored one."""
    pass


@dataclass
class PostPage:
    """One page of a post listing."""

    posts: List[Post]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


async def _taken_slugs(
    session: AsyncSession,
    column,
    id_column,
    base_slug: str,
    exclude_id: Optional[int] = None,
) -> Set[str]:
    """Slugs equal to ``base_slug`` or carrying a suffix of it."""
    stmt = select(column).where(
        or_(column == base_slug, column.like(f"{base_slug}-%"))
    )
    if exclude_id is not None:
        stmt = stmt.where(id_column != exclude_id)
    result = await session.execute(stmt)
    return set(result.scalars().all())


def _base_slug(text: str) -> str:
    return slugify(text) or "untitled"


class CategoryOperations:
    """Database operations for categories."""

    async def get_category(self, session: AsyncSession, category_id: int) -> Category:
        """Get category by ID.

        Raises:
            NotFoundError: If category doesn't exist
            DatabaseOperationError: If query fails
        """
        try:
            result = await session.execute(
                select(Category).where(Category.id == category_id)
            )
            category = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseOperationError(f"Failed to get category: {e}") from e

        if category is None:
            raise NotFoundError(f"Category not found: {category_id}")
        return category

    async def get_category_by_slug(self, session: AsyncSession, slug: str) -> Category:
        """Get category by slug."""
        try:
            result = await session.execute(
                select(Category).where(Category.slug == slug)
            )
            category = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseOperationError(f"Failed to get category: {e}") from e

        if category is None:
            raise NotFoundError(f"Category not found: {slug}")
        return category

    async def list_categories(self, session: AsyncSession) -> List[Category]:
        """Get all categories ordered by name."""
        try:
            result = await session.execute(
                select(Category).order_by(Category.name, Category.id)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseOperationError(f"Failed to list categories: {e}") from e

    async def get_post_counts(
        self,
        session: AsyncSession,
        category_ids: Iterable[int],
    ) -> Dict[int, int]:
        """Count associated posts for each category id (zero when none)."""
        ids = list(category_ids)
        if not ids:
            return {}

        try:
            result = await session.execute(
                select(PostCategory.category_id, func.count())
                .where(PostCategory.category_id.in_(ids))
                .group_by(PostCategory.category_id)
            )
            counts = {category_id: count for category_id, count in result.all()}
        except SQLAlchemyError as e:
            raise DatabaseOperationError(f"Failed to count category posts: {e}") from e

        return {category_id: counts.get(category_id, 0) for category_id in ids}

    async def get_category_posts(self, session: AsyncSession, category_id: int) -> List[Post]:
        """Get the posts filed under a category, newest first."""
        try:
            result = await session.execute(
                select(Post)
                .join(PostCategory, PostCategory.post_id == Post.id)
                .where(PostCategory.category_id == category_id)
                .order_by(desc(Post.created_at), desc(Post.id))
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseOperationError(f"Failed to get category posts: {e}") from e

    async def create_category(
        self,
        session: AsyncSession,
        name: str,
        description: Optional[str] = None,
    ) -> Category:
        """Create a category with a unique slug.

        Must be the first write of its transaction: a slug collision with a
        concurrent writer rolls the session back and generates a new slug.

        Raises:
            ConflictError: If no unique slug could be written
            DatabaseOperationError: If creation fails
        """
        for attempt in range(1, SLUG_RETRY_ATTEMPTS + 1):
            try:
                taken = await _taken_slugs(
                    session, Category.slug, Category.id, _base_slug(name)
                )
                category = Category(
                    name=name,
                    slug=generate_unique_slug(name, taken),
                    description=description,
                )
                session.add(category)
                await session.flush()
                return category
            except IntegrityError as e:
                await session.rollback()
                if attempt == SLUG_RETRY_ATTEMPTS:
                    raise ConflictError(f"Could not allocate a unique slug for '{name}'") from e
                logger.warning(f"Category slug collision, retrying (attempt {attempt})")
            except SQLAlchemyError as e:
                raise DatabaseOperationError(f"Failed to create category: {e}") from e

        raise ConflictError(f"Could not allocate a unique slug for '{name}'")

    async def update_category(
        self,
        session: AsyncSession,
        category_id: int,
        updates: Dict[str, Any],
    ) -> Category:
        """Update a category; the slug follows the name when it changes.

        Raises:
            NotFoundError: If category doesn't exist
            ConflictError: If no unique slug could be written
            DatabaseOperationError: If update fails
        """
        for attempt in range(1, SLUG_RETRY_ATTEMPTS + 1):
            category = await self.get_category(session, category_id)
            try:
                new_name = updates.get("name")
                if new_name and new_name != category.name:
                    taken = await _taken_slugs(
                        session, Category.slug, Category.id,
                        _base_slug(new_name), exclude_id=category_id,
                    )
                    category.slug = generate_unique_slug(new_name, taken)

                for field, value in updates.items():
                    if hasattr(category, field):
                        setattr(category, field, value)
                category.updated_at = utcnow()

                await session.flush()
                return category
            except IntegrityError as e:
                await session.rollback()
                if attempt == SLUG_RETRY_ATTEMPTS:
                    raise ConflictError(f"Could not allocate a unique slug for category {category_id}") from e
                logger.warning(f"Category slug collision, retrying (attempt {attempt})")
            except SQLAlchemyError as e:
                raise DatabaseOperationError(f"Failed to update category: {e}") from e

        raise ConflictError(f"Could not allocate a unique slug for category {category_id}")

    async def delete_category(self, session: AsyncSession, category_id: int) -> None:
        """Delete a category and its post associations.

        Raises:
            NotFoundError: If category doesn't exist
            DatabaseOperationError: If deletion fails
        """
        await self.get_category(session, category_id)

        try:
            # First delete all associations
            await session.execute(
                delete(PostCategory).where(PostCategory.category_id == category_id)
            )
            # Then delete the category
            await session.execute(delete(Category).where(Category.id == category_id))
        except SQLAlchemyError as e:
            raise DatabaseOperationError(f"Failed to delete category: {e}") from e


class PostOperations:
    """Database operations for posts and their category associations.

    Ownership is an equality check against a client-supplied identifier. It
    keeps honest clients from editing each other's posts and nothing more.
    """

    async def get_post(self, session: AsyncSession, post_id: int) -> Post:
        """Get post by ID.

        Raises:
            NotFoundError: If post doesn't exist
            DatabaseOperationError: If query fails
        """
        try:
            result = await session.execute(select(Post).where(Post.id == post_id))
            post = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseOperationError(f"Failed to get post: {e}") from e

        if post is None:
            raise NotFoundError(f"Post not found: {post_id}")
        return post

    async def get_post_by_slug(self, session: AsyncSession, slug: str) -> Post:
        """Get post by slug."""
        try:
            result = await session.execute(select(Post).where(Post.slug == slug))
            post = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            raise DatabaseOperationError(f"Failed to get post: {e}") from e

        if post is None:
            raise NotFoundError(f"Post not found: {slug}")
        return post

    async def list_posts(
        self,
        session: AsyncSession,
        category_id: Optional[int] = None,
        published: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> PostPage:
        """List posts matching the filters, newest first, one page at a time.

        Search is a case-insensitive substring match over title, content and
        excerpt. All filters, the category one included, are applied in SQL
        before counting, so totals describe exactly the rows being paged.
        """
        conditions = []
        if published is not None:
            conditions.append(Post.published == published)
        if search:
            pattern = f"%{_escape_like(search)}%"
            conditions.append(or_(
                Post.title.ilike(pattern, escape="\\"),
                Post.content.ilike(pattern, escape="\\"),
                Post.excerpt.ilike(pattern, escape="\\"),
            ))
        if category_id is not None:
            conditions.append(
                exists().where(
                    PostCategory.post_id == Post.id,
                    PostCategory.category_id == category_id,
                )
            )

        try:
            count_result = await session.execute(
                select(func.count()).select_from(Post).where(*conditions)
            )
            total = count_result.scalar_one()

            result = await session.execute(
                select(Post)
                .where(*conditions)
                .order_by(desc(Post.created_at), desc(Post.id))
                .offset((page - 1) * limit)
                .limit(limit)
            )
            posts = list(result.scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseOperationError(f"Failed to list posts: {e}") from e

        return PostPage(posts=posts, total=total, page=page, limit=limit)

    async def get_owner_posts(self, session: AsyncSession, owner_id: str) -> List[Post]:
        """Get every post of an owner, drafts included, newest first."""
        try:
            result = await session.execute(
                select(Post)
                .where(Post.owner_id == owner_id)
                .order_by(desc(Post.created_at), desc(Post.id))
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseOperationError(f"Failed to get owner posts: {e}") from e

    async def get_categories_for_posts(
        self,
        session: AsyncSession,
        post_ids: Iterable[int],
    ) -> Dict[int, List[Category]]:
        """Map each post id to its categories ordered by name."""
        ids = list(post_ids)
        categories: Dict[int, List[Category]] = {post_id: [] for post_id in ids}
        if not ids:
            return categories

        try:
            result = await session.execute(
                select(PostCategory.post_id, Category)
                .join(Category, Category.id == PostCategory.category_id)
                .where(PostCategory.post_id.in_(ids))
                .order_by(Category.name, Category.id)
            )
            for post_id, category in result.all():
                categories[post_id].append(category)
        except SQLAlchemyError as e:
            raise DatabaseOperationError(f"Failed to get post categories: {e}") from e

        return categories

    async def create_post(
        self,
        session: AsyncSession,
        title: str,
        content: str,
        owner_id: str,
        excerpt: Optional[str] = None,
        featured_image: Optional[str] = None,
        published: bool = False,
        category_ids: Iterable[int] = (),
    ) -> Post:
        """Create a post with a unique slug and its category associations.

        Must be the first write of its transaction: a slug collision with a
        concurrent writer rolls the session back and the whole write is
        retried with a fresh slug.

        Raises:
            InvalidReferenceError: If a category id does not exist
            ConflictError: If no unique slug could be written
            DatabaseOperationError: If creation fails
        """
        wanted_categories = list(dict.fromkeys(category_ids))

        for attempt in range(1, SLUG_RETRY_ATTEMPTS + 1):
            await self._ensure_categories_exist(session, wanted_categories)
            try:
                taken = await _taken_slugs(session, Post.slug, Post.id, _base_slug(title))
                post = Post(
                    title=title,
                    slug=generate_unique_slug(title, taken),
                    content=content,
                    excerpt=excerpt,
                    featured_image=featured_image,
                    published=published,
                    owner_id=owner_id,
                )
                session.add(post)
                await session.flush()

                await self._replace_categories(session, post.id, wanted_categories)
                return post
            except IntegrityError as e:
                await session.rollback()
                if attempt == SLUG_RETRY_ATTEMPTS:
                    raise ConflictError(f"Could not allocate a unique slug for '{title}'") from e
                logger.warning(f"Post slug collision, retrying (attempt {attempt})")
            except SQLAlchemyError as e:
                raise DatabaseOperationError(f"Failed to create post: {e}") from e

        raise ConflictError(f"Could not allocate a unique slug for '{title}'")

    async def update_post(
        self,
        session: AsyncSession,
        post_id: int,
        owner_id: str,
        updates: Dict[str, Any],
        category_ids: Optional[Iterable[int]] = None,
    ) -> Post:
        """Update a post owned by ``owner_id``.

        The slug is regenerated only when the title changes. When
        ``category_ids`` is given the associations are replaced in the same
        transaction as the post write.

        Raises:
            NotFoundError: If post doesn't exist
            ForbiddenError: If ``owner_id`` does not match the post's owner
            InvalidReferenceError: If a category id does not exist
            ConflictError: If no unique slug could be written
            DatabaseOperationError: If update fails
        """
        wanted_categories = None if category_ids is None else list(dict.fromkeys(category_ids))

        for attempt in range(1, SLUG_RETRY_ATTEMPTS + 1):
            post = await self.get_post(session, post_id)
            if not post.is_owned_by(owner_id):
                raise ForbiddenError(f"Not the owner of post {post_id}")
            if wanted_categories is not None:
                await self._ensure_categories_exist(session, wanted_categories)

            try:
                new_title = updates.get("title")
                if new_title and new_title != post.title:
                    taken = await _taken_slugs(
                        session, Post.slug, Post.id,
                        _base_slug(new_title), exclude_id=post_id,
                    )
                    post.slug = generate_unique_slug(new_title, taken)

                for field, value in updates.items():
                    if hasattr(post, field):
                        setattr(post, field, value)
                post.updated_at = utcnow()
                await session.flush()

                if wanted_categories is not None:
                    await self._replace_categories(session, post_id, wanted_categories)
                return post
            except IntegrityError as e:
                await session.rollback()
                if attempt == SLUG_RETRY_ATTEMPTS:
                    raise ConflictError(f"Could not allocate a unique slug for post {post_id}") from e
                logger.warning(f"Post slug collision, retrying (attempt {attempt})")
            except SQLAlchemyError as e:
                raise DatabaseOperationError(f"Failed to update post: {e}") from e

        raise ConflictError(f"Could not allocate a unique slug for post {post_id}")

    async def delete_post(self, session: AsyncSession, post_id: int, owner_id: str) -> None:
        """Delete a post owned by ``owner_id`` with its associations.

        Raises:
            NotFoundError: If post doesn't exist
            ForbiddenError: If ``owner_id`` does not match the post's owner
            DatabaseOperationError: If deletion fails
        """
        post = await self.get_post(session, post_id)
        if not post.is_owned_by(owner_id):
            raise ForbiddenError(f"Not the owner of post {post_id}")

        try:
            await session.execute(delete(PostCategory).where(PostCategory.post_id == post_id))
            await session.execute(delete(Post).where(Post.id == post_id))
        except SQLAlchemyError as e:
            raise DatabaseOperationError(f"Failed to delete post: {e}") from e

    async def _ensure_categories_exist(self, session: AsyncSession, category_ids: List[int]) -> None:
        if not category_ids:
            return

        try:
            result = await session.execute(
                select(Category.id).where(Category.id.in_(category_ids))
            )
            found = set(result.scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseOperationError(f"Failed to check categories: {e}") from e

        missing = [category_id for category_id in category_ids if category_id not in found]
        if missing:
            raise InvalidReferenceError(f"Unknown category ids: {missing}")

    async def _replace_categories(
        self,
        session: AsyncSession,
        post_id: int,
        category_ids: List[int],
    ) -> None:
        await session.execute(delete(PostCategory).where(PostCategory.post_id == post_id))
        session.add_all(
            PostCategory(post_id=post_id, category_id=category_id)
            for category_id in category_ids
        )
        await session.flush()
