"""Create posts, categories and posts_to_categories tables

Revision ID: 3b1f9c2d7a41
Revises:
Create Date: 2026-10-18 09:12:44.581203

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '3b1f9c2d7a41'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create posts table
    op.create_table('posts',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('title', sa.String(length=200), nullable=False),
    sa.Column('slug', sa.String(length=255), nullable=False),
    sa.Column('content', sa.Text(), nullable=False),
    sa.Column('excerpt', sa.Text(), nullable=True),
    sa.Column('featured_image', sa.Text(), nullable=True),
    sa.Column('published', sa.Boolean(), nullable=False),
    sa.Column('owner_id', sa.String(length=64), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id', name='pk_posts'),
    sa.UniqueConstraint('slug', name='uq_posts_slug')
    )
    op.create_index('ix_posts_published_created', 'posts', ['published', 'created_at'], unique=False)
    op.create_index('ix_posts_owner_id', 'posts', ['owner_id'], unique=False)

    # Create categories table
    op.create_table('categories',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('name', sa.String(length=100), nullable=False),
    sa.Column('slug', sa.String(length=255), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.PrimaryKeyConstraint('id', name='pk_categories'),
    sa.UniqueConstraint('slug', name='uq_categories_slug')
    )

    # Create association table; rows go away with either side
    op.create_table('posts_to_categories',
    sa.Column('post_id', sa.Integer(), nullable=False),
    sa.Column('category_id', sa.Integer(), nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    sa.ForeignKeyConstraint(['post_id'], ['posts.id'], name='fk_posts_to_categories_post_id_posts', ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['category_id'], ['categories.id'], name='fk_posts_to_categories_category_id_categories', ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('post_id', 'category_id', name='pk_posts_to_categories')
    )
    op.create_index('ix_posts_to_categories_category_id', 'posts_to_categories', ['category_id'], unique=False)


def downgrade() -> None:
    # Drop in reverse dependency order
    op.drop_index('ix_posts_to_categories_category_id', table_name='posts_to_categories')
    op.drop_table('posts_to_categories')
    op.drop_table('categories')
    op.drop_index('ix_posts_owner_id', table_name='posts')
    op.drop_index('ix_posts_published_created', table_name='posts')
    op.drop_table('posts')
