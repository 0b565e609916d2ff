"""create books and users

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2025-11-20 09:12:44.120031

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the books and users tables."""

    # 1. Users (ids come from the external auth service)
    op.create_table(
        'users',
        sa.Column('id', sa.String(), nullable=False, primary_key=True),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('username', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    # 2. Books, with a catalog-wide unique ISBN
    op.create_table(
        'books',
        sa.Column('id', sa.Uuid(), nullable=False, primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('author', sa.String(), nullable=False),
        sa.Column('isbn', sa.String(), nullable=True),
        sa.Column('published_year', sa.Integer(), nullable=True),
        sa.Column('genre', sa.String(), nullable=True),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('isbn', name='uq_books_isbn'),
    )
    op.create_index('ix_books_title', 'books', ['title'])
    op.create_index('ix_books_author', 'books', ['author'])
    op.create_index('ix_books_user_id', 'books', ['user_id'])
    op.create_index('ix_books_created_at', 'books', ['created_at'])


def downgrade() -> None:
    """Drop the books and users tables."""
    op.drop_index('ix_books_created_at', table_name='books')
    op.drop_index('ix_books_user_id', table_name='books')
    op.drop_index('ix_books_author', table_name='books')
    op.drop_index('ix_books_title', table_name='books')
    op.drop_table('books')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
