"""Add sm8_uuid to users

Revision ID: 7c42e8b1d0a5
Revises: 3a1f0c9d2b61
Create Date: 2025-11-27 19:43:00.112874
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = '7c42e8b1d0a5'
down_revision: Union[str, Sequence[str], None] = '3a1f0c9d2b61'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    conn = op.get_bind()
    inspector = inspect(conn)
    columns = [c['name'] for c in inspector.get_columns('users')]

    # fails if duplicate values already exist
    if 'sm8_uuid' not in columns:
        op.add_column('users', sa.Column('sm8_uuid', sa.String(), nullable=True))
        op.create_unique_constraint('uq_users_sm8_uuid', 'users', ['sm8_uuid'])


def downgrade() -> None:
    """Downgrade schema."""
    conn = op.get_bind()
    inspector = inspect(conn)
    columns = [c['name'] for c in inspector.get_columns('users')]

    if 'sm8_uuid' in columns:
        op.drop_constraint('uq_users_sm8_uuid', 'users', type_='unique')
        op.drop_column('users', 'sm8_uuid')
