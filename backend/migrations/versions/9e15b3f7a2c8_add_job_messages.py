"""Add job_messages

Revision ID: 9e15b3f7a2c8
Revises: 7c42e8b1d0a5
Create Date: 2025-11-27 23:22:03.640215
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '9e15b3f7a2c8'
down_revision: Union[str, Sequence[str], None] = '7c42e8b1d0a5'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'job_messages',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('job_uuid', sa.String(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_foreign_key(
        'fk_job_messages_user',
        'job_messages',
        'users',
        ['user_id'],
        ['id'],
        ondelete='RESTRICT'
    )


def downgrade() -> None:
    op.drop_constraint('fk_job_messages_user', 'job_messages', type_='foreignkey')
    op.drop_table('job_messages')
