"""Replace job_messages with booking_messages

Revision ID: c5d8a4e6f913
Revises: 9e15b3f7a2c8
Create Date: 2025-11-28 01:27:36.904417
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c5d8a4e6f913'
down_revision: Union[str, Sequence[str], None] = '9e15b3f7a2c8'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # job_messages rows are dropped, not migrated
    op.drop_constraint('fk_job_messages_user', 'job_messages', type_='foreignkey')
    op.drop_table('job_messages')

    op.create_table(
        'booking_messages',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('booking_uuid', sa.String(), nullable=False),
        sa.Column('booking_description', sa.Text(), nullable=False),
        sa.Column('booking_status', sa.String(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('idx_booking_messages_booking_uuid', 'booking_messages', ['booking_uuid'])
    op.create_index('idx_booking_messages_user_id', 'booking_messages', ['user_id'])


def downgrade() -> None:
    op.drop_index('idx_booking_messages_user_id', table_name='booking_messages')
    op.drop_index('idx_booking_messages_booking_uuid', table_name='booking_messages')
    op.drop_table('booking_messages')

    op.create_table(
        'job_messages',
        sa.Column('id', sa.BigInteger(), primary_key=True),
        sa.Column('job_uuid', sa.String(), nullable=False),
        sa.Column('user_id', sa.BigInteger(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_foreign_key(
        'fk_job_messages_user', 'job_messages', 'users', ['user_id'], ['id'], ondelete='RESTRICT'
    )
