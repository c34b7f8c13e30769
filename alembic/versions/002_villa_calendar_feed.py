"""Villa calendar feed - iCal URL imported on a schedule

Revision ID: 002_villa_calendar_feed
Revises: 001_initial_schema
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002_villa_calendar_feed'
down_revision: Union[str, None] = '001_initial_schema'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('villas', sa.Column('ical_url', sa.String(length=1024), nullable=True))
    op.add_column(
        'villas',
        sa.Column('calendar_sync_enabled', sa.Boolean(), server_default=sa.false(), nullable=False),
    )


def downgrade() -> None:
    op.drop_column('villas', 'calendar_sync_enabled')
    op.drop_column('villas', 'ical_url')
