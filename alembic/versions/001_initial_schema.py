"""Initial schema - villas, bookings, credentials, integrations, sync log and conflicts

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UTC_NOW = sa.text("timezone('utc', now())")


def upgrade() -> None:
    op.create_table(
        'villas',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.String(length=100), nullable=False, index=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('amenities', sa.JSON(), nullable=False),
        sa.Column('published_platforms', sa.JSON(), nullable=False),
        sa.Column('external_listing_ids', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('villa_id', sa.Integer(), sa.ForeignKey('villas.id'), nullable=False, index=True),
        sa.Column('guest_name', sa.String(length=255), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('total_fare', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='Pending', index=True),
        sa.Column('source', sa.String(length=50), nullable=False, index=True),
        sa.Column('external_id', sa.String(length=255), nullable=True, index=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.UniqueConstraint('villa_id', 'source', 'external_id', name='uq_bookings_villa_source_external'),
    )
    op.create_index('ix_bookings_villa_status_dates', 'bookings', ['villa_id', 'status', 'start_date', 'end_date'])

    op.create_table(
        'credential_sets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.String(length=100), nullable=False, index=True),
        sa.Column('platform', sa.String(length=50), nullable=False, index=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('secrets', sa.JSON(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true(), index=True),
        sa.Column('rotated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.UniqueConstraint('platform', 'name', 'owner_id', name='uq_credential_sets_platform_name_owner'),
    )

    op.create_table(
        'platform_integrations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('owner_id', sa.String(length=100), nullable=False, index=True),
        sa.Column('villa_id', sa.Integer(), sa.ForeignKey('villas.id'), nullable=False, index=True),
        sa.Column('platform', sa.String(length=50), nullable=False, index=True),
        sa.Column('credential_id', sa.Integer(), sa.ForeignKey('credential_sets.id'), nullable=False),
        sa.Column('listing_id', sa.String(length=255), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', index=True),
        sa.Column('sync_frequency_hours', sa.Integer(), nullable=False, server_default='2'),
        sa.Column('auto_sync', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_sync', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_sync_result', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('total_bookings_synced', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.UniqueConstraint('villa_id', 'platform', name='uq_platform_integrations_villa_platform'),
    )

    op.create_table(
        'sync_logs',
        sa.Column('id', sa.Integer(), primary_key=True, index=True),
        sa.Column('run_id', sa.String(length=36), nullable=False, index=True),
        sa.Column('owner_id', sa.String(length=100), nullable=True, index=True),
        sa.Column('villa_id', sa.Integer(), nullable=False, index=True),
        sa.Column('platform', sa.String(length=50), nullable=False, index=True),
        sa.Column('trigger', sa.String(length=20), nullable=False, server_default='manual'),
        sa.Column('status', sa.String(length=20), nullable=False, index=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration_ms', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('new_bookings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_bookings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unchanged_bookings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('conflicted_bookings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rejected_bookings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed_bookings', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('conflicts', sa.JSON(), nullable=False),
        sa.Column('errors', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False, index=True),
    )

    op.create_table(
        'booking_conflicts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('villa_id', sa.Integer(), sa.ForeignKey('villas.id'), nullable=False, index=True),
        sa.Column('source', sa.String(length=50), nullable=False),
        sa.Column('external_id', sa.String(length=255), nullable=False),
        sa.Column('reason', sa.String(length=50), nullable=False),
        sa.Column('incoming', sa.JSON(), nullable=False),
        sa.Column('conflicting_booking_id', sa.Integer(), sa.ForeignKey('bookings.id'), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='open', index=True),
        sa.Column('resolution', sa.String(length=50), nullable=True),
        sa.Column('resolution_note', sa.Text(), nullable=True),
        sa.Column('detected_at', sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('villa_id', 'source', 'external_id', name='uq_booking_conflicts_incoming'),
    )


def downgrade() -> None:
    op.drop_table('booking_conflicts')
    op.drop_table('sync_logs')
    op.drop_table('platform_integrations')
    op.drop_table('credential_sets')
    op.drop_index('ix_bookings_villa_status_dates', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('villas')
