"""initial ingest schema: client, workout, profile_metric, ingest_warning

Revision ID: 001
Revises: 
Create Date: 2024-06-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'client',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('pairing_code', sa.Text(), nullable=False),
        sa.Column('label', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('pairing_code', name='uq_client_pairing_code'),
    )

    op.create_table(
        'workout',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('client_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('source', sa.Text(), nullable=False),
        sa.Column('workout_type', sa.Text(), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('duration_seconds', sa.Integer(), nullable=False),
        sa.Column('calories_active', sa.Float(), nullable=True),
        sa.Column('distance_meters', sa.Float(), nullable=True),
        sa.Column('avg_heart_rate', sa.Float(), nullable=True),
        sa.Column('source_device', sa.Text(), nullable=True),
        sa.Column('healthkit_uuid', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['client.id']),
    )
    op.create_index('ix_workout_client_id', 'workout', ['client_id'])
    op.create_index('ix_workout_healthkit_uuid', 'workout', ['healthkit_uuid'])
    op.create_index('ix_workout_client_start', 'workout', ['client_id', 'start_time'])

    op.create_table(
        'profile_metric',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('client_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('metric', sa.Text(), nullable=False),
        sa.Column('value', sa.Float(), nullable=False),
        sa.Column('unit', sa.Text(), nullable=False),
        sa.Column('measured_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('source', sa.Text(), nullable=False),
        sa.Column('healthkit_uuid', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['client.id']),
    )
    op.create_index('ix_profile_metric_client_id', 'profile_metric', ['client_id'])
    op.create_index('ix_profile_metric_healthkit_uuid', 'profile_metric', ['healthkit_uuid'])
    op.create_index('ix_profile_metric_client_measured', 'profile_metric', ['client_id', 'measured_at'])

    op.create_table(
        'ingest_warning',
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column('client_id', sa.Uuid(as_uuid=True), nullable=False),
        sa.Column('record_type', sa.Text(), nullable=False),
        sa.Column('record_id', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('warning_type', sa.Text(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['client.id']),
    )
    op.create_index('ix_ingest_warning_client_created', 'ingest_warning', ['client_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_ingest_warning_client_created', table_name='ingest_warning')
    op.drop_table('ingest_warning')
    op.drop_index('ix_profile_metric_client_measured', table_name='profile_metric')
    op.drop_index('ix_profile_metric_healthkit_uuid', table_name='profile_metric')
    op.drop_index('ix_profile_metric_client_id', table_name='profile_metric')
    op.drop_table('profile_metric')
    op.drop_index('ix_workout_client_start', table_name='workout')
    op.drop_index('ix_workout_healthkit_uuid', table_name='workout')
    op.drop_index('ix_workout_client_id', table_name='workout')
    op.drop_table('workout')
    op.drop_table('client')
