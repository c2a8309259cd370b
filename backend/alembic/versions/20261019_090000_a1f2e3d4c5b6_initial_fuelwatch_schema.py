"""initial fuelwatch schema

Revision ID: a1f2e3d4c5b6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1f2e3d4c5b6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'tanks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('group_name', sa.String(length=255), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('unit_number', sa.String(length=50), nullable=True),
        sa.Column('tank_number', sa.String(length=50), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('capacity', sa.Float(), nullable=False),
        sa.Column('min_level', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_tanks_id'), 'tanks', ['id'], unique=False)
    op.create_index(op.f('ix_tanks_name'), 'tanks', ['name'], unique=False)
    op.create_index(op.f('ix_tanks_group_name'), 'tanks', ['group_name'], unique=False)
    op.create_index(op.f('ix_tanks_customer_name'), 'tanks', ['customer_name'], unique=False)

    op.create_table(
        'dip_readings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tank_id', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.Column('value', sa.Float(), nullable=False),
        sa.Column('recorded_by', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tank_id'], ['tanks.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tank_id', 'timestamp', name='uq_dip_readings_tank_timestamp'),
    )
    op.create_index(op.f('ix_dip_readings_id'), 'dip_readings', ['id'], unique=False)
    op.create_index(op.f('ix_dip_readings_tank_id'), 'dip_readings', ['tank_id'], unique=False)
    op.create_index(op.f('ix_dip_readings_timestamp'), 'dip_readings', ['timestamp'], unique=False)
    op.create_index('ix_dip_readings_tank_timestamp', 'dip_readings', ['tank_id', 'timestamp'], unique=False)

    op.create_table(
        'vehicles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('registration', sa.String(length=50), nullable=False),
        sa.Column('fleet', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('depot', sa.String(length=255), nullable=True),
        sa.Column('make', sa.String(length=100), nullable=True),
        sa.Column('model', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_vehicles_id'), 'vehicles', ['id'], unique=False)
    op.create_index(op.f('ix_vehicles_registration'), 'vehicles', ['registration'], unique=True)
    op.create_index(op.f('ix_vehicles_fleet'), 'vehicles', ['fleet'], unique=False)

    op.create_table(
        'device_mappings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('system', sa.String(length=20), nullable=False),
        sa.Column('external_id', sa.String(length=100), nullable=False),
        sa.Column('vehicle_id', sa.Integer(), nullable=False),
        sa.Column('vehicle_registration', sa.String(length=50), nullable=False),
        sa.Column('fleet', sa.String(length=100), nullable=False),
        sa.Column('mapping_source', sa.String(length=20), nullable=False),
        sa.Column('confidence_score', sa.Float(), nullable=True),
        sa.Column('verified', sa.Boolean(), nullable=False),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['vehicle_id'], ['vehicles.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('system', 'external_id', name='uq_device_mappings_system_external_id'),
    )
    op.create_index(op.f('ix_device_mappings_id'), 'device_mappings', ['id'], unique=False)
    op.create_index(op.f('ix_device_mappings_system'), 'device_mappings', ['system'], unique=False)
    op.create_index(op.f('ix_device_mappings_external_id'), 'device_mappings', ['external_id'], unique=False)
    op.create_index(op.f('ix_device_mappings_vehicle_id'), 'device_mappings', ['vehicle_id'], unique=False)

    op.create_table(
        'fleet_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('system', sa.String(length=20), nullable=False),
        sa.Column('external_id', sa.String(length=100), nullable=True),
        sa.Column('external_event_id', sa.String(length=100), nullable=True),
        sa.Column('vehicle_registration', sa.String(length=50), nullable=True),
        sa.Column('fleet', sa.String(length=100), nullable=True),
        sa.Column('occurred_at', sa.DateTime(), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=True),
        sa.Column('severity', sa.String(length=20), nullable=True),
        sa.Column('verified', sa.Boolean(), nullable=False),
        sa.Column('confirmation', sa.String(length=50), nullable=True),
        sa.Column('driver_name', sa.String(length=255), nullable=True),
        sa.Column('driver_id', sa.Integer(), nullable=True),
        sa.Column('duration_seconds', sa.Float(), nullable=True),
        sa.Column('speed_kph', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_fleet_events_id'), 'fleet_events', ['id'], unique=False)
    op.create_index(op.f('ix_fleet_events_system'), 'fleet_events', ['system'], unique=False)
    op.create_index(op.f('ix_fleet_events_external_id'), 'fleet_events', ['external_id'], unique=False)
    op.create_index(op.f('ix_fleet_events_vehicle_registration'), 'fleet_events', ['vehicle_registration'], unique=False)
    op.create_index(op.f('ix_fleet_events_fleet'), 'fleet_events', ['fleet'], unique=False)
    op.create_index(op.f('ix_fleet_events_occurred_at'), 'fleet_events', ['occurred_at'], unique=False)
    op.create_index('ix_fleet_events_registration_fleet', 'fleet_events', ['vehicle_registration', 'fleet'], unique=False)

    op.create_table(
        'sync_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sync_type', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('records_updated', sa.Integer(), nullable=True),
        sa.Column('mismatches_before', sa.Integer(), nullable=True),
        sa.Column('mismatches_after', sa.Integer(), nullable=True),
        sa.Column('execution_time_ms', sa.Integer(), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_sync_log_id'), 'sync_log', ['id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_sync_log_id'), table_name='sync_log')
    op.drop_table('sync_log')
    op.drop_index('ix_fleet_events_registration_fleet', table_name='fleet_events')
    for column in ('occurred_at', 'fleet', 'vehicle_registration', 'external_id', 'system', 'id'):
        op.drop_index(op.f(f'ix_fleet_events_{column}'), table_name='fleet_events')
    op.drop_table('fleet_events')
    for column in ('vehicle_id', 'external_id', 'system', 'id'):
        op.drop_index(op.f(f'ix_device_mappings_{column}'), table_name='device_mappings')
    op.drop_table('device_mappings')
    for column in ('fleet', 'registration', 'id'):
        op.drop_index(op.f(f'ix_vehicles_{column}'), table_name='vehicles')
    op.drop_table('vehicles')
    op.drop_index('ix_dip_readings_tank_timestamp', table_name='dip_readings')
    for column in ('timestamp', 'tank_id', 'id'):
        op.drop_index(op.f(f'ix_dip_readings_{column}'), table_name='dip_readings')
    op.drop_table('dip_readings')
    for column in ('customer_name', 'group_name', 'name', 'id'):
        op.drop_index(op.f(f'ix_tanks_{column}'), table_name='tanks')
    op.drop_table('tanks')
