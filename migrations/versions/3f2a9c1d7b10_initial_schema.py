"""initial schema

Revision ID: 3f2a9c1d7b10
Revises:
Create Date: 2026-10-19 09:12:44.120311

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum columns store member names, matching SQLModel's default mapping
link_state = sa.Enum('PENDING', 'ACTIVE', 'FROZEN', name='linkstate')
event_direction = sa.Enum('SENT', 'RECEIVED', name='eventdirection')
access_method = sa.Enum('POSTCODE', 'EMAIL', 'LINK', name='accessmethod')
audit_action = sa.Enum('CREATE', 'UPDATE', 'DELETE', name='auditaction')

STR = sqlmodel.sql.sqltypes.AutoString


def upgrade():
    op.create_table(
        'supplier_links',
        sa.Column('id', STR(length=255), nullable=False),
        sa.Column('supplier_identifier', STR(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_used', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_supplier_links_supplier_identifier', 'supplier_links', ['supplier_identifier'])

    op.create_table(
        'admin_supplier_links',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('shared_with', STR(length=255), nullable=False),
        sa.Column('supplier_link_id', STR(), nullable=False),
        sa.Column('url', STR(length=500), nullable=False),
        sa.Column('created_on', sa.DateTime(), nullable=False),
        sa.Column('state', link_state, nullable=False),
        sa.Column('valid_until', sa.DateTime(), nullable=False),
        sa.Column('supplier_name', STR(length=255), nullable=True),
        sa.Column('admin_notes', STR(), nullable=True),
        sa.ForeignKeyConstraint(['supplier_link_id'], ['supplier_links.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_admin_supplier_links_shared_with', 'admin_supplier_links', ['shared_with'])
    op.create_index('ix_admin_supplier_links_supplier_link_id', 'admin_supplier_links', ['supplier_link_id'])

    op.create_table(
        'supplier_direct_activations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('supplier_link_id', STR(), nullable=False),
        sa.Column('activated_by_admin', STR(length=255), nullable=False),
        sa.Column('activated_at', sa.DateTime(), nullable=False),
        sa.Column('admin_notes', STR(), nullable=True),
        sa.ForeignKeyConstraint(['supplier_link_id'], ['supplier_links.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_supplier_direct_activations_supplier_link_id',
                    'supplier_direct_activations', ['supplier_link_id'])

    op.create_table(
        'supplier_id_migrations',
        sa.Column('old_id', STR(length=255), nullable=False),
        sa.Column('new_id', STR(length=9), nullable=False),
        sa.Column('migrated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('old_id'),
    )
    op.create_index('ix_supplier_id_migrations_new_id', 'supplier_id_migrations', ['new_id'])

    op.create_table(
        'otp_tokens',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', STR(length=255), nullable=False),
        sa.Column('otp_code', STR(length=6), nullable=False),
        sa.Column('supplier_link_id', STR(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('used', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['supplier_link_id'], ['supplier_links.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_otp_tokens_email', 'otp_tokens', ['email'])
    op.create_index('ix_otp_tokens_supplier_link_id', 'otp_tokens', ['supplier_link_id'])
    op.create_index('ix_otp_tokens_expires_at', 'otp_tokens', ['expires_at'])

    op.create_table(
        'supplier_sessions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('supplier_link_id', STR(), nullable=False),
        sa.Column('session_token', STR(), nullable=False),
        sa.Column('email', STR(length=255), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['supplier_link_id'], ['supplier_links.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_supplier_sessions_supplier_link_id', 'supplier_sessions', ['supplier_link_id'])
    op.create_index('ix_supplier_sessions_session_token', 'supplier_sessions', ['session_token'], unique=True)
    op.create_index('ix_supplier_sessions_expires_at', 'supplier_sessions', ['expires_at'])

    op.create_table(
        'reference_submissions',
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('supplier_link_id', STR(), nullable=False),
        sa.Column('po_number', STR(length=255), nullable=True),
        sa.Column('delivery_id', STR(length=255), nullable=True),
        sa.Column('delivery_postcode', STR(length=10), nullable=False),
        sa.Column('reference_number', STR(length=255), nullable=False),
        sa.Column('validation_number', STR(length=255), nullable=True),
        sa.Column('submitted_by_email', STR(length=255), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "(po_number IS NOT NULL AND po_number != '') OR "
            "(delivery_id IS NOT NULL AND delivery_id != '')",
            name='check_po_or_delivery',
        ),
        sa.ForeignKeyConstraint(['supplier_link_id'], ['supplier_links.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_reference_submissions_supplier_link_id', 'reference_submissions', ['supplier_link_id'])
    op.create_index('ix_reference_submissions_po_number', 'reference_submissions', ['po_number'])
    op.create_index('ix_reference_submissions_delivery_id', 'reference_submissions', ['delivery_id'])
    op.create_index('ix_reference_submissions_submitted_at', 'reference_submissions', ['submitted_at'])

    op.create_table(
        'access_tokens',
        sa.Column('token', STR(length=255), nullable=False),
        sa.Column('po_number', STR(length=255), nullable=False),
        sa.Column('delivery_id', STR(length=255), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('max_uses', sa.Integer(), nullable=False),
        sa.Column('uses_count', sa.Integer(), nullable=False),
        sa.Column('password_hash', STR(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('token'),
    )
    op.create_index('ix_access_tokens_expires_at', 'access_tokens', ['expires_at'])

    op.create_table(
        'customer_access_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('po_number', STR(length=255), nullable=False),
        sa.Column('delivery_id', STR(length=255), nullable=False),
        sa.Column('access_method', access_method, nullable=False),
        sa.Column('accessed_by_email', STR(length=255), nullable=True),
        sa.Column('accessed_at', sa.DateTime(), nullable=False),
        sa.Column('ip_address', STR(length=45), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_customer_access_logs_po_number', 'customer_access_logs', ['po_number'])

    op.create_table(
        'admin_users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', STR(length=255), nullable=False),
        sa.Column('password_hash', STR(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_admin_users_email', 'admin_users', ['email'], unique=True)

    op.create_table(
        'organisations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', STR(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_organisations_name', 'organisations', ['name'])

    op.create_table(
        'connections',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('admin_user_id', sa.Uuid(), nullable=False),
        sa.Column('organisation_id', sa.Uuid(), nullable=False),
        sa.Column('token', STR(length=9), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_used', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['admin_user_id'], ['admin_users.id']),
        sa.ForeignKeyConstraint(['organisation_id'], ['organisations.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('admin_user_id', 'organisation_id', name='uq_connection_admin_organisation'),
    )
    op.create_index('ix_connections_admin_user_id', 'connections', ['admin_user_id'])
    op.create_index('ix_connections_organisation_id', 'connections', ['organisation_id'])
    op.create_index('ix_connections_token', 'connections', ['token'], unique=True)

    op.create_table(
        'reference_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('connection_id', sa.Uuid(), nullable=False),
        sa.Column('po_number', STR(length=255), nullable=True),
        sa.Column('delivery_id', STR(length=255), nullable=True),
        sa.Column('reference_number', STR(length=255), nullable=False),
        sa.Column('validation_number', STR(length=255), nullable=True),
        sa.Column('direction', event_direction, nullable=False),
        sa.Column('submitted_by_email', STR(length=255), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['connection_id'], ['connections.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_reference_events_connection_id', 'reference_events', ['connection_id'])
    op.create_index('ix_reference_events_submitted_at', 'reference_events', ['submitted_at'])

    op.create_table(
        'system_audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('actor_user_id', sa.Uuid(), nullable=True),
        sa.Column('entity_type', STR(length=100), nullable=False),
        sa.Column('entity_id', STR(length=255), nullable=False),
        sa.Column('action', audit_action, nullable=False),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('ip_address', STR(length=45), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_system_audit_logs_actor_user_id', 'system_audit_logs', ['actor_user_id'])


def downgrade():
    for table in (
        'system_audit_logs', 'reference_events', 'connections', 'organisations',
        'admin_users', 'customer_access_logs', 'access_tokens', 'reference_submissions',
        'supplier_sessions', 'otp_tokens', 'supplier_id_migrations',
        'supplier_direct_activations', 'admin_supplier_links', 'supplier_links',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for enum in (audit_action, access_method, event_direction, link_state):
            enum.drop(bind, checkfirst=True)
