"""property invites, tenant links and audit events

Revision ID: 0001_property_invites
Revises:
Create Date: 2026-10-19 09:12:44.105318

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_property_invites'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_id'), 'users', ['id'], unique=False)
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'properties',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('landlord_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('address', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['landlord_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_properties_id'), 'properties', ['id'], unique=False)
    op.create_index(op.f('ix_properties_landlord_id'), 'properties', ['landlord_id'], unique=False)

    op.create_table(
        'property_invites',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(64), nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('issuer_id', sa.Integer(), nullable=False),
        sa.Column('intended_email', sa.String(255), nullable=True),
        sa.Column('delivery_method', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('redeemed_at', sa.DateTime(), nullable=True),
        sa.Column('redeemed_by', sa.Integer(), nullable=True),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ),
        sa.ForeignKeyConstraint(['issuer_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['redeemed_by'], ['users.id'], ),
        sa.CheckConstraint(
            "status IN ('ACTIVE', 'REDEEMED', 'EXPIRED', 'REVOKED')",
            name='ck_property_invites_status',
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_property_invites_id'), 'property_invites', ['id'], unique=False)
    op.create_index(op.f('ix_property_invites_token_hash'), 'property_invites', ['token_hash'], unique=True)
    op.create_index(op.f('ix_property_invites_property_id'), 'property_invites', ['property_id'], unique=False)
    op.create_index(op.f('ix_property_invites_issuer_id'), 'property_invites', ['issuer_id'], unique=False)
    op.create_index('idx_property_invites_status_expires', 'property_invites', ['status', 'expires_at'], unique=False)

    op.create_table(
        'tenant_property_links',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False),
        sa.Column('property_id', sa.Integer(), nullable=False),
        sa.Column('invite_id', sa.Integer(), nullable=True),
        sa.Column('unit_number', sa.String(50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('deactivated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ),
        sa.ForeignKeyConstraint(['invite_id'], ['property_invites.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_tenant_property_links_id'), 'tenant_property_links', ['id'], unique=False)
    op.create_index(op.f('ix_tenant_property_links_tenant_id'), 'tenant_property_links', ['tenant_id'], unique=False)
    op.create_index(op.f('ix_tenant_property_links_property_id'), 'tenant_property_links', ['property_id'], unique=False)
    op.create_index(op.f('ix_tenant_property_links_invite_id'), 'tenant_property_links', ['invite_id'], unique=False)
    op.create_index(
        'ux_tenant_property_links_active_pair',
        'tenant_property_links',
        ['tenant_id', 'property_id'],
        unique=True,
        postgresql_where=sa.text('is_active'),
        sqlite_where=sa.text('is_active = 1'),
    )

    op.create_table(
        'audit_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invite_id', sa.Integer(), nullable=True),
        sa.Column('property_id', sa.Integer(), nullable=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('from_status', sa.String(50), nullable=True),
        sa.Column('to_status', sa.String(50), nullable=True),
        sa.Column('metadata_json', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['invite_id'], ['property_invites.id'], ),
        sa.ForeignKeyConstraint(['property_id'], ['properties.id'], ),
        sa.ForeignKeyConstraint(['actor_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_events_id'), 'audit_events', ['id'], unique=False)
    op.create_index(op.f('ix_audit_events_invite_id'), 'audit_events', ['invite_id'], unique=False)
    op.create_index(op.f('ix_audit_events_property_id'), 'audit_events', ['property_id'], unique=False)


def downgrade() -> None:
    op.drop_table('audit_events')
    op.drop_index('ux_tenant_property_links_active_pair', table_name='tenant_property_links')
    op.drop_table('tenant_property_links')
    op.drop_index('idx_property_invites_status_expires', table_name='property_invites')
    op.drop_table('property_invites')
    op.drop_table('properties')
    op.drop_table('users')
