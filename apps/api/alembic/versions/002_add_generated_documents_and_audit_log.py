"""Add generated document index and hash-chained audit log.

Revision ID: 002
Revises: 001
Create Date: 2025-06-16
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'generated_documents',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('kind', sa.String(length=100), nullable=False),
        sa.Column('owner_id', sa.String(length=36), nullable=False),
        sa.Column('fingerprint', sa.String(length=64), nullable=False),
        sa.Column('storage_path', sa.Text(), nullable=False),
        sa.Column('metadata_json', sa.JSON(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('kind', 'owner_id', name='uq_generated_documents_kind_owner'),
    )
    op.create_index('ix_generated_documents_id', 'generated_documents', ['id'])
    op.create_index('ix_generated_documents_kind', 'generated_documents', ['kind'])
    op.create_index('ix_generated_documents_owner_id', 'generated_documents', ['owner_id'])
    op.create_index('ix_generated_documents_created_at', 'generated_documents', ['created_at'])

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_id', sa.String(length=36), nullable=True),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('entity_type', sa.String(length=100), nullable=False),
        sa.Column('entity_id', sa.String(length=36), nullable=False),
        sa.Column('metadata_json', sa.JSON(), nullable=False),
        sa.Column('success', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('risk_level', sa.String(length=20), nullable=False, server_default='low'),
        sa.Column('correlation_id', sa.String(length=255), nullable=True),
        sa.Column('event_hash', sa.String(length=64), nullable=False),
        sa.Column('previous_event_hash', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_audit_log_id', 'audit_log', ['id'])
    op.create_index('ix_audit_log_actor_id', 'audit_log', ['actor_id'])
    op.create_index('ix_audit_log_action', 'audit_log', ['action'])
    op.create_index('ix_audit_log_entity_type', 'audit_log', ['entity_type'])
    op.create_index('ix_audit_log_entity_id', 'audit_log', ['entity_id'])
    op.create_index('ix_audit_log_correlation_id', 'audit_log', ['correlation_id'])
    op.create_index('ix_audit_log_event_hash', 'audit_log', ['event_hash'], unique=True)
    op.create_index('ix_audit_log_previous_event_hash', 'audit_log', ['previous_event_hash'])
    op.create_index('ix_audit_log_created_at', 'audit_log', ['created_at'])


def downgrade() -> None:
    op.drop_table('audit_log')
    op.drop_table('generated_documents')
