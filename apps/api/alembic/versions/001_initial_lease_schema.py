"""Initial profile, property and lease schema.

Revision ID: 001
Revises: 
Create Date: 2025-06-02
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('role', sa.String(length=50), nullable=False),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('birth_date', sa.Date(), nullable=True),
        sa.Column('birth_place', sa.String(length=255), nullable=True),
        sa.Column('nationality', sa.String(length=100), nullable=True),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_profiles_user_id', 'profiles', ['user_id'], unique=True)
    op.create_index('ix_profiles_email', 'profiles', ['email'])

    op.create_table(
        'owner_profiles',
        sa.Column('profile_id', sa.String(length=36), sa.ForeignKey('profiles.id'), primary_key=True),
        sa.Column('owner_type', sa.String(length=50), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('legal_form', sa.String(length=50), nullable=True),
        sa.Column('siret', sa.String(length=20), nullable=True),
        sa.Column('billing_address', sa.String(length=500), nullable=True),
        sa.Column('head_office_address', sa.String(length=500), nullable=True),
        sa.Column('representative_name', sa.String(length=255), nullable=True),
        sa.Column('representative_title', sa.String(length=100), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'properties',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('owner_id', sa.String(length=36), sa.ForeignKey('profiles.id'), nullable=False),
        sa.Column('address', sa.String(length=500), nullable=True),
        sa.Column('postal_code', sa.String(length=10), nullable=True),
        sa.Column('city', sa.String(length=255), nullable=True),
        sa.Column('property_type', sa.String(length=50), nullable=True),
        sa.Column('living_area_m2', sa.Numeric(8, 2), nullable=True),
        sa.Column('surface', sa.Numeric(8, 2), nullable=True),
        sa.Column('rooms', sa.Integer(), nullable=True),
        sa.Column('floor', sa.Integer(), nullable=True),
        sa.Column('floors_in_building', sa.Integer(), nullable=True),
        sa.Column('has_elevator', sa.Boolean(), nullable=True),
        sa.Column('construction_year', sa.Integer(), nullable=True),
        sa.Column('ownership_regime', sa.String(length=50), nullable=True),
        sa.Column('heating_type', sa.String(length=50), nullable=True),
        sa.Column('heating_energy', sa.String(length=50), nullable=True),
        sa.Column('hot_water_type', sa.String(length=50), nullable=True),
        sa.Column('hot_water_energy', sa.String(length=50), nullable=True),
        sa.Column('energy_class', sa.String(length=1), nullable=True),
        sa.Column('energie', sa.String(length=1), nullable=True),
        sa.Column('ghg_class', sa.String(length=1), nullable=True),
        sa.Column('ges', sa.String(length=1), nullable=True),
        sa.Column('dpe_date', sa.Date(), nullable=True),
        sa.Column('dpe_valid_until', sa.Date(), nullable=True),
        sa.Column('dpe_consumption', sa.Numeric(10, 2), nullable=True),
        sa.Column('dpe_emissions', sa.Numeric(10, 2), nullable=True),
        sa.Column('dpe_cost_min', sa.Numeric(10, 2), nullable=True),
        sa.Column('dpe_cost_max', sa.Numeric(10, 2), nullable=True),
        sa.Column('reference_rent', sa.Numeric(10, 2), nullable=True),
        sa.Column('monthly_charges', sa.Numeric(10, 2), nullable=True),
        sa.Column('air_conditioning', sa.String(length=50), nullable=True),
        sa.Column('equipped_kitchen', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('intercom', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('digicode', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('fiber', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('has_balcony', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('has_terrace', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('has_cellar', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('has_garden', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('has_parking', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_properties_owner_id', 'properties', ['owner_id'])

    op.create_table(
        'leases',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('property_id', sa.String(length=36), sa.ForeignKey('properties.id'), nullable=True),
        sa.Column('lease_type', sa.String(length=50), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='draft'),
        sa.Column('rent', sa.Numeric(10, 2), nullable=True),
        sa.Column('charges', sa.Numeric(10, 2), nullable=True),
        sa.Column('deposit', sa.Numeric(10, 2), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('payment_day', sa.Integer(), nullable=True),
        sa.Column('tenant_name_pending', sa.String(length=255), nullable=True),
        sa.Column('signing_date', sa.Date(), nullable=True),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_viewed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_leases_property_id', 'leases', ['property_id'])
    op.create_index('ix_leases_status', 'leases', ['status'])

    op.create_table(
        'lease_signers',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('lease_id', sa.String(length=36), sa.ForeignKey('leases.id'), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False),
        sa.Column('signature_status', sa.String(length=50), nullable=False, server_default='pending'),
        sa.Column('signed_at', sa.DateTime(), nullable=True),
        sa.Column('profile_id', sa.String(length=36), sa.ForeignKey('profiles.id'), nullable=True),
        sa.Column('invited_email', sa.String(length=255), nullable=True),
        sa.Column('invited_name', sa.String(length=255), nullable=True),
        sa.Column('proof_id', sa.String(length=100), nullable=True),
        sa.Column('document_hash', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_lease_signers_lease_id', 'lease_signers', ['lease_id'])
    op.create_index('ix_lease_signers_profile_id', 'lease_signers', ['profile_id'])

    op.create_table(
        'documents',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('property_id', sa.String(length=36), sa.ForeignKey('properties.id'), nullable=True),
        sa.Column('lease_id', sa.String(length=36), sa.ForeignKey('leases.id'), nullable=True),
        sa.Column('doc_type', sa.String(length=100), nullable=False),
        sa.Column('storage_path', sa.Text(), nullable=True),
        sa.Column('metadata_json', sa.JSON(), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_documents_property_id', 'documents', ['property_id'])
    op.create_index('ix_documents_lease_id', 'documents', ['lease_id'])
    op.create_index('ix_documents_doc_type', 'documents', ['doc_type'])


def downgrade() -> None:
    op.drop_table('documents')
    op.drop_table('lease_signers')
    op.drop_table('leases')
    op.drop_table('properties')
    op.drop_table('owner_profiles')
    op.drop_table('profiles')
