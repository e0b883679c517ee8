"""initial RFQ workflow schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Creates RFQs, the RFQ number sequence, quotes, allocations and the audit log.
Status and routing columns are VARCHAR with CHECK constraints.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


RFQ_STATUSES = ('initial', 'evaluation', 'closed')
ROUTING_MODES = ('transship', 'direct')


def upgrade() -> None:
    # RFQs
    op.create_table('rfqs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('rfq_number', sa.Integer(), nullable=False),
        sa.Column('item_description', sa.String(500), nullable=False),
        sa.Column('company_name', sa.String(255), nullable=False),
        sa.Column('material_po_number', sa.String(150), nullable=False),
        sa.Column('supplier_name', sa.String(255), nullable=False),
        sa.Column('port_of_loading', sa.String(100), nullable=False),
        sa.Column('port_of_destination', sa.String(100), nullable=False),
        sa.Column('container_type', sa.String(50), nullable=False),
        sa.Column('incoterms', sa.String(50)),
        sa.Column('number_of_containers', sa.Integer(), nullable=False),
        sa.Column('cargo_weight', sa.Float(), nullable=False),
        sa.Column('cargo_readiness_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('cargo_readiness_to', sa.DateTime(timezone=True)),
        sa.Column('initial_quote_end_time', sa.DateTime(timezone=True)),
        sa.Column('evaluation_end_time', sa.DateTime(timezone=True)),
        sa.Column('description', sa.Text()),
        sa.Column('vendors', sa.JSON(), nullable=False),
        sa.Column(
            'status',
            sa.Enum(*RFQ_STATUSES, name='rfqstatus', native_enum=False, create_constraint=True, length=20),
            nullable=False,
            server_default='initial',
        ),
        sa.Column('created_by', sa.String(100), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.Column('closed_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_rfqs_rfq_number', 'rfqs', ['rfq_number'], unique=True)
    op.create_index('ix_rfqs_port_of_loading', 'rfqs', ['port_of_loading'])
    op.create_index('ix_rfqs_status', 'rfqs', ['status'])

    # RFQ number counter
    op.create_table('rfq_number_sequences',
        sa.Column('name', sa.String(50), primary_key=True),
        sa.Column('current_value', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )

    # Quotes
    op.create_table('quote_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('rfq_id', sa.String(36), sa.ForeignKey('rfqs.id'), nullable=False),
        sa.Column('vendor_name', sa.String(255), nullable=False),
        sa.Column('number_of_containers', sa.Integer(), nullable=False),
        sa.Column('shipping_line_name', sa.String(255), nullable=False),
        sa.Column('container_type', sa.String(50)),
        sa.Column('vessel_name', sa.String(255), nullable=False),
        sa.Column('vessel_etd', sa.DateTime(timezone=True), nullable=False),
        sa.Column('vessel_eta', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sea_freight_per_container', sa.Float(), nullable=False),
        sa.Column('house_delivery_order_per_bol', sa.Float(), nullable=False),
        sa.Column('cfs_per_container', sa.Float(), nullable=False),
        sa.Column('transportation_per_container', sa.Float(), nullable=False),
        sa.Column('cha_charges_home', sa.Float(), nullable=False),
        sa.Column('cha_charges_moowr', sa.Float(), nullable=False),
        sa.Column('edi_charges_per_boe', sa.Float(), nullable=False),
        sa.Column('moowr_reewarehousing_charges', sa.Float(), nullable=False),
        sa.Column(
            'transship_or_direct',
            sa.Enum(*ROUTING_MODES, name='routingmode', native_enum=False, create_constraint=True, length=20),
            nullable=False,
        ),
        sa.Column('quote_validity_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('message', sa.Text()),
        sa.Column('revision', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('containers_allotted_home', sa.Integer()),
        sa.Column('containers_allotted_moowr', sa.Integer()),
        sa.Column('home_total', sa.Float()),
        sa.Column('moowr_total', sa.Float()),
        sa.UniqueConstraint('rfq_id', 'vendor_name', name='uq_quote_rfq_vendor'),
    )
    op.create_index('ix_quote_items_rfq_id', 'quote_items', ['rfq_id'])
    op.create_index('ix_quote_items_vendor_name', 'quote_items', ['vendor_name'])

    # Allocations
    op.create_table('allocations',
        sa.Column('rfq_id', sa.String(36), sa.ForeignKey('rfqs.id'), primary_key=True),
        sa.Column('quote_id', sa.String(36), sa.ForeignKey('quote_items.id'), primary_key=True),
        sa.Column('vendor_name', sa.String(255), nullable=False),
        sa.Column('containers_allotted_home', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('containers_allotted_moowr', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reason', sa.Text()),
        sa.Column('created_by', sa.String(100)),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_allocations_vendor_name', 'allocations', ['vendor_name'])

    # Audit log
    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('principal_id', sa.String(100)),
        sa.Column('organization', sa.String(255)),
        sa.Column('role', sa.String(20)),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('entity_type', sa.String(100)),
        sa.Column('entity_id', sa.String(36)),
        sa.Column('details', sa.JSON()),
    )
    op.create_index('ix_audit_logs_id', 'audit_logs', ['id'])
    op.create_index('ix_audit_logs_timestamp', 'audit_logs', ['timestamp'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('allocations')
    op.drop_table('quote_items')
    op.drop_table('rfq_number_sequences')
    op.drop_table('rfqs')
