"""Event ledger schema: accounting events, journals, settings

Revision ID: 20261019_0900_event_ledger_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '20261019_0900_event_ledger_schema'
down_revision = None
branch_labels = None
depends_on = None


EVENT_TYPES = (
    'EXPENSE_APPROVED', 'EXPENSE_PAID', 'RECEIPT_RECEIVED',
    'MANAGEMENT_FEE_RECOGNIZED', 'INTERCOMPANY_SETTLEMENT',
    'PARTNER_PROFIT_ALLOCATION', 'PARTNER_PAYMENT', 'OPENING_BALANCE',
    'PROJECT_SERVICE_COMPLETED', 'CAPEX_INCURRED',
)


def upgrade() -> None:
    bind = op.get_bind()
    
    event_type_enum = postgresql.ENUM(*EVENT_TYPES, name='accounting_event_type', create_type=False)
    event_type_enum.create(bind, checkfirst=True)
    
    event_status_enum = postgresql.ENUM(
        'pending', 'processed', 'failed', 'cancelled',
        name='accounting_event_status',
        create_type=False,
    )
    event_status_enum.create(bind, checkfirst=True)
    
    audit_action_enum = postgresql.ENUM(
        'created', 'processed', 'processed_skipped', 'failed', 'retried', 'cancelled', 'stale',
        name='accounting_event_audit_action',
        create_type=False,
    )
    audit_action_enum.create(bind, checkfirst=True)
    
    journal_status_enum = postgresql.ENUM('draft', 'posted', name='journal_entry_status', create_type=False)
    journal_status_enum.create(bind, checkfirst=True)
    
    line_type_enum = postgresql.ENUM('debit', 'credit', name='journal_line_entry_type', create_type=False)
    line_type_enum.create(bind, checkfirst=True)
    
    # =========================================================================
    # ACCOUNTING EVENTS TABLE
    # =========================================================================
    op.create_table(
        'accounting_events',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('event_type', postgresql.ENUM(name='accounting_event_type', create_type=False), nullable=False, index=True),
        sa.Column('event_date', sa.Date, nullable=False, index=True),
        sa.Column('status', postgresql.ENUM(name='accounting_event_status', create_type=False), nullable=False, index=True),
        sa.Column('affected_companies', sa.JSON, nullable=False),
        sa.Column('event_data', sa.JSON, nullable=False),
        
        # Source Document
        sa.Column('source_document_type', sa.String(50), nullable=True),
        sa.Column('source_document_id', sa.String(100), nullable=True),
        
        # Processing
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_message', sa.Text, nullable=True),
        sa.Column('retry_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('skipped_companies', sa.JSON, nullable=False),
        sa.Column('created_by', sa.Uuid, nullable=True),
        
        # Audit Trail
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )
    op.create_index('ix_ae_source', 'accounting_events', ['source_document_type', 'source_document_id'])
    
    # =========================================================================
    # JOURNAL ENTRIES TABLE
    # =========================================================================
    op.create_table(
        'journal_entries',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('company_id', sa.Uuid, nullable=False, index=True),
        sa.Column('reference_number', sa.String(50), nullable=False),
        sa.Column('entry_date', sa.Date, nullable=False, index=True),
        sa.Column('source_document_type', sa.String(50), nullable=True),
        sa.Column('source_document_id', sa.String(100), nullable=True),
        sa.Column('is_auto_generated', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('total_debit', sa.Numeric(18, 2), nullable=False),
        sa.Column('total_credit', sa.Numeric(18, 2), nullable=False),
        sa.Column('status', postgresql.ENUM(name='journal_entry_status', create_type=False), nullable=False),
        sa.Column('posted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.Uuid, nullable=True),
        
        # Audit Trail
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        
        sa.UniqueConstraint('company_id', 'reference_number', name='uq_journal_company_reference'),
    )
    op.create_index('ix_je_source', 'journal_entries', ['source_document_type', 'source_document_id'])
    
    # =========================================================================
    # JOURNAL ENTRY LINES TABLE
    # =========================================================================
    op.create_table(
        'journal_entry_lines',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('journal_entry_id', sa.Uuid, sa.ForeignKey('journal_entries.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('line_number', sa.Integer, nullable=False),
        sa.Column('account_code', sa.String(20), nullable=False, index=True),
        sa.Column('entry_type', postgresql.ENUM(name='journal_line_entry_type', create_type=False), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        
        sa.CheckConstraint('amount >= 0', name='ck_journal_line_amount_non_negative'),
        sa.UniqueConstraint('journal_entry_id', 'line_number', name='uq_journal_line_number'),
    )
    
    # =========================================================================
    # EVENT <-> JOURNAL LINKS
    # =========================================================================
    op.create_table(
        'event_journal_entries',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('event_id', sa.Uuid, sa.ForeignKey('accounting_events.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('journal_entry_id', sa.Uuid, sa.ForeignKey('journal_entries.id', ondelete='CASCADE'), nullable=False),
        sa.Column('company_id', sa.Uuid, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        
        sa.UniqueConstraint('event_id', 'journal_entry_id', name='uq_event_journal_entry'),
    )
    
    # =========================================================================
    # EVENT AUDIT TRAIL
    # =========================================================================
    op.create_table(
        'accounting_event_audits',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('event_id', sa.Uuid, sa.ForeignKey('accounting_events.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('action', postgresql.ENUM(name='accounting_event_audit_action', create_type=False), nullable=False),
        sa.Column('from_status', postgresql.ENUM(name='accounting_event_status', create_type=False), nullable=True),
        sa.Column('to_status', postgresql.ENUM(name='accounting_event_status', create_type=False), nullable=True),
        sa.Column('message', sa.Text, nullable=True),
        sa.Column('details', sa.JSON, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )
    
    # =========================================================================
    # PER-COMPANY SEQUENCES
    # =========================================================================
    op.create_table(
        'company_sequences',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('company_id', sa.Uuid, nullable=False),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('next_value', sa.Integer, nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        
        sa.UniqueConstraint('company_id', 'name', name='uq_company_sequence_name'),
    )
    
    # =========================================================================
    # JOURNAL EVENT SETTINGS
    # =========================================================================
    op.create_table(
        'journal_event_settings',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('company_id', sa.Uuid, nullable=False, index=True),
        sa.Column('event_type', postgresql.ENUM(name='accounting_event_type', create_type=False), nullable=False),
        sa.Column('is_enabled', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('auto_post', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('default_debit_account', sa.String(20), nullable=True),
        sa.Column('default_credit_account', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        
        sa.UniqueConstraint('company_id', 'event_type', name='uq_journal_event_setting'),
    )


def downgrade() -> None:
    op.drop_table('journal_event_settings')
    op.drop_table('company_sequences')
    op.drop_table('accounting_event_audits')
    op.drop_table('event_journal_entries')
    op.drop_table('journal_entry_lines')
    op.drop_table('journal_entries')
    op.drop_table('accounting_events')
    
    # Drop enums
    op.execute('DROP TYPE IF EXISTS journal_line_entry_type')
    op.execute('DROP TYPE IF EXISTS journal_entry_status')
    op.execute('DROP TYPE IF EXISTS accounting_event_audit_action')
    op.execute('DROP TYPE IF EXISTS accounting_event_status')
    op.execute('DROP TYPE IF EXISTS accounting_event_type')
