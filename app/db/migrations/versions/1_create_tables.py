"""Initial schema: tenders, documents, orphaned_files

Revision ID: 1_create_tables
Revises:
Create Date: 2026-10-19 12:00:00
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '1_create_tables'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    # ### tenders ###
    op.create_table(
        'tenders',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tender_id', sa.String(), nullable=False),
        sa.Column('organization', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('price', sa.Numeric(precision=15, scale=2), nullable=False, server_default='0'),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('attributes', sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql'),
                  nullable=False, server_default='[]'),
        sa.Column('submitted_by', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='ck_tenders_status'),
        sa.CheckConstraint('price >= 0', name='ck_tenders_price'),
    )
    op.create_index('ix_tenders_tender_id', 'tenders', ['tender_id'], unique=True)
    op.create_index('ix_tenders_organization', 'tenders', ['organization'])
    op.create_index('ix_tenders_due_date', 'tenders', ['due_date'])
    op.create_index('ix_tenders_status', 'tenders', ['status'])
    op.create_index('ix_tenders_submitted_by', 'tenders', ['submitted_by'])
    op.create_index('ix_tenders_due_date_status', 'tenders', ['due_date', 'status'])

    # ### documents ###
    op.create_table(
        'documents',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tender_id', sa.String(length=36), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('original_name', sa.String(), nullable=False),
        sa.Column('storage_ref', sa.String(), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('size', sa.BigInteger(), nullable=False),
        sa.Column('mime_type', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['tender_id'], ['tenders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('storage_ref', name='uq_documents_storage_ref'),
    )
    op.create_index('ix_documents_tender_id', 'documents', ['tender_id'])

    # ### orphaned_files ###
    op.create_table(
        'orphaned_files',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('storage_ref', sa.String(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('storage_ref', name='uq_orphaned_files_storage_ref'),
        sa.Index('ix_orphaned_files_id', 'id'),
    )


def downgrade():
    op.drop_table('orphaned_files')
    op.drop_index('ix_documents_tender_id', table_name='documents')
    op.drop_table('documents')
    op.drop_index('ix_tenders_due_date_status', table_name='tenders')
    op.drop_index('ix_tenders_submitted_by', table_name='tenders')
    op.drop_index('ix_tenders_status', table_name='tenders')
    op.drop_index('ix_tenders_due_date', table_name='tenders')
    op.drop_index('ix_tenders_organization', table_name='tenders')
    op.drop_index('ix_tenders_tender_id', table_name='tenders')
    op.drop_table('tenders')
