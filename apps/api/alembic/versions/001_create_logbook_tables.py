"""Create equipment, document and logbook tables.

Revision ID: 001
Revises: 
Create Date: 2026-10-18
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
        'equipments',
        sa.Column('external_id', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=500), nullable=False),
        sa.Column('type', sa.String(length=100), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_immutable', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('checksum', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('external_id'),
        sa.UniqueConstraint('checksum'),
    )

    op.create_table(
        'documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('equipment_id', sa.String(length=255), nullable=False),
        sa.Column('image_key', sa.String(length=500), nullable=True),
        sa.Column('content_type', sa.String(length=100), nullable=True),
        sa.Column('ocr_text', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('perceptual_hash', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['equipment_id'], ['equipments.external_id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_documents_id', 'documents', ['id'])
    op.create_index('ix_documents_equipment_id', 'documents', ['equipment_id'])
    op.create_index('ix_documents_perceptual_hash', 'documents', ['perceptual_hash'])

    op.create_table(
        'log_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.String(length=40), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('source', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('equipment_id', sa.String(length=255), nullable=True),
        sa.Column('signature', sa.String(length=64), nullable=False),
        sa.CheckConstraint(
            "type IN ('AUTO', 'MANUAL', 'DOCUMENT_ADDED')",
            name='ck_log_entries_type',
        ),
        # No ON DELETE CASCADE
        sa.ForeignKeyConstraint(['equipment_id'], ['equipments.external_id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_log_entries_id', 'log_entries', ['id'])
    op.create_index('ix_log_entries_timestamp', 'log_entries', ['timestamp'])
    op.create_index('ix_log_entries_type', 'log_entries', ['type'])
    op.create_index('ix_log_entries_equipment_id', 'log_entries', ['equipment_id'])
    op.create_index('ix_log_entries_signature', 'log_entries', ['signature'], unique=True)


def downgrade() -> None:
    op.drop_table('log_entries')
    op.drop_table('documents')
    op.drop_table('equipments')
