"""Initial schema: studies, templates, documents, review and validation.

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-01-01 09:00:00.000000

"""
from typing import Sequence

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'a1b2c3d4e5f6'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')

STUDY_STATUS = sa.Enum('ACTIVE', 'ARCHIVED', name='studystatus', native_enum=False)
DOCUMENT_TYPE = sa.Enum('PDF', 'DATASET', 'LISTING', 'FIGURE', 'OTHER', name='documenttype', native_enum=False)
DOCUMENT_STATUS_VALUES = (
    'DRAFT',
    'PROCESSING',
    'PROCESSED',
    'PROCESSING_FAILED',
    'IN_REVIEW',
    'CORRECTIONS_NEEDED',
    'APPROVED',
    'PUBLISHED',
)
ANNOTATION_TYPE = sa.Enum('NOTE', 'QUESTION', 'CORRECTION_REQUIRED', 'FYI', name='annotationtype', native_enum=False)
ANNOTATION_STATUS = sa.Enum('OPEN', 'RESOLVED', 'WONT_FIX', name='annotationstatus', native_enum=False)
VALIDATION_SEVERITY = sa.Enum('ERROR', 'WARNING', 'INFO', name='validationseverity', native_enum=False)


def document_status() -> sa.Enum:
    return sa.Enum(*DOCUMENT_STATUS_VALUES, name='documentstatus', native_enum=False)


def timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade() -> None:
    """Create every table."""

    op.create_table(
        'structure_templates',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        *timestamps(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_structure_templates_name'), 'structure_templates', ['name'], unique=False)

    op.create_table(
        'studies',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('study_number', sa.String(length=100), nullable=False),
        sa.Column('sponsor', sa.String(length=255), nullable=False),
        sa.Column('therapeutic_area', sa.String(length=255), nullable=True),
        sa.Column('phase', sa.String(length=50), nullable=True),
        sa.Column('status', STUDY_STATUS, nullable=False),
        sa.Column('active_template_id', sa.String(length=36), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(['active_template_id'], ['structure_templates.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_studies_study_number'), 'studies', ['study_number'], unique=True)
    op.create_index(op.f('ix_studies_status'), 'studies', ['status'], unique=False)

    op.create_table(
        'structure_nodes',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('template_id', sa.String(length=36), nullable=False),
        sa.Column('parent_id', sa.String(length=36), nullable=True),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('document_type', DOCUMENT_TYPE, nullable=False),
        sa.Column('required', sa.Boolean(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('validation_rules', JSON_TYPE, nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(['template_id'], ['structure_templates.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['parent_id'], ['structure_nodes.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('template_id', 'code', name='uq_structure_nodes_template_code')
    )
    op.create_index(op.f('ix_structure_nodes_template_id'), 'structure_nodes', ['template_id'], unique=False)
    op.create_index(op.f('ix_structure_nodes_parent_id'), 'structure_nodes', ['parent_id'], unique=False)
    op.create_index(op.f('ix_structure_nodes_code'), 'structure_nodes', ['code'], unique=False)

    op.create_table(
        'documents',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('study_id', sa.String(length=36), nullable=False),
        sa.Column('slot_id', sa.String(length=36), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('source_file_name', sa.String(length=500), nullable=False),
        sa.Column('source_path', sa.String(length=1000), nullable=False),
        sa.Column('processed_path', sa.String(length=1000), nullable=True),
        sa.Column('status', document_status(), nullable=False),
        sa.Column('processing_error', sa.Text(), nullable=True),
        sa.Column('mime_type', sa.String(length=100), nullable=True),
        sa.Column('page_count', sa.Integer(), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('pdf_version', sa.String(length=10), nullable=True),
        sa.Column('is_pdf_a', sa.Boolean(), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(['study_id'], ['studies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['slot_id'], ['structure_nodes.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('study_id', 'slot_id', 'version', name='uq_documents_study_slot_version')
    )
    op.create_index(op.f('ix_documents_study_id'), 'documents', ['study_id'], unique=False)
    op.create_index(op.f('ix_documents_slot_id'), 'documents', ['slot_id'], unique=False)
    op.create_index(op.f('ix_documents_source_file_name'), 'documents', ['source_file_name'], unique=False)
    op.create_index(op.f('ix_documents_status'), 'documents', ['status'], unique=False)

    op.create_table(
        'document_status_history',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('document_id', sa.String(length=36), nullable=False),
        sa.Column('from_status', document_status(), nullable=False),
        sa.Column('to_status', document_status(), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('user_name', sa.String(length=255), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_document_status_history_document_id'), 'document_status_history', ['document_id'], unique=False)

    op.create_table(
        'annotations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('document_id', sa.String(length=36), nullable=False),
        sa.Column('author_id', sa.String(length=36), nullable=False),
        sa.Column('author_name', sa.String(length=255), nullable=False),
        sa.Column('type', ANNOTATION_TYPE, nullable=False),
        sa.Column('status', ANNOTATION_STATUS, nullable=False),
        sa.Column('page_number', sa.Integer(), nullable=False),
        sa.Column('coordinates', JSON_TYPE, nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        *timestamps(),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_annotations_document_id'), 'annotations', ['document_id'], unique=False)
    op.create_index(op.f('ix_annotations_status'), 'annotations', ['status'], unique=False)

    op.create_table(
        'validation_rules',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('check_fn', sa.String(length=100), nullable=False),
        sa.Column('params', JSON_TYPE, nullable=False),
        sa.Column('severity', VALIDATION_SEVERITY, nullable=False),
        sa.Column('auto_fix', sa.Boolean(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_validation_rules_category'), 'validation_rules', ['category'], unique=False)
    op.create_index(op.f('ix_validation_rules_is_active'), 'validation_rules', ['is_active'], unique=False)

    op.create_table(
        'validation_results',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('document_id', sa.String(length=36), nullable=False),
        sa.Column('rule_id', sa.String(length=36), nullable=False),
        sa.Column('rule_name', sa.String(length=255), nullable=False),
        sa.Column('passed', sa.Boolean(), nullable=False),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('details', JSON_TYPE, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_validation_results_document_id'), 'validation_results', ['document_id'], unique=False)
    op.create_index(op.f('ix_validation_results_passed'), 'validation_results', ['passed'], unique=False)


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    op.drop_table('validation_results')
    op.drop_table('validation_rules')
    op.drop_table('annotations')
    op.drop_table('document_status_history')
    op.drop_table('documents')
    op.drop_table('structure_nodes')
    op.drop_table('studies')
    op.drop_table('structure_templates')
