"""Create split ledger and contract tables

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19

This migration adds the following tables:
- works: Songs with lockable publishing and master facets
- collaborators: People credited on works
- publishing_entities: Publishing companies (internal or external)
- collaborator_shares: Writer's share / master ownership per role on a work
- publishing_entity_shares: Publisher's share per entity on a work
- split_history: Append-only journal of split changes
- contracts: E-signature tracked contracts per collaborator share
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create enums
    collaboratorrole_enum = postgresql.ENUM('writer', 'artist', 'musician', 'producer', 'label', name='collaboratorrole', create_type=False)
    collaboratorrole_enum.create(op.get_bind(), checkfirst=True)

    splittype_enum = postgresql.ENUM('publishing', 'master', 'publishing_entities', 'label_share', 'lock', name='splittype', create_type=False)
    splittype_enum.create(op.get_bind(), checkfirst=True)

    contracttype_enum = postgresql.ENUM('songwriter_publishing', 'digital_master_only', 'producer_agreement', 'label_record', name='contracttype', create_type=False)
    contracttype_enum.create(op.get_bind(), checkfirst=True)

    signaturestatus_enum = postgresql.ENUM('pending', 'signed', 'declined', name='signaturestatus', create_type=False)
    signaturestatus_enum.create(op.get_bind(), checkfirst=True)

    # Create works table
    op.create_table(
        'works',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('title', sa.String(255), nullable=False, index=True),
        sa.Column('isrc_code', sa.String(20), nullable=True, index=True),
        sa.Column('iswc_code', sa.String(20), nullable=True),
        sa.Column('catalog_number', sa.String(50), nullable=True),
        sa.Column('release_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('publishing_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('publishing_locked_at', sa.DateTime(), nullable=True),
        sa.Column('master_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('master_locked_at', sa.DateTime(), nullable=True),
        sa.Column('label_master_share', sa.Numeric(precision=5, scale=4), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.CheckConstraint('label_master_share >= 0 AND label_master_share <= 1', name='check_label_master_share_range'),
    )

    # Create collaborators table
    op.create_table(
        'collaborators',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('middle_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('email', sa.String(255), nullable=True, index=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('pro_affiliation', sa.String(50), nullable=True),
        sa.Column('ipi_number', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # Create publishing_entities table
    op.create_table(
        'publishing_entities',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_internal', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('pro_affiliation', sa.String(50), nullable=True),
        sa.Column('ipi_number', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # Create collaborator_shares table
    op.create_table(
        'collaborator_shares',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('work_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('works.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('collaborator_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('collaborators.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('role_in_song', sa.Enum('writer', 'artist', 'musician', 'producer', 'label', name='collaboratorrole'), nullable=False),
        sa.Column('publishing_ownership', sa.Numeric(precision=5, scale=4), nullable=True),
        sa.Column('master_ownership', sa.Numeric(precision=5, scale=4), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.UniqueConstraint('work_id', 'collaborator_id', 'role_in_song', name='uq_collaborator_share_role'),
        sa.CheckConstraint('publishing_ownership IS NULL OR (publishing_ownership >= 0 AND publishing_ownership <= 1)', name='check_publishing_ownership_range'),
        sa.CheckConstraint('master_ownership IS NULL OR (master_ownership >= 0 AND master_ownership <= 1)', name='check_master_ownership_range'),
    )

    # Create publishing_entity_shares table
    op.create_table(
        'publishing_entity_shares',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('work_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('works.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('publishing_entity_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('publishing_entities.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('ownership_percentage', sa.Numeric(precision=5, scale=4), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('work_id', 'publishing_entity_id', name='uq_publishing_entity_share'),
        sa.CheckConstraint('ownership_percentage >= 0 AND ownership_percentage <= 1', name='check_ownership_percentage_range'),
    )

    # Create split_history table
    op.create_table(
        'split_history',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('work_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('works.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('split_type', sa.Enum('publishing', 'master', 'publishing_entities', 'label_share', 'lock', name='splittype'), nullable=False),
        sa.Column('previous_values', sa.JSON(), nullable=False),
        sa.Column('new_values', sa.JSON(), nullable=False),
        sa.Column('changed_by', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    # Create contracts table
    op.create_table(
        'contracts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('work_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('works.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('collaborator_share_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('collaborator_shares.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('template_type', sa.Enum('songwriter_publishing', 'digital_master_only', 'producer_agreement', 'label_record', name='contracttype'), nullable=False),
        sa.Column('esignature_status', sa.Enum('pending', 'signed', 'declined', name='signaturestatus'), nullable=False, server_default='pending', index=True),
        sa.Column('esignature_doc_id', sa.String(100), nullable=True, index=True),
        sa.Column('signer_email', sa.String(255), nullable=True),
        sa.Column('signed_at', sa.DateTime(), nullable=True),
        sa.Column('signed_pdf_data', sa.LargeBinary(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.UniqueConstraint('collaborator_share_id', 'template_type', name='uq_contract_share_type'),
    )


def downgrade() -> None:
    op.drop_table('contracts')
    op.drop_table('split_history')
    op.drop_table('publishing_entity_shares')
    op.drop_table('collaborator_shares')
    op.drop_table('publishing_entities')
    op.drop_table('collaborators')
    op.drop_table('works')

    op.execute('DROP TYPE IF EXISTS signaturestatus')
    op.execute('DROP TYPE IF EXISTS contracttype')
    op.execute('DROP TYPE IF EXISTS splittype')
    op.execute('DROP TYPE IF EXISTS collaboratorrole')
