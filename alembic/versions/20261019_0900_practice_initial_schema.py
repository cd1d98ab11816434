"""Practice initial schema - clients, users, tax filings, delegation and on-behalf log

Revision ID: 20261019_0900_practice_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000

Tables:
1. clients, users
2. tax_filings, filing_schedules, tax_authority_submissions
3. associate_permissions, associate_permission_audit_logs
4. on_behalf_actions
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20261019_0900_practice_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# SQLAlchemy stores Python enum member names
USER_ROLE = ('SYSTEM_ADMIN', 'ADMIN', 'ASSOCIATE', 'CLIENT')
TAXPAYER_CATEGORY = ('LARGE', 'MEDIUM', 'SMALL', 'MICRO')
TAX_TYPE = (
    'INCOME_TAX', 'GST', 'PAYROLL_TAX', 'EXCISE_DUTY', 'PAYE',
    'WITHHOLDING_TAX', 'PERSONAL_INCOME_TAX', 'CORPORATE_INCOME_TAX',
)
FILING_STATUS = ('DRAFT', 'SUBMITTED', 'UNDER_REVIEW', 'APPROVED', 'REJECTED', 'FILED')
SUBMISSION_STATUS = ('PENDING', 'ACCEPTED', 'REJECTED', 'FAILED')
PERMISSION_AREA = ('TAX_FILINGS', 'PAYMENTS', 'DOCUMENTS', 'COMPLIANCE', 'REPORTS', 'MESSAGES')
PERMISSION_LEVEL = ('READ', 'CREATE', 'UPDATE', 'SUBMIT')
PERMISSION_AUDIT_ACTION = (
    'GRANT', 'UPDATE', 'REVOKE', 'BULK_GRANT', 'BULK_REVOKE', 'SET_EXPIRY', 'RENEW',
)
ON_BEHALF_ACTION_TYPE = ('CREATE', 'UPDATE', 'SUBMIT', 'DELETE', 'UPDATE_SCHEDULES')

ENUMS = {
    'userrole': USER_ROLE,
    'taxpayercategory': TAXPAYER_CATEGORY,
    'taxtype': TAX_TYPE,
    'filingstatus': FILING_STATUS,
    'submissionstatus': SUBMISSION_STATUS,
    'permissionarea': PERMISSION_AREA,
    'permissionlevel': PERMISSION_LEVEL,
    'permissionauditaction': PERMISSION_AUDIT_ACTION,
    'onbehalfactiontype': ON_BEHALF_ACTION_TYPE,
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _money(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, sa.Numeric(precision=18, scale=2), nullable=False, **kwargs)


def upgrade() -> None:
    # Create ENUMs
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(op.get_bind(), checkfirst=True)

    # =====================================================
    # CLIENTS & USERS
    # =====================================================
    op.create_table(
        'clients',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('client_number', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('tin', sa.String(50), nullable=True, comment='Taxpayer Identification Number'),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('taxpayer_category', _enum('taxpayercategory'), nullable=False),
        sa.Column('is_individual', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_clients'),
    )
    op.create_index('ix_clients_client_number', 'clients', ['client_number'], unique=True)

    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('role', _enum('userrole'), nullable=False),
        sa.Column('client_id', postgresql.UUID(as_uuid=True), nullable=True, comment='Set for client users only'),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['client_id'], ['clients.id'], name='fk_users_client_id_clients', ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_client_id', 'users', ['client_id'])

    # =====================================================
    # TAX FILINGS
    # =====================================================
    op.create_table(
        'tax_filings',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('client_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('tax_type', _enum('taxtype'), nullable=False),
        sa.Column('tax_year', sa.Integer(), nullable=False),
        sa.Column('filing_reference', sa.String(100), nullable=False, comment='e.g. GST-2024-000042-202403011200'),
        sa.Column('filing_date', sa.Date(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('status', _enum('filingstatus'), nullable=False),
        _money('taxable_amount'),
        _money('tax_liability'),
        _money('penalty_amount'),
        _money('interest_amount'),
        _money('withholding_tax_amount', comment='WHT already deducted at source, credited against liability'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('submitted_by_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reviewed_by_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('review_comments', sa.Text(), nullable=True),
        sa.Column(
            'version', sa.Integer(), nullable=False,
            comment='Incremented on every update; used for optimistic concurrency',
        ),
        sa.Column('created_by_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('updated_by_id', postgresql.UUID(as_uuid=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['client_id'], ['clients.id'], name='fk_tax_filings_client_id_clients', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['submitted_by_id'], ['users.id'], name='fk_tax_filings_submitted_by_id_users', ondelete='SET NULL'
        ),
        sa.ForeignKeyConstraint(
            ['reviewed_by_id'], ['users.id'], name='fk_tax_filings_reviewed_by_id_users', ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_tax_filings'),
    )
    op.create_index('ix_tax_filings_client_id', 'tax_filings', ['client_id'])
    op.create_index('ix_tax_filings_filing_reference', 'tax_filings', ['filing_reference'])
    op.create_index('ix_tax_filings_due_date', 'tax_filings', ['due_date'])
    op.create_index('ix_tax_filings_status', 'tax_filings', ['status'])

    op.create_table(
        'filing_schedules',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('filing_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('line_number', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(500), nullable=False),
        _money('amount'),
        _money('taxable_amount'),
        *_timestamps(),
        sa.CheckConstraint('amount >= 0', name='ck_filing_schedules_amount_non_negative'),
        sa.CheckConstraint('taxable_amount >= 0', name='ck_filing_schedules_taxable_amount_non_negative'),
        sa.ForeignKeyConstraint(
            ['filing_id'], ['tax_filings.id'], name='fk_filing_schedules_filing_id_tax_filings', ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_filing_schedules'),
    )
    op.create_index('ix_filing_schedules_filing_id', 'filing_schedules', ['filing_id'])

    op.create_table(
        'tax_authority_submissions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('filing_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            'authority_reference', sa.String(100), nullable=True,
            comment='Reference issued by the authority on receipt',
        ),
        sa.Column('status', _enum('submissionstatus'), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('submitted_by_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('response_payload', sa.JSON(), nullable=True),
        sa.Column('last_checked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['filing_id'], ['tax_filings.id'],
            name='fk_tax_authority_submissions_filing_id_tax_filings', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['submitted_by_id'], ['users.id'],
            name='fk_tax_authority_submissions_submitted_by_id_users', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_tax_authority_submissions'),
    )
    op.create_index('ix_tax_authority_submissions_filing_id', 'tax_authority_submissions', ['filing_id'])
    op.create_index(
        'ix_tax_authority_submissions_authority_reference', 'tax_authority_submissions', ['authority_reference']
    )

    # =====================================================
    # DELEGATED ASSOCIATE PERMISSIONS
    # =====================================================
    op.create_table(
        'associate_permissions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('associate_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('client_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('area', _enum('permissionarea'), nullable=False),
        sa.Column('level', _enum('permissionlevel'), nullable=False),
        sa.Column(
            'expires_at', sa.DateTime(timezone=True), nullable=True,
            comment='NULL means the grant never expires',
        ),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('granted_by_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('granted_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['associate_id'], ['users.id'], name='fk_associate_permissions_associate_id_users', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['client_id'], ['clients.id'], name='fk_associate_permissions_client_id_clients', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['granted_by_id'], ['users.id'], name='fk_associate_permissions_granted_by_id_users', ondelete='SET NULL'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_associate_permissions'),
        sa.UniqueConstraint(
            'associate_id', 'client_id', 'area', name='uq_associate_permissions_associate_client_area'
        ),
    )
    op.create_index('ix_associate_permissions_associate_id', 'associate_permissions', ['associate_id'])
    op.create_index('ix_associate_permissions_client_id', 'associate_permissions', ['client_id'])
    op.create_index('ix_associate_permissions_expires_at', 'associate_permissions', ['expires_at'])

    op.create_table(
        'associate_permission_audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('associate_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('client_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('area', _enum('permissionarea'), nullable=False),
        sa.Column('action', _enum('permissionauditaction'), nullable=False),
        sa.Column('old_level', _enum('permissionlevel'), nullable=True),
        sa.Column('new_level', _enum('permissionlevel'), nullable=True),
        sa.Column('changed_by_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reason', sa.String(500), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_associate_permission_audit_logs'),
    )
    op.create_index(
        'ix_associate_permission_audit_logs_associate_id', 'associate_permission_audit_logs', ['associate_id']
    )
    op.create_index(
        'ix_associate_permission_audit_logs_client_id', 'associate_permission_audit_logs', ['client_id']
    )

    # =====================================================
    # ON-BEHALF ACTION LOG
    # =====================================================
    op.create_table(
        'on_behalf_actions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('associate_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('client_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('action', _enum('onbehalfactiontype'), nullable=False),
        sa.Column('entity_type', sa.String(100), nullable=False, comment="e.g. 'TaxFiling'"),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('action_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('client_notified', sa.Boolean(), nullable=False),
        sa.Column('client_notified_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ['associate_id'], ['users.id'], name='fk_on_behalf_actions_associate_id_users', ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['client_id'], ['clients.id'], name='fk_on_behalf_actions_client_id_clients', ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_on_behalf_actions'),
    )
    op.create_index('ix_on_behalf_actions_associate_id', 'on_behalf_actions', ['associate_id'])
    op.create_index('ix_on_behalf_actions_client_id', 'on_behalf_actions', ['client_id'])
    op.create_index('ix_on_behalf_actions_entity_id', 'on_behalf_actions', ['entity_id'])
    op.create_index('ix_on_behalf_actions_action_date', 'on_behalf_actions', ['action_date'])


def downgrade() -> None:
    op.drop_table('on_behalf_actions')
    op.drop_table('associate_permission_audit_logs')
    op.drop_table('associate_permissions')
    op.drop_table('tax_authority_submissions')
    op.drop_table('filing_schedules')
    op.drop_table('tax_filings')
    op.drop_table('users')
    op.drop_table('clients')

    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(op.get_bind(), checkfirst=True)
