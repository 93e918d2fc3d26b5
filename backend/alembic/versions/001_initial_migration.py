"""Initial migration

Revision ID: 001_initial
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None

DOCUMENT_TYPES = (
    'driversLicense', 'taxReturn', 'payStub', 'bankStatement', 'w2', '1099',
    'marriageCertificate', 'priorCourtOrder', 'profitAndLoss',
)


def _user_columns(unique: bool = False):
    return [
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False, unique=unique),
    ]


def _last_updated():
    return sa.Column('last_updated', sa.DateTime(), server_default=sa.text('(datetime(\'now\'))'), nullable=False)


def upgrade() -> None:
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = inspector.get_table_names()

    if 'documents' not in existing_tables:
        op.create_table(
            'documents',
            *_user_columns(),
            sa.Column('document_type', sa.Enum(*DOCUMENT_TYPES, name='documenttypeenum'), nullable=False),
            sa.Column('original_filename', sa.String(length=500), nullable=False),
            sa.Column('mime_type', sa.String(length=100), nullable=True),
            sa.Column('size_bytes', sa.Integer(), nullable=True),
            sa.Column('status', sa.Enum('uploaded', 'processing', 'processed', 'failed', name='documentstatusenum'), nullable=False),
            sa.Column('extraction_method', sa.String(length=20), nullable=True),
            sa.Column('needs_review', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('missing_critical_fields', sa.JSON(), nullable=True),
            sa.Column('error_message', sa.Text(), nullable=True),
            sa.Column('uploaded_at', sa.DateTime(), server_default=sa.text('(datetime(\'now\'))'), nullable=False),
            sa.Column('updated_at', sa.DateTime(), server_default=sa.text('(datetime(\'now\'))'), nullable=False),
            sa.PrimaryKeyConstraint('id'),
            sa.Index('ix_documents_user_id', 'user_id'),
            sa.Index('ix_documents_uploaded_at', 'uploaded_at')
        )

    if 'extracted_data' not in existing_tables:
        op.create_table(
            'extracted_data',
            sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
            sa.Column('document_id', sa.Integer(), nullable=False),
            sa.Column('data', sa.JSON(), nullable=False),
            sa.Column('raw_text', sa.Text(), nullable=True),
            sa.Column('extracted_at', sa.DateTime(), server_default=sa.text('(datetime(\'now\'))'), nullable=False),
            sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ondelete='CASCADE'),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('document_id')
        )

    if 'personal_info' not in existing_tables:
        op.create_table(
            'personal_info',
            *_user_columns(unique=True),
            sa.Column('first_name', sa.String(length=255), nullable=True),
            sa.Column('middle_name', sa.String(length=255), nullable=True),
            sa.Column('last_name', sa.String(length=255), nullable=True),
            sa.Column('date_of_birth', sa.String(length=10), nullable=True),
            sa.Column('ssn_last_4', sa.String(length=4), nullable=True),
            sa.Column('driver_license_number', sa.String(length=50), nullable=True),
            sa.Column('driver_license_state', sa.String(length=2), nullable=True),
            sa.Column('address_street', sa.String(length=500), nullable=True),
            sa.Column('address_city', sa.String(length=255), nullable=True),
            sa.Column('address_state', sa.String(length=2), nullable=True),
            sa.Column('address_zip_code', sa.String(length=10), nullable=True),
            sa.Column('email', sa.String(length=255), nullable=True),
            sa.Column('phone', sa.String(length=50), nullable=True),
            sa.Column('filing_status', sa.String(length=50), nullable=True),
            _last_updated(),
            sa.PrimaryKeyConstraint('id'),
            sa.Index('ix_personal_info_user_id', 'user_id')
        )

    if 'spouse_info' not in existing_tables:
        op.create_table(
            'spouse_info',
            *_user_columns(unique=True),
            sa.Column('first_name', sa.String(length=255), nullable=True),
            sa.Column('middle_name', sa.String(length=255), nullable=True),
            sa.Column('last_name', sa.String(length=255), nullable=True),
            sa.Column('date_of_birth', sa.String(length=10), nullable=True),
            sa.Column('ssn_last_4', sa.String(length=4), nullable=True),
            _last_updated(),
            sa.PrimaryKeyConstraint('id'),
            sa.Index('ix_spouse_info_user_id', 'user_id')
        )

    if 'children' not in existing_tables:
        op.create_table(
            'children',
            *_user_columns(),
            sa.Column('full_name', sa.String(length=255), nullable=False),
            sa.Column('date_of_birth', sa.String(length=10), nullable=True),
            sa.Column('relation', sa.String(length=50), nullable=True),
            _last_updated(),
            sa.PrimaryKeyConstraint('id'),
            sa.Index('ix_children_user_id', 'user_id')
        )

    if 'income' not in existing_tables:
        op.create_table(
            'income',
            *_user_columns(),
            sa.Column('spouse_number', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('gross_monthly_income', sa.Float(), nullable=True),
            sa.Column('gross_annual_income', sa.Float(), nullable=True),
            sa.Column('wage_income', sa.Float(), nullable=True),
            sa.Column('self_employment_income', sa.Float(), nullable=True),
            sa.Column('investment_income', sa.Float(), nullable=True),
            sa.Column('rental_income', sa.Float(), nullable=True),
            sa.Column('total_income', sa.Float(), nullable=True),
            sa.Column('adjusted_gross_income', sa.Float(), nullable=True),
            sa.Column('income_type', sa.String(length=50), nullable=True),
            sa.Column('pay_frequency', sa.String(length=20), nullable=True),
            sa.Column('overtime', sa.Float(), nullable=True),
            sa.Column('bonuses', sa.Float(), nullable=True),
            _last_updated(),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'spouse_number', name='uq_income_user_spouse'),
            sa.Index('ix_income_user_id', 'user_id')
        )

    if 'employers' not in existing_tables:
        op.create_table(
            'employers',
            *_user_columns(),
            sa.Column('spouse_number', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('employer_name', sa.String(length=255), nullable=False),
            sa.Column('income_amount', sa.Float(), nullable=True),
            sa.Column('income_type', sa.String(length=50), nullable=True),
            _last_updated(),
            sa.PrimaryKeyConstraint('id'),
            sa.Index('ix_employers_user_id', 'user_id')
        )

    if 'expenses' not in existing_tables:
        op.create_table(
            'expenses',
            *_user_columns(),
            sa.Column('spouse_number', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('monthly_housing_cost', sa.Float(), nullable=True),
            sa.Column('monthly_childcare_cost', sa.Float(), nullable=True),
            sa.Column('monthly_utilities', sa.Float(), nullable=True),
            sa.Column('monthly_debt_payments', sa.Float(), nullable=True),
            sa.Column('monthly_transportation', sa.Float(), nullable=True),
            sa.Column('monthly_health_insurance', sa.Float(), nullable=True),
            sa.Column('monthly_insurance_premiums', sa.Float(), nullable=True),
            sa.Column('monthly_payroll_deductions', sa.Float(), nullable=True),
            _last_updated(),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('user_id', 'spouse_number', name='uq_expenses_user_spouse'),
            sa.Index('ix_expenses_user_id', 'user_id')
        )

    if 'assets' not in existing_tables:
        op.create_table(
            'assets',
            *_user_columns(),
            sa.Column('asset_type', sa.String(length=50), nullable=False),
            sa.Column('asset_name', sa.String(length=255), nullable=True),
            sa.Column('approximate_value', sa.Float(), nullable=True),
            sa.Column('ownership_type', sa.String(length=50), nullable=True),
            sa.Column('bank_name', sa.String(length=255), nullable=True),
            sa.Column('account_number', sa.String(length=4), nullable=True),
            _last_updated(),
            sa.PrimaryKeyConstraint('id'),
            sa.Index('ix_assets_user_id', 'user_id')
        )

    if 'debts' not in existing_tables:
        op.create_table(
            'debts',
            *_user_columns(),
            sa.Column('debt_type', sa.String(length=50), nullable=False),
            sa.Column('creditor_name', sa.String(length=255), nullable=True),
            sa.Column('approximate_balance', sa.Float(), nullable=True),
            sa.Column('monthly_payment', sa.Float(), nullable=True),
            _last_updated(),
            sa.PrimaryKeyConstraint('id'),
            sa.Index('ix_debts_user_id', 'user_id')
        )

    if 'marriage_info' not in existing_tables:
        op.create_table(
            'marriage_info',
            *_user_columns(unique=True),
            sa.Column('marriage_date', sa.String(length=10), nullable=True),
            sa.Column('marriage_place', sa.String(length=255), nullable=True),
            sa.Column('date_of_separation', sa.String(length=10), nullable=True),
            sa.Column('spouse1_name_at_marriage', sa.String(length=255), nullable=True),
            sa.Column('spouse2_name_at_marriage', sa.String(length=255), nullable=True),
            sa.Column('maiden_names', sa.JSON(), nullable=True),
            _last_updated(),
            sa.PrimaryKeyConstraint('id'),
            sa.Index('ix_marriage_info_user_id', 'user_id')
        )

    if 'court_info' not in existing_tables:
        op.create_table(
            'court_info',
            *_user_columns(unique=True),
            sa.Column('case_type', sa.String(length=50), nullable=True, server_default='divorce'),
            sa.Column('county', sa.String(length=100), nullable=True),
            sa.Column('judicial_district', sa.String(length=100), nullable=True),
            sa.Column('has_minor_children', sa.Boolean(), nullable=True),
            sa.Column('has_prior_orders', sa.Boolean(), nullable=True),
            sa.Column('order_types', sa.JSON(), nullable=True),
            sa.Column('jurisdictions', sa.JSON(), nullable=True),
            sa.Column('custody_constraints', sa.JSON(), nullable=True),
            sa.Column('has_domestic_violence', sa.Boolean(), nullable=True),
            _last_updated(),
            sa.PrimaryKeyConstraint('id'),
            sa.Index('ix_court_info_user_id', 'user_id')
        )


def downgrade() -> None:
    for table in (
        'court_info', 'marriage_info', 'debts', 'assets', 'expenses', 'employers',
        'income', 'children', 'spouse_info', 'personal_info', 'extracted_data', 'documents',
    ):
        op.drop_table(table)
