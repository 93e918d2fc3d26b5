from sqlalchemy import Integer, String, Text, Boolean, Float, DateTime, ForeignKey, JSON, Enum, UniqueConstraint
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from datetime import datetime
from typing import Optional
import enum


class Base(AsyncAttrs, DeclarativeBase):
    pass


class DocumentTypeEnum(str, enum.Enum):
    drivers_license = "driversLicense"
    tax_return = "taxReturn"
    pay_stub = "payStub"
    bank_statement = "bankStatement"
    w2 = "w2"
    form_1099 = "1099"
    marriage_certificate = "marriageCertificate"
    prior_court_order = "priorCourtOrder"
    profit_and_loss = "profitAndLoss"


class DocumentStatusEnum(str, enum.Enum):
    uploaded = "uploaded"
    processing = "processing"
    processed = "processed"
    failed = "failed"


class Document(Base):
    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    document_type: Mapped[DocumentTypeEnum] = mapped_column(
        Enum(DocumentTypeEnum, values_callable=lambda e: [m.value for m in e]), nullable=False
    )
    original_filename: Mapped[str] = mapped_column(String(500), nullable=False)
    mime_type: Mapped[Optional[str]] = mapped_column(String(100))
    size_bytes: Mapped[Optional[int]] = mapped_column(Integer)
    status: Mapped[DocumentStatusEnum] = mapped_column(Enum(DocumentStatusEnum), default=DocumentStatusEnum.uploaded)
    extraction_method: Mapped[Optional[str]] = mapped_column(String(20))
    needs_review: Mapped[bool] = mapped_column(Boolean, default=False)
    missing_critical_fields: Mapped[Optional[list]] = mapped_column(JSON)
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    extracted_data: Mapped[Optional["ExtractedData"]] = relationship(
        "ExtractedData", back_populates="document", uselist=False, cascade="all, delete-orphan"
    )


class ExtractedData(Base):
    """Candidate field map produced for one document. Never modified after insert."""
    __tablename__ = "extracted_data"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    data: Mapped[dict] = mapped_column(JSON, nullable=False)
    raw_text: Mapped[Optional[str]] = mapped_column(Text)
    extracted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    document: Mapped["Document"] = relationship("Document", back_populates="extracted_data")


# Canonical per-user tables

class PersonalInfo(Base):
    __tablename__ = "personal_info"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(255))
    middle_name: Mapped[Optional[str]] = mapped_column(String(255))
    last_name: Mapped[Optional[str]] = mapped_column(String(255))
    date_of_birth: Mapped[Optional[str]] = mapped_column(String(10))
    ssn_last_4: Mapped[Optional[str]] = mapped_column(String(4))
    driver_license_number: Mapped[Optional[str]] = mapped_column(String(50))
    driver_license_state: Mapped[Optional[str]] = mapped_column(String(2))
    address_street: Mapped[Optional[str]] = mapped_column(String(500))
    address_city: Mapped[Optional[str]] = mapped_column(String(255))
    address_state: Mapped[Optional[str]] = mapped_column(String(2))
    address_zip_code: Mapped[Optional[str]] = mapped_column(String(10))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    filing_status: Mapped[Optional[str]] = mapped_column(String(50))
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SpouseInfo(Base):
    __tablename__ = "spouse_info"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(255))
    middle_name: Mapped[Optional[str]] = mapped_column(String(255))
    last_name: Mapped[Optional[str]] = mapped_column(String(255))
    date_of_birth: Mapped[Optional[str]] = mapped_column(String(10))
    ssn_last_4: Mapped[Optional[str]] = mapped_column(String(4))
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Child(Base):
    __tablename__ = "children"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    date_of_birth: Mapped[Optional[str]] = mapped_column(String(10))
    relation: Mapped[Optional[str]] = mapped_column(String(50))
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Income(Base):
    __tablename__ = "income"
    __table_args__ = (UniqueConstraint("user_id", "spouse_number", name="uq_income_user_spouse"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    spouse_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    gross_monthly_income: Mapped[Optional[float]] = mapped_column(Float)
    gross_annual_income: Mapped[Optional[float]] = mapped_column(Float)
    wage_income: Mapped[Optional[float]] = mapped_column(Float)
    self_employment_income: Mapped[Optional[float]] = mapped_column(Float)
    investment_income: Mapped[Optional[float]] = mapped_column(Float)
    rental_income: Mapped[Optional[float]] = mapped_column(Float)
    total_income: Mapped[Optional[float]] = mapped_column(Float)
    adjusted_gross_income: Mapped[Optional[float]] = mapped_column(Float)
    income_type: Mapped[Optional[str]] = mapped_column(String(50))
    pay_frequency: Mapped[Optional[str]] = mapped_column(String(20))
    overtime: Mapped[Optional[float]] = mapped_column(Float)
    bonuses: Mapped[Optional[float]] = mapped_column(Float)
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Employer(Base):
    __tablename__ = "employers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    spouse_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    employer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    income_amount: Mapped[Optional[float]] = mapped_column(Float)
    income_type: Mapped[Optional[str]] = mapped_column(String(50))
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Expense(Base):
    __tablename__ = "expenses"
    __table_args__ = (UniqueConstraint("user_id", "spouse_number", name="uq_expenses_user_spouse"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    spouse_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    monthly_housing_cost: Mapped[Optional[float]] = mapped_column(Float)
    monthly_childcare_cost: Mapped[Optional[float]] = mapped_column(Float)
    monthly_utilities: Mapped[Optional[float]] = mapped_column(Float)
    monthly_debt_payments: Mapped[Optional[float]] = mapped_column(Float)
    monthly_transportation: Mapped[Optional[float]] = mapped_column(Float)
    monthly_health_insurance: Mapped[Optional[float]] = mapped_column(Float)
    monthly_insurance_premiums: Mapped[Optional[float]] = mapped_column(Float)
    monthly_payroll_deductions: Mapped[Optional[float]] = mapped_column(Float)
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Asset(Base):
    __tablename__ = "assets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    asset_type: Mapped[str] = mapped_column(String(50), nullable=False)
    asset_name: Mapped[Optional[str]] = mapped_column(String(255))
    approximate_value: Mapped[Optional[float]] = mapped_column(Float)
    ownership_type: Mapped[Optional[str]] = mapped_column(String(50))
    bank_name: Mapped[Optional[str]] = mapped_column(String(255))
    account_number: Mapped[Optional[str]] = mapped_column(String(4))  # last 4 digits only
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Debt(Base):
    __tablename__ = "debts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    debt_type: Mapped[str] = mapped_column(String(50), nullable=False)
    creditor_name: Mapped[Optional[str]] = mapped_column(String(255))
    approximate_balance: Mapped[Optional[float]] = mapped_column(Float)
    monthly_payment: Mapped[Optional[float]] = mapped_column(Float)
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class MarriageInfo(Base):
    __tablename__ = "marriage_info"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    marriage_date: Mapped[Optional[str]] = mapped_column(String(10))
    marriage_place: Mapped[Optional[str]] = mapped_column(String(255))
    date_of_separation: Mapped[Optional[str]] = mapped_column(String(10))
    spouse1_name_at_marriage: Mapped[Optional[str]] = mapped_column(String(255))
    spouse2_name_at_marriage: Mapped[Optional[str]] = mapped_column(String(255))
    maiden_names: Mapped[Optional[list]] = mapped_column(JSON)
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CourtInfo(Base):
    __tablename__ = "court_info"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    case_type: Mapped[Optional[str]] = mapped_column(String(50), default="divorce")
    county: Mapped[Optional[str]] = mapped_column(String(100))
    judicial_district: Mapped[Optional[str]] = mapped_column(String(100))
    has_minor_children: Mapped[Optional[bool]] = mapped_column(Boolean)
    has_prior_orders: Mapped[Optional[bool]] = mapped_column(Boolean)
    order_types: Mapped[Optional[list]] = mapped_column(JSON)
    jurisdictions: Mapped[Optional[list]] = mapped_column(JSON)
    custody_constraints: Mapped[Optional[list]] = mapped_column(JSON)
    has_domestic_violence: Mapped[Optional[bool]] = mapped_column(Boolean)
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# Order matters for re-aggregation: children land before court_info so the
# derived has_minor_children flag sees them.
CANONICAL_MODELS = (
    PersonalInfo,
    SpouseInfo,
    Child,
    Income,
    Employer,
    Expense,
    Asset,
    Debt,
    MarriageInfo,
    CourtInfo,
)
