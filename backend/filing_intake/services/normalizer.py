"""
Normalization.

Maps a candidate field map (regex or LLM output) onto canonical column values.
Every canonical column is a FieldRule: an ordered list of alias keys evaluated
by one resolver, plus a coercion. Aliases may be dotted paths into nested maps
and lists (``address.city``, ``employers.0.incomeType``).
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Optional

from filing_intake.models.database import (
    Asset,
    Child,
    CourtInfo,
    Debt,
    Employer,
    Expense,
    Income,
    MarriageInfo,
    PersonalInfo,
    SpouseInfo,
)
from filing_intake.services.field_extraction import SSN_VALUE, normalize_date, parse_amount, split_name

logger = logging.getLogger(__name__)

# Document-derived income, expense and employer rows belong to spouse 1.
DOCUMENT_SPOUSE_NUMBER = 1


# =============================================================================
# Alias resolution
# =============================================================================

def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def _lookup(data: Any, path: str) -> Any:
    current = data
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def resolve(data: dict, aliases: tuple[str, ...]) -> Any:
    """Return the value of the first alias present with a non-null, non-empty value."""
    for alias in aliases:
        value = _lookup(data, alias)
        if _has_value(value):
            return value
    return None


# =============================================================================
# Coercions
# =============================================================================

def as_text(value: Any) -> Optional[str]:
    """Collapse whitespace. SSN-shaped runs never reach a canonical column."""
    if isinstance(value, (dict, list)):
        return None
    text = SSN_VALUE.sub(" ", str(value))
    text = re.sub(r"\s+", " ", text).strip(" ,:#")
    return text or None


def as_amount(value: Any) -> Optional[float]:
    return parse_amount(value)


def as_date(value: Any) -> Optional[str]:
    return normalize_date(value)


def as_state(value: Any) -> Optional[str]:
    text = as_text(value)
    return text.upper()[:2] if text else None


def as_last4(value: Any) -> Optional[str]:
    digits = re.sub(r"\D", "", str(value))
    return digits[-4:] if len(digits) >= 4 else None


def as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "y", "1"):
            return True
        if lowered in ("false", "no", "n", "0"):
            return False
    return None


def as_text_list(value: Any) -> Optional[list[str]]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return None
    return [text for text in (as_text(item) for item in value) if text]


def as_frequency(value: Any) -> Optional[str]:
    text = as_text(value)
    if not text:
        return None
    lowered = text.lower().replace("-", "").replace(" ", "")
    return {"annual": "yearly", "annually": "yearly", "semimonthly": "monthly"}.get(lowered, lowered)


@dataclass(frozen=True)
class FieldRule:
    column: str
    aliases: tuple[str, ...]
    coerce: Callable[[Any], Any] = as_text


def apply_rules(data: dict, rules: tuple[FieldRule, ...]) -> dict[str, Any]:
    """Resolve and coerce every rule, keeping only non-null results."""
    values: dict[str, Any] = {}
    for rule in rules:
        raw = resolve(data, rule.aliases)
        if raw is None:
            continue
        value = rule.coerce(raw)
        if value is not None:
            values[rule.column] = value
    return values


# =============================================================================
# Field tables
# =============================================================================

FULL_NAME_ALIASES = ("employeeFullName", "taxpayerName", "fullName", "full_name", "name")

PERSONAL_INFO_RULES = (
    FieldRule("first_name", ("firstName", "first_name", "fname")),
    FieldRule("middle_name", ("middleName", "middle_name", "mname")),
    FieldRule("last_name", ("lastName", "last_name", "lname")),
    FieldRule("date_of_birth", ("dateOfBirth", "dob", "birthDate", "birth_date"), as_date),
    FieldRule("ssn_last_4", ("ssn", "ssnLast4", "socialSecurity", "socialSecurityNumber", "ssn_last_4"), as_last4),
    FieldRule("driver_license_number", ("licenseNumber", "driverLicenseNumber", "dl_number")),
    FieldRule("driver_license_state", ("licenseState", "driverLicenseState", "dl_state"), as_state),
    FieldRule("address_street", ("address.street", "street", "streetAddress")),
    FieldRule("address_city", ("address.city", "city")),
    FieldRule("address_state", ("address.state",), as_state),
    FieldRule("address_zip_code", ("address.zipCode", "address.zip", "zipCode", "zip", "zip_code", "postalCode", "postal_code")),
    FieldRule("email", ("email", "e-mail", "e_mail")),
    FieldRule("phone", ("phone", "telephone", "mobile", "cell")),
    FieldRule("filing_status", ("filingStatus", "filing_status")),
)

SPOUSE_NAME_ALIASES = (
    "spouse2FullName",
    "spouse2_full_name",
    "spouse2Name",
    "spouse2_name",
    "legalNamesAtMarriage.spouse2",
    "spouseName",
    "spouse_name",
)

SPOUSE_INFO_RULES = (
    FieldRule("date_of_birth", ("spouseDateOfBirth", "spouse_date_of_birth"), as_date),
    FieldRule("ssn_last_4", ("spouseSsn", "spouseSsnLast4", "spouse_ssn"), as_last4),
)

INCOME_RULES = (
    FieldRule("gross_annual_income", (
        "annualIncome", "annual_income", "totalIncome", "total_income",
        "adjustedGrossIncome", "adjusted_gross_income", "agi", "AGI",
    ), as_amount),
    FieldRule("gross_monthly_income", ("monthlyIncome", "monthly_income", "grossPay", "gross_pay", "gross"), as_amount),
    FieldRule("wage_income", ("wageIncome", "wage_income", "wages", "wage"), as_amount),
    FieldRule("self_employment_income", ("selfEmploymentIncome", "self_employment_income", "businessIncome", "netIncome"), as_amount),
    FieldRule("investment_income", ("investmentIncome", "investment_income"), as_amount),
    FieldRule("rental_income", ("rentalIncome", "rental_income"), as_amount),
    FieldRule("total_income", ("totalIncome", "total_income"), as_amount),
    FieldRule("adjusted_gross_income", ("adjustedGrossIncome", "adjusted_gross_income", "agi", "AGI"), as_amount),
    FieldRule("income_type", ("incomeType", "income_type", "employers.0.incomeType")),
    FieldRule("pay_frequency", ("payFrequency", "pay_frequency"), as_frequency),
    FieldRule("overtime", ("overtime", "ot"), as_amount),
    FieldRule("bonuses", ("bonuses", "bonus"), as_amount),
)

EXPENSE_RULES = (
    FieldRule("monthly_housing_cost", ("expenses.housing", "housingCost"), as_amount),
    FieldRule("monthly_childcare_cost", ("expenses.childcare", "childcareCost"), as_amount),
    FieldRule("monthly_utilities", ("expenses.utilities", "utilities"), as_amount),
    FieldRule("monthly_debt_payments", ("expenses.debt", "debtPayments"), as_amount),
    FieldRule("monthly_transportation", ("expenses.transportation", "transportation"), as_amount),
    FieldRule("monthly_health_insurance", (
        "insurance.health", "healthInsurance", "healthInsuranceDeduction",
    ), as_amount),
    FieldRule("monthly_insurance_premiums", ("insurance.premiums", "insurancePremiums"), as_amount),
    FieldRule("monthly_payroll_deductions", ("payrollDeductions", "payroll_deductions"), as_amount),
)

CHILD_RULES = (
    FieldRule("full_name", ("name", "fullName", "full_name")),
    FieldRule("date_of_birth", ("dateOfBirth", "date_of_birth", "dob"), as_date),
    FieldRule("relation", ("relationship", "relation")),
)

EMPLOYER_RULES = (
    FieldRule("employer_name", ("name", "employerName", "employer_name")),
    FieldRule("income_amount", ("income", "incomeAmount", "income_amount"), as_amount),
    FieldRule("income_type", ("incomeType", "income_type")),
)

EMPLOYER_NAME_ALIASES = ("employerName", "employer_name", "employer", "company", "companyName")

ASSET_RULES = (
    FieldRule("asset_type", ("type", "assetType", "asset_type")),
    FieldRule("asset_name", ("name", "assetName", "asset_name")),
    FieldRule("approximate_value", ("value", "approximateValue", "approximate_value", "balance"), as_amount),
    FieldRule("ownership_type", ("ownershipType", "ownership_type")),
    FieldRule("bank_name", ("bankName", "bank_name")),
    FieldRule("account_number", ("accountNumber", "accountNumberLast4", "account_number"), as_last4),
)

BANK_ACCOUNT_RULES = (
    FieldRule("bank_name", ("bankName", "bank_name", "bank", "financialInstitutionName")),
    FieldRule("approximate_value", ("balance", "endingBalance", "accountBalance", "currentBalance"), as_amount),
    FieldRule("account_number", ("accountNumberLast4", "accountNumber", "account_number"), as_last4),
)

DEBT_RULES = (
    FieldRule("debt_type", ("type", "debtType", "debt_type")),
    FieldRule("creditor_name", ("creditorName", "creditor_name", "creditor")),
    FieldRule("approximate_balance", ("amount", "balance", "approximateBalance"), as_amount),
    FieldRule("monthly_payment", ("monthlyPayment", "monthly_payment"), as_amount),
)

MARRIAGE_INFO_RULES = (
    FieldRule("marriage_date", ("marriageDate", "marriage_date"), as_date),
    FieldRule("marriage_place", ("marriagePlace", "marriage_place")),
    FieldRule("date_of_separation", ("dateOfSeparation", "separationDate", "date_of_separation"), as_date),
    FieldRule("spouse1_name_at_marriage", ("legalNamesAtMarriage.spouse1", "spouse1FullName", "spouse1Name")),
    FieldRule("spouse2_name_at_marriage", ("legalNamesAtMarriage.spouse2", "spouse2FullName", "spouse2Name")),
    FieldRule("maiden_names", ("maidenNames", "maiden_names"), as_text_list),
)

COURT_INFO_RULES = (
    FieldRule("case_type", ("caseType", "case_type")),
    FieldRule("county", ("county",)),
    FieldRule("judicial_district", ("judicialDistrict", "judicial_district", "courtName")),
    FieldRule("has_prior_orders", ("hasPriorOrders", "has_prior_orders"), as_bool),
    FieldRule("order_types", ("orderTypes", "order_types"), as_text_list),
    FieldRule("jurisdictions", ("jurisdictions",), as_text_list),
    FieldRule("custody_constraints", ("custodyConstraints", "custody_constraints"), as_text_list),
    FieldRule("has_domestic_violence", ("hasDomesticViolence", "has_domestic_violence"), as_bool),
)


# =============================================================================
# Category builders
# =============================================================================

def _name_parts(full_name: Any) -> dict[str, str]:
    text = as_text(full_name)
    if not text:
        return {}
    parts = split_name(text)
    return {
        column: parts[key]
        for key, column in (("firstName", "first_name"), ("middleName", "middle_name"), ("lastName", "last_name"))
        if parts.get(key)
    }


def build_personal_info(data: dict) -> dict[str, Any]:
    values = apply_rules(data, PERSONAL_INFO_RULES)
    if "first_name" not in values and "last_name" not in values:
        full_name = resolve(data, FULL_NAME_ALIASES)
        # A combined name only counts when it has internal whitespace.
        if isinstance(full_name, str) and len(full_name.split()) > 1:
            values.update(_name_parts(full_name))
    return values


def build_spouse_info(data: dict) -> dict[str, Any]:
    values = apply_rules(data, SPOUSE_INFO_RULES)
    full_name = resolve(data, SPOUSE_NAME_ALIASES)
    if isinstance(full_name, str) and len(full_name.split()) > 1:
        values.update(_name_parts(full_name))
    return values


def _rows(items: Any, rules: tuple[FieldRule, ...], required: str) -> list[dict[str, Any]]:
    rows = []
    for item in items:
        if not isinstance(item, dict):
            continue
        row = apply_rules(item, rules)
        if row.get(required):
            rows.append(row)
    return rows


def build_children(data: dict) -> Optional[list[dict[str, Any]]]:
    dependents = resolve(data, ("dependents", "children"))
    if not isinstance(dependents, list):
        return None
    return _rows(dependents, CHILD_RULES, "full_name")


def build_income(data: dict) -> dict[str, Any]:
    values = apply_rules(data, INCOME_RULES)
    if "investment_income" not in values:
        interest = parse_amount(resolve(data, ("interestIncome", "interest_income")))
        dividends = parse_amount(resolve(data, ("dividendIncome", "dividend_income")))
        if interest is not None or dividends is not None:
            values["investment_income"] = round((interest or 0) + (dividends or 0), 2)
    return values


def build_employers(data: dict) -> Optional[list[dict[str, Any]]]:
    employers = data.get("employers")
    if isinstance(employers, list):
        return _rows(employers, EMPLOYER_RULES, "employer_name")

    employer_name = as_text(resolve(data, EMPLOYER_NAME_ALIASES) or "")
    if employer_name:
        return [{"employer_name": employer_name}]
    return None


def build_expenses(data: dict) -> dict[str, Any]:
    return apply_rules(data, EXPENSE_RULES)


def build_assets(data: dict) -> list[dict[str, Any]]:
    assets: list[dict[str, Any]] = []

    listed = data.get("assets")
    if isinstance(listed, list):
        for item in listed:
            if not isinstance(item, dict):
                continue
            row = apply_rules(item, ASSET_RULES)
            if row:
                row.setdefault("asset_type", "other")
                assets.append(row)

    accounts = data.get("bankAccounts")
    if isinstance(accounts, list):
        candidates = [item for item in accounts if isinstance(item, dict)]
    elif resolve(data, BANK_ACCOUNT_RULES[0].aliases + BANK_ACCOUNT_RULES[1].aliases) is not None:
        candidates = [data]
    else:
        candidates = []

    for account in candidates:
        row = apply_rules(account, BANK_ACCOUNT_RULES)
        if not row:
            continue
        row["asset_type"] = "bank_account"
        row["asset_name"] = row.get("bank_name")
        assets.append(row)

    return assets


def build_debts(data: dict) -> Optional[list[dict[str, Any]]]:
    debts = data.get("debts")
    if not isinstance(debts, list):
        return None
    rows = []
    for item in debts:
        if not isinstance(item, dict):
            continue
        row = apply_rules(item, DEBT_RULES)
        if row:
            row.setdefault("debt_type", "other")
            rows.append(row)
    return rows


def build_marriage_info(data: dict) -> dict[str, Any]:
    return apply_rules(data, MARRIAGE_INFO_RULES)


def build_court_info(data: dict) -> dict[str, Any]:
    return apply_rules(data, COURT_INFO_RULES)


# =============================================================================
# Category table
# =============================================================================

SINGLETON = "singleton"
COLLECTION = "collection"
ASSETS = "assets"


@dataclass(frozen=True)
class Category:
    """One canonical entity category and how a field map feeds it."""

    name: str
    model: type
    kind: str
    build: Callable[[dict], Any]
    spouse_number: Optional[int] = None


# Children precede court_info so the derived has_minor_children flag sees them.
CATEGORIES: tuple[Category, ...] = (
    Category("personal_info", PersonalInfo, SINGLETON, build_personal_info),
    Category("spouse_info", SpouseInfo, SINGLETON, build_spouse_info),
    Category("children", Child, COLLECTION, build_children),
    Category("income", Income, SINGLETON, build_income, DOCUMENT_SPOUSE_NUMBER),
    Category("employers", Employer, COLLECTION, build_employers, DOCUMENT_SPOUSE_NUMBER),
    Category("expenses", Expense, SINGLETON, build_expenses, DOCUMENT_SPOUSE_NUMBER),
    Category("assets", Asset, ASSETS, build_assets),
    Category("debts", Debt, COLLECTION, build_debts),
    Category("marriage_info", MarriageInfo, SINGLETON, build_marriage_info),
    Category("court_info", CourtInfo, SINGLETON, build_court_info),
)


def normalize(data: dict) -> dict[str, Any]:
    """Build every category at once. Categories with nothing to write are omitted."""
    result: dict[str, Any] = {}
    for category in CATEGORIES:
        values = category.build(data)
        if values is None or (category.kind != COLLECTION and not values):
            continue
        result[category.name] = values
    return result
