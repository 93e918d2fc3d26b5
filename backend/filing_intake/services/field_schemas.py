"""Expected and critical field names per document type.

Critical fields are advisory. A record missing any of them gets flagged for
manual review; extraction itself never fails because fields are absent.
"""

from typing import Any, Dict, List, Tuple

EXPECTED_FIELDS: Dict[str, Tuple[str, ...]] = {
    "payStub": (
        "employeeFullName",
        "employerName",
        "employerAddress",
        "payPeriodStart",
        "payPeriodEnd",
        "payFrequency",
        "grossIncomeCurrent",
        "grossIncomeYTD",
        "netIncomeCurrent",
        "federalTaxWithheld",
        "stateTaxWithheld",
        "socialSecurityTax",
        "medicareTax",
        "healthInsuranceDeduction",
        "retirementDeduction",
        "otherDeductionsTotal",
    ),
    "marriageCertificate": (
        "spouse1FullName",
        "spouse2FullName",
        "marriageDate",
        "marriagePlace",
        "certificateNumber",
        "issuingAuthority",
        "officiantName",
    ),
    "bankStatement": (
        "accountHolderNames",
        "financialInstitutionName",
        "accountType",
        "accountNumberLast4",
        "statementStartDate",
        "statementEndDate",
        "beginningBalance",
        "endingBalance",
        "totalDeposits",
        "totalWithdrawals",
    ),
    "taxReturn": (
        "taxYear",
        "filingStatus",
        "taxpayerName",
        "spouseName",
        "adjustedGrossIncome",
        "totalIncome",
        "wages",
        "interestIncome",
        "dividendIncome",
        "businessIncome",
        "totalTax",
        "refundOrAmountOwed",
    ),
    "driversLicense": (
        "firstName",
        "lastName",
        "dateOfBirth",
        "address",
        "driverLicenseNumber",
        "driverLicenseState",
    ),
    "w2": ("employerName", "wageIncome", "taxYear"),
    "1099": ("employerName", "wageIncome", "taxYear"),
    "priorCourtOrder": (
        "orderTypes",
        "courtName",
        "county",
        "state",
        "orderDate",
        "caseNumber",
        "custodyConstraints",
    ),
    "profitAndLoss": (
        "businessName",
        "grossRevenue",
        "totalExpenses",
        "netIncome",
    ),
}

CRITICAL_FIELDS: Dict[str, Tuple[str, ...]] = {
    "payStub": ("employeeFullName", "employerName", "grossIncomeCurrent", "netIncomeCurrent"),
    "marriageCertificate": ("spouse1FullName", "spouse2FullName", "marriageDate", "marriagePlace"),
    "bankStatement": ("accountHolderNames", "financialInstitutionName", "endingBalance"),
    "taxReturn": ("taxYear", "taxpayerName", "adjustedGrossIncome", "totalIncome"),
    "driversLicense": ("lastName", "dateOfBirth", "driverLicenseNumber"),
    "w2": ("employerName", "wageIncome"),
    "1099": ("employerName", "wageIncome"),
    "priorCourtOrder": ("orderTypes",),
    "profitAndLoss": ("netIncome",),
}

# Keys the regex parsers emit for the same concept as an LLM field name.
EQUIVALENT_KEYS: Dict[str, Tuple[str, ...]] = {
    "employeeFullName": ("employeeName", "name"),
    "grossIncomeCurrent": ("grossPay", "wageIncome"),
    "netIncomeCurrent": ("netPay",),
    "spouse1FullName": ("spouse1Name",),
    "spouse2FullName": ("spouse2Name",),
    "financialInstitutionName": ("bankName",),
    "endingBalance": ("balance",),
    "accountHolderNames": ("accountHolder",),
    "taxpayerName": ("lastName",),
    "wages": ("wageIncome",),
}


def expected_fields(document_type: str) -> List[str]:
    return list(EXPECTED_FIELDS.get(document_type, ()))


def critical_fields(document_type: str) -> List[str]:
    return list(CRITICAL_FIELDS.get(document_type, ()))


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    if isinstance(value, (list, dict)) and not value:
        return False
    return True


def missing_critical_fields(document_type: str, data: Dict[str, Any]) -> List[str]:
    """Return critical fields for the type that have no usable value in ``data``."""
    missing = []
    for field in critical_fields(document_type):
        keys = (field,) + EQUIVALENT_KEYS.get(field, ())
        if not any(_has_value(data.get(key)) for key in keys):
            missing.append(field)
    return missing
