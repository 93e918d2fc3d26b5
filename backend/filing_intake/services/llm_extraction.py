"""LLM-backed field extraction for document types where regex coverage is weak.

One prompt per call, built from a fixed field table per document type. The
response must be a single JSON object; anything outside the field table is
dropped before the data reaches the pipeline.
"""

import json
import logging
import math
import re
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional, Tuple

from filing_intake.config import settings
from filing_intake.errors import ExtractionError, InputError
from filing_intake.models.schemas import LLMUsageEntry, LLMUsageStats
from filing_intake.services.field_extraction import derive_income_fields
from filing_intake.services.llm_client import LLMClient

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "\n\n[... text truncated for cost optimization ...]"

SYSTEM_PROMPT = (
    "You are a document analysis assistant. Extract information from the provided document text "
    "and respond with exactly ONE valid JSON object. Do not include explanations, markdown or code blocks. "
    "Use null for any field that is not present in the document."
)

# (field name, description) per supported document type
PROMPT_FIELDS: Dict[str, Tuple[str, List[Tuple[str, str]]]] = {
    "payStub": ("PAY STUB", [
        ("employeeFullName", "Full legal name of the employee (string or null)"),
        ("employerName", "Name of the employer company (string or null)"),
        ("employerAddress", "Full address of employer (string or null)"),
        ("payPeriodStart", "Start date of pay period in YYYY-MM-DD format (string or null)"),
        ("payPeriodEnd", "End date of pay period in YYYY-MM-DD format (string or null)"),
        ("payFrequency", 'One of "weekly", "biweekly", "monthly", "yearly" (string or null)'),
        ("grossIncomeCurrent", "Current period gross income (number or null)"),
        ("grossIncomeYTD", "Year-to-date gross income (number or null)"),
        ("netIncomeCurrent", "Current period net income (number or null)"),
        ("federalTaxWithheld", "Federal tax withheld this period (number or null)"),
        ("stateTaxWithheld", "State tax withheld this period (number or null)"),
        ("socialSecurityTax", "Social Security tax withheld (number or null)"),
        ("medicareTax", "Medicare tax withheld (number or null)"),
        ("healthInsuranceDeduction", "Health insurance deduction amount (number or null)"),
        ("retirementDeduction", "Retirement/401k deduction amount (number or null)"),
        ("otherDeductionsTotal", "Total of other deductions (number or null)"),
    ]),
    "marriageCertificate": ("MARRIAGE CERTIFICATE or MARRIAGE LICENSE", [
        ("spouse1FullName", "Full legal name of first spouse (string or null)"),
        ("spouse2FullName", "Full legal name of second spouse (string or null)"),
        ("marriageDate", "Date of marriage in YYYY-MM-DD format (string or null)"),
        ("marriagePlace", "Place of marriage: city, county, state (string or null)"),
        ("certificateNumber", "Marriage certificate or license number (string or null)"),
        ("issuingAuthority", "County clerk office or state agency that issued it (string or null)"),
        ("officiantName", "Name of person who performed the ceremony (string or null)"),
    ]),
    "bankStatement": ("BANK STATEMENT", [
        ("accountHolderNames", "Full name(s) of account holder(s), comma-separated if multiple (string or null)"),
        ("financialInstitutionName", "Name of the bank or financial institution (string or null)"),
        ("accountType", 'One of "checking", "savings", "money_market" (string or null)'),
        ("accountNumberLast4", "Last 4 digits of account number (string or null)"),
        ("statementStartDate", "Statement period start date in YYYY-MM-DD format (string or null)"),
        ("statementEndDate", "Statement period end date in YYYY-MM-DD format (string or null)"),
        ("beginningBalance", "Account balance at start of period (number or null)"),
        ("endingBalance", "Account balance at end of period (number or null)"),
        ("totalDeposits", "Total deposits during period (number or null)"),
        ("totalWithdrawals", "Total withdrawals during period (number or null)"),
    ]),
    "taxReturn": ("TAX RETURN (Form 1040)", [
        ("taxYear", "Tax year, e.g. 2024 (number or null)"),
        ("filingStatus", 'One of "single", "married_joint", "married_separate", "head_of_household" (string or null)'),
        ("taxpayerName", "Full name of primary taxpayer (string or null)"),
        ("spouseName", "Full name of spouse if joint return (string or null)"),
        ("adjustedGrossIncome", "Adjusted Gross Income (number or null)"),
        ("totalIncome", "Total income before adjustments (number or null)"),
        ("wages", "Wages, salaries, tips from W-2 forms (number or null)"),
        ("interestIncome", "Interest income (number or null)"),
        ("dividendIncome", "Dividend income (number or null)"),
        ("businessIncome", "Business income or loss from Schedule C (number or null, can be negative)"),
        ("totalTax", "Total tax owed (number or null)"),
        ("refundOrAmountOwed", "Refund (positive) or amount owed (negative) (number or null)"),
    ]),
}

# Fields the pipeline derives itself and lets through the closed-list filter.
DERIVED_FIELDS = ("annualIncome", "monthlyIncome")


def supported_document_types() -> List[str]:
    return list(PROMPT_FIELDS)


def truncate_text(text: str, max_chars: Optional[int] = None) -> str:
    """Keep the head of ``text`` up to ``max_chars`` and append a truncation marker."""
    max_chars = max_chars or settings.llm_max_input_chars
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def build_prompt(document_type: str, text: str, max_chars: Optional[int] = None) -> str:
    if document_type not in PROMPT_FIELDS:
        raise InputError(f"Unsupported document type for LLM extraction: {document_type}")

    title, fields = PROMPT_FIELDS[document_type]
    field_lines = "\n".join(f"- {name}: {description}" for name, description in fields)
    skeleton = json.dumps({name: None for name, _ in fields}, indent=2)

    return (
        f"You are extracting structured data from a {title} document.\n\n"
        f"Extract the following fields from the OCR text below and return ONLY valid JSON "
        f"(no markdown, no code blocks, just pure JSON):\n\n"
        f"Required fields:\n{field_lines}\n\n"
        f"OCR Text:\n{truncate_text(text, max_chars)}\n\n"
        f"Return JSON with exactly these keys (use null for missing fields):\n{skeleton}"
    )


def _first_json_object(text: str) -> Optional[str]:
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False
    for i in range(start, len(text)):
        char = text[i]
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def parse_llm_response(response: str) -> Dict[str, Any]:
    """Parse a model response into a dict, tolerating code fences and surrounding prose."""
    cleaned = response.strip()
    cleaned = re.sub(r"^```(?:json)?\s*", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"\s*```$", "", cleaned)

    candidate = _first_json_object(cleaned)
    if candidate is None:
        logger.error(f"No JSON object in LLM response: {response[:500]}")
        raise ExtractionError("Invalid JSON response from LLM")

    try:
        result = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse LLM JSON response: {e}")
        raise ExtractionError("Invalid JSON response from LLM") from e

    if not isinstance(result, dict):
        raise ExtractionError("Invalid JSON response from LLM")
    return result


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


def estimate_cost(model: str, prompt: str, response: str) -> float:
    input_price, output_price = settings.get_model_pricing(model)
    return (estimate_tokens(prompt) / 1_000_000) * input_price + (estimate_tokens(response) / 1_000_000) * output_price


class LLMUsageTracker:
    """Bounded in-memory history of LLM calls with cost estimates."""

    def __init__(self, history_limit: Optional[int] = None):
        self.history_limit = history_limit or settings.llm_usage_history_limit
        self._entries: Deque[LLMUsageEntry] = deque(maxlen=self.history_limit)

    def record(self, document_type: str, model: str, prompt: str, response: str) -> LLMUsageEntry:
        entry = LLMUsageEntry(
            timestamp=datetime.utcnow(),
            document_type=document_type,
            model=model,
            input_chars=len(prompt),
            output_chars=len(response),
            input_tokens=estimate_tokens(prompt),
            output_tokens=estimate_tokens(response),
            estimated_cost=estimate_cost(model, prompt, response),
        )
        self._entries.append(entry)
        logger.info(
            f"LLM usage recorded: type={document_type}, model={model}, "
            f"tokens={entry.input_tokens}/{entry.output_tokens}, cost=${entry.estimated_cost:.6f}"
        )
        return entry

    def entries(self) -> List[LLMUsageEntry]:
        return list(self._entries)

    def stats(self) -> LLMUsageStats:
        by_document_type: Dict[str, Dict[str, float]] = {}
        for entry in self._entries:
            bucket = by_document_type.setdefault(entry.document_type, {"calls": 0, "cost": 0.0})
            bucket["calls"] += 1
            bucket["cost"] += entry.estimated_cost

        return LLMUsageStats(
            total_calls=len(self._entries),
            total_cost=sum(entry.estimated_cost for entry in self._entries),
            by_document_type=by_document_type,
        )

    def clear(self) -> None:
        self._entries.clear()


class LLMExtractor:
    def __init__(self, llm_client: LLMClient, usage_tracker: Optional[LLMUsageTracker] = None):
        self.llm_client = llm_client
        self.usage_tracker = usage_tracker or LLMUsageTracker()

    async def extract(self, text: str, document_type: str) -> Dict[str, Any]:
        """Run one LLM extraction call.

        Raises InputError for unsupported types or empty text, ExtractionError
        for unparseable responses. LLMClientError propagates from the client.
        """
        if not text or not text.strip():
            raise InputError("OCR text is empty")

        prompt = build_prompt(document_type, text)
        logger.info(f"LLM extraction for {document_type} ({len(text)} chars, model {self.llm_client.model})")

        response = await self.llm_client.generate(prompt, system_prompt=SYSTEM_PROMPT)
        if not response or not response.strip():
            raise ExtractionError("Empty response from LLM")

        self.usage_tracker.record(document_type, self.llm_client.model, prompt, response)

        allowed = {name for name, _ in PROMPT_FIELDS[document_type][1]}
        parsed = parse_llm_response(response)
        dropped = sorted(key for key in parsed if key not in allowed)
        if dropped:
            logger.debug(f"Dropping LLM keys outside the field list: {dropped}")

        data = {key: value for key, value in parsed.items() if key in allowed}
        for key, value in list(data.items()):
            if isinstance(value, str) and value.strip().lower() in ("", "null", "none", "n/a"):
                data[key] = None

        if document_type == "payStub":
            derive_income_fields(data)

        extracted = sum(1 for value in data.values() if value is not None)
        logger.info(f"LLM extraction complete for {document_type}: {extracted}/{len(allowed)} fields")
        return {key: value for key, value in data.items() if key in allowed or key in DERIVED_FIELDS}
