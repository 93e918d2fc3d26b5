"""Label-anchored field extraction for each supported document type.

Every parser takes raw OCR/text-layer output and returns a candidate field map.
Fields are matched by the first hitting pattern in an ordered list of label
synonyms. A miss leaves the field out of the map; parsers never raise for
absent data.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

AMOUNT = r"\$?[ \t]*(\d[\d,]*(?:\.\d+)?)"
DATE = r"(\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}|[A-Z][a-z]{2,8}\.?[ \t]+\d{1,2},?[ \t]+\d{4})"
SSN = r"(\d{3}[-. ]?\d{2}[-. ]?\d{4})"
RANGE_SEPARATOR = r"(?:to|thru|through|-|–)"

# Any 9-digit SSN-shaped run, with a consistent separator (zip+4 codes do not match).
SSN_TOKEN = re.compile(r"(?<![\d\-])\d{3}([-. ]?)\d{2}\1\d{4}(?![\d\-])")
SSN_BOUNDARY = re.compile(
    r"\b(?:SSN|S\.S\.N\.?|social[ \t]+security[ \t]+(?:no\.?|number|#))(?!\w)"
    r"|(?<![\d\-])\d{3}([-. ]?)\d{2}\1\d{4}(?![\d\-])",
    re.IGNORECASE,
)
# An SSN-shaped run together with any label directly in front of it.
SSN_VALUE = re.compile(
    r"(?:\b(?:SSN|S\.S\.N\.?|social[ \t]+security(?:[ \t]+(?:no\.?|number|#))?)[\s:#]*)?"
    r"(?<![\d\-])\d{3}([-. ]?)\d{2}\1\d{4}(?![\d\-])",
    re.IGNORECASE,
)

PAY_FREQUENCY_MULTIPLIERS = {
    "weekly": 52,
    "biweekly": 26,
    "monthly": 12,
    "yearly": 1,
}

MAX_REASONABLE_INCOME = 10_000_000

FLAGS = re.IGNORECASE | re.MULTILINE

# A bare EMPLOYER/EMPLOYEE/COMPANY label must not claim a sibling line such as "Employer ID".
NOT_SIBLING_LABEL = r"(?![ \t]*(?:(?:ID|ADDRESS|ADDR|NUMBER|NO|EIN|CODE|IDENTIFICATION)\b|I\.D\.|#))"


# Value helpers

def parse_amount(value: Any) -> Optional[float]:
    """Parse '$4,000.00' style money into a float. Returns None when unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = re.sub(r"[$,\s]", "", str(value))
    negative = cleaned.startswith("(") and cleaned.endswith(")")
    cleaned = cleaned.strip("()")
    try:
        amount = float(cleaned)
    except ValueError:
        return None
    return -amount if negative else amount


def normalize_date(value: Any) -> Optional[str]:
    """Normalize MM/DD/YYYY (or 'June 5, 2010') to YYYY-MM-DD.

    Values that are not unambiguous calendar dates are returned stripped but
    otherwise untouched.
    """
    if value is None:
        return None
    value_str = str(value).strip()
    if not value_str:
        return None

    if re.fullmatch(r"\d{4}-\d{2}-\d{2}", value_str):
        return value_str

    match = re.fullmatch(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})", value_str)
    if match:
        month, day, year = (int(g) for g in match.groups())
        try:
            return date(year, month, day).isoformat()
        except ValueError:
            return value_str

    for fmt in ("%B %d, %Y", "%B %d %Y", "%b %d, %Y", "%b %d %Y", "%b. %d, %Y"):
        try:
            return datetime.strptime(value_str, fmt).date().isoformat()
        except ValueError:
            continue
    return value_str


def infer_pay_frequency(start: Optional[str], end: Optional[str]) -> Optional[str]:
    """Infer pay frequency from an ISO period span, counting both end days."""
    if not start or not end:
        return None
    try:
        start_date = date.fromisoformat(start)
        end_date = date.fromisoformat(end)
    except ValueError:
        return None

    days = (end_date - start_date).days + 1
    if days <= 0:
        return None
    if days <= 7:
        return "weekly"
    if days <= 14:
        return "biweekly"
    if days <= 31:
        return "monthly"
    return "yearly"


def annualize(amount: Optional[float], frequency: Optional[str]) -> Optional[float]:
    multiplier = PAY_FREQUENCY_MULTIPLIERS.get(frequency or "")
    if amount is None or multiplier is None:
        return None
    return round(amount * multiplier, 2)


def derive_income_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Fill payFrequency, annualIncome and monthlyIncome from pay-period data.

    Direct values already present in ``data`` are kept. Shared by the regex
    parsers and the LLM extractor so both produce the same derived keys.
    """
    if not data.get("payFrequency"):
        frequency = infer_pay_frequency(
            normalize_date(data.get("payPeriodStart")),
            normalize_date(data.get("payPeriodEnd")),
        )
        if frequency:
            data["payFrequency"] = frequency

    gross = parse_amount(data.get("grossPay"))
    if gross is None:
        gross = parse_amount(data.get("grossIncomeCurrent"))
    if gross is None:
        return data

    annual = annualize(gross, data.get("payFrequency"))
    if annual is not None:
        if data.get("annualIncome") is None:
            data["annualIncome"] = annual
        if data.get("monthlyIncome") is None:
            data["monthlyIncome"] = round(annual / 12, 2)
    return data


# Pattern helpers

def _clean_value(value: str) -> str:
    # OCR'd forms put neighbouring columns on the same line; keep the first cell.
    value = re.split(r"[ \t]{2,}|\t", value.strip())[0]
    # A text capture ends where an SSN label or an SSN-shaped token begins.
    value = SSN_BOUNDARY.split(value, maxsplit=1)[0]
    return value.strip(" \t:;,-")


def _label_value_pattern(label: str) -> str:
    return rf"\b(?:{label})(?!\w)[ \t]*[:#\-]?[ \t]*([^\n]*\S)"


def first_match(text: str, patterns: Iterable[str], flags: int = FLAGS) -> Optional[re.Match]:
    """Return the match of the first pattern (in priority order) that hits."""
    for pattern in patterns:
        match = re.search(pattern, text, flags)
        if match:
            return match
    return None


def match_text(text: str, labels: Iterable[str]) -> Optional[str]:
    for label in labels:
        match = re.search(_label_value_pattern(label), text, FLAGS)
        if match:
            value = _clean_value(match.group(1))
            if value:
                return value
    return None


def match_amount(
    text: str,
    labels: Iterable[str],
    upper: float = MAX_REASONABLE_INCOME,
    skip_line_number: bool = False,
) -> Optional[float]:
    # Form lines repeat their line number beside the amount ("... W-2  1  52,000").
    line_number = r"(?:\d{1,2}[a-z]?[ \t]+(?=\$?[ \t]*\d))?" if skip_line_number else ""
    for label in labels:
        match = re.search(rf"\b(?:{label})(?!\w)[\s:$.]*{line_number}{AMOUNT}", text, FLAGS)
        if match:
            amount = parse_amount(match.group(1))
            if amount is not None and 0 <= amount < upper:
                return amount
    return None


def match_date(text: str, labels: Iterable[str]) -> Optional[str]:
    for label in labels:
        match = re.search(rf"\b(?:{label})(?!\w)[\s:]*{DATE}", text, FLAGS)
        if match:
            return normalize_date(match.group(1))
    return None


def match_date_range(text: str, labels: Iterable[str]) -> Tuple[Optional[str], Optional[str]]:
    for label in labels:
        match = re.search(rf"\b(?:{label})(?!\w)[\s:]*{DATE}\s*{RANGE_SEPARATOR}\s*{DATE}", text, FLAGS)
        if match:
            return normalize_date(match.group(1)), normalize_date(match.group(2))
    return None, None


def sum_keyword_amounts(text: str, keywords: Iterable[str], upper: float) -> Optional[float]:
    """Sum every amount that directly follows one of the keywords."""
    alternation = "|".join(sorted(keywords, key=len, reverse=True))
    total = 0.0
    for match in re.finditer(rf"\b(?:{alternation})\b[\s:$]*{AMOUNT}", text, re.IGNORECASE):
        amount = parse_amount(match.group(1))
        if amount is not None and 0 < amount < upper:
            total += amount
    return round(total, 2) if total > 0 else None


def split_name(full_name: str) -> Dict[str, str]:
    """Split 'First Middle Last' or 'Last, First Middle' into name parts."""
    full_name = re.sub(r"\s+", " ", full_name).strip(" ,")
    if "," in full_name:
        last, _, rest = full_name.partition(",")
        parts = rest.split()
        result = {"lastName": last.strip()}
        if parts:
            result["firstName"] = parts[0]
        if len(parts) > 1:
            result["middleName"] = " ".join(parts[1:])
        return result

    parts = full_name.split()
    if not parts:
        return {}
    if len(parts) == 1:
        return {"firstName": parts[0]}
    result = {"firstName": parts[0], "lastName": parts[-1]}
    if len(parts) > 2:
        result["middleName"] = " ".join(parts[1:-1])
    return result


def _set(data: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None and value != "" and value != []:
        data[key] = value


def _dedupe(values: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        key = value.upper()
        if key not in seen:
            seen.add(key)
            result.append(value)
    return result


# Driver's license

def parse_drivers_license(text: str) -> Dict[str, Any]:
    data: Dict[str, Any] = {}

    name = match_text(text, [r"FULL[ \t]+NAME", r"NAME"])
    if name:
        data["name"] = name
        data.update(split_name(name))
    else:
        last = first_match(text, [r"\bLN\b[ \t:]*([A-Z][A-Za-z'\-]+)"])
        first = first_match(text, [r"\bFN\b[ \t:]*([A-Z][A-Za-z'\-]+(?:[ \t]+[A-Z][A-Za-z'\-]*)*)"])
        if first:
            data.update(split_name(first.group(1)))
            data.pop("lastName", None)
        if last:
            data["lastName"] = last.group(1)
        if first or last:
            data["name"] = " ".join(p for p in (data.get("firstName"), data.get("middleName"), data.get("lastName")) if p)

    _set(data, "dateOfBirth", match_date(text, [r"DOB", r"DATE[ \t]+OF[ \t]+BIRTH", r"BIRTH[ \t]*DATE"]))

    address: Dict[str, str] = {}
    street = first_match(text, [r"\b(?:ADDRESS|ADDR)\b[ \t]*[:\-]?[ \t]*(\d+[ \t]+[^\n]*\S)"])
    if street:
        address["street"] = _clean_value(street.group(1))
    city_line = re.search(r"^[ \t]*([A-Za-z][A-Za-z .'\-]+),[ \t]*([A-Z]{2})[ \t]+(\d{5}(?:-\d{4})?)\b", text, re.MULTILINE)
    if city_line:
        address["city"] = city_line.group(1).strip()
        address["state"] = city_line.group(2)
        address["zipCode"] = city_line.group(3)
    if address:
        data["address"] = address

    license_number = first_match(text, [
        r"\b(?:DLN|DL[ \t]*NO\.?|DL[ \t]*#|LICENSE[ \t]+(?:NO\.?|NUMBER|#)|LIC[ \t]*#)[ \t:]*([A-Z0-9][A-Z0-9\-]{4,14})\b",
        r"\bDL\b[ \t:]*([A-Z0-9][A-Z0-9\-]{4,14})\b",
    ])
    if license_number and re.search(r"\d", license_number.group(1)):
        data["driverLicenseNumber"] = license_number.group(1).upper()

    state = first_match(text, [r"\b(?:ISSUING[ \t]+STATE|STATE)\b[ \t]*:[ \t]*([A-Z]{2})\b"])
    if state:
        data["driverLicenseState"] = state.group(1).upper()
    elif address.get("state"):
        data["driverLicenseState"] = address["state"]

    return data


# Tax return (Form 1040 and schedules)

FILING_STATUS_OPTIONS = (
    ("married_joint", r"married[ \t]+filing[ \t]+jointly"),
    ("married_separate", r"married[ \t]+filing[ \t]+separately"),
    ("head_of_household", r"head[ \t]+of[ \t]+household"),
    ("single", r"single"),
)
CHECK_MARK = r"(?:[✓✔☑☒■]|\[[ \t]*[xX][ \t]*\]|\bX\b)"

EMPLOYER_STOPWORDS = {
    "ID", "NUMBER", "WITHHELD", "PAID", "ADDITIONAL", "MEDICARE", "TAX", "FORM", "SCHEDULE",
    "LINE", "IRS", "INTERNAL", "REVENUE", "SERVICE", "DEPARTMENT", "TREASURY", "WAGES", "W",
    "ADDRESS", "AND", "ZIP", "CODE", "EIN", "FEDERAL", "STATE", "SOCIAL", "SECURITY",
}

CHILD_RELATIONSHIPS = {
    "SON", "DAUGHTER", "CHILD", "STEPSON", "STEPDAUGHTER", "STEPCHILD",
    "FOSTER CHILD", "GRANDCHILD", "NEPHEW", "NIECE",
}

COMPACT_NAME_SSN = (
    r"\b((?!SSN\b)[A-Z]{2,}(?:[ \t]+(?!SSN\b)[A-Z]{2,})+)[ \t]+(?:SSN[ \t:#]*)?(\d{3}[-. ]?\d{2}[-. ]?\d{4})\b"
)

STREET_SUFFIXES = (
    "STREET|ST|AVENUE|AVE|ROAD|RD|LANE|LN|DRIVE|DR|BOULEVARD|BLVD|COURT|CT|WAY|PLACE|PL|CIRCLE|CIR|TERRACE|TER|HIGHWAY|HWY"
)

# Street numbers never start inside a longer digit run such as the tail of an SSN.
COMPACT_ADDRESS_PATTERNS = (
    rf"(?<![\d\-.])\b(\d{{1,5}}[ \t]+[A-Z0-9 .#]*?\b(?:{STREET_SUFFIXES})\.?)[ \t]+([A-Z][A-Z ]*?),[ \t]+([A-Z]{{2}})[ \t]+(\d{{5}}(?:-\d{{4}})?)\b",
    r"(?<![\d\-.])\b(\d{1,5}[ \t]+[A-Z0-9 .#]+?)[ \t]+([A-Z][A-Z ]+),[ \t]+([A-Z]{2})[ \t]+(\d{5}(?:-\d{4})?)\b",
)


def _on_spouse_line(text: str, position: int) -> bool:
    line_start = text.rfind("\n", 0, position) + 1
    return "spouse" in text[line_start:position].lower()


def _compact_address(text: str) -> Optional[Dict[str, str]]:
    for pattern in COMPACT_ADDRESS_PATTERNS:
        for match in re.finditer(pattern, text):
            street = match.group(1).strip()
            if SSN_TOKEN.search(street):
                continue
            return {
                "street": street,
                "city": match.group(2).strip(),
                "state": match.group(3),
                "zipCode": match.group(4),
            }
    return None


def _ssn_last4(raw: str) -> Optional[str]:
    digits = re.sub(r"\D", "", raw)
    return digits[-4:] if len(digits) == 9 else None


def _filing_status(text: str) -> Optional[str]:
    labelled = first_match(text, [r"\bfiling[ \t]+status\b[ \t]*:[ \t]*([^\n]+)"])
    if labelled:
        value = labelled.group(1)
        for code, phrase in FILING_STATUS_OPTIONS:
            if re.search(phrase, value, re.IGNORECASE):
                return code

    for code, phrase in FILING_STATUS_OPTIONS:
        if re.search(rf"{CHECK_MARK}[ \t]*{phrase}|{phrase}[ \t]*{CHECK_MARK}", text, re.IGNORECASE):
            return code
    return None


def _tax_employers(text: str) -> List[Dict[str, Any]]:
    names = []
    pattern = (
        r"(?i:employer'?s[ \t]+name)(?i:,?[ \t]*address,?[ \t]*and[ \t]*zip[ \t]*code)?"
        r"[ \t]*:?[ \t]*\n?[ \t]*([A-Za-z][A-Za-z0-9 ,&.'\-]{2,60})"
    )
    for match in re.finditer(pattern, text):
        name = _clean_value(match.group(1))
        if len(name) < 3 or name.upper() in EMPLOYER_STOPWORDS:
            continue
        if re.match(r"(?i)(employer|employee|control|federal|state)\b", name):
            continue
        names.append(name)
    return [{"name": name, "incomeType": "wages"} for name in _dedupe(names)]


def parse_tax_return(text: str) -> Dict[str, Any]:
    data: Dict[str, Any] = {}

    name_block = first_match(text, [
        r"(?i:your[ \t]+first[ \t]+name[ \t]+and[ \t]+middle[ \t]+initial)[\s:]*"
        r"([A-Za-z][A-Za-z.'\-]*(?:[ \t]+[A-Za-z][A-Za-z.'\-]*)*?)\s+(?i:last[ \t]+name)[\s:]*([A-Za-z][A-Za-z'\-]*)",
    ], flags=0)
    if name_block:
        first_middle = name_block.group(1).split()
        data["firstName"] = first_middle[0]
        if len(first_middle) > 1:
            data["middleName"] = " ".join(first_middle[1:])
        data["lastName"] = name_block.group(2).strip()
    else:
        first = match_text(text, [r"FIRST[ \t]+NAME"])
        last = match_text(text, [r"LAST[ \t]+NAME"])
        if first:
            parts = first.split()
            data["firstName"] = parts[0]
            if len(parts) > 1:
                data["middleName"] = " ".join(parts[1:])
        if last:
            data["lastName"] = last
        if not first and not last:
            taxpayer = match_text(text, [r"TAXPAYER(?:'S)?[ \t]+NAME"])
            if taxpayer:
                data.update(split_name(taxpayer))

    for ssn in re.finditer(
        rf"\b(?:your[ \t]+social[ \t]+security[ \t]+number|social[ \t]+security[ \t]+number|SSN)\b[\s:#]*{SSN}", text, FLAGS
    ):
        if not _on_spouse_line(text, ssn.start()):
            _set(data, "ssnLast4", _ssn_last4(ssn.group(1)))
            break

    _set(data, "filingStatus", _filing_status(text))

    address: Dict[str, str] = {}
    street = first_match(text, [
        r"home[ \t]+address[ \t]*\(number[ \t]+and[ \t]+street\)[\s:]*(\d+[ \t]+[^\n]*?)(?=[ \t]+apt\.?[ \t]+no|[ \t]{2,}|$)",
        r"\bADDRESS\b[ \t]*:[ \t]*(\d+[ \t]+[^\n]*\S)",
    ])
    if street:
        address["street"] = _clean_value(street.group(1))
    city = first_match(text, [r"city,[ \t]+town,?[ \t]+or[ \t]+post[ \t]+office[\s:]*([A-Za-z][A-Za-z .'\-]*?)(?=[ \t]{2,}|[ \t]+state\b|$)"])
    if city:
        address["city"] = city.group(1).strip()
    state = re.search(r"(?i:\bstate\b)[\s:]*([A-Z]{2})\s+(?i:zip)", text)
    if state:
        address["state"] = state.group(1)
    zip_code = first_match(text, [r"\bZIP[ \t]+code\b[\s:]*(\d{5}(?:-\d{4})?)"])
    if zip_code:
        address["zipCode"] = zip_code.group(1)

    spouse_block = first_match(text, [
        r"(?i:spouse'?s[ \t]+first[ \t]+name[ \t]+and[ \t]+middle[ \t]+initial)[\s:]*"
        r"([A-Za-z][A-Za-z.'\-]*(?:[ \t]+[A-Za-z][A-Za-z.'\-]*)*?)\s+(?i:last[ \t]+name)[\s:]*([A-Za-z][A-Za-z'\-]*)",
    ], flags=0)
    if spouse_block:
        data["spouseName"] = f"{spouse_block.group(1).strip()} {spouse_block.group(2).strip()}"
    else:
        _set(data, "spouseName", match_text(text, [r"SPOUSE(?:'S)?[ \t]+NAME"]))

    dependents = []
    seen = set()
    for match in re.finditer(
        rf"(?i:dependent|child)(?i:'s)?(?:[ \t]+(?i:name))?[\s:]*([A-Z][A-Za-z'\-]+(?:[ \t]+[A-Z][A-Za-z'\-]+)*)[\s,]*(?i:dob|date[ \t]+of[ \t]+birth)[\s:]*{DATE}",
        text,
    ):
        name = match.group(1).strip()
        if name.upper() not in seen:
            seen.add(name.upper())
            dependents.append({"name": name, "dateOfBirth": normalize_date(match.group(2))})

    wage = match_amount(text, [
        r"wages,?[ \t]+salaries,?[ \t]+tips,?[ \t]+etc\.?(?:[ \t]+attach[ \t]+form\(s\)[ \t]+W-2)?",
        r"total[ \t]+amount[ \t]+from[ \t]+form\(s\)[ \t]+W-2,?[ \t]+box[ \t]+1",
    ], skip_line_number=True)
    total = match_amount(
        text, [r"this[ \t]+is[ \t]+your[ \t]+total[ \t]+income", r"total[ \t]+income"], skip_line_number=True
    )
    agi = match_amount(
        text,
        [r"this[ \t]+is[ \t]+your[ \t]+adjusted[ \t]+gross[ \t]+income", r"adjusted[ \t]+gross[ \t]+income"],
        skip_line_number=True,
    )
    _set(data, "wageIncome", wage)
    _set(data, "totalIncome", total)
    _set(data, "adjustedGrossIncome", agi)
    for value in (agi, total, wage):
        if value:
            data["annualIncome"] = value
            break

    _set(data, "selfEmploymentIncome", match_amount(text, [
        r"schedule[ \t]+C[\s:]*net[ \t]+profit[ \t]+or[ \t]+\(loss\)",
        r"business[ \t]+income[ \t]+or[ \t]+\(loss\)",
    ], skip_line_number=True))
    _set(data, "rentalIncome", match_amount(text, [
        r"schedule[ \t]+E[\s:]*total[ \t]+rental[ \t]+real[ \t]+estate[ \t]+and[ \t]+royalty[ \t]+income[ \t]+or[ \t]+\(loss\)",
        r"rental[ \t]+real[ \t]+estate,[ \t]+royalties",
    ], skip_line_number=True))
    _set(data, "interestIncome", match_amount(text, [r"taxable[ \t]+interest"], skip_line_number=True))
    _set(data, "dividendIncome", match_amount(text, [r"ordinary[ \t]+dividends"], skip_line_number=True))

    tax_year = first_match(text, [r"\btax[ \t]+year\b[\s:]*((?:19|20)\d{2})\b", r"\bform[ \t]+1040\b[^\n]*?\b((?:19|20)\d{2})\b"])
    if tax_year:
        data["taxYear"] = int(tax_year.group(1))

    employers = _tax_employers(text)
    if employers:
        data["employers"] = employers

    # Compact layouts: OCR of filled forms often collapses to "NAME SSN NAME SSN ADDRESS ..."
    name_ssn_pairs = list(re.finditer(COMPACT_NAME_SSN, text))
    taxpayer_pair = next((m for m in name_ssn_pairs if not _on_spouse_line(text, m.start())), None)
    if taxpayer_pair and not (data.get("firstName") and data.get("lastName")):
        data.update(split_name(taxpayer_pair.group(1)))
        if "ssnLast4" not in data:
            _set(data, "ssnLast4", _ssn_last4(taxpayer_pair.group(2)))
    other_pairs = [m for m in name_ssn_pairs if m is not taxpayer_pair]
    if other_pairs and not data.get("spouseName"):
        data["spouseName"] = other_pairs[0].group(1).strip()

    if not address.get("street"):
        address = _compact_address(text) or address
    if address:
        data["address"] = address

    if not dependents:
        known = {n.upper() for n in (data.get("spouseName"),) if n}
        known.add(" ".join(p for p in (data.get("firstName"), data.get("lastName")) if p).upper())
        relationships = "|".join(sorted(CHILD_RELATIONSHIPS, key=len, reverse=True))
        for match in re.finditer(rf"{COMPACT_NAME_SSN}[ \t]+({relationships})\b", text):
            name = match.group(1).strip()
            if name.upper() not in known:
                known.add(name.upper())
                dependents.append({"name": name, "relationship": match.group(3).lower()})
    if dependents:
        data["dependents"] = dependents

    if data.get("firstName") or data.get("lastName"):
        data["taxpayerName"] = " ".join(p for p in (data.get("firstName"), data.get("middleName"), data.get("lastName")) if p)

    return data


# Pay stub

def parse_pay_stub(text: str) -> Dict[str, Any]:
    data: Dict[str, Any] = {}

    employer = match_text(
        text, [r"EMPLOYER(?:'S)?[ \t]+NAME", rf"EMPLOYER{NOT_SIBLING_LABEL}", r"COMPANY[ \t]+NAME", rf"COMPANY{NOT_SIBLING_LABEL}"]
    )
    _set(data, "employerName", employer)
    _set(data, "employeeFullName", match_text(text, [r"EMPLOYEE(?:'S)?[ \t]+NAME", rf"EMPLOYEE{NOT_SIBLING_LABEL}"]))
    _set(data, "employerAddress", match_text(text, [r"EMPLOYER[ \t]+ADDRESS", r"COMPANY[ \t]+ADDRESS"]))

    start, end = match_date_range(text, [r"PAY[ \t]+PERIOD", r"PERIOD"])
    if not start:
        start = match_date(text, [r"PERIOD[ \t]+(?:START|BEGINNING|BEGIN)(?:[ \t]+DATE)?"])
        end = match_date(text, [r"PERIOD[ \t]+(?:END|ENDING)(?:[ \t]+DATE)?"])
    _set(data, "payPeriodStart", start)
    _set(data, "payPeriodEnd", end)
    _set(data, "payDate", match_date(text, [r"PAY[ \t]+DATE", r"CHECK[ \t]+DATE"]))

    explicit_frequency = first_match(text, [r"\bPAY[ \t]+FREQUENCY\b[ \t]*:?[ \t]*(weekly|bi-?weekly|semi-?monthly|monthly|annual(?:ly)?)"])
    if explicit_frequency:
        value = explicit_frequency.group(1).lower().replace("-", "")
        data["payFrequency"] = {"annual": "yearly", "annually": "yearly", "semimonthly": "monthly"}.get(value, value)

    gross = match_amount(text, [r"GROSS[ \t]+PAY", r"GROSS[ \t]+EARNINGS", r"TOTAL[ \t]+GROSS", r"GROSS"])
    if gross is not None:
        data["grossPay"] = gross
        data["wageIncome"] = gross
    _set(data, "grossIncomeYTD", match_amount(text, [r"(?:GROSS[ \t]+)?YTD[ \t]+GROSS", r"GROSS[ \t]+YTD", r"YEAR[ \t]+TO[ \t]+DATE[ \t]+GROSS"]))

    derive_income_fields(data)

    if employer:
        employer_entry: Dict[str, Any] = {"name": employer, "incomeType": "wages"}
        if data.get("annualIncome") is not None:
            employer_entry["income"] = data["annualIncome"]
        data["employers"] = [employer_entry]

    _set(data, "overtime", match_amount(text, [r"OVERTIME", r"OT"]))
    _set(data, "bonuses", match_amount(text, [r"BONUSES", r"BONUS"]))
    _set(data, "healthInsurance", match_amount(text, [r"HEALTH[ \t]+INSURANCE", r"MEDICAL", r"HEALTH"], upper=100_000))
    _set(data, "dentalInsurance", match_amount(text, [r"DENTAL[ \t]+INSURANCE", r"DENTAL"], upper=100_000))
    if data.get("healthInsurance") or data.get("dentalInsurance"):
        data["insurancePremiums"] = round((data.get("healthInsurance") or 0) + (data.get("dentalInsurance") or 0), 2)

    _set(data, "federalTaxWithheld", match_amount(text, [r"FEDERAL[ \t]+(?:INCOME[ \t]+)?TAX", r"FED[ \t]+WITHHOLDING", r"FEDERAL[ \t]+W/H"]))
    _set(data, "stateTaxWithheld", match_amount(text, [r"STATE[ \t]+(?:INCOME[ \t]+)?TAX", r"STATE[ \t]+W/H"]))
    _set(data, "socialSecurityTax", match_amount(text, [r"SOCIAL[ \t]+SECURITY(?:[ \t]+TAX)?", r"OASDI", r"FICA"]))
    _set(data, "medicareTax", match_amount(text, [r"MEDICARE(?:[ \t]+TAX)?"]))
    _set(data, "retirementDeduction", match_amount(text, [r"401\(?K\)?", r"RETIREMENT"]))
    _set(data, "payrollDeductions", match_amount(text, [r"TOTAL[ \t]+DEDUCTIONS", r"DEDUCTIONS[ \t]+TOTAL", r"TOTAL[ \t]+DED"]))
    _set(data, "netPay", match_amount(text, [r"NET[ \t]+PAY", r"TAKE[ \t]+HOME", r"NET"]))

    return data


# Bank statement

HOUSING_KEYWORDS = ("rent", "mortgage", "housing", "lease", "apartment", "hoa")
UTILITY_KEYWORDS = ("electric", "electricity", "power", "water", "sewer", "internet", "cable", "utility", "utilities", "phone bill")
CHILDCARE_KEYWORDS = ("childcare", "child care", "daycare", "day care", "babysitter", "nanny", "preschool")
DEBT_KEYWORDS = ("credit card", "loan payment", "student loan", "minimum payment", "visa", "mastercard", "amex", "loan")
TRANSPORT_KEYWORDS = ("gas", "gasoline", "fuel", "car payment", "auto", "vehicle", "transportation", "uber", "lyft", "transit")
PAYROLL_KEYWORDS = ("payroll", "salary", "direct deposit", "dir dep", "paycheck", "wages")


def parse_bank_statement(text: str) -> Dict[str, Any]:
    data: Dict[str, Any] = {}

    bank_name = match_text(text, [r"BANK[ \t]+NAME", r"FINANCIAL[ \t]+INSTITUTION"])
    if not bank_name:
        for header in re.finditer(
            r"^[ \t]*([A-Z][A-Za-z&.,' ]*?\b(?:Bank|BANK|Credit[ \t]+Union|CREDIT[ \t]+UNION)\b[A-Za-z&.,' ]*?)[ \t]*$",
            text,
            re.MULTILINE,
        ):
            if not re.search(r"statement", header.group(1), re.IGNORECASE):
                bank_name = header.group(1).strip()
                break
    _set(data, "bankName", bank_name)

    _set(data, "accountHolder", match_text(text, [r"ACCOUNT[ \t]+HOLDER", r"ACCOUNT[ \t]+OWNER", r"CUSTOMER[ \t]+NAME"]))

    account = first_match(text, [r"\b(?:ACCOUNT[ \t]+(?:NUMBER|NO\.?|#)|ACCT[ \t]*(?:#|NO\.?|NUMBER))[ \t:]*([X*\d][X*\d\-]{2,24}(?:[ ][X*\d\-]{4,})*)"])
    if account:
        digits = re.sub(r"\D", "", account.group(1))
        if len(digits) >= 4:
            data["accountNumberLast4"] = digits[-4:]

    _set(data, "accountType", match_text(text, [r"ACCOUNT[ \t]+TYPE"]))
    _set(data, "beginningBalance", match_amount(text, [r"BEGINNING[ \t]+BALANCE", r"OPENING[ \t]+BALANCE", r"PREVIOUS[ \t]+BALANCE"]))
    _set(data, "balance", match_amount(text, [
        r"ENDING[ \t]+BALANCE", r"CLOSING[ \t]+BALANCE", r"NEW[ \t]+BALANCE", r"CURRENT[ \t]+BALANCE", r"BALANCE",
    ]))
    _set(data, "totalDeposits", match_amount(text, [r"TOTAL[ \t]+DEPOSITS(?:[ \t]+AND[ \t]+(?:OTHER[ \t]+)?CREDITS)?", r"DEPOSITS[ \t]+AND[ \t]+CREDITS"]))
    _set(data, "totalWithdrawals", match_amount(text, [r"TOTAL[ \t]+WITHDRAWALS(?:[ \t]+AND[ \t]+(?:OTHER[ \t]+)?DEBITS)?", r"WITHDRAWALS[ \t]+AND[ \t]+DEBITS"]))

    start, end = match_date_range(text, [r"STATEMENT[ \t]+PERIOD", r"PERIOD"])
    _set(data, "statementStartDate", start)
    _set(data, "statementEndDate", end)

    expenses: Dict[str, float] = {}
    for category, keywords, upper in (
        ("housing", HOUSING_KEYWORDS, 100_000),
        ("utilities", UTILITY_KEYWORDS, 10_000),
        ("childcare", CHILDCARE_KEYWORDS, 50_000),
        ("debt", DEBT_KEYWORDS, 100_000),
        ("transportation", TRANSPORT_KEYWORDS, 10_000),
    ):
        total = sum_keyword_amounts(text, keywords, upper)
        if total is not None:
            expenses[category] = total
    if expenses:
        data["expenses"] = expenses

    alternation = "|".join(sorted(PAYROLL_KEYWORDS, key=len, reverse=True))
    deposits = [
        parse_amount(m.group(1))
        for m in re.finditer(rf"\b(?:{alternation})\b[\s:$]*{AMOUNT}", text, re.IGNORECASE)
    ]
    deposits = [d for d in deposits if d]
    if deposits:
        # One statement covers roughly one month of deposits.
        data["monthlyIncome"] = round(sum(deposits), 2)
        if len(deposits) >= 4:
            data["payFrequency"] = "weekly"
        elif len(deposits) >= 2:
            data["payFrequency"] = "biweekly"
        else:
            data["payFrequency"] = "monthly"

    return data


# W-2 / 1099

def parse_w2_or_1099(text: str, document_type: str = "w2") -> Dict[str, Any]:
    data: Dict[str, Any] = {}

    wages = match_amount(text, [
        r"wages,?[ \t]+tips,?[ \t]+other[ \t]+comp(?:ensation)?\.?",
        r"nonemployee[ \t]+compensation",
        r"compensation",
        r"wages",
    ])
    if wages is not None:
        data["annualIncome"] = wages
        if document_type == "1099":
            data["selfEmploymentIncome"] = wages
        else:
            data["wageIncome"] = wages

    employer = None
    match = first_match(text, [
        r"(?:employer|payer)'?s[ \t]+name(?:,?[ \t]*(?:street[ \t]+)?address[^\n]*)?[ \t]*:?[ \t]*\n?[ \t]*([A-Za-z][^\n]*\S)",
        _label_value_pattern(r"EMPLOYER"),
        _label_value_pattern(r"PAYER"),
    ])
    if match:
        employer = _clean_value(match.group(1))
    if employer:
        data["employerName"] = employer
        entry: Dict[str, Any] = {"name": employer, "incomeType": "self_employment" if document_type == "1099" else "wages"}
        if wages is not None:
            entry["income"] = wages
        data["employers"] = [entry]

    _set(data, "federalTaxWithheld", match_amount(text, [r"federal[ \t]+income[ \t]+tax[ \t]+withheld"]))
    tax_year = first_match(text, [r"\btax[ \t]+year\b[\s:]*((?:19|20)\d{2})\b", r"\b(?:W-2|1099(?:-[A-Z]{2,4})?)\b[^\n]*?\b((?:19|20)\d{2})\b"])
    if tax_year:
        data["taxYear"] = int(tax_year.group(1))

    return data


# Marriage certificate

def parse_marriage_certificate(text: str) -> Dict[str, Any]:
    data: Dict[str, Any] = {}

    _set(data, "spouse1Name", match_text(text, [
        r"(?:SPOUSE|PARTY|APPLICANT)[ \t]*(?:1|ONE|A)(?:[ \t]+(?:FULL[ \t]+)?NAME)?", r"GROOM(?:'S)?(?:[ \t]+NAME)?",
    ]))
    _set(data, "spouse2Name", match_text(text, [
        r"(?:SPOUSE|PARTY|APPLICANT)[ \t]*(?:2|TWO|B)(?:[ \t]+(?:FULL[ \t]+)?NAME)?", r"BRIDE(?:'S)?(?:[ \t]+NAME)?",
    ]))
    if data.get("spouse1Name") and data.get("spouse2Name"):
        data["legalNamesAtMarriage"] = {"spouse1": data["spouse1Name"], "spouse2": data["spouse2Name"]}

    _set(data, "marriageDate", match_date(text, [
        r"DATE[ \t]+OF[ \t]+MARRIAGE", r"MARRIAGE[ \t]+DATE", r"DATE[ \t]+MARRIED", r"MARRIED[ \t]+ON", r"DATE[ \t]+OF[ \t]+CEREMONY",
    ]))
    _set(data, "marriagePlace", match_text(text, [
        r"PLACE[ \t]+OF[ \t]+MARRIAGE", r"PLACE[ \t]+OF[ \t]+CEREMONY", r"LOCATION[ \t]+OF[ \t]+(?:MARRIAGE|CEREMONY)", r"MARRIED[ \t]+AT",
    ]))

    maiden_names = []
    for match in re.finditer(_label_value_pattern(r"(?:MAIDEN|FORMER|BIRTH)[ \t]+NAME"), text, FLAGS):
        value = _clean_value(match.group(1))
        if value:
            maiden_names.append(value)
    if maiden_names:
        data["maidenNames"] = _dedupe(maiden_names)

    certificate = first_match(text, [r"\b(?:CERTIFICATE|CERT|LICENSE)[ \t]*(?:NUMBER|NO\.?|#)[ \t:]*([A-Z0-9][A-Z0-9\-]*)"])
    if certificate and re.search(r"\d", certificate.group(1)):
        data["certificateNumber"] = certificate.group(1)

    _set(data, "officiantName", match_text(text, [r"OFFICIANT(?:'S)?(?:[ \t]+NAME)?", r"OFFICIATED[ \t]+BY", r"SOLEMNIZED[ \t]+BY"]))
    _set(data, "issuingAuthority", match_text(text, [r"ISSUED[ \t]+BY", r"ISSUING[ \t]+AUTHORITY", r"REGISTRAR"]))

    return data


# Prior court order

def parse_prior_court_order(text: str) -> Dict[str, Any]:
    data: Dict[str, Any] = {}

    order_types = []
    if re.search(r"\bCUSTOD(?:Y|IAL)\b", text, re.IGNORECASE):
        order_types.append("custody")
    if re.search(r"\b(?:CHILD[ \t]+SUPPORT|SUPPORT[ \t]+ORDER)\b", text, re.IGNORECASE):
        order_types.append("support")
    if re.search(r"\b(?:PROTECTIVE[ \t]+ORDER|RESTRAINING[ \t]+ORDER|ORDER[ \t]+OF[ \t]+PROTECTION)\b", text, re.IGNORECASE):
        order_types.append("protective")
        data["hasDomesticViolence"] = True
    if re.search(r"\bDOMESTIC[ \t]+(?:VIOLENCE|ABUSE)\b", text, re.IGNORECASE):
        data["hasDomesticViolence"] = True
    if order_types:
        data["orderTypes"] = order_types
        data["hasPriorOrders"] = True

    court = first_match(text, [
        r"^[ \t]*(?:IN[ \t]+THE[ \t]+)?([A-Za-z .,']*?\b(?:DISTRICT|SUPERIOR|CIRCUIT|FAMILY|JUVENILE|MUNICIPAL|"
        r"PROBATE|JUSTICE|SUPREME)[ \t]+COURT\b[A-Za-z .,']*?)[ \t.,]*$",
    ])
    if court:
        data["courtName"] = court.group(1).strip()

    county = first_match(text, [
        r"\b(?i:county)[ \t]+(?i:of)[ \t]+([A-Z][A-Za-z]+(?:[ \t]+[A-Z][A-Za-z]+)?)\b",
        r"\b(?!(?i:of|the|in|for)\b)([A-Z][A-Za-z]+(?:[ \t]+[A-Z][A-Za-z]+)?)[ \t]+(?i:county)\b",
    ], flags=0)
    if county:
        name = county.group(1).strip()
        data["county"] = f"{name.title()} County"

    state = first_match(text, [r"\bSTATE[ \t]+OF[ \t]+([A-Z][A-Za-z]+(?:[ \t]+[A-Z][a-z]+)?)\b"], flags=0)
    if state:
        data["state"] = state.group(1).strip()

    jurisdictions = [data[k] for k in ("courtName", "county", "state") if data.get(k)]
    if jurisdictions:
        data["jurisdictions"] = jurisdictions

    _set(data, "orderDate", match_date(text, [
        r"ORDER[ \t]+DATE", r"DATE[ \t]+OF[ \t]+ORDER", r"DATED", r"ENTERED(?:[ \t]+ON)?", r"SIGNED(?:[ \t]+ON)?", r"ISSUED",
    ]))
    case_number = first_match(text, [r"\b(?:CASE|CIVIL|DOCKET)[ \t]*(?:NUMBER|NO\.?|#)[ \t:]*([A-Z0-9][A-Z0-9\-]*)"])
    if case_number and re.search(r"\d", case_number.group(1)):
        data["caseNumber"] = case_number.group(1)

    if "custody" in order_types:
        constraints = []
        if re.search(r"\b(?:SOLE|FULL)[ \t]+(?:LEGAL[ \t]+|PHYSICAL[ \t]+)?CUSTODY\b", text, re.IGNORECASE):
            constraints.append("sole custody")
        if re.search(r"\b(?:JOINT|SHARED)[ \t]+(?:LEGAL[ \t]+|PHYSICAL[ \t]+)?CUSTODY\b", text, re.IGNORECASE):
            constraints.append("joint custody")
        if re.search(r"\bSUPERVISED[ \t]+(?:VISITATION|PARENT[ \t]*TIME)\b", text, re.IGNORECASE):
            constraints.append("supervised visitation")
        elif re.search(r"\b(?:VISITATION|PARENT[ \t]*TIME)\b", text, re.IGNORECASE):
            constraints.append("visitation rights")
        if constraints:
            data["custodyConstraints"] = constraints

    return data


# Profit and loss

def parse_profit_and_loss(text: str) -> Dict[str, Any]:
    data: Dict[str, Any] = {}

    _set(data, "businessName", match_text(text, [r"BUSINESS[ \t]+NAME", r"NAME[ \t]+OF[ \t]+BUSINESS", r"COMPANY[ \t]+NAME", r"COMPANY"]))
    _set(data, "businessType", match_text(text, [r"BUSINESS[ \t]+TYPE", r"TYPE[ \t]+OF[ \t]+BUSINESS", r"PRINCIPAL[ \t]+BUSINESS", r"INDUSTRY"]))

    revenue = match_amount(text, [
        r"GROSS[ \t]+REVENUE", r"TOTAL[ \t]+REVENUE", r"GROSS[ \t]+RECEIPTS", r"TOTAL[ \t]+SALES", r"GROSS[ \t]+INCOME", r"REVENUE",
    ])
    expenses = match_amount(text, [r"TOTAL[ \t]+(?:OPERATING[ \t]+)?EXPENSES", r"EXPENSES[ \t]+TOTAL", r"TOTAL[ \t]+EXP"])
    net = match_amount(text, [r"NET[ \t]+INCOME", r"NET[ \t]+PROFIT(?:[ \t]+\(LOSS\))?", r"PROFIT"])
    if net is None and revenue is not None and expenses is not None:
        net = round(revenue - expenses, 2)
    _set(data, "grossRevenue", revenue)
    _set(data, "totalExpenses", expenses)

    start, end = match_date_range(text, [r"FOR[ \t]+THE[ \t]+PERIOD", r"PERIOD"])
    period = infer_pay_frequency(start, end)
    if period is None:
        if re.search(r"\b(?:FOR[ \t]+THE[ \t]+YEAR|YEAR[ \t]+ENDED|ANNUAL|TWELVE[ \t]+MONTHS)\b", text, re.IGNORECASE):
            period = "yearly"
        else:
            period = "monthly"
    data["reportingPeriod"] = period

    if net is not None:
        data["netIncome"] = net
        annual = annualize(net, period)
        data["annualIncome"] = annual
        data["monthlyIncome"] = round(annual / 12, 2)
        data["selfEmploymentIncome"] = annual

    return data


PARSERS: Dict[str, Callable[[str], Dict[str, Any]]] = {
    "driversLicense": parse_drivers_license,
    "taxReturn": parse_tax_return,
    "payStub": parse_pay_stub,
    "bankStatement": parse_bank_statement,
    "w2": lambda text: parse_w2_or_1099(text, "w2"),
    "1099": lambda text: parse_w2_or_1099(text, "1099"),
    "marriageCertificate": parse_marriage_certificate,
    "priorCourtOrder": parse_prior_court_order,
    "profitAndLoss": parse_profit_and_loss,
}


def parse_document_text(text: str, document_type: str) -> Dict[str, Any]:
    """Parse raw text for a document type into a candidate field map.

    Unknown document types, and parsers that trip over unexpected input,
    degrade to ``{"rawText": text}``.
    """
    parser = PARSERS.get(document_type)
    if parser is None:
        logger.info(f"No parser for document type '{document_type}', returning raw text only")
        return {"rawText": text}

    try:
        data = parser(text or "")
    except Exception as e:
        logger.warning(f"Parser for '{document_type}' failed, returning raw text only: {e}")
        return {"rawText": text}

    data["rawText"] = text
    return data
