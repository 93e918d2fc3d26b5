"""Tests for normalization of candidate field maps into canonical columns."""

import pytest

from filing_intake.services.field_extraction import parse_bank_statement, parse_pay_stub, parse_tax_return
from filing_intake.services.normalizer import (
    CATEGORIES,
    as_bool,
    as_frequency,
    as_last4,
    as_state,
    as_text,
    build_assets,
    build_children,
    build_court_info,
    build_debts,
    build_employers,
    build_income,
    build_marriage_info,
    build_personal_info,
    build_spouse_info,
    normalize,
    resolve,
)


class TestResolve:
    def test_first_alias_with_value_wins(self):
        data = {"firstName": "", "first_name": "Jane", "fname": "Other"}
        assert resolve(data, ("firstName", "first_name", "fname")) == "Jane"

    def test_dotted_paths_and_list_indices(self):
        data = {"address": {"city": "Austin"}, "employers": [{"incomeType": "wages"}]}
        assert resolve(data, ("address.city",)) == "Austin"
        assert resolve(data, ("employers.0.incomeType",)) == "wages"
        assert resolve(data, ("employers.3.incomeType",)) is None

    def test_missing_returns_none(self):
        assert resolve({}, ("a", "b.c")) is None


class TestCoercions:
    def test_as_last4(self):
        assert as_last4("123-45-6789") == "6789"
        assert as_last4("12") is None

    def test_as_state(self):
        assert as_state("tx") == "TX"

    def test_as_bool(self):
        assert as_bool(True) is True
        assert as_bool("yes") is True
        assert as_bool("No") is False
        assert as_bool("maybe") is None

    def test_as_frequency(self):
        assert as_frequency("Bi-Weekly") == "biweekly"
        assert as_frequency("annually") == "yearly"

    def test_as_text_drops_ssn_runs(self):
        assert as_text("MARY SMITH SSN 987-65-4321") == "MARY SMITH"
        assert as_text("6789 MARY SMITH 987654321 42") == "6789 MARY SMITH 42"
        assert as_text("123-45-6789") is None

    def test_as_text_keeps_zip_plus_four(self):
        assert as_text("Springfield, IL 62701-1234") == "Springfield, IL 62701-1234"


class TestPersonalInfo:
    def test_direct_fields_and_nested_address(self):
        data = {
            "firstName": "John",
            "lastName": "Smith",
            "dateOfBirth": "03/15/1985",
            "driverLicenseNumber": "D1234567",
            "driverLicenseState": "il",
            "address": {"street": "123 Main St", "city": "Springfield", "state": "IL", "zipCode": "62704"},
        }
        values = build_personal_info(data)

        assert values == {
            "first_name": "John",
            "last_name": "Smith",
            "date_of_birth": "1985-03-15",
            "driver_license_number": "D1234567",
            "driver_license_state": "IL",
            "address_street": "123 Main St",
            "address_city": "Springfield",
            "address_state": "IL",
            "address_zip_code": "62704",
        }

    def test_full_name_fallback_needs_whitespace(self):
        assert build_personal_info({"employeeFullName": "Jane Q Public"}) == {
            "first_name": "Jane",
            "middle_name": "Q",
            "last_name": "Public",
        }
        assert build_personal_info({"name": "Jane"}) == {}

    def test_ssn_is_reduced_to_last_four(self):
        assert build_personal_info({"ssn": "123-45-6789"}) == {"ssn_last_4": "6789"}


class TestSpouseInfo:
    def test_spouse_from_marriage_certificate(self):
        data = {"spouse1Name": "John Smith", "spouse2Name": "Mary Jones"}
        assert build_spouse_info(data) == {"first_name": "Mary", "last_name": "Jones"}

    def test_spouse_from_tax_return(self):
        assert build_spouse_info({"spouseName": "Mary Ann Smith"}) == {
            "first_name": "Mary",
            "middle_name": "Ann",
            "last_name": "Smith",
        }

    def test_spouse_name_with_trailing_ssn(self):
        assert build_spouse_info({"spouseName": "MARY SMITH SSN 987-65-4321"}) == {
            "first_name": "MARY",
            "last_name": "SMITH",
        }


class TestCollections:
    def test_children_from_dependents(self):
        data = {"dependents": [
            {"name": "Emily Smith", "dateOfBirth": "2015-04-12"},
            {"name": "Noah Smith", "relationship": "son"},
            {"relationship": "daughter"},
        ]}
        assert build_children(data) == [
            {"full_name": "Emily Smith", "date_of_birth": "2015-04-12"},
            {"full_name": "Noah Smith", "relation": "son"},
        ]

    def test_children_absent_is_none(self):
        assert build_children({"firstName": "John"}) is None

    def test_children_empty_list_clears(self):
        assert build_children({"dependents": []}) == []

    def test_employers_from_list_or_single_name(self):
        assert build_employers({"employers": [{"name": "Acme Corp", "income": 104000, "incomeType": "wages"}]}) == [
            {"employer_name": "Acme Corp", "income_amount": 104000.0, "income_type": "wages"}
        ]
        assert build_employers({"employerName": "Globex"}) == [{"employer_name": "Globex"}]
        assert build_employers({}) is None

    def test_debts_default_type(self):
        assert build_debts({"debts": [{"creditor": "Visa", "balance": "1,500"}]}) == [
            {"creditor_name": "Visa", "approximate_balance": 1500.0, "debt_type": "other"}
        ]


class TestAssets:
    def test_listed_assets_default_to_other(self):
        assets = build_assets({"assets": [{"name": "Honda Civic", "value": 9000}]})
        assert assets == [{"asset_name": "Honda Civic", "approximate_value": 9000.0, "asset_type": "other"}]

    def test_top_level_bank_fields_become_bank_account(self):
        assets = build_assets({"bankName": "First National Bank", "balance": 2450.75, "accountNumberLast4": "4321"})
        assert assets == [{
            "bank_name": "First National Bank",
            "approximate_value": 2450.75,
            "account_number": "4321",
            "asset_type": "bank_account",
            "asset_name": "First National Bank",
        }]

    def test_llm_bank_keys(self):
        assets = build_assets({"financialInstitutionName": "Chase", "endingBalance": 100, "accountNumberLast4": "9876"})
        assert assets[0]["bank_name"] == "Chase"
        assert assets[0]["approximate_value"] == 100.0

    def test_no_bank_data(self):
        assert build_assets({"firstName": "John"}) == []


class TestIncome:
    def test_investment_income_from_interest_and_dividends(self):
        values = build_income({"interestIncome": 1200, "dividendIncome": "300.50"})
        assert values["investment_income"] == 1500.5

    def test_income_type_from_first_employer(self):
        values = build_income({"annualIncome": 52000, "employers": [{"name": "Globex", "incomeType": "wages"}]})
        assert values == {"gross_annual_income": 52000.0, "income_type": "wages"}


class TestMarriageAndCourt:
    def test_marriage_info(self):
        data = {
            "legalNamesAtMarriage": {"spouse1": "John Smith", "spouse2": "Mary Jones"},
            "marriageDate": "June 5, 2010",
            "marriagePlace": "Las Vegas, Nevada",
            "maidenNames": ["Mary Jones"],
        }
        assert build_marriage_info(data) == {
            "marriage_date": "2010-06-05",
            "marriage_place": "Las Vegas, Nevada",
            "spouse1_name_at_marriage": "John Smith",
            "spouse2_name_at_marriage": "Mary Jones",
            "maiden_names": ["Mary Jones"],
        }

    def test_court_info(self):
        data = {
            "orderTypes": ["custody", "support"],
            "hasPriorOrders": True,
            "courtName": "DISTRICT COURT OF HARRIS COUNTY, TEXAS",
            "county": "Harris County",
            "custodyConstraints": ["joint custody"],
        }
        assert build_court_info(data) == {
            "county": "Harris County",
            "judicial_district": "DISTRICT COURT OF HARRIS COUNTY, TEXAS",
            "has_prior_orders": True,
            "order_types": ["custody", "support"],
            "custody_constraints": ["joint custody"],
        }


class TestNormalize:
    def test_pay_stub(self, pay_stub_text):
        result = normalize(parse_pay_stub(pay_stub_text))

        assert result["personal_info"] == {"first_name": "Jane", "middle_name": "Q", "last_name": "Public"}
        assert result["income"]["gross_annual_income"] == 104000.0
        assert result["income"]["gross_monthly_income"] == pytest.approx(8666.67)
        assert result["income"]["pay_frequency"] == "biweekly"
        assert result["income"]["income_type"] == "wages"
        assert result["employers"] == [{"employer_name": "Acme Corp", "income_amount": 104000.0, "income_type": "wages"}]
        assert result["expenses"]["monthly_health_insurance"] == 150.0
        assert "children" not in result
        assert "assets" not in result

    def test_bank_statement(self, bank_statement_text):
        result = normalize(parse_bank_statement(bank_statement_text))

        assert result["assets"][0]["asset_type"] == "bank_account"
        assert result["assets"][0]["account_number"] == "4321"
        assert result["expenses"] == {"monthly_housing_cost": 1500.0, "monthly_utilities": 120.0}
        assert result["income"]["gross_monthly_income"] == 4000.0
        assert "personal_info" not in result

    def test_tax_return(self, tax_return_text):
        result = normalize(parse_tax_return(tax_return_text))

        assert result["personal_info"]["ssn_last_4"] == "6789"
        assert result["personal_info"]["filing_status"] == "married_joint"
        assert result["spouse_info"] == {"first_name": "Mary", "last_name": "Smith"}
        assert [c["full_name"] for c in result["children"]] == ["Emily Smith", "Noah Smith"]
        assert result["income"]["adjusted_gross_income"] == 88000.0
        assert result["income"]["investment_income"] == 1200.0

    def test_category_order_puts_children_before_court_info(self):
        names = [category.name for category in CATEGORIES]
        assert names.index("children") < names.index("court_info")
