"""Tests for incremental migration and re-aggregation of canonical form data."""

import re

import pytest
from unittest.mock import AsyncMock, patch

from filing_intake.errors import PersistenceError, ReaggregationError
from filing_intake.services.merge_engine import MergeEngine


USER = "user-1"


async def _snapshot(pipeline):
    return await pipeline.merge_engine.store.get_form_data(USER)


class TestMigrate:
    @pytest.mark.asyncio
    async def test_pay_stub_categories(self, pipeline, pay_stub_text):
        result = await pipeline.process_upload(pay_stub_text.encode(), "application/pdf", "stub.pdf", "payStub", USER)

        assert result.success is True
        assert result.normalization_complete is True
        snapshot = await _snapshot(pipeline)
        assert snapshot["personal_info"]["first_name"] == "Jane"
        assert snapshot["income"][0]["gross_annual_income"] == 104000.0
        assert snapshot["income"][0]["spouse_number"] == 1
        assert [e["employer_name"] for e in snapshot["employers"]] == ["Acme Corp"]

    @pytest.mark.asyncio
    async def test_non_mapping_data_is_skipped(self, db_session):
        report = await MergeEngine(db_session).migrate(USER, ["not", "a", "map"])

        assert report.applied == []
        assert report.failed == {}
        assert "personal_info" in report.skipped

    @pytest.mark.asyncio
    async def test_empty_user_rejected(self, db_session):
        with pytest.raises(PersistenceError):
            await MergeEngine(db_session).migrate("", {"firstName": "Jane"})

    @pytest.mark.asyncio
    async def test_idempotent_reupload(self, pipeline, pay_stub_text):
        await pipeline.process_upload(pay_stub_text.encode(), "application/pdf", "stub.pdf", "payStub", USER)
        first = await _snapshot(pipeline)

        await pipeline.process_upload(pay_stub_text.encode(), "application/pdf", "stub.pdf", "payStub", USER)

        assert await _snapshot(pipeline) == first

    @pytest.mark.asyncio
    async def test_failed_category_is_isolated(self, pipeline, pay_stub_text):
        engine = pipeline.merge_engine
        with patch.object(engine.store, "replace_collection", side_effect=PersistenceError("boom")):
            result = await pipeline.process_upload(pay_stub_text.encode(), "application/pdf", "stub.pdf", "payStub", USER)

        assert result.success is True
        assert result.normalization_complete is False
        assert result.warning == "Some form fields could not be updated: employers"

        snapshot = await _snapshot(pipeline)
        assert snapshot["employers"] == []
        assert snapshot["income"][0]["wage_income"] == 4000.0

    @pytest.mark.asyncio
    async def test_minor_children_flag_follows_dependents(self, pipeline, tax_return_text):
        await pipeline.process_upload(tax_return_text.encode(), "application/pdf", "1040.pdf", "taxReturn", USER)

        snapshot = await _snapshot(pipeline)
        assert len(snapshot["children"]) == 2
        assert snapshot["court_info"]["has_minor_children"] is True


class TestReaggregate:
    @pytest.mark.asyncio
    async def test_delete_restores_previous_state(self, pipeline, pay_stub_text, bank_statement_text):
        first = await pipeline.process_upload(pay_stub_text.encode(), "application/pdf", "stub.pdf", "payStub", USER)
        snapshot_a = await _snapshot(pipeline)

        second = await pipeline.process_upload(
            bank_statement_text.encode(), "application/pdf", "bank.pdf", "bankStatement", USER
        )
        with_bank = await _snapshot(pipeline)
        assert len(with_bank["assets"]) == 1
        assert with_bank != snapshot_a

        report = await pipeline.delete_document(second.document_id, USER)

        assert report.documents_replayed == 1
        assert await _snapshot(pipeline) == snapshot_a
        assert (await pipeline.get_document(first.document_id, USER)) is not None

    @pytest.mark.asyncio
    async def test_collections_follow_latest_document(self, pipeline, tax_return_text):
        one_dependent = tax_return_text.replace("Dependent: Noah Smith DOB: 09/30/2018\n", "")

        await pipeline.process_upload(tax_return_text.encode(), "application/pdf", "2023.pdf", "taxReturn", USER)
        latest = await pipeline.process_upload(one_dependent.encode(), "application/pdf", "2024.pdf", "taxReturn", USER)
        assert [c["full_name"] for c in (await _snapshot(pipeline))["children"]] == ["Emily Smith"]

        await pipeline.delete_document(latest.document_id, USER)

        assert len((await _snapshot(pipeline))["children"]) == 2

    @pytest.mark.asyncio
    async def test_deleting_last_document_clears_everything(self, pipeline, pay_stub_text):
        result = await pipeline.process_upload(pay_stub_text.encode(), "application/pdf", "stub.pdf", "payStub", USER)

        report = await pipeline.delete_document(result.document_id, USER)

        assert report.documents_replayed == 0
        snapshot = await _snapshot(pipeline)
        assert snapshot["personal_info"] is None
        assert snapshot["income"] == []

    @pytest.mark.asyncio
    async def test_manual_reaggregate_is_stable(self, pipeline, pay_stub_text, bank_statement_text):
        await pipeline.process_upload(pay_stub_text.encode(), "application/pdf", "stub.pdf", "payStub", USER)
        await pipeline.process_upload(bank_statement_text.encode(), "application/pdf", "bank.pdf", "bankStatement", USER)
        before = await _snapshot(pipeline)

        report = await pipeline.merge_engine.reaggregate(USER)

        assert report.documents_replayed == 2
        assert report.failed_categories == {}
        assert await _snapshot(pipeline) == before

    @pytest.mark.asyncio
    async def test_failure_rolls_back_delete(self, pipeline, pay_stub_text):
        result = await pipeline.process_upload(pay_stub_text.encode(), "application/pdf", "stub.pdf", "payStub", USER)
        before = await _snapshot(pipeline)

        store = pipeline.merge_engine.store
        with patch.object(store, "delete_all_for_user", new_callable=AsyncMock) as mock_clear:
            mock_clear.side_effect = PersistenceError("disk full")
            with pytest.raises(ReaggregationError):
                await pipeline.delete_document(result.document_id, USER)

        assert (await pipeline.get_document(result.document_id, USER)) is not None
        assert await _snapshot(pipeline) == before


def _strings(value):
    if isinstance(value, dict):
        for item in value.values():
            yield from _strings(item)
    elif isinstance(value, list):
        for item in value:
            yield from _strings(item)
    elif isinstance(value, str):
        yield value


class TestNoFullSsnStored:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("text, ssn_last_4", [
        ("JOHN SMITH 123-45-6789 MARY SMITH 987-65-4321 42 OAK LANE SPRINGFIELD, IL 62701\n", "6789"),
        ("Spouse name: MARY SMITH SSN 987-65-4321\n", None),
    ])
    async def test_snapshot_has_no_ssn_shaped_values(self, pipeline, text, ssn_last_4):
        result = await pipeline.process_upload(text.encode(), "application/pdf", "1040.pdf", "taxReturn", USER)
        assert result.success is True

        snapshot = await _snapshot(pipeline)

        leaked = [s for s in _strings(snapshot) if re.search(r"\d{3}-?\d{2}-?\d{4}", s)]
        assert leaked == []
        personal = snapshot["personal_info"] or {}
        assert personal.get("ssn_last_4") == ssn_last_4
        assert snapshot["spouse_info"]["first_name"] == "MARY"
        assert snapshot["spouse_info"]["last_name"] == "SMITH"

    @pytest.mark.asyncio
    async def test_compact_address_lands_in_personal_info(self, pipeline):
        text = "JOHN SMITH 123-45-6789 MARY SMITH 987-65-4321 42 OAK LANE SPRINGFIELD, IL 62701\n"
        await pipeline.process_upload(text.encode(), "application/pdf", "1040.pdf", "taxReturn", USER)

        personal = (await _snapshot(pipeline))["personal_info"]

        assert personal["address_street"] == "42 OAK LANE"
        assert personal["address_city"] == "SPRINGFIELD"
        assert personal["address_zip_code"] == "62701"
