import pytest

from filing_intake.errors import PersistenceError
from filing_intake.models.database import Child, Employer, Income, PersonalInfo
from filing_intake.services.form_data_store import FormDataStore, asset_identity, flatten_form_data, validate_user_id


@pytest.fixture
def store(db_session):
    return FormDataStore(db_session)


class TestUserId:
    def test_blank_user_id_is_rejected(self):
        with pytest.raises(PersistenceError):
            validate_user_id("  ")
        with pytest.raises(PersistenceError):
            validate_user_id(None)

    def test_user_id_is_stripped(self):
        assert validate_user_id(" u1 ") == "u1"

    @pytest.mark.asyncio
    async def test_writes_require_user_id(self, store):
        with pytest.raises(PersistenceError):
            await store.upsert_singleton(PersonalInfo, "", {"first_name": "Jane"})


class TestSingletons:
    @pytest.mark.asyncio
    async def test_upsert_overwrites_supplied_values_only(self, store, db_session):
        await store.upsert_singleton(PersonalInfo, "u1", {"first_name": "Jane", "last_name": "Public"})
        await store.upsert_singleton(PersonalInfo, "u1", {"last_name": "Doe", "phone": "555-0100"})
        await db_session.commit()

        snapshot = await store.get_form_data("u1")
        assert snapshot["personal_info"]["first_name"] == "Jane"
        assert snapshot["personal_info"]["last_name"] == "Doe"
        assert snapshot["personal_info"]["phone"] == "555-0100"

    @pytest.mark.asyncio
    async def test_spouse_scoped_rows(self, store):
        await store.upsert_singleton(Income, "u1", {"gross_annual_income": 100.0}, spouse_number=1)
        await store.upsert_singleton(Income, "u1", {"gross_annual_income": 200.0}, spouse_number=2)
        await store.upsert_singleton(Income, "u1", {"gross_annual_income": 150.0}, spouse_number=1)

        snapshot = await store.get_form_data("u1")
        assert [(row["spouse_number"], row["gross_annual_income"]) for row in snapshot["income"]] == [(1, 150.0), (2, 200.0)]

    @pytest.mark.asyncio
    async def test_users_are_isolated(self, store):
        await store.upsert_singleton(PersonalInfo, "u1", {"first_name": "Jane"})
        await store.upsert_singleton(PersonalInfo, "u2", {"first_name": "John"})

        assert (await store.get_form_data("u1"))["personal_info"]["first_name"] == "Jane"
        assert (await store.get_form_data("u2"))["personal_info"]["first_name"] == "John"


class TestCollections:
    @pytest.mark.asyncio
    async def test_replace_collection(self, store):
        await store.replace_collection(Child, "u1", [{"full_name": "Emily Smith"}, {"full_name": "Noah Smith"}])
        await store.replace_collection(Child, "u1", [{"full_name": "Emily Smith"}])

        snapshot = await store.get_form_data("u1")
        assert [child["full_name"] for child in snapshot["children"]] == ["Emily Smith"]

    @pytest.mark.asyncio
    async def test_replace_collection_scoped_by_spouse(self, store):
        await store.replace_collection(Employer, "u1", [{"employer_name": "Acme Corp"}], spouse_number=1)
        await store.replace_collection(Employer, "u1", [{"employer_name": "Globex"}], spouse_number=2)
        await store.replace_collection(Employer, "u1", [{"employer_name": "Initech"}], spouse_number=1)

        snapshot = await store.get_form_data("u1")
        assert [(e["spouse_number"], e["employer_name"]) for e in snapshot["employers"]] == [(1, "Initech"), (2, "Globex")]


class TestAssets:
    def test_asset_identity(self):
        bank = {"asset_type": "bank_account", "bank_name": " Chase ", "account_number": "1234"}
        assert asset_identity(bank) == ("bank_account", "chase", "1234")
        assert asset_identity({"asset_name": "Honda Civic"}) == ("other", "honda civic")

    @pytest.mark.asyncio
    async def test_merge_replaces_same_identity_and_appends_new(self, store):
        await store.merge_assets("u1", [
            {"asset_type": "bank_account", "bank_name": "Chase", "asset_name": "Chase", "account_number": "1234", "approximate_value": 100.0},
        ])
        await store.merge_assets("u1", [
            {"asset_type": "bank_account", "bank_name": "CHASE", "asset_name": "CHASE", "account_number": "1234", "approximate_value": 250.0},
            {"asset_type": "vehicle", "asset_name": "Honda Civic", "approximate_value": 9000.0},
        ])

        assets = (await store.get_form_data("u1"))["assets"]
        assert len(assets) == 2
        assert assets[0]["approximate_value"] == 250.0
        assert assets[1]["asset_name"] == "Honda Civic"

    @pytest.mark.asyncio
    async def test_different_account_is_a_new_asset(self, store):
        await store.merge_assets("u1", [{"asset_type": "bank_account", "bank_name": "Chase", "account_number": "1234"}])
        await store.merge_assets("u1", [{"asset_type": "bank_account", "bank_name": "Chase", "account_number": "5678"}])

        assert len((await store.get_form_data("u1"))["assets"]) == 2


class TestMinorChildren:
    @pytest.mark.asyncio
    async def test_court_info_created_when_children_exist(self, store):
        await store.replace_collection(Child, "u1", [{"full_name": "Emily Smith"}])
        await store.sync_has_minor_children("u1")

        assert (await store.get_form_data("u1"))["court_info"]["has_minor_children"] is True

    @pytest.mark.asyncio
    async def test_no_court_info_without_children(self, store):
        await store.sync_has_minor_children("u1")

        assert (await store.get_form_data("u1"))["court_info"] is None

    @pytest.mark.asyncio
    async def test_flag_cleared_when_children_removed(self, store):
        await store.replace_collection(Child, "u1", [{"full_name": "Emily Smith"}])
        await store.sync_has_minor_children("u1")
        await store.replace_collection(Child, "u1", [])
        await store.sync_has_minor_children("u1")

        assert (await store.get_form_data("u1"))["court_info"]["has_minor_children"] is False


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_empty_snapshot(self, store):
        snapshot = await store.get_form_data("nobody")

        assert snapshot["personal_info"] is None
        assert snapshot["children"] == []
        assert set(snapshot) == {
            "personal_info", "spouse_info", "children", "income", "employers",
            "expenses", "assets", "debts", "marriage_info", "court_info",
        }

    @pytest.mark.asyncio
    async def test_snapshot_hides_internal_columns(self, store):
        await store.upsert_singleton(PersonalInfo, "u1", {"first_name": "Jane"})

        row = (await store.get_form_data("u1"))["personal_info"]
        assert "id" not in row
        assert "user_id" not in row
        assert "last_updated" not in row

    @pytest.mark.asyncio
    async def test_delete_all_for_user(self, store):
        await store.upsert_singleton(PersonalInfo, "u1", {"first_name": "Jane"})
        await store.replace_collection(Child, "u1", [{"full_name": "Emily Smith"}])
        await store.delete_all_for_user("u1")

        snapshot = await store.get_form_data("u1")
        assert snapshot["personal_info"] is None
        assert snapshot["children"] == []

    def test_flatten_form_data(self):
        snapshot = {
            "personal_info": {"first_name": "Jane"},
            "spouse_info": {"first_name": "John"},
            "children": [{"full_name": "Emily Smith"}],
            "income": [{"gross_annual_income": 104000.0}],
            "employers": [],
            "expenses": [],
            "assets": [],
            "debts": [],
            "marriage_info": None,
            "court_info": None,
        }
        flat = flatten_form_data(snapshot)

        assert flat["personal_info"] == {
            "first_name": "Jane",
            "spouse": {"first_name": "John"},
            "children": [{"full_name": "Emily Smith"}],
        }
        assert flat["financial_info"]["income"] == [{"gross_annual_income": 104000.0}]
        assert flat["marriage_info"] == {}
        assert flat["court_info"] == {}
