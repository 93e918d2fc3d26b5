"""Reads and writes for the ten canonical per-user tables."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from filing_intake.errors import PersistenceError
from filing_intake.models.database import (
    CANONICAL_MODELS,
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

logger = logging.getLogger(__name__)

# Columns never exposed in a form-data snapshot.
INTERNAL_COLUMNS = {"id", "user_id", "last_updated"}

ASSET_COLUMNS = ("asset_type", "asset_name", "approximate_value", "ownership_type", "bank_name", "account_number")


def validate_user_id(user_id: Any) -> str:
    if user_id is None or not str(user_id).strip():
        raise PersistenceError("A user id is required for canonical writes")
    return str(user_id).strip()


def asset_identity(row: dict[str, Any]) -> tuple:
    """Bank accounts are identified by bank and last-4 account number, other assets by name."""
    asset_type = (row.get("asset_type") or "other").lower()
    if asset_type == "bank_account":
        return asset_type, (row.get("bank_name") or "").strip().lower(), row.get("account_number") or ""
    return asset_type, (row.get("asset_name") or "").strip().lower()


def row_to_dict(row: Any) -> dict[str, Any]:
    return {
        column.key: getattr(row, column.key)
        for column in row.__table__.columns
        if column.key not in INTERNAL_COLUMNS
    }


class FormDataStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def upsert_singleton(
        self,
        model: type,
        user_id: str,
        values: dict[str, Any],
        spouse_number: Optional[int] = None,
    ):
        """Insert or update the user's row; every supplied value overwrites."""
        user_id = validate_user_id(user_id)
        try:
            stmt = select(model).where(model.user_id == user_id)
            if spouse_number is not None:
                stmt = stmt.where(model.spouse_number == spouse_number)
            row = (await self.db.execute(stmt)).scalar_one_or_none()

            if row is None:
                row = model(user_id=user_id)
                if spouse_number is not None:
                    row.spouse_number = spouse_number
                self.db.add(row)

            for column, value in values.items():
                setattr(row, column, value)
            row.last_updated = datetime.utcnow()
            await self.db.flush()
            return row
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to write {model.__tablename__}: {e}") from e

    async def replace_collection(
        self,
        model: type,
        user_id: str,
        rows: list[dict[str, Any]],
        spouse_number: Optional[int] = None,
    ) -> int:
        """Replace every row in the scope with ``rows``."""
        user_id = validate_user_id(user_id)
        try:
            stmt = delete(model).where(model.user_id == user_id)
            if spouse_number is not None:
                stmt = stmt.where(model.spouse_number == spouse_number)
            await self.db.execute(stmt)

            now = datetime.utcnow()
            for values in rows:
                row = model(user_id=user_id, last_updated=now, **values)
                if spouse_number is not None:
                    row.spouse_number = spouse_number
                self.db.add(row)
            await self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to replace {model.__tablename__}: {e}") from e

        logger.debug(f"Replaced {model.__tablename__} for user {user_id}: {len(rows)} rows")
        return len(rows)

    async def merge_assets(self, user_id: str, rows: list[dict[str, Any]]) -> int:
        """Merge assets by identity: same identity replaces the row, new identities are appended."""
        user_id = validate_user_id(user_id)
        incoming: dict[tuple, dict[str, Any]] = {}
        for values in rows:
            incoming[asset_identity(values)] = values

        try:
            result = await self.db.execute(select(Asset).where(Asset.user_id == user_id).order_by(Asset.id))
            existing = {asset_identity(row_to_dict(row)): row for row in result.scalars().all()}

            now = datetime.utcnow()
            for identity, values in incoming.items():
                row = existing.get(identity)
                if row is None:
                    row = Asset(user_id=user_id)
                    self.db.add(row)
                for column in ASSET_COLUMNS:
                    setattr(row, column, values.get(column))
                row.last_updated = now
            await self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to merge assets: {e}") from e

        return len(incoming)

    async def count_children(self, user_id: str) -> int:
        result = await self.db.execute(select(func.count(Child.id)).where(Child.user_id == user_id))
        return result.scalar() or 0

    async def sync_has_minor_children(self, user_id: str) -> None:
        """Recompute CourtInfo.has_minor_children from the Child table."""
        user_id = validate_user_id(user_id)
        try:
            has_children = await self.count_children(user_id) > 0
            court = (await self.db.execute(select(CourtInfo).where(CourtInfo.user_id == user_id))).scalar_one_or_none()
            if court is None:
                if not has_children:
                    return
                court = CourtInfo(user_id=user_id)
                self.db.add(court)
            court.has_minor_children = has_children
            court.last_updated = datetime.utcnow()
            await self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to update court_info: {e}") from e

    async def delete_all_for_user(self, user_id: str) -> None:
        user_id = validate_user_id(user_id)
        try:
            for model in CANONICAL_MODELS:
                await self.db.execute(delete(model).where(model.user_id == user_id))
            await self.db.flush()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to clear canonical data: {e}") from e

    async def get_form_data(self, user_id: str) -> dict[str, Any]:
        """Snapshot of all ten tables, without ids or timestamps."""
        user_id = validate_user_id(user_id)

        async def one(model):
            row = (await self.db.execute(select(model).where(model.user_id == user_id))).scalar_one_or_none()
            return row_to_dict(row) if row is not None else None

        async def many(model, *order_by):
            stmt = select(model).where(model.user_id == user_id).order_by(*order_by, model.id)
            return [row_to_dict(row) for row in (await self.db.execute(stmt)).scalars().all()]

        try:
            return {
                "personal_info": await one(PersonalInfo),
                "spouse_info": await one(SpouseInfo),
                "children": await many(Child),
                "income": await many(Income, Income.spouse_number),
                "employers": await many(Employer, Employer.spouse_number),
                "expenses": await many(Expense, Expense.spouse_number),
                "assets": await many(Asset),
                "debts": await many(Debt),
                "marriage_info": await one(MarriageInfo),
                "court_info": await one(CourtInfo),
            }
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read form data: {e}") from e


def flatten_form_data(snapshot: dict[str, Any]) -> dict[str, Any]:
    """Group a canonical snapshot into the personal/financial/marriage/court view."""
    personal = dict(snapshot.get("personal_info") or {})
    personal["spouse"] = snapshot.get("spouse_info")
    personal["children"] = snapshot.get("children") or []

    return {
        "personal_info": personal,
        "financial_info": {
            "income": snapshot.get("income") or [],
            "employers": snapshot.get("employers") or [],
            "expenses": snapshot.get("expenses") or [],
            "assets": snapshot.get("assets") or [],
            "debts": snapshot.get("debts") or [],
        },
        "marriage_info": snapshot.get("marriage_info") or {},
        "court_info": snapshot.get("court_info") or {},
    }
