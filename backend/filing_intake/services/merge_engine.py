"""
Merge Engine.

Applies normalized field maps to the canonical tables, one savepoint per
entity category, and rebuilds a user's canonical state from their surviving
documents on delete or replace.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from filing_intake.errors import ReaggregationError
from filing_intake.models.database import Document, DocumentStatusEnum, ExtractedData
from filing_intake.models.schemas import MigrationReport, ReaggregationReport
from filing_intake.services.form_data_store import FormDataStore, validate_user_id
from filing_intake.services.normalizer import ASSETS, CATEGORIES, COLLECTION, SINGLETON, Category

logger = logging.getLogger(__name__)

# Categories whose writes change the derived has_minor_children flag.
MINOR_CHILDREN_TRIGGERS = {"children", "court_info"}


class MergeEngine:
    def __init__(self, db: AsyncSession, store: Optional[FormDataStore] = None):
        self.db = db
        self.store = store or FormDataStore(db)

    async def migrate(
        self,
        user_id: str,
        data: dict[str, Any],
        document_type: Optional[str] = None,
        commit: bool = True,
    ) -> MigrationReport:
        """Apply one extracted field map to the canonical tables.

        Each category runs in its own savepoint. A failing category is rolled
        back to its savepoint, logged and reported; the others still apply.
        With ``commit`` set every successful category is committed as it lands.
        """
        user_id = validate_user_id(user_id)
        report = MigrationReport()

        if not isinstance(data, dict):
            logger.warning(f"Skipping migration for user {user_id}: extracted data is not a mapping")
            report.skipped = [category.name for category in CATEGORIES]
            return report

        logger.info(f"Migrating {document_type or 'unknown'} data for user {user_id} ({len(data)} keys)")

        for category in CATEGORIES:
            try:
                async with self.db.begin_nested():
                    applied = await self._apply_category(category, user_id, data)
                if commit:
                    await self.db.commit()
            except Exception as e:
                logger.error(f"Failed to migrate {category.name} for user {user_id}: {e}")
                report.failed[category.name] = str(e)
                continue

            if applied:
                report.applied.append(category.name)
            else:
                report.skipped.append(category.name)

        if report.failed:
            logger.warning(f"Migration for user {user_id} incomplete, failed categories: {sorted(report.failed)}")
        else:
            logger.info(f"Migration for user {user_id} complete: {report.applied}")
        return report

    async def _apply_category(self, category: Category, user_id: str, data: dict[str, Any]) -> bool:
        values = category.build(data)
        if values is None or (category.kind != COLLECTION and not values):
            return False

        if category.kind == SINGLETON:
            await self.store.upsert_singleton(category.model, user_id, values, category.spouse_number)
        elif category.kind == COLLECTION:
            await self.store.replace_collection(category.model, user_id, values, category.spouse_number)
        elif category.kind == ASSETS:
            await self.store.merge_assets(user_id, values)
        else:
            raise ValueError(f"Unknown category kind: {category.kind}")

        if category.name in MINOR_CHILDREN_TRIGGERS:
            await self.store.sync_has_minor_children(user_id)
        return True

    async def surviving_documents(self, user_id: str) -> list[tuple[Document, ExtractedData]]:
        """Processed documents with extracted data, oldest first."""
        result = await self.db.execute(
            select(Document, ExtractedData)
            .join(ExtractedData, ExtractedData.document_id == Document.id)
            .where(Document.user_id == user_id, Document.status == DocumentStatusEnum.processed)
            .order_by(Document.uploaded_at, Document.id)
        )
        return [(document, extracted) for document, extracted in result.all()]

    async def reaggregate(self, user_id: str) -> ReaggregationReport:
        """Rebuild canonical state from every surviving processed document.

        Runs in the session's current transaction, together with any pending
        work such as a document delete, and commits only when the whole
        rebuild succeeds. On failure everything is rolled back.
        """
        user_id = validate_user_id(user_id)
        logger.info(f"Re-aggregating form data for user {user_id}")

        try:
            await self.store.delete_all_for_user(user_id)
            records = await self.surviving_documents(user_id)

            failed_categories: dict[str, dict[str, str]] = {}
            for document, extracted in records:
                report = await self.migrate(user_id, extracted.data, document.document_type.value, commit=False)
                if report.failed:
                    failed_categories[str(document.id)] = report.failed

            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Re-aggregation failed for user {user_id}, canonical state unchanged: {e}")
            raise ReaggregationError(f"Re-aggregation failed for user {user_id}: {e}") from e

        if not records:
            logger.info(f"No processed documents left for user {user_id}, canonical data cleared")
        else:
            logger.info(f"Re-aggregation complete for user {user_id}: {len(records)} documents replayed")

        return ReaggregationReport(
            user_id=user_id,
            documents_replayed=len(records),
            failed_categories=failed_categories,
        )
