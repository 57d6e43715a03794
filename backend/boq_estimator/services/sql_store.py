"""
PostgreSQL implementations of the BOQ store and catalog service.

Working-set rows are upserted with ``INSERT ... ON CONFLICT (version_id, row_id)
DO UPDATE`` so repeated autosaves converge on one row per row_id. Driver and
database errors surface as PersistenceFailure.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List

import pandas as pd
from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from boq_estimator.models.orm_models import (
    BOQItemRecord,
    BOQProject,
    BOQVersionEdits,
    BOQVersionRecord,
    CatalogMaterial,
    Shop,
    WorkingSetRow,
)
from boq_estimator.services.catalog_engine import CATALOG_COLUMNS
from boq_estimator.services.errors import (
    CatalogUnavailable,
    ItemNotFound,
    PersistenceFailure,
    ProjectNotFound,
    VersionNotFound,
)
from boq_estimator.services.store import BOQItem, BOQVersion, BoqStore, Project

logger = logging.getLogger("boq-store")


def _project(rec: BOQProject) -> Project:
    return Project(
        id=rec.id, name=rec.name, client=rec.client or "",
        budget=float(rec.budget) if rec.budget is not None else None,
        location=rec.location or "",
    )


def _version(rec: BOQVersionRecord) -> BOQVersion:
    return BOQVersion(
        id=rec.id, project_id=rec.project_id, version_number=rec.version_number,
        status=rec.status, created_at=rec.created_at, updated_at=rec.updated_at,
    )


def _item(rec: BOQItemRecord) -> BOQItem:
    return BOQItem(
        id=rec.id, project_id=rec.project_id, version_id=rec.version_id,
        work_package=rec.work_package, table_data=rec.table_data or {}, created_at=rec.created_at,
    )


class SqlAlchemyBoqStore(BoqStore):
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self):
        async with self.session_factory() as db:
            try:
                yield db
                await db.commit()
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error("Store operation failed: %s", e)
                raise PersistenceFailure(str(e)) from e

    async def _get_version_rec(self, db: AsyncSession, version_id: str) -> BOQVersionRecord:
        rec = (await db.execute(
            select(BOQVersionRecord).where(BOQVersionRecord.id == version_id)
        )).scalar_one_or_none()
        if rec is None:
            raise VersionNotFound(version_id)
        return rec

    # ── projects ──

    async def create_project(self, project: Project) -> Project:
        async with self._session() as db:
            db.add(BOQProject(id=project.id, name=project.name, client=project.client,
                              budget=project.budget, location=project.location))
        return project

    async def get_project(self, project_id: str) -> Project:
        async with self._session() as db:
            rec = (await db.execute(select(BOQProject).where(BOQProject.id == project_id))).scalar_one_or_none()
            if rec is None:
                raise ProjectNotFound(project_id)
            return _project(rec)

    # ── versions ──

    async def add_version(self, version: BOQVersion) -> BOQVersion:
        async with self._session() as db:
            rec = BOQVersionRecord(id=version.id, project_id=version.project_id,
                                   version_number=version.version_number, status=version.status)
            db.add(rec)
            await db.flush()
            await db.refresh(rec)
            return _version(rec)

    async def get_version(self, version_id: str) -> BOQVersion:
        async with self._session() as db:
            return _version(await self._get_version_rec(db, version_id))

    async def list_versions(self, project_id: str) -> List[BOQVersion]:
        async with self._session() as db:
            result = await db.execute(
                select(BOQVersionRecord)
                .where(BOQVersionRecord.project_id == project_id)
                .order_by(BOQVersionRecord.version_number.desc())
            )
            return [_version(r) for r in result.scalars().all()]

    async def set_version_status(self, version_id: str, status: str) -> BOQVersion:
        async with self._session() as db:
            rec = await self._get_version_rec(db, version_id)
            rec.status = status
            await db.flush()
            await db.refresh(rec)
            return _version(rec)

    async def delete_version(self, version_id: str) -> None:
        async with self._session() as db:
            await self._get_version_rec(db, version_id)
            await db.execute(delete(WorkingSetRow).where(WorkingSetRow.version_id == version_id))
            await db.execute(delete(BOQVersionEdits).where(BOQVersionEdits.version_id == version_id))
            await db.execute(delete(BOQItemRecord).where(BOQItemRecord.version_id == version_id))
            await db.execute(delete(BOQVersionRecord).where(BOQVersionRecord.id == version_id))

    # ── items ──

    async def add_items(self, items: List[BOQItem]) -> List[BOQItem]:
        async with self._session() as db:
            for item in items:
                db.add(BOQItemRecord(id=item.id, project_id=item.project_id, version_id=item.version_id,
                                     work_package=item.work_package, table_data=item.table_data))
        return items

    async def list_items(self, version_id: str) -> List[BOQItem]:
        async with self._session() as db:
            result = await db.execute(
                select(BOQItemRecord)
                .where(BOQItemRecord.version_id == version_id)
                .order_by(BOQItemRecord.created_at)
            )
            return [_item(r) for r in result.scalars().all()]

    async def get_item(self, item_id: str) -> BOQItem:
        async with self._session() as db:
            rec = (await db.execute(select(BOQItemRecord).where(BOQItemRecord.id == item_id))).scalar_one_or_none()
            if rec is None:
                raise ItemNotFound(item_id)
            return _item(rec)

    async def delete_item(self, item_id: str) -> None:
        async with self._session() as db:
            result = await db.execute(delete(BOQItemRecord).where(BOQItemRecord.id == item_id))
            if result.rowcount == 0:
                raise ItemNotFound(item_id)

    # ── edits ──

    async def save_edits(self, version_id: str, edits: Dict[str, Any]) -> None:
        async with self._session() as db:
            stmt = insert(BOQVersionEdits).values(version_id=version_id, edits=edits)
            stmt = stmt.on_conflict_do_update(index_elements=["version_id"], set_={"edits": stmt.excluded.edits})
            await db.execute(stmt)

    async def get_edits(self, version_id: str) -> Dict[str, Any]:
        async with self._session() as db:
            rec = (await db.execute(
                select(BOQVersionEdits).where(BOQVersionEdits.version_id == version_id)
            )).scalar_one_or_none()
            return dict(rec.edits or {}) if rec else {}

    # ── working-set rows ──

    async def upsert_rows(self, project_id: str, version_id: str, rows: List[Dict[str, Any]]) -> int:
        if not rows:
            return 0
        values = [
            {
                "project_id": project_id,
                "version_id": version_id,
                "row_id": row["row_id"],
                "batch_id": row["batch_id"],
                "material_id": str(row["material_id"]),
                "data": row,
            }
            for row in rows
        ]
        async with self._session() as db:
            stmt = insert(WorkingSetRow).values(values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["version_id", "row_id"],
                set_={"data": stmt.excluded.data, "batch_id": stmt.excluded.batch_id,
                      "material_id": stmt.excluded.material_id},
            )
            await db.execute(stmt)
        return len(rows)

    async def list_rows(self, version_id: str) -> List[Dict[str, Any]]:
        async with self._session() as db:
            result = await db.execute(
                select(WorkingSetRow).where(WorkingSetRow.version_id == version_id).order_by(WorkingSetRow.id)
            )
            return [dict(r.data or {}) for r in result.scalars().all()]

    async def delete_rows(self, version_id: str, row_ids: List[str]) -> int:
        if not row_ids:
            return 0
        async with self._session() as db:
            result = await db.execute(
                delete(WorkingSetRow).where(
                    WorkingSetRow.version_id == version_id,
                    WorkingSetRow.row_id.in_(row_ids),
                )
            )
            return result.rowcount or 0


class SqlCatalogService:
    """Loads the catalog_materials table (joined with shops) into a DataFrame."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def load_catalog(self) -> pd.DataFrame:
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(CatalogMaterial, Shop.name).outerjoin(Shop, CatalogMaterial.shop_id == Shop.id)
                )
                records = [
                    {
                        "material_id": m.id, "product": m.product, "name": m.name, "code": m.code,
                        "category": m.category, "sub_category": m.sub_category, "brand": m.brand,
                        "shop_id": m.shop_id, "shop_name": shop_name,
                        "rate": float(m.rate or 0), "unit": m.unit,
                    }
                    for m, shop_name in result.all()
                ]
        except SQLAlchemyError as e:
            logger.error("Catalog load failed: %s", e)
            raise CatalogUnavailable(str(e)) from e
        logger.info("Catalog loaded: %d variants", len(records))
        return pd.DataFrame(records, columns=CATALOG_COLUMNS)
