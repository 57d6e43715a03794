"""
BOQ API Routes — projects, versions, items and edits.

POST   /api/boq-projects                          — create project
GET    /api/boq-projects/{project_id}             — project details
GET    /api/boq-versions/{project_id}             — versions, newest first
POST   /api/boq-versions                          — new version (empty or copied)
PATCH  /api/boq-versions/{version_id}             — submit (draft → submitted)
DELETE /api/boq-versions/{version_id}             — delete a draft version
GET    /api/boq-versions/{version_id}/edits       — saved overrides
POST   /api/boq-versions/{version_id}/edits       — save overrides
GET    /api/boq-versions/{version_id}/summary     — grouped items, export rows, totals
GET    /api/boq-items/version/{version_id}        — items of a version
POST   /api/boq-items                             — add item
DELETE /api/boq-items/{item_id}                   — delete item

Version locks surface as 409 through the app-level exception handler.
"""
import logging
from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from boq_estimator.api.deps import get_totals_engine, get_version_engine
from boq_estimator.models.schemas import (
    EditsIn,
    ItemCreate,
    ItemOut,
    ProjectCreate,
    ProjectOut,
    SummaryOut,
    VersionCreate,
    VersionOut,
    VersionStatusUpdate,
)
from boq_estimator.services.export_engine import summarize_items
from boq_estimator.services.grouping_engine import OverrideBook
from boq_estimator.services.store import STATUS_SUBMITTED
from boq_estimator.services.totals_engine import TotalsEngine
from boq_estimator.services.version_engine import VersionEngine

router = APIRouter(tags=["BOQ"])
logger = logging.getLogger("boq-routes")


def _item_out(item) -> ItemOut:
    return ItemOut(id=item.id, project_id=item.project_id, version_id=item.version_id,
                   work_package=item.work_package, table_data=item.table_data)


# ── Projects ────────────────────────────────────────────────────────────────

@router.post("/api/boq-projects", response_model=ProjectOut, status_code=201)
async def create_project(body: ProjectCreate, versions: VersionEngine = Depends(get_version_engine)):
    project = await versions.create_project(body.name, body.client, body.budget, body.location)
    return ProjectOut(**asdict(project))


@router.get("/api/boq-projects/{project_id}", response_model=ProjectOut)
async def get_project(project_id: str, versions: VersionEngine = Depends(get_version_engine)):
    project = await versions.store.get_project(project_id)
    return ProjectOut(**asdict(project))


# ── Versions ────────────────────────────────────────────────────────────────

@router.get("/api/boq-versions/{project_id}", response_model=List[VersionOut])
async def list_versions(project_id: str, versions: VersionEngine = Depends(get_version_engine)):
    return [VersionOut(**asdict(v)) for v in await versions.list_versions(project_id)]


@router.post("/api/boq-versions", response_model=VersionOut, status_code=201)
async def create_version(body: VersionCreate, versions: VersionEngine = Depends(get_version_engine)):
    version = await versions.create_version(body.project_id, body.copy_from_version_id)
    return VersionOut(**asdict(version))


@router.patch("/api/boq-versions/{version_id}", response_model=VersionOut)
async def update_version_status(
    version_id: str,
    body: VersionStatusUpdate,
    versions: VersionEngine = Depends(get_version_engine),
):
    if body.status != STATUS_SUBMITTED:
        raise HTTPException(status_code=400, detail="Only the transition to 'submitted' is allowed")
    return VersionOut(**asdict(await versions.submit(version_id)))


@router.delete("/api/boq-versions/{version_id}", status_code=204)
async def delete_version(version_id: str, versions: VersionEngine = Depends(get_version_engine)):
    await versions.delete_version(version_id)


@router.get("/api/boq-versions/{version_id}/edits")
async def get_edits(version_id: str, versions: VersionEngine = Depends(get_version_engine)):
    return await versions.get_edits(version_id)


@router.post("/api/boq-versions/{version_id}/edits")
async def save_edits(version_id: str, body: EditsIn, versions: VersionEngine = Depends(get_version_engine)):
    try:
        book = OverrideBook.from_edits(body.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    saved_rows = {r["row_id"] for r in await versions.list_working_rows(version_id)}
    unknown = sorted(k.row_id for k in book.row_keys() if k.row_id not in saved_rows)
    if unknown:
        raise HTTPException(status_code=422, detail=f"No working-set row for override(s): {unknown}")
    await versions.save_edits(version_id, book.to_edits())
    return {"status": "saved", "version_id": version_id}


@router.get("/api/boq-versions/{version_id}/summary", response_model=SummaryOut)
async def version_summary(
    version_id: str,
    include_rows: bool = Query(False, description="Include material rows under each group"),
    versions: VersionEngine = Depends(get_version_engine),
    totals_engine: TotalsEngine = Depends(get_totals_engine),
):
    items = await versions.list_items(version_id)
    return summarize_items(items, totals_engine, include_rows)


# ── Items ───────────────────────────────────────────────────────────────────

@router.get("/api/boq-items/version/{version_id}", response_model=List[ItemOut])
async def list_items(version_id: str, versions: VersionEngine = Depends(get_version_engine)):
    return [_item_out(i) for i in await versions.list_items(version_id)]


@router.post("/api/boq-items", response_model=ItemOut, status_code=201)
async def add_item(body: ItemCreate, versions: VersionEngine = Depends(get_version_engine)):
    item = await versions.add_item(body.version_id, body.work_package, body.table_data)
    return _item_out(item)


@router.delete("/api/boq-items/{item_id}", status_code=204)
async def delete_item(item_id: str, versions: VersionEngine = Depends(get_version_engine)):
    await versions.delete_item(item_id)
