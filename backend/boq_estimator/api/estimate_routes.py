"""
Estimate API Routes — configuration preview and the per-version working set.

POST   /api/estimates/preview                               — requirements, quantities, variants, default picks
GET    /api/boq-versions/{version_id}/working-set           — grouped working set with live prices
POST   /api/boq-versions/{version_id}/working-set           — add a configuration as a new batch
DELETE /api/boq-versions/{version_id}/working-set/{key}     — remove by row, batch or material
POST   /api/boq-versions/{version_id}/working-set/commit    — snapshot into BOQ items
GET    /api/catalog/search                                  — keyword search over the catalog
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from boq_estimator.api.deps import get_catalog_engine, get_totals_engine, get_version_engine
from boq_estimator.models.schemas import CatalogVariantOut, PreviewRequest
from boq_estimator.services.aggregation_engine import BatchKey, RowKey
from boq_estimator.services.catalog_engine import CatalogEngine
from boq_estimator.services.estimate_session import EstimateSession
from boq_estimator.services.totals_engine import TotalsEngine
from boq_estimator.services.version_engine import VersionEngine

router = APIRouter(tags=["Estimates"])
logger = logging.getLogger("boq-estimate-routes")


async def _open_session(version_id: str, versions: VersionEngine, catalog: CatalogEngine,
                        totals_engine: TotalsEngine) -> EstimateSession:
    await versions.store.get_version(version_id)
    return EstimateSession(catalog, versions=versions, version_id=version_id,
                           totals_engine=totals_engine, autosave=False)


def _working_set_view(session: EstimateSession) -> dict:
    groups = session.groups()
    return {
        "version_id": session.version_id,
        "batches": session.working_set.batches(),
        "groups": [g.to_dict() for g in groups],
        "totals": session.totals_engine.compute(groups).to_dict(),
    }


@router.post("/api/estimates/preview")
async def preview_estimate(
    body: PreviewRequest,
    catalog: CatalogEngine = Depends(get_catalog_engine),
    totals_engine: TotalsEngine = Depends(get_totals_engine),
):
    session = EstimateSession(catalog, totals_engine=totals_engine)
    outcome = session.estimate(body.configuration.to_configuration(), body.brand_choices)
    return outcome.to_dict()


@router.get("/api/boq-versions/{version_id}/working-set")
async def get_working_set(
    version_id: str,
    versions: VersionEngine = Depends(get_version_engine),
    catalog: CatalogEngine = Depends(get_catalog_engine),
    totals_engine: TotalsEngine = Depends(get_totals_engine),
):
    session = await _open_session(version_id, versions, catalog, totals_engine)
    await session.load()
    return _working_set_view(session)


@router.post("/api/boq-versions/{version_id}/working-set", status_code=201)
async def add_to_working_set(
    version_id: str,
    body: PreviewRequest,
    versions: VersionEngine = Depends(get_version_engine),
    catalog: CatalogEngine = Depends(get_catalog_engine),
    totals_engine: TotalsEngine = Depends(get_totals_engine),
):
    session = await _open_session(version_id, versions, catalog, totals_engine)
    batch, outcome = session.add_to_estimate(body.configuration.to_configuration(), body.brand_choices)
    if batch is None:
        raise HTTPException(
            status_code=422,
            detail={"message": "Nothing to add", "diagnostics": [d.to_dict() for d in outcome.diagnostics]},
        )
    # Merge the new batch into the saved set (material-level dedup), then persist now
    await session.load()
    await session.save()
    rows_added = sum(1 for line in session.working_set if line.batch_id == batch.value)
    if not rows_added:
        logger.info("Batch %s added no rows; every material is already in the working set", batch,
                    extra={"version_id": version_id})
    return {
        "batch_id": batch.value,
        "rows_added": rows_added,
        "diagnostics": [d.to_dict() for d in outcome.diagnostics],
        **_working_set_view(session),
    }


@router.delete("/api/boq-versions/{version_id}/working-set/{key}")
async def remove_from_working_set(
    version_id: str,
    key: str,
    kind: str = Query("row", pattern="^(row|batch|material)$"),
    versions: VersionEngine = Depends(get_version_engine),
    catalog: CatalogEngine = Depends(get_catalog_engine),
    totals_engine: TotalsEngine = Depends(get_totals_engine),
):
    session = await _open_session(version_id, versions, catalog, totals_engine)
    await session.load()
    if kind == "row":
        try:
            target = RowKey.parse(key)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    elif kind == "batch":
        target = BatchKey(key)
    else:
        target = key
    removed = session.remove(target)
    if not removed:
        raise HTTPException(status_code=404, detail=f"No working-set rows match {kind} '{key}'")
    await session.save()
    return {"removed": [k.row_id for k in removed], **_working_set_view(session)}


@router.post("/api/boq-versions/{version_id}/working-set/commit", status_code=201)
async def commit_working_set(
    version_id: str,
    versions: VersionEngine = Depends(get_version_engine),
    catalog: CatalogEngine = Depends(get_catalog_engine),
    totals_engine: TotalsEngine = Depends(get_totals_engine),
):
    session = await _open_session(version_id, versions, catalog, totals_engine)
    await session.load()
    items = await session.commit()
    await session.save()
    return {"items": [i.id for i in items], "count": len(items)}


@router.get("/api/catalog/search", response_model=List[CatalogVariantOut])
async def search_catalog(
    keyword: Optional[str] = Query(None, min_length=1),
    limit: int = Query(50, ge=1, le=500),
    catalog: CatalogEngine = Depends(get_catalog_engine),
):
    if not catalog.available:
        raise HTTPException(status_code=503, detail="Catalog unavailable")
    return [CatalogVariantOut(**v.to_dict()) for v in catalog.search(keyword, limit)]
