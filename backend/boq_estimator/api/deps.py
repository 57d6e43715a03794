"""FastAPI dependency injection — store, engines and catalog snapshot."""
import logging
from typing import Optional

from fastapi import Depends

from boq_estimator.db import AsyncSessionLocal, database_configured
from boq_estimator.services.catalog_engine import CatalogEngine
from boq_estimator.services.catalog_service import FileCatalogService, load_catalog_engine
from boq_estimator.services.sql_store import SqlAlchemyBoqStore, SqlCatalogService
from boq_estimator.services.store import BoqStore, InMemoryBoqStore
from boq_estimator.services.totals_engine import TotalsEngine
from boq_estimator.services.version_engine import VersionEngine

logger = logging.getLogger("boq-api")

_store: Optional[BoqStore] = None


def get_store() -> BoqStore:
    global _store
    if _store is None:
        if database_configured():
            _store = SqlAlchemyBoqStore(AsyncSessionLocal)
        else:
            logger.warning("Using in-memory BOQ store (dev mode) — data is lost on restart")
            _store = InMemoryBoqStore()
    return _store


def get_version_engine(store: BoqStore = Depends(get_store)) -> VersionEngine:
    return VersionEngine(store)


def get_catalog_service():
    if database_configured():
        return SqlCatalogService(AsyncSessionLocal)
    return FileCatalogService()


async def get_catalog_engine(service=Depends(get_catalog_service)) -> CatalogEngine:
    return await load_catalog_engine(service)


def get_totals_engine() -> TotalsEngine:
    return TotalsEngine()
