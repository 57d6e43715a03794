"""
Catalog service — where catalog snapshots come from.

``FileCatalogService`` reads the bundled seed catalog (dev mode and tests);
``sql_store.SqlCatalogService`` reads the catalog_materials table. Both
return a DataFrame with ``CATALOG_COLUMNS`` and raise CatalogUnavailable when
the source cannot be read.
"""
import logging
import os
from typing import Optional

import pandas as pd

from boq_estimator.services.catalog_engine import CATALOG_COLUMNS, CatalogEngine
from boq_estimator.services.errors import CatalogUnavailable

logger = logging.getLogger("boq-catalog")

SEED_CATALOG_PATH = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "seed_catalog.csv")


class FileCatalogService:
    def __init__(self, path: Optional[str] = None):
        self.path = path or os.getenv("BOQ_CATALOG_CSV", SEED_CATALOG_PATH)

    async def load_catalog(self) -> pd.DataFrame:
        try:
            df = pd.read_csv(self.path, dtype={"material_id": str, "shop_id": str, "code": str})
        except (OSError, pd.errors.ParserError) as e:
            logger.error("Catalog file unreadable: %s", e)
            raise CatalogUnavailable(str(e)) from e
        return df.reindex(columns=CATALOG_COLUMNS)


async def load_catalog_engine(service) -> CatalogEngine:
    """CatalogEngine over a fresh snapshot; an unavailable engine if loading fails."""
    try:
        return CatalogEngine(await service.load_catalog())
    except CatalogUnavailable:
        return CatalogEngine(None)
