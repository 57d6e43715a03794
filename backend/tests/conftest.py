"""
conftest.py — Shared pytest fixtures for the BOQ Estimator test suite.

No database or network fixtures: persistence tests use InMemoryBoqStore and
async code is driven with asyncio.run().

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``boq_estimator.*`` imports resolve regardless of where pytest is invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any package imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)


# ---------------------------------------------------------------------------
# Catalog fixtures
# ---------------------------------------------------------------------------

# (material_id, product, name, code, category, sub_category, brand, shop_id, shop_name, rate, unit)
CATALOG_ROWS = [
    ("m-frame-01", "Door Frame", "Door Frame - Wooden", "DOOR-001", "Frame", "Wooden Frame", "Generic", "s-01", "City Timber Mart", 280, "rft"),
    ("m-frame-02", "Door Frame", "Door Frame - Wooden", "DOOR-001", "Frame", "Wooden Frame", "Generic", "s-02", "Prime Hardware", 295, "rft"),
    ("m-fscrew-01", "Hardware", "Frame Screws", "HW-101", "Hardware", "Fasteners", "Generic", "s-02", "Prime Hardware", 2, "pcs"),
    ("m-plug-01", "Hardware", "Wall Plugs / Anchors", "HW-102", "Hardware", "Fasteners", "Generic", "s-02", "Prime Hardware", 5, "pcs"),
    ("m-flush-01", "Flush Door", "Flush Door - BWR", "DOOR-002", "Door Panel", "Flush", "Century", "s-01", "City Timber Mart", 3600, "pcs"),
    ("m-flush-02", "Flush Door", "Flush Door - BWR", "DOOR-002", "Door Panel", "Flush", "Greenply", "s-01", "City Timber Mart", 3500, "pcs"),
    ("m-flushvp-01", "Flush Door", "Flush Door - BWR (With VP)", "DOOR-002", "Door Panel", "Flush", "Century", "s-01", "City Timber Mart", 4700, "pcs"),
    ("m-flushvp-02", "Flush Door", "Flush Door - BWR (With VP)", "DOOR-002", "Door Panel", "Flush", "Century", "s-02", "Prime Hardware", 4500, "pcs"),
    ("m-flushvp-03", "Flush Door", "Flush Door - BWR (With VP)", "DOOR-002", "Door Panel", "Flush", "Greenply", "s-01", "City Timber Mart", 4400, "pcs"),
    ("m-vpglass-01", "Glass", "Vision Panel Glass", "GLASS-001", "Glass", "Clear Glass", "Saint-Gobain", "s-03", "Clear View Glass", 280, "sqft"),
    ("m-hinge-01", "Hardware", "Hinges - SS (Pair)", "DOOR-005", "Hardware", "Hinges", "Dorset", "s-02", "Prime Hardware", 180, "pair"),
    ("m-hinge-02", "Hardware", "Hinges - SS (Pair)", "DOOR-005", "Hardware", "Hinges", "Hettich", "s-02", "Prime Hardware", 240, "pair"),
    ("m-hinge-03", "Hardware", "Hinges - Brass (Pair)", "DOOR-005", "Hardware", "Hinges", "Dorset", "s-02", "Prime Hardware", 350, "pair"),
    ("m-mlock-01", "Hardware", "Mortise Lock - Standard", "DOOR-006", "Hardware", "Locks", "Godrej", "s-02", "Prime Hardware", 650, "pcs"),
    ("m-handle-01", "Hardware", "Door Handle - Standard", "HW-301", "Hardware", "Handles", "Godrej", "s-02", "Prime Hardware", 450, "pcs"),
    ("m-stopper-01", "Hardware", "Door Stopper - Floor Mount", "HW-401", "Hardware", "Stoppers", "Godrej", "s-02", "Prime Hardware", 120, "pcs"),
    ("m-dscrew-01", "Hardware", "Door Screws", "HW-103", "Hardware", "Fasteners", "", "s-02", "Prime Hardware", 2, "pcs"),
]

# Default-selection rates for a framed flush door with vision panel
FLUSH_VP_RATES = {
    "Door Frame - Wooden": 280,
    "Frame Screws": 2,
    "Wall Plugs / Anchors": 5,
    "Flush Door - BWR (With VP)": 4500,
    "Vision Panel Glass": 280,
    "Hinges - SS (Pair)": 180,
    "Mortise Lock - Standard": 650,
    "Door Handle - Standard": 450,
    "Door Stopper - Floor Mount": 120,
    "Door Screws": 2,
}


@pytest.fixture(scope="session")
def flush_vp_rates():
    return dict(FLUSH_VP_RATES)


@pytest.fixture(scope="session")
def catalog_df():
    import pandas as pd
    from boq_estimator.services.catalog_engine import CATALOG_COLUMNS
    return pd.DataFrame(CATALOG_ROWS, columns=CATALOG_COLUMNS)


@pytest.fixture(scope="session")
def catalog_engine(catalog_df):
    from boq_estimator.services.catalog_engine import CatalogEngine
    return CatalogEngine(catalog_df)


@pytest.fixture(scope="session")
def unavailable_catalog():
    from boq_estimator.services.catalog_engine import CatalogEngine
    return CatalogEngine(None)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def quantity_engine():
    from boq_estimator.services.quantity_engine import QuantityEngine
    return QuantityEngine()


@pytest.fixture(scope="session")
def totals_engine():
    """TotalsEngine with SGST = CGST = 9%, tax on supply + install."""
    from boq_estimator.services.totals_engine import TotalsEngine
    return TotalsEngine(tax_scope="supply_and_install")


@pytest.fixture
def flush_vp_config():
    """Framed flush door with vision panel, 7 ft × 3 ft, 2 units."""
    from boq_estimator.services.requirement_engine import Dimensions, WorkPackageConfiguration
    return WorkPackageConfiguration(
        type="flush",
        sub_option="With Vision Panel",
        has_frame=True,
        dimensions=Dimensions(count=2, height=7, width=3),
    )


@pytest.fixture
def store():
    from boq_estimator.services.store import InMemoryBoqStore
    return InMemoryBoqStore()


@pytest.fixture
def version_engine(store):
    from boq_estimator.services.version_engine import VersionEngine
    return VersionEngine(store)
