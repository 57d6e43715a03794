"""
Estimator configuration — single source of truth for tax rates, quantity
tiers, catalog matching tables and autosave timing.

Import from here in all services rather than hardcoding values.
"""
from __future__ import annotations

import os

# ── Tax ────────────────────────────────────────────────────────────────────────

SGST_RATE: float = 0.09
CGST_RATE: float = 0.09

# "supply_and_install": tax applies to the full subtotal.
# "supply_only": tax applies to supply amounts; install is added untaxed.
TAX_SCOPES: tuple[str, ...] = ("supply_and_install", "supply_only")
DEFAULT_TAX_SCOPE: str = os.getenv("BOQ_TAX_SCOPE", "supply_and_install")


# ── Autosave ───────────────────────────────────────────────────────────────────

AUTOSAVE_DEBOUNCE_S: float = float(os.getenv("BOQ_AUTOSAVE_DEBOUNCE_MS", "800")) / 1000.0


# ── Catalog selection ──────────────────────────────────────────────────────────

# Variants without a brand are grouped under this label
DEFAULT_BRAND: str = "Generic"

# Work-package type → catalog product name used for strict matching
PRODUCT_NAME_MAP: dict[str, dict[str, str]] = {
    "doors": {
        "flush": "Flush Door",
        "wpc": "WPC Door",
        "glass": "Glass Door",
        "wooden": "Wooden Door",
        "stile": "Stile Door",
    },
    "painting": {
        "interior": "Interior Painting",
        "exterior": "Exterior Painting",
    },
    "flooring": {
        "vitrified": "Vitrified Flooring",
        "ceramic": "Ceramic Flooring",
        "wooden": "Wooden Flooring",
    },
}

# Loose keyword fallback, matched against category / sub-category / name / code
CATALOG_KEYWORDS: dict[str, list[str]] = {
    "doors": ["DOOR", "FRAME", "GLASS", "HINGE", "LOCK", "HANDLE", "STOPPER",
              "SPRING", "FITTING", "RAIL", "SCREW", "PLUG", "HARDWARE"],
    "painting": ["PRIMER", "PUTTY", "EMULSION", "PAINT", "SANDPAPER", "FILLER"],
    "flooring": ["TILE", "ADHESIVE", "GROUT", "LAMINATE", "UNDERLAY", "SKIRTING"],
}


# ── Quantity rules ─────────────────────────────────────────────────────────────

# (height_ft_exceeds, hinges_per_door): evaluated top-down, first match wins
HINGE_TIERS: list[tuple[float, int]] = [
    (8.0, 5),
    (7.0, 4),
]
BASE_HINGES_PER_DOOR: int = 3

SCREWS_PER_HINGE: int = 6
FRAME_SCREWS_PER_RFT: float = 2.0
WALL_PLUGS_PER_RFT: float = 1.5

PAINT_COVERAGE_SQFT_PER_LTR: float = 100.0
PUTTY_COVERAGE_SQFT_PER_KG: float = 50.0
CRACK_FILLER_COVERAGE_SQFT_PER_KG: float = 200.0
FLOORING_WASTAGE_PCT: float = 0.10
TILE_ADHESIVE_SQFT_PER_BAG: float = 25.0
GROUT_SQFT_PER_KG: float = 50.0
