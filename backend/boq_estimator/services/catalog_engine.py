"""
Catalog Engine — resolves required materials to priced catalog variants.

The catalog is held as a pandas DataFrame snapshot with one row per
(material, brand, shop) variant:

    material_id, product, name, code, category, sub_category,
    brand, shop_id, shop_name, rate, unit

Matching runs in two passes:
  1. strict  — normalized material name equals the type label; failing that,
               name contains the label inside the product mapped for the type
  2. keyword — only when strict is empty; every work-package keyword present
               in the label must appear in category / sub-category / name / code

"No match" and "catalog unavailable" are distinct outcomes.
"""
import logging
import re
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from boq_estimator.config import CATALOG_KEYWORDS, DEFAULT_BRAND, PRODUCT_NAME_MAP
from boq_estimator.services.errors import (
    CATALOG_UNAVAILABLE,
    NO_CATALOG_MATCH,
    Diagnostic,
    NoCatalogMatch,
)
from boq_estimator.services.requirement_engine import RequiredMaterialSpec

logger = logging.getLogger("boq-catalog")

CATALOG_COLUMNS = [
    "material_id", "product", "name", "code", "category", "sub_category",
    "brand", "shop_id", "shop_name", "rate", "unit",
]

STATUS_MATCHED = "matched"
STATUS_NO_MATCH = "no_match"
STATUS_UNAVAILABLE = "unavailable"

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def normalize(value: Any) -> str:
    """Uppercase and strip everything but letters and digits."""
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return _NON_ALNUM.sub("", str(value).upper())


@dataclass(frozen=True)
class CatalogVariant:
    material_id: str
    product_name: str
    material_name: str
    brand: str
    shop_id: str
    shop_name: str
    rate: float
    unit: str
    code: str = ""
    category: str = ""
    sub_category: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Selection:
    """A chosen variant for one required material."""
    material_id: str
    shop_id: str
    brand: str
    rate: float


@dataclass
class Resolution:
    spec: RequiredMaterialSpec
    status: str
    variants: List[CatalogVariant] = field(default_factory=list)
    match_mode: Optional[str] = None      # "strict" | "keyword"
    diagnostic: Optional[Diagnostic] = None

    @property
    def matched(self) -> bool:
        return self.status == STATUS_MATCHED


def empty_catalog() -> pd.DataFrame:
    return pd.DataFrame(columns=CATALOG_COLUMNS)


class CatalogEngine:
    """
    Wraps a catalog DataFrame. ``catalog_df=None`` models a catalog that could
    not be loaded; every resolution then reports ``unavailable``.
    """

    def __init__(self, catalog_df: Optional[pd.DataFrame]):
        self.available = catalog_df is not None
        df = catalog_df if catalog_df is not None else empty_catalog()
        df = df.reindex(columns=CATALOG_COLUMNS).copy()
        df["brand"] = df["brand"].fillna("").astype(str).str.strip()
        df.loc[df["brand"] == "", "brand"] = DEFAULT_BRAND
        for col in ("material_id", "shop_id", "product", "name", "code",
                    "category", "sub_category", "shop_name", "unit"):
            df[col] = df[col].fillna("").astype(str)
        df["rate"] = pd.to_numeric(df["rate"], errors="coerce").fillna(0.0).astype(float)
        df["_name_key"] = df["name"].map(normalize)
        df["_product_key"] = df["product"].map(normalize)
        df["_haystack"] = (
            df["category"] + " " + df["sub_category"] + " " + df["name"] + " " + df["code"]
        ).str.upper()
        self.catalog_df = df.reset_index(drop=True)

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "CatalogEngine":
        return cls(pd.DataFrame(list(records), columns=CATALOG_COLUMNS))

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def resolve(
        self,
        spec: RequiredMaterialSpec,
        work_package: str = "doors",
        package_type: Optional[str] = None,
    ) -> Resolution:
        if not self.available:
            return Resolution(
                spec=spec,
                status=STATUS_UNAVAILABLE,
                diagnostic=Diagnostic(CATALOG_UNAVAILABLE, "Catalog could not be loaded", spec.type_label),
            )

        df = self.catalog_df
        label_key = normalize(spec.type_label)

        exact = df["_name_key"] == label_key
        if label_key and exact.any():
            return self._matched(spec, df[exact], "strict")

        product = PRODUCT_NAME_MAP.get(work_package, {}).get(package_type or "")
        if label_key and product:
            in_product = df["_product_key"].str.contains(normalize(product), regex=False)
            strict = in_product & df["_name_key"].str.contains(label_key, regex=False)
            if strict.any():
                return self._matched(spec, df[strict], "strict")

        keywords = self._label_keywords(spec, work_package)
        if keywords:
            loose = pd.Series(True, index=df.index)
            for kw in keywords:
                loose &= df["_haystack"].str.contains(kw, regex=False)
            if loose.any():
                return self._matched(spec, df[loose], "keyword")

        logger.info("No catalog match for '%s' (%s/%s)", spec.type_label, work_package, package_type)
        return Resolution(
            spec=spec,
            status=STATUS_NO_MATCH,
            diagnostic=Diagnostic(NO_CATALOG_MATCH, f"No catalog variant for {spec.type_label}", spec.type_label),
        )

    def resolve_all(
        self,
        specs: Iterable[RequiredMaterialSpec],
        work_package: str = "doors",
        package_type: Optional[str] = None,
    ) -> List[Resolution]:
        return [self.resolve(s, work_package, package_type) for s in specs]

    @staticmethod
    def _label_keywords(spec: RequiredMaterialSpec, work_package: str) -> List[str]:
        label = spec.type_label.upper()
        keywords = [kw for kw in CATALOG_KEYWORDS.get(work_package, []) if kw in label]
        if not keywords and spec.category:
            keywords = [spec.category.upper()]
        return keywords

    def _matched(self, spec: RequiredMaterialSpec, rows: pd.DataFrame, mode: str) -> Resolution:
        return Resolution(spec=spec, status=STATUS_MATCHED, variants=self._to_variants(rows), match_mode=mode)

    @staticmethod
    def _to_variants(rows: pd.DataFrame) -> List[CatalogVariant]:
        ordered = rows.assign(_brand_key=rows["brand"].str.casefold()).sort_values(
            ["_brand_key", "rate", "shop_name", "material_id"], kind="mergesort"
        )
        return [
            CatalogVariant(
                material_id=r.material_id,
                product_name=r.product,
                material_name=r.name,
                brand=r.brand,
                shop_id=r.shop_id,
                shop_name=r.shop_name,
                rate=float(r.rate),
                unit=r.unit,
                code=r.code,
                category=r.category,
                sub_category=r.sub_category,
            )
            for r in ordered.itertuples(index=False)
        ]

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    @staticmethod
    def brands(variants: List[CatalogVariant]) -> List[str]:
        return sorted({v.brand for v in variants}, key=str.casefold)

    @staticmethod
    def shops_for_brand(variants: List[CatalogVariant], brand: str) -> List[CatalogVariant]:
        """One entry per shop, cheapest first."""
        seen = set()
        shops = []
        for v in sorted((v for v in variants if v.brand == brand), key=lambda v: v.rate):
            if v.shop_id in seen:
                continue
            seen.add(v.shop_id)
            shops.append(v)
        return shops

    def default_selection(self, variants: List[CatalogVariant]) -> Optional[Selection]:
        """Cheapest variant within the alphabetically first brand."""
        brands = self.brands(variants)
        if not brands:
            return None
        cheapest = self.shops_for_brand(variants, brands[0])[0]
        return Selection(cheapest.material_id, cheapest.shop_id, cheapest.brand, cheapest.rate)

    def switch_brand(self, selection: Selection, brand: str) -> Selection:
        """Re-select the cheapest variant of ``brand``; material identity is kept."""
        offers = self.shops_for_brand(self.variants_of(selection.material_id), brand)
        if not offers:
            raise NoCatalogMatch(f"Brand '{brand}' is not offered for material {selection.material_id}")
        return Selection(selection.material_id, offers[0].shop_id, brand, offers[0].rate)

    def select_all(self, resolutions: Iterable[Resolution]) -> Dict[str, Selection]:
        """Default selection applied independently to every matched material."""
        picks: Dict[str, Selection] = {}
        for res in resolutions:
            if not res.matched:
                continue
            pick = self.default_selection(res.variants)
            if pick is not None:
                picks[res.spec.type_label] = pick
        return picks

    # ------------------------------------------------------------------
    # Live lookups
    # ------------------------------------------------------------------

    def variants_of(self, material_id: str) -> List[CatalogVariant]:
        """All catalog rows offering the same product + material name."""
        df = self.catalog_df
        anchor = df[df["material_id"] == str(material_id)]
        if anchor.empty:
            return []
        first = anchor.iloc[0]
        same = df[(df["_product_key"] == first["_product_key"]) & (df["_name_key"] == first["_name_key"])]
        return self._to_variants(same)

    def price_of(self, material_id: str, shop_id: Optional[str] = None, brand: Optional[str] = None) -> Optional[float]:
        for v in self.variants_of(material_id):
            if shop_id is not None and v.shop_id != shop_id:
                continue
            if brand is not None and v.brand != brand:
                continue
            return v.rate
        return None

    def search(self, keyword: Optional[str] = None, limit: int = 50) -> List[CatalogVariant]:
        df = self.catalog_df
        if keyword:
            df = df[df["_haystack"].str.contains(keyword.upper(), regex=False)]
        return self._to_variants(df.head(limit))
