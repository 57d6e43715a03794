"""
Grouping Engine — groups selected lines into presentation items and applies
user overrides on top of the computed values.

Group key: (work_package, type, sub_option, panel_type)

Precedence for every presented field:
    row override  >  group override  >  computed default

Computed defaults are never overwritten; clearing an override falls back to
the live catalog price. A group's quantity is entered by the user (default 1)
and its per-unit rates are back-computed from the summed material cost.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field, asdict, fields as dc_fields
from typing import Callable, Dict, Iterable, List, Optional
from urllib.parse import unquote

from boq_estimator.services.aggregation_engine import RowKey, SelectedLine

logger = logging.getLogger("boq-grouping")

DEFAULT_GROUP_QTY = 1.0
DEFAULT_GROUP_UNIT = "nos"


def _escape(part: str) -> str:
    # Only '%' and the separator are encoded, so unquote() inverts it exactly
    return part.replace("%", "%25").replace("|", "%7C")


@dataclass(frozen=True)
class GroupKey:
    work_package: str
    package_type: str
    sub_option: str = ""
    panel_type: str = ""

    @classmethod
    def for_line(cls, line: SelectedLine) -> "GroupKey":
        return cls(line.work_package, line.package_type, line.sub_option or "", line.panel_type or "")

    @property
    def group_id(self) -> str:
        parts = [self.work_package, self.package_type, self.sub_option, self.panel_type]
        return "|".join(["grp"] + [_escape(p) for p in parts])

    @classmethod
    def parse(cls, group_id: str) -> "GroupKey":
        parts = group_id.split("|")
        if len(parts) != 5 or parts[0] != "grp" or not parts[1]:
            raise ValueError(f"Malformed group id '{group_id}'")
        return cls(*(unquote(p) for p in parts[1:]))

    @property
    def title(self) -> str:
        base = self.package_type.replace("-", " ").title()
        if self.work_package == "doors":
            base = f"{base} Door"
        else:
            base = f"{base} {self.work_package.title()}"
        return f"{base} - {self.sub_option}" if self.sub_option else base


@dataclass
class Override:
    quantity: Optional[float] = None
    supply_rate: Optional[float] = None
    install_rate: Optional[float] = None
    description: Optional[str] = None
    location: Optional[str] = None
    unit: Optional[str] = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in dc_fields(self))

    def to_dict(self) -> Dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


OVERRIDE_FIELDS = tuple(f.name for f in dc_fields(Override))


class OverrideBook:
    """Row- and group-level overrides, kept apart from computed values."""

    def __init__(self):
        self._rows: Dict[RowKey, Override] = {}
        self._groups: Dict[GroupKey, Override] = {}

    @staticmethod
    def _apply(store: Dict, key, values: Dict, min_quantity_exclusive: bool = False) -> None:
        unknown = set(values) - set(OVERRIDE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown override field(s): {sorted(unknown)}")
        qty = values.get("quantity")
        if qty is not None:
            if not isinstance(qty, (int, float)) or isinstance(qty, bool):
                raise ValueError(f"Override quantity must be a number, got {qty!r}")
            if qty < 0 or (min_quantity_exclusive and qty == 0):
                raise ValueError(f"Override quantity must be {'> 0' if min_quantity_exclusive else '>= 0'}, got {qty}")
        for name in ("supply_rate", "install_rate"):
            rate = values.get(name)
            if rate is not None and (not isinstance(rate, (int, float)) or isinstance(rate, bool) or rate < 0):
                raise ValueError(f"Override {name} must be a non-negative number, got {rate!r}")
        current = store.setdefault(key, Override())
        for name, value in values.items():
            setattr(current, name, value)
        if current.is_empty():
            del store[key]

    @staticmethod
    def _clear(store: Dict, key, field_name: Optional[str]) -> None:
        if key not in store:
            return
        if field_name is None:
            del store[key]
            return
        setattr(store[key], field_name, None)
        if store[key].is_empty():
            del store[key]

    def set_row(self, key: RowKey, **values) -> None:
        self._apply(self._rows, key, values)

    def set_group(self, key: GroupKey, **values) -> None:
        """Group quantity divides the group cost, so it must be positive."""
        self._apply(self._groups, key, values, min_quantity_exclusive=True)

    def clear_row(self, key: RowKey, field_name: Optional[str] = None) -> None:
        self._clear(self._rows, key, field_name)

    def clear_group(self, key: GroupKey, field_name: Optional[str] = None) -> None:
        self._clear(self._groups, key, field_name)

    def row(self, key: RowKey) -> Override:
        return self._rows.get(key) or Override()

    def group(self, key: GroupKey) -> Override:
        return self._groups.get(key) or Override()

    def row_keys(self) -> List[RowKey]:
        return list(self._rows)

    def group_keys(self) -> List[GroupKey]:
        return list(self._groups)

    def to_edits(self) -> Dict[str, Dict]:
        return {
            "rows": {k.row_id: o.to_dict() for k, o in self._rows.items()},
            "groups": {k.group_id: o.to_dict() for k, o in self._groups.items()},
        }

    @classmethod
    def from_edits(cls, edits: Optional[Dict], strict: bool = True) -> "OverrideBook":
        """
        Rebuild from the persisted ``{"rows": ..., "groups": ...}`` shape.
        With ``strict=False`` malformed entries are logged and skipped
        instead of raising ValueError.
        """
        book = cls()
        edits = edits or {}
        sections = (
            (edits.get("rows") or {}, RowKey.parse, book.set_row),
            (edits.get("groups") or {}, GroupKey.parse, book.set_group),
        )
        for entries, parse, setter in sections:
            for raw_key, values in entries.items():
                try:
                    if not isinstance(values, dict):
                        raise ValueError(f"Override for '{raw_key}' must be an object")
                    setter(parse(raw_key), **values)
                except ValueError as e:
                    if strict:
                        raise
                    logger.warning("Skipping stored override '%s': %s", raw_key, e)
        return book

    def retain_rows(self, keys) -> List[RowKey]:
        """Drop row overrides whose row is not in ``keys``; returns the dropped keys."""
        keys = set(keys)
        dropped = [k for k in self._rows if k not in keys]
        for k in dropped:
            del self._rows[k]
        return dropped


@dataclass
class ResolvedRow:
    row_id: str
    material_id: str
    description: str
    unit: str
    quantity: float
    supply_rate: float
    install_rate: float
    location: str = ""
    brand: str = ""
    shop_id: str = ""

    @property
    def supply_amount(self) -> float:
        return self.quantity * self.supply_rate

    @property
    def install_amount(self) -> float:
        return self.quantity * self.install_rate

    def to_dict(self) -> Dict:
        d = asdict(self)
        d["supply_amount"] = self.supply_amount
        d["install_amount"] = self.install_amount
        return d


@dataclass
class GroupedLineItem:
    group_id: str
    title: str
    description: str
    unit: str
    quantity: float
    supply_rate: float
    install_rate: float
    location: str = ""
    rows: List[ResolvedRow] = field(default_factory=list)

    @property
    def supply_amount(self) -> float:
        return self.quantity * self.supply_rate

    @property
    def install_amount(self) -> float:
        return self.quantity * self.install_rate

    def to_dict(self) -> Dict:
        d = asdict(self)
        d["rows"] = [r.to_dict() for r in self.rows]
        d["supply_amount"] = self.supply_amount
        d["install_amount"] = self.install_amount
        return d

    @classmethod
    def from_dict(cls, data: Dict) -> "GroupedLineItem":
        """Rebuild from a stored snapshot; derived amounts are recomputed."""
        row_fields = ResolvedRow.__dataclass_fields__
        rows = [ResolvedRow(**{k: v for k, v in r.items() if k in row_fields}) for r in data.get("rows", [])]
        own = {k: v for k, v in data.items() if k in cls.__dataclass_fields__ and k != "rows"}
        return cls(**own, rows=rows)


Pricer = Callable[[SelectedLine], float]


def reference_pricer(line: SelectedLine) -> float:
    return line.reference_rate


class CatalogPricer:
    """Live supply rate for the selected variant; reference rate when it has left the catalog."""

    def __init__(self, catalog_engine):
        self.catalog_engine = catalog_engine

    def __call__(self, line: SelectedLine) -> float:
        rate = self.catalog_engine.price_of(line.material_id, line.selected_shop_id, line.selected_brand)
        return line.reference_rate if rate is None else rate


def _first(*values):
    for v in values:
        if v is not None:
            return v
    return None


def resolve_row(line: SelectedLine, row_ovr: Override, group_ovr: Override, pricer: Pricer) -> ResolvedRow:
    return ResolvedRow(
        row_id=line.row_id,
        material_id=line.material_id,
        description=_first(row_ovr.description, line.type_label),
        unit=_first(row_ovr.unit, line.unit),
        quantity=float(_first(row_ovr.quantity, line.quantity)),
        supply_rate=float(_first(row_ovr.supply_rate, pricer(line))),
        install_rate=float(_first(row_ovr.install_rate, 0.0)),
        location=_first(row_ovr.location, group_ovr.location, ""),
        brand=line.selected_brand,
        shop_id=line.selected_shop_id,
    )


def build_groups(
    lines: Iterable[SelectedLine],
    overrides: Optional[OverrideBook] = None,
    pricer: Pricer = reference_pricer,
) -> List[GroupedLineItem]:
    """Group lines (first-seen order) and resolve every field through the override chain."""
    overrides = overrides or OverrideBook()
    buckets: "OrderedDict[GroupKey, List[SelectedLine]]" = OrderedDict()
    for line in lines:
        buckets.setdefault(GroupKey.for_line(line), []).append(line)

    groups = []
    for gkey, members in buckets.items():
        g_ovr = overrides.group(gkey)
        rows = [resolve_row(line, overrides.row(line.key), g_ovr, pricer) for line in members]

        qty = float(_first(g_ovr.quantity, DEFAULT_GROUP_QTY))
        divisor = qty if qty > 0 else DEFAULT_GROUP_QTY
        supply_subtotal = sum(r.supply_amount for r in rows)
        install_subtotal = sum(r.install_amount for r in rows)

        groups.append(GroupedLineItem(
            group_id=gkey.group_id,
            title=gkey.title,
            description=_first(g_ovr.description, ", ".join(r.description for r in rows)),
            unit=_first(g_ovr.unit, DEFAULT_GROUP_UNIT),
            quantity=divisor,
            supply_rate=float(_first(g_ovr.supply_rate, supply_subtotal / divisor)),
            install_rate=float(_first(g_ovr.install_rate, install_subtotal / divisor)),
            location=_first(g_ovr.location, ""),
            rows=rows,
        ))
    return groups
