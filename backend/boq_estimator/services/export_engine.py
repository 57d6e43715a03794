"""
Export Engine — flattens grouped BOQ items into the ordered export shape:

    sno, item, description, unit, qty,
    supply_rate, install_rate, supply_amount, install_amount

plus document totals. Rendering (PDF / CSV / XLSX) is the caller's concern.
"""
from dataclasses import dataclass, asdict
from typing import Any, Dict, Iterable, List

from boq_estimator.services.grouping_engine import GroupedLineItem
from boq_estimator.services.totals_engine import Totals, TotalsEngine


@dataclass
class ExportRecord:
    sno: str
    item: str
    description: str
    unit: str
    qty: float
    supply_rate: float
    install_rate: float
    supply_amount: float
    install_amount: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _record(sno: str, item: str, line) -> ExportRecord:
    return ExportRecord(
        sno=sno,
        item=item,
        description=line.description,
        unit=line.unit,
        qty=line.quantity,
        supply_rate=round(line.supply_rate, 2),
        install_rate=round(line.install_rate, 2),
        supply_amount=round(line.supply_amount, 2),
        install_amount=round(line.install_amount, 2),
    )


def export_records(groups: Iterable[GroupedLineItem], include_rows: bool = False) -> List[ExportRecord]:
    """One record per group (sno 1, 2, ...); material rows as 1.1, 1.2 when requested."""
    records = []
    for i, group in enumerate(groups, start=1):
        records.append(_record(str(i), group.title, group))
        if include_rows:
            for j, row in enumerate(group.rows, start=1):
                records.append(_record(f"{i}.{j}", row.description, row))
    return records


def build_export(groups: List[GroupedLineItem], totals: Totals, include_rows: bool = False) -> Dict[str, Any]:
    return {
        "rows": [r.to_dict() for r in export_records(groups, include_rows)],
        "totals": totals.to_dict(),
    }


def groups_from_items(items: Iterable) -> List[GroupedLineItem]:
    """Groups stored on committed BOQ items, in item order."""
    groups = []
    for item in items:
        for data in (item.table_data or {}).get("groups", []):
            groups.append(GroupedLineItem.from_dict(data))
    return groups


def summarize_items(items: Iterable, totals_engine: TotalsEngine, include_rows: bool = False) -> Dict[str, Any]:
    groups = groups_from_items(items)
    totals = totals_engine.compute(groups)
    return {
        "groups": [g.to_dict() for g in groups],
        **build_export(groups, totals, include_rows),
    }
