"""
Aggregation Engine — the working set of selected lines for an estimating
session.

Identity:
  BatchKey — one per "add to estimate" action: sha1(config JSON + salt)
  RowKey   — (batch_id, material_id); unique within a batch

Dedup rules:
  * within a batch, rows are deduplicated by RowKey
  * merging new rows into a previously saved working set deduplicates by
    material_id alone, so re-adding a material that is already saved keeps
    the saved row
"""
import hashlib
import json
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, List, Optional, Union

from boq_estimator.services.requirement_engine import (
    WorkPackageConfiguration,
    canonical_type,
    resolve_panel_type,
)

logger = logging.getLogger("boq-aggregation")


@dataclass(frozen=True)
class BatchKey:
    value: str

    @classmethod
    def for_configuration(cls, cfg: WorkPackageConfiguration, salt: Optional[str] = None) -> "BatchKey":
        payload = json.dumps(cfg.to_dict(), sort_keys=True, default=str)
        salt = salt if salt is not None else uuid.uuid4().hex
        digest = hashlib.sha1(f"{payload}|{salt}".encode("utf-8")).hexdigest()
        return cls(f"b{digest[:12]}")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RowKey:
    batch_id: str
    material_id: str

    @property
    def row_id(self) -> str:
        return f"{self.batch_id}:{self.material_id}"

    @classmethod
    def parse(cls, row_id: str) -> "RowKey":
        batch_id, _, material_id = row_id.partition(":")
        if not batch_id or not material_id:
            raise ValueError(f"Malformed row id '{row_id}'")
        return cls(batch_id, material_id)

    def __str__(self) -> str:
        return self.row_id


@dataclass
class SelectedLine:
    material_id: str
    batch_id: str
    selected_shop_id: str
    selected_brand: str
    type_label: str
    unit: str
    quantity: int                   # computed default; overrides live elsewhere
    reference_rate: float
    category: str = ""
    work_package: str = "doors"
    package_type: str = ""
    sub_option: str = ""
    panel_type: str = ""

    @property
    def key(self) -> RowKey:
        return RowKey(self.batch_id, self.material_id)

    @property
    def row_id(self) -> str:
        return self.key.row_id

    def to_row(self) -> Dict:
        row = asdict(self)
        row["row_id"] = self.row_id
        return row

    @classmethod
    def from_row(cls, row: Dict) -> "SelectedLine":
        fields = {k: v for k, v in row.items() if k in cls.__dataclass_fields__}
        return cls(**fields)


def build_lines(
    cfg: WorkPackageConfiguration,
    batch: BatchKey,
    picks: Iterable[Dict],
) -> List[SelectedLine]:
    """
    ``picks`` entries: {spec, selection, quantity} as produced by the session's
    estimate step.
    """
    package_type = canonical_type(cfg)
    panel_type = resolve_panel_type(cfg)
    lines = []
    for pick in picks:
        spec, sel = pick["spec"], pick["selection"]
        lines.append(SelectedLine(
            material_id=sel.material_id,
            batch_id=batch.value,
            selected_shop_id=sel.shop_id,
            selected_brand=sel.brand,
            type_label=spec.type_label,
            unit=spec.unit,
            quantity=int(pick["quantity"]),
            reference_rate=float(spec.reference_rate),
            category=spec.category,
            work_package=cfg.work_package,
            package_type=package_type,
            sub_option=cfg.sub_option or "",
            panel_type=panel_type,
        ))
    return lines


def merge_into(saved: Iterable[SelectedLine], new: Iterable[SelectedLine]) -> List[SelectedLine]:
    """Append ``new`` rows whose material_id is not already saved."""
    merged = list(saved)
    present = {line.material_id for line in merged}
    for line in new:
        if line.material_id in present:
            continue
        present.add(line.material_id)
        merged.append(line)
    return merged


RemoveTarget = Union[RowKey, BatchKey, str]


class WorkingSet:
    """Ordered collection of SelectedLines keyed by RowKey."""

    def __init__(self, lines: Optional[Iterable[SelectedLine]] = None):
        self._rows: "OrderedDict[RowKey, SelectedLine]" = OrderedDict()
        for line in lines or []:
            self._rows.setdefault(line.key, line)

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self):
        return iter(list(self._rows.values()))

    def __contains__(self, key: RowKey) -> bool:
        return key in self._rows

    def lines(self) -> List[SelectedLine]:
        return list(self._rows.values())

    def get(self, key: RowKey) -> Optional[SelectedLine]:
        return self._rows.get(key)

    def add_batch(self, lines: Iterable[SelectedLine]) -> List[RowKey]:
        """Add rows from one batch; duplicate RowKeys inside the batch collapse to the first."""
        added = []
        for line in lines:
            if line.key in self._rows:
                continue
            self._rows[line.key] = line
            added.append(line.key)
        return added

    def merge_saved(self, saved: Iterable[SelectedLine]) -> None:
        """Replace contents with ``saved`` followed by local rows not already saved (by material_id)."""
        merged = merge_into(saved, self._rows.values())
        self._rows = OrderedDict((line.key, line) for line in merged)

    def replace(self, key: RowKey, line: SelectedLine) -> None:
        if key not in self._rows:
            raise KeyError(key.row_id)
        self._rows[key] = line

    def matching(self, target: RemoveTarget) -> List[RowKey]:
        if isinstance(target, RowKey):
            return [target] if target in self._rows else []
        if isinstance(target, BatchKey):
            return [k for k in self._rows if k.batch_id == target.value]
        return [k for k in self._rows if k.material_id == target or k.row_id == target]

    def remove(self, target: RemoveTarget, overrides=None) -> List[RowKey]:
        """
        Remove every row matching a RowKey, a BatchKey, a row id or a
        material id, together with their row overrides.
        """
        keys = self.matching(target)
        for key in keys:
            del self._rows[key]
            if overrides is not None:
                overrides.clear_row(key)
        if keys:
            logger.debug("Removed %d row(s) for %s", len(keys), target)
        return keys

    def batches(self) -> List[str]:
        seen: List[str] = []
        for key in self._rows:
            if key.batch_id not in seen:
                seen.append(key.batch_id)
        return seen
