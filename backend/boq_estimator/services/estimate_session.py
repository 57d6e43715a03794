"""
Estimate Session — per-user estimating context.

Holds the selected project/version, the catalog snapshot, the working set and
its overrides. Local edits apply immediately; persistence goes through the
VersionEngine (so submitted versions reject writes) via a debounced autosave.

Pipeline for one configuration:
    derive_requirements → QuantityEngine → CatalogEngine.resolve →
    default/brand selection → WorkingSet.add_batch
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from boq_estimator.services.aggregation_engine import (
    BatchKey,
    RemoveTarget,
    RowKey,
    SelectedLine,
    WorkingSet,
    build_lines,
)
from boq_estimator.services.autosave import AutosaveScheduler
from boq_estimator.services.catalog_engine import (
    STATUS_NO_MATCH,
    STATUS_UNAVAILABLE,
    CatalogEngine,
    Resolution,
    Selection,
)
from boq_estimator.services.errors import (
    CATALOG_UNAVAILABLE,
    CONFIGURATION_INCOMPLETE,
    NO_CATALOG_MATCH,
    ConfigurationIncomplete,
    Diagnostic,
    NoCatalogMatch,
)
from boq_estimator.services.export_engine import build_export
from boq_estimator.services.grouping_engine import (
    CatalogPricer,
    GroupedLineItem,
    GroupKey,
    OverrideBook,
    build_groups,
)
from boq_estimator.services.quantity_engine import QuantityEngine
from boq_estimator.services.requirement_engine import (
    RequiredMaterialSpec,
    WorkPackageConfiguration,
    canonical_type,
    derive_requirements,
)
from boq_estimator.services.store import BOQItem
from boq_estimator.services.totals_engine import Totals, TotalsEngine
from boq_estimator.services.version_engine import VersionEngine

logger = logging.getLogger("boq-session")


@dataclass
class EstimateOutcome:
    config: WorkPackageConfiguration
    specs: List[RequiredMaterialSpec] = field(default_factory=list)
    quantities: Dict[str, int] = field(default_factory=dict)
    resolutions: List[Resolution] = field(default_factory=list)
    picks: List[Dict[str, Any]] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.picks

    def to_dict(self) -> Dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "requirements": [
                {**s.to_dict(), "quantity": self.quantities.get(s.type_label)} for s in self.specs
            ],
            "resolutions": [
                {
                    "type_label": r.spec.type_label,
                    "status": r.status,
                    "match_mode": r.match_mode,
                    "variants": [v.to_dict() for v in r.variants],
                }
                for r in self.resolutions
            ],
            "selections": [
                {
                    "type_label": p["spec"].type_label,
                    "material_id": p["selection"].material_id,
                    "shop_id": p["selection"].shop_id,
                    "brand": p["selection"].brand,
                    "rate": p["selection"].rate,
                    "quantity": p["quantity"],
                }
                for p in self.picks
            ],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


class EstimateSession:
    def __init__(
        self,
        catalog: CatalogEngine,
        versions: Optional[VersionEngine] = None,
        version_id: Optional[str] = None,
        totals_engine: Optional[TotalsEngine] = None,
        autosave_delay_s: Optional[float] = None,
        autosave: bool = True,
    ):
        self.catalog = catalog
        self.versions = versions
        self.version_id = version_id
        self.totals_engine = totals_engine or TotalsEngine()
        self.quantity_engine = QuantityEngine()
        self.working_set = WorkingSet()
        self.overrides = OverrideBook()
        self._removed_row_ids: Set[str] = set()
        self.autosave: Optional[AutosaveScheduler] = None
        if versions is not None and autosave:
            kwargs = {} if autosave_delay_s is None else {"delay_s": autosave_delay_s}
            self.autosave = AutosaveScheduler(self.save, **kwargs)

    # ------------------------------------------------------------------
    # Estimate (pure with respect to session state)
    # ------------------------------------------------------------------

    def estimate(self, cfg: WorkPackageConfiguration,
                 brand_choices: Optional[Dict[str, str]] = None) -> EstimateOutcome:
        outcome = EstimateOutcome(config=cfg)
        specs = derive_requirements(cfg)
        if not specs:
            outcome.diagnostics.append(Diagnostic(
                CONFIGURATION_INCOMPLETE,
                f"No requirements for {cfg.work_package}/{cfg.type}; check type and dimensions",
                cfg.type,
            ))
            return outcome
        outcome.specs = specs

        try:
            for spec in specs:
                outcome.quantities[spec.type_label] = self.quantity_engine.for_dimensions(
                    spec.role, cfg.dimensions, spec.required_quantity
                )
        except ConfigurationIncomplete as e:
            outcome.quantities = {}
            outcome.diagnostics.append(Diagnostic(CONFIGURATION_INCOMPLETE, str(e), cfg.type))
            return outcome

        outcome.resolutions = self.catalog.resolve_all(specs, cfg.work_package, canonical_type(cfg))
        if any(r.status == STATUS_UNAVAILABLE for r in outcome.resolutions):
            outcome.diagnostics.append(Diagnostic(CATALOG_UNAVAILABLE, "Catalog could not be loaded"))
            return outcome

        brand_choices = brand_choices or {}
        defaults = self.catalog.select_all(outcome.resolutions)
        for res in outcome.resolutions:
            if res.status == STATUS_NO_MATCH:
                outcome.diagnostics.append(res.diagnostic)
                continue
            label = res.spec.type_label
            selection = defaults[label]
            if label in brand_choices:
                try:
                    selection = self.catalog.switch_brand(selection, brand_choices[label])
                except NoCatalogMatch as e:
                    # Keep the default pick; the requested brand is reported back
                    outcome.diagnostics.append(Diagnostic(NO_CATALOG_MATCH, str(e), label))
            outcome.picks.append({
                "spec": res.spec,
                "selection": selection,
                "quantity": outcome.quantities[label],
            })
        return outcome

    # ------------------------------------------------------------------
    # Working-set edits
    # ------------------------------------------------------------------

    def add_to_estimate(self, cfg: WorkPackageConfiguration,
                        brand_choices: Optional[Dict[str, str]] = None):
        """Returns (BatchKey or None, EstimateOutcome)."""
        outcome = self.estimate(cfg, brand_choices)
        if outcome.is_empty:
            return None, outcome
        batch = BatchKey.for_configuration(cfg)
        self.working_set.add_batch(build_lines(cfg, batch, outcome.picks))
        logger.info("Added %s/%s as batch %s (%d lines)", cfg.work_package, cfg.type,
                    batch, len(outcome.picks), extra={"version_id": self.version_id})
        self._changed()
        return batch, outcome

    def switch_brand(self, key: RowKey, brand: str) -> SelectedLine:
        line = self.working_set.get(key)
        if line is None:
            raise KeyError(key.row_id)
        current = Selection(line.material_id, line.selected_shop_id, line.selected_brand, line.reference_rate)
        picked = self.catalog.switch_brand(current, brand)
        line.selected_brand = picked.brand
        line.selected_shop_id = picked.shop_id
        self._changed()
        return line

    def set_row_override(self, key: RowKey, **values) -> None:
        if key not in self.working_set:
            raise KeyError(key.row_id)
        self.overrides.set_row(key, **values)
        self._changed()

    def clear_row_override(self, key: RowKey, field_name: Optional[str] = None) -> None:
        self.overrides.clear_row(key, field_name)
        self._changed()

    def set_group_override(self, key: GroupKey, **values) -> None:
        self.overrides.set_group(key, **values)
        self._changed()

    def clear_group_override(self, key: GroupKey, field_name: Optional[str] = None) -> None:
        self.overrides.clear_group(key, field_name)
        self._changed()

    def remove(self, target: RemoveTarget) -> List[RowKey]:
        removed = self.working_set.remove(target, self.overrides)
        self._removed_row_ids.update(k.row_id for k in removed)
        if removed:
            self._changed()
        return removed

    def _changed(self) -> None:
        if self.autosave is not None and self.version_id is not None:
            self.autosave.schedule()

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def groups(self) -> List[GroupedLineItem]:
        return build_groups(self.working_set.lines(), self.overrides, CatalogPricer(self.catalog))

    def totals(self, tax_scope: Optional[str] = None) -> Totals:
        return self.totals_engine.compute(self.groups(), tax_scope)

    def export(self, include_rows: bool = False) -> Dict[str, Any]:
        groups = self.groups()
        return build_export(groups, self.totals_engine.compute(groups), include_rows)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _require_versions(self) -> VersionEngine:
        if self.versions is None or self.version_id is None:
            raise RuntimeError("Session has no version selected")
        return self.versions

    async def save(self) -> None:
        """Write working-set rows, deletions and overrides for the selected version."""
        versions = self._require_versions()
        version_id = self.version_id
        removed = sorted(self._removed_row_ids)
        if removed:
            await versions.delete_working_rows(version_id, removed)
            self._removed_row_ids.difference_update(removed)
        await versions.upsert_working_rows(version_id, [line.to_row() for line in self.working_set])
        await versions.save_edits(version_id, self.overrides.to_edits())

    async def load(self) -> None:
        """Merge the saved working set and overrides into local state."""
        versions = self._require_versions()
        saved = [SelectedLine.from_row(r) for r in await versions.list_working_rows(self.version_id)]
        self.working_set.merge_saved(saved)

        local = self.overrides
        merged = OverrideBook.from_edits(await versions.get_edits(self.version_id), strict=False)
        stale = merged.retain_rows(line.key for line in self.working_set)
        if stale:
            logger.warning("Dropped %d stored row override(s) with no working-set row", len(stale),
                           extra={"version_id": self.version_id})
        for key in local.row_keys():
            if key in self.working_set:
                merged.set_row(key, **local.row(key).to_dict())
        for key in local.group_keys():
            merged.set_group(key, **local.group(key).to_dict())
        self.overrides = merged

    async def select_version(self, version_id: str) -> None:
        """Point the session at another version and load its saved working set."""
        if self.autosave is not None and self.autosave.pending:
            await self.autosave.flush()
        self.version_id = version_id
        self.working_set = WorkingSet()
        self.overrides = OverrideBook()
        self._removed_row_ids = set()
        if self.versions is not None:
            await self.load()

    async def commit(self) -> List[BOQItem]:
        """
        Snapshot the grouped working set into BOQ items (one per work package)
        and clear it. Raises VersionLocked on a submitted version.
        """
        versions = self._require_versions()
        groups = self.groups()
        if not groups:
            return []

        by_package: Dict[str, List[GroupedLineItem]] = {}
        for group in groups:
            by_package.setdefault(GroupKey.parse(group.group_id).work_package, []).append(group)

        entries = [
            (package, {
                "work_package": package,
                "groups": [g.to_dict() for g in package_groups],
                "totals": self.totals_engine.compute(package_groups).to_dict(),
            })
            for package, package_groups in by_package.items()
        ]
        # Single write: on failure nothing is stored and the working set is kept
        items = await versions.add_items(self.version_id, entries)

        self._removed_row_ids.update(line.row_id for line in self.working_set)
        self.working_set = WorkingSet()
        self.overrides = OverrideBook()
        self._changed()
        return items
