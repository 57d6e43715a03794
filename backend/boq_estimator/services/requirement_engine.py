"""
Requirement Engine — derives the list of required materials for a work-package
configuration.

Strategy tables:
  WORK_PACKAGES  — work package ("doors", "painting", "flooring") → strategy
  DOOR_VARIANTS  — door type ("flush", "wpc", "glass", "wooden", "stile") →
                   panel entries + glazing predicate

Each RequiredMaterialSpec carries a per-unit base quantity and a role; the
QuantityEngine scales it to the configured count. Derivation is pure: the same
configuration always yields the same list in the same order. Unknown types or
missing dimensions yield an empty list.
"""
import logging
import math
from dataclasses import dataclass, field, asdict
from typing import Callable, Dict, List, Optional

from boq_estimator.config import (
    CRACK_FILLER_COVERAGE_SQFT_PER_KG,
    FLOORING_WASTAGE_PCT,
    FRAME_SCREWS_PER_RFT,
    GROUT_SQFT_PER_KG,
    PAINT_COVERAGE_SQFT_PER_LTR,
    PUTTY_COVERAGE_SQFT_PER_KG,
    SCREWS_PER_HINGE,
    TILE_ADHESIVE_SQFT_PER_BAG,
    WALL_PLUGS_PER_RFT,
)
from boq_estimator.services.quantity_engine import (
    ROLE_FRAME,
    ROLE_GLASS,
    ROLE_HARDWARE,
    ROLE_HINGE,
    ROLE_PANEL,
    ROLE_SCALED,
    hinges_per_door,
    perimeter,
)

logger = logging.getLogger("boq-requirements")


@dataclass(frozen=True)
class Dimensions:
    count: int = 1
    height: Optional[float] = None       # ft (wall height for painting, room length for flooring)
    width: Optional[float] = None        # ft
    glass_height: Optional[float] = None
    glass_width: Optional[float] = None


@dataclass(frozen=True)
class WorkPackageConfiguration:
    type: str
    dimensions: Dimensions = field(default_factory=Dimensions)
    work_package: str = "doors"
    sub_option: Optional[str] = None
    glazing_type: Optional[str] = None
    has_frame: bool = False
    panel_type: Optional[str] = None

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "WorkPackageConfiguration":
        dims = data.get("dimensions") or {}
        return cls(
            type=data["type"],
            dimensions=Dimensions(**dims),
            work_package=data.get("work_package", "doors"),
            sub_option=data.get("sub_option"),
            glazing_type=data.get("glazing_type"),
            has_frame=bool(data.get("has_frame", False)),
            panel_type=data.get("panel_type"),
        )


@dataclass
class RequiredMaterialSpec:
    type_label: str
    required_quantity: float     # per unit; scaled by QuantityEngine
    unit: str
    reference_rate: float
    category: str
    role: str = ROLE_SCALED

    def to_dict(self) -> Dict:
        return asdict(self)


def _spec(label, qty, unit, rate, category, role=ROLE_SCALED) -> RequiredMaterialSpec:
    return RequiredMaterialSpec(label, qty, unit, rate, category, role)


# ---------------------------------------------------------------------------
# Doors
# ---------------------------------------------------------------------------

DOOR_TYPE_ALIASES: Dict[str, str] = {
    "flush-door": "flush",
    "wpc-door": "wpc",
    "glassdoor": "glass",
    "glass-door": "glass",
    "wooden-door": "wooden",
    "teak": "wooden",
    "stile-door": "stile",
}


def canonical_door_type(door_type: str) -> str:
    key = (door_type or "").strip().lower()
    return DOOR_TYPE_ALIASES.get(key, key)


def _door_area(cfg: WorkPackageConfiguration) -> float:
    return cfg.dimensions.height * cfg.dimensions.width


def _is_double_glazed(cfg: WorkPackageConfiguration) -> bool:
    for value in (cfg.glazing_type, cfg.sub_option):
        if value and "double" in value.lower():
            return True
    return False


def _flush_panel(cfg: WorkPackageConfiguration, hinges: int) -> List[RequiredMaterialSpec]:
    vision_panel = (cfg.sub_option or "").lower() == "with vision panel"
    specs = [
        _spec("Flush Door - BWR (With VP)" if vision_panel else "Flush Door - BWR",
              1, "pcs", 4500 if vision_panel else 3500, "Door Panel", ROLE_PANEL),
    ]
    if vision_panel:
        specs.append(_spec("Vision Panel Glass", 1, "sqft", 280, "Glass", ROLE_GLASS))
    specs.append(_spec("Hinges - SS (Pair)", hinges, "pair", 180, "Hardware", ROLE_HINGE))
    return specs


def _wpc_panel(cfg: WorkPackageConfiguration, hinges: int) -> List[RequiredMaterialSpec]:
    hollow = (cfg.sub_option or "").lower() == "hollow core"
    return [
        _spec("WPC Door - Hollow" if hollow else "WPC Door - Solid",
              1, "pcs", 3800 if hollow else 5500, "Door Panel", ROLE_PANEL),
        _spec("Hinges - SS (Pair)", hinges, "pair", 180, "Hardware", ROLE_HINGE),
    ]


def _glass_panel(cfg: WorkPackageConfiguration, hinges: int) -> List[RequiredMaterialSpec]:
    frameless = (cfg.sub_option or "").lower() == "frameless"
    specs = [
        _spec("Glass - Toughened 12mm" if frameless else "Glass - Toughened 10mm",
              math.ceil(_door_area(cfg)), "sqft", 420 if frameless else 320, "Glass"),
        _spec("Patch Fitting - Standard", 1, "set", 2800, "Hardware", ROLE_HARDWARE),
        _spec("Floor Spring - Standard", 1, "pcs", 3500, "Hardware", ROLE_HARDWARE),
    ]
    if (cfg.sub_option or "").lower() == "framed":
        specs.append(_spec("Header Rail", 1, "pcs", 1500, "Frame", ROLE_HARDWARE))
        specs.append(_spec("Side Rail", 2, "pcs", 1200, "Frame", ROLE_HARDWARE))
    return specs


def _wooden_panel(cfg: WorkPackageConfiguration, hinges: int) -> List[RequiredMaterialSpec]:
    solid = (cfg.sub_option or "").lower() == "solid wood"
    return [
        _spec("Wooden Door - Teak" if solid else "Wooden Door - Sal",
              1, "pcs", 18000 if solid else 12000, "Door Panel", ROLE_PANEL),
        _spec("Hinges - Brass (Pair)", hinges, "pair", 350, "Hardware", ROLE_HINGE),
    ]


def _stile_panel(cfg: WorkPackageConfiguration, hinges: int) -> List[RequiredMaterialSpec]:
    area = _door_area(cfg)
    dgu = _is_double_glazed(cfg)
    return [
        _spec("Glass - Toughened 12mm (DGU)" if dgu else "Glass - Toughened 10mm",
              math.ceil(area * 0.6), "sqft", 650 if dgu else 320, "Glass"),
        _spec("Aluminium Stile Frame", math.ceil(area * 0.4), "sqft", 280, "Frame"),
        _spec("Patch Fitting - Standard", 1, "set", 2800, "Hardware", ROLE_HARDWARE),
        _spec("Floor Spring - Standard", 1, "pcs", 3500, "Hardware", ROLE_HARDWARE),
    ]


@dataclass(frozen=True)
class DoorVariant:
    key: str
    label: str
    sub_options: tuple
    glazing_based: bool
    panel_entries: Callable[[WorkPackageConfiguration, int], List[RequiredMaterialSpec]]

    def glazing_required(self, cfg: WorkPackageConfiguration) -> bool:
        if self.glazing_based:
            return True
        return (cfg.sub_option or "").lower() == "with vision panel"


DOOR_VARIANTS: Dict[str, DoorVariant] = {
    "flush": DoorVariant("flush", "Flush Door", ("With Vision Panel", "Without Vision Panel"),
                         False, _flush_panel),
    "wpc": DoorVariant("wpc", "WPC Door", ("Solid", "Hollow Core"), False, _wpc_panel),
    "glass": DoorVariant("glass", "Glass Door", ("Frameless", "Framed"), True, _glass_panel),
    "wooden": DoorVariant("wooden", "Wooden Door", ("Solid Wood", "Engineered Wood"),
                          False, _wooden_panel),
    "stile": DoorVariant("stile", "Stile Door", ("Single Glazing", "Double Glazing"),
                         True, _stile_panel),
}


class DoorWorkPackage:
    name = "doors"

    def variant(self, cfg: WorkPackageConfiguration) -> Optional[DoorVariant]:
        return DOOR_VARIANTS.get(canonical_door_type(cfg.type))

    def panel_type(self, cfg: WorkPackageConfiguration) -> str:
        if cfg.panel_type:
            return cfg.panel_type
        variant = self.variant(cfg)
        return "nopanel" if variant and variant.glazing_based else "panel"

    def derive(self, cfg: WorkPackageConfiguration) -> List[RequiredMaterialSpec]:
        variant = self.variant(cfg)
        dims = cfg.dimensions
        if variant is None or not dims.height or not dims.width:
            return []

        hinges = hinges_per_door(dims.height)
        specs: List[RequiredMaterialSpec] = []

        if cfg.has_frame:
            frame_rft = math.ceil(perimeter(dims.height, dims.width))
            specs.extend([
                _spec("Door Frame - Wooden", frame_rft, "rft", 280, "Frame", ROLE_FRAME),
                _spec("Frame Screws", math.ceil(frame_rft * FRAME_SCREWS_PER_RFT), "pcs", 2, "Hardware"),
                _spec("Wall Plugs / Anchors", math.ceil(frame_rft * WALL_PLUGS_PER_RFT), "pcs", 5, "Hardware"),
            ])

        specs.extend(variant.panel_entries(cfg, hinges))

        if variant.glazing_based:
            specs.append(_spec("Glass Door Lock", 1, "pcs", 1200, "Hardware", ROLE_HARDWARE))
            specs.append(_spec("Glass Door Handle - Standard", 1, "pair", 850, "Hardware", ROLE_HARDWARE))
        else:
            specs.append(_spec("Mortise Lock - Standard", 1, "pcs", 650, "Hardware", ROLE_HARDWARE))
            specs.append(_spec("Door Handle - Standard", 1, "pcs", 450, "Hardware", ROLE_HARDWARE))

        specs.append(_spec("Door Stopper - Floor Mount", 1, "pcs", 120, "Hardware", ROLE_HARDWARE))

        if not variant.glazing_based:
            specs.append(_spec("Door Screws", hinges * SCREWS_PER_HINGE, "pcs", 2, "Hardware"))

        return specs


# ---------------------------------------------------------------------------
# Painting
# ---------------------------------------------------------------------------

class PaintingWorkPackage:
    """Wall painting: height × width (wall length) per wall, count walls."""
    name = "painting"

    def panel_type(self, cfg: WorkPackageConfiguration) -> str:
        return cfg.panel_type or "wall"

    def derive(self, cfg: WorkPackageConfiguration) -> List[RequiredMaterialSpec]:
        dims = cfg.dimensions
        if not dims.height or not dims.width:
            return []
        area = dims.height * dims.width
        paint_ltr = area / PAINT_COVERAGE_SQFT_PER_LTR
        kind = (cfg.type or "").strip().lower()

        if kind == "interior":
            return [
                _spec("Primer", paint_ltr, "ltr", 220, "Primer"),
                _spec("Wall Putty", area / PUTTY_COVERAGE_SQFT_PER_KG, "kg", 40, "Putty"),
                _spec("Interior Emulsion", paint_ltr, "ltr", 320, "Paint"),
                _spec("Sandpaper", 1, "pcs", 15, "Consumable", ROLE_HARDWARE),
            ]
        if kind == "exterior":
            return [
                _spec("External Primer", paint_ltr, "ltr", 260, "Primer"),
                _spec("Exterior Emulsion", paint_ltr, "ltr", 450, "Paint"),
                _spec("Crack Filler", area / CRACK_FILLER_COVERAGE_SQFT_PER_KG, "kg", 120, "Filler"),
            ]
        return []


# ---------------------------------------------------------------------------
# Flooring
# ---------------------------------------------------------------------------

_FLOORING_FINISH: Dict[str, tuple] = {
    # type: (label, unit rate per sqft)
    "vitrified": ("Vitrified Tiles 600x600", 85),
    "ceramic": ("Ceramic Tiles 300x300", 45),
    "wooden": ("Laminate Wooden Flooring 8mm", 120),
}


class FlooringWorkPackage:
    """Floor finish: room length × width, 10% wastage on the finish material."""
    name = "flooring"

    def panel_type(self, cfg: WorkPackageConfiguration) -> str:
        return cfg.panel_type or "floor"

    def derive(self, cfg: WorkPackageConfiguration) -> List[RequiredMaterialSpec]:
        dims = cfg.dimensions
        kind = (cfg.type or "").strip().lower()
        if kind not in _FLOORING_FINISH or not dims.height or not dims.width:
            return []
        area = dims.height * dims.width
        label, rate = _FLOORING_FINISH[kind]
        specs = [_spec(label, area * (1 + FLOORING_WASTAGE_PCT), "sqft", rate, "Flooring")]
        if kind == "wooden":
            specs.append(_spec("Foam Underlay", area, "sqft", 12, "Underlay"))
        else:
            specs.append(_spec("Tile Adhesive", area / TILE_ADHESIVE_SQFT_PER_BAG, "bag", 380, "Adhesive"))
            specs.append(_spec("Tile Grout", area / GROUT_SQFT_PER_KG, "kg", 90, "Grout"))
        return specs


WORK_PACKAGES: Dict[str, object] = {
    "doors": DoorWorkPackage(),
    "painting": PaintingWorkPackage(),
    "flooring": FlooringWorkPackage(),
}


def work_package_for(cfg: WorkPackageConfiguration):
    return WORK_PACKAGES.get((cfg.work_package or "").strip().lower())


def derive_requirements(cfg: WorkPackageConfiguration) -> List[RequiredMaterialSpec]:
    """Required materials for one configuration; [] when it is incomplete or unknown."""
    package = work_package_for(cfg)
    if package is None:
        logger.debug("Unknown work package '%s'", cfg.work_package)
        return []
    return package.derive(cfg)


def resolve_panel_type(cfg: WorkPackageConfiguration) -> str:
    package = work_package_for(cfg)
    if package is None:
        return cfg.panel_type or ""
    return package.panel_type(cfg)


def canonical_type(cfg: WorkPackageConfiguration) -> str:
    if (cfg.work_package or "").lower() == "doors":
        return canonical_door_type(cfg.type)
    return (cfg.type or "").strip().lower()
