"""
test_requirement_engine.py — Unit tests for the work-package requirement tables.

Tests cover:
  - Door variants: flush (with/without vision panel), wpc, glass, wooden, stile
  - Frame entries and the hardware tail (mortise vs glass-door locks)
  - Door type aliases (flush-door, glassdoor, teak, ...)
  - Painting (interior / exterior) and flooring coverage rules
  - Incomplete or unknown configurations yielding an empty list
  - Determinism: identical configurations derive identical lists
"""

import pytest

from boq_estimator.services.requirement_engine import (
    DOOR_VARIANTS,
    Dimensions,
    WorkPackageConfiguration,
    canonical_door_type,
    derive_requirements,
    resolve_panel_type,
)


def _door(door_type, sub_option=None, has_frame=False, count=1, height=7, width=3, **kw):
    return WorkPackageConfiguration(
        type=door_type,
        sub_option=sub_option,
        has_frame=has_frame,
        dimensions=Dimensions(count=count, height=height, width=width),
        **kw,
    )


def _labels(specs):
    return [s.type_label for s in specs]


def _by_label(specs):
    return {s.type_label: s for s in specs}


# ===========================================================================
# Class 1: Flush doors
# ===========================================================================

class TestFlushDoor:
    """Flush door panel entries, vision panel glass and frame set."""

    def test_with_vision_panel_full_list(self, flush_vp_config):
        specs = derive_requirements(flush_vp_config)
        assert _labels(specs) == [
            "Door Frame - Wooden",
            "Frame Screws",
            "Wall Plugs / Anchors",
            "Flush Door - BWR (With VP)",
            "Vision Panel Glass",
            "Hinges - SS (Pair)",
            "Mortise Lock - Standard",
            "Door Handle - Standard",
            "Door Stopper - Floor Mount",
            "Door Screws",
        ]

    def test_vision_panel_rates(self, flush_vp_config):
        specs = _by_label(derive_requirements(flush_vp_config))
        assert specs["Flush Door - BWR (With VP)"].reference_rate == 4500
        assert specs["Vision Panel Glass"].reference_rate == 280
        assert specs["Vision Panel Glass"].unit == "sqft"

    def test_frame_base_quantities(self, flush_vp_config):
        """
        Perimeter 2 × (7 + 3) = 20 rft per door.
        Frame screws = 20 × 2 = 40, wall plugs = 20 × 1.5 = 30.
        """
        specs = _by_label(derive_requirements(flush_vp_config))
        assert specs["Door Frame - Wooden"].required_quantity == 20
        assert specs["Frame Screws"].required_quantity == 40
        assert specs["Wall Plugs / Anchors"].required_quantity == 30

    def test_door_screws_six_per_hinge(self, flush_vp_config):
        specs = _by_label(derive_requirements(flush_vp_config))
        assert specs["Hinges - SS (Pair)"].required_quantity == 3
        assert specs["Door Screws"].required_quantity == 18

    def test_without_vision_panel(self):
        specs = _by_label(derive_requirements(_door("flush", "Without Vision Panel")))
        assert "Flush Door - BWR" in specs
        assert specs["Flush Door - BWR"].reference_rate == 3500
        assert "Vision Panel Glass" not in specs

    def test_no_frame_entries_without_frame(self):
        labels = _labels(derive_requirements(_door("flush")))
        assert "Door Frame - Wooden" not in labels
        assert "Frame Screws" not in labels

    def test_glazing_required_only_with_vision_panel(self):
        variant = DOOR_VARIANTS["flush"]
        assert variant.glazing_required(_door("flush", "With Vision Panel"))
        assert not variant.glazing_required(_door("flush", "Without Vision Panel"))


# ===========================================================================
# Class 2: Other door types
# ===========================================================================

class TestOtherDoorTypes:

    def test_wpc_hollow_core(self):
        specs = _by_label(derive_requirements(_door("wpc", "Hollow Core")))
        assert specs["WPC Door - Hollow"].reference_rate == 3800

    def test_wpc_solid_default(self):
        assert "WPC Door - Solid" in _labels(derive_requirements(_door("wpc")))

    def test_wooden_solid_wood_uses_teak_and_brass_hinges(self):
        specs = _by_label(derive_requirements(_door("wooden", "Solid Wood")))
        assert specs["Wooden Door - Teak"].reference_rate == 18000
        assert specs["Hinges - Brass (Pair)"].reference_rate == 350

    def test_wooden_engineered_uses_sal(self):
        assert "Wooden Door - Sal" in _labels(derive_requirements(_door("wooden", "Engineered Wood")))

    def test_glass_frameless(self):
        """Frameless glass door: 12mm toughened over ⌈7 × 3⌉ = 21 sqft."""
        specs = _by_label(derive_requirements(_door("glass", "Frameless")))
        glass = specs["Glass - Toughened 12mm"]
        assert glass.reference_rate == 420
        assert glass.required_quantity == 21
        assert "Header Rail" not in specs

    def test_glass_framed_adds_rails(self):
        specs = _by_label(derive_requirements(_door("glass", "Framed")))
        assert specs["Header Rail"].required_quantity == 1
        assert specs["Side Rail"].required_quantity == 2
        assert "Glass - Toughened 10mm" in specs

    def test_glass_door_hardware_tail(self):
        labels = _labels(derive_requirements(_door("glass", "Frameless")))
        assert "Glass Door Lock" in labels
        assert "Glass Door Handle - Standard" in labels
        assert "Mortise Lock - Standard" not in labels
        assert "Door Screws" not in labels
        assert labels[-1] == "Door Stopper - Floor Mount"

    def test_stile_double_glazing(self):
        """
        Stile door 7 × 3 = 21 sqft: glass ⌈21 × 0.6⌉ = 13, frame ⌈21 × 0.4⌉ = 9.
        """
        cfg = _door("stile", "Double Glazing")
        specs = _by_label(derive_requirements(cfg))
        dgu = specs["Glass - Toughened 12mm (DGU)"]
        assert dgu.reference_rate == 650
        assert dgu.required_quantity == 13
        assert specs["Aluminium Stile Frame"].required_quantity == 9

    def test_stile_glazing_type_drives_dgu(self):
        cfg = _door("stile", "Single Glazing", glazing_type="Double Glazing")
        assert "Glass - Toughened 12mm (DGU)" in _labels(derive_requirements(cfg))

    def test_stile_single_glazing(self):
        assert "Glass - Toughened 10mm" in _labels(derive_requirements(_door("stile", "Single Glazing")))

    def test_tall_door_hinge_tier(self):
        specs = _by_label(derive_requirements(_door("wpc", height=8.5)))
        assert specs["Hinges - SS (Pair)"].required_quantity == 5
        assert specs["Door Screws"].required_quantity == 30


# ===========================================================================
# Class 3: Aliases and panel type
# ===========================================================================

class TestAliases:

    @pytest.mark.parametrize("alias,canonical", [
        ("flush-door", "flush"),
        ("wpc-door", "wpc"),
        ("glassdoor", "glass"),
        ("glass-door", "glass"),
        ("teak", "wooden"),
        ("wooden-door", "wooden"),
        ("stile-door", "stile"),
        ("Flush", "flush"),
    ])
    def test_canonical_type(self, alias, canonical):
        assert canonical_door_type(alias) == canonical

    def test_alias_derives_same_list(self):
        a = derive_requirements(_door("flush-door", "With Vision Panel", has_frame=True))
        b = derive_requirements(_door("flush", "With Vision Panel", has_frame=True))
        assert a == b

    def test_panel_type_derived_from_variant(self):
        assert resolve_panel_type(_door("flush")) == "panel"
        assert resolve_panel_type(_door("glass", "Framed")) == "nopanel"
        assert resolve_panel_type(_door("glass", panel_type="custom")) == "custom"


# ===========================================================================
# Class 4: Painting and flooring
# ===========================================================================

class TestPaintingAndFlooring:

    def test_interior_painting(self):
        """200 sqft wall: primer/emulsion 2 L, putty 4 kg."""
        cfg = WorkPackageConfiguration(
            type="interior", work_package="painting", dimensions=Dimensions(height=10, width=20),
        )
        specs = _by_label(derive_requirements(cfg))
        assert set(specs) == {"Primer", "Wall Putty", "Interior Emulsion", "Sandpaper"}
        assert specs["Primer"].required_quantity == pytest.approx(2.0)
        assert specs["Wall Putty"].required_quantity == pytest.approx(4.0)

    def test_exterior_painting(self):
        cfg = WorkPackageConfiguration(
            type="exterior", work_package="painting", dimensions=Dimensions(height=10, width=20),
        )
        assert _labels(derive_requirements(cfg)) == ["External Primer", "Exterior Emulsion", "Crack Filler"]

    def test_flooring_wastage(self):
        """120 sqft room → 132 sqft of tiles (10% wastage)."""
        cfg = WorkPackageConfiguration(
            type="vitrified", work_package="flooring", dimensions=Dimensions(height=10, width=12),
        )
        specs = derive_requirements(cfg)
        assert specs[0].type_label == "Vitrified Tiles 600x600"
        assert specs[0].required_quantity == pytest.approx(132.0)
        assert "Tile Adhesive" in _labels(specs)

    def test_wooden_flooring_uses_underlay(self):
        cfg = WorkPackageConfiguration(
            type="wooden", work_package="flooring", dimensions=Dimensions(height=10, width=12),
        )
        labels = _labels(derive_requirements(cfg))
        assert "Foam Underlay" in labels
        assert "Tile Grout" not in labels


# ===========================================================================
# Class 5: Incomplete / unknown configurations
# ===========================================================================

class TestIncompleteConfigurations:

    def test_unknown_door_type(self):
        assert derive_requirements(_door("revolving")) == []

    def test_missing_height(self):
        assert derive_requirements(_door("flush", height=None)) == []

    def test_missing_width(self):
        assert derive_requirements(_door("wpc", width=0)) == []

    def test_unknown_work_package(self):
        cfg = WorkPackageConfiguration(type="flush", work_package="roofing",
                                       dimensions=Dimensions(height=7, width=3))
        assert derive_requirements(cfg) == []

    def test_unknown_painting_type(self):
        cfg = WorkPackageConfiguration(type="texture", work_package="painting",
                                       dimensions=Dimensions(height=10, width=10))
        assert derive_requirements(cfg) == []

    def test_deterministic(self, flush_vp_config):
        assert derive_requirements(flush_vp_config) == derive_requirements(flush_vp_config)

    def test_configuration_dict_round_trip(self, flush_vp_config):
        restored = WorkPackageConfiguration.from_dict(flush_vp_config.to_dict())
        assert restored == flush_vp_config
