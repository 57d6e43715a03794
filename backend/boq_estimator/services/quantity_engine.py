"""
Quantity Engine — turns a material role plus opening dimensions into a
purchasable whole-unit quantity.

Every result passes through max(1, ceil(value)). Non-positive inputs are a
configuration error, never a silent zero.
"""
import math
from typing import Optional

from boq_estimator.config import BASE_HINGES_PER_DOOR, HINGE_TIERS
from boq_estimator.services.errors import ConfigurationIncomplete

ROLE_FRAME = "frame"
ROLE_PANEL = "panel"
ROLE_HINGE = "hinge"
ROLE_HARDWARE = "hardware"
ROLE_GLASS = "glass"
ROLE_SCALED = "scaled"

ROLES = (ROLE_FRAME, ROLE_PANEL, ROLE_HINGE, ROLE_HARDWARE, ROLE_GLASS, ROLE_SCALED)


def perimeter(height: float, width: float) -> float:
    return 2.0 * (height + width)


def hinges_per_door(height: float) -> int:
    """3 hinges up to 7 ft, 4 above 7 ft, 5 above 8 ft."""
    for threshold, hinges in HINGE_TIERS:
        if height > threshold:
            return hinges
    return BASE_HINGES_PER_DOOR


def whole_units(value: float) -> int:
    if value <= 0:
        raise ConfigurationIncomplete(f"computed quantity {value} is not positive")
    # round off float noise such as 120 * 1.1 = 132.00000000000003
    return max(1, math.ceil(round(value, 9)))


class QuantityEngine:
    """
    Role-based quantity rules:
      frame    → count × ⌈2(h + w)⌉
      panel    → count
      hinge    → count × hinge tier(h)
      hardware → count × base
      glass    → ⌈count × gh × gw⌉ (glass dims) else ⌈count × base⌉
      scaled   → ⌈count × base⌉
    """

    def calculate(
        self,
        role: str,
        count: int,
        height: Optional[float] = None,
        width: Optional[float] = None,
        base_quantity: float = 1.0,
        glass_height: Optional[float] = None,
        glass_width: Optional[float] = None,
    ) -> int:
        if count is None or count <= 0:
            raise ConfigurationIncomplete(f"count must be positive, got {count}")

        if role == ROLE_FRAME:
            self._require_dims(height, width)
            return count * whole_units(perimeter(height, width))
        if role == ROLE_PANEL:
            return whole_units(count)
        if role == ROLE_HINGE:
            self._require_dims(height)
            return count * hinges_per_door(height)
        if role == ROLE_HARDWARE:
            return whole_units(count * base_quantity)
        if role == ROLE_GLASS:
            if glass_height and glass_width:
                self._require_dims(glass_height, glass_width)
                return whole_units(count * glass_height * glass_width)
            return whole_units(count * base_quantity)
        if role == ROLE_SCALED:
            return whole_units(count * base_quantity)
        raise ConfigurationIncomplete(f"unknown material role '{role}'")

    def for_dimensions(self, role: str, dimensions, base_quantity: float = 1.0) -> int:
        """Shortcut taking a ``Dimensions`` record."""
        return self.calculate(
            role,
            dimensions.count,
            height=dimensions.height,
            width=dimensions.width,
            base_quantity=base_quantity,
            glass_height=dimensions.glass_height,
            glass_width=dimensions.glass_width,
        )

    @staticmethod
    def _require_dims(*values: Optional[float]) -> None:
        for v in values:
            if v is None or v <= 0:
                raise ConfigurationIncomplete(f"dimension must be positive, got {v}")
